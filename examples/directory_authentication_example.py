#!/usr/bin/env python3
"""
Directory Authentication Example

Demonstrates how to use DirAuth's DirectoryAuthenticator against the
public forumsys read-only LDAP server.

Features:
1. Binding as base_dn with an empty login
2. Group membership checks by common name
3. Listing memberOf groups on a scoped connection
4. Result-returning authentication
5. Lifecycle trace of a connection
"""

from returns.result import Failure, Success

from dirauth import (
    AuthMechanism,
    Credential,
    DirectoryError,
    create_directory_authenticator,
)


def main():
    """Demonstrate directory authentication."""

    print("=" * 70)
    print("DirAuth - Directory Authentication")
    print("=" * 70)
    print()

    # Configuration
    SERVER_URL = "ldap://ldap.forumsys.com"
    BASE_DN = "cn=read-only-admin,dc=example,dc=com"

    auth = create_directory_authenticator(
        SERVER_URL,
        BASE_DN,
        mechanism=AuthMechanism.SIMPLE,
        follow_referrals=True,
    )

    # ==========================================================================
    # EXAMPLE 1: Plain bind
    # ==========================================================================
    print("1. Bind as base_dn")
    print("-" * 40)

    try:
        print(f"   Authenticated: {auth.authenticate('', 'password')}")
    except DirectoryError as e:
        print(f"   Bind failed: {e}")
    print()

    # ==========================================================================
    # EXAMPLE 2: Group membership
    # ==========================================================================
    print("2. Group membership")
    print("-" * 40)

    for group in ("mathematicians", "italians"):
        try:
            print(f"   {group}: {auth.authenticate('', 'password', group)}")
        except DirectoryError as e:
            print(f"   {group}: error {e}")
    print()

    # ==========================================================================
    # EXAMPLE 3: Scoped connection
    # ==========================================================================
    print("3. Scoped connection")
    print("-" * 40)

    with Credential(login="", secret="password") as cred:
        try:
            with auth.connect_and_bind(cred.login, cred) as conn:
                print(f"   Bound as: {conn.principal}")
                groups = auth.list_groups(conn, "gauss")
                print(f"   Groups of gauss: {sorted(groups) or 'none'}")
            for step in conn.get_trace():
                print(f"   {step['from_state']} -> {step['to_state']} ({step['event_type']})")
        except DirectoryError as e:
            print(f"   Failed: {e}")
    print()

    # ==========================================================================
    # EXAMPLE 4: Result API
    # ==========================================================================
    print("4. Result API")
    print("-" * 40)

    result = auth.try_authenticate("", "wrong-password")
    if isinstance(result, Success):
        print(f"   Authenticated: {result.unwrap()}")
    else:
        error = result.failure()
        print(f"   Rejected: {type(error).__name__} (code={error.code})")
    print()


if __name__ == "__main__":
    main()
