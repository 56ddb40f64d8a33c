"""
DirAuth Directory Authenticator

High-level interface for authenticating a login against a directory
server and checking its group membership.

Flow:
1. Connect to server_url
2. StartTLS and verify the server identity (if use_tls)
3. Bind as the login (or as base_dn for an empty login)
4. Optionally look up memberOf for the login and match a group CN

Security Considerations:
- Credentials are only sent after the TLS upgrade when use_tls is set
- STRICT peer verification is the default; CERTIFICATE_PRESENT is legacy
- Logins are escaped before being spliced into search filters
- A successful bind is the only criterion for authenticate()
"""

from __future__ import annotations

from typing import Any, Optional, Set

import attrs
import structlog
from returns.result import Failure, Result, Success

from dirauth.core.dn import extract_common_name, validate_dn
from dirauth.core.exceptions import DirectoryError
from dirauth.core.filters import ATTRIBUTES_FOR_SEARCH, MEMBER_OF, principal_filter
from dirauth.core.types import (
    AuthMechanism,
    AuthenticatorConfig,
    Credential,
    PeerVerification,
    SecretLike,
    wire_secret,
)
from dirauth.transport.connection import (
    ConnectionFactory,
    DirectoryConnection,
    create_ldap_connection,
)

logger = structlog.get_logger()


# =============================================================================
# DIRECTORY AUTHENTICATOR
# =============================================================================


@attrs.define
class DirectoryAuthenticator:
    """
    Directory (LDAP / Active Directory) authenticator.

    Provides:
    - Bind-based credential checks
    - Group membership checks through memberOf
    - Scoped connections, released on every exit path

    The configuration is immutable, so one authenticator can serve
    concurrent callers; each call opens its own connection.

    Example:
        config = AuthenticatorConfig(
            server_url="ldap://ldap.example.com",
            base_dn="dc=example,dc=com",
            use_tls=True,
            mechanism=AuthMechanism.SIMPLE,
        )
        auth = DirectoryAuthenticator(config)

        if auth.authenticate("jdoe", secret, "engineers"):
            print("jdoe is an engineer")
    """

    config: AuthenticatorConfig
    connection_factory: ConnectionFactory = create_ldap_connection

    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def connect_and_bind(self, login: str, secret: SecretLike) -> DirectoryConnection:
        """
        Open a connection and bind with the supplied credentials.

        The caller owns the returned connection and must close it.

        Args:
            login: Bind identity; empty means bind as base_dn
            secret: Password (str, bytes, bytearray or Credential). A
                Credential whose login differs from login is rejected.

        Returns:
            Live, bound DirectoryConnection

        Raises:
            TransportError: Connection or StartTLS failure
            BindRejected: Credentials refused
            ProtocolError: Any other directory failure
            ValueError: login conflicts with the Credential login
        """
        if secret is None:
            raise TypeError("secret must not be None")
        if isinstance(secret, Credential) and secret.login != (login or ""):
            raise ValueError(
                f"login {login!r} does not match credential login {secret.login!r}"
            )

        principal = self.config.bind_principal(login)
        self._logger.info(
            "directory_bind_start",
            server_url=self.config.server_url,
            principal=principal,
            mechanism=self.config.mechanism.value,
            use_tls=self.config.use_tls,
        )

        connection = DirectoryConnection.create(self.config, self.connection_factory)
        try:
            connection.open()
            if self.config.use_tls:
                connection.start_tls()
            connection.bind(principal, wire_secret(secret))
        except Exception as e:
            self._logger.warning(
                "directory_bind_failed",
                server_url=self.config.server_url,
                principal=principal,
                error_type=type(e).__name__,
                error=str(e),
            )
            connection.close()
            raise

        self._logger.info(
            "directory_bind_success",
            server_url=self.config.server_url,
            principal=principal,
        )
        return connection

    def authenticate(
        self,
        login: str,
        secret: SecretLike,
        group_name: Optional[str] = None,
    ) -> bool:
        """
        Authenticate a login, optionally requiring group membership.

        Without group_name the result is True whenever the bind succeeds;
        failures are raised, never returned as False. With group_name the
        result is is_member_of() for the bound connection.

        Args:
            login: Bind identity; empty means bind as base_dn
            secret: Password
            group_name: Common name of a required group

        Returns:
            True if authenticated (and a member of group_name, if given)
        """
        with self.connect_and_bind(login, secret) as connection:
            if group_name is None:
                return True
            return self.is_member_of(connection, login, group_name)

    def try_authenticate(
        self,
        login: str,
        secret: SecretLike,
        group_name: Optional[str] = None,
    ) -> Result[bool, DirectoryError]:
        """
        Authenticate without raising directory errors.

        Returns:
            Success(bool) as from authenticate(), or Failure(error)
        """
        try:
            return Success(self.authenticate(login, secret, group_name))
        except DirectoryError as e:
            return Failure(e)

    def is_member_of(
        self,
        connection: DirectoryConnection,
        login: str,
        group_name: str,
    ) -> bool:
        """
        Check whether login belongs to a group.

        Compares group_name case-sensitively with the common name of each
        memberOf DN, not with the full DN.
        """
        groups = self.list_groups(connection, login)
        is_member = any(extract_common_name(dn) == group_name for dn in groups)
        self._logger.debug(
            "directory_membership_checked",
            login=login,
            group=group_name,
            is_member=is_member,
            group_count=len(groups),
        )
        return is_member

    def list_groups(self, connection: DirectoryConnection, login: str) -> Set[str]:
        """
        Return the memberOf DNs of the account named login.

        Searches the subtree under base_dn by sAMAccountName. Only the
        first entry is used; no entry yields an empty set.

        Raises:
            ProtocolError: The search failed or returned a malformed DN
        """
        validate_dn(self.config.base_dn)
        entries = connection.search(
            self.config.base_dn,
            principal_filter(login),
            ATTRIBUTES_FOR_SEARCH,
        )
        if not entries:
            self._logger.debug("directory_principal_not_found", login=login)
            return set()

        entry = entries[0]
        validate_dn(entry.dn)
        groups = {str(value) for value in entry.values(MEMBER_OF)}
        self._logger.debug(
            "directory_groups_listed",
            login=login,
            entry_dn=entry.dn,
            group_count=len(groups),
        )
        return groups

    @staticmethod
    def extract_common_name(distinguished_name: str) -> str:
        """See dirauth.core.dn.extract_common_name."""
        return extract_common_name(distinguished_name)


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_directory_authenticator(
    server_url: str,
    base_dn: str = "",
    use_tls: bool = False,
    mechanism: AuthMechanism = AuthMechanism.NONE,
    follow_referrals: bool = False,
    peer_verification: PeerVerification = PeerVerification.STRICT,
    connection_factory: Optional[ConnectionFactory] = None,
) -> DirectoryAuthenticator:
    """
    Create a directory authenticator.

    Args:
        server_url: ldap:// or ldaps:// URL
        base_dn: Search base, also the bind identity for an empty login
        use_tls: StartTLS before binding
        mechanism: Bind mechanism (NONE binds anonymously)
        follow_referrals: Chase referrals
        peer_verification: Server identity policy for StartTLS
        connection_factory: Override the ldap3 connection factory

    Returns:
        Configured DirectoryAuthenticator

    Example:
        auth = create_directory_authenticator(
            "ldap://ldap.forumsys.com",
            "cn=read-only-admin,dc=example,dc=com",
            mechanism=AuthMechanism.SIMPLE,
        )
        auth.authenticate("", "password")
    """
    config = AuthenticatorConfig(
        server_url=server_url,
        base_dn=base_dn,
        use_tls=use_tls,
        mechanism=mechanism,
        follow_referrals=follow_referrals,
        peer_verification=peer_verification,
    )
    if connection_factory is None:
        return DirectoryAuthenticator(config=config)
    return DirectoryAuthenticator(config=config, connection_factory=connection_factory)
