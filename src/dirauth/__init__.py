"""
DirAuth - Directory Service Authentication

Authenticates a login against an LDAP / Active Directory server and
optionally checks group membership.

Features:
- Anonymous, simple, DIGEST-MD5 and GSSAPI binds
- StartTLS with strict server identity checks by default
- memberOf group checks with escaped search filters

Example Usage:
    from dirauth import AuthMechanism, AuthenticatorConfig, DirectoryAuthenticator

    config = AuthenticatorConfig(
        server_url="ldap://ldap.example.com",
        base_dn="dc=example,dc=com",
        use_tls=True,
        mechanism=AuthMechanism.SIMPLE,
    )
    auth = DirectoryAuthenticator(config)

    if auth.authenticate("jdoe", "secret", "engineers"):
        print("Welcome, engineer")
"""

from dirauth.core.types import (
    AuthMechanism,
    AuthenticatorConfig,
    Credential,
    PeerVerification,
)
from dirauth.core.exceptions import (
    DirectoryError,
    TransportError,
    ProtocolError,
    BindRejected,
)
from dirauth.core.dn import extract_common_name
from dirauth.core.filters import escape_filter_value
from dirauth.transport.connection import DirectoryConnection
from dirauth.ad.authenticator import (
    DirectoryAuthenticator,
    create_directory_authenticator,
)

__version__ = "0.1.0"

__all__ = [
    # Main API
    "DirectoryAuthenticator",
    "DirectoryConnection",
    "create_directory_authenticator",
    # Types
    "AuthMechanism",
    "AuthenticatorConfig",
    "Credential",
    "PeerVerification",
    # Helpers
    "extract_common_name",
    "escape_filter_value",
    # Errors
    "DirectoryError",
    "TransportError",
    "ProtocolError",
    "BindRejected",
    # Metadata
    "__version__",
]
