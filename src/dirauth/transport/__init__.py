"""
DirAuth Transport Layer

Directory connections over ldap3.

Components:
- connection: DirectoryConnection, its lifecycle state machine and the
  default ldap3 connection factory
- tls: StartTLS peer verification policy
"""

from dirauth.transport.connection import (
    ConnectionFactory,
    ConnectionState,
    DirectoryConnection,
    create_ldap_connection,
    translate_ldap_errors,
)
from dirauth.transport.tls import build_tls, verify_peer

__all__ = [
    # Connection
    "ConnectionFactory",
    "ConnectionState",
    "DirectoryConnection",
    "create_ldap_connection",
    "translate_ldap_errors",
    # TLS
    "build_tls",
    "verify_peer",
]
