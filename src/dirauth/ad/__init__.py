"""
DirAuth Directory Module

High-level interface for directory authentication.

Components:
- authenticator: DirectoryAuthenticator for bind and group checks

Supports:
- Anonymous, simple and SASL (DIGEST-MD5, GSSAPI) binds
- StartTLS with configurable peer verification
- Group membership through memberOf
"""

from dirauth.ad.authenticator import (
    DirectoryAuthenticator,
    create_directory_authenticator,
)

__all__ = [
    "DirectoryAuthenticator",
    "create_directory_authenticator",
]
