"""
DirAuth Exception Types

Custom exceptions for directory connection, bind and search errors.
"""

from typing import Optional


class DirectoryError(Exception):
    """Base exception for all DirAuth errors."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConfigurationError(DirectoryError):
    """
    Invalid authenticator configuration.

    Raised when an AuthenticatorConfig is constructed with values that
    cannot address a directory server.
    """

    pass


class TransportError(DirectoryError):
    """
    Transport-level error.

    This indicates the directory server could not be reached, the
    connection dropped, or the StartTLS upgrade and peer verification
    did not succeed.
    """

    pass


class ProtocolError(DirectoryError):
    """
    Protocol-level error.

    This indicates an error in the directory exchange itself,
    such as malformed responses, invalid names or a failed operation.
    """

    pass


class BindRejected(ProtocolError):
    """
    Bind rejected by the directory server.

    The server answered the bind request but refused the supplied
    principal and credential. ``code`` carries the LDAP result code.
    """

    INVALID_CREDENTIALS = 49

    def __init__(
        self,
        message: str = "Invalid credentials",
        code: Optional[int] = INVALID_CREDENTIALS,
    ) -> None:
        super().__init__(message, code)


class StateError(DirectoryError):
    """
    Invalid connection state.

    This indicates an attempt to perform an operation that is
    not valid in the current connection lifecycle state.
    """

    pass


class InvariantViolation(DirectoryError):
    """
    Connection invariant was violated.

    Raised when a lifecycle transition would leave the connection in a
    state that must never be observable, e.g. bound in clear text when
    TLS was requested.
    """

    pass
