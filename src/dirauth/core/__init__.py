"""
DirAuth Core Module

Provides foundational types and helpers used by the transport and the
authenticator.

Components:
- types: Configuration, credentials and search result types
- filters: Search filter templates and escaping
- dn: Distinguished name helpers
- state_machine: Base state machine with invariant checking
- exceptions: Custom exception types
"""

from dirauth.core.types import (
    AuthMechanism,
    AuthenticatorConfig,
    Credential,
    PeerVerification,
    SearchEntry,
)
from dirauth.core.filters import (
    escape_filter_value,
    group_filter,
    principal_filter,
)
from dirauth.core.dn import extract_common_name, validate_dn
from dirauth.core.state_machine import StateMachineBase, Transition
from dirauth.core.exceptions import (
    DirectoryError,
    ConfigurationError,
    TransportError,
    ProtocolError,
    BindRejected,
    StateError,
    InvariantViolation,
)

__all__ = [
    # Types
    "AuthMechanism",
    "AuthenticatorConfig",
    "Credential",
    "PeerVerification",
    "SearchEntry",
    # Filters and names
    "escape_filter_value",
    "group_filter",
    "principal_filter",
    "extract_common_name",
    "validate_dn",
    # State Machine
    "StateMachineBase",
    "Transition",
    # Exceptions
    "DirectoryError",
    "ConfigurationError",
    "TransportError",
    "ProtocolError",
    "BindRejected",
    "StateError",
    "InvariantViolation",
]
