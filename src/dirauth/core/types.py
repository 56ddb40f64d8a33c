"""
DirAuth Core Types

Fundamental type definitions for directory authentication.

Design Principles:
- Immutable: configuration is a frozen attrs class, built once per attempt
- Validated: constraints enforced at construction
- Scoped: secrets live in caller-owned buffers that can be wiped
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

import attrs
from attrs import field, validators

from dirauth.core.exceptions import ConfigurationError


# =============================================================================
# ENUMS
# =============================================================================


class AuthMechanism(Enum):
    """
    Bind authentication mechanism.

    Values are the mechanism names sent to the directory server.
    DIGEST-MD5 and GSSAPI are SASL mechanisms; GSSAPI needs a Kerberos
    ticket cache on the client host.
    """

    NONE = "none"
    SIMPLE = "simple"
    DIGEST_MD5 = "DIGEST-MD5"
    GSSAPI = "GSSAPI"

    @property
    def is_sasl(self) -> bool:
        """Return True if this mechanism binds through SASL."""
        return self in (AuthMechanism.DIGEST_MD5, AuthMechanism.GSSAPI)


class PeerVerification(Enum):
    """
    Server identity policy applied after StartTLS.

    STRICT validates the certificate chain against the system trust
    store (or ``ca_certs_file``) and checks the hostname.
    CERTIFICATE_PRESENT only requires the peer to present a certificate;
    it performs no chain or hostname validation and must be opted into.
    """

    STRICT = auto()
    CERTIFICATE_PRESENT = auto()


# Callback (hostname, DER-encoded peer certificate) -> accepted
PeerVerifier = Callable[[str, bytes], bool]

SecretLike = Union[str, bytes, bytearray, "Credential"]

_ALLOWED_SCHEMES = ("ldap", "ldaps")


# =============================================================================
# CONFIGURATION
# =============================================================================


def _validate_server_url(instance: Any, attribute: attrs.Attribute, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError("server_url must be a non-empty string")
    parsed = urlparse(value)
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not parsed.hostname:
        raise ConfigurationError(
            f"server_url must look like ldap://host[:port] or ldaps://host[:port], got {value!r}"
        )


def _validate_timeout(instance: Any, attribute: attrs.Attribute, value: Optional[float]) -> None:
    if value is not None and value <= 0:
        raise ConfigurationError(f"{attribute.name} must be positive, got {value}")


@attrs.define(frozen=True, slots=True)
class AuthenticatorConfig:
    """
    Directory authenticator configuration.

    Instances are immutable; derive variants with the ``with_*`` helpers
    (backed by ``attrs.evolve``) instead of mutating shared state.

    Attributes:
        server_url: Directory URL (e.g., "ldap://ldap.example.com:389")
        base_dn: Search base, also the bind identity for an empty login
        use_tls: Upgrade the connection with StartTLS before binding
        mechanism: Bind authentication mechanism
        follow_referrals: Chase referrals returned by the server
        peer_verification: Server identity policy when use_tls is set
        ca_certs_file: CA bundle for STRICT verification (system store if None)
        peer_verifier: Extra callback consulted after the handshake
        connect_timeout: Socket connect timeout in seconds (transport default if None)
        receive_timeout: Socket receive timeout in seconds (transport default if None)
    """

    server_url: str = field(validator=_validate_server_url)
    base_dn: str = field(default="", validator=validators.instance_of(str))
    use_tls: bool = field(default=False, validator=validators.instance_of(bool))
    mechanism: AuthMechanism = field(
        default=AuthMechanism.NONE,
        validator=validators.instance_of(AuthMechanism),
    )
    follow_referrals: bool = field(default=False, validator=validators.instance_of(bool))
    peer_verification: PeerVerification = field(
        default=PeerVerification.STRICT,
        validator=validators.instance_of(PeerVerification),
    )
    ca_certs_file: Optional[str] = None
    peer_verifier: Optional[PeerVerifier] = field(default=None, eq=False, repr=False)
    connect_timeout: Optional[float] = field(default=None, validator=_validate_timeout)
    receive_timeout: Optional[float] = field(default=None, validator=_validate_timeout)

    def __attrs_post_init__(self) -> None:
        if self.use_tls and self.is_ldaps:
            raise ConfigurationError(
                "use_tls requests StartTLS on a plain connection; ldaps:// is already encrypted"
            )

    @property
    def hostname(self) -> str:
        """Host part of server_url."""
        return urlparse(self.server_url).hostname or ""

    @property
    def is_ldaps(self) -> bool:
        """True if server_url uses implicit TLS (ldaps://)."""
        return urlparse(self.server_url).scheme.lower() == "ldaps"

    def bind_principal(self, login: Optional[str]) -> str:
        """
        Resolve the bind identity for a login.

        An empty login binds as base_dn.
        """
        if not login:
            return self.base_dn
        return login

    def with_tls(
        self,
        use_tls: bool = True,
        peer_verification: Optional[PeerVerification] = None,
    ) -> AuthenticatorConfig:
        """Return a copy with StartTLS enabled or disabled."""
        changes: Dict[str, Any] = {"use_tls": use_tls}
        if peer_verification is not None:
            changes["peer_verification"] = peer_verification
        return attrs.evolve(self, **changes)

    def with_mechanism(self, mechanism: AuthMechanism) -> AuthenticatorConfig:
        """Return a copy using a different bind mechanism."""
        return attrs.evolve(self, mechanism=mechanism)

    def with_referrals(self, follow_referrals: bool = True) -> AuthenticatorConfig:
        """Return a copy with referral following toggled."""
        return attrs.evolve(self, follow_referrals=follow_referrals)

    @classmethod
    def from_url(
        cls,
        server_url: str,
        base_dn: str = "",
        **kwargs: Any,
    ) -> AuthenticatorConfig:
        """
        Create config from a directory URL.

        Args:
            server_url: ldap:// or ldaps:// URL
            base_dn: Search base and anonymous-login bind identity
            **kwargs: Any other AuthenticatorConfig field
        """
        return cls(server_url=server_url.strip(), base_dn=base_dn, **kwargs)


# =============================================================================
# CREDENTIALS
# =============================================================================


def _to_bytearray(value: Union[str, bytes, bytearray]) -> bytearray:
    if isinstance(value, bytearray):
        return value
    if isinstance(value, bytes):
        return bytearray(value)
    if isinstance(value, str):
        return bytearray(value.encode("utf-8"))
    raise TypeError(f"secret must be str, bytes or bytearray, got {type(value).__name__}")


@attrs.define
class Credential:
    """
    Login and secret supplied by the caller.

    The secret is kept in a mutable buffer owned by the caller so it can
    be wiped once authentication is done. The authenticator never keeps
    a reference to a Credential past the call that received it.
    """

    login: str = field(default="", validator=validators.instance_of(str))
    secret: bytearray = field(factory=bytearray, converter=_to_bytearray, repr=False)

    def reveal(self) -> bytes:
        """Return the secret octets for the wire."""
        return bytes(self.secret)

    def wipe(self) -> None:
        """Overwrite the secret buffer with zeros."""
        for i in range(len(self.secret)):
            self.secret[i] = 0

    def __enter__(self) -> Credential:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()


def wire_secret(secret: SecretLike) -> Union[str, bytes]:
    """
    Return a secret in the form sent in the bind request.

    Text is UTF-8 encoded by ldap3. Byte buffers are sent unchanged as the
    password octets.
    """
    if isinstance(secret, Credential):
        return secret.reveal()
    if isinstance(secret, (bytes, bytearray)):
        return bytes(secret)
    if isinstance(secret, str):
        return secret
    raise TypeError(f"secret must be str, bytes, bytearray or Credential, got {type(secret).__name__}")


# =============================================================================
# SEARCH RESULTS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class SearchEntry:
    """
    One entry returned by a directory search.

    Attributes:
        dn: Distinguished name of the entry
        attributes: Requested attribute values, always as lists
    """

    dn: str
    attributes: Dict[str, List[Any]] = attrs.Factory(dict)

    def values(self, name: str) -> List[Any]:
        """Return all values of an attribute, matching its name case-insensitively."""
        lowered = name.lower()
        for key, value in self.attributes.items():
            if key.lower() == lowered:
                return list(value)
        return []

    @classmethod
    def from_response(cls, item: Dict[str, Any]) -> SearchEntry:
        """Build an entry from an ldap3 ``searchResEntry`` response item."""
        attributes: Dict[str, List[Any]] = {}
        for key, value in (item.get("attributes") or {}).items():
            if value is None:
                attributes[key] = []
            elif isinstance(value, (list, tuple)):
                attributes[key] = list(value)
            else:
                attributes[key] = [value]
        return cls(dn=item.get("dn", ""), attributes=attributes)
