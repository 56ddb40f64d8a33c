"""
DirAuth TLS Policy

Builds the ldap3 Tls object for StartTLS and checks the server identity
once the handshake is done.

Policies:
- STRICT: chain validated against the system trust store (or a CA bundle)
  and hostname checked during the handshake
- CERTIFICATE_PRESENT: handshake without validation; the peer only has to
  present a certificate (legacy behaviour, explicit opt-in)

In both cases an optional peer_verifier callback gets the final say.
"""

from __future__ import annotations

import ssl
from typing import Any, Optional

import structlog
from ldap3 import Tls

from dirauth.core.exceptions import TransportError
from dirauth.core.types import AuthenticatorConfig, PeerVerification

logger = structlog.get_logger()


def build_tls(config: AuthenticatorConfig) -> Tls:
    """
    Create the ldap3 Tls settings for a configuration.

    Args:
        config: Authenticator configuration

    Returns:
        Tls used for both ldaps:// and StartTLS
    """
    if config.peer_verification is PeerVerification.STRICT:
        return Tls(
            validate=ssl.CERT_REQUIRED,
            ca_certs_file=config.ca_certs_file,
        )

    logger.warning(
        "tls_peer_validation_disabled",
        server_url=config.server_url,
        message="Only certificate presence is checked - no chain or hostname validation",
    )
    return Tls(validate=ssl.CERT_NONE)


def peer_certificate(ldap_connection: Any) -> Optional[bytes]:
    """
    Return the DER certificate presented by the server, if any.

    Args:
        ldap_connection: ldap3 Connection after start_tls
    """
    sock = getattr(ldap_connection, "socket", None)
    if sock is None or not hasattr(sock, "getpeercert"):
        return None
    try:
        return sock.getpeercert(binary_form=True)
    except (ValueError, ssl.SSLError):
        return None


def verify_peer(ldap_connection: Any, config: AuthenticatorConfig) -> None:
    """
    Accept or reject the server after the TLS handshake.

    Raises:
        TransportError: No certificate was presented or the callback refused it
    """
    certificate = peer_certificate(ldap_connection)
    if not certificate:
        logger.error("tls_peer_unverified", server_url=config.server_url)
        raise TransportError(f"Server {config.hostname} presented no certificate")

    if config.peer_verifier is not None and not config.peer_verifier(config.hostname, certificate):
        logger.error("tls_peer_rejected", server_url=config.server_url)
        raise TransportError(f"Server identity for {config.hostname} rejected by peer verifier")

    logger.debug(
        "tls_peer_verified",
        server_url=config.server_url,
        policy=config.peer_verification.name,
    )
