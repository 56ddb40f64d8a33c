"""
Unit tests for dirauth.core.types module.

Tests configuration validation, credentials and search entries.
"""

import attrs
import pytest

from dirauth.core.exceptions import ConfigurationError
from dirauth.core.types import (
    AuthMechanism,
    AuthenticatorConfig,
    Credential,
    PeerVerification,
    SearchEntry,
    wire_secret,
)


class TestAuthMechanism:
    """Tests for AuthMechanism enum."""

    def test_wire_names(self):
        """Test mechanism values match the names sent to the server."""
        assert AuthMechanism.NONE.value == "none"
        assert AuthMechanism.SIMPLE.value == "simple"
        assert AuthMechanism.DIGEST_MD5.value == "DIGEST-MD5"
        assert AuthMechanism.GSSAPI.value == "GSSAPI"

    def test_sasl_mechanisms(self):
        """Test only DIGEST-MD5 and GSSAPI are SASL."""
        assert AuthMechanism.DIGEST_MD5.is_sasl
        assert AuthMechanism.GSSAPI.is_sasl
        assert not AuthMechanism.SIMPLE.is_sasl
        assert not AuthMechanism.NONE.is_sasl


class TestAuthenticatorConfig:
    """Tests for AuthenticatorConfig."""

    def test_defaults(self):
        """Test defaults: anonymous, no TLS, strict verification."""
        config = AuthenticatorConfig(server_url="ldap://example.test")
        assert config.base_dn == ""
        assert config.use_tls is False
        assert config.mechanism == AuthMechanism.NONE
        assert config.follow_referrals is False
        assert config.peer_verification == PeerVerification.STRICT
        assert config.connect_timeout is None

    def test_config_is_immutable(self, simple_config):
        """Test configuration cannot be mutated in place."""
        with pytest.raises(attrs.exceptions.FrozenInstanceError):
            simple_config.use_tls = True

    @pytest.mark.parametrize("url", ["", "   ", "example.test", "http://example.test", "ldap://"])
    def test_invalid_server_url(self, url):
        """Test malformed URLs are rejected."""
        with pytest.raises(ConfigurationError):
            AuthenticatorConfig(server_url=url)

    def test_ldaps_url(self):
        """Test ldaps:// is recognised as implicit TLS."""
        config = AuthenticatorConfig(server_url="ldaps://dc.example.test:636")
        assert config.is_ldaps
        assert config.hostname == "dc.example.test"

    def test_starttls_over_ldaps_rejected(self):
        """Test StartTLS cannot be requested on an ldaps:// URL."""
        with pytest.raises(ConfigurationError):
            AuthenticatorConfig(server_url="ldaps://dc.example.test", use_tls=True)

    def test_non_positive_timeout_rejected(self):
        """Test timeouts must be positive."""
        with pytest.raises(ConfigurationError):
            AuthenticatorConfig(server_url="ldap://example.test", connect_timeout=0)

    def test_with_helpers_return_copies(self, simple_config):
        """Test with_* helpers leave the original untouched."""
        secured = simple_config.with_tls(peer_verification=PeerVerification.CERTIFICATE_PRESENT)
        digest = simple_config.with_mechanism(AuthMechanism.DIGEST_MD5)
        referrals = simple_config.with_referrals()

        assert secured.use_tls is True
        assert secured.peer_verification == PeerVerification.CERTIFICATE_PRESENT
        assert digest.mechanism == AuthMechanism.DIGEST_MD5
        assert referrals.follow_referrals is True
        assert simple_config.use_tls is False
        assert simple_config.mechanism == AuthMechanism.SIMPLE
        assert simple_config.follow_referrals is False

    def test_from_url_strips_whitespace(self):
        """Test from_url factory."""
        config = AuthenticatorConfig.from_url(
            " ldap://example.test ",
            "dc=example,dc=com",
            mechanism=AuthMechanism.SIMPLE,
        )
        assert config.server_url == "ldap://example.test"
        assert config.base_dn == "dc=example,dc=com"
        assert config.mechanism == AuthMechanism.SIMPLE

    def test_bind_principal_empty_login_uses_base_dn(self, simple_config):
        """Test an empty login binds as base_dn."""
        assert simple_config.bind_principal("") == simple_config.base_dn
        assert simple_config.bind_principal(None) == simple_config.base_dn

    def test_bind_principal_uses_login(self, simple_config):
        """Test a non-empty login is the bind identity."""
        assert simple_config.bind_principal("jdoe@example.com") == "jdoe@example.com"


class TestCredential:
    """Tests for Credential."""

    def test_secret_converted_to_bytearray(self):
        """Test str secrets are stored as a mutable buffer."""
        cred = Credential(login="jdoe", secret="pässword")
        assert isinstance(cred.secret, bytearray)
        assert cred.reveal() == "pässword".encode("utf-8")

    def test_caller_buffer_is_shared(self):
        """Test a bytearray secret is kept by reference so the caller can wipe it."""
        buffer = bytearray(b"password")
        cred = Credential(login="jdoe", secret=buffer)
        assert cred.secret is buffer

    def test_wipe_zeroes_secret(self):
        """Test wipe overwrites every byte."""
        cred = Credential(login="jdoe", secret=b"password")
        cred.wipe()
        assert cred.secret == bytearray(8)

    def test_context_manager_wipes(self):
        """Test leaving the with-block wipes the secret."""
        with Credential(login="jdoe", secret="password") as cred:
            assert cred.reveal() == b"password"
        assert set(cred.secret) == {0}

    def test_secret_not_in_repr(self):
        """Test the secret never shows up in repr."""
        cred = Credential(login="jdoe", secret="hunter2")
        assert "hunter2" not in repr(cred)

    def test_invalid_secret_type(self):
        """Test unsupported secret types are rejected."""
        with pytest.raises(TypeError):
            Credential(login="jdoe", secret=12345)


class TestWireSecret:
    """Tests for wire_secret."""

    def test_text_passes_through(self):
        """Test str secrets are left for ldap3 to encode."""
        assert wire_secret("password") == "password"

    @pytest.mark.parametrize(
        "secret",
        [b"password", bytearray(b"password"), Credential("", "password")],
    )
    def test_byte_forms(self, secret):
        """Test byte buffers are sent as raw octets."""
        assert wire_secret(secret) == b"password"

    def test_non_utf8_octets_preserved(self):
        """Test octets that are not valid UTF-8 are sent unchanged."""
        assert wire_secret(b"\xff\xfepw") == b"\xff\xfepw"
        assert wire_secret(Credential("jdoe", bytearray(b"\xff\xfepw"))) == b"\xff\xfepw"

    def test_rejects_other_types(self):
        """Test unsupported types raise TypeError."""
        with pytest.raises(TypeError):
            wire_secret(None)


class TestSearchEntry:
    """Tests for SearchEntry."""

    def test_from_response_normalises_values(self):
        """Test single values become lists and None becomes empty."""
        entry = SearchEntry.from_response({
            "type": "searchResEntry",
            "dn": "uid=gauss,dc=example,dc=com",
            "attributes": {"memberOf": "CN=a,dc=x", "mail": None},
        })
        assert entry.dn == "uid=gauss,dc=example,dc=com"
        assert entry.values("memberOf") == ["CN=a,dc=x"]
        assert entry.values("mail") == []

    def test_values_case_insensitive(self):
        """Test attribute lookup ignores case."""
        entry = SearchEntry(dn="", attributes={"memberOf": ["CN=a,dc=x", "CN=b,dc=x"]})
        assert entry.values("memberof") == ["CN=a,dc=x", "CN=b,dc=x"]
        assert entry.values("MEMBEROF") == ["CN=a,dc=x", "CN=b,dc=x"]

    def test_missing_attribute(self):
        """Test a missing attribute yields an empty list."""
        entry = SearchEntry.from_response({"dn": "uid=x,dc=example,dc=com"})
        assert entry.values("memberOf") == []
