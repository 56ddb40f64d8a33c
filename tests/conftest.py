"""
Pytest configuration and shared fixtures for DirAuth tests.
"""

from typing import Any, Dict, List, Optional

import pytest
from ldap3 import ANONYMOUS, AUTO_BIND_NONE, MOCK_SYNC, NONE as NO_SERVER_INFO, Connection, Server

from dirauth.core.types import AuthMechanism, AuthenticatorConfig
from dirauth.ad.authenticator import DirectoryAuthenticator


SERVER_URL = "ldap://example.test"
BASE_DN = "cn=admin,dc=example,dc=com"
PEER_CERTIFICATE = b"0\x82\x01\x0afake-der-certificate"


# =============================================================================
# FAKE LDAP3 CONNECTION
# =============================================================================


class FakeTlsSocket:
    """Stand-in for the SSL socket ldap3 installs after StartTLS."""

    def __init__(self, certificate: Optional[bytes]) -> None:
        self.certificate = certificate

    def getpeercert(self, binary_form: bool = False) -> Optional[bytes]:
        return self.certificate


class FakeLdapConnection:
    """
    Mimics the parts of ldap3.Connection used by DirectoryConnection.

    Counts open/unbind calls and records binds and searches.
    """

    def __init__(
        self,
        config: AuthenticatorConfig,
        accept_bind: bool = True,
        bind_error: Optional[Exception] = None,
        open_error: Optional[Exception] = None,
        start_tls_result: bool = True,
        start_tls_error: Optional[Exception] = None,
        peer_certificate: Optional[bytes] = PEER_CERTIFICATE,
        search_response: Optional[List[Dict[str, Any]]] = None,
        search_error: Optional[Exception] = None,
        unbind_error: Optional[Exception] = None,
    ) -> None:
        self.config = config
        self.accept_bind = accept_bind
        self.bind_error = bind_error
        self.open_error = open_error
        self.start_tls_result = start_tls_result
        self.start_tls_error = start_tls_error
        self.peer_certificate = peer_certificate
        self.search_response = search_response or []
        self.search_error = search_error
        self.unbind_error = unbind_error

        self.user: Optional[str] = None
        self.password: Optional[str] = None
        self.auto_referrals = False
        self.socket: Any = object()
        self.result: Dict[str, Any] = {}
        self.response: Optional[List[Dict[str, Any]]] = None

        self.open_count = 0
        self.unbind_count = 0
        self.start_tls_count = 0
        self.binds: List[Dict[str, Any]] = []
        self.searches: List[Dict[str, Any]] = []
        self.events: List[str] = []

    def open(self) -> None:
        self.open_count += 1
        self.events.append("open")
        if self.open_error is not None:
            raise self.open_error

    def start_tls(self) -> bool:
        self.start_tls_count += 1
        self.events.append("start_tls")
        if self.start_tls_error is not None:
            raise self.start_tls_error
        if self.start_tls_result:
            self.socket = FakeTlsSocket(self.peer_certificate)
        else:
            self.result = {"result": 2, "description": "protocolError"}
        return self.start_tls_result

    def rebind(self, **kwargs: Any) -> bool:
        self.events.append("bind")
        self.binds.append(dict(kwargs, auto_referrals=self.auto_referrals))
        self.user = kwargs.get("user")
        self.password = kwargs.get("password")
        if self.bind_error is not None:
            raise self.bind_error
        if self.accept_bind:
            self.result = {"result": 0, "description": "success"}
        else:
            self.result = {"result": 49, "description": "invalidCredentials"}
        return self.accept_bind

    def search(self, search_base, search_filter, search_scope=None, attributes=None) -> bool:
        self.events.append("search")
        self.searches.append({
            "base": search_base,
            "filter": search_filter,
            "scope": search_scope,
            "attributes": attributes,
        })
        if self.search_error is not None:
            raise self.search_error
        self.response = list(self.search_response)
        return any(item.get("type") == "searchResEntry" for item in self.response)

    def unbind(self) -> bool:
        self.unbind_count += 1
        self.events.append("unbind")
        if self.unbind_error is not None:
            raise self.unbind_error
        return True


class FakeConnectionFactory:
    """Connection factory that hands out FakeLdapConnection objects."""

    def __init__(self, **options: Any) -> None:
        self.options = options
        self.created: List[FakeLdapConnection] = []

    def __call__(self, config: AuthenticatorConfig) -> FakeLdapConnection:
        conn = FakeLdapConnection(config, **self.options)
        self.created.append(conn)
        return conn

    @property
    def last(self) -> FakeLdapConnection:
        return self.created[-1]


class MockLdapFactory:
    """
    Connection factory backed by ldap3's MOCK_SYNC strategy.

    Real ldap3 request encoding, served from an in-memory directory.
    """

    def __init__(self, entries: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.entries = entries or {}
        self.created: List[Connection] = []

    def __call__(self, config: AuthenticatorConfig) -> Connection:
        server = Server(config.server_url, get_info=NO_SERVER_INFO)
        conn = Connection(
            server,
            client_strategy=MOCK_SYNC,
            auto_bind=AUTO_BIND_NONE,
            authentication=ANONYMOUS,
            raise_exceptions=True,
        )
        for dn, attributes in self.entries.items():
            conn.strategy.add_entry(dn, attributes)
        self.created.append(conn)
        return conn


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def make_entry(dn: str, member_of: Optional[List[str]] = None) -> Dict[str, Any]:
    """Helper to build an ldap3 searchResEntry response item."""
    attributes: Dict[str, Any] = {}
    if member_of is not None:
        attributes["memberOf"] = member_of
    return {"type": "searchResEntry", "dn": dn, "attributes": attributes}


def make_reference(uri: str) -> Dict[str, Any]:
    """Helper to build an ldap3 searchResRef response item."""
    return {"type": "searchResRef", "uri": [uri]}


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================


@pytest.fixture
def simple_config() -> AuthenticatorConfig:
    """Plain-text SIMPLE bind configuration."""
    return AuthenticatorConfig(
        server_url=SERVER_URL,
        base_dn=BASE_DN,
        mechanism=AuthMechanism.SIMPLE,
    )


@pytest.fixture
def tls_config(simple_config: AuthenticatorConfig) -> AuthenticatorConfig:
    """SIMPLE bind after StartTLS."""
    return simple_config.with_tls()


@pytest.fixture
def mathematicians_entry() -> Dict[str, Any]:
    """Directory entry that belongs to the mathematicians group."""
    return make_entry(
        "uid=gauss,dc=example,dc=com",
        member_of=[
            "CN=mathematicians,dc=example,dc=com",
            "CN=scientists,OU=groups,dc=example,dc=com",
        ],
    )


# =============================================================================
# AUTHENTICATOR FIXTURES
# =============================================================================


@pytest.fixture
def fake_factory() -> FakeConnectionFactory:
    """Factory whose connections accept every bind."""
    return FakeConnectionFactory()


@pytest.fixture
def authenticator(
    simple_config: AuthenticatorConfig,
    fake_factory: FakeConnectionFactory,
) -> DirectoryAuthenticator:
    """Authenticator wired to the fake factory."""
    return DirectoryAuthenticator(config=simple_config, connection_factory=fake_factory)


# =============================================================================
# PYTEST MARKERS
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests requiring a reachable directory server"
    )
