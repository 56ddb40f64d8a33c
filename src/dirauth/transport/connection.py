"""
DirAuth Directory Connection

LDAP session handle built on ldap3, driven by a lifecycle state machine.

Lifecycle:
    INITIAL --open--> OPEN --start_tls--> SECURED --bind--> BOUND
                        \\-------------------bind---------/
    any state --close--> CLOSED

Invariants:
- A connection that asked for TLS is never BOUND unless SECURED
- close() releases the underlying socket exactly once

Error translation:
- Socket, StartTLS and certificate failures -> TransportError
- Rejected credentials -> BindRejected
- Any other ldap3 failure -> ProtocolError
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import attrs
import structlog
from ldap3 import (
    ANONYMOUS,
    AUTO_BIND_NONE,
    DIGEST_MD5,
    KERBEROS,
    NONE as NO_SERVER_INFO,
    SASL,
    SIMPLE,
    SUBTREE,
    Connection,
    Server,
)
from ldap3.core.exceptions import (
    LDAPBindError,
    LDAPCommunicationError,
    LDAPException,
    LDAPInvalidCredentialsResult,
    LDAPOperationResult,
    LDAPSSLConfigurationError,
    LDAPStartTLSError,
)
from returns.result import Failure

from dirauth.core.exceptions import (
    BindRejected,
    ProtocolError,
    StateError,
    TransportError,
)
from dirauth.core.state_machine import StateMachineBase, TransitionEntry
from dirauth.core.types import AuthMechanism, AuthenticatorConfig, SearchEntry
from dirauth.transport.tls import build_tls, verify_peer

logger = structlog.get_logger()

# Builds an unopened ldap3-compatible Connection for a configuration
ConnectionFactory = Callable[[AuthenticatorConfig], Any]


# =============================================================================
# ERROR TRANSLATION
# =============================================================================


@contextmanager
def translate_ldap_errors(operation: str) -> Iterator[None]:
    """
    Re-raise ldap3 exceptions as DirAuth errors.

    Args:
        operation: Short name of the directory operation, used in messages
    """
    try:
        yield
    except LDAPInvalidCredentialsResult as e:
        raise BindRejected(f"{operation} rejected: {e}", code=e.result) from e
    except LDAPBindError as e:
        # rebind() reports a connection dropped mid-bind as LDAPBindError
        if isinstance(e.__context__, LDAPCommunicationError):
            raise TransportError(f"{operation} failed: {e}") from e
        raise BindRejected(f"{operation} rejected: {e}", code=None) from e
    except (LDAPCommunicationError, LDAPStartTLSError, LDAPSSLConfigurationError) as e:
        raise TransportError(f"{operation} failed: {e}") from e
    except LDAPOperationResult as e:
        raise ProtocolError(f"{operation} failed: {e}", code=e.result) from e
    except LDAPException as e:
        raise ProtocolError(f"{operation} failed: {e}") from e
    except OSError as e:
        raise TransportError(f"{operation} failed: {e}") from e


def create_ldap_connection(config: AuthenticatorConfig) -> Connection:
    """
    Default connection factory.

    The connection is created unopened and anonymous; DirectoryConnection
    opens it, optionally secures it and then binds.
    """
    server = Server(
        config.server_url,
        get_info=NO_SERVER_INFO,
        tls=build_tls(config),
        connect_timeout=config.connect_timeout,
    )
    return Connection(
        server,
        auto_bind=AUTO_BIND_NONE,
        authentication=ANONYMOUS,
        auto_referrals=config.follow_referrals,
        raise_exceptions=True,
        receive_timeout=config.receive_timeout,
    )


def bind_arguments(
    mechanism: AuthMechanism,
    principal: str,
    secret: Union[str, bytes],
) -> Dict[str, Any]:
    """
    Map a mechanism, principal and secret to ldap3 rebind() arguments.

    NONE sends an anonymous bind: no name and no password, whatever the
    principal. GSSAPI takes its credentials from the Kerberos ticket cache;
    the principal is only carried for logging and the secret is not sent.
    """
    if mechanism is AuthMechanism.NONE:
        return {"user": None, "password": None, "authentication": ANONYMOUS}
    if mechanism is AuthMechanism.SIMPLE:
        return {"user": principal, "password": secret, "authentication": SIMPLE}
    if mechanism is AuthMechanism.DIGEST_MD5:
        return {
            "user": principal,
            "password": secret,
            "authentication": SASL,
            "sasl_mechanism": DIGEST_MD5,
            "sasl_credentials": (None, principal, secret, None),
        }
    return {"user": principal, "authentication": SASL, "sasl_mechanism": KERBEROS}


# =============================================================================
# LIFECYCLE STATE MACHINE
# =============================================================================


class ConnectionState(Enum):
    """Directory connection lifecycle states."""

    INITIAL = auto()
    OPEN = auto()
    SECURED = auto()
    BOUND = auto()
    CLOSED = auto()


@attrs.define
class ConnectionContext:
    """Mutable lifecycle context for one connection."""

    server_url: str = ""
    tls_requested: bool = False
    secured: bool = False
    principal: str = ""
    mechanism: str = ""


@attrs.define(frozen=True, slots=True)
class Opened:
    """Event: transport connection established."""


@attrs.define(frozen=True, slots=True)
class Secured:
    """Event: StartTLS negotiated and peer accepted."""

    policy: str


@attrs.define(frozen=True, slots=True)
class Bound:
    """Event: bind accepted by the server."""

    principal: str
    mechanism: str


@attrs.define(frozen=True, slots=True)
class Closed:
    """Event: connection released."""


def _tls_before_bind(state: ConnectionState, ctx: ConnectionContext) -> bool:
    return state is not ConnectionState.BOUND or not ctx.tls_requested or ctx.secured


class ConnectionStateMachine(
    StateMachineBase[ConnectionState, Any, ConnectionContext]
):
    """
    State machine for a directory connection.

    States:
    - INITIAL: Nothing on the wire yet
    - OPEN: TCP (or ldaps://) connection established
    - SECURED: StartTLS negotiated and server identity accepted
    - BOUND: Bind accepted, ready for searches
    - CLOSED: Released, terminal
    """

    @classmethod
    def for_config(cls, config: AuthenticatorConfig) -> ConnectionStateMachine:
        """Create a machine in INITIAL state with the lifecycle invariants registered."""
        machine = cls(
            _state=ConnectionState.INITIAL,
            _context=ConnectionContext(
                server_url=config.server_url,
                tls_requested=config.use_tls,
            ),
        )
        machine.add_invariant("tls_before_bind", _tls_before_bind)
        return machine

    def transition_table(
        self,
    ) -> Dict[Tuple[ConnectionState, type], TransitionEntry]:
        return {
            (ConnectionState.INITIAL, Opened): (ConnectionState.OPEN, self._keep),
            (ConnectionState.OPEN, Secured): (ConnectionState.SECURED, self._handle_secured),
            (ConnectionState.OPEN, Bound): (ConnectionState.BOUND, self._handle_bound),
            (ConnectionState.SECURED, Bound): (ConnectionState.BOUND, self._handle_bound),
            (ConnectionState.INITIAL, Closed): (ConnectionState.CLOSED, self._keep),
            (ConnectionState.OPEN, Closed): (ConnectionState.CLOSED, self._keep),
            (ConnectionState.SECURED, Closed): (ConnectionState.CLOSED, self._keep),
            (ConnectionState.BOUND, Closed): (ConnectionState.CLOSED, self._keep),
        }

    @staticmethod
    def _keep(event: Any, ctx: ConnectionContext) -> ConnectionContext:
        return ctx

    @staticmethod
    def _handle_secured(event: Secured, ctx: ConnectionContext) -> ConnectionContext:
        return attrs.evolve(ctx, secured=True)

    @staticmethod
    def _handle_bound(event: Bound, ctx: ConnectionContext) -> ConnectionContext:
        return attrs.evolve(ctx, principal=event.principal, mechanism=event.mechanism)


# =============================================================================
# DIRECTORY CONNECTION
# =============================================================================


@attrs.define
class DirectoryConnection:
    """
    An opened, authenticated directory session.

    Created by DirectoryAuthenticator.connect_and_bind and consumed by
    searches. Always release it, preferably with ``with``:

        with authenticator.connect_and_bind("jdoe", secret) as conn:
            groups = authenticator.list_groups(conn, "jdoe")

    Not thread-safe; use one connection per thread.
    """

    config: AuthenticatorConfig
    _ldap: Any = attrs.field(repr=False)
    _state_machine: ConnectionStateMachine = attrs.field(init=False, repr=False)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def __attrs_post_init__(self) -> None:
        self._state_machine = ConnectionStateMachine.for_config(self.config)

    @classmethod
    def create(
        cls,
        config: AuthenticatorConfig,
        factory: ConnectionFactory = create_ldap_connection,
    ) -> DirectoryConnection:
        """Create an unopened connection using a connection factory."""
        with translate_ldap_errors("connection setup"):
            return cls(config=config, ldap=factory(config))

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state_machine.state

    @property
    def is_bound(self) -> bool:
        return self.state is ConnectionState.BOUND

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    @property
    def principal(self) -> str:
        """Identity the connection is bound as ("" until bound, and for anonymous binds)."""
        return self._state_machine.context.principal

    @property
    def ldap(self) -> Any:
        """Underlying ldap3 Connection."""
        return self._ldap

    def get_trace(self) -> List[Dict[str, Any]]:
        """Lifecycle transitions so far."""
        return [t.to_dict() for t in self._state_machine.get_trace()]

    def _advance(self, event: Any) -> None:
        result = self._state_machine.process_event(event)
        if isinstance(result, Failure):
            raise StateError(result.failure())

    def _require(self, *states: ConnectionState) -> None:
        if self.state not in states:
            raise StateError(
                f"Operation not allowed in state {self.state.name}; "
                f"expected one of {[s.name for s in states]}"
            )

    def open(self) -> None:
        """Establish the transport connection."""
        self._require(ConnectionState.INITIAL)
        with translate_ldap_errors("connect"):
            self._ldap.open()
        self._advance(Opened())
        self._logger.debug("directory_connection_opened", server_url=self.config.server_url)

    def start_tls(self) -> None:
        """
        Upgrade the connection with StartTLS and check the server identity.

        Raises:
            TransportError: Negotiation failed or the peer was rejected
        """
        self._require(ConnectionState.OPEN)
        with translate_ldap_errors("StartTLS"):
            if not self._ldap.start_tls():
                raise TransportError(
                    f"StartTLS refused by {self.config.hostname}: {self._result_description()}"
                )
        verify_peer(self._ldap, self.config)
        self._advance(Secured(policy=self.config.peer_verification.name))
        self._logger.debug(
            "directory_connection_secured",
            server_url=self.config.server_url,
            policy=self.config.peer_verification.name,
        )

    def bind(self, principal: str, secret: Union[str, bytes]) -> None:
        """
        Bind as principal, replacing the anonymous session.

        Raises:
            BindRejected: The server refused the credentials
        """
        self._require(ConnectionState.OPEN, ConnectionState.SECURED)
        if self.config.use_tls and self.state is not ConnectionState.SECURED:
            raise StateError("StartTLS must complete before credentials are sent")
        mechanism = self.config.mechanism
        self._ldap.auto_referrals = self.config.follow_referrals

        with translate_ldap_errors("bind"):
            accepted = self._ldap.rebind(**bind_arguments(mechanism, principal, secret))
        if not accepted:
            result = self._ldap.result or {}
            raise BindRejected(
                f"bind rejected for {principal!r}: {self._result_description()}",
                code=result.get("result"),
            )

        if not self.config.follow_referrals:
            # Referral chasing re-binds with the stored password
            self._ldap.password = None

        bound_as = "" if mechanism is AuthMechanism.NONE else principal
        self._advance(Bound(principal=bound_as, mechanism=mechanism.value))

    def search(
        self,
        search_base: str,
        search_filter: str,
        attributes: Sequence[str],
    ) -> List[SearchEntry]:
        """
        Run a subtree search and return the result entries.

        Referral continuations are skipped; an empty list is returned when
        nothing matches.
        """
        self._require(ConnectionState.BOUND)
        self._logger.debug(
            "directory_search",
            base=search_base,
            filter=search_filter,
            attributes=list(attributes),
        )
        with translate_ldap_errors("search"):
            self._ldap.search(
                search_base,
                search_filter,
                search_scope=SUBTREE,
                attributes=list(attributes),
            )
        response = self._ldap.response or []
        return [
            SearchEntry.from_response(item)
            for item in response
            if item.get("type") == "searchResEntry"
        ]

    def close(self) -> None:
        """
        Release the connection.

        Idempotent. Errors while unbinding are logged and swallowed so they
        never replace the outcome of the operation being cleaned up.
        """
        if self.is_closed:
            return
        try:
            self._ldap.unbind()
        except Exception as e:
            self._logger.debug(
                "directory_connection_close_failed",
                server_url=self.config.server_url,
                error=str(e),
            )
        finally:
            self._ldap.password = None
            self._advance(Closed())
        self._logger.debug("directory_connection_closed", server_url=self.config.server_url)

    def _result_description(self) -> str:
        result = getattr(self._ldap, "result", None) or {}
        return str(result.get("description") or result.get("message") or "no result")

    def __enter__(self) -> DirectoryConnection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
