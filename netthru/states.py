"""
Session State Machines - lifecycle of a measurement on each end.

Server (one session at a time, forever):

    LISTEN --accept--> ACCEPTED --read_directive--> AWAIT_DIRECTIVE
    AWAIT_DIRECTIVE --directive_ok--> STREAMING --duration_elapsed--> CLOSE
    AWAIT_DIRECTIVE --reject--> CLOSE
    any active state --error--> CLOSE
    CLOSE --closed--> LISTEN

Client (exactly once):

    IDLE --connect--> CONNECTING --connected--> SEND_DIRECTIVE
    SEND_DIRECTIVE --directive_sent--> RECEIVING --eof--> DONE
    any active state --error--> FAILED

The server never leaves its loop because of one bad session; every path
through a session ends in CLOSE and then LISTEN. The client has no path
back from DONE or FAILED.
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple


class ServerState(Enum):
    """States of the server's session loop."""

    # Waiting in accept()
    LISTEN = auto()

    # Connection accepted, nothing read yet
    ACCEPTED = auto()

    # Reading the directive line
    AWAIT_DIRECTIVE = auto()

    # Sending filler until the requested duration has elapsed
    STREAMING = auto()

    # Closing the connection and releasing the session's buffer
    CLOSE = auto()

    def in_session(self) -> bool:
        """Check if a connection is currently held."""
        return self != ServerState.LISTEN


class ClientState(Enum):
    """States of a client's single measurement."""

    IDLE = auto()
    CONNECTING = auto()
    SEND_DIRECTIVE = auto()
    RECEIVING = auto()
    DONE = auto()
    FAILED = auto()

    def is_terminal(self) -> bool:
        """Check if the measurement is over, successfully or not."""
        return self in (ClientState.DONE, ClientState.FAILED)


SERVER_TRANSITIONS: Dict[Tuple[Enum, str], Enum] = {
    (ServerState.LISTEN, "accept"): ServerState.ACCEPTED,
    (ServerState.ACCEPTED, "read_directive"): ServerState.AWAIT_DIRECTIVE,
    (ServerState.ACCEPTED, "error"): ServerState.CLOSE,
    (ServerState.AWAIT_DIRECTIVE, "directive_ok"): ServerState.STREAMING,
    (ServerState.AWAIT_DIRECTIVE, "reject"): ServerState.CLOSE,
    (ServerState.AWAIT_DIRECTIVE, "error"): ServerState.CLOSE,
    (ServerState.STREAMING, "duration_elapsed"): ServerState.CLOSE,
    (ServerState.STREAMING, "error"): ServerState.CLOSE,
    (ServerState.CLOSE, "closed"): ServerState.LISTEN,
}

CLIENT_TRANSITIONS: Dict[Tuple[Enum, str], Enum] = {
    (ClientState.IDLE, "connect"): ClientState.CONNECTING,
    (ClientState.CONNECTING, "connected"): ClientState.SEND_DIRECTIVE,
    (ClientState.CONNECTING, "error"): ClientState.FAILED,
    (ClientState.SEND_DIRECTIVE, "directive_sent"): ClientState.RECEIVING,
    (ClientState.SEND_DIRECTIVE, "error"): ClientState.FAILED,
    (ClientState.RECEIVING, "eof"): ClientState.DONE,
    (ClientState.RECEIVING, "error"): ClientState.FAILED,
}


@dataclass
class StateTransition:
    """A transition that actually happened."""
    from_state: Enum
    event: str
    to_state: Enum

    def __str__(self) -> str:
        return f"{self.from_state.name} --[{self.event}]--> {self.to_state.name}"


class SessionStateMachine:
    """
    Table-driven state machine.

    Events with no entry for the current state are rejected and leave the
    state unchanged.
    """

    def __init__(self, transitions: Dict[Tuple[Enum, str], Enum], initial_state: Enum):
        self.state = initial_state
        self._transitions = transitions
        self._transition_callbacks: List[Callable[[StateTransition], None]] = []
        self.history: List[StateTransition] = []

    @classmethod
    def for_server(cls) -> "SessionStateMachine":
        return cls(SERVER_TRANSITIONS, ServerState.LISTEN)

    @classmethod
    def for_client(cls) -> "SessionStateMachine":
        return cls(CLIENT_TRANSITIONS, ClientState.IDLE)

    def on_transition(self, callback: Callable[[StateTransition], None]):
        """Register a callback for state transitions."""
        self._transition_callbacks.append(callback)

    def transition(self, event: str) -> bool:
        """
        Apply an event.

        Returns:
            True if the event was valid in the current state
        """
        to_state = self._transitions.get((self.state, event))
        if to_state is None:
            return False

        record = StateTransition(self.state, event, to_state)
        self.state = to_state
        self.history.append(record)
        for callback in self._transition_callbacks:
            callback(record)
        return True
