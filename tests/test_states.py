"""
Tests for the session state machines.
"""

import pytest
from netthru.states import (
    ClientState, ServerState, SessionStateMachine, StateTransition
)


class TestServerStateMachine:
    """Test the server's session loop transitions."""

    def test_initial_state(self):
        sm = SessionStateMachine.for_server()
        assert sm.state == ServerState.LISTEN
        assert not sm.state.in_session()

    def test_full_session(self):
        sm = SessionStateMachine.for_server()
        for event in ("accept", "read_directive", "directive_ok", "duration_elapsed"):
            assert sm.transition(event)
        assert sm.state == ServerState.CLOSE
        assert sm.transition("closed")
        assert sm.state == ServerState.LISTEN

    def test_rejected_directive_returns_to_listen(self):
        sm = SessionStateMachine.for_server()
        sm.transition("accept")
        sm.transition("read_directive")
        assert sm.transition("reject")
        assert sm.transition("closed")
        assert sm.state == ServerState.LISTEN

    @pytest.mark.parametrize("events", [
        ["accept"],
        ["accept", "read_directive"],
        ["accept", "read_directive", "directive_ok"],
    ])
    def test_error_from_any_active_state(self, events):
        """Test that an error anywhere in a session leads to CLOSE."""
        sm = SessionStateMachine.for_server()
        for event in events:
            sm.transition(event)
        assert sm.transition("error")
        assert sm.state == ServerState.CLOSE

    def test_invalid_event(self):
        """Test that an invalid event leaves the state alone."""
        sm = SessionStateMachine.for_server()
        assert not sm.transition("directive_ok")
        assert not sm.transition("error")
        assert sm.state == ServerState.LISTEN
        assert sm.history == []


class TestClientStateMachine:
    """Test the client's one-shot transitions."""

    def test_success_path(self):
        sm = SessionStateMachine.for_client()
        assert sm.state == ClientState.IDLE
        for event in ("connect", "connected", "directive_sent", "eof"):
            assert sm.transition(event)
        assert sm.state == ClientState.DONE
        assert sm.state.is_terminal()

    def test_connect_failure(self):
        sm = SessionStateMachine.for_client()
        sm.transition("connect")
        assert sm.transition("error")
        assert sm.state == ClientState.FAILED

    def test_no_way_back(self):
        """Test that a finished client cannot start again."""
        sm = SessionStateMachine.for_client()
        for event in ("connect", "connected", "directive_sent", "eof"):
            sm.transition(event)
        assert not sm.transition("connect")
        assert not sm.transition("error")
        assert sm.state == ClientState.DONE


class TestTransitionCallbacks:
    """Test transition notification."""

    def test_callback_and_history(self):
        seen = []
        sm = SessionStateMachine.for_server()
        sm.on_transition(seen.append)
        sm.transition("accept")
        sm.transition("bogus")

        assert len(seen) == 1
        assert seen[0] == StateTransition(ServerState.LISTEN, "accept", ServerState.ACCEPTED)
        assert sm.history == seen

    def test_str(self):
        record = StateTransition(ServerState.STREAMING, "error", ServerState.CLOSE)
        assert str(record) == "STREAMING --[error]--> CLOSE"
