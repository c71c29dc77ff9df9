"""
Throughput Server - passive end of a measurement.

The server serves exactly one connection at a time. Listening with a
backlog of 0 keeps a second client from being queued behind the first,
because overlapping sessions would share the link and corrupt both
measurements.

Each session:
1. Accept a connection
2. Read and decode the directive
3. Reject it if duration or chunk size is not positive
4. Build one filler buffer of bytes_per_send bytes
5. Send it repeatedly until the requested duration has elapsed
6. Close the connection; the close is the client's end-of-data signal

A failure anywhere in a session is logged and ends only that session.
"""

import logging
import socket
import time
from typing import Callable, Optional, Tuple

from .errors import NetthruError, SetupError, TransferError
from .meter import RateSample, ThroughputMeter
from .protocol import DEFAULT_PORT, TestParameters, decode_directive, read_directive
from .states import ServerState, SessionStateMachine, StateTransition
from .transfer import INACTIVITY_TIMEOUT, send_all


# Printable ASCII run the filler cycles through
_FILLER_PATTERN = bytes(range(ord("A"), ord("~") + 1))


def make_filler(size: int) -> bytes:
    """Filler of `size` bytes cycling through 'A'..'~'. Only the size matters."""
    if size <= 0:
        raise ValueError(f"Invalid filler size: {size}")
    repeats = size // len(_FILLER_PATTERN) + 1
    return (_FILLER_PATTERN * repeats)[:size]


def stream_filler(sock: socket.socket, params: TestParameters,
                  meter: ThroughputMeter,
                  clock: Callable[[], float] = time.time) -> int:
    """
    Send filler chunks until params.duration_secs have elapsed.

    The duration is checked after each chunk completes, so at least one
    chunk is always sent and the last one may run past the deadline.

    Returns:
        Number of chunks sent

    Raises:
        TransferError: If a send fails; bytes_transferred covers the
            whole session, not just the failed chunk
    """
    filler = make_filler(params.bytes_per_send)
    meter.start(clock())
    sends = 0

    while True:
        try:
            send_all(sock, filler)
        except TransferError as exc:
            exc.bytes_transferred += meter.stats.total_bytes
            raise

        now = clock()
        meter.record(len(filler), now)
        sends += 1
        if meter.stats.elapsed(now) >= params.duration_secs:
            return sends


class ThroughputServer:
    """
    Accept loop for throughput sessions.

    Usage:
        with ThroughputServer(port=54811) as server:
            server.serve_forever()
    """

    def __init__(self, host: str = "", port: int = DEFAULT_PORT,
                 inactivity_timeout: float = INACTIVITY_TIMEOUT,
                 logger: Optional[logging.Logger] = None,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            host: Address to bind ("" for all interfaces)
            port: Port to listen on (0 for an ephemeral port)
            inactivity_timeout: Seconds a session may stall before it is dropped
            logger: Sink for session log lines
            clock: Source of wall-clock seconds
        """
        self.host = host
        self.port = port
        self.inactivity_timeout = inactivity_timeout
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._sock: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None

        self.state_machine = SessionStateMachine.for_server()
        self.state_machine.on_transition(self._log_transition)

    @property
    def state(self) -> ServerState:
        return self.state_machine.state

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port)."""
        if self._address is None:
            raise RuntimeError("Server is not bound")
        return self._address

    def bind(self):
        """
        Create the listening socket.

        Raises:
            SetupError: If the socket cannot be bound or put in listen mode
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(0)
        except OSError as exc:
            sock.close()
            raise SetupError(f"Cannot listen on port {self.port}: {exc}") from exc
        self._address = sock.getsockname()[:2]
        self._sock = sock

    def serve_forever(self):
        """Serve sessions one after another until close() is called."""
        if self._sock is None:
            self.bind()
        while True:
            sock = self._sock
            if sock is None:
                return
            self._serve(sock)

    def serve_once(self) -> Optional[RateSample]:
        """
        Accept and fully serve one connection.

        Returns:
            The session's overall send rate, or None if no session completed
        """
        sock = self._sock
        if sock is None:
            raise RuntimeError("Server is not bound")
        return self._serve(sock)

    def _serve(self, sock: socket.socket) -> Optional[RateSample]:
        if self.state.in_session():
            raise RuntimeError("A session is already in progress")
        self.logger.info(f"Waiting to accept a connection on port {self.address[1]}")
        try:
            conn, peer = sock.accept()
        except OSError as exc:
            if self._sock is not None:
                self.logger.error(f"Accept failed: {exc}")
            return None

        self.state_machine.transition("accept")
        self.logger.info(f"Accepted connection from {peer[0]}:{peer[1]}")
        result = self.handle_connection(conn)
        self.logger.info("Client connection closed.")
        return result

    def handle_connection(self, conn: socket.socket) -> Optional[RateSample]:
        """
        Run one session on an accepted connection, then close it.

        Called by serve_once() after the accept transition.

        Never raises for session failures; they are logged instead.
        """
        meter = ThroughputMeter(clock=self._clock, on_sample=self._log_sample)
        sends = 0
        try:
            self.state_machine.transition("read_directive")
            line = read_directive(conn, timeout=self.inactivity_timeout)
            params = decode_directive(line)
            self.logger.info(
                f"Client says send for {params.duration_secs} secs; "
                f"{params.bytes_per_send} bytes per send; msg: {params.message}"
            )

            try:
                params.validate()
            except NetthruError as exc:
                self.state_machine.transition("reject")
                self.logger.error(f"Rejected directive {line!r}: {exc}")
                return None

            self.state_machine.transition("directive_ok")
            conn.settimeout(self.inactivity_timeout)
            sends = stream_filler(conn, params, meter, self._clock)
            self.state_machine.transition("duration_elapsed")

        except TransferError as exc:
            self.state_machine.transition("error")
            elapsed = meter.stats.elapsed(self._clock())
            self.logger.error(
                f"Session aborted after {exc.bytes_transferred} bytes "
                f"in {elapsed:.3f} secs: {exc}"
            )
            return None
        except NetthruError as exc:
            self.state_machine.transition("error")
            self.logger.error(f"Session aborted: {exc}")
            return None
        finally:
            conn.close()
            if self.state is not ServerState.CLOSE:
                self.state_machine.transition("error")
            self.state_machine.transition("closed")

        total = meter.finish(self._clock())
        self.logger.info(
            f"Sent {total.nbytes} bytes in {total.seconds:.3f} secs for "
            f"{total.mb_per_sec:.3f} MB/sec ({total.mbit_per_sec:.3f} Mb/sec); "
            f"{sends} sends"
        )
        return total

    def close(self):
        """Close the listening socket; serve_forever returns after the current session."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            # Wakes a thread blocked in accept()
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

    def _log_transition(self, record: StateTransition):
        self.logger.debug(f"Server {record}")

    def _log_sample(self, sample: RateSample):
        self.logger.debug(f"Sending {sample}")

    def __enter__(self):
        if self._sock is None:
            self.bind()
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        host, port = self._address or (self.host or "0.0.0.0", self.port)
        where = f"{host}:{port}"
        return f"ThroughputServer({where}, {self.state.name})"
