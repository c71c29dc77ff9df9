"""
Throughput Client - active end of a measurement.

A client performs exactly one measurement:
1. Connect to the server
2. Send the directive describing duration and chunk size
3. Read until the server closes the connection, reporting the rate
   once per second
4. Report the overall average and return

There is no retry and no reconnect. A failed connect, send, receive or an
inactivity timeout ends the measurement with an exception.
"""

import logging
import socket
import time
from typing import Callable, Optional

from .errors import SetupError, TransferError, TransferTimeout
from .meter import RateSample, ThroughputMeter
from .protocol import TestParameters, encode_directive
from .states import ClientState, SessionStateMachine, StateTransition
from .transfer import INACTIVITY_TIMEOUT, recv_with_timeout, send_all


class ThroughputClient:
    """
    One-shot throughput measurement against a server.

    Usage:
        params = TestParameters(duration_secs=10, bytes_per_send=12288,
                                remote_ip="192.168.1.20")
        final = ThroughputClient(params).run()
        print(final.mb_per_sec)
    """

    def __init__(self, params: TestParameters,
                 inactivity_timeout: float = INACTIVITY_TIMEOUT,
                 connect_timeout: Optional[float] = None,
                 logger: Optional[logging.Logger] = None,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            params: What to ask the server for, and where it is
            inactivity_timeout: Seconds without data before giving up
            connect_timeout: Seconds to wait for the connection (None blocks)
            logger: Sink for log lines
            clock: Source of wall-clock seconds
        """
        self.params = params
        self.inactivity_timeout = inactivity_timeout
        self.connect_timeout = connect_timeout
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock

        self.meter = ThroughputMeter(clock=clock, on_sample=self._log_sample)
        self.state_machine = SessionStateMachine.for_client()
        self.state_machine.on_transition(self._log_transition)

    @property
    def state(self) -> ClientState:
        return self.state_machine.state

    def run(self) -> RateSample:
        """
        Perform the measurement.

        Returns:
            Overall average: bytes received over seconds from connect to EOF

        Raises:
            ProtocolError: If the parameters cannot be encoded
            SetupError: If the connection cannot be made
            TransferTimeout: If the server goes silent without closing
            TransferError: If sending the directive or receiving fails
        """
        if self.state.is_terminal():
            raise RuntimeError("A client performs only one measurement")
        if self.state is not ClientState.IDLE:
            raise RuntimeError("Measurement already in progress")

        params = self.params
        self.logger.info(
            f"Client parameters: remoteip={params.remote_ip} secs={params.duration_secs} "
            f"bytesPerSend={params.bytes_per_send} msg={params.message}"
        )
        directive = encode_directive(params)

        self.state_machine.transition("connect")
        self.logger.info(f"Connecting to {params.remote_ip} port {params.port}")
        try:
            sock = socket.create_connection(
                (params.remote_ip, params.port), timeout=self.connect_timeout
            )
        except OSError as exc:
            self.state_machine.transition("error")
            raise SetupError(
                f"Connect to {params.remote_ip} port {params.port} failed: {exc}"
            ) from exc

        with sock:
            self.meter.start(self._clock())
            self.state_machine.transition("connected")
            self.logger.info(f"Connected to {params.remote_ip} port {params.port}")
            try:
                return self._measure(sock, directive)
            except TransferError as exc:
                self.state_machine.transition("error")
                exc.bytes_transferred += self.meter.stats.total_bytes
                self._log_failure(exc)
                raise

    def _measure(self, sock: socket.socket, directive: bytes) -> RateSample:
        send_all(sock, directive)
        self.state_machine.transition("directive_sent")

        buf = bytearray(self.params.bytes_per_send)
        while True:
            result = recv_with_timeout(sock, buf, self.inactivity_timeout)
            now = self._clock()
            self.meter.record(result.count, now)
            if result.eof:
                break

        final = self.meter.finish(now)
        self.state_machine.transition("eof")
        self.logger.info(
            f"{final.mb_per_sec:8.3f} MB/sec ({final.mbit_per_sec:.3f} Mb/sec) "
            f"final average; {final.nbytes} bytes in {final.seconds:.3f} secs; "
            f"{self.meter.stats.calls} receive calls"
        )
        return final

    def _log_failure(self, exc: TransferError):
        elapsed = self.meter.stats.elapsed(self._clock())
        if isinstance(exc, TransferTimeout):
            self.logger.error(
                f"Timeout: no data for {exc.timeout:.1f} secs; "
                f"{exc.bytes_transferred} bytes received in {elapsed:.3f} secs"
            )
        else:
            self.logger.error(
                f"Unexpected error in connection to server after "
                f"{exc.bytes_transferred} bytes in {elapsed:.3f} secs: {exc}"
            )

    def _log_transition(self, record: StateTransition):
        self.logger.debug(f"Client {record}")

    def _log_sample(self, sample: RateSample):
        self.logger.info(str(sample))
