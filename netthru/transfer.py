"""
Reliable Transfer - full-buffer send and timeout-aware receive.

A single socket send or recv may move fewer bytes than asked for. The bulk
phase needs two stronger guarantees:

send_all:
- Keeps sending from the first unsent byte until the whole buffer is written
- Any failure is total for the caller; there is no partial success

recv_with_timeout:
- Fills the caller's buffer, reading only the bytes still missing
- Returns early with EOF when the peer closes (a zero-length read)
- Raises TransferTimeout when nothing arrives within the inactivity timeout

EOF and timeout must never be confused: EOF is how a measurement ends
normally, a timeout means the peer went silent while still connected.
"""

import logging
import socket
from dataclasses import dataclass
from enum import Enum, auto
from typing import Union

from .errors import TransferError, TransferTimeout


logger = logging.getLogger(__name__)

# Seconds the receiver waits for any data before giving up
INACTIVITY_TIMEOUT = 5.0


class RecvStatus(Enum):
    """How a recv_with_timeout call ended."""

    # The buffer was filled completely
    COMPLETE = auto()

    # The peer closed the connection (possibly after some bytes)
    EOF = auto()


@dataclass
class RecvResult:
    """Outcome of a successful recv_with_timeout call."""
    count: int
    status: RecvStatus

    @property
    def eof(self) -> bool:
        """True if the peer closed the connection."""
        return self.status is RecvStatus.EOF


def send_all(sock: socket.socket, data: Union[bytes, bytearray, memoryview]) -> int:
    """
    Send every byte of data, issuing as many sends as needed.

    Args:
        sock: Connected stream socket
        data: Bytes to send

    Returns:
        Number of bytes sent (always len(data))

    Raises:
        TransferTimeout: If the socket has a timeout and a send stalls past it
        TransferError: If any send fails or the connection is gone
    """
    view = memoryview(data)
    total = len(view)
    sent = 0

    while sent < total:
        try:
            n = sock.send(view[sent:])
        except socket.timeout as exc:
            raise TransferTimeout(
                f"Send stalled after {sent} of {total} bytes",
                bytes_transferred=sent,
                timeout=sock.gettimeout() or 0.0,
            ) from exc
        except OSError as exc:
            raise TransferError(
                f"Send failed after {sent} of {total} bytes: {exc}",
                bytes_transferred=sent,
            ) from exc

        if n == 0:
            raise TransferError(
                f"Connection closed after {sent} of {total} bytes",
                bytes_transferred=sent,
            )
        sent += n

    return sent


def recv_with_timeout(sock: socket.socket,
                      buffer: Union[bytearray, memoryview],
                      timeout: float = INACTIVITY_TIMEOUT) -> RecvResult:
    """
    Read into buffer until it is full or the peer closes.

    Every read waits at most `timeout` seconds for data, so each call gets
    a fresh inactivity budget. Sets the socket's timeout as a side effect.

    Args:
        sock: Connected stream socket
        buffer: Writable buffer; its length is the target byte count
        timeout: Inactivity timeout in seconds

    Returns:
        RecvResult with the byte count and COMPLETE or EOF

    Raises:
        TransferTimeout: If no data arrived within the timeout
        TransferError: On any other read failure
    """
    view = memoryview(buffer)
    target = len(view)
    received = 0

    sock.settimeout(timeout)

    while received < target:
        try:
            n = sock.recv_into(view[received:], target - received)
        except socket.timeout as exc:
            raise TransferTimeout(
                f"No data for {timeout:.1f}s after {received} of {target} bytes",
                bytes_transferred=received,
                timeout=timeout,
            ) from exc
        except OSError as exc:
            raise TransferError(
                f"Receive failed after {received} of {target} bytes: {exc}",
                bytes_transferred=received,
            ) from exc

        if n == 0:
            logger.debug(f"Peer closed after {received} of {target} bytes")
            return RecvResult(received, RecvStatus.EOF)
        received += n

    return RecvResult(received, RecvStatus.COMPLETE)
