"""
Control Protocol - the startup directive a client sends to a server.

Right after connecting, the client sends exactly one ASCII line:

    send|<duration_secs>|<bytes_per_send>|<message>|\n

Fields are positional. The first names the only supported command and is
ignored on receipt. Nothing is sent back: the server either starts
streaming or drops the connection.

Parsing is deliberately lenient. A numeric field that is missing or not a
number decodes as 0 instead of raising, and a missing message decodes as
an empty string. Zero values are then rejected by TestParameters.validate()
before any buffer is allocated, which aborts only that one session.
"""

import logging
import re
import socket
from dataclasses import dataclass
from typing import Optional

from .errors import ProtocolError


logger = logging.getLogger(__name__)

DEFAULT_PORT = 54811

DIRECTIVE_TAG = "send"
DELIMITER = "|"
TERMINATOR = b"\n"

# Largest directive line the server will accumulate, terminator included
MAX_DIRECTIVE_BYTES = 255

# Largest filler chunk a server will allocate for one session
MAX_BYTES_PER_SEND = 64 * 1024 * 1024

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class TestParameters:
    """
    Parameters of one throughput measurement.

    The client owns the original. The server's copy is decoded from the
    directive and is only meaningful for that single session, so it never
    carries an address.
    """
    __test__ = False  # not a pytest test class

    duration_secs: int
    bytes_per_send: int
    message: str = ""
    remote_ip: str = ""
    port: int = DEFAULT_PORT

    def validate(self):
        """Raise ProtocolError unless duration and chunk size are in range."""
        if self.duration_secs <= 0:
            raise ProtocolError(f"Invalid duration: {self.duration_secs} secs")
        if not 0 < self.bytes_per_send <= MAX_BYTES_PER_SEND:
            raise ProtocolError(
                f"Invalid bytes per send: {self.bytes_per_send} "
                f"(limit {MAX_BYTES_PER_SEND})"
            )


def encode_directive(params: TestParameters) -> bytes:
    """
    Build the directive line for params.

    Raises:
        ProtocolError: If the message would break the line format or the
            line exceeds MAX_DIRECTIVE_BYTES
    """
    if DELIMITER in params.message or "\n" in params.message:
        raise ProtocolError(f"Message may not contain {DELIMITER!r} or a newline")

    line = DELIMITER.join([
        DIRECTIVE_TAG,
        str(params.duration_secs),
        str(params.bytes_per_send),
        params.message,
        "",
    ])

    try:
        data = line.encode("ascii") + TERMINATOR
    except UnicodeEncodeError as exc:
        raise ProtocolError(f"Message must be ASCII: {params.message!r}") from exc

    if len(data) > MAX_DIRECTIVE_BYTES:
        raise ProtocolError(
            f"Directive is {len(data)} bytes, limit is {MAX_DIRECTIVE_BYTES}"
        )
    return data


def lenient_int(text: Optional[str]) -> int:
    """
    Parse a leading integer, degrading to 0 instead of raising.

    Leading whitespace and a sign are accepted and trailing junk is
    ignored, so "12abc" is 12 while "abc", "" and None are all 0.
    """
    if not text:
        return 0
    match = _LEADING_INT.match(text)
    if match is None:
        return 0
    return int(match.group(1))


def decode_directive(line: bytes) -> TestParameters:
    """
    Decode a directive line into TestParameters.

    Anything from the first newline on is discarded. Missing or
    non-numeric fields degrade to 0 (see lenient_int); the result is not
    validated here.
    """
    text = line.split(TERMINATOR, 1)[0].decode("ascii", errors="replace")
    fields = text.split(DELIMITER)

    def field_at(index: int) -> Optional[str]:
        return fields[index] if index < len(fields) else None

    # fields[0] is the command tag, which is always "send"
    return TestParameters(
        duration_secs=lenient_int(field_at(1)),
        bytes_per_send=lenient_int(field_at(2)),
        message=field_at(3) or "",
    )


class DirectiveAccumulator:
    """
    Bounded buffer for collecting the directive line.

    Grows until a newline arrives or the capacity is reached. Bytes that
    would overflow the capacity are refused, never stored.

    Visualization:
    [  received bytes ... \\n  |     free     ]
                               ^              ^
                            len(self)      capacity
    """

    def __init__(self, capacity: int = MAX_DIRECTIVE_BYTES):
        if capacity <= 0:
            raise ValueError(f"Invalid capacity: {capacity}")
        self.capacity = capacity
        self._buffer = bytearray()

    @property
    def remaining(self) -> int:
        """Bytes that can still be accepted."""
        return self.capacity - len(self._buffer)

    @property
    def complete(self) -> bool:
        """True once a newline has been received."""
        return TERMINATOR in self._buffer

    @property
    def full(self) -> bool:
        """True once the capacity is used up."""
        return self.remaining == 0

    @property
    def done(self) -> bool:
        """Nothing more should be read."""
        return self.complete or self.full

    def feed(self, data: bytes) -> int:
        """
        Append data, up to the remaining capacity.

        Returns the number of bytes accepted.
        """
        accepted = data[:self.remaining]
        self._buffer.extend(accepted)
        return len(accepted)

    def getvalue(self) -> bytes:
        """Everything accumulated so far."""
        return bytes(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)


def read_directive(sock: socket.socket, timeout: Optional[float] = None,
                   capacity: int = MAX_DIRECTIVE_BYTES) -> bytes:
    """
    Read the directive line from a freshly accepted connection.

    Stops at a newline, a full accumulator, end-of-stream or a read
    error; whatever arrived is returned for decoding.

    Raises:
        ProtocolError: If the client sends nothing within timeout seconds
    """
    acc = DirectiveAccumulator(capacity)
    sock.settimeout(timeout)

    while not acc.done:
        try:
            chunk = sock.recv(acc.remaining)
        except socket.timeout as exc:
            raise ProtocolError(
                f"No directive within {timeout}s ({len(acc)} bytes received)"
            ) from exc
        except OSError as exc:
            logger.warning(f"Error reading directive after {len(acc)} bytes: {exc}")
            break

        if not chunk:
            logger.warning(f"Unexpected end of stream after {len(acc)} directive bytes")
            break
        acc.feed(chunk)

    if acc.full and not acc.complete:
        logger.warning(f"Directive not terminated within {acc.capacity} bytes")

    return acc.getvalue()
