"""
Exception taxonomy for throughput sessions.

Failures are scoped to a single session:
- SetupError: bind/listen/connect failed, nothing was measured
- ProtocolError: the startup directive was unusable
- TransferError: a send or receive failed during the bulk phase
- TransferTimeout: the receiver saw no activity for the inactivity timeout

A clean close by the peer is never an error; it is how the bulk phase ends.
"""


class NetthruError(Exception):
    """Base class for all session failures."""


class SetupError(NetthruError):
    """Could not establish the listening or connected socket."""


class ProtocolError(NetthruError):
    """The control directive could not be encoded or was rejected."""


class TransferError(NetthruError):
    """A send or receive failed mid-stream."""

    def __init__(self, message: str, bytes_transferred: int = 0):
        super().__init__(message)
        self.bytes_transferred = bytes_transferred


class TransferTimeout(TransferError, TimeoutError):
    """
    No data arrived before the inactivity timeout expired.

    Distinct from end-of-stream: the peer is still connected but silent.
    """

    def __init__(self, message: str, bytes_transferred: int = 0,
                 timeout: float = 0.0):
        super().__init__(message, bytes_transferred)
        self.timeout = timeout
