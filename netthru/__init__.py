"""
netthru - measure raw TCP bulk-transfer throughput between two hosts.

One host runs a server that streams filler data on request; the other runs
a client that asks for a timed stream, measures how fast it arrives and
reports the result. The whole session is a single directive line followed
by unframed bytes, ended by the server closing the connection.
"""

from .errors import NetthruError, SetupError, ProtocolError, TransferError, TransferTimeout
from .transfer import send_all, recv_with_timeout, RecvResult, RecvStatus, INACTIVITY_TIMEOUT
from .protocol import TestParameters, encode_directive, decode_directive, DEFAULT_PORT
from .meter import ThroughputMeter, RateSample, SessionStats
from .states import ServerState, ClientState, SessionStateMachine
from .server import ThroughputServer
from .client import ThroughputClient

__version__ = "1.0.0"

__all__ = [
    "NetthruError",
    "SetupError",
    "ProtocolError",
    "TransferError",
    "TransferTimeout",
    "send_all",
    "recv_with_timeout",
    "RecvResult",
    "RecvStatus",
    "INACTIVITY_TIMEOUT",
    "TestParameters",
    "encode_directive",
    "decode_directive",
    "DEFAULT_PORT",
    "ThroughputMeter",
    "RateSample",
    "SessionStats",
    "ServerState",
    "ClientState",
    "SessionStateMachine",
    "ThroughputServer",
    "ThroughputClient",
]
