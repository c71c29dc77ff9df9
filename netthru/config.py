"""
Run configuration for the netthru command.

Settings holds everything the command line can set. The server takes its
test parameters from each client's directive, so in server mode only the
port, bind address and log file matter.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ProtocolError
from .protocol import DEFAULT_PORT, MAX_BYTES_PER_SEND, TestParameters, encode_directive
from .transfer import INACTIVITY_TIMEOUT


DEFAULT_SECS = 10
DEFAULT_BYTES_PER_SEND = 12288


class Mode(Enum):
    SERVER = "server"
    CLIENT = "client"

    @property
    def default_logfile(self) -> str:
        return f"netthru{self.value}.log"


@dataclass
class Settings:
    """Validated options for one run."""

    mode: Mode
    remote_ip: str = ""
    port: int = DEFAULT_PORT
    secs: int = DEFAULT_SECS
    bytes_per_send: int = DEFAULT_BYTES_PER_SEND
    msg: str = ""
    logfile: Optional[str] = None

    # Server bind address; "" means all interfaces
    host: str = ""

    inactivity_timeout: float = INACTIVITY_TIMEOUT
    verbose: bool = False

    def __post_init__(self):
        if self.logfile is None:
            self.logfile = self.mode.default_logfile

    def validate(self):
        """
        Check the settings for the selected mode.

        Raises:
            ValueError: Describing the first problem found
        """
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.inactivity_timeout <= 0:
            raise ValueError(f"Invalid inactivity timeout: {self.inactivity_timeout}")

        if self.mode is Mode.SERVER:
            return

        if not self.remote_ip:
            raise ValueError("Client mode requires a remote IP address")
        if self.port == 0:
            raise ValueError("Client mode requires a nonzero port")
        if self.secs <= 0:
            raise ValueError(f"Invalid secs: {self.secs}")
        if not 0 < self.bytes_per_send <= MAX_BYTES_PER_SEND:
            raise ValueError(f"Invalid nbytes: {self.bytes_per_send}")
        try:
            encode_directive(self.parameters())
        except ProtocolError as exc:
            raise ValueError(str(exc)) from exc

    def parameters(self) -> TestParameters:
        """The TestParameters a client run sends to the server."""
        return TestParameters(
            duration_secs=self.secs,
            bytes_per_send=self.bytes_per_send,
            message=self.msg,
            remote_ip=self.remote_ip,
            port=self.port,
        )
