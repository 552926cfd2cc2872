"""
Server endpoint model.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ServerAddr:
    """
    Address of the iperf server a measurement runs against.

    Produced by the server discovery stage and forwarded unchanged to the
    next pipeline stage once the measurement has started.
    """

    ip: str
    port_iperf: int

    def __str__(self) -> str:
        return f"{self.ip}:{self.port_iperf}"
