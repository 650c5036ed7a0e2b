from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Literal

Outcome = Literal["received", "lost", "other"]

IPAddress = IPv4Address | IPv6Address


@dataclass(frozen=True)
class Target:
    host: str
    address: IPAddress

    @property
    def family(self) -> int:
        return self.address.version


@dataclass(frozen=True)
class EchoRequest:
    identifier: int
    sequence: int
    payload: bytes


@dataclass(frozen=True)
class IcmpMessage:
    """A decoded ICMP message. identifier/sequence/payload are only set for echo bodies."""
    type: int
    code: int
    checksum: int
    identifier: int | None = None
    sequence: int | None = None
    payload: bytes = b""


# --- classified replies -----------------------------------------------------

@dataclass(frozen=True)
class Matched:
    identifier: int
    sequence: int
    payload: bytes
    source: str


@dataclass(frozen=True)
class Other:
    raw_type: int
    raw_code: int


@dataclass(frozen=True)
class Malformed:
    reason: str = ""


EchoReply = Matched | Other | Malformed


@dataclass(frozen=True)
class ProbeResult:
    sequence: int
    elapsed: float              # seconds
    outcome: Outcome
    size: int = 0               # bytes received, 0 when lost
    source: str | None = None

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed * 1000.0


@dataclass(frozen=True)
class Statistics:
    sent: int
    received: int
    not_received: int
    loss_percent: float
    rtt_min: float | None = None   # seconds, None when nothing was received
    rtt_avg: float | None = None
    rtt_max: float | None = None

    @property
    def has_rtt(self) -> bool:
        return self.rtt_avg is not None
