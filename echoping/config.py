import re
from dataclasses import dataclass

DEFAULT_PAYLOAD = b"FOO"

@dataclass
class Settings:
    count: int = 0              # <= 0 pings forever
    interval: float = 1.0       # seconds between probe starts, 0 = back-to-back
    family: int = 4             # 4 or 6
    timeout: float = 1.0        # per-probe reply wait, 0 = block until something arrives
    debug: bool = False
    payload: bytes = DEFAULT_PAYLOAD

    @property
    def unbounded(self) -> bool:
        return self.count <= 0

    @property
    def receive_timeout(self):
        return self.timeout if self.timeout > 0 else None


# seconds per duration unit
_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_BARE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_duration(text: str) -> float:
    """
    Parse a duration literal into seconds.

    Accepts sequences like "1.5s", "200ms" or "1m30s". A bare number is taken
    as seconds. Negative durations are rejected.
    """
    s = text.strip()
    if not s:
        raise ValueError("empty duration")
    if s.startswith("-"):
        raise ValueError(f"negative duration: {text!r}")
    if s.startswith("+"):
        s = s[1:]

    if _BARE.fullmatch(s):
        return float(s)

    total = 0.0
    pos = 0
    for m in _PART.finditer(s):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()
    if pos != len(s) or pos == 0:
        raise ValueError(f"invalid duration: {text!r}")
    return total
