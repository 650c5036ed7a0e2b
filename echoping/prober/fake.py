# echoping/prober/fake.py
from collections import deque

from echoping.errors import TransportError
from echoping.prober import codec
from echoping.prober.base import Received, Transport
from echoping.schemas import EchoRequest


class FakeClock:
    """Manual clock; pass it as both clock and sleep to keep tests deterministic."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)


def echo_reply(request: EchoRequest, family: int = 4) -> bytes:
    return codec.marshal(family, codec.ECHO_REPLY[family], 0,
                         request.identifier, request.sequence, request.payload)


class FakeTransport(Transport):
    """
    script: list of entries returned one per receive() call:
      {"echo": True, "delay": s}                 answer the last request
      {"data": b"...", "source": ip, "delay": s} hand back these bytes
      {"timeout": True}                          nothing arrives
      {"error": exc}                             receive fails
    Once the script runs out every receive times out, or echoes the last
    request when echo=True.
    send_errors: {send index: exception} to make a given send fail.
    """

    def __init__(self, script=None, family: int = 4, clock: FakeClock | None = None,
                 echo: bool = False, rtt: float = 0.0, send_errors=None, source: str = None):
        self.family = family
        self.script = deque(script or [])
        self.clock = clock
        self.echo = echo
        self.rtt = rtt
        self.send_errors = dict(send_errors or {})
        self.source = source or ("127.0.0.1" if family == 4 else "::1")
        self.sent = []              # (bytes, address)
        self.identifier = None
        self.closed = False

    def open(self, identifier: int) -> int:
        self.closed = False
        return super().open(identifier)

    def _advance(self, seconds: float) -> None:
        if self.clock is not None:
            self.clock.advance(seconds)

    def send(self, data: bytes, address) -> int:
        idx = len(self.sent)
        if idx in self.send_errors:
            raise TransportError("send", self.send_errors.pop(idx))
        self.sent.append((data, address))
        return len(data)

    def _last_request(self) -> EchoRequest:
        msg = self.parse(self.sent[-1][0])
        return EchoRequest(msg.identifier, msg.sequence, msg.payload)

    def receive(self, timeout: float | None = None) -> Received | None:
        if self.script:
            entry = self.script.popleft()
        elif self.echo:
            entry = {"echo": True, "delay": self.rtt}
        else:
            entry = {"timeout": True}

        if "error" in entry:
            raise TransportError("receive", entry["error"])

        delay = entry.get("delay", 0.0)
        if entry.get("timeout") or (timeout is not None and delay > timeout):
            self._advance(timeout or 0.0)
            return None

        self._advance(delay)
        if entry.get("echo"):
            return echo_reply(self._last_request(), self.family), self.source
        return entry["data"], entry.get("source", self.source)

    def close(self) -> None:
        self.closed = True
