# echoping/prober/base.py
from abc import ABC, abstractmethod

from echoping.prober import codec
from echoping.schemas import EchoRequest, IcmpMessage, IPAddress

Received = tuple[bytes, str]    # (icmp bytes, source address)


class Transport(ABC):
    """
    One ICMP socket for one address family. Owns encode/decode so the probe
    cycle never touches the wire format directly.
    """

    family: int = 4
    identifier: int | None = None    # echo id the peer will see, set by open()

    def open(self, identifier: int) -> int:
        """Acquire the socket. Returns the identifier replies will carry."""
        self.identifier = identifier
        return identifier

    def marshal(self, request: EchoRequest) -> bytes:
        return codec.marshal_echo(self.family, request)

    def parse(self, data: bytes) -> IcmpMessage:
        return codec.parse_message(self.family, data)

    @abstractmethod
    def send(self, data: bytes, address: IPAddress) -> int:
        """Send one datagram; returns bytes written."""
        raise NotImplementedError

    @abstractmethod
    def receive(self, timeout: float | None = None) -> Received | None:
        """Block for one datagram. None means the timeout expired first."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
