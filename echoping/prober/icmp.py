# echoping/prober/icmp.py
import logging
import socket
import time

from echoping.errors import MalformedMessage, ResolveError, TransportError
from echoping.prober import codec
from echoping.prober.base import Received, Transport
from echoping.schemas import IPAddress

logger = logging.getLogger(__name__)

_FAMILIES = {
    4: (socket.AF_INET, socket.IPPROTO_ICMP, "0.0.0.0"),
    6: (socket.AF_INET6, socket.IPPROTO_ICMPV6, "::"),
}


def lookup_ips(host: str) -> list[str]:
    """All addresses the resolver knows for host, first-seen order, no duplicates."""
    try:
        infos = socket.getaddrinfo(host, None)
    except (socket.gaierror, UnicodeError) as e:
        raise ResolveError(host, e) from e

    ips = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        ip = sockaddr[0]
        if ip not in ips:
            ips.append(ip)
    if not ips:
        raise ResolveError(host, "no addresses")
    return ips


class SocketTransport(Transport):
    """
    ICMP over an unprivileged datagram socket when the OS allows it
    (Linux net.ipv4.ping_group_range, macOS), else a raw socket.
    """

    def __init__(self, family: int = 4, buffer_size: int = 1500):
        if family not in _FAMILIES:
            raise ValueError(f"IP version must be either 4 or 6, got {family}")
        self.family = family
        self.buffer_size = buffer_size
        self.sock: socket.socket | None = None
        self.raw = False
        self.identifier = None

    def open(self, identifier: int) -> int:
        af, proto, any_addr = _FAMILIES[self.family]
        try:
            sock = socket.socket(af, socket.SOCK_DGRAM, proto)
        except OSError as e:
            logger.debug("datagram ICMP socket unavailable (%s), trying raw socket", e)
            try:
                sock = socket.socket(af, socket.SOCK_RAW, proto)
            except OSError as e2:
                raise TransportError("open", e2) from e2
            self.raw = True

        if not self.raw:
            # Linux rewrites the echo id of datagram ICMP sockets to the local
            # port, so ask for our id as the port and report what we got.
            try:
                sock.bind((any_addr, identifier))
            except OSError as e:
                logger.debug("could not bind identifier %d (%s), using an ephemeral one", identifier, e)
                try:
                    sock.bind((any_addr, 0))
                except OSError as e2:
                    sock.close()
                    raise TransportError("open", e2) from e2
            port = sock.getsockname()[1]
            if port:
                identifier = port

        self.sock = sock
        self.identifier = identifier
        logger.debug("Opened %s ICMPv%d socket, identifier %d",
                     "raw" if self.raw else "datagram", self.family, identifier)
        return identifier

    def send(self, data: bytes, address: IPAddress) -> int:
        if self.sock is None:
            raise TransportError("send", RuntimeError("socket is not open"))
        try:
            return self.sock.sendto(data, (str(address), 0))
        except OSError as e:
            raise TransportError("send", e) from e

    def _recv_once(self, timeout: float | None) -> Received | None:
        self.sock.settimeout(timeout)
        try:
            data, addr = self.sock.recvfrom(self.buffer_size)
        except socket.timeout:
            return None
        except OSError as e:
            raise TransportError("receive", e) from e

        # IPv4 raw sockets (and datagram sockets on BSDs) include the IP header.
        # No ICMP type we care about has 4 in its high nibble.
        if self.family == 4 and data and data[0] >> 4 == 4:
            try:
                data = codec.strip_ipv4_header(data)
            except MalformedMessage as e:
                logger.debug("could not strip IPv4 header: %s", e)
        return data, addr[0]

    def receive(self, timeout: float | None = None) -> Received | None:
        if self.sock is None:
            raise TransportError("receive", RuntimeError("socket is not open"))
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return None
            got = self._recv_once(remaining)
            if got is None or not self.raw:
                return got
            # A raw socket sees every ICMP packet on the host, our own
            # outgoing requests included.
            data, source = got
            if data and data[0] == codec.ECHO_REQUEST[self.family]:
                logger.debug("dropping echo request from %s", source)
                continue
            return got

    def close(self) -> None:
        if self.sock is not None:
            logger.debug("Closing ICMPv%d socket", self.family)
            self.sock.close()
            self.sock = None
