# echoping/brain/rules.py
import ipaddress
from typing import Iterable

from echoping.errors import NoAddressForFamily
from echoping.prober import codec
from echoping.schemas import EchoReply, IcmpMessage, IPAddress, Malformed, Matched, Other


def select_address(addresses: Iterable, family: int) -> IPAddress:
    """First candidate of the wanted IP version, in input order."""
    candidates = list(addresses)
    for candidate in candidates:
        try:
            ip = ipaddress.ip_address(candidate)
        except ValueError:
            continue
        if ip.version == family:
            return ip
    raise NoAddressForFamily(family, candidates)


def classify(message: IcmpMessage | None, family: int, identifier: int, source: str) -> EchoReply:
    """
    Matched only for an echo reply of the target's family carrying our
    identifier; a foreign pinger's reply to the same host is Other.
    """
    if message is None:
        return Malformed()
    if message.type == codec.ECHO_REPLY[family] and message.identifier == identifier:
        return Matched(message.identifier, message.sequence, message.payload, source)
    return Other(message.type, message.code)


def loss_percent(sent: int, received: int) -> float:
    if sent <= 0:
        return 0.0
    return (sent - received) / sent * 100.0
