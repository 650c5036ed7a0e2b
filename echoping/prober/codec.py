# echoping/prober/codec.py
#
# ICMP / ICMPv6 wire format, echo bodies only:
#
#  0                   1                   2                   3
#  0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
# +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
# |     Type      |     Code      |          Checksum             |
# +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
# |           Identifier          |        Sequence Number        |
# +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
# |     Data ...
import struct

from echoping.errors import MalformedMessage
from echoping.schemas import EchoRequest, IcmpMessage

ICMP_ECHO_REPLY = 0
ICMP_DEST_UNREACHABLE = 3
ICMP_ECHO_REQUEST = 8
ICMP_TIME_EXCEEDED = 11

ICMPV6_DEST_UNREACHABLE = 1
ICMPV6_TIME_EXCEEDED = 3
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129

ECHO_REQUEST = {4: ICMP_ECHO_REQUEST, 6: ICMPV6_ECHO_REQUEST}
ECHO_REPLY = {4: ICMP_ECHO_REPLY, 6: ICMPV6_ECHO_REPLY}

HEADER = struct.Struct("!BBHHH")


def checksum(data: bytes) -> int:
    """Internet checksum (RFC 1071)."""
    if len(data) % 2:
        data += b"\x00"
    total = 0
    for i in range(0, len(data), 2):
        total += (data[i] << 8) + data[i + 1]
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def marshal(family: int, icmp_type: int, code: int, identifier: int, sequence: int, payload: bytes = b"") -> bytes:
    """
    Encode an echo-shaped ICMP message. IPv4 gets a real checksum; for ICMPv6 the
    kernel fills it in (it covers the pseudo-header we never see).
    """
    if family not in (4, 6):
        raise ValueError(f"unsupported IP version: {family}")
    if not 0 <= identifier <= 0xFFFF:
        raise ValueError(f"identifier out of range: {identifier}")
    header = HEADER.pack(icmp_type, code, 0, identifier, sequence & 0xFFFF)
    if family == 6:
        return header + payload
    csum = checksum(header + payload)
    return HEADER.pack(icmp_type, code, csum, identifier, sequence & 0xFFFF) + payload


def marshal_echo(family: int, request: EchoRequest) -> bytes:
    return marshal(family, ECHO_REQUEST[family], 0,
                   request.identifier, request.sequence, request.payload)


def parse_message(family: int, data: bytes) -> IcmpMessage:
    if len(data) < 4:
        raise MalformedMessage(f"message too short: {len(data)} bytes")
    icmp_type, code, csum = struct.unpack("!BBH", data[:4])

    if family == 4 and checksum(data) != 0:
        raise MalformedMessage("bad checksum")

    if icmp_type in (ECHO_REQUEST[family], ECHO_REPLY[family]):
        if len(data) < HEADER.size:
            raise MalformedMessage(f"echo message too short: {len(data)} bytes")
        _, _, _, ident, seq = HEADER.unpack(data[:HEADER.size])
        return IcmpMessage(icmp_type, code, csum, ident, seq, bytes(data[HEADER.size:]))

    return IcmpMessage(icmp_type, code, csum)


def strip_ipv4_header(data: bytes) -> bytes:
    """Raw IPv4 sockets hand us the IP header too; drop it using IHL."""
    if len(data) < 20:
        raise MalformedMessage(f"IPv4 packet too short: {len(data)} bytes")
    ihl = (data[0] & 0x0F) * 4
    if ihl < 20 or len(data) < ihl:
        raise MalformedMessage(f"bad IPv4 header length: {ihl}")
    return data[ihl:]
