# echoping/errors.py


class PingError(Exception):
    """Base class for everything the ping tool raises on purpose."""


class ResolveError(PingError):
    def __init__(self, host: str, cause=None):
        self.host = host
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"failed to look up host {host!r}{detail}")


class NoAddressForFamily(PingError):
    def __init__(self, family: int, addresses=()):
        self.family = family
        self.addresses = list(addresses)
        super().__init__(f"no IPv{family} address among {[str(a) for a in self.addresses]}")


class MalformedMessage(PingError):
    """Bytes that do not decode to an ICMP message."""


class TransportError(PingError):
    """
    A socket-level failure. `op` names the failing step:
    "open", "marshal", "send" or "receive".
    """

    def __init__(self, op: str, cause: Exception):
        self.op = op
        self.cause = cause
        super().__init__(f"{op}: {cause}")
