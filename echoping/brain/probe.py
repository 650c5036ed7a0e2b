# echoping/brain/probe.py
import logging
import time

from echoping.brain.rules import classify
from echoping.errors import MalformedMessage, TransportError
from echoping.prober import codec
from echoping.prober.base import Transport
from echoping.schemas import EchoRequest, Matched, Other, ProbeResult, Target

logger = logging.getLogger(__name__)


def _not_ours(reply: Other, family: int) -> bool:
    # our own request looped back, or another pinger's echo traffic
    return reply.raw_type in (codec.ECHO_REQUEST[family], codec.ECHO_REPLY[family])


def run_once(transport: Transport, target: Target, sequence: int, identifier: int,
             payload: bytes, timeout: float | None = None, clock=time.perf_counter) -> ProbeResult:
    """
    One echo request/reply exchange. TransportError propagates; anything the
    peer sends back, however odd, becomes a ProbeResult.

    Echo traffic that is not the answer to this request (a looped-back
    request, a foreign identifier, a stale sequence) is skipped and the wait
    continues until the deadline. If only such traffic arrived by then the
    outcome is "other".
    """
    request = EchoRequest(identifier, sequence, payload)
    try:
        wire = transport.marshal(request)
    except (ValueError, OverflowError) as e:
        raise TransportError("marshal", e) from e

    start = clock()
    transport.send(wire, target.address)
    deadline = None if timeout is None else start + timeout
    skipped = None      # (size, source) of the last packet we passed over

    while True:
        remaining = None if deadline is None else deadline - clock()
        got = None if remaining is not None and remaining <= 0 else transport.receive(remaining)
        elapsed = clock() - start

        if got is None:
            if skipped is not None:
                return ProbeResult(sequence, elapsed, "other", *skipped)
            logger.debug("seq=%d: no reply within %.3fs", sequence, timeout or 0.0)
            return ProbeResult(sequence, elapsed, "lost")

        data, source = got
        try:
            message = transport.parse(data)
        except MalformedMessage as e:
            logger.debug("seq=%d: malformed reply from %s: %s", sequence, source, e)
            return ProbeResult(sequence, elapsed, "other", len(data), source)

        reply = classify(message, target.family, identifier, source)

        if isinstance(reply, Matched):
            if reply.sequence == sequence & 0xFFFF:
                logger.debug("%s", reply)
                logger.debug("Data: %r", reply.payload)
                return ProbeResult(sequence, elapsed, "received", len(data), source)
            logger.warning("seq=%d: ignoring late reply for icmp_seq=%d from %s",
                           sequence, reply.sequence, source)
            skipped = (len(data), source)
            continue

        if _not_ours(reply, target.family):
            logger.debug("seq=%d: skipping %s from %s", sequence, message, source)
            if reply.raw_type == codec.ECHO_REPLY[target.family]:
                skipped = (len(data), source)
            continue

        logger.debug("Got something else from %s: %s (%r)", source, reply, message)
        return ProbeResult(sequence, elapsed, "other", len(data), source)
