# echoping/cli.py
# Usage examples:
#   echoping example.com
#   echoping -c 5 -i 200ms example.com
#   echoping -v 6 -W 2s -debug localhost

import argparse
import logging
import signal
import sys

from echoping.brain.controller import PingController, process_identifier
from echoping.brain.rules import select_address
from echoping.config import Settings, parse_duration
from echoping.errors import PingError, TransportError
from echoping.prober.icmp import SocketTransport, lookup_ips
from echoping.schemas import Target

logger = logging.getLogger("echoping")


def _duration(text: str) -> float:
    try:
        return parse_duration(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_argparser():
    ap = argparse.ArgumentParser(prog="echoping", description="Send ICMP echo requests to a host")
    ap.add_argument("host", help="Target hostname or IP address")
    ap.add_argument("-c", dest="count", type=int, default=0,
                    help="Number of pings to send. If count is 0 or negative, will ping forever.")
    ap.add_argument("-i", dest="interval", type=_duration, default=1.0,
                    help="Interval between probe starts, e.g. 1.5s or 200ms (default: 1s)")
    ap.add_argument("-v", dest="version", type=int, default=4, choices=[4, 6],
                    help="IP version to use when looking up the hostname, 4 or 6")
    ap.add_argument("-W", dest="timeout", type=_duration, default=1.0,
                    help="How long to wait for each reply, 0 waits forever (default: 1s)")
    ap.add_argument("-debug", "--debug", dest="debug", action="store_true", help="Show debug info.")
    return ap


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
        stream=sys.stderr,
    )


def _terminate(signum, frame):
    raise KeyboardInterrupt


def main(argv=None, transport_factory=SocketTransport, resolver=lookup_ips, out=print) -> int:
    args = build_argparser().parse_args(argv)
    setup_logging(args.debug)

    s = Settings(
        count=args.count,
        interval=args.interval,
        family=args.version,
        timeout=args.timeout,
        debug=args.debug,
    )

    previous = signal.signal(signal.SIGTERM, _terminate)
    try:
        return _run(args.host, s, transport_factory, resolver, out)
    finally:
        signal.signal(signal.SIGTERM, previous)


def _run(host: str, s: Settings, transport_factory, resolver, out) -> int:
    try:
        ips = resolver(host)
        logger.info("IPs: %s", ips)
        target = Target(host, select_address(ips, s.family))
    except PingError as e:
        logger.error("ping: %s", e)
        return 2
    except KeyboardInterrupt:
        logger.error("ping: interrupted while looking up %s", host)
        return 2

    try:
        with transport_factory(s.family) as transport:
            try:
                transport.open(process_identifier())
            except TransportError as e:
                logger.error("ping: socket %s", e)
                return 2
            run = PingController(transport, s, out=out).run(target)
    except KeyboardInterrupt:
        logger.error("ping: interrupted while opening socket")
        return 2

    return 1 if run.stop_reason == "transport_error" else 0


if __name__ == "__main__":
    sys.exit(main())
