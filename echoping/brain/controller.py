# echoping/brain/controller.py

import logging
import os
import time

from echoping.brain.probe import run_once
from echoping.brain.state import RunState
from echoping.errors import TransportError
from echoping.report import banner, probe_line, summary_lines
from echoping.schemas import Target

logger = logging.getLogger(__name__)


def process_identifier() -> int:
    return os.getpid() & 0xFFFF


class PingController:
    def __init__(self, transport, settings, out=print, clock=time.monotonic, sleep=time.sleep):
        self.transport = transport
        self.s = settings
        self.out = out
        self.clock = clock
        self.sleep = sleep

    def _wait_until(self, deadline: float) -> None:
        remaining = deadline - self.clock()
        if remaining > 0:
            self.sleep(remaining)

    def run(self, target: Target, identifier: int | None = None) -> RunState:
        if identifier is None:
            identifier = self.transport.identifier
        if identifier is None:
            identifier = process_identifier()

        run = RunState(target=target, identifier=identifier)
        self.out(banner(target, len(self.s.payload)))

        run.phase = "probing"
        last_start = None
        try:
            while self.s.unbounded or run.next_seq < self.s.count:
                # Interval counts from the previous probe's start; slow probes chain.
                if last_start is not None and self.s.interval > 0:
                    self._wait_until(last_start + self.s.interval)
                last_start = self.clock()

                result = run_once(
                    self.transport, target, run.next_seq, identifier, self.s.payload,
                    timeout=self.s.receive_timeout, clock=self.clock,
                )
                run.stats.record(result)
                run.next_seq += 1

                line = probe_line(result)
                if line:
                    self.out(line)
            run.stop_reason = "count"
        except KeyboardInterrupt:
            run.stop_reason = "interrupted"
        except TransportError as e:
            run.stop_reason = "transport_error"
            run.error = e
            logger.error("ping: %s", e)
        finally:
            # Statistics go out on every exit path, partial ones included.
            run.phase = "draining"
            run.summary = run.stats.summarize()
            self.out("")
            for line in summary_lines(target.host, run.summary):
                self.out(line)
            run.phase = "done"

        return run
