# echoping/brain/state.py
from dataclasses import dataclass, field

from echoping.brain.rules import loss_percent
from echoping.schemas import ProbeResult, Statistics, Target


@dataclass
class StatsAccumulator:
    """Append-only ledger of probe results; summaries are recomputed from scratch."""
    results: list[ProbeResult] = field(default_factory=list)

    def record(self, result: ProbeResult) -> None:
        self.results.append(result)

    def __len__(self):
        return len(self.results)

    def summarize(self) -> Statistics:
        sent = len(self.results)
        rtts = [r.elapsed for r in self.results if r.outcome == "received"]
        received = len(rtts)
        if not rtts:
            return Statistics(sent, received, sent - received, loss_percent(sent, received))
        return Statistics(
            sent=sent,
            received=received,
            not_received=sent - received,
            loss_percent=loss_percent(sent, received),
            rtt_min=min(rtts),
            rtt_avg=sum(rtts) / received,
            rtt_max=max(rtts),
        )


@dataclass
class RunState:
    target: Target
    identifier: int = 0
    phase: str = "idle"                 # idle | probing | draining | done
    next_seq: int = 0
    stop_reason: str | None = None   # count | interrupted | transport_error
    error: Exception | None = None
    stats: StatsAccumulator = field(default_factory=StatsAccumulator)
    summary: Statistics | None = None
