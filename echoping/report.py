# echoping/report.py
from echoping.schemas import ProbeResult, Statistics, Target


def banner(target: Target, payload_len: int) -> str:
    return f"PING {target.host} ({target.address}): {payload_len} data bytes"


def probe_line(result: ProbeResult) -> str:
    if result.outcome == "received":
        return (f"{result.size} bytes from {result.source}: "
                f"icmp_seq={result.sequence} time={result.elapsed_ms:.3f} ms")
    if result.outcome == "lost":
        return f"Request timeout for icmp_seq {result.sequence}"
    return ""


def summary_lines(host: str, stats: Statistics) -> list:
    lines = [
        f"--- {host} ping statistics ---",
        f"{stats.sent} packets transmitted, {stats.received} packets received, "
        f"{stats.loss_percent:.1f}% packet loss",
    ]
    if stats.has_rtt:
        lines.append(
            "round-trip min/avg/max = "
            f"{stats.rtt_min * 1000:.3f}/{stats.rtt_avg * 1000:.3f}/{stats.rtt_max * 1000:.3f} ms"
        )
    else:
        lines.append("round-trip min/avg/max = n/a")
    return lines
