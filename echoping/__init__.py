"""ICMP echo probe: send echo requests, time the replies, report loss and RTT."""

__version__ = "0.1.0"
