# tools/probe_once.py
# Usage: python3 -m tools.probe_once 8.8.8.8 [4|6]
import json
import sys
from dataclasses import asdict

from echoping.brain.controller import process_identifier
from echoping.brain.probe import run_once
from echoping.brain.rules import select_address
from echoping.config import DEFAULT_PAYLOAD
from echoping.prober.icmp import SocketTransport, lookup_ips
from echoping.schemas import Target

def main():
    if len(sys.argv) < 2:
        print("Usage: python3 -m tools.probe_once <target_ip_or_host> [4|6]")
        return
    host = sys.argv[1]
    family = int(sys.argv[2]) if len(sys.argv) > 2 else 4
    target = Target(host, select_address(lookup_ips(host), family))
    with SocketTransport(family) as t:
        ident = t.open(process_identifier())
        res = run_once(t, target, 0, ident, DEFAULT_PAYLOAD, timeout=2.0)
    out = asdict(res)
    out["target"] = str(target.address)
    out["elapsed_ms"] = round(res.elapsed_ms, 3)
    print(json.dumps(out, indent=2))

if __name__ == "__main__":
    main()
