# tests/test_brain_unit.py
from ipaddress import ip_address

import pytest

from echoping.brain.controller import PingController
from echoping.brain.rules import classify, loss_percent, select_address
from echoping.brain.state import StatsAccumulator
from echoping.config import Settings
from echoping.errors import NoAddressForFamily
from echoping.prober import codec
from echoping.prober.fake import FakeClock, FakeTransport
from echoping.schemas import EchoRequest, IcmpMessage, Malformed, Matched, Other, ProbeResult, Target


def make_controller(script=None, clock=None, **settings):
    clock = clock or FakeClock()
    fake = FakeTransport(script=script, clock=clock)
    fake.open(0x1234)
    s = Settings(**settings)
    out = []
    ctrl = PingController(fake, s, out=out.append, clock=clock, sleep=clock.sleep)
    return ctrl, fake, out


TARGET = Target("example.test", ip_address("127.0.0.1"))


# --- address selection ------------------------------------------------------

def test_select_address_picks_first_of_family():
    """The first IPv4 candidate wins when IPv4 is requested."""
    assert select_address(["1.2.3.4", "::1"], 4) == ip_address("1.2.3.4")
    assert select_address(["::1", "1.2.3.4", "5.6.7.8"], 4) == ip_address("1.2.3.4")
    assert select_address(["1.2.3.4", "::1"], 6) == ip_address("::1")


def test_select_address_no_match_raises():
    """Asking for IPv6 when only IPv4 was resolved fails with NoAddressForFamily."""
    with pytest.raises(NoAddressForFamily) as exc:
        select_address(["1.2.3.4"], 6)
    assert exc.value.family == 6


def test_select_address_skips_garbage():
    assert select_address(["not-an-ip", ip_address("10.0.0.1")], 4) == ip_address("10.0.0.1")


# --- classification -----------------------------------------------------------

def test_classify_matching_echo_reply():
    msg = IcmpMessage(codec.ICMP_ECHO_REPLY, 0, 0, identifier=7, sequence=3, payload=b"FOO")
    reply = classify(msg, 4, 7, "10.0.0.1")
    assert reply == Matched(7, 3, b"FOO", "10.0.0.1")


def test_classify_foreign_identifier_is_other():
    """A reply to somebody else's ping of the same host must not count."""
    msg = IcmpMessage(codec.ICMP_ECHO_REPLY, 0, 0, identifier=8, sequence=3)
    assert classify(msg, 4, 7, "10.0.0.1") == Other(codec.ICMP_ECHO_REPLY, 0)


def test_classify_wrong_family_type_is_other():
    msg = IcmpMessage(codec.ICMP_ECHO_REPLY, 0, 0, identifier=7, sequence=0)
    assert isinstance(classify(msg, 6, 7, "::1"), Other)


def test_classify_unreachable_and_malformed():
    msg = IcmpMessage(codec.ICMP_DEST_UNREACHABLE, 1, 0)
    assert classify(msg, 4, 7, "10.0.0.1") == Other(3, 1)
    assert classify(None, 4, 7, "10.0.0.1") == Malformed()


def test_loss_percent_zero_sent():
    assert loss_percent(0, 0) == 0.0
    assert loss_percent(4, 1) == 75.0


# --- statistics ---------------------------------------------------------------

def test_summarize_empty_ledger():
    """No probes at all: nothing divides by zero and rtt is not available."""
    stats = StatsAccumulator().summarize()
    assert stats.sent == 0
    assert stats.received == 0
    assert stats.loss_percent == 0.0
    assert stats.rtt_min is None and stats.rtt_avg is None and stats.rtt_max is None
    assert not stats.has_rtt


def test_summarize_ignores_non_received_rtts():
    acc = StatsAccumulator()
    acc.record(ProbeResult(0, 0.010, "received"))
    acc.record(ProbeResult(1, 5.000, "lost"))
    acc.record(ProbeResult(2, 0.001, "other"))
    acc.record(ProbeResult(3, 0.030, "received"))

    stats = acc.summarize()
    assert stats.sent == 4
    assert stats.received == 2
    assert stats.received + stats.not_received == stats.sent
    assert stats.loss_percent == 50.0
    assert stats.rtt_min == pytest.approx(0.010)
    assert stats.rtt_avg == pytest.approx(0.020)
    assert stats.rtt_max == pytest.approx(0.030)
    # idempotent
    assert acc.summarize() == stats


def test_summarize_all_lost():
    acc = StatsAccumulator()
    for seq in range(3):
        acc.record(ProbeResult(seq, 1.0, "lost"))
    stats = acc.summarize()
    assert stats.loss_percent == 100.0
    assert stats.not_received == 3
    assert not stats.has_rtt


# --- scheduler ----------------------------------------------------------------

def test_controller_three_replies_end_to_end():
    """Three immediate replies at 10/20/30 ms give the expected summary."""
    script = [{"echo": True, "delay": d} for d in (0.010, 0.020, 0.030)]
    ctrl, fake, out = make_controller(script, count=3, interval=0)

    run = ctrl.run(TARGET)

    assert run.stop_reason == "count"
    assert run.phase == "done"
    assert [r.sequence for r in run.stats.results] == [0, 1, 2]
    assert [r.outcome for r in run.stats.results] == ["received"] * 3
    s = run.summary
    assert (s.sent, s.received, s.loss_percent) == (3, 3, 0.0)
    assert s.rtt_min * 1000 == pytest.approx(10.0)
    assert s.rtt_avg * 1000 == pytest.approx(20.0)
    assert s.rtt_max * 1000 == pytest.approx(30.0)

    assert out[0] == "PING example.test (127.0.0.1): 3 data bytes"
    assert out[1] == "11 bytes from 127.0.0.1: icmp_seq=0 time=10.000 ms"
    assert out[-3] == "--- example.test ping statistics ---"
    assert out[-2] == "3 packets transmitted, 3 packets received, 0.0% packet loss"
    assert out[-1] == "round-trip min/avg/max = 10.000/20.000/30.000 ms"


def test_controller_sends_exactly_count_probes():
    ctrl, fake, out = make_controller(count=5, interval=0, timeout=0.5)
    run = ctrl.run(TARGET)

    assert len(run.stats) == 5
    assert [r.sequence for r in run.stats.results] == list(range(5))
    assert len(fake.sent) == 5
    sent_seqs = [codec.parse_message(4, data).sequence for data, _ in fake.sent]
    assert sent_seqs == [0, 1, 2, 3, 4]
    assert all(r.outcome == "lost" for r in run.stats.results)
    assert "Request timeout for icmp_seq 0" in out
    assert out[-1] == "round-trip min/avg/max = n/a"


def test_controller_first_send_fails(caplog):
    """A fatal send error still reports (empty) statistics and logs the cause."""
    clock = FakeClock()
    fake = FakeTransport(clock=clock, echo=True, send_errors={0: OSError("network is unreachable")})
    fake.open(1)
    out = []
    ctrl = PingController(fake, Settings(count=2, interval=0), out=out.append,
                          clock=clock, sleep=clock.sleep)

    run = ctrl.run(TARGET)

    assert run.stop_reason == "transport_error"
    assert run.error.op == "send"
    assert run.summary.sent == 0
    assert run.summary.received == 0
    assert run.summary.loss_percent == 0.0
    assert not run.summary.has_rtt
    assert out[-2] == "0 packets transmitted, 0 packets received, 0.0% packet loss"
    assert out[-1] == "round-trip min/avg/max = n/a"
    assert any("send" in r.getMessage() and r.levelname == "ERROR" for r in caplog.records)


def test_controller_receive_error_keeps_partial_stats():
    script = [{"echo": True, "delay": 0.005}, {"error": OSError("boom")}]
    ctrl, fake, out = make_controller(script, count=5, interval=0)

    run = ctrl.run(TARGET)

    assert run.stop_reason == "transport_error"
    assert run.error.op == "receive"
    assert run.summary.sent == 1
    assert run.summary.received == 1
    assert out[-2] == "1 packets transmitted, 1 packets received, 0.0% packet loss"


def test_controller_interval_measured_from_probe_start():
    clock = FakeClock()
    fake = FakeTransport(clock=clock, echo=True, rtt=0.25)
    fake.open(1)
    ctrl = PingController(fake, Settings(count=3, interval=1.0), out=lambda *_: None,
                          clock=clock, sleep=clock.sleep)

    ctrl.run(TARGET)

    assert clock.sleeps == [pytest.approx(0.75), pytest.approx(0.75)]


def test_controller_slow_probes_chain_back_to_back():
    clock = FakeClock()
    fake = FakeTransport(clock=clock, echo=True, rtt=1.5)
    fake.open(1)
    ctrl = PingController(fake, Settings(count=3, interval=1.0, timeout=0), out=lambda *_: None,
                          clock=clock, sleep=clock.sleep)

    run = ctrl.run(TARGET)

    assert clock.sleeps == []
    assert run.summary.received == 3


def test_controller_interrupt_flushes_stats():
    """An interrupt while waiting for the next probe still prints what we have."""
    clock = FakeClock()
    calls = []

    def sleep(seconds):
        calls.append(seconds)
        if len(calls) == 2:
            raise KeyboardInterrupt
        clock.sleep(seconds)

    fake = FakeTransport(clock=clock, echo=True, rtt=0.010)
    fake.open(1)
    out = []
    ctrl = PingController(fake, Settings(count=0, interval=1.0), out=out.append,
                          clock=clock, sleep=sleep)

    run = ctrl.run(TARGET)

    assert run.stop_reason == "interrupted"
    assert run.phase == "done"
    assert run.summary.sent == 2
    assert run.summary.received == 2
    assert out[-3] == "--- example.test ping statistics ---"


def test_controller_uses_transport_identifier():
    script = [{"echo": True}]
    ctrl, fake, out = make_controller(script, count=1, interval=0)
    run = ctrl.run(TARGET)
    assert run.identifier == 0x1234
    assert codec.parse_message(4, fake.sent[0][0]).identifier == 0x1234


def test_controller_interrupt_during_receive_abandons_probe():
    """An interrupt while waiting for a reply drops that probe and still reports."""
    class InterruptedOnSecondReceive(FakeTransport):
        def receive(self, timeout=None):
            if len(self.sent) == 2:
                raise KeyboardInterrupt
            return super().receive(timeout)

    clock = FakeClock()
    fake = InterruptedOnSecondReceive(clock=clock, echo=True, rtt=0.010)
    fake.open(1)
    out = []
    ctrl = PingController(fake, Settings(count=5, interval=0), out=out.append,
                          clock=clock, sleep=clock.sleep)

    run = ctrl.run(TARGET)

    assert run.stop_reason == "interrupted"
    assert len(fake.sent) == 2
    assert [r.sequence for r in run.stats.results] == [0]
    assert run.summary.sent == 1
    assert run.summary.received == 1
    assert out[-2] == "1 packets transmitted, 1 packets received, 0.0% packet loss"


def test_controller_loopback_raw_socket_counts_every_reply():
    """Each cycle first sees its own request looped back, then the answer."""
    script = []
    for seq in range(3):
        own = codec.marshal_echo(4, EchoRequest(0x1234, seq, b"FOO"))
        script.append({"data": own, "delay": 0.0005})
        script.append({"echo": True, "delay": 0.0005})
    ctrl, fake, out = make_controller(script, count=3, interval=0)

    run = ctrl.run(TARGET)

    assert run.summary.received == 3
    assert run.summary.loss_percent == 0.0
    assert run.summary.rtt_max * 1000 == pytest.approx(1.0)
