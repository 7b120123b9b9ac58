import subprocess
from collections import namedtuple
from types import SimpleNamespace

import pytest

from agent.app import sources
from agent.app.errors import MalformedCounterRow, SourceUnavailable


INTERFACE_LINE = "cHJpdmF0ZQ==\tcHVibGlj\t51820\toff"
PEER_A = "a2V5QQ==\t(none)\t203.0.113.5:51820\t10.8.0.3/32\t1700000000\t1000\t2000\t25"
PEER_B = "a2V5Qg==\t(none)\t198.51.100.7:40000\t10.8.0.7/32\t0\t0\t0\toff"

CPUTimes = namedtuple(
    "CPUTimes",
    "user nice system idle iowait irq softirq steal guest guest_nice",
)


def _settings(**overrides):
    base = {
        "wg_command": "wg",
        "wg_interface": "wg0",
        "peer_dump_timeout_seconds": 10.0,
        "include_swap": False,
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def test_parse_peer_dump_skips_interface_line():
    dump = "\n".join([INTERFACE_LINE, PEER_A, PEER_B])

    counters = sources.parse_peer_dump(dump, taken_at=5.0)

    assert list(counters.peers) == ["a2V5QQ==", "a2V5Qg=="]
    peer = counters.peers["a2V5QQ=="]
    assert peer.internal_address == "10.8.0.3/32"
    assert peer.external_address == "203.0.113.5:51820"
    assert peer.latest_handshake == 1_700_000_000
    assert (peer.rx_bytes, peer.tx_bytes) == (1000, 2000)
    assert counters.taken_at == 5.0
    assert counters.errors == ()


def test_parse_peer_dump_keeps_valid_rows_around_malformed_one():
    broken = "a2V5Qw==\t(none)\t192.0.2.1:1\t10.8.0.9/32\tnever\t1\t2\toff"
    short = "a2V5RA==\t(none)\t10.8.0.10/32"
    dump = "\n".join([INTERFACE_LINE, PEER_A, broken, short, PEER_B])

    counters = sources.parse_peer_dump(dump, taken_at=0.0)

    assert set(counters.peers) == {"a2V5QQ==", "a2V5Qg=="}
    assert len(counters.errors) == 2
    assert all(isinstance(error, MalformedCounterRow) for error in counters.errors)
    assert [error.line_number for error in counters.errors] == [3, 4]


def test_parse_peer_dump_rejects_empty_output():
    with pytest.raises(SourceUnavailable):
        sources.parse_peer_dump("   \n", taken_at=0.0)


def test_parse_peer_dump_interface_only_has_no_peers():
    counters = sources.parse_peer_dump(INTERFACE_LINE + "\n", taken_at=0.0)

    assert counters.peers == {}


def test_cpu_counters_fold_every_state_into_three_buckets():
    times = CPUTimes(
        user=10.0, nice=2.0, system=5.0, idle=80.0, iowait=3.0,
        irq=1.0, softirq=1.0, steal=0.5, guest=4.0, guest_nice=1.0,
    )

    counters = sources.cpu_counters_from_times(times, taken_at=1.0)

    assert counters.user == pytest.approx(12.0)
    assert counters.idle == pytest.approx(83.0)
    assert counters.system == pytest.approx(7.5)
    assert counters.total == pytest.approx(102.5)


def test_peers_runs_dump_command(monkeypatch):
    calls = []

    def fake_run(args, **kwargs):
        calls.append((args, kwargs))
        return SimpleNamespace(returncode=0, stdout="\n".join([INTERFACE_LINE, PEER_A]), stderr="")

    monkeypatch.setattr(sources.subprocess, "run", fake_run)

    counters = sources.CounterSource(_settings(wg_interface="wg1")).peers()

    assert calls[0][0] == ["wg", "show", "wg1", "dump"]
    assert calls[0][1]["timeout"] == 10.0
    assert list(counters.peers) == ["a2V5QQ=="]


@pytest.mark.parametrize(
    "outcome",
    [
        SimpleNamespace(returncode=1, stdout="", stderr="Unable to access interface"),
        SimpleNamespace(returncode=0, stdout="", stderr=""),
    ],
)
def test_peers_failed_command_is_source_unavailable(monkeypatch, outcome):
    monkeypatch.setattr(sources.subprocess, "run", lambda args, **kwargs: outcome)

    with pytest.raises(SourceUnavailable):
        sources.CounterSource(_settings()).peers()


@pytest.mark.parametrize(
    "error",
    [
        FileNotFoundError(2, "No such file or directory"),
        subprocess.TimeoutExpired(cmd="wg", timeout=10.0),
    ],
)
def test_peers_missing_or_hung_command_is_source_unavailable(monkeypatch, error):
    def fake_run(args, **kwargs):
        raise error

    monkeypatch.setattr(sources.subprocess, "run", fake_run)

    with pytest.raises(SourceUnavailable):
        sources.CounterSource(_settings()).peers()


def test_memory_reads_swap_only_when_enabled(monkeypatch):
    monkeypatch.setattr(
        sources.psutil,
        "virtual_memory",
        lambda: SimpleNamespace(total=1000, used=400, cached=100, free=500),
    )
    monkeypatch.setattr(
        sources.psutil,
        "swap_memory",
        lambda: SimpleNamespace(total=200, used=50, free=150),
    )

    without_swap = sources.CounterSource(_settings()).memory()
    with_swap = sources.CounterSource(_settings(include_swap=True)).memory()

    assert without_swap.swap_total == 0
    assert (with_swap.swap_total, with_swap.swap_used, with_swap.swap_free) == (200, 50, 150)
    assert with_swap.cached == 100


def test_memory_without_cached_field_defaults_to_zero(monkeypatch):
    monkeypatch.setattr(
        sources.psutil,
        "virtual_memory",
        lambda: SimpleNamespace(total=1000, used=400, free=600),
    )

    counters = sources.CounterSource(_settings()).memory()

    assert counters.cached == 0


def test_network_maps_psutil_counters(monkeypatch):
    monkeypatch.setattr(
        sources.psutil,
        "net_io_counters",
        lambda pernic: {"eth0": SimpleNamespace(bytes_recv=10, bytes_sent=20)},
    )

    counters = sources.CounterSource(_settings()).network()

    assert counters.interfaces["eth0"] == sources.InterfaceCounters(rx_bytes=10, tx_bytes=20)


def test_os_errors_are_source_unavailable(monkeypatch):
    def broken():
        raise OSError("no /proc")

    monkeypatch.setattr(sources.psutil, "cpu_times", broken)
    monkeypatch.setattr(sources.psutil, "boot_time", broken)

    source = sources.CounterSource(_settings())
    with pytest.raises(SourceUnavailable):
        source.cpu()
    with pytest.raises(SourceUnavailable):
        source.uptime()


def test_uptime_is_relative_to_boot(monkeypatch):
    monkeypatch.setattr(sources.psutil, "boot_time", lambda: 1_000.0)
    monkeypatch.setattr(sources.time, "time", lambda: 4_600.5)

    assert sources.CounterSource(_settings()).uptime() == 3_600
