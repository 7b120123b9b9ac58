import httpx
import pytest

from check.app import cli
from check.app.thresholds import Verdict


SNAPSHOT_NETWORK = [{"device": "eth0", "rx": 800.0, "tx": 120.0}]
SNAPSHOT_PEERS = [
    {
        "internal-ip": "10.8.0.3/32",
        "external-ip": "203.0.113.3:51820",
        "latest-handshake": 1_700_000_000,
        "data-rates": {"rx": 4.0, "tx": 2.0},
    }
]


class RecordingTransport(httpx.MockTransport):
    def __init__(self, routes: dict[str, object]) -> None:
        self.paths: list[str] = []
        self.routes = routes
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        return httpx.Response(200, json=self.routes[request.url.path])


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport(
        {
            "/uptime": {"uptime": 3600},
            "/cpu": {"user": 50.0, "system": 30.0, "idle": 20.0},
            "/memory": {"used": 20.0, "cached": 10.0, "free": 70.0},
            "/network": SNAPSHOT_NETWORK,
            "/wireguard": SNAPSHOT_PEERS,
        }
    )


def test_cpu_check_exit_code_follows_verdict(transport, capsys):
    code = cli.main(["-H", "gw", "--warning", "70", "--critical", "90", "cpu"], transport=transport)

    assert code == Verdict.WARNING
    assert capsys.readouterr().out == "WARNING - 'user'=50.00% 'system'=30.00% 'idle'=20.00%\n"


def test_flags_are_accepted_after_the_command(transport, capsys):
    code = cli.main(["memory", "-H", "gw", "-c", "25"], transport=transport)

    assert code == Verdict.CRITICAL
    assert transport.paths == ["/memory"]


def test_command_aliases(transport, capsys):
    assert cli.main(["-H", "gw", "u"], transport=transport) == Verdict.OK
    assert capsys.readouterr().out == "OK - 'uptime'=3600s\n"


def test_network_upstream_for_device(transport, capsys):
    code = cli.main(["-H", "gw", "network", "upstream", "--device", "eth0"], transport=transport)

    assert code == Verdict.OK
    assert capsys.readouterr().out == "OK - 'upstream'=120.00kbps\n"


def test_device_flag_on_network_command(transport, capsys):
    code = cli.main(["-H", "gw", "net", "-d", "eth0", "down", "-w", "500"], transport=transport)

    assert code == Verdict.WARNING
    assert capsys.readouterr().out == "WARNING - 'downstream'=800.00kbps\n"


def test_unknown_device_exits_unknown_without_perfdata(transport, capsys):
    code = cli.main(["-H", "gw", "network", "upstream", "--device", "eth9"], transport=transport)

    out = capsys.readouterr().out
    assert code == Verdict.UNKNOWN
    assert out.startswith("UNKNOWN - ")
    assert "=" not in out


def test_wireguard_peer_check(transport, capsys):
    code = cli.main(["-H", "gw", "wg", "up", "--peer", "3"], transport=transport)

    assert code == Verdict.OK
    assert capsys.readouterr().out == "OK - 'upstream'=2.00kbps\n"


@pytest.mark.parametrize(
    "argv",
    [
        ["-H", "gw", "--port", "80", "cpu"],
        ["-H", "gw", "--port", "70000", "cpu"],
        ["-H", "gw", "--timeout", "0", "cpu"],
        ["-H", "gw", "--timeout", "121", "cpu"],
        ["-H", "", "cpu"],
        ["-H", "gw", "network", "upstream"],
        ["-H", "gw", "wireguard", "handshake"],
        ["-H", "gw", "wireguard", "handshake", "--peer", "256"],
    ],
)
def test_invalid_arguments_exit_unknown_before_any_request(transport, capsys, argv):
    code = cli.main(argv, transport=transport)

    assert code == Verdict.UNKNOWN
    assert transport.paths == []
    assert capsys.readouterr().out.startswith("UNKNOWN - ")


@pytest.mark.parametrize("argv", [[], ["network"], ["cpu", "--port", "abc"], ["disk"]])
def test_usage_errors_exit_unknown(transport, argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv, transport=transport)

    assert excinfo.value.code == Verdict.UNKNOWN
    assert transport.paths == []


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])

    assert excinfo.value.code == 0
    assert "check_g3000 v" in capsys.readouterr().out


def test_defaults_come_from_settings(monkeypatch):
    monkeypatch.setattr(cli.settings, "hostname", "10.0.0.1", raising=False)
    monkeypatch.setattr(cli.settings, "port", 6000, raising=False)

    args = cli.build_arguments(cli.build_parser().parse_args(["cpu"]))

    assert (args.hostname, args.port) == ("10.0.0.1", 6000)
    assert args.warning is None and args.critical is None


@pytest.mark.parametrize("hostname", ["bad host", "a:b", "gw/metrics", "gw:5665"])
def test_unusable_hostname_exits_unknown_before_any_request(transport, capsys, hostname):
    code = cli.main(["-H", hostname, "uptime"], transport=transport)

    assert code == Verdict.UNKNOWN
    assert transport.paths == []
    assert capsys.readouterr().out.startswith("UNKNOWN - Hostname ")


def test_ipv6_hostname_is_bracketed(capsys):
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, json={"uptime": 60})

    code = cli.main(["-H", "::1", "uptime"], transport=httpx.MockTransport(handler))

    assert code == Verdict.OK
    assert urls == ["http://[::1]:5665/uptime"]
    assert capsys.readouterr().out == "OK - 'uptime'=60s\n"
