"""Command line entrypoint of the check plugin.

The verdict of a check is turned into the process exit code here and nowhere
else: 0 OK, 1 WARNING, 2 CRITICAL, 3 UNKNOWN.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

import httpx

from check.app.arguments import CLIArguments, validate_arguments
from check.app.checks import CHECKS, run_check
from check.app.config import settings
from check.app.errors import UsageError
from check.app.thresholds import CheckResult, Verdict


logger = logging.getLogger(__name__)


class PluginArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on usage errors, which would read as CRITICAL."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(int(Verdict.UNKNOWN), f"{self.prog}: error: {message}\n")


def _common_options() -> argparse.ArgumentParser:
    # SUPPRESS keeps a flag given before the command from being reset by a subcommand default
    common = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    common.add_argument("-H", "--hostname", help=f"hostname or IP address of the agent (default {settings.hostname})")
    common.add_argument("-p", "--port", type=int, help=f"agent port (default {settings.port})")
    common.add_argument(
        "-t", "--timeout", type=int, help=f"request timeout in seconds (default {settings.timeout_seconds})"
    )
    common.add_argument("-w", "--warning", type=float, help="warning threshold")
    common.add_argument("-c", "--critical", type=float, help="critical threshold")
    common.add_argument("-v", "--verbose", action="store_true", help="print debugging information to stderr")
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_options()

    device = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    device.add_argument("-d", "--device", help="network device to query, e.g. eth0")

    peer = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    peer.add_argument(
        "-P",
        "--peer",
        type=int,
        help="WireGuard peer, identified by the last octet of its internal IP address",
    )

    parser = PluginArgumentParser(
        prog=settings.program_name,
        description="Check plugin to monitor a G3000 gateway through its agent",
        parents=[common],
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"{settings.program_name} v{settings.version}"
    )
    commands = parser.add_subparsers(dest="command", required=True, metavar="command")

    for name, aliases, help_text in (
        ("uptime", ["up", "u"], "device uptime (in s)"),
        ("cpu", ["c"], "CPU usage (in %), evaluated on user + system"),
        ("memory", ["mem", "m"], "memory usage (in %), evaluated on used + cached"),
    ):
        command = commands.add_parser(name, aliases=aliases, help=help_text, parents=[common])
        command.set_defaults(check=name)

    network = commands.add_parser(
        "network", aliases=["net", "n"], help="network usage (in kbps) of a NIC", parents=[common, device]
    )
    directions = network.add_subparsers(dest="direction", required=True, metavar="direction")
    directions.add_parser(
        "upstream", aliases=["up", "u"], help="NIC upstream (in kbps)", parents=[common, device]
    ).set_defaults(check="network-upstream")
    directions.add_parser(
        "downstream", aliases=["down", "d"], help="NIC downstream (in kbps)", parents=[common, device]
    ).set_defaults(check="network-downstream")

    wireguard = commands.add_parser(
        "wireguard", aliases=["wg", "w"], help="WireGuard peer information", parents=[common, peer]
    )
    peer_checks = wireguard.add_subparsers(dest="metric", required=True, metavar="metric")
    peer_checks.add_parser(
        "handshake", aliases=["hs"], help="seconds since the last handshake", parents=[common, peer]
    ).set_defaults(check="wireguard-handshake")
    peer_checks.add_parser(
        "upstream", aliases=["up", "u"], help="peer upstream (in kbps)", parents=[common, peer]
    ).set_defaults(check="wireguard-upstream")
    peer_checks.add_parser(
        "downstream", aliases=["down", "d"], help="peer downstream (in kbps)", parents=[common, peer]
    ).set_defaults(check="wireguard-downstream")

    return parser


def build_arguments(namespace: argparse.Namespace) -> CLIArguments:
    return CLIArguments(
        hostname=getattr(namespace, "hostname", settings.hostname),
        port=getattr(namespace, "port", settings.port),
        timeout=getattr(namespace, "timeout", settings.timeout_seconds),
        warning=getattr(namespace, "warning", None),
        critical=getattr(namespace, "critical", None),
        device=getattr(namespace, "device", None),
        peer=getattr(namespace, "peer", None),
        verbose=getattr(namespace, "verbose", False),
    )


def _configure_logging(verbose: bool) -> None:
    # stdout carries the plugin line only, diagnostics go to stderr
    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format="%(levelname)s %(name)s %(message)s")


def main(argv: Sequence[str] | None = None, *, transport: httpx.BaseTransport | None = None) -> int:
    namespace = build_parser().parse_args(argv)
    args = build_arguments(namespace)
    _configure_logging(args.verbose)

    kind = CHECKS[namespace.check]
    try:
        validate_arguments(args, needs_device=kind.needs_device, needs_peer=kind.needs_peer)
    except UsageError as exc:
        result = CheckResult.unknown(str(exc))
    else:
        logger.debug("Running %s check against %s:%s", namespace.check, args.hostname, args.port)
        result = run_check(namespace.check, args, transport=transport)

    print(result.render())
    return int(result.verdict)


def run() -> None:
    sys.exit(main())
