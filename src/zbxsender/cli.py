"""
Command line front end for sending metrics to the server.

Examples:

.. code-block:: console

    zbxsender -z zabbix.example.com -s web-01 -k app.requests -o 42
    zbxsender -c sender.yaml -i metrics.txt --clock-now
    zbxsender -z zabbix.example.com -s web-01 --register --host-metadata Linux

An input file holds one metric per line as ``<host> <key> <value>``, or
``<host> <key> <clock> <value>`` with ``--with-timestamps``. Fields may be
quoted like shell words, a host of ``-`` stands for the ``--host`` value,
and blank lines and lines starting with ``#`` are ignored.
"""

import argparse
import asyncio
import logging
import shlex
import sys

from zbxsender import __version__
from zbxsender.config import DEFAULTS, load_config, validate_config
from zbxsender.exceptions import AcknowledgementParseFailure, SenderError
from zbxsender.metric import ItemType, Metric
from zbxsender.sender import ClockPolicy, Sender
from typing import Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2


class InputError(SenderError):
    """ A malformed line in a metrics input file """


def parse_line(
    line: str,
    lineno: int,
    default_host: Optional[str] = None,
    with_timestamps: bool = False,
    item_type: ItemType = ItemType.Trapper,
) -> Optional[Metric]:
    """ Parse one line of an input file into a metric.

    :returns: a Metric, or None for blank and comment lines.

    :raises InputError: if the line is malformed.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    try:
        fields = shlex.split(stripped)
    except ValueError as exc:
        raise InputError(f"line {lineno}: {exc}") from None

    expected = 4 if with_timestamps else 3
    if len(fields) != expected:
        raise InputError(
            f"line {lineno}: expected {expected} fields, got {len(fields)}"
        )

    host, key = fields[0], fields[1]
    if host == "-":
        if not default_host:
            raise InputError(f"line {lineno}: host is '-' but no --host was given")
        host = default_host

    clock = None
    if with_timestamps:
        try:
            clock = int(fields[2])
        except ValueError:
            raise InputError(f"line {lineno}: invalid timestamp {fields[2]!r}") from None

    return Metric(host, key, fields[-1], clock=clock, item_type=item_type)


def read_metrics(
    lines: Iterable[str],
    default_host: Optional[str] = None,
    with_timestamps: bool = False,
    item_type: ItemType = ItemType.Trapper,
) -> List[Metric]:
    """ Parse every line of an input file """
    metrics = []
    for lineno, line in enumerate(lines, start=1):
        metric = parse_line(
            line,
            lineno,
            default_host=default_host,
            with_timestamps=with_timestamps,
            item_type=item_type,
        )
        if metric is not None:
            metrics.append(metric)
    return metrics


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zbxsender", description="Send metrics to a monitoring server"
    )
    parser.add_argument(
        "-c", "--config", metavar="<file>", type=str, help="YAML configuration file"
    )
    parser.add_argument(
        "-z",
        "--zabbix-server",
        metavar="<server>",
        type=str,
        help=f"The server host name or address. Default is '{DEFAULTS['server']}'.",
    )
    parser.add_argument(
        "-p",
        "--port",
        metavar="<port>",
        type=int,
        help=f"The server port. Default is {DEFAULTS['port']}.",
    )
    parser.add_argument(
        "-s", "--host", metavar="<host>", type=str, help="The monitored host name"
    )
    parser.add_argument("-k", "--key", metavar="<key>", type=str, help="The item key")
    parser.add_argument(
        "-o", "--value", metavar="<value>", type=str, help="The item value"
    )
    parser.add_argument(
        "-i",
        "--input-file",
        metavar="<file>",
        type=str,
        help="Read metrics from a file, '-' reads standard input",
    )
    parser.add_argument(
        "-T",
        "--with-timestamps",
        action="store_true",
        help="Input file lines carry a timestamp: <host> <key> <clock> <value>",
    )
    parser.add_argument(
        "--active", action="store_true", help="Send the metrics as active items"
    )
    parser.add_argument(
        "--clock-now",
        action="store_true",
        help="Stamp metrics without a timestamp with the current time",
    )
    parser.add_argument(
        "--register",
        action="store_true",
        help="Autoregister the host given by --host with the server",
    )
    parser.add_argument(
        "--host-metadata",
        metavar="<metadata>",
        type=str,
        help="Host metadata sent with --register",
    )
    parser.add_argument(
        "--connect-timeout", metavar="<seconds>", type=float, help="Connect timeout"
    )
    parser.add_argument(
        "--write-timeout", metavar="<seconds>", type=float, help="Write timeout"
    )
    parser.add_argument(
        "--read-timeout", metavar="<seconds>", type=float, help="Read timeout"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "error"],
        default="error",
        help="Logging level. Default is 'error'.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def make_config(args: argparse.Namespace) -> dict:
    """ Merge command line options over the configuration file """
    config = load_config(args.config) if args.config else dict(DEFAULTS)

    overrides = {
        "server": args.zabbix_server,
        "port": args.port,
        "connect_timeout": args.connect_timeout,
        "write_timeout": args.write_timeout,
        "read_timeout": args.read_timeout,
        "clock": ClockPolicy.Now.value if args.clock_now else None,
        "host": args.host,
        "host_metadata": args.host_metadata,
    }
    config.update({k: v for k, v in overrides.items() if v is not None})
    # Drop unset optional keys before validating.
    return validate_config({k: v for k, v in config.items() if v is not None})


def collect_metrics(args: argparse.Namespace, config: dict) -> List[Metric]:
    item_type = ItemType.Active if args.active else ItemType.Trapper
    default_host = config.get("host")

    if args.input_file:
        if args.input_file == "-":
            return read_metrics(
                sys.stdin, default_host, args.with_timestamps, item_type
            )
        try:
            with open(args.input_file, "r", encoding="utf8") as fd:
                return read_metrics(fd, default_host, args.with_timestamps, item_type)
        except OSError as exc:
            raise InputError(f"Can't read input file {args.input_file}: {exc}") from exc

    if not (default_host and args.key and args.value is not None):
        raise InputError("--host, --key and --value are required without --input-file")
    return [Metric(default_host, args.key, args.value, item_type=item_type)]


def report(label: str, response, error) -> int:
    """ Print the outcome of one request and return its exit status """
    if error is not None:
        print(f"{label}: {error}")
        return EXIT_ERROR
    if response is None:
        return EXIT_OK

    print(f'{label}: response from server: "{response.status}", "{response.info}"')
    try:
        summary = response.summary()
    except AcknowledgementParseFailure as exc:
        print(f"{label}: {exc}")
        return EXIT_ERROR

    print(
        f"{label}: processed: {summary.processed}; failed: {summary.failed}; "
        f"total: {summary.total}; seconds spent: {summary.elapsed.total_seconds():.6f}"
    )
    return EXIT_PARTIAL if summary.failed else EXIT_OK


async def run(args: argparse.Namespace) -> int:
    config = make_config(args)
    sender = Sender.from_config(config)

    if args.register:
        if not config.get("host"):
            raise InputError("--register requires --host")
        await sender.register_host(config["host"], config.get("host_metadata"))
        print(f"Host '{config['host']}' registered")
        return EXIT_OK

    metrics = collect_metrics(args, config)
    if not metrics:
        raise InputError("No metrics to send")

    host, port = sender.addr
    logger.info(f"Sending {len(metrics)} metrics to {host}:{port}")

    result = await sender.send_metrics(metrics)
    statuses = (
        report("active", result.active, result.active_error),
        report("trapper", result.trapper, result.trapper_error),
    )
    if EXIT_ERROR in statuses:
        return EXIT_ERROR
    return max(statuses)


def main(argv: Sequence[str] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s.%(msecs)03.0f [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, args.log_level.upper()),
    )

    try:
        return asyncio.run(run(args))
    except SenderError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
