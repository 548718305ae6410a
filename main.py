"""
portal-client: command-line access to the license administration portal.

Connection settings come from the mode-keyed config file, overridden by the
global options. Exit codes: 0 success, 1 command failed, 2 invalid
arguments or configuration, 3 authentication failed.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import httpx
import structlog

from config import ModeConfig, __version__, load_config_file, resolve_connection, settings
from criteria import build_criteria
from errors import AuthenticationError, ValidationError
from formatting import format_json, format_key_records, format_metadata, format_result, format_usage
from logging_config import configure_logging
from models import Credentials
from portal_client import PortalClient
from portal_session import open_session

logger = structlog.get_logger()

EXIT_SUCCESS = 0
EXIT_COMMAND_FAILED = 1
EXIT_VALIDATION_ERROR = 2
EXIT_AUTH_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portal-client",
        description="Look up, retrieve, renew and annotate license keys on the portal"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help=f"config file (default: {settings.PORTAL_CONFIG_FILE})")
    parser.add_argument("--mode", help=f"credential block to use (default: {settings.PORTAL_MODE})")
    parser.add_argument("--host", help="portal hostname or URL")
    parser.add_argument("--username", help="portal user name")
    parser.add_argument("--password", help="portal password")
    parser.add_argument("--insecure", action="store_true", default=None,
                        help="do not verify the portal's TLS certificate")
    parser.add_argument("--json", action="store_true", help="print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    lookup = commands.add_parser("lookup", help="find keys by reporting IP or MAC address")
    lookup.add_argument("--ips", help="comma-separated IPv4 addresses")
    lookup.add_argument("--macs", help="comma-separated MAC addresses")
    lookup.add_argument("--active-only", action="store_true", help="hide terminated keys")

    metadata = commands.add_parser("metadata", help="show key details, features and additional keys")
    metadata.add_argument("key_number")

    retrieve = commands.add_parser("retrieve", help="download a key")
    retrieve.add_argument("key_number")
    retrieve.add_argument("--compatible", action="store_true",
                          help="request a key for the previous minor product version")
    retrieve.add_argument("-o", "--output", help="write the key to this file instead of stdout")

    renew = commands.add_parser("renew", help="extend a key's validity")
    renew.add_argument("key_number")

    annotate = commands.add_parser("annotate", help="attach a note to a key")
    annotate.add_argument("key_number")
    annotate.add_argument("message")

    send = commands.add_parser("send", help="send a key by email")
    send.add_argument("key_number")
    send.add_argument("email")
    send.add_argument("--compress", action="store_true", help="send the key as an archive")

    usage = commands.add_parser("usage", help="show reported usage for a key")
    usage.add_argument("key_number")

    return parser


def _require(value: Optional[str], name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} must not be empty")
    return value.strip()


def validate_arguments(args: argparse.Namespace) -> argparse.Namespace:
    """Check per-command inputs before anything is sent to the portal."""
    if hasattr(args, "key_number"):
        args.key_number = _require(args.key_number, "key number")

    if args.command == "lookup":
        if not (args.ips or args.macs):
            raise ValidationError("lookup needs --ips or --macs")
        args.criteria = build_criteria(args.ips, args.macs)
        if args.criteria.is_empty:
            raise ValidationError("no valid IP or MAC address given")
    elif args.command == "annotate":
        args.message = _require(args.message, "message")
    elif args.command == "send":
        args.email = _require(args.email, "email")
    return args


def _emit(args: argparse.Namespace, text: str, value=None):
    print(format_json(value) if args.json and value is not None else text)


def cmd_lookup(client: PortalClient, args: argparse.Namespace) -> int:
    result = client.lookup(args.criteria, active_only=args.active_only)
    if not result.successful:
        _emit(args, format_result(result), result)
        return EXIT_COMMAND_FAILED
    _emit(args, format_key_records(result.keys), result.keys)
    return EXIT_SUCCESS


def cmd_metadata(client: PortalClient, args: argparse.Namespace) -> int:
    result = client.metadata(args.key_number)
    if not result.successful or result.metadata is None:
        _emit(args, format_result(result), result)
        return EXIT_COMMAND_FAILED
    _emit(args, format_metadata(result.metadata), result.metadata)
    return EXIT_SUCCESS


def cmd_retrieve(client: PortalClient, args: argparse.Namespace) -> int:
    result = client.retrieve(args.key_number, compatible=args.compatible)
    if not result.successful or result.key_data is None:
        _emit(args, format_result(result), result)
        return EXIT_COMMAND_FAILED

    if args.output:
        Path(args.output).write_bytes(result.key_data)
        _emit(args, f"Key {result.key_number} written to {args.output}",
              {"key_number": result.key_number, "output": args.output})
    else:
        sys.stdout.flush()
        sys.stdout.buffer.write(result.key_data)
        sys.stdout.buffer.flush()
    return EXIT_SUCCESS


def cmd_renew(client: PortalClient, args: argparse.Namespace) -> int:
    result = client.renew(args.key_number)
    _emit(args, format_result(result), result)
    return EXIT_SUCCESS if result.successful else EXIT_COMMAND_FAILED


def cmd_annotate(client: PortalClient, args: argparse.Namespace) -> int:
    result = client.annotate(args.key_number, args.message)
    _emit(args, format_result(result), result)
    return EXIT_SUCCESS if result.successful else EXIT_COMMAND_FAILED


def cmd_send(client: PortalClient, args: argparse.Namespace) -> int:
    result = client.send_by_email(args.key_number, args.email, compress=args.compress)
    _emit(args, format_result(result), result)
    return EXIT_SUCCESS if result.successful else EXIT_COMMAND_FAILED


def cmd_usage(client: PortalClient, args: argparse.Namespace) -> int:
    # successful means "nothing reported yet"; a usage report arrives as a failure
    result = client.usage(args.key_number)
    _emit(args, format_usage(result), result)
    if result.no_usage_reported or result.has_usage_data:
        return EXIT_SUCCESS
    return EXIT_COMMAND_FAILED


COMMANDS = {
    "lookup": cmd_lookup,
    "metadata": cmd_metadata,
    "retrieve": cmd_retrieve,
    "renew": cmd_renew,
    "annotate": cmd_annotate,
    "send": cmd_send,
    "usage": cmd_usage,
}


def main(argv: Optional[List[str]] = None, transport: Optional[httpx.BaseTransport] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else settings.LOG_LEVEL)

    try:
        validate_arguments(args)
        connection = resolve_connection(
            load_config_file(args.config),
            args.mode or settings.PORTAL_MODE,
            ModeConfig(
                hostname=args.host,
                username=args.username,
                password=args.password,
                insecure=args.insecure
            )
        )
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    credentials = Credentials(username=connection.username, password=connection.password)
    with open_session(connection.hostname, credentials, insecure=connection.insecure, transport=transport) as session:
        try:
            if not session.validate():
                raise AuthenticationError(
                    f"Authentication to {connection.hostname} as {connection.username} failed"
                )
            logger.debug("Running command", command=args.command, host=connection.hostname)
            return COMMANDS[args.command](PortalClient(session), args)
        except AuthenticationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_AUTH_ERROR


if __name__ == "__main__":
    sys.exit(main())
