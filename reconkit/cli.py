"""
Command-line interface for reconkit.

Runs the GraphQL prober against an endpoint and exposes the offline
helpers (JWT decoding and forging, sensitive data scanning). Results are
printed as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog  # noqa: I001

from reconkit import __version__

if TYPE_CHECKING:
    from reconkit.models import ProbeConfig


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure structlog for CLI output."""
    import logging

    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level),
    )

    # Logs go to stderr so JSON results on stdout stay parseable
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _add_probe_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "endpoint",
        help="GraphQL endpoint URL (must include http:// or https://)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=0.1,
        help="Throttle pause in seconds (default: 0.1)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=1,
        help="Retries for network failures and gateway errors (default: 1)",
    )
    parser.add_argument(
        "--no-verify-ssl",
        action="store_true",
        help="Disable SSL certificate verification",
    )
    parser.add_argument(
        "--auth-token",
        default=None,
        help="Bearer token sent with every probe",
    )
    parser.add_argument(
        "-H", "--header",
        action="append",
        default=[],
        dest="headers",
        metavar="'NAME: VALUE'",
        help="Extra request header (repeatable)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="reconkit",
        description="reconkit - GraphQL schema probing and web session pentest helpers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  reconkit introspect https://api.example.com/graphql
  reconkit enumerate https://api.example.com/graphql --field adminUsers --no-mutations
  reconkit subfields https://api.example.com/graphql user
  reconkit jwt decode eyJhbGciOi...
  reconkit jwt forge-none eyJhbGciOi... --claim role=admin
  reconkit secrets --file page.html --storage storage.json

Exit Codes (introspect):
  2  Full introspection enabled
  1  Partial introspection or field suggestions leak schema details
  0  Nothing exposed
""",
    )

    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path for JSON results (default: stdout)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"reconkit {__version__}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    introspect = commands.add_parser("introspect", help="Test whether introspection is exposed")
    _add_probe_arguments(introspect)
    introspect.add_argument(
        "--no-alternatives",
        action="store_true",
        help="Stop after the full introspection query",
    )

    enumerate_cmd = commands.add_parser("enumerate", help="Enumerate fields without introspection")
    _add_probe_arguments(enumerate_cmd)
    enumerate_cmd.add_argument(
        "--field",
        action="append",
        default=[],
        dest="fields",
        help="Extra query field candidate (repeatable)",
    )
    enumerate_cmd.add_argument(
        "--no-mutations",
        action="store_true",
        help="Skip mutation probing",
    )
    enumerate_cmd.add_argument(
        "--no-subfields",
        action="store_true",
        help="Skip subfield probing of complex fields",
    )
    enumerate_cmd.add_argument(
        "--no-mutation-subfields",
        action="store_true",
        help="Do not execute complex mutations to discover their subfields",
    )

    subfields = commands.add_parser("subfields", help="Probe subfields of one complex field")
    _add_probe_arguments(subfields)
    subfields.add_argument("field", help="Complex field name")
    subfields.add_argument(
        "--mutation",
        action="store_true",
        help="Probe the field as a mutation",
    )

    jwt_cmd = commands.add_parser("jwt", help="Decode or forge JWTs")
    jwt_commands = jwt_cmd.add_subparsers(dest="jwt_command", required=True)
    decode = jwt_commands.add_parser("decode", help="Decode a token without verification")
    decode.add_argument("token")
    forge = jwt_commands.add_parser("forge-none", help="Forge an alg:none variant")
    forge.add_argument("token")
    forge.add_argument(
        "--claim",
        action="append",
        default=[],
        dest="claims",
        metavar="KEY=VALUE",
        help="Claim override, VALUE parsed as JSON when possible (repeatable)",
    )

    secrets = commands.add_parser("secrets", help="Scan files and storage for sensitive data")
    secrets.add_argument(
        "--file",
        action="append",
        default=[],
        dest="files",
        help="Text file to scan, labelled by its name (repeatable)",
    )
    secrets.add_argument(
        "--storage",
        default=None,
        help="JSON file with local_storage, session_storage and cookies",
    )

    return parser


def parse_header(raw: str) -> tuple[str, str]:
    """Split a 'Name: value' header argument."""
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise ValueError(f"Invalid header (expected 'Name: value'): {raw}")
    return name.strip(), value.strip()


def parse_claim(raw: str) -> tuple[str, Any]:
    """Split a KEY=VALUE claim, decoding VALUE as JSON when it parses."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise ValueError(f"Invalid claim (expected KEY=VALUE): {raw}")
    try:
        return key, json.loads(value)
    except ValueError:
        return key, value


def build_config(args: argparse.Namespace, **overrides: Any) -> "ProbeConfig":
    """Build ProbeConfig from probe arguments."""
    from reconkit.models import ProbeConfig

    return ProbeConfig(
        endpoint=args.endpoint,
        timeout=args.timeout,
        delay=args.delay,
        retries=args.retries,
        verify_ssl=not args.no_verify_ssl,
        authorization_token=args.auth_token,
        custom_headers=dict(parse_header(h) for h in args.headers),
        **overrides,
    )


def emit(result: Any, output: str | None) -> None:
    """Write JSON results to a file or stdout."""
    if hasattr(result, "model_dump_json"):
        text = result.model_dump_json(indent=2)
    else:
        text = json.dumps(
            [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in result],
            indent=2,
        )

    if output:
        output_path = Path(output)
        output_path.write_text(text)
        structlog.get_logger(__name__).info("results_saved", path=str(output_path.absolute()))
    else:
        print(text)


async def run_introspect(args: argparse.Namespace) -> int:
    from reconkit.graphql.prober import SchemaProber

    config = build_config(args, try_alternatives=not args.no_alternatives)
    async with SchemaProber.from_config(config) as prober:
        report = await prober.test_introspection(try_alternatives=config.try_alternatives)

    emit(report, args.output)
    if report.introspection_enabled:
        return 2
    if report.partial_introspection or report.field_suggestions:
        return 1
    return 0


async def run_enumerate(args: argparse.Namespace) -> int:
    from reconkit.graphql.prober import SchemaProber

    config = build_config(
        args,
        custom_fields=args.fields,
        test_mutations=not args.no_mutations,
        probe_subfields=not args.no_subfields,
        probe_mutation_subfields=not args.no_mutation_subfields,
    )
    async with SchemaProber.from_config(config) as prober:
        result = await prober.enumerate_schema()

    emit(result, args.output)
    return 0


async def run_subfields(args: argparse.Namespace) -> int:
    from reconkit.graphql.prober import SchemaProber
    from reconkit.models import Operation

    config = build_config(args)
    operation = Operation.MUTATION if args.mutation else Operation.QUERY
    async with SchemaProber.from_config(config) as prober:
        report = await prober.probe_subfields(args.field, operation)

    emit(report, args.output)
    return 0


def run_jwt(args: argparse.Namespace) -> int:
    from reconkit.interceptor.session import InterceptorSession
    from reconkit.tokens import JWTLab, decode_jwt

    if args.jwt_command == "decode":
        decoded = decode_jwt(args.token)
        if decoded is None:
            return 1
        emit(decoded, args.output)
        return 0

    claims = dict(parse_claim(c) for c in args.claims)
    forged = JWTLab(InterceptorSession()).forge_none_variant(args.token, claims)
    if forged is None:
        return 1
    print(forged)
    return 0


def run_secrets(args: argparse.Namespace) -> int:
    from reconkit.models import Severity, StorageSnapshot
    from reconkit.sensitive import scan_sensitive_data

    sources = {Path(f).name: Path(f).read_text(errors="replace") for f in args.files}
    storage = None
    if args.storage:
        storage = StorageSnapshot.model_validate_json(Path(args.storage).read_text())

    matches = scan_sensitive_data(sources, storage=storage)
    emit(matches, args.output)
    return 1 if any(m.severity == Severity.HIGH for m in matches) else 0


async def run_command(args: argparse.Namespace) -> int:
    """
    Execute the selected command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors or findings)
    """
    logger = structlog.get_logger(__name__)

    try:
        match args.command:
            case "introspect":
                return await run_introspect(args)
            case "enumerate":
                return await run_enumerate(args)
            case "subfields":
                return await run_subfields(args)
            case "jwt":
                return run_jwt(args)
            case "secrets":
                return run_secrets(args)
    except ValueError as e:
        # pydantic.ValidationError is a ValueError
        logger.error("configuration_error", error=str(e))
        return 1

    logger.error("unknown_command", command=args.command)
    return 1


def main() -> None:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args()

    configure_logging(verbose=args.verbose, debug=args.debug)

    try:
        exit_code = asyncio.run(run_command(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        logger = structlog.get_logger(__name__)
        logger.error("fatal_error", error=str(e))
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
