"""Command line interface for kroki-embed.

Usage:
    python . url plantuml diagram.puml
    python . render plantuml diagram.puml --link localLink
    python . decode <payload>
    python . config
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from kroki_embed.config import (
    EmbedConfig,
    EnvVar,
    LinkMode,
    OutputFormat,
    get_environment,
    list_environment_variables,
)
from kroki_embed.core import KrokiEmbedError, get_logger, setup_logging
from kroki_embed.encode import decode_diagram
from kroki_embed.render import Renderer, render_sync

logger = get_logger("cli")


def _read_source(path: Path | None) -> str:
    """Read diagram source from a file, or stdin when no file is given."""
    if path is None:
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "diagram_type",
        help="Kroki diagram type (plantuml, vegalite, mermaid, ...)",
    )
    parser.add_argument(
        "file",
        type=Path,
        nargs="?",
        default=None,
        help="Diagram source file (default: stdin)",
    )


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--server",
        default=None,
        help="Kroki server URL (default: $KROKI_URL or https://kroki.io)",
    )
    parser.add_argument(
        "--format",
        "-f",
        dest="output_format",
        choices=[fmt.value for fmt in OutputFormat],
        default=None,
        help="Image format (default: $KROKI_OUTPUT_FORMAT or svg)",
    )
    parser.add_argument(
        "--insert",
        dest="insert_content",
        default=None,
        help="Line of text to insert into the source, e.g. '!theme plain'",
    )
    parser.add_argument(
        "--insert-after",
        dest="insert_after_line",
        type=int,
        default=None,
        help="Line number the inserted text follows (0 = prepend)",
    )


def _config_from_args(args: argparse.Namespace) -> EmbedConfig:
    overrides = {
        key: getattr(args, key, None)
        for key in (
            "server",
            "link",
            "output_format",
            "class_name",
            "public_dir",
            "asset_path",
            "insert_content",
            "insert_after_line",
        )
    }
    return EmbedConfig.from_environment(**overrides)


# =============================================================================
# Commands
# =============================================================================


def cmd_url(args: argparse.Namespace) -> int:
    """Print the Kroki URL for a diagram."""
    config = _config_from_args(args)
    source = _read_source(args.file)
    request = Renderer(config).prepare(source, args.diagram_type)
    print(request.url)
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Render a diagram and print or save the markup."""
    config = _config_from_args(args)
    source = _read_source(args.file)

    logger.info(f"Rendering {args.diagram_type} diagram ({config.link.value})")
    markup = render_sync(source, args.diagram_type, config)

    if args.output:
        args.output.write_text(markup + "\n", encoding="utf-8")
        logger.info(f"Markup saved to {args.output}")
    else:
        print(markup)
    return 0


def cmd_decode(args: argparse.Namespace) -> int:
    """Print the diagram source stored in a Kroki payload or URL."""
    payload = args.payload.rstrip("/").rsplit("/", 1)[-1]
    try:
        source = decode_diagram(payload)
    except ValueError as e:
        logger.error(str(e))
        return 1
    sys.stdout.write(source)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Print the resolved configuration and its environment variables."""
    config = EmbedConfig.from_environment()
    print("Resolved configuration")
    print("=" * 40)
    for key, value in config.as_dict().items():
        print(f"  {key}: {value!r}")

    print("\nEnvironment variables")
    print("=" * 40)
    for var in list_environment_variables(args.category):
        info = var.value
        print(f"  {info.name} = {get_environment(var)!r}")
        print(f"      [{info.category}] {info.description}")
    return 0


# =============================================================================
# Parsers
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    parser = argparse.ArgumentParser(
        prog="kroki-embed",
        description="Turn diagram source into embeddable Kroki image markup",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    url_parser = subparsers.add_parser("url", help="Print the Kroki URL")
    _add_source_arguments(url_parser)
    _add_config_arguments(url_parser)
    url_parser.set_defaults(handler=cmd_url)

    render_parser = subparsers.add_parser("render", help="Render to markup")
    _add_source_arguments(render_parser)
    _add_config_arguments(render_parser)
    render_parser.add_argument(
        "--link",
        "-l",
        choices=[mode.value for mode in LinkMode],
        default=None,
        help="Link mode (default: $KROKI_LINK_MODE or inlineBase64)",
    )
    render_parser.add_argument(
        "--class-name",
        default=None,
        help="CSS class on the generated element (default: kroki)",
    )
    render_parser.add_argument(
        "--public-dir",
        default=None,
        help="Site root for localLink files (default: public)",
    )
    render_parser.add_argument(
        "--asset-path",
        default=None,
        help="Asset directory relative to the site root (default: assert)",
    )
    render_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Write markup to this file instead of stdout",
    )
    render_parser.set_defaults(handler=cmd_render)

    decode_parser = subparsers.add_parser(
        "decode", help="Decode a Kroki payload or URL back to source"
    )
    decode_parser.add_argument("payload", help="Encoded payload or full Kroki URL")
    decode_parser.set_defaults(handler=cmd_decode)

    config_parser = subparsers.add_parser(
        "config", help="Show resolved configuration"
    )
    config_parser.add_argument(
        "--category",
        choices=sorted({var.value.category for var in EnvVar}),
        default=None,
        help="Only list variables of this category",
    )
    config_parser.set_defaults(handler=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging()
    if args.verbose:
        get_logger().setLevel("DEBUG")

    try:
        return args.handler(args)
    except KrokiEmbedError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1


__all__ = ["build_parser", "main"]
