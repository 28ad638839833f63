"""
Command Line Interface
======================

    epubpack build book.yaml -o out/
    epubpack validate out/My_Book.epub
    epubpack init-config epubpack.yaml
"""

from pathlib import Path
from typing import List, Optional
import argparse
import logging
import sys

from epubpack import __version__
from epubpack.config.settings import BuilderConfig, get_default_config, load_config, save_config
from epubpack.constructor.settings import load_book
from epubpack.errors import EpubPackError
from epubpack.models import ProgressPhase
from epubpack.orchestrator import PackagingOrchestrator
from epubpack.validation.container_validator import EpubContainerValidator

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_progress(percent: float, label: str, phase: ProgressPhase) -> None:
    print(f"[{percent:5.1f}%] {phase.value:<10} {label}")


def cmd_build(args: argparse.Namespace, config: BuilderConfig) -> int:
    settings = load_book(Path(args.book))
    destination = Path(args.output or config.output_dir)

    builder = PackagingOrchestrator(settings, destination_dir=destination, config=config)
    try:
        output_path = builder.save(None if args.quiet else _print_progress)
    finally:
        builder.discard_changes()

    if builder.package_result is not None:
        print(builder.package_result.summary())
    print(f"\n✓ EPUB created: {output_path}")
    return 0


def cmd_validate(args: argparse.Namespace, config: BuilderConfig) -> int:
    epub_path = Path(args.epub)
    if not epub_path.exists():
        print(f"✗ File not found: {epub_path}")
        return 1

    result = EpubContainerValidator().validate_package(epub_path)
    print(result.summary())
    if not result.is_valid:
        for error_type, count in sorted(result.get_errors_by_type().items()):
            print(f"  {error_type}: {count}")
        return 1
    return 0


def cmd_init_config(args: argparse.Namespace, config: BuilderConfig) -> int:
    path = Path(args.path)
    save_config(get_default_config(), path)
    print(f"✓ Default configuration written to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epubpack",
        description="Build EPUB files from YAML/JSON book descriptions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Build a book into ./output:
    epubpack build book.yaml

  Build with a custom configuration and output directory:
    epubpack build book.yaml -c epubpack.yaml -o dist

  Check an archive's container structure:
    epubpack validate dist/My_Book.epub
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", default=None, help="Configuration file (.yaml/.yml/.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    build = subparsers.add_parser("build", help="Build an EPUB from a book description")
    build.add_argument("book", help="Book description file (.yaml/.yml/.json)")
    build.add_argument("-o", "--output", default=None,
                       help="Output directory (default: output_dir from the configuration)")
    build.add_argument("-q", "--quiet", action="store_true", help="Do not print progress")
    build.set_defaults(handler=cmd_build)

    validate = subparsers.add_parser("validate", help="Check the container structure of an EPUB")
    validate.add_argument("epub", help="Path to the .epub file")
    validate.set_defaults(handler=cmd_validate)

    init_config = subparsers.add_parser("init-config", help="Write the default configuration")
    init_config.add_argument("path", help="Destination (.yaml/.yml/.json)")
    init_config.set_defaults(handler=cmd_init_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(Path(args.config)) if args.config else get_default_config()
    except (FileNotFoundError, ValueError) as e:
        print(f"✗ Error: {e}")
        return 1

    _configure_logging("DEBUG" if args.verbose else config.log_level)

    try:
        return args.handler(args, config)
    except (EpubPackError, FileNotFoundError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"\n✗ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
