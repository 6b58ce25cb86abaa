#!/usr/bin/env python3
"""
Feishu Docs Exporter - Main CLI Entry Point

Downloads a Feishu docx document, a whole drive folder (--batch) or a whole
wiki space (--wiki) as Markdown files, with images and attachments saved
next to them.
"""

import argparse
import logging
import sys
from pathlib import Path

from config_loader import ConfigLoader, get_nested
from exporters import DocumentExporter
from fetchers import ApiFetcher, FetcherError
from logger import log_config, log_section, setup_logging
from models import ExportOptions, RenderOptions
from orchestrator import CrawlOrchestrator
from url_parser import URLValidationError

__version__ = '0.1.0'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Download Feishu/Lark documents as Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Download a single document
  python download.py https://example.feishu.cn/docx/doxcnXXXX

  # Download every document below a drive folder
  python download.py --batch -o ./docs https://example.feishu.cn/drive/folder/fldcnXXXX

  # Download a whole wiki space
  python download.py --wiki https://example.feishu.cn/wiki/settings/123456

  # Keep image tokens, dump the raw API response, verbose logging
  python download.py --skip-img-download --dump -vv https://example.feishu.cn/docx/doxcnXXXX
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        'url',
        help='Document, folder or wiki URL'
    )

    parser.add_argument(
        '-o', '--output',
        type=str,
        default='./',
        help='Output directory (default: current directory)'
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        '--batch',
        action='store_true',
        help='Download all documents under a drive folder'
    )
    mode.add_argument(
        '--wiki',
        action='store_true',
        help='Download all documents of a wiki space'
    )

    parser.add_argument(
        '--dump',
        action='store_true',
        help='Dump the JSON API response next to the Markdown file'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help=f'Path to configuration YAML file (default: {ConfigLoader.default_config_path()})'
    )

    parser.add_argument(
        '--app-id',
        type=str,
        help='Feishu app id (overrides config)'
    )

    parser.add_argument(
        '--app-secret',
        type=str,
        help='Feishu app secret (overrides config)'
    )

    parser.add_argument(
        '--concurrency',
        type=int,
        help='Maximum number of concurrent downloads for --batch/--wiki'
    )

    parser.add_argument(
        '--title-as-filename',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Name Markdown files after the document title instead of its token'
    )

    parser.add_argument(
        '--skip-img-download',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Keep image tokens instead of downloading images'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def load_configuration(args: argparse.Namespace) -> dict:
    """Load the config file (explicit, or the per-user default when present) and apply CLI overrides."""
    if args.config:
        config = ConfigLoader.load(args.config)
    else:
        default_path = ConfigLoader.default_config_path()
        if default_path.exists():
            config = ConfigLoader.load(str(default_path))
        else:
            config = ConfigLoader.with_defaults({})

    config = ConfigLoader.merge_with_args(config, args)
    ConfigLoader.validate(config)
    return config


def run_download(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """
    Build the fetcher/exporter stack and run the requested download.

    Returns:
        Exit code
    """
    fetcher = ApiFetcher(config, logger=logger)
    exporter = DocumentExporter(
        fetcher,
        export_options=ExportOptions.from_config(config),
        render_options=RenderOptions.from_config(config),
        logger=logger
    )
    output_dir = Path(args.output)

    try:
        if args.batch or args.wiki:
            crawler = CrawlOrchestrator.from_config(config, fetcher, exporter, logger=logger)
            if args.batch:
                stats = crawler.walk_folder(args.url, output_dir)
            else:
                stats = crawler.walk_wiki(args.url, output_dir)
            logger.info(f"Exported {stats['succeeded']} item(s) to {stats['destination']}")
        else:
            path = exporter.export_url(args.url, output_dir)
            print(f"Downloaded to {path}")

        return 0

    except URLValidationError as e:
        logger.error(str(e))
        return 2
    except FetcherError as e:
        logger.error(f"Download failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Failed to write output: {e}")
        return 1


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        logger = setup_logging(verbosity=args.verbose)

        log_section("Feishu Docs Exporter")
        logger.info(f"Version: {__version__}")

        config = load_configuration(args)

        # Reconfigure logging with config file settings
        logger = setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=None if args.verbose else get_nested(config, 'logging.level')
        )

        log_config(config)

        return run_download(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nDownload interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
