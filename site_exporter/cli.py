#!/usr/bin/env python3
"""
Vault Site Exporter - Main CLI Entry Point

This script provides the command-line interface for exporting a vault of
markdown notes to a static HTML site, rebuilding only what changed since the
previous export.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config_loader import ConfigLoader, ExportOptions, get_nested
from .errors import ExportAbortedError, IndexCorruptError
from .exporters import (
    AttachmentManager,
    IndexStore,
    PageBuilder,
    PathRegistry,
    SiteWriter,
    SourceScanner,
    StaticAssetProvider,
)
from .logger import log_config, log_section, setup_logging
from .orchestrator import CancellationToken, ExportOrchestrator, ExportReport
from .renderers import RendererFactory


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='site-export',
        description="Export a vault of markdown notes to a static HTML site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export using a configuration file
  site-export --config config.yaml

  # Export a vault without a configuration file
  site-export --vault ./notes --output ./site

  # Rebuild every page
  site-export --config config.yaml --full

  # Preview which documents would be rebuilt
  site-export --config config.yaml --dry-run

  # Verbose logging
  site-export --config config.yaml -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--vault',
        type=str,
        help='Vault directory to export (overrides source.vault_path)'
    )

    parser.add_argument(
        '-o', '--output',
        dest='output_dir',
        type=str,
        help='Output directory of the site (overrides export.output_directory)'
    )

    parser.add_argument(
        '--site-url',
        type=str,
        help='Public URL of the site, used for OpenGraph tags'
    )

    parser.add_argument(
        '--incremental',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Skip documents unchanged since the last export'
    )

    parser.add_argument(
        '--full',
        action='store_true',
        help='Force a full export for this run'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List the documents that would be rebuilt without writing anything'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write the export report to this path (.json or .csv)'
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
    """Load, merge and validate the configuration."""
    if args.config:
        config = ConfigLoader.load(args.config)
    else:
        config = ConfigLoader.with_defaults({})

    config = ConfigLoader.merge_with_args(config, args)
    ConfigLoader.validate(config)
    return config


def preview_export(config: dict, options: ExportOptions, documents, force_full: bool, logger: logging.Logger) -> int:
    """Print which documents an export would rebuild."""
    output_dir = Path(get_nested(config, 'export.output_directory'))
    store = IndexStore(output_dir / options.index_file)
    try:
        index = store.load()
    except IndexCorruptError as e:
        logger.warning(f"{e}; a full export would run")
        index = None

    incremental = bool(index is not None and index.existed and options.incremental_export and not force_full)
    builder = PageBuilder(options, PathRegistry())

    print("\n" + "=" * 60)
    print("EXPORT PREVIEW (DRY RUN)")
    print("=" * 60)
    print(f"\nMode: {'incremental' if incremental else 'full'}")
    print(f"Documents: {len(documents)}")
    print("-" * 60)
    rebuilt = 0
    for document in documents:
        target = builder.target_path_for(document)
        changed = not incremental or index.has_changed(document, target)
        rebuilt += int(changed)
        print(f"  {'rebuild ' if changed else 'unchanged'}  {document.path} -> {target}")
    print("-" * 60)
    print(f"{rebuilt} document(s) would be rebuilt")
    print("=" * 60)
    return 0


def run_export(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute one export batch and write the site."""
    options = ExportOptions.from_config(config)
    vault_path = get_nested(config, 'source.vault_path')
    output_dir = Path(get_nested(config, 'export.output_directory'))
    show_progress = bool(get_nested(config, 'logging.progress_bars', True))

    scanner = SourceScanner(
        vault_path,
        include=get_nested(config, 'source.include'),
        exclude=get_nested(config, 'source.exclude'),
        logger=logger
    )
    documents = scanner.scan(show_progress=show_progress and sys.stdout.isatty())

    if args.dry_run:
        return preview_export(config, options, documents, args.full, logger)

    renderer = RendererFactory.create_renderer(config, logger)
    asset_provider = StaticAssetProvider(
        get_nested(config, 'assets.directory'),
        get_nested(config, 'assets.target_directory', 'site-lib')
    )
    attachment_manager = AttachmentManager(vault_path, options)
    orchestrator = ExportOrchestrator(
        options,
        renderer,
        IndexStore(output_dir / options.index_file),
        attachment_manager=attachment_manager,
        asset_provider=asset_provider,
        show_progress=show_progress
    )

    token = CancellationToken()

    def handle_interrupt(signum, frame):
        logger.warning("Interrupt received; stopping after the current document")
        token.cancel()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        result = orchestrator.export(documents, force_full=args.full, cancel_token=token)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.cancelled:
        logger.error("Export cancelled by user; nothing was written")
        return 130

    written = SiteWriter(output_dir, logger).write(result.files)

    report_generator = ExportReport(logger)
    report = report_generator.generate_report(
        result,
        written,
        component_stats={'scanner': scanner.get_stats(), 'attachments': attachment_manager.get_stats()}
    )
    print("\n" + report_generator.format_console_report(report))

    if args.report:
        if args.report.lower().endswith('.csv'):
            report_generator.export_csv_summary(report, args.report)
        else:
            report_generator.export_json_report(report, args.report)

    if result.summary.failed or written['failed']:
        logger.warning(
            f"Export completed with {len(result.summary.failed)} failed document(s) "
            f"and {written['failed']} write error(s)"
        )
        return 1

    logger.info("Export completed successfully")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        logger = setup_logging(verbosity=args.verbose)

        log_section("Vault Site Exporter")
        logger.info(f"Version: {__version__}")

        config = load_configuration(args)

        # Reconfigure logging with config file settings
        logger = setup_logging(
            level=get_nested(config, 'logging.level') if not args.verbose else None,
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file')
        )
        log_config(config)

        return run_export(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except ExportAbortedError as e:
        print(f"ERROR: Export aborted: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
