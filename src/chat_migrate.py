#!/usr/bin/env python3
"""
Chat Migrator CLI
Convert ChatGPT conversation history, from a data export or a live browser
session, into canonical JSON conversations.
"""

import argparse
import asyncio
import sys
import logging

from config_manager import ConfigManager
from errors import ChatMigratorError
from export_loader import ExportLoader
from output_formatter import JsonOutputFormatter
from parsers.graph_parser import GraphParser, get_export_stats, parse_export, validate_export
from scraper.acquisition import acquire, build_progress_store
from scraper.session_models import ProgressEvent, ScrapeRequest

VERSION = "0.1.0"

def setup_logging(verbose: bool = False):
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

def print_tos_warning():
    """Print Terms of Service warning"""
    print("\n⚠️  Terms of Service Warning:")
    print("Live scraping drives your own logged-in ChatGPT session for personal use only.")
    print("Prefer the official data export (Settings > Data controls > Export) where possible.")
    print("Use at your own risk and responsibility.\n")

def print_progress(event: ProgressEvent):
    """Print one line per progress event"""
    line = (f"[{event.phase.value}] found={event.conversations_found} "
            f"scraped={event.conversations_scraped} failed={event.conversations_failed}")
    if event.current_conversation:
        line += f" | {event.current_conversation}"
    if event.error:
        line += f" | error: {event.error}"
    print(line)

def run_parse(args, config_manager: ConfigManager) -> int:
    """Parse an export file, archive or URL into canonical conversations"""
    logger = logging.getLogger(__name__)
    config = config_manager.load_config()

    logger.info(f"Loading export from {args.source}...")
    text = ExportLoader(config).load_export_text(args.source)

    data = parse_export(text)
    valid, error = validate_export(data)
    if not valid:
        logger.error(f"Invalid export: {error}")
        return 1

    conversations = GraphParser().process_conversations(data)
    if not conversations:
        logger.error("No conversations could be processed")
        return 1

    formatter = JsonOutputFormatter(config)
    output_path = formatter.write_conversations(conversations, 'export', args.output)

    stats = get_export_stats(conversations)
    print(f"✅ Converted {stats['total_conversations']} conversations!")
    print(f"📁 Saved to: {output_path}")
    print(f"📊 Messages: {stats['total_messages']} "
          f"(with code: {stats['conversations_with_code']}, "
          f"with branches: {stats['conversations_with_branches']})")
    if stats['date_range']:
        print(f"📅 {stats['date_range']['earliest']:%Y-%m-%d} to {stats['date_range']['latest']:%Y-%m-%d}")
    return 0

def run_scrape(args, config_manager: ConfigManager) -> int:
    """Acquire conversations from a live browser session"""
    logger = logging.getLogger(__name__)
    print_tos_warning()

    overrides = {}
    if args.headless:
        overrides['headless'] = True

    request = ScrapeRequest(
        max_conversations=args.max or 0,
        config_overrides=overrides,
        resume=not args.fresh,
        retry_failed=args.retry_failed,
    )
    response = asyncio.run(acquire(request, config_manager=config_manager, on_progress=print_progress))

    formatter = JsonOutputFormatter(config_manager.load_config())
    if response.conversations:
        output_path = formatter.write_conversations(response.conversations, 'scrape', args.output)
        print(f"📁 Saved to: {output_path}")
    report_path = formatter.write_report(response, args.output)
    logger.info(f"Report written to {report_path}")

    stats = response.statistics
    print(f"📊 Scraped {stats.successful}/{stats.total_found} conversations, "
          f"{stats.total_messages} messages, {stats.failed} failed, "
          f"{stats.duration_ms / 1000:.1f}s")

    if response.failed_conversations:
        print("Failed conversations (re-run with --retry-failed):")
        for failure in response.failed_conversations:
            print(f"  - {failure.title}: {failure.error}")

    if not response.success:
        logger.error(f"Scrape ended with error: {response.error}")
        if not response.is_complete:
            print("Progress was saved; run the same command again to resume.")
        return 1

    print("✅ Scrape complete!")
    return 0

def run_status(args, config_manager: ConfigManager) -> int:
    """Show the persisted scrape session"""
    store = build_progress_store(config_manager)
    progress = store.load()
    if progress is None:
        print(f"No saved scrape session at {store.path}")
        return 0

    state = "complete" if progress.is_complete else "in progress"
    print(f"Session: {progress.session_id} ({state})")
    print(f"Scraped: {len(progress.scraped_ids)}/{progress.total_found}")
    print(f"Failed: {len(progress.outstanding_failures())}")
    print(f"Stored at: {store.path}")
    return 0

def run_clear(args, config_manager: ConfigManager) -> int:
    """Discard the persisted scrape session"""
    store = build_progress_store(config_manager)
    store.clear()
    print("Saved scrape progress cleared")
    return 0

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert ChatGPT conversation history into canonical JSON conversations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chat_migrate parse ~/Downloads/chatgpt-export.zip
  chat_migrate parse conversations.json --output ~/Documents/Chats
  chat_migrate scrape --max 20
  chat_migrate scrape --retry-failed
  chat_migrate status
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Chat Migrator v{VERSION}"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", "-c",
        help="Configuration file path (default: ~/.config/chat_migrator/config.yaml)"
    )
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", parents=[common], help="Convert a ChatGPT data export")
    parse_cmd.add_argument("source", help="conversations.json, export ZIP, or http(s) URL")
    parse_cmd.add_argument("--output", "-o", help="Output directory (default: from config)")
    parse_cmd.set_defaults(handler=run_parse)

    scrape_cmd = subparsers.add_parser("scrape", parents=[common], help="Scrape conversations from a live browser session")
    scrape_cmd.add_argument("--max", type=int, help="Maximum number of conversations to scrape")
    scrape_cmd.add_argument("--fresh", action="store_true", help="Discard saved progress and start over")
    scrape_cmd.add_argument("--retry-failed", action="store_true", help="Re-attempt failed conversations of the saved session")
    scrape_cmd.add_argument("--headless", action="store_true", help="Run the browser without a window")
    scrape_cmd.add_argument("--output", "-o", help="Output directory (default: from config)")
    scrape_cmd.set_defaults(handler=run_scrape)

    status_cmd = subparsers.add_parser("status", parents=[common], help="Show the saved scrape session")
    status_cmd.set_defaults(handler=run_status)

    clear_cmd = subparsers.add_parser("clear", parents=[common], help="Discard the saved scrape session")
    clear_cmd.set_defaults(handler=run_clear)

    return parser

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config_manager = ConfigManager(args.config)
        return args.handler(args, config_manager)

    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 1
    except ChatMigratorError as e:
        logger.error(f"{e.error_type}: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

if __name__ == "__main__":
    sys.exit(main())
