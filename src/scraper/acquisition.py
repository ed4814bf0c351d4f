#!/usr/bin/env python3
"""
Acquisition entry point for Chat Migrator
Runs one live scrape session for a caller request and reports whatever was
acquired, including partial results when the session ends in error.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from config_manager import ConfigManager
from scraper.adapter import scraped_to_canonical
from scraper.orchestrator import ProgressCallback, ScrapeOrchestrator
from scraper.progress_store import DEFAULT_PROGRESS_KEY, ProgressStore
from scraper.selectors import SelectorSet
from scraper.session_models import (
    ScrapeProgress,
    ScrapeRequest,
    ScrapeResponse,
    ScrapeStatistics,
    ScraperConfig,
)

logger = logging.getLogger(__name__)

def build_progress_store(config_manager: ConfigManager) -> ProgressStore:
    """ProgressStore at the location named by the storage section"""
    config = config_manager.load_config()
    directory = config_manager.get_nested_value(config, 'storage.progress_dir')
    key = config_manager.get_nested_value(config, 'storage.progress_key', DEFAULT_PROGRESS_KEY)
    return ProgressStore(Path(directory) if directory else None, key=key or DEFAULT_PROGRESS_KEY)

async def acquire(request: ScrapeRequest,
                  config_manager: Optional[ConfigManager] = None,
                  store: Optional[ProgressStore] = None,
                  browser_factory=None,
                  on_progress: Optional[ProgressCallback] = None) -> ScrapeResponse:
    """
    Run an acquisition session and build the response

    Session-level errors do not propagate; they are reported in the response
    alongside the conversations acquired before the failure.

    Args:
        request: Caller request (item cap, overrides, resume, retry-failed)
        config_manager: Configuration source (defaults to the user config)
        store: Progress store (defaults to the configured location)
        browser_factory: Async context manager factory yielding a page
        on_progress: Optional progress event callback

    Returns:
        ScrapeResponse

    Raises:
        ValueError: If the request carries unknown config overrides
    """
    config_manager = config_manager or ConfigManager()
    config_data = config_manager.load_config()

    config = ScraperConfig.from_config(config_data).with_overrides(request.config_overrides)
    if request.max_conversations:
        config = config.with_overrides({'max_conversations': request.max_conversations})

    store = store or build_progress_store(config_manager)

    kwargs = {}
    if browser_factory is not None:
        kwargs['browser_factory'] = browser_factory
    orchestrator = ScrapeOrchestrator(
        config,
        store,
        selectors=SelectorSet.from_config(config_data),
        on_progress=on_progress,
        resume=request.resume,
        **kwargs,
    )

    start = time.monotonic()
    error = None
    try:
        if request.retry_failed:
            await orchestrator.retry_failed()
        else:
            await orchestrator.run()
    except Exception as e:
        logger.error(f"Scrape session ended with error: {e}")
        error = str(e)

    duration_ms = int((time.monotonic() - start) * 1000)
    return build_response(orchestrator.progress, duration_ms, error)

def build_response(progress: Optional[ScrapeProgress], duration_ms: int,
                   error: Optional[str] = None) -> ScrapeResponse:
    """Assemble a ScrapeResponse from session progress"""
    if progress is None:
        return ScrapeResponse(
            success=False,
            conversations=[],
            statistics=ScrapeStatistics(duration_ms=duration_ms),
            failed_conversations=[],
            error=error,
        )

    conversations = [scraped_to_canonical(c) for c in progress.scraped_conversations]
    failed = progress.outstanding_failures()

    statistics = ScrapeStatistics(
        total_found=progress.total_found,
        successful=len(conversations),
        failed=len(failed),
        total_messages=sum(c.message_count for c in conversations),
        duration_ms=duration_ms,
    )

    return ScrapeResponse(
        success=error is None,
        conversations=conversations,
        statistics=statistics,
        failed_conversations=failed,
        session_id=progress.session_id,
        is_complete=progress.is_complete,
        error=error,
    )
