#!/usr/bin/env python3
"""
Browser Session for Chat Migrator
Scoped acquisition of the Playwright browser and the single page a scrape
session drives. The browser is always closed on exit, including on error.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from playwright.async_api import Page, async_playwright

from scraper.session_models import ScraperConfig

logger = logging.getLogger(__name__)

@asynccontextmanager
async def open_browser_page(config: ScraperConfig) -> AsyncIterator[Page]:
    """
    Launch Chromium and yield one page owned by the caller

    The window is visible by default so the user can log in. With
    ``user_data_dir`` set, a persistent profile is used and a previous login
    survives between runs.

    Args:
        config: Scraper configuration

    Yields:
        Playwright Page
    """
    async with async_playwright() as playwright:
        if config.user_data_dir:
            profile_dir = Path(config.user_data_dir).expanduser()
            profile_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Launching browser with persistent profile {profile_dir}")
            context = await playwright.chromium.launch_persistent_context(
                str(profile_dir),
                headless=config.headless,
                slow_mo=config.slow_mo,
            )
            try:
                page = context.pages[0] if context.pages else await context.new_page()
                page.set_default_timeout(config.timeout_ms)
                yield page
            finally:
                await context.close()
                logger.info("Browser closed")
        else:
            logger.info(f"Launching browser (headless={config.headless})")
            browser = await playwright.chromium.launch(headless=config.headless, slow_mo=config.slow_mo)
            try:
                page = await browser.new_page()
                page.set_default_timeout(config.timeout_ms)
                yield page
            finally:
                await browser.close()
                logger.info("Browser closed")
