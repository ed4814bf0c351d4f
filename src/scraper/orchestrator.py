#!/usr/bin/env python3
"""
Scrape Orchestrator for Chat Migrator
Drives one live acquisition session through its phases:

    initializing -> awaiting_login -> enumerating -> scraping -> completed
                              (any phase) -> error

The session owns a single browser page for its whole lifetime. Conversations
are scraped one at a time in the order the sidebar listed them. A failing
conversation is recorded and skipped; only session-level failures (login,
enumeration, a closed browser) end the session, and progress is saved before
the error reaches the caller.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from errors import (
    ChatMigratorError,
    ExtractionError,
    InvalidTransitionError,
    LoginTimeoutError,
    RetryExhaustedError,
)
from scraper.browser import open_browser_page
from scraper.dom_parser import extract_conversation_links, parse_conversation
from scraper.progress_store import ProgressStore
from scraper.rate_limiter import RateLimiter
from scraper.retry import RetryExecutor, RetryPolicy
from scraper.selector_resolver import PageSelectorResolver
from scraper.selectors import SelectorSet
from scraper.session_models import (
    ConversationLink,
    FailedConversation,
    ProgressEvent,
    ScrapedConversation,
    ScrapePhase,
    ScrapeProgress,
    ScraperConfig,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

ALLOWED_TRANSITIONS = {
    ScrapePhase.INITIALIZING: {ScrapePhase.AWAITING_LOGIN},
    ScrapePhase.AWAITING_LOGIN: {ScrapePhase.ENUMERATING},
    ScrapePhase.ENUMERATING: {ScrapePhase.SCRAPING},
    ScrapePhase.SCRAPING: {ScrapePhase.COMPLETED},
    ScrapePhase.COMPLETED: set(),
    ScrapePhase.ERROR: set(),
}

SCROLL_HEIGHT_JS = "el => el.scrollHeight"
SCROLL_TO_END_JS = "el => el.scrollTo(0, el.scrollHeight)"

class ScrapeOrchestrator:
    """State machine for a single live acquisition session"""

    def __init__(self, config: ScraperConfig, store: ProgressStore,
                 selectors: Optional[SelectorSet] = None,
                 browser_factory=open_browser_page,
                 on_progress: Optional[ProgressCallback] = None,
                 resume: bool = True,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.store = store
        self.selectors = selectors or SelectorSet()
        self.resume = resume
        self.phase = ScrapePhase.INITIALIZING
        self.progress: Optional[ScrapeProgress] = None

        self._browser_factory = browser_factory
        self._on_progress = on_progress
        self._sleep = sleep
        self._clock = clock
        rng = rng or random.Random()
        self._retry = RetryExecutor(RetryPolicy.from_scraper_config(config), sleep=sleep, rng=rng)
        self._rate_limiter = RateLimiter(config, sleep=sleep, rng=rng)

    # ------------------------------------------------------------------
    # Session entry points
    # ------------------------------------------------------------------

    async def run(self) -> ScrapeProgress:
        """
        Run a full acquisition session

        Returns:
            The final ScrapeProgress (complete)

        Raises:
            LoginTimeoutError: If the user never logs in
            ChatMigratorError: On other session-level failures
        """
        self.progress = self._restore_or_start()
        self._emit()

        try:
            async with self._browser_factory(self.config) as page:
                resolver = PageSelectorResolver(page)
                await self._open_target(page)
                await self._await_login(resolver)

                links = await self._enumerate(page, resolver)
                pending = self._filter_pending(links)

                self._transition(ScrapePhase.SCRAPING)
                await self._scrape_links(page, resolver, pending)
                self._complete()
        except Exception as e:
            self._fail(e)
            raise

        return self.progress

    async def retry_failed(self) -> ScrapeProgress:
        """
        Re-attempt the failed conversations of the persisted session

        Enumeration is skipped; the failed records supply the links. A session
        that was interrupted stays incomplete so a later run() resumes it.

        Returns:
            The updated ScrapeProgress

        Raises:
            ChatMigratorError: If there is no persisted session
        """
        progress = self.store.load()
        if progress is None:
            raise ChatMigratorError("No persisted scrape session to retry")
        self.progress = progress
        was_complete = progress.is_complete

        links = [failure.link for failure in progress.outstanding_failures()]
        if self.config.max_conversations > 0:
            links = links[:self.config.max_conversations]
        logger.info(f"[Retry Failed] {len(links)} conversations to re-attempt")
        self._emit()

        try:
            async with self._browser_factory(self.config) as page:
                resolver = PageSelectorResolver(page)
                await self._open_target(page)
                await self._await_login(resolver)

                self._transition(ScrapePhase.SCRAPING)
                await self._scrape_links(page, resolver, links, base_index=0)
                if was_complete:
                    self._complete()
                else:
                    self._transition(ScrapePhase.COMPLETED)
                    self.store.save(self.progress)
                    logger.info("[Retry Failed] Done; session is still incomplete and will resume on the next run")
        except Exception as e:
            self._fail(e)
            raise

        return self.progress

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _restore_or_start(self) -> ScrapeProgress:
        if not self.resume:
            self.store.clear()
        else:
            restored = self.store.load()
            if restored is not None and not restored.is_complete:
                logger.info(f"[Resume] Found existing progress for {restored.session_id}, resuming...")
                return restored

        progress = ScrapeProgress.new_session()
        logger.info(f"[Start] Starting new scrape session {progress.session_id}")
        return progress

    async def _open_target(self, page) -> None:
        async def navigate():
            await page.goto(self.config.base_url, wait_until='domcontentloaded',
                            timeout=self.config.timeout_ms)

        await self._retry.run(navigate, f"Open {self.config.base_url}")
        self._transition(ScrapePhase.AWAITING_LOGIN)

    async def _await_login(self, resolver: PageSelectorResolver) -> None:
        """Wait, once and for the whole login bound, for any logged-in marker"""
        logger.info("Waiting for login... Please log in to ChatGPT in the browser window")
        marker = ', '.join(self.selectors.logged_in)
        found = await resolver.resolve([marker], timeout=self.config.login_timeout)
        if found is None:
            raise LoginTimeoutError(
                f"Login timeout after {self.config.login_timeout:.0f}s. "
                "Please make sure you are logged in to ChatGPT."
            )
        logger.info("Login detected! Starting to collect conversations...")
        self._transition(ScrapePhase.ENUMERATING)

    async def _enumerate(self, page, resolver: PageSelectorResolver) -> List[ConversationLink]:
        async def find_links():
            sidebar = await resolver.resolve_or_raise(
                'sidebar', self.selectors.sidebar, timeout=self.config.selector_timeout)
            await self._scroll_to_end(page, sidebar)

            link_selector = await resolver.resolve_or_raise(
                'conversation links', self.selectors.conversation_links,
                timeout=self.config.selector_timeout)
            html = await page.content()
            return extract_conversation_links(html, link_selector, self.config.base_url)

        links = await self._retry.run(find_links, "Find conversation links")
        self.progress.total_found = len(links)
        logger.info(f"[Found] {len(links)} conversations")
        self._emit()
        return links

    async def _scroll_to_end(self, page, sidebar_selector: str) -> int:
        """Scroll the virtualized list until its height stops growing"""
        previous_height = 0
        current_height = await page.eval_on_selector(sidebar_selector, SCROLL_HEIGHT_JS)
        attempts = 0

        while current_height > previous_height and attempts < self.config.scroll_max_attempts:
            previous_height = current_height
            await page.eval_on_selector(sidebar_selector, SCROLL_TO_END_JS)
            await self._sleep(self.config.scroll_settle)
            current_height = await page.eval_on_selector(sidebar_selector, SCROLL_HEIGHT_JS)
            attempts += 1

        logger.info(f"[Scroll] Completed after {attempts} attempts")
        return attempts

    def _filter_pending(self, links: List[ConversationLink]) -> List[ConversationLink]:
        pending = [link for link in links if not self.progress.has_scraped(link.id)]
        if len(pending) < len(links):
            logger.info(f"[Resume] Skipping {len(links) - len(pending)} already scraped conversations")

        if self.config.max_conversations > 0:
            pending = pending[:self.config.max_conversations]
        logger.info(f"[Resume] {len(pending)} conversations left to scrape")
        return pending

    async def _scrape_links(self, page, resolver: PageSelectorResolver,
                            links: List[ConversationLink],
                            base_index: Optional[int] = None) -> None:
        """
        Scrape ``links`` in order, recording each outcome

        With no ``base_index`` the positions continue from the saved cursor
        and periodic saves advance it. An explicit ``base_index`` numbers the
        batch on its own and leaves the cursor alone.
        """
        advance_cursor = base_index is None
        if advance_cursor:
            base_index = self.progress.cursor
            total = self.progress.total_found
        else:
            total = base_index + len(links)
        successes = 0

        for i, link in enumerate(links):
            global_index = base_index + i
            if page.is_closed():
                raise ChatMigratorError("Browser page was closed during scraping")

            logger.info(f"[Scraping] {global_index + 1}/{total}: {link.title}")
            self._emit(current=link.title)

            try:
                conversation = await self._retry.run(
                    lambda link=link: self._scrape_conversation(page, resolver, link),
                    f"Scrape conversation: {link.title}",
                )
            except Exception as e:
                attempts = e.attempts if isinstance(e, RetryExhaustedError) else 1
                logger.error(f"[Failed] {link.title}: {e}")
                self.progress.record_failure(FailedConversation(
                    id=link.id,
                    title=link.title,
                    url=link.url,
                    error=str(e),
                    retry_count=attempts,
                    last_attempt_at=self._clock(),
                ))
            else:
                self.progress.record_success(conversation)
                successes += 1
                logger.info(f"[Success] Scraped {len(conversation.messages)} messages")

                if successes % max(1, self.config.save_progress_interval) == 0:
                    if advance_cursor:
                        self.progress.cursor = global_index + 1
                    self.store.save(self.progress)

            self._emit(current=link.title)

            if i < len(links) - 1:
                await self._rate_limiter.wait(global_index)

    async def _scrape_conversation(self, page, resolver: PageSelectorResolver,
                                   link: ConversationLink) -> ScrapedConversation:
        await page.goto(link.url, wait_until='networkidle', timeout=self.config.timeout_ms)
        await self._sleep(self.config.settle_delay)

        message_selector = await resolver.resolve_or_raise(
            'message container', self.selectors.message_container,
            timeout=self.config.selector_timeout, visible=True)

        html = await page.content()
        scraped_at = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        conversation = parse_conversation(html, link, message_selector, self.selectors, scraped_at)

        if not conversation.messages:
            raise ExtractionError(f"No messages extracted from conversation: {link.title}")
        return conversation

    def _complete(self) -> None:
        self.progress.cursor = max(self.progress.cursor, self.progress.total_found)
        self.progress.mark_complete()
        self._transition(ScrapePhase.COMPLETED)
        self.store.save(self.progress)

        logger.info("[Complete] Scraping finished!")
        logger.info(f"[Stats] Successfully scraped: {len(self.progress.scraped_ids)}/{self.progress.total_found}")
        logger.info(f"[Stats] Failed: {len(self.progress.outstanding_failures())}")

    def _fail(self, error: Exception) -> None:
        logger.error(f"[Error] Scraping failed in phase {self.phase.value}: {error}")
        if self.progress is not None:
            self.store.save(self.progress)
        self.phase = ScrapePhase.ERROR
        self._emit(error=str(error))

    # ------------------------------------------------------------------
    # State and events
    # ------------------------------------------------------------------

    def _transition(self, target: ScrapePhase) -> None:
        if target not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransitionError(f"Cannot move from {self.phase.value} to {target.value}")
        logger.debug(f"Phase {self.phase.value} -> {target.value}")
        self.phase = target
        self._emit()

    def _emit(self, current: Optional[str] = None, error: Optional[str] = None) -> None:
        if self._on_progress is None or self.progress is None:
            return

        event = ProgressEvent(
            phase=self.phase,
            conversations_found=self.progress.total_found,
            conversations_scraped=len(self.progress.scraped_ids),
            conversations_failed=len(self.progress.outstanding_failures()),
            current_conversation=current,
            error=error,
        )
        try:
            self._on_progress(event)
        except Exception as e:
            logger.warning(f"Progress callback raised: {e}")
