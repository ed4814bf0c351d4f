#!/usr/bin/env python3
"""
Selector Resolver for Chat Migrator
Finds, among ordered candidate selectors, the first one that currently
matches the document. Candidate lists are data (see scraper.selectors); the
resolvers only differ in how a single candidate is probed.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from soupsieve import SelectorSyntaxError

from errors import SelectorNotFoundError

logger = logging.getLogger(__name__)

class SelectorResolver(ABC):
    """Tries candidate selectors in order and returns the first that matches"""

    async def resolve(self, candidates: List[str], timeout: float = 5.0,
                      visible: bool = False) -> Optional[str]:
        """
        Resolve the first matching candidate

        Args:
            candidates: Selectors in order of preference
            timeout: Seconds to wait for each candidate
            visible: Require the matched element to be visible

        Returns:
            The matching selector, or None when no candidate matches
        """
        for selector in candidates:
            if await self._probe(selector, timeout, visible):
                logger.debug(f"[Selectors] Resolved {selector!r}")
                return selector
        return None

    async def resolve_or_raise(self, role: str, candidates: List[str], timeout: float = 5.0,
                               visible: bool = False) -> str:
        """Resolve or raise SelectorNotFoundError for the given role"""
        selector = await self.resolve(candidates, timeout, visible)
        if selector is None:
            raise SelectorNotFoundError(role, candidates)
        logger.info(f"[Selectors] Using {role} selector: {selector}")
        return selector

    @abstractmethod
    async def _probe(self, selector: str, timeout: float, visible: bool) -> bool:
        """Return True if the selector matches at least one element"""
        pass

class PageSelectorResolver(SelectorResolver):
    """Resolves candidates against a live Playwright page"""

    def __init__(self, page):
        self.page = page

    async def _probe(self, selector: str, timeout: float, visible: bool) -> bool:
        try:
            element = await self.page.wait_for_selector(
                selector,
                timeout=timeout * 1000,
                state='visible' if visible else 'attached',
            )
            return element is not None
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            logger.warning(f"Selector {selector!r} could not be evaluated: {e}")
            return False

class SoupSelectorResolver(SelectorResolver):
    """Resolves candidates against a parsed HTML snapshot; timeouts do not apply"""

    def __init__(self, root):
        if isinstance(root, str):
            root = BeautifulSoup(root, 'html.parser')
        self.root = root

    async def _probe(self, selector: str, timeout: float, visible: bool) -> bool:
        return first_match(self.root, [selector]) is not None

def first_match(root: Tag, candidates: List[str]) -> Optional[Tag]:
    """Synchronously return the first element matched by any candidate, in candidate order"""
    for selector in candidates:
        try:
            element = root.select_one(selector)
        except SelectorSyntaxError as e:
            logger.warning(f"Invalid selector {selector!r}: {e}")
            continue
        if element is not None:
            return element
    return None

def select_all(root: Tag, selector: str) -> List[Tag]:
    """All elements matching a selector, or an empty list for invalid syntax"""
    try:
        return root.select(selector)
    except SelectorSyntaxError as e:
        logger.warning(f"Invalid selector {selector!r}: {e}")
        return []
