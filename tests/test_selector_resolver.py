#!/usr/bin/env python3
"""
Tests for SelectorResolver backends and SelectorSet
"""

import unittest
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from errors import SelectorNotFoundError
from scraper.selector_resolver import PageSelectorResolver, SoupSelectorResolver, first_match, select_all
from scraper.selectors import SelectorSet

class FakePage:
    """Stands in for a Playwright page; only listed selectors exist"""

    def __init__(self, present):
        self.present = set(present)
        self.calls = []

    async def wait_for_selector(self, selector, timeout=None, state=None):
        self.calls.append((selector, timeout, state))
        if selector in self.present:
            return object()
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

class TestSoupSelectorResolver(unittest.IsolatedAsyncioTestCase):
    """Test cases for the BeautifulSoup backend"""

    async def test_first_present_candidate_wins(self):
        resolver = SoupSelectorResolver('<html><body><c class="present">x</c></body></html>')

        selector = await resolver.resolve(["a.missing", "b.missing", "c.present"])

        self.assertEqual(selector, "c.present")

    async def test_candidate_order_matters(self):
        resolver = SoupSelectorResolver('<nav><a href="/c/1">one</a></nav><aside>side</aside>')

        self.assertEqual(await resolver.resolve(['aside', 'nav']), 'aside')

    async def test_not_found(self):
        resolver = SoupSelectorResolver('<div></div>')

        self.assertIsNone(await resolver.resolve(['span.none', 'p.none']))
        with self.assertRaises(SelectorNotFoundError) as ctx:
            await resolver.resolve_or_raise('sidebar', ['span.none', 'p.none'])
        self.assertEqual(ctx.exception.role, 'sidebar')
        self.assertEqual(ctx.exception.candidates, ['span.none', 'p.none'])

    async def test_invalid_syntax_is_skipped(self):
        resolver = SoupSelectorResolver('<p class="ok">x</p>')

        self.assertEqual(await resolver.resolve(['p[', 'p.ok']), 'p.ok')

class TestPageSelectorResolver(unittest.IsolatedAsyncioTestCase):
    """Test cases for the Playwright backend"""

    async def test_timeouts_fall_through_to_next_candidate(self):
        page = FakePage(['c.present'])
        resolver = PageSelectorResolver(page)

        selector = await resolver.resolve(["a.missing", "b.missing", "c.present"], timeout=2)

        self.assertEqual(selector, "c.present")
        self.assertEqual([call[0] for call in page.calls], ["a.missing", "b.missing", "c.present"])
        self.assertEqual(page.calls[0][1], 2000)
        self.assertEqual(page.calls[0][2], 'attached')

    async def test_visible_state(self):
        page = FakePage(['main'])
        await PageSelectorResolver(page).resolve(['main'], visible=True)
        self.assertEqual(page.calls[0][2], 'visible')

    async def test_nothing_matches(self):
        resolver = PageSelectorResolver(FakePage([]))
        with self.assertRaises(SelectorNotFoundError):
            await resolver.resolve_or_raise('message container', ['.a', '.b'], timeout=0.1)

class TestSoupHelpers(unittest.TestCase):
    """Test cases for synchronous selection helpers"""

    def test_first_match_and_select_all(self):
        resolver = SoupSelectorResolver('<ul><li class="x">1</li><li class="x">2</li></ul>')

        self.assertEqual(first_match(resolver.root, ['.missing', 'li.x']).get_text(), '1')
        self.assertIsNone(first_match(resolver.root, ['.missing']))
        self.assertEqual(len(select_all(resolver.root, 'li.x')), 2)
        self.assertEqual(select_all(resolver.root, 'li['), [])

class TestSelectorSet(unittest.TestCase):
    """Test cases for selector configuration"""

    def test_defaults(self):
        selectors = SelectorSet()
        self.assertEqual(selectors.conversation_links[0], 'nav a[href^="/c/"]')
        self.assertEqual(selectors.candidates('sidebar')[0], 'nav')

    def test_config_overrides(self):
        config = {'selectors': {
            'sidebar': ['#history'],
            'title': 'h2.title',
            'bogus_role': ['x'],
            'code_block': [],
        }}

        selectors = SelectorSet.from_config(config)

        self.assertEqual(selectors.sidebar, ['#history'])
        self.assertEqual(selectors.title, ['h2.title'])
        self.assertEqual(selectors.code_block, SelectorSet().code_block)

    def test_no_selector_section(self):
        self.assertEqual(SelectorSet.from_config({}), SelectorSet())
        self.assertEqual(SelectorSet.from_config({'selectors': None}), SelectorSet())

if __name__ == '__main__':
    unittest.main()
