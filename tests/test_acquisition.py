#!/usr/bin/env python3
"""
Tests for the scrape adapter and the acquisition entry point
"""

import shutil
import tempfile
import unittest
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

from config_manager import ConfigManager
from fake_browser import FakeChatGPTPage, browser_factory_for, simple_conversations
from models import CodeBlock, MessageRole
from scraper.acquisition import acquire, build_progress_store
from scraper.adapter import scraped_to_canonical
from scraper.progress_store import ProgressStore
from scraper.session_models import ScrapedConversation, ScrapedMessage, ScrapeRequest

class TestScrapedToCanonical(unittest.TestCase):
    """Test cases for the scrape adapter"""

    def test_conversion(self):
        stamp = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        scraped = ScrapedConversation(
            id='conv-1',
            title='Shell tricks',
            url='https://chatgpt.com/c/conv-1',
            messages=[
                ScrapedMessage(role='user', content='List files', timestamp=stamp),
                ScrapedMessage(role='assistant', content="```bash\nls -la\n```", timestamp=stamp,
                               code_blocks=[CodeBlock(language='bash', code='ls -la')]),
            ],
            updated_at=stamp,
        )

        conversation = scraped_to_canonical(scraped)

        self.assertEqual(conversation.id, 'conv-1')
        self.assertEqual([m.id for m in conversation.main_thread], ['conv-1-msg-0', 'conv-1-msg-1'])
        self.assertEqual([m.role for m in conversation.main_thread], [MessageRole.USER, MessageRole.ASSISTANT])
        self.assertEqual(conversation.branches, [])
        self.assertEqual(conversation.created, stamp)
        self.assertTrue(conversation.summary.has_code)
        self.assertFalse(conversation.summary.has_branches)
        self.assertEqual(conversation.summary.total_messages, 2)

    def test_missing_times_use_scrape_time(self):
        scraped_at = datetime(2024, 6, 1, tzinfo=timezone.utc)
        scraped = ScrapedConversation(id='c', title='', url='u',
                                      messages=[ScrapedMessage(role='assistant', content='hi')])

        conversation = scraped_to_canonical(scraped, scraped_at)

        self.assertEqual(conversation.created, scraped_at)
        self.assertEqual(conversation.updated, scraped_at)
        self.assertEqual(conversation.main_thread[0].timestamp, scraped_at)
        self.assertEqual(conversation.title, 'Untitled Conversation')

class TestAcquire(unittest.IsolatedAsyncioTestCase):
    """Test cases for acquire()"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_manager = ConfigManager(str(Path(self.temp_dir) / 'config.yaml'))
        self.config_manager.update_config({'scraper': {
            'login_timeout': 1,
            'selector_timeout': 0.1,
            'min_delay': 0,
            'max_delay': 0,
            'jitter_range': 0,
            'settle_delay': 0,
            'scroll_settle': 0,
        }})
        self.store = ProgressStore(Path(self.temp_dir) / 'progress', key='acquire-test')

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    async def test_successful_session(self):
        page = FakeChatGPTPage(simple_conversations('conv-a', 'conv-b'))
        events = []

        response = await acquire(ScrapeRequest(), config_manager=self.config_manager, store=self.store,
                                 browser_factory=browser_factory_for(page), on_progress=events.append)

        self.assertTrue(response.success)
        self.assertTrue(response.is_complete)
        self.assertIsNone(response.error)
        self.assertEqual([c.id for c in response.conversations], ['conv-a', 'conv-b'])
        self.assertEqual(response.statistics.total_found, 2)
        self.assertEqual(response.statistics.successful, 2)
        self.assertEqual(response.statistics.failed, 0)
        self.assertEqual(response.statistics.total_messages, 4)
        self.assertGreaterEqual(response.statistics.duration_ms, 0)
        self.assertTrue(events)

        data = response.to_dict()
        self.assertEqual(data['statistics']['successful'], 2)
        self.assertEqual(data['conversations'][0]['mainThread'][0]['id'], 'conv-a-msg-0')

    async def test_item_cap_from_request(self):
        page = FakeChatGPTPage(simple_conversations('conv-a', 'conv-b', 'conv-c'))

        response = await acquire(ScrapeRequest(max_conversations=1), config_manager=self.config_manager,
                                 store=self.store, browser_factory=browser_factory_for(page))

        self.assertEqual([c.id for c in response.conversations], ['conv-a'])
        self.assertEqual(response.statistics.total_found, 3)

    async def test_session_error_returns_partial_response(self):
        page = FakeChatGPTPage(simple_conversations('conv-a'), logged_in=False)

        response = await acquire(ScrapeRequest(), config_manager=self.config_manager, store=self.store,
                                 browser_factory=browser_factory_for(page))

        self.assertFalse(response.success)
        self.assertFalse(response.is_complete)
        self.assertIn('Login timeout', response.error)
        self.assertEqual(response.conversations, [])
        self.assertIsNotNone(response.session_id)

    async def test_failed_items_reported(self):
        page = FakeChatGPTPage(simple_conversations('conv-a', 'conv-b'), broken_ids={'conv-b'})

        response = await acquire(ScrapeRequest(), config_manager=self.config_manager, store=self.store,
                                 browser_factory=browser_factory_for(page))

        self.assertTrue(response.success)
        self.assertEqual([f.id for f in response.failed_conversations], ['conv-b'])
        self.assertEqual(response.statistics.failed, 1)

        page.broken_ids.clear()
        retried = await acquire(ScrapeRequest(retry_failed=True), config_manager=self.config_manager,
                                store=self.store, browser_factory=browser_factory_for(page))

        self.assertEqual([c.id for c in retried.conversations], ['conv-a', 'conv-b'])
        self.assertEqual(retried.failed_conversations, [])

    async def test_unknown_override_rejected(self):
        with self.assertRaises(ValueError):
            await acquire(ScrapeRequest(config_overrides={'no_such_knob': 1}),
                          config_manager=self.config_manager, store=self.store)

    def test_store_location_from_config(self):
        self.config_manager.update_config({'storage': {
            'progress_dir': str(Path(self.temp_dir) / 'elsewhere'),
            'progress_key': 'custom-key',
        }})

        store = build_progress_store(self.config_manager)

        self.assertEqual(store.path, Path(self.temp_dir) / 'elsewhere' / 'custom-key.json')

if __name__ == '__main__':
    unittest.main()
