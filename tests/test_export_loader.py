#!/usr/bin/env python3
"""
Tests for ExportLoader
"""

import io
import shutil
import tempfile
import unittest
import zipfile
import os
import sys
from pathlib import Path
from unittest import mock

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import requests

from errors import ExportLoadError
from export_loader import ExportLoader, is_url, load_export_text

DOCUMENT = '[{"id": "c1", "mapping": {}}]'

def make_response(status=200, content=b'', encoding='utf-8'):
    response = requests.Response()
    response.status_code = status
    response._content = content
    response.encoding = encoding
    response.url = 'https://example.com/export'
    return response

class TestLocalSources(unittest.TestCase):
    """Test cases for files and archives"""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_json_file(self):
        path = self.temp_dir / 'conversations.json'
        path.write_text(DOCUMENT, encoding='utf-8')

        self.assertEqual(load_export_text(str(path)), DOCUMENT)

    def test_zip_prefers_conversations_json(self):
        path = self.temp_dir / 'export.zip'
        with zipfile.ZipFile(path, 'w') as archive:
            archive.writestr('user.json', '{"email": "x"}')
            archive.writestr('nested/conversations.json', DOCUMENT)
            archive.writestr('chat.html', '<html></html>')

        self.assertEqual(ExportLoader().load_export_text(str(path)), DOCUMENT)

    def test_zip_falls_back_to_first_json(self):
        path = self.temp_dir / 'export.zip'
        with zipfile.ZipFile(path, 'w') as archive:
            archive.writestr('chat.html', '<html></html>')
            archive.writestr('data.json', DOCUMENT)

        self.assertEqual(ExportLoader().load_export_text(str(path)), DOCUMENT)

    def test_zip_without_json(self):
        path = self.temp_dir / 'export.zip'
        with zipfile.ZipFile(path, 'w') as archive:
            archive.writestr('chat.html', '<html></html>')

        with self.assertRaises(ExportLoadError):
            ExportLoader().load_export_text(str(path))

    def test_missing_file(self):
        with self.assertRaises(ExportLoadError) as ctx:
            ExportLoader().load_export_text(str(self.temp_dir / 'nope.json'))
        self.assertEqual(ctx.exception.error_type, 'input_unavailable')

    def test_undecodable_file(self):
        path = self.temp_dir / 'bad.json'
        path.write_bytes(b'\xff\xfe\x00garbage')

        with self.assertRaises(ExportLoadError):
            ExportLoader().load_export_text(str(path))

class TestDownload(unittest.TestCase):
    """Test cases for URL sources"""

    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.delays = []
        self.loader = ExportLoader({'export': {'download_timeout': 5, 'max_retries': 3}},
                                   session=self.session, sleep=self.delays.append)

    def test_is_url(self):
        self.assertTrue(is_url('https://example.com/export.json'))
        self.assertTrue(is_url('http://localhost:8000/c.json'))
        self.assertFalse(is_url('/home/user/conversations.json'))
        self.assertFalse(is_url('ftp://example.com/x'))

    def test_json_download(self):
        self.session.get.return_value = make_response(content=DOCUMENT.encode('utf-8'))

        self.assertEqual(self.loader.load_export_text('https://example.com/export'), DOCUMENT)
        self.session.get.assert_called_once_with('https://example.com/export', timeout=5, allow_redirects=True)

    def test_zip_download(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w') as archive:
            archive.writestr('conversations.json', DOCUMENT)
        self.session.get.return_value = make_response(content=buffer.getvalue())

        self.assertEqual(self.loader.load_export_text('https://example.com/export.zip'), DOCUMENT)

    def test_retries_then_succeeds(self):
        self.session.get.side_effect = [
            requests.ConnectionError('reset'),
            make_response(status=503),
            make_response(content=DOCUMENT.encode('utf-8')),
        ]

        self.assertEqual(self.loader.load_export_text('https://example.com/export'), DOCUMENT)
        self.assertEqual(self.session.get.call_count, 3)
        self.assertEqual(len(self.delays), 2)
        self.assertGreaterEqual(self.delays[1], 2)

    def test_gives_up(self):
        self.session.get.side_effect = requests.Timeout('slow')

        with self.assertRaises(ExportLoadError) as ctx:
            self.loader.load_export_text('https://example.com/export')

        self.assertIn('after 3 attempts', str(ctx.exception))
        self.assertEqual(len(self.delays), 2)

if __name__ == '__main__':
    unittest.main()
