#!/usr/bin/env python3
"""
Export Loader for Chat Migrator
Reads the conversations document of a ChatGPT data export from a JSON file,
an export ZIP archive, or an http(s) URL.
"""

import io
import logging
import random
import time
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from errors import ExportLoadError

logger = logging.getLogger(__name__)

CONVERSATIONS_FILENAME = 'conversations.json'

def is_url(source: str) -> bool:
    """Check if the source is an http(s) URL"""
    result = urlparse(source)
    return result.scheme in ('http', 'https') and bool(result.netloc)

class ExportLoader:
    """Loads export text from local files, archives or URLs"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None,
                 sleep=time.sleep):
        export_config = (config or {}).get('export', {}) or {}
        self.timeout = export_config.get('download_timeout', 60)
        self.max_retries = max(1, int(export_config.get('max_retries', 3)))
        self.session = session or requests.Session()
        self._sleep = sleep

    def load_export_text(self, source: str) -> str:
        """
        Load the conversations document as text

        Args:
            source: Path to a .json or .zip file, or an http(s) URL

        Returns:
            The JSON document text

        Raises:
            ExportLoadError: If the source cannot be read
        """
        if is_url(source):
            return self._download(source)

        path = Path(source).expanduser()
        if not path.exists():
            raise ExportLoadError(f"Export file not found: {path}")

        if zipfile.is_zipfile(path):
            return self._read_zip(path, path)
        return self._read_json_file(path)

    def _read_json_file(self, path: Path) -> str:
        try:
            text = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise ExportLoadError(f"Failed to read {path}: {e}") from e

        logger.info(f"Read export file {path} ({len(text)} characters)")
        return text

    def _read_zip(self, archive_source, label) -> str:
        """Read conversations.json anywhere in the archive, else its first JSON member"""
        try:
            with zipfile.ZipFile(archive_source) as archive:
                members = [name for name in archive.namelist() if name.lower().endswith('.json')]
                if not members:
                    raise ExportLoadError(f"No JSON files found in archive {label}")

                member = next(
                    (name for name in members if Path(name).name.lower() == CONVERSATIONS_FILENAME),
                    members[0],
                )
                logger.info(f"Reading {member} from {label}")
                return archive.read(member).decode('utf-8')

        except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as e:
            raise ExportLoadError(f"Failed to read archive {label}: {e}") from e

    def _download(self, url: str) -> str:
        """Fetch the document with retries"""
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Downloading export (attempt {attempt + 1}/{self.max_retries})")
                response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
                response.raise_for_status()

                logger.debug(f"Downloaded {len(response.content)} bytes")
                if response.content[:4] == b'PK\x03\x04':
                    return self._read_zip(io.BytesIO(response.content), url)
                response.encoding = response.encoding or 'utf-8'
                return response.text

            except requests.RequestException as e:
                last_error = e
                logger.warning(f"Attempt {attempt + 1} failed: {e}")
                if attempt < self.max_retries - 1:
                    wait_time = (2 ** attempt) + random.uniform(0, 1)
                    logger.debug(f"Waiting {wait_time:.1f} seconds before retry...")
                    self._sleep(wait_time)

        raise ExportLoadError(f"Failed to download export after {self.max_retries} attempts: {last_error}")


def load_export_text(source: str, config: Optional[Dict[str, Any]] = None) -> str:
    """Load the conversations document from a file, archive or URL"""
    return ExportLoader(config).load_export_text(source)
