#!/usr/bin/env python3
"""
Progress Store for Chat Migrator
Persists ScrapeProgress as one JSON record per key in a local directory so an
interrupted session can resume. Persistence is best-effort: failures are
logged and never interrupt acquisition.
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from scraper.session_models import ScrapeProgress

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_KEY = "chatgpt-scrape-progress"
DEFAULT_PROGRESS_DIR = Path.home() / ".config" / "chat_migrator" / "progress"

class ProgressStore:
    """Key-value store holding one serialized ScrapeProgress"""

    def __init__(self, directory: Optional[Path] = None, key: str = DEFAULT_PROGRESS_KEY):
        self.directory = Path(directory).expanduser() if directory else DEFAULT_PROGRESS_DIR
        if not re.fullmatch(r'[A-Za-z0-9_.-]+', key):
            raise ValueError(f"Invalid progress key: {key!r}")
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def save(self, progress: ScrapeProgress) -> bool:
        """
        Write the progress record atomically

        Returns:
            True if the record was written, False if storage failed
        """
        temp_path = self.path.with_suffix('.tmp')
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(progress.to_dict(), f, ensure_ascii=False)
            temp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"[Progress] Failed to save: {e}")
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass
            return False

        logger.info(f"[Progress] Saved: {len(progress.scraped_ids)}/{progress.total_found} conversations")
        return True

    def load(self) -> Optional[ScrapeProgress]:
        """
        Read the progress record

        Returns:
            ScrapeProgress, or None when absent, unreadable or corrupt
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                progress = ScrapeProgress.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"[Progress] Failed to load {self.path}: {e}")
            return None

        logger.info(f"[Progress] Loaded: {len(progress.scraped_ids)}/{progress.total_found} conversations")
        return progress

    def clear(self) -> None:
        """Remove the progress record if present"""
        try:
            self.path.unlink(missing_ok=True)
            logger.info("[Progress] Cleared")
        except OSError as e:
            logger.error(f"[Progress] Failed to clear: {e}")

    def exists(self) -> bool:
        return self.path.exists()
