#!/usr/bin/env python3
"""
Output Formatter for Chat Migrator
Serializes canonical conversations and acquisition reports to JSON files.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from models import CanonicalConversation
from scraper.session_models import ScrapeResponse

logger = logging.getLogger(__name__)

DEFAULT_FILENAME_TEMPLATE = 'conversations_{source}_{timestamp}.json'
DEFAULT_REPORT_TEMPLATE = 'scrape_report_{timestamp}.json'

class JsonOutputFormatter:
    """Formats canonical conversations as JSON documents"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        output = config.get('output', {}) or {}
        self.indent = output.get('indent', 2)
        self.filename_template = output.get('filename_template', DEFAULT_FILENAME_TEMPLATE)
        self.report_template = output.get('report_template', DEFAULT_REPORT_TEMPLATE)
        self.default_directory = output.get('directory')

    def format_conversations(self, conversations: List[CanonicalConversation]) -> str:
        """
        Format conversations as a JSON array

        Args:
            conversations: Canonical conversations to serialize

        Returns:
            JSON text with ISO-8601 instants
        """
        logger.info(f"Formatting {len(conversations)} conversations")
        return json.dumps([c.to_dict() for c in conversations], indent=self.indent, ensure_ascii=False)

    def format_report(self, response: ScrapeResponse) -> str:
        """Format an acquisition response, conversations included"""
        return json.dumps(response.to_dict(), indent=self.indent, ensure_ascii=False)

    def generate_filename(self, source: str, timestamp: Optional[datetime] = None) -> str:
        """
        Build an output filename from the template

        Args:
            source: Where the conversations came from ('export' or 'scrape')
            timestamp: Time stamped into the name (defaults to now)
        """
        return self._render(self.filename_template, DEFAULT_FILENAME_TEMPLATE, timestamp, source=source)

    def generate_report_filename(self, timestamp: Optional[datetime] = None) -> str:
        """Build an acquisition report filename from the report template"""
        return self._render(self.report_template, DEFAULT_REPORT_TEMPLATE, timestamp)

    def _render(self, template: str, default: str, timestamp: Optional[datetime], **fields) -> str:
        stamp = (timestamp or datetime.now()).strftime('%Y%m%d_%H%M%S')
        try:
            return template.format(timestamp=stamp, **fields)
        except (KeyError, IndexError, ValueError) as e:
            logger.warning(f"Invalid filename template {template!r}: {e}")
            return default.format(timestamp=stamp, **fields)

    def resolve_directory(self, output_dir: Optional[str] = None) -> Path:
        """Output directory from the argument, else config, else the working directory"""
        directory = output_dir or self.default_directory or '.'
        return Path(directory).expanduser()

    def write_conversations(self, conversations: List[CanonicalConversation], source: str,
                            output_dir: Optional[str] = None) -> Path:
        """
        Write conversations to a new file in the output directory

        Returns:
            Path of the written file
        """
        path = self.resolve_directory(output_dir) / self.generate_filename(source)
        return self._write(path, self.format_conversations(conversations))

    def write_report(self, response: ScrapeResponse, output_dir: Optional[str] = None) -> Path:
        """
        Write an acquisition report to a new file in the output directory

        Returns:
            Path of the written file
        """
        path = self.resolve_directory(output_dir) / self.generate_report_filename()
        return self._write(path, self.format_report(response))

    def _write(self, path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
        logger.info(f"Saved output to {path}")
        return path
