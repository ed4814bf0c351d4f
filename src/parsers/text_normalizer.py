#!/usr/bin/env python3
"""
Text Normalizer for Chat Migrator
Cleans text pulled out of the live DOM without disturbing line structure.
"""

import html
import re
import unicodedata
import logging

logger = logging.getLogger(__name__)

class TextNormalizer:
    """Unicode and whitespace normalization for scraped message text"""

    INVISIBLE_REPLACEMENTS = {
        '\u200b': '',  # zero-width space
        '\u200c': '',  # zero-width non-joiner
        '\u200d': '',  # zero-width joiner
        '\ufeff': '',  # byte order mark
        '\u00a0': ' ', # non-breaking space
    }

    @staticmethod
    def normalize_text(text: str, preserve_newlines: bool = True, unescape_entities: bool = False) -> str:
        """
        Normalize text extracted from a rendered message

        Args:
            text: Raw text content of an element
            preserve_newlines: Keep single line breaks (needed for code)
            unescape_entities: Decode HTML entities; only for raw markup, since
                parser output is already decoded

        Returns:
            Normalized string
        """
        if not text:
            return ""

        text = str(text).replace('\x00', '')

        try:
            text = unicodedata.normalize('NFC', text)
        except (TypeError, ValueError) as e:
            logger.debug(f"Unicode normalization failed: {e}")

        text = TextNormalizer._clean_problematic_chars(text)
        if unescape_entities:
            text = html.unescape(text)

        if preserve_newlines:
            text = TextNormalizer._normalize_line_whitespace(text)
        else:
            text = ' '.join(text.split())

        return text.strip()

    @staticmethod
    def normalize_code(code: str) -> str:
        """Normalize a code block body, keeping indentation intact"""
        if not code:
            return ""
        code = code.replace('\x00', '').replace('\r\n', '\n').replace('\r', '\n')
        for old, new in TextNormalizer.INVISIBLE_REPLACEMENTS.items():
            code = code.replace(old, new)
        return code.strip('\n').rstrip()

    @staticmethod
    def _clean_problematic_chars(text: str) -> str:
        """Remove control characters and invisible formatting characters"""
        text = ''.join(char for char in text
                       if unicodedata.category(char)[0] != 'C' or char in '\n\r\t ')

        for old, new in TextNormalizer.INVISIBLE_REPLACEMENTS.items():
            text = text.replace(old, new)

        return text

    @staticmethod
    def _normalize_line_whitespace(text: str) -> str:
        """Collapse runs of spaces per line and runs of blank lines"""
        text = re.sub(r'[\u2000-\u200a\u2028\u2029\u202f\u205f\u3000]', ' ', text)
        text = text.replace('\r\n', '\n').replace('\r', '\n')

        lines = [re.sub(r'[ \t]+', ' ', line).strip() for line in text.split('\n')]
        text = '\n'.join(lines)

        # At most one blank line between paragraphs
        return re.sub(r'\n{3,}', '\n\n', text)
