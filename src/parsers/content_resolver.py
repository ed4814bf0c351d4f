#!/usr/bin/env python3
"""
Content Resolver for Chat Migrator
Resolves the text, code blocks and image references of raw message content.
"""

import re
import logging
from typing import Any, List

from models import CodeBlock, ContentKind

logger = logging.getLogger(__name__)

# ``` + optional language tag, body, closing ```
FENCE_PATTERN = re.compile(r'```([\w+#.-]*)[^\S\n]*\n(.*?)```', re.DOTALL)

DEFAULT_CODE_LANGUAGE = 'plaintext'

def extract_text_content(content: Any) -> str:
    """
    Resolve the text of a message content payload

    Resolution order: string entries of ``parts`` joined by newline, then the
    ``text`` field, then the ``result`` field, then the content itself when it
    is a plain string. Anything else resolves to an empty string.

    Args:
        content: Raw ``content`` value of an export message

    Returns:
        Resolved text (possibly empty)
    """
    if isinstance(content, dict):
        parts = content.get('parts')
        if isinstance(parts, list):
            return '\n'.join(part for part in parts if isinstance(part, str))

        text = content.get('text')
        if isinstance(text, str) and text:
            return text

        result = content.get('result')
        if isinstance(result, str) and result:
            return result

        return ''

    if isinstance(content, str):
        return content

    return ''

def extract_code_blocks(text: str) -> List[CodeBlock]:
    """
    Lift fenced code regions out of resolved text

    The text itself is left untouched; callers keep it as-is.

    Args:
        text: Resolved message text

    Returns:
        Code blocks in order of appearance
    """
    if not text or '```' not in text:
        return []

    blocks = []
    for match in FENCE_PATTERN.finditer(text):
        language = match.group(1) or DEFAULT_CODE_LANGUAGE
        blocks.append(CodeBlock(language=language, code=match.group(2).strip()))

    return blocks

def extract_message_code_blocks(content: Any, text: str, kind: ContentKind) -> List[CodeBlock]:
    """Code blocks for a message, treating unfenced ``code`` content as one block"""
    blocks = extract_code_blocks(text)
    if blocks or kind != ContentKind.CODE or not text.strip():
        return blocks

    language = DEFAULT_CODE_LANGUAGE
    if isinstance(content, dict) and isinstance(content.get('language'), str):
        language = content['language'] or DEFAULT_CODE_LANGUAGE
        if language == 'unknown':
            language = DEFAULT_CODE_LANGUAGE

    return [CodeBlock(language=language, code=text.strip())]

def extract_image_references(content: Any) -> List[str]:
    """
    Collect unresolved asset pointers from multimodal parts

    Args:
        content: Raw ``content`` value of an export message

    Returns:
        Asset pointer strings, in order of appearance
    """
    if not isinstance(content, dict):
        return []

    parts = content.get('parts')
    if not isinstance(parts, list):
        return []

    references = []
    for part in parts:
        if isinstance(part, dict):
            pointer = part.get('asset_pointer')
            if isinstance(pointer, str) and pointer:
                references.append(pointer)

    if references:
        logger.debug(f"Found {len(references)} unresolved image reference(s)")
    return references
