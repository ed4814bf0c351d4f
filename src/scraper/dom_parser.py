#!/usr/bin/env python3
"""
DOM Parser for Chat Migrator
Extracts conversation links and messages from snapshots of the rendered
ChatGPT page using BeautifulSoup.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag

from models import CodeBlock
from parsers.text_normalizer import TextNormalizer
from scraper.selector_resolver import first_match, select_all
from scraper.selectors import SelectorSet
from scraper.session_models import ConversationLink, ScrapedConversation, ScrapedMessage

logger = logging.getLogger(__name__)

CONVERSATION_ID_PATTERN = re.compile(r'/c/([A-Za-z0-9-]+)')
LANGUAGE_CLASS_PATTERN = re.compile(r'language-([\w+#-]+)')
TITLE_SUFFIXES = (' | ChatGPT', ' - ChatGPT')

BLOCK_TAGS = {
    'p', 'div', 'li', 'ul', 'ol', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'blockquote', 'tr', 'table', 'section', 'article', 'hr',
}

VALID_ROLES = ('user', 'assistant')

def extract_conversation_links(html: str, link_selector: str, base_url: str) -> List[ConversationLink]:
    """
    Collect distinct conversation links from the sidebar

    Args:
        html: Page HTML after the sidebar has been exhausted
        link_selector: Resolved conversation link selector
        base_url: Origin relative hrefs are resolved against

    Returns:
        Links in document order, first occurrence of each id kept
    """
    soup = BeautifulSoup(html, 'html.parser')
    links = []
    seen = set()

    for element in select_all(soup, link_selector):
        href = element.get('href')
        if not href:
            continue

        match = CONVERSATION_ID_PATTERN.search(href)
        if not match:
            continue

        conversation_id = match.group(1)
        if conversation_id in seen:
            continue
        seen.add(conversation_id)

        title = ' '.join(element.get_text().split()) or 'Untitled'
        links.append(ConversationLink(id=conversation_id, title=title, url=urljoin(base_url, href)))

    logger.debug(f"Extracted {len(links)} distinct conversation links")
    return links

def parse_conversation(html: str, link: ConversationLink, message_selector: str,
                       selectors: SelectorSet, scraped_at: Optional[datetime] = None) -> ScrapedConversation:
    """
    Extract the messages of a rendered conversation page

    Args:
        html: Page HTML
        link: The conversation being scraped
        message_selector: Resolved message container selector
        selectors: Candidate lists for content and code sub-elements
        scraped_at: Timestamp stamped on messages (defaults to now)

    Returns:
        ScrapedConversation, possibly with no messages
    """
    scraped_at = scraped_at or datetime.now(timezone.utc)
    soup = BeautifulSoup(html, 'html.parser')
    messages = []

    for element in select_all(soup, message_selector):
        role = determine_message_role(element)
        if role not in VALID_ROLES:
            continue

        content_element = first_match(element, selectors.message_content) or element
        code_blocks = extract_code_blocks(content_element, selectors.code_block)
        text = render_text(content_element)

        if not text:
            continue

        messages.append(ScrapedMessage(
            role=role,
            content=text,
            timestamp=scraped_at,
            code_blocks=code_blocks or None,
        ))

    title = link.title if link.title and link.title != 'Untitled' else extract_title(soup, selectors)
    logger.debug(f"Parsed {len(messages)} messages from {link.url}")

    return ScrapedConversation(
        id=link.id,
        title=title or 'Untitled',
        url=link.url,
        messages=messages,
        updated_at=scraped_at,
    )

def determine_message_role(element: Tag) -> Optional[str]:
    """
    Determine the author role of a message container

    Checks the element's own role attribute, then a descendant carrying it,
    then class hints.
    """
    role = element.get('data-message-author-role')
    if not role:
        marked = element.find(attrs={'data-message-author-role': True})
        if marked is not None:
            role = marked.get('data-message-author-role')

    if role:
        return str(role).lower()

    class_str = ' '.join(element.get('class', [])).lower()
    if 'user' in class_str:
        return 'user'
    if 'assistant' in class_str or 'agent' in class_str:
        return 'assistant'

    return None

def extract_code_blocks(content_element: Tag, code_selectors: List[str]) -> List[CodeBlock]:
    """Code blocks from the first code selector that yields any, in selector order"""
    for selector in code_selectors:
        blocks = []
        for code_element in select_all(content_element, selector):
            code = TextNormalizer.normalize_code(code_element.get_text())
            if code.strip():
                blocks.append(CodeBlock(language=detect_language(code_element), code=code))
        if blocks:
            return blocks
    return []

def detect_language(code_element: Tag) -> str:
    """Language from a ``language-*`` class on the element or its parent"""
    candidates = [code_element]
    if isinstance(code_element.parent, Tag):
        candidates.append(code_element.parent)

    for candidate in candidates:
        match = LANGUAGE_CLASS_PATTERN.search(' '.join(candidate.get('class', [])))
        if match:
            return match.group(1)
    return 'plaintext'

def render_text(content_element: Tag) -> str:
    """
    Text of a message with code regions kept as fenced blocks

    Code is substituted after normalization so its indentation survives.
    """
    fragment = BeautifulSoup(str(content_element), 'html.parser')
    fenced: List[Tuple[str, str]] = []

    for index, pre in enumerate(fragment.find_all('pre')):
        code_element = pre.find('code') or pre
        fenced.append((detect_language(code_element), TextNormalizer.normalize_code(code_element.get_text())))
        pre.replace_with(NavigableString(f"\n@@CODE_BLOCK_{index}@@\n"))

    for br in fragment.find_all('br'):
        br.replace_with(NavigableString('\n'))
    for block in fragment.find_all(sorted(BLOCK_TAGS)):
        block.append(NavigableString('\n'))

    text = TextNormalizer.normalize_text(fragment.get_text())

    for index, (language, code) in enumerate(fenced):
        text = text.replace(f"@@CODE_BLOCK_{index}@@", f"```{language}\n{code}\n```")

    return text.strip()

def extract_title(soup: BeautifulSoup, selectors: SelectorSet) -> Optional[str]:
    """Conversation title from the page, without the site suffix"""
    element = first_match(soup, selectors.title)
    if element is None:
        return None

    title = ' '.join(element.get_text().split())
    for suffix in TITLE_SUFFIXES:
        if title.endswith(suffix):
            title = title[:-len(suffix)].strip()
    if title in ('', 'ChatGPT'):
        return None
    return title
