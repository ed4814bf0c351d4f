#!/usr/bin/env python3
"""
Selector candidates for Chat Migrator live acquisition
Each semantic role maps to an ordered list of CSS selectors, tried in order.
When the site markup drifts, extend or reorder the lists (or override them in
the ``selectors`` section of the config file) instead of touching the scraper.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class SelectorSet:
    """Ordered selector candidates per semantic role"""

    logged_in: List[str] = field(default_factory=lambda: [
        'nav a[href^="/c/"]',
        '[data-testid="profile-button"]',
        '[data-testid="accounts-profile-button"]',
        'nav [data-testid*="history"]',
    ])
    conversation_links: List[str] = field(default_factory=lambda: [
        'nav a[href^="/c/"]',
        'aside a[href^="/c/"]',
        '[data-testid*="conversation-link"]',
        'a[href*="/c/"]',
        '.conversation-item a',
        '[class*="conversation"] a',
    ])
    sidebar: List[str] = field(default_factory=lambda: [
        'nav',
        'aside',
        '[role="navigation"]',
        '[class*="sidebar"]',
        '[class*="Sidebar"]',
        '[data-testid="sidebar"]',
    ])
    message_container: List[str] = field(default_factory=lambda: [
        '[data-message-author-role]',
        '[data-testid="conversation-turn"]',
        '[data-testid="message"]',
        '.message',
        '[class*="Message"]',
        '[class*="ConversationTurn"]',
    ])
    message_content: List[str] = field(default_factory=lambda: [
        '[class*="markdown"]',
        '.prose',
        '[class*="text-base"]',
        '[class*="message-content"]',
        '[data-testid="message-content"]',
    ])
    code_block: List[str] = field(default_factory=lambda: [
        'pre code',
        'code[class*="language-"]',
        '[class*="code-block"] code',
        'pre',
    ])
    title: List[str] = field(default_factory=lambda: [
        '[data-testid="conversation-title"]',
        'title',
        'h1',
    ])

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SelectorSet":
        """
        Build the selector set, applying per-role overrides from config

        Args:
            config: Application config; the ``selectors`` section maps a role
                name to a replacement candidate list

        Returns:
            SelectorSet
        """
        overrides = (config or {}).get('selectors') or {}
        roles = {f.name for f in fields(cls)}
        changes = {}

        for role, candidates in overrides.items():
            if role not in roles:
                logger.warning(f"Ignoring selector override for unknown role: {role}")
                continue
            if isinstance(candidates, str):
                candidates = [candidates]
            if not isinstance(candidates, list) or not candidates:
                logger.warning(f"Ignoring empty selector override for role: {role}")
                continue
            changes[role] = [str(c) for c in candidates]

        if changes:
            logger.debug(f"Selector overrides applied for: {', '.join(sorted(changes))}")
        return replace(cls(), **changes)

    def candidates(self, role: str) -> List[str]:
        """Candidate list for a role name"""
        return list(getattr(self, role))
