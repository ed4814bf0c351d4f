#!/usr/bin/env python3
"""
Scrape Adapter for Chat Migrator
Converts conversations read from the live page into the canonical model
shared with export parsing.
"""

from datetime import datetime, timezone
from typing import List, Optional

from models import CanonicalConversation, CanonicalMessage, ContentKind, MessageRole
from parsers.graph_parser import DEFAULT_TITLE, generate_summary
from scraper.session_models import ScrapedConversation

def scraped_to_canonical(scraped: ScrapedConversation,
                         scraped_at: Optional[datetime] = None) -> CanonicalConversation:
    """
    Convert a scraped conversation to a CanonicalConversation

    The live page shows a single path, so the result never has branches.

    Args:
        scraped: Conversation read from the page
        scraped_at: Fallback for missing timestamps (defaults to now)

    Returns:
        CanonicalConversation
    """
    scraped_at = scraped_at or datetime.now(timezone.utc)
    created = scraped.created_at or scraped.updated_at or scraped_at
    updated = scraped.updated_at or created

    messages: List[CanonicalMessage] = []
    for index, message in enumerate(scraped.messages):
        role = MessageRole.USER if message.role == MessageRole.USER.value else MessageRole.ASSISTANT
        messages.append(CanonicalMessage(
            id=f"{scraped.id}-msg-{index}",
            role=role,
            text=message.content,
            timestamp=message.timestamp or updated,
            content_kind=ContentKind.TEXT,
            code_blocks=list(message.code_blocks) if message.code_blocks else None,
        ))

    return CanonicalConversation(
        id=scraped.id,
        title=scraped.title or DEFAULT_TITLE,
        created=created,
        updated=updated,
        main_thread=messages,
        branches=[],
        summary=generate_summary(messages, []),
    )
