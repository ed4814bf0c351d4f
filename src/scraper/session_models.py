#!/usr/bin/env python3
"""
Session models for Chat Migrator live acquisition
Scraper configuration, scraped payloads and the persisted ScrapeProgress.
"""

import random
import string
import time
from dataclasses import dataclass, field, fields, replace, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models import CanonicalConversation, CodeBlock

class ScrapePhase(Enum):
    """Phases of a live acquisition session"""
    INITIALIZING = "initializing"
    AWAITING_LOGIN = "awaiting_login"
    ENUMERATING = "enumerating"
    SCRAPING = "scraping"
    COMPLETED = "completed"
    ERROR = "error"

@dataclass(frozen=True)
class ScraperConfig:
    """Retry, pacing and timeout knobs for a scrape session (seconds unless noted)"""
    max_retries: int = 3
    min_delay: float = 1.5
    max_delay: float = 4.0
    backoff_multiplier: float = 1.5
    jitter_range: float = 0.5
    timeout: float = 30.0
    save_progress_interval: int = 5
    login_timeout: float = 120.0
    settle_delay: float = 1.5
    scroll_settle: float = 0.5
    scroll_max_attempts: int = 50
    selector_timeout: float = 5.0
    base_url: str = "https://chatgpt.com"
    headless: bool = False
    slow_mo: int = 100  # milliseconds
    user_data_dir: str = ""  # persistent browser profile, empty = throwaway
    max_conversations: int = 0  # 0 = unlimited

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ScraperConfig":
        """Build from the ``scraper`` section of the application config"""
        section = (config or {}).get('scraper') or {}
        return cls().with_overrides(section, strict=False)

    def with_overrides(self, overrides: Optional[Dict[str, Any]], strict: bool = True) -> "ScraperConfig":
        """
        Return a copy with the given knobs replaced

        Args:
            overrides: Knob name to value
            strict: Reject unknown knob names

        Raises:
            ValueError: If strict and an unknown knob is given
        """
        if not overrides:
            return self

        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown and strict:
            raise ValueError(f"Unknown scraper option(s): {', '.join(unknown)}")

        changes = {}
        for key, value in overrides.items():
            if key not in known or value is None:
                continue
            current = getattr(self, key)
            if isinstance(current, bool):
                changes[key] = _parse_bool(key, value)
            elif isinstance(current, (int, float)):
                changes[key] = type(current)(value)
            else:
                changes[key] = str(value)

        return replace(self, **changes)

    @property
    def timeout_ms(self) -> float:
        return self.timeout * 1000

@dataclass(frozen=True)
class ConversationLink:
    """A conversation summary found in the sidebar"""
    id: str
    title: str
    url: str

@dataclass
class ScrapedMessage:
    """A message as read from the rendered conversation page"""
    role: str
    content: str
    timestamp: Optional[datetime] = None
    code_blocks: Optional[List[CodeBlock]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'role': self.role,
            'content': self.content,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'codeBlocks': [b.to_dict() for b in self.code_blocks] if self.code_blocks is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapedMessage":
        blocks = data.get('codeBlocks')
        return cls(
            role=data['role'],
            content=data['content'],
            timestamp=_parse_datetime(data.get('timestamp')),
            code_blocks=[CodeBlock(**b) for b in blocks] if blocks is not None else None,
        )

@dataclass
class ScrapedConversation:
    """A conversation as read from the rendered page"""
    id: str
    title: str
    url: str
    messages: List[ScrapedMessage] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'url': self.url,
            'messages': [m.to_dict() for m in self.messages],
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapedConversation":
        return cls(
            id=data['id'],
            title=data['title'],
            url=data['url'],
            messages=[ScrapedMessage.from_dict(m) for m in data.get('messages', [])],
            created_at=_parse_datetime(data.get('createdAt')),
            updated_at=_parse_datetime(data.get('updatedAt')),
        )

@dataclass
class FailedConversation:
    """A conversation whose acquisition exhausted its retries"""
    id: str
    title: str
    url: str
    error: str
    retry_count: int = 0
    last_attempt_at: float = 0.0  # epoch seconds

    @property
    def link(self) -> ConversationLink:
        return ConversationLink(id=self.id, title=self.title, url=self.url)

@dataclass
class ScrapeProgress:
    """
    Persisted state of an acquisition session

    ``scraped_ids`` behaves as an append-only set kept in insertion order.
    ``is_complete`` only ever goes from False to True.
    """
    session_id: str
    total_found: int = 0
    scraped_conversations: List[ScrapedConversation] = field(default_factory=list)
    scraped_ids: List[str] = field(default_factory=list)
    failed_conversations: List[FailedConversation] = field(default_factory=list)
    cursor: int = 0
    started_at: float = 0.0  # epoch seconds
    is_complete: bool = False

    @classmethod
    def new_session(cls) -> "ScrapeProgress":
        """Start a fresh session with a unique id"""
        now = time.time()
        suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
        return cls(session_id=f"scrape-{int(now * 1000)}-{suffix}", started_at=now)

    def has_scraped(self, conversation_id: str) -> bool:
        return conversation_id in self.scraped_ids

    def record_success(self, conversation: ScrapedConversation) -> None:
        """Append a scraped conversation; repeated ids are ignored"""
        if self.has_scraped(conversation.id):
            return
        self.scraped_conversations.append(conversation)
        self.scraped_ids.append(conversation.id)

    def record_failure(self, failure: FailedConversation) -> FailedConversation:
        """
        Record a failed conversation

        A conversation that already has a record (from an earlier run of the
        same session) gets that record updated instead of a second entry.
        """
        for existing in self.failed_conversations:
            if existing.id == failure.id:
                existing.error = failure.error
                existing.retry_count += failure.retry_count
                existing.last_attempt_at = failure.last_attempt_at
                return existing
        self.failed_conversations.append(failure)
        return failure

    def outstanding_failures(self) -> List[FailedConversation]:
        """Failed records not since recovered by a successful scrape"""
        return [f for f in self.failed_conversations if not self.has_scraped(f.id)]

    def mark_complete(self) -> None:
        self.is_complete = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sessionId': self.session_id,
            'totalFound': self.total_found,
            'scrapedConversations': [c.to_dict() for c in self.scraped_conversations],
            'scrapedIds': list(self.scraped_ids),
            'failedConversations': [asdict(f) for f in self.failed_conversations],
            'cursor': self.cursor,
            'startedAt': self.started_at,
            'isComplete': self.is_complete,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapeProgress":
        return cls(
            session_id=data['sessionId'],
            total_found=int(data.get('totalFound', 0)),
            scraped_conversations=[ScrapedConversation.from_dict(c) for c in data.get('scrapedConversations', [])],
            scraped_ids=list(data.get('scrapedIds', [])),
            failed_conversations=[FailedConversation(**f) for f in data.get('failedConversations', [])],
            cursor=int(data.get('cursor', 0)),
            started_at=float(data.get('startedAt', 0.0)),
            is_complete=bool(data.get('isComplete', False)),
        )

@dataclass(frozen=True)
class ProgressEvent:
    """Incremental progress notification emitted by the orchestrator"""
    phase: ScrapePhase
    conversations_found: int = 0
    conversations_scraped: int = 0
    conversations_failed: int = 0
    current_conversation: Optional[str] = None
    error: Optional[str] = None

@dataclass(frozen=True)
class ScrapeRequest:
    """Caller request to run an acquisition session"""
    max_conversations: int = 0  # 0 = unlimited
    config_overrides: Optional[Dict[str, Any]] = None
    resume: bool = True
    retry_failed: bool = False

@dataclass(frozen=True)
class ScrapeStatistics:
    total_found: int = 0
    successful: int = 0
    failed: int = 0
    total_messages: int = 0
    duration_ms: int = 0

@dataclass
class ScrapeResponse:
    """Outcome of an acquisition session; partial results are always included"""
    success: bool
    conversations: List[CanonicalConversation]
    statistics: ScrapeStatistics
    failed_conversations: List[FailedConversation]
    session_id: Optional[str] = None
    is_complete: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'conversations': [c.to_dict() for c in self.conversations],
            'statistics': {
                'totalFound': self.statistics.total_found,
                'successful': self.statistics.successful,
                'failed': self.statistics.failed,
                'totalMessages': self.statistics.total_messages,
                'durationMs': self.statistics.duration_ms,
            },
            'failedConversations': [asdict(f) for f in self.failed_conversations],
            'sessionId': self.session_id,
            'isComplete': self.is_complete,
            'error': self.error,
        }

_TRUE_STRINGS = {'true', 'yes', 'on', '1'}
_FALSE_STRINGS = {'false', 'no', 'off', '0', ''}

def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"Scraper option {key} expects a boolean, got {value!r}")

def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
