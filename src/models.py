#!/usr/bin/env python3
"""
Data models for Chat Migrator
Raw export graph types and the canonical linear conversation model.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum

class MessageRole(Enum):
    """Canonical message role enumeration"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

class AuthorRole(Enum):
    """Author roles found in raw exports"""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"

class ContentKind(Enum):
    """Content kinds carried by raw export messages"""
    TEXT = "text"
    CODE = "code"
    EXECUTION_OUTPUT = "execution_output"
    MULTIMODAL_TEXT = "multimodal_text"
    TETHER_BROWSING_DISPLAY = "tether_browsing_display"
    TETHER_QUOTE = "tether_quote"
    SYSTEM_ERROR = "system_error"
    MODEL_EDITABLE_CONTEXT = "model_editable_context"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, value: Any) -> "ContentKind":
        """Map a raw content_type string, keeping unrecognized kinds as UNKNOWN"""
        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN

def epoch_to_datetime(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """Convert epoch seconds to an aware UTC datetime, or return default"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return default

# ---------------------------------------------------------------------------
# Raw export model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawMessage:
    """A message payload attached to a raw graph node"""
    id: str
    author_role: str
    content: Any
    create_time: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: str = "") -> "RawMessage":
        author = data.get('author') or {}
        role = author.get('role') if isinstance(author, dict) else None
        metadata = data.get('metadata')
        return cls(
            id=str(data.get('id') or fallback_id),
            author_role=str(role or AuthorRole.ASSISTANT.value),
            content=data.get('content'),
            create_time=data.get('create_time'),
            metadata=metadata if isinstance(metadata, dict) else {},
        )

@dataclass(frozen=True)
class RawNode:
    """A node of the raw conversation graph"""
    id: str
    message: Optional[RawMessage] = None
    parent_id: Optional[str] = None
    child_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, node_id: str, data: Dict[str, Any]) -> "RawNode":
        message_data = data.get('message')
        message = None
        if isinstance(message_data, dict):
            message = RawMessage.from_dict(message_data, fallback_id=node_id)

        children = data.get('children') or []
        if not isinstance(children, list):
            children = []

        parent = data.get('parent')
        return cls(
            id=str(data.get('id') or node_id),
            message=message,
            parent_id=str(parent) if parent is not None else None,
            child_ids=[str(child) for child in children],
        )

@dataclass(frozen=True)
class RawConversation:
    """A conversation as stored in a ChatGPT export document"""
    id: str
    title: Optional[str]
    create_time: Optional[float]
    update_time: Optional[float]
    mapping: Dict[str, RawNode]
    current_node_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawConversation":
        """
        Build a RawConversation from a decoded export entry

        Args:
            data: One element of the export's conversations array

        Returns:
            RawConversation

        Raises:
            ValueError: If the entry is not an object or has no object-typed mapping
        """
        if not isinstance(data, dict):
            raise ValueError(f"Conversation entry must be an object, got {type(data).__name__}")

        raw_mapping = data.get('mapping')
        if not isinstance(raw_mapping, dict):
            raise ValueError(f"Conversation {data.get('id')!r} has no usable mapping")

        mapping = {}
        for node_id, node_data in raw_mapping.items():
            if isinstance(node_data, dict):
                mapping[str(node_id)] = RawNode.from_dict(str(node_id), node_data)

        current = data.get('current_node')
        return cls(
            id=str(data.get('id') or data.get('conversation_id') or ''),
            title=data.get('title'),
            create_time=data.get('create_time'),
            update_time=data.get('update_time'),
            mapping=mapping,
            current_node_id=str(current) if current is not None else None,
        )

# ---------------------------------------------------------------------------
# Canonical model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CodeBlock:
    """A fenced or DOM-recovered code region"""
    language: str
    code: str

    def to_dict(self) -> Dict[str, Any]:
        return {'language': self.language, 'code': self.code}

@dataclass(frozen=True)
class CanonicalMessage:
    """Represents a single message of a linearized conversation"""
    id: str
    role: MessageRole
    text: str
    timestamp: datetime
    content_kind: ContentKind = ContentKind.TEXT
    model: Optional[str] = None
    citations: Optional[List[Dict[str, Any]]] = None
    code_blocks: Optional[List[CodeBlock]] = None
    images: Optional[List[str]] = None
    raw_content_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'role': self.role.value,
            'text': self.text,
            'timestamp': self.timestamp.isoformat(),
            'contentKind': self.raw_content_type or self.content_kind.value,
        }
        if self.model:
            data['model'] = self.model
        if self.citations:
            data['citations'] = self.citations
        if self.code_blocks:
            data['codeBlocks'] = [block.to_dict() for block in self.code_blocks]
        if self.images:
            data['images'] = list(self.images)
        return data

@dataclass(frozen=True)
class Branch:
    """An alternative path diverging from a branch point"""
    id: str
    parent_message_id: str
    messages: List[CanonicalMessage]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'parentMessageId': self.parent_message_id,
            'messages': [message.to_dict() for message in self.messages],
        }

@dataclass(frozen=True)
class ConversationSummary:
    """Derived counts and flags for a canonical conversation"""
    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    has_code: bool = False
    has_images: bool = False
    has_branches: bool = False
    models: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalMessages': self.total_messages,
            'userMessages': self.user_messages,
            'assistantMessages': self.assistant_messages,
            'hasCode': self.has_code,
            'hasImages': self.has_images,
            'hasBranches': self.has_branches,
            'models': list(self.models),
        }

@dataclass(frozen=True)
class CanonicalConversation:
    """Represents a complete linearized conversation"""
    id: str
    title: str
    created: datetime
    updated: datetime
    main_thread: List[CanonicalMessage]
    branches: List[Branch]
    summary: ConversationSummary

    @property
    def message_count(self) -> int:
        """Number of messages in the main thread"""
        return len(self.main_thread)

    def get_user_messages(self) -> List[CanonicalMessage]:
        """Get all user messages of the main thread"""
        return [msg for msg in self.main_thread if msg.role == MessageRole.USER]

    def get_assistant_messages(self) -> List[CanonicalMessage]:
        """Get all assistant messages of the main thread"""
        return [msg for msg in self.main_thread if msg.role == MessageRole.ASSISTANT]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'created': self.created.isoformat(),
            'updated': self.updated.isoformat(),
            'messageCount': self.message_count,
            'mainThread': [message.to_dict() for message in self.main_thread],
            'branches': [branch.to_dict() for branch in self.branches],
            'summary': self.summary.to_dict(),
        }
