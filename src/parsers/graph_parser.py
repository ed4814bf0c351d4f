#!/usr/bin/env python3
"""
Graph Parser for Chat Migrator
Turns the graph-shaped conversations of a ChatGPT export into linear
canonical conversations: one main thread plus every regeneration branch.

Branch selection follows child order. Exports place the currently active
completion first, so the main thread is the left-most path from the root.
This is a best-effort policy: the export carries no authoritative marker of
the active branch beyond that order, and a root that cannot be identified is
replaced by the first node of the mapping.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from errors import ExportFormatError
from models import (
    AuthorRole,
    Branch,
    CanonicalConversation,
    CanonicalMessage,
    ContentKind,
    ConversationSummary,
    MessageRole,
    RawConversation,
    RawMessage,
    RawNode,
    epoch_to_datetime,
)
from parsers.content_resolver import (
    extract_image_references,
    extract_message_code_blocks,
    extract_text_content,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Conversation"
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

def parse_export(json_content: str) -> List[Any]:
    """
    Parse an export document into its list of raw conversation entries

    Args:
        json_content: Document text, either a bare JSON array or an object
            with a ``conversations`` array

    Returns:
        The conversations array

    Raises:
        ExportFormatError: If the text is not JSON or has no conversations array
    """
    try:
        data = json.loads(json_content)
    except json.JSONDecodeError as e:
        raise ExportFormatError(f"Invalid JSON file: {e}") from e

    if isinstance(data, list):
        return data

    if isinstance(data, dict):
        conversations = data.get('conversations')
        if isinstance(conversations, list):
            return conversations
        raise ExportFormatError("No conversations array found in export")

    raise ExportFormatError("Invalid JSON structure")

def validate_export(data: Any) -> Tuple[bool, Optional[str]]:
    """
    Check the structural precondition of an export before processing it

    Args:
        data: Decoded document, or the conversations array itself

    Returns:
        Tuple of (valid, error message)
    """
    if data is None or not isinstance(data, (dict, list)):
        return False, "Invalid JSON structure"

    conversations = data if isinstance(data, list) else data.get('conversations')
    if not isinstance(conversations, list):
        return False, "No conversations array found in export"

    if not conversations:
        return False, "Export contains no conversations"

    first = conversations[0]
    if (not isinstance(first, dict) or not first.get('id')
            or not isinstance(first.get('mapping'), dict)):
        return False, "Invalid conversation structure"

    return True, None

def generate_summary(messages: List[CanonicalMessage], branches: List[Branch]) -> ConversationSummary:
    """Derive counts and flags for a main thread and its branches"""
    models = []
    for message in messages:
        if message.model and message.model not in models:
            models.append(message.model)

    return ConversationSummary(
        total_messages=len(messages),
        user_messages=sum(1 for m in messages if m.role == MessageRole.USER),
        assistant_messages=sum(1 for m in messages if m.role == MessageRole.ASSISTANT),
        has_code=any(m.code_blocks for m in messages),
        has_images=any(m.content_kind == ContentKind.MULTIMODAL_TEXT or m.images for m in messages),
        has_branches=len(branches) > 0,
        models=models,
    )

def get_export_stats(conversations: List[CanonicalConversation]) -> Dict[str, Any]:
    """
    Summary statistics over a batch of canonical conversations

    Returns:
        Dictionary with totals and the covered date range (None when empty)
    """
    date_range = None
    if conversations:
        date_range = {
            'earliest': min(c.created for c in conversations),
            'latest': max(c.updated for c in conversations),
        }

    return {
        'total_conversations': len(conversations),
        'total_messages': sum(c.message_count for c in conversations),
        'conversations_with_code': sum(1 for c in conversations if c.summary.has_code),
        'conversations_with_branches': sum(1 for c in conversations if c.summary.has_branches),
        'date_range': date_range,
    }

class GraphParser:
    """Linearizes raw conversation graphs. Holds no state between calls."""

    def process_conversations(self, conversations: Iterable[Any]) -> List[CanonicalConversation]:
        """
        Process a batch of raw conversations

        A conversation that fails to process is logged and left out; the rest
        of the batch continues.

        Args:
            conversations: Raw export entries (dicts) or RawConversation objects

        Returns:
            Canonical conversations in input order
        """
        processed = []
        failed = 0

        for index, entry in enumerate(conversations):
            try:
                raw = entry if isinstance(entry, RawConversation) else RawConversation.from_dict(entry)
                processed.append(self.process_conversation(raw))
            except Exception as e:
                failed += 1
                conv_id = getattr(entry, 'id', None) or (entry.get('id') if isinstance(entry, dict) else None)
                logger.error(f"Failed to process conversation {conv_id or index}: {e}")
                logger.debug("Conversation processing error", exc_info=True)

        logger.info(f"Processed {len(processed)} conversations ({failed} failed)")
        return processed

    def process_conversation(self, raw: RawConversation) -> CanonicalConversation:
        """
        Build the canonical form of one conversation

        Args:
            raw: Raw conversation

        Returns:
            CanonicalConversation with main thread, branches and summary
        """
        created = epoch_to_datetime(raw.create_time, EPOCH)
        updated = epoch_to_datetime(raw.update_time, created)

        main_thread, visited = self._walk_main_thread(raw.mapping, raw.current_node_id, created)
        branches = self._collect_branches(raw.mapping, visited, created)

        title = raw.title.strip() if isinstance(raw.title, str) else ''

        return CanonicalConversation(
            id=raw.id,
            title=title or DEFAULT_TITLE,
            created=created,
            updated=updated,
            main_thread=main_thread,
            branches=branches,
            summary=generate_summary(main_thread, branches),
        )

    def find_root(self, mapping: Dict[str, RawNode], current_node_id: Optional[str]) -> Optional[RawNode]:
        """
        Pick the node the main thread starts from

        Prefers the first node without a parent. Otherwise walks up from the
        current node until a parentless, dangling or already-visited node is
        reached. With no usable current node the first node of the mapping is
        used as a last resort.
        """
        if not mapping:
            return None

        for node in mapping.values():
            if node.parent_id is None:
                return node

        node = mapping.get(current_node_id) if current_node_id else None
        if node is None:
            logger.debug("No root and no current node, falling back to first node")
            return next(iter(mapping.values()))

        visited = {node.id}
        while node.parent_id and node.parent_id in mapping and node.parent_id not in visited:
            node = mapping[node.parent_id]
            visited.add(node.id)

        return node

    def extract_main_thread(self, mapping: Dict[str, RawNode],
                            current_node_id: Optional[str]) -> List[CanonicalMessage]:
        """
        Extract the main thread: the left-most path from the root

        Args:
            mapping: Node id to node
            current_node_id: The export's current node, used to locate a root

        Returns:
            Messages of the main thread in order
        """
        messages, _ = self._walk_main_thread(mapping, current_node_id, EPOCH)
        return messages

    def extract_branches(self, mapping: Dict[str, RawNode],
                         main_thread_ids: Iterable[str]) -> List[Branch]:
        """
        Extract every alternative branch

        Each child beyond the first of a branch point starts a branch, which
        follows first children until it rejoins the main thread or ends.
        Branches are independent; nothing is deduplicated across them.

        Args:
            mapping: Node id to node
            main_thread_ids: Ids of the nodes on the main thread

        Returns:
            Branches in mapping order, skipping branches with no messages
        """
        return self._collect_branches(mapping, set(main_thread_ids), EPOCH)

    def _walk_main_thread(self, mapping: Dict[str, RawNode], current_node_id: Optional[str],
                          fallback_time: datetime) -> Tuple[List[CanonicalMessage], Set[str]]:
        root = self.find_root(mapping, current_node_id)
        if root is None:
            return [], set()
        return self._descend(mapping, root.id, set(), fallback_time)

    def _collect_branches(self, mapping: Dict[str, RawNode], main_thread_ids: Set[str],
                          fallback_time: datetime) -> List[Branch]:
        branches = []

        for node in mapping.values():
            if len(node.child_ids) < 2:
                continue

            for child_id in node.child_ids[1:]:
                messages, _ = self._descend(mapping, child_id, main_thread_ids, fallback_time)
                if messages:
                    branches.append(Branch(id=child_id, parent_message_id=node.id, messages=messages))

        return branches

    def _descend(self, mapping: Dict[str, RawNode], start_id: str, stop_ids: Set[str],
                 fallback_time: datetime) -> Tuple[List[CanonicalMessage], Set[str]]:
        """Follow first children from start_id until a leaf, a stop id or a revisit"""
        messages = []
        visited = set()
        node = mapping.get(start_id)

        while node is not None and node.id not in stop_ids:
            if node.id in visited:
                logger.debug(f"Cycle detected at node {node.id}, stopping traversal")
                break
            visited.add(node.id)

            if node.message is not None:
                message = self.normalize_message(node.message, fallback_time)
                if message is not None:
                    messages.append(message)

            if not node.child_ids:
                break
            node = mapping.get(node.child_ids[0])

        return messages, visited

    def normalize_message(self, message: RawMessage, fallback_time: datetime) -> Optional[CanonicalMessage]:
        """
        Convert a raw message to its canonical form

        Returns:
            CanonicalMessage, or None for system messages and empty text
        """
        if message.author_role == AuthorRole.SYSTEM.value or message.content is None:
            return None

        text = extract_text_content(message.content)
        if not text or not text.strip():
            return None

        raw_kind = message.content.get('content_type') if isinstance(message.content, dict) else None
        kind = ContentKind.from_raw(raw_kind) if raw_kind else ContentKind.TEXT

        role = MessageRole.USER if message.author_role == AuthorRole.USER.value else MessageRole.ASSISTANT

        code_blocks = extract_message_code_blocks(message.content, text, kind)
        images = extract_image_references(message.content)

        return CanonicalMessage(
            id=message.id,
            role=role,
            text=text,
            timestamp=epoch_to_datetime(message.create_time, fallback_time),
            content_kind=kind,
            model=self._string_or_none(message.metadata.get('model_slug')),
            citations=self._collect_citations(message.metadata),
            code_blocks=code_blocks or None,
            images=images or None,
            raw_content_type=raw_kind if kind == ContentKind.UNKNOWN else None,
        )

    @staticmethod
    def _collect_citations(metadata: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
        citations = []
        for key in ('citations', 'content_references'):
            value = metadata.get(key)
            if isinstance(value, list):
                citations.extend(item for item in value if isinstance(item, dict))
        return citations or None

    @staticmethod
    def _string_or_none(value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None
