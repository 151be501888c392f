from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.models import ChatMessage

from .types import ConversationMessage, ToolCallRequest


logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
VISIBLE_ROLES = ("user", "assistant")


def _to_conversation(row: ChatMessage) -> ConversationMessage:
    tool_calls = None
    if row.tool_calls:
        tool_calls = [ToolCallRequest.from_dict(call) for call in row.tool_calls]
    return ConversationMessage(
        role=row.role,
        content=row.content or "",
        tool_calls=tool_calls,
        tool_call_id=row.tool_call_id,
        name=row.tool_name,
    )


def _sanitize_context(messages: list[ConversationMessage]) -> list[ConversationMessage]:
    """
    Make a truncated window valid for the completion API.

    Tool results whose originating call fell outside the window are dropped,
    and calls without a result in the window are stripped from their
    assistant message.
    """
    answered = {m.tool_call_id for m in messages if m.role == "tool" and m.tool_call_id}

    sanitized: list[ConversationMessage] = []
    requested: set[str] = set()
    for message in messages:
        if message.role == "tool":
            if message.tool_call_id in requested:
                sanitized.append(message)
            continue

        if message.role == "assistant" and message.tool_calls:
            kept = [call for call in message.tool_calls if call.id in answered]
            requested.update(call.id for call in kept)
            if not kept and not message.content:
                continue
            message = ConversationMessage(
                role=message.role,
                content=message.content,
                tool_calls=kept or None,
            )
        sanitized.append(message)
    return sanitized


class ChatHistoryStore:
    """Append-only per-project conversation log backing the director agent."""

    def __init__(self, db: Session, limit: int = DEFAULT_HISTORY_LIMIT):
        self.db = db
        self.limit = limit

    def _next_position(self, project_id: UUID) -> int:
        current = (
            self.db.query(func.max(ChatMessage.position))
            .filter(ChatMessage.project_id == project_id)
            .scalar()
        )
        return 0 if current is None else current + 1

    def append(self, project_id: UUID, message: ConversationMessage) -> ChatMessage:
        row = ChatMessage(
            project_id=project_id,
            position=self._next_position(project_id),
            role=message.role,
            content=message.content or "",
            tool_calls=(
                [call.to_openai() for call in message.tool_calls]
                if message.tool_calls
                else None
            ),
            tool_call_id=message.tool_call_id,
            tool_name=message.name,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def load_context(self, project_id: UUID) -> list[ConversationMessage]:
        """The last ``limit`` messages in causal order, ready to replay to the model."""
        rows = (
            self.db.query(ChatMessage)
            .filter(ChatMessage.project_id == project_id)
            .order_by(ChatMessage.position.desc())
            .limit(self.limit)
            .all()
        )
        rows.reverse()
        return _sanitize_context([_to_conversation(row) for row in rows])

    def list_visible(self, project_id: UUID) -> list[dict[str, Any]]:
        rows = (
            self.db.query(ChatMessage)
            .filter(
                ChatMessage.project_id == project_id,
                ChatMessage.role.in_(VISIBLE_ROLES),
            )
            .order_by(ChatMessage.position.asc())
            .all()
        )
        return [
            {
                "id": str(row.message_id),
                "role": row.role,
                "content": row.content or "",
                "toolCalls": row.tool_calls or None,
                "createdAt": row.created_at,
            }
            for row in rows
        ]

    def clear(self, project_id: UUID) -> int:
        deleted = (
            self.db.query(ChatMessage)
            .filter(ChatMessage.project_id == project_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info("Cleared %s chat messages for project %s", deleted, project_id)
        return deleted
