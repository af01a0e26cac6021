# kg_docgraph/chat/session.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import LLMError
from kg_docgraph.llm.prompts import CHAT_RESPONSE_SCHEMA, build_chat_prompt
from kg_docgraph.models.document import Document, load_documents

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I encountered an error processing your request. Please try again."


class Citation(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    paper_id: Optional[str] = None
    paper_title: Optional[str] = None
    text_snippet: Optional[str] = None
    page: Optional[int] = None
    confidence: Optional[float] = None
    file_url: Optional[str] = None


class ChatAnswer(BaseModel):
    answer: str
    citations: List[Citation] = Field(default_factory=list)


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: str
    content: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    citations: List[Citation] = Field(default_factory=list)


def answer_question(
    llm: Any,
    question: str,
    documents: Iterable[Any],
    context_chars: Optional[int] = None,
) -> ChatAnswer:
    """
    Answer `question` from the text of the completed documents.

    Raises LLMError if the service fails or the reply has no answer.
    """
    docs: List[Document] = [d for d in load_documents(documents) if d.is_completed]
    contexts = [{"title": d.title, "content": d.full_text} for d in docs]
    prompt = build_chat_prompt(
        question,
        contexts,
        max_chars=context_chars or settings.CHAT_CONTEXT_CHARS,
    )

    raw = llm.invoke(prompt, CHAT_RESPONSE_SCHEMA)
    if not raw.get("answer"):
        raise LLMError("LLM reply contained no answer")
    try:
        return ChatAnswer.model_validate(
            {"answer": raw["answer"], "citations": raw.get("citations") or []}
        )
    except ValueError as exc:
        raise LLMError(f"LLM returned malformed citations: {exc}") from exc


class ChatSession:
    """
    A chat transcript persisted as a ChatSession entity.

    Messages are appended and the whole list is written back after each
    user message and each assistant reply.
    """

    def __init__(self, store: Any, record: Dict[str, Any], entity_type: Optional[str] = None) -> None:
        self.store = store
        self.entity_type = entity_type or settings.CHAT_SESSION_ENTITY
        self.id: str = record["id"]
        self.title: str = record.get("title") or ""
        self.paper_ids: List[str] = list(record.get("paper_ids") or [])
        self.messages: List[ChatMessage] = [
            ChatMessage.model_validate(m) for m in record.get("messages") or []
        ]

    @classmethod
    def create(
        cls,
        store: Any,
        title: Optional[str] = None,
        paper_ids: Optional[List[str]] = None,
        entity_type: Optional[str] = None,
    ) -> "ChatSession":
        entity_type = entity_type or settings.CHAT_SESSION_ENTITY
        title = title or f"Chat Session - {datetime.now().strftime('%b %d, %I:%M %p')}"
        record = store.create(
            entity_type,
            {"title": title, "messages": [], "active": True, "paper_ids": paper_ids or []},
        )
        return cls(store, record, entity_type=entity_type)

    def _persist(self) -> None:
        self.store.update(
            self.entity_type,
            self.id,
            {"messages": [m.model_dump(mode="json", exclude_none=True) for m in self.messages]},
        )

    def send_message(self, llm: Any, question: str, documents: Iterable[Any]) -> ChatMessage:
        """
        Record the user's question, ask the LLM, record the reply.

        An LLM failure does not raise: an apology is stored as the
        assistant's reply instead.
        """
        self.messages.append(ChatMessage(role="user", content=question))
        self._persist()

        try:
            answer = answer_question(llm, question, documents)
            reply = ChatMessage(role="assistant", content=answer.answer, citations=answer.citations)
        except LLMError as exc:
            logger.warning("Chat answer failed for session %s: %s", self.id, exc)
            reply = ChatMessage(role="assistant", content=ERROR_REPLY)

        self.messages.append(reply)
        self._persist()
        return reply
