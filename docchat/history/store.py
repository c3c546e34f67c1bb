# docchat/history/store.py

"""
Chat history storage.

Conversations are append-only lists of ChatMessage. The orchestrator
never writes here; the HTTP layer reads the last turns before a query
and appends the user and assistant turns after it.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from docchat.errors import ChatNotFoundError
from docchat.models import ChatMessage, ChatSummary

logger = logging.getLogger(__name__)


class ChatHistory(BaseModel):
    chat_id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def summary(self) -> ChatSummary:

        return ChatSummary(
            chat_id=self.chat_id,
            message_count=len(self.messages),
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_message=self.messages[-1] if self.messages else None,
        )


def generate_chat_id() -> str:
    return str(uuid.uuid4())


def messages_for_completion(history: List[ChatMessage]) -> List[ChatMessage]:
    """Only user and assistant turns are replayed to the model."""

    return [m for m in history if m.role in ("user", "assistant")]


class ChatHistoryStore(ABC):

    @abstractmethod
    async def create(self, chat_id: Optional[str] = None) -> str:
        ...

    @abstractmethod
    async def get_history(self, chat_id: str) -> ChatHistory:
        ...

    @abstractmethod
    async def append(self, chat_id: str, message: ChatMessage):
        ...

    @abstractmethod
    async def list_all(self) -> List[ChatSummary]:
        ...

    @abstractmethod
    async def delete(self, chat_id: str) -> bool:
        ...

    async def exists(self, chat_id: str) -> bool:

        try:
            await self.get_history(chat_id)
        except ChatNotFoundError:
            return False

        return True


class InMemoryChatHistoryStore(ChatHistoryStore):
    """Process-local store. Conversations are lost on restart."""

    def __init__(self):

        self._chats: Dict[str, ChatHistory] = {}
        self._lock = asyncio.Lock()

    async def create(self, chat_id: Optional[str] = None) -> str:

        chat_id = chat_id or generate_chat_id()

        async with self._lock:

            if chat_id not in self._chats:
                self._chats[chat_id] = ChatHistory(chat_id=chat_id)

        logger.info("Chat created", extra={"chat_id": chat_id})

        return chat_id

    async def get_history(self, chat_id: str) -> ChatHistory:

        chat = self._chats.get(chat_id)

        if chat is None:
            raise ChatNotFoundError(chat_id)

        return chat.model_copy(update={"messages": list(chat.messages)})

    async def append(self, chat_id: str, message: ChatMessage):

        async with self._lock:

            chat = self._chats.get(chat_id)

            if chat is None:
                chat = ChatHistory(chat_id=chat_id)
                self._chats[chat_id] = chat

            chat.messages.append(message)
            chat.updated_at = datetime.utcnow()

    async def list_all(self) -> List[ChatSummary]:

        chats = sorted(
            self._chats.values(),
            key=lambda c: c.updated_at,
            reverse=True,
        )

        return [c.summary() for c in chats]

    async def delete(self, chat_id: str) -> bool:

        async with self._lock:
            removed = self._chats.pop(chat_id, None) is not None

        if removed:
            logger.info("Chat deleted", extra={"chat_id": chat_id})

        return removed
