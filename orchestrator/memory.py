"""Conversation messages and the append-only log"""
import time
from typing import Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "agent", "system"]


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    suggestions: List[str] = Field(default_factory=list)
    timestamp: float = Field(default_factory=time.time)


class ConversationLog:
    """Messages are only ever appended; readers get a copy"""

    def __init__(self):
        self._messages: List[ConversationMessage] = []

    def append(self, role: Role, content: str, suggestions: Optional[List[str]] = None) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content, suggestions=list(suggestions or []))
        self._messages.append(message)
        return message

    @property
    def messages(self) -> List[ConversationMessage]:
        return list(self._messages)

    @property
    def last(self) -> Optional[ConversationMessage]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(list(self._messages))
