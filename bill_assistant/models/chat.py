"""
Conversation Models

A conversation window is a list of rounds. A round is one user turn plus
the assistant reply, which stays None while the round is open (the reply
is still streaming, or it never arrived).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatTurn(BaseModel):
    """One message in the replayed history. Immutable once written."""

    model_config = ConfigDict(frozen=True)

    role: TurnRole
    text: str


class ConversationRound(BaseModel):
    """A user turn and its (possibly absent) assistant reply."""

    user_text: str
    assistant_text: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.assistant_text is None

    def to_turns(self) -> list[ChatTurn]:
        turns = [ChatTurn(role=TurnRole.USER, text=self.user_text)]
        if self.assistant_text is not None:
            turns.append(ChatTurn(role=TurnRole.ASSISTANT, text=self.assistant_text))
        return turns


class UserIdentity(BaseModel):
    """
    Who is talking.

    conversation_id is the caller's stable external identity string and
    keys the conversation window; owner_id scopes files, bills and
    categories in the relational store.
    """

    model_config = ConfigDict(frozen=True)

    conversation_id: str = Field(..., min_length=1)
    owner_id: int = Field(..., gt=0)
