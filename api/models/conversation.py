"""
Conversation models.

Message ids are assigned by the store in strictly increasing order and
define transcript order.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ConversationStatus(str, Enum):
    """Conversation status enum."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Question(BaseModel):
    """An interview question from the question bank."""

    id: Optional[int] = None
    text: str
    category: str = "other"  # Free-form tag, mapped to a dossier category
    priority: int = 0  # Higher is asked first
    is_required: bool = True
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Conversation(BaseModel):
    """One interview session with a client."""

    id: Optional[int] = None
    client_id: int
    status: ConversationStatus = ConversationStatus.ACTIVE
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = None
    total_messages: int = 0

    # Structured-interview state
    current_question_id: Optional[int] = None
    waiting_for_additional_info: bool = False


class Message(BaseModel):
    """A single transcript message. Content never changes once stored."""

    id: Optional[int] = None
    conversation_id: int
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"frozen": True}

    def transcript_line(self) -> str:
        """Render as 'Role: content'."""
        return f"{self.role.value.capitalize()}: {self.content}"


class QuestionAnswer(BaseModel):
    """The client's answer to one question within one conversation."""

    id: Optional[int] = None
    conversation_id: int
    question_id: int
    answer: str
    additional_info: Optional[str] = None
    answered_at: datetime = Field(default_factory=datetime.utcnow)


class AskedQuestion(BaseModel):
    """A question the AI interviewer has worked into a reply."""

    id: Optional[int] = None
    conversation_id: int
    question_id: int
    asked_at: datetime = Field(default_factory=datetime.utcnow)
