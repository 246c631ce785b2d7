"""API models."""

from api.models.client import Client, ClientStatus, DossierCategory, DossierEntry
from api.models.conversation import (
    AskedQuestion,
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
    Question,
    QuestionAnswer,
)
from api.models.evaluation import (
    Criteria,
    RedFlag,
    RedFlagDetection,
    RedFlagSeverity,
)

__all__ = [
    "Client",
    "ClientStatus",
    "DossierCategory",
    "DossierEntry",
    "Conversation",
    "ConversationStatus",
    "Message",
    "MessageRole",
    "Question",
    "QuestionAnswer",
    "AskedQuestion",
    "Criteria",
    "RedFlag",
    "RedFlagDetection",
    "RedFlagSeverity",
]
