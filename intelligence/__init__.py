"""Interview, dossier, red flag and scoring engines."""

from intelligence.clients import ClientManager
from intelligence.conversation import BaseInterview, ConversationEngine
from intelligence.dossier import DossierExtractor
from intelligence.interviewer import AIInterviewer
from intelligence.red_flags import RedFlagDetector
from intelligence.scoring import ScoringEngine
from intelligence.tasks import get_task_queue
from storage import VettingStore


def create_interview(store: VettingStore, mode: str = "structured", tasks=None) -> BaseInterview:
    """Create the interview engine for the configured mode."""
    if mode == "ai":
        return AIInterviewer(store, tasks)
    return ConversationEngine(store, tasks)


__all__ = [
    "AIInterviewer",
    "BaseInterview",
    "ClientManager",
    "ConversationEngine",
    "DossierExtractor",
    "RedFlagDetector",
    "ScoringEngine",
    "create_interview",
    "get_task_queue",
]
