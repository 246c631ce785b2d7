"""
Client and dossier models.

A client's dossier is a set of (category, key) facts collected during the
interview, each with a confidence between 0 and 1.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ClientStatus(str, Enum):
    """Client status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"  # Interview running
    INTERVIEW_COMPLETED = "interview_completed"  # Waiting for evaluation
    UNDER_REVIEW = "under_review"  # Reviewer is looking at the dossier

    @classmethod
    def parse(cls, value: str) -> "ClientStatus":
        """Parse an external status string, raising ValueError if unknown."""
        normalized = value.strip().lower().replace(" ", "_")
        alias = _CLIENT_STATUS_ALIASES.get(normalized, normalized)
        try:
            return cls(alias)
        except ValueError:
            raise ValueError(f"Unknown client status: {value!r}") from None


_CLIENT_STATUS_ALIASES = {
    "inprogress": "in_progress",
    "interviewcompleted": "interview_completed",
    "underreview": "under_review",
}


class DossierCategory(str, Enum):
    """Dossier fact categories."""

    PERSONAL_LIFE = "personal_life"
    BUSINESS_LIFE = "business_life"
    FAMILY = "family"
    CHILDHOOD = "childhood"
    EDUCATION = "education"
    VALUES = "values"
    GOALS = "goals"
    BACKGROUND = "background"
    FINANCIAL = "financial"
    OTHER = "other"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "DossierCategory":
        """Map a question category or extraction label; unknown labels become OTHER."""
        if not label:
            return cls.OTHER
        return _CATEGORY_LABELS.get(label.strip().lower(), cls.OTHER)


_CATEGORY_LABELS = {
    "personal_life": DossierCategory.PERSONAL_LIFE,
    "personallife": DossierCategory.PERSONAL_LIFE,
    "business_life": DossierCategory.BUSINESS_LIFE,
    "businesslife": DossierCategory.BUSINESS_LIFE,
    "family": DossierCategory.FAMILY,
    "childhood": DossierCategory.CHILDHOOD,
    "education": DossierCategory.EDUCATION,
    "values": DossierCategory.VALUES,
    "goals": DossierCategory.GOALS,
    "background": DossierCategory.BACKGROUND,
    "financial": DossierCategory.FINANCIAL,
    "other": DossierCategory.OTHER,
}


class Client(BaseModel):
    """An applicant being vetted."""

    id: Optional[int] = None
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: ClientStatus = ClientStatus.PENDING
    overall_score: float = 0.0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email


class DossierEntry(BaseModel):
    """A single categorized fact about a client."""

    id: Optional[int] = None
    client_id: int
    category: DossierCategory
    key_name: str
    value: str
    confidence_score: float = 1.0
    source_message_id: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("confidence_score")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return min(max(v, 0.0), 1.0)
