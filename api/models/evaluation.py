"""
Evaluation models: scoring criteria, red flags and detections.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class RedFlagSeverity(str, Enum):
    """Red flag severity enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RedFlagSeverity":
        """Map an external severity string; unknown values become UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        return _SEVERITY_LABELS.get(value.strip().lower(), cls.UNKNOWN)


_SEVERITY_LABELS = {
    "low": RedFlagSeverity.LOW,
    "medium": RedFlagSeverity.MEDIUM,
    "high": RedFlagSeverity.HIGH,
    "critical": RedFlagSeverity.CRITICAL,
}


class RedFlag(BaseModel):
    """A configured risk signal."""

    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    severity: RedFlagSeverity = RedFlagSeverity.MEDIUM
    is_active: bool = True
    detection_keywords: Optional[str] = None  # Comma separated

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v):
        if isinstance(v, RedFlagSeverity):
            return v
        return RedFlagSeverity.parse(v)

    def keywords(self) -> list[str]:
        """Trimmed, non-empty detection keywords."""
        if not self.detection_keywords:
            return []
        return [k.strip() for k in self.detection_keywords.split(",") if k.strip()]


class RedFlagDetection(BaseModel):
    """A red flag raised against a client. At most one per (client, flag)."""

    id: Optional[int] = None
    client_id: int
    red_flag_id: int
    reason: str
    confidence: float
    detected_at: datetime = Field(default_factory=datetime.utcnow)


class Criteria(BaseModel):
    """A weighted scoring criterion."""

    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    weight: float = Field(default=1.0, gt=0)
    is_active: bool = True
    evaluation_prompt: Optional[str] = None
