"""
Client scoring.

The language model rates the client's transcript against each active
criterion. Ratings are combined into a weighted average, reduced by a
penalty for raised red flags, and mapped to a client status.
"""

import logging
import math
from dataclasses import dataclass

from api.models import ClientStatus, Criteria
from intelligence.errors import ClientNotFound, LanguageModelError
from intelligence.llm import ChatMessage, create_language_model
from intelligence.prompts import SCORE_PROMPT, format_transcript
from storage import VettingStore

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0
PENALTY_PER_FLAG = 5.0
MAX_PENALTY = 30.0
APPROVE_THRESHOLD = 70.0
REJECT_THRESHOLD = 50.0
REJECT_FLAG_COUNT = 2


@dataclass
class CriterionScore:
    criteria_id: int
    name: str
    weight: float
    score: float


def weighted_score(scores: list[CriterionScore]) -> float:
    """Weighted average of criterion scores, neutral when nothing was scored."""
    total_weight = sum(s.weight for s in scores)
    if total_weight <= 0:
        return NEUTRAL_SCORE
    return sum(s.score * s.weight for s in scores) / total_weight


def apply_red_flag_penalty(score: float, red_flag_count: int) -> float:
    """Subtract 5 points per red flag (at most 30) and clamp to [0, 100]."""
    penalty = min(red_flag_count * PENALTY_PER_FLAG, MAX_PENALTY)
    return min(max(score - penalty, 0.0), 100.0)


def status_for_score(score: float, red_flag_count: int) -> ClientStatus:
    """
    Map a final score to a client status.

    Approval is checked first, so a high score is approved even with
    several red flags.
    """
    if score >= APPROVE_THRESHOLD:
        return ClientStatus.APPROVED
    if score < REJECT_THRESHOLD or red_flag_count >= REJECT_FLAG_COUNT:
        return ClientStatus.REJECTED
    return ClientStatus.PENDING


def parse_score(text: str) -> float | None:
    """Parse a bare number from model output, clamped to [0, 100]."""
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return min(max(value, 0.0), 100.0)


class ScoringEngine:
    """Evaluates clients against the active criteria."""

    def __init__(self, store: VettingStore):
        self.store = store

    def evaluate_client(self, client_id: int) -> float:
        """
        Score a client and persist the score and resulting status.

        Args:
            client_id: Client to evaluate

        Returns:
            Overall score in [0, 100]

        Raises:
            ClientNotFound: If the client does not exist
        """
        client = self.store.get_client(client_id)
        if client is None:
            raise ClientNotFound(client_id)

        transcript = format_transcript(self.store.list_client_messages(client_id))
        scores = self.score_criteria(transcript)

        red_flag_count = len(self.store.list_detections(client_id))
        overall = apply_red_flag_penalty(weighted_score(scores), red_flag_count)
        status = status_for_score(overall, red_flag_count)

        # Re-read so a concurrent profile edit is not overwritten
        with self.store.transaction():
            client = self.store.get_client(client_id)
            if client is None:
                raise ClientNotFound(client_id)
            client.overall_score = overall
            client.status = status
            self.store.update_client(client)

        logger.info(
            "Evaluated client %s: score=%.1f red_flags=%d status=%s",
            client_id,
            overall,
            red_flag_count,
            status.value,
        )
        return overall

    def score_criteria(self, transcript: str) -> list[CriterionScore]:
        """Rate the transcript against every active criterion with a prompt."""
        settings = self.store.interview_settings()
        model = create_language_model(settings)

        scores = []
        for criteria in self.store.list_active_criteria():
            if not criteria.evaluation_prompt:
                continue
            score = self._score_one(model, settings.system_prompt, criteria, transcript)
            scores.append(
                CriterionScore(
                    criteria_id=criteria.id,
                    name=criteria.name,
                    weight=criteria.weight,
                    score=score,
                )
            )
        return scores

    def _score_one(self, model, system_prompt: str, criteria: Criteria, transcript: str) -> float:
        prompt = SCORE_PROMPT.format(
            name=criteria.name,
            guideline=criteria.evaluation_prompt,
            conversation=transcript,
        )
        try:
            raw = model.complete([ChatMessage("user", prompt)], system_prompt)
        except LanguageModelError as e:
            logger.warning("Scoring %r failed, using neutral score: %s", criteria.name, e)
            return NEUTRAL_SCORE

        score = parse_score(raw)
        if score is None:
            logger.warning("Failed to parse score for %r: %.100s", criteria.name, raw)
            return NEUTRAL_SCORE
        return score
