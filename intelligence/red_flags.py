"""
Red-flag detection.

Two passes over a client's transcript:
1. Keyword pass: case-insensitive substring match on each flag's keywords
2. Model pass: the language model picks flags from a numbered list

A flag is raised at most once per client, whichever pass sees it first.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from api.models import Message, RedFlag, RedFlagDetection
from intelligence.dossier import strip_code_fence
from intelligence.errors import ClientNotFound, LanguageModelError
from intelligence.llm import ChatMessage, create_language_model
from intelligence.prompts import RED_FLAG_PROMPT, build_red_flag_list, format_transcript
from storage import VettingStore

logger = logging.getLogger(__name__)

KEYWORD_CONFIDENCE = 0.7


@dataclass
class KeywordMatch:
    """Answers that contain one keyword."""

    keyword: str
    answers: list[dict] = field(default_factory=list)

    @property
    def match_count(self) -> int:
        return len(self.answers)


@dataclass
class KeywordScanResult:
    """Read-only report of keyword hits in a client's answers."""

    client_id: int
    keywords_checked: int
    matches: list[KeywordMatch] = field(default_factory=list)


def parse_wordlist(text: str, fmt: str = "txt") -> list[str]:
    """
    Parse an uploaded wordlist.

    Args:
        text: File contents
        fmt: 'txt' (one per line), 'csv' (comma separated) or 'json' (array of strings)

    Returns:
        Distinct keywords, case-insensitively, in first-seen order
    """
    keywords: list[str] = []
    if fmt == "json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            keywords = [str(k).strip() for k in data]
        else:
            keywords = [line.strip() for line in text.splitlines()]
    elif fmt == "csv":
        for line in text.splitlines():
            keywords.extend(k.strip() for k in line.split(","))
    else:
        keywords = [line.strip() for line in text.splitlines()]

    seen = set()
    distinct = []
    for keyword in keywords:
        if keyword and keyword.lower() not in seen:
            seen.add(keyword.lower())
            distinct.append(keyword)
    return distinct


class RedFlagDetector:
    """Raises red flags against a client."""

    def __init__(self, store: VettingStore):
        self.store = store

    def detect(self, client_id: int, conversation_id: Optional[int] = None) -> int:
        """
        Run both passes over a conversation, or all of the client's conversations.

        Returns:
            Number of new detections
        """
        red_flags = self.store.list_active_red_flags()
        if not red_flags:
            return 0

        if conversation_id is not None:
            messages = self.store.list_messages(conversation_id)
        else:
            messages = self.store.list_client_messages(client_id)
        if not messages:
            return 0

        raised = self._keyword_pass(client_id, red_flags, messages)
        raised += self._model_pass(client_id, red_flags, messages)
        if raised:
            logger.info("Raised %d red flags for client %s", raised, client_id)
        return raised

    def _keyword_pass(
        self, client_id: int, red_flags: list[RedFlag], messages: list[Message]
    ) -> int:
        text = format_transcript(messages).lower()
        raised = 0
        for flag in red_flags:
            for keyword in flag.keywords():
                if keyword.lower() in text:
                    if self._raise(client_id, flag, f"Keyword detected: {keyword}", KEYWORD_CONFIDENCE):
                        raised += 1
                    break
        return raised

    def _model_pass(
        self, client_id: int, red_flags: list[RedFlag], messages: list[Message]
    ) -> int:
        settings = self.store.interview_settings()
        model = create_language_model(settings)
        prompt = RED_FLAG_PROMPT.format(
            red_flags=build_red_flag_list(red_flags),
            conversation=format_transcript(messages),
        )
        try:
            raw = model.complete([ChatMessage("user", prompt)], settings.system_prompt)
        except LanguageModelError as e:
            logger.warning("Red flag detection failed for client %s: %s", client_id, e)
            return 0

        text = strip_code_fence(raw)
        if not text.startswith("["):
            logger.warning("Model returned non-JSON response for red flags: %.200s", raw)
            return 0
        try:
            items = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse red flag response: %s", e)
            return 0
        if not isinstance(items, list):
            return 0

        raised = 0
        for item in items:
            if not isinstance(item, dict):
                continue
            index = item.get("red_flag_index")
            if not isinstance(index, int) or not 1 <= index <= len(red_flags):
                continue
            reason = str(item.get("reason") or "Detected by language model")
            try:
                confidence = min(max(float(item.get("confidence", 0.5)), 0.0), 1.0)
            except (TypeError, ValueError):
                confidence = 0.5
            if self._raise(client_id, red_flags[index - 1], reason, confidence):
                raised += 1
        return raised

    def _raise(self, client_id: int, flag: RedFlag, reason: str, confidence: float) -> bool:
        stored = self.store.add_detection(
            RedFlagDetection(
                client_id=client_id,
                red_flag_id=flag.id,
                reason=reason,
                confidence=confidence,
            )
        )
        return stored is not None

    def scan_keywords(self, client_id: int, keywords: list[str]) -> KeywordScanResult:
        """
        Report which keywords appear in the client's interview answers.

        Does not raise detections.

        Raises:
            ClientNotFound: If the client does not exist
        """
        if self.store.get_client(client_id) is None:
            raise ClientNotFound(client_id)

        normalized = []
        for keyword in keywords:
            keyword = keyword.strip().lower()
            if keyword and keyword not in normalized:
                normalized.append(keyword)

        answers = self.store.list_client_answers(client_id)
        result = KeywordScanResult(client_id=client_id, keywords_checked=len(normalized))
        for keyword in normalized:
            hits = [
                a
                for a in answers
                if keyword in a.answer.lower()
                or (a.additional_info and keyword in a.additional_info.lower())
            ]
            if not hits:
                continue
            match = KeywordMatch(keyword=keyword)
            for answer in hits:
                question = self.store.get_question(answer.question_id)
                match.answers.append(
                    {
                        "question_id": answer.question_id,
                        "question_text": question.text if question else None,
                        "answer": answer.answer,
                        "additional_info": answer.additional_info,
                    }
                )
            result.matches.append(match)
        return result
