"""
Dossier extraction.

Two sources feed a client's dossier:
- Structured interviews: each answer is copied verbatim at confidence 1.0
- Free-form interviews: the language model extracts categorized facts
  from the latest exchange

A fact is identified by (client, category, key). A model re-deriving an
existing fact only replaces it when the new confidence is strictly higher;
a newer structured answer always replaces the older one.
"""

import json
import logging
from typing import Optional

from api.models import DossierCategory, DossierEntry
from intelligence.errors import LanguageModelError
from intelligence.llm import ChatMessage, create_language_model
from intelligence.prompts import EXTRACTION_PROMPT, format_transcript
from storage import VettingStore

logger = logging.getLogger(__name__)

RECENT_MESSAGE_WINDOW = 10


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` or ```json fence from model output."""
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1 :] if first_newline != -1 else text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class DossierExtractor:
    """Writes dossier entries for a client."""

    def __init__(self, store: VettingStore):
        self.store = store

    def finalize_conversation(self, conversation_id: int) -> int:
        """
        Copy a structured conversation's answers into the dossier.

        Writes question_<id> for every answer and question_<id>_additional
        when additional information was given.

        Returns:
            Number of entries written
        """
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            logger.warning("Cannot finalize missing conversation %s", conversation_id)
            return 0

        written = 0
        with self.store.transaction():
            for answer in self.store.list_answers(conversation_id):
                question = self.store.get_question(answer.question_id)
                category = DossierCategory.from_label(question.category if question else None)
                key = f"question_{answer.question_id}"

                self._put(
                    conversation.client_id, category, key, answer.answer, 1.0, None, replace=True
                )
                written += 1
                if answer.additional_info:
                    self._put(
                        conversation.client_id,
                        category,
                        f"{key}_additional",
                        answer.additional_info,
                        1.0,
                        None,
                        replace=True,
                    )
                    written += 1
                else:
                    stale = self.store.get_dossier_entry(
                        conversation.client_id, category, f"{key}_additional"
                    )
                    if stale is not None:
                        self.store.delete_dossier_entry(stale.id)

        logger.info(
            "Finalized conversation %s into %d dossier entries", conversation_id, written
        )
        return written

    def extract_from_conversation(self, client_id: int, conversation_id: int) -> int:
        """
        Extract facts from the latest exchange with the language model.

        Malformed model output is logged and skipped.

        Returns:
            Number of entries inserted or updated
        """
        messages = self.store.recent_messages(conversation_id, RECENT_MESSAGE_WINDOW)
        if not messages:
            return 0

        settings = self.store.interview_settings()
        model = create_language_model(settings)
        prompt = EXTRACTION_PROMPT.format(conversation=format_transcript(messages))

        try:
            raw = model.complete([ChatMessage("user", prompt)], settings.system_prompt)
        except LanguageModelError as e:
            logger.warning("Dossier extraction failed for conversation %s: %s", conversation_id, e)
            return 0

        data = self._parse(raw, conversation_id)
        if data is None:
            return 0

        source = self.store.latest_message(conversation_id)
        source_id = source.id if source else None

        changed = 0
        with self.store.transaction():
            for label, items in data.items():
                if not isinstance(items, list):
                    continue
                category = DossierCategory.from_label(label)
                for item in items:
                    if not isinstance(item, dict):
                        continue
                    key = item.get("key")
                    value = item.get("value")
                    if not key or value is None:
                        continue
                    confidence = _confidence(item.get("confidence"))
                    if self._put(client_id, category, str(key), str(value), confidence, source_id):
                        changed += 1

        logger.debug("Extracted %d dossier facts from conversation %s", changed, conversation_id)
        return changed

    def _parse(self, raw: str, conversation_id: int) -> Optional[dict]:
        text = strip_code_fence(raw)
        if not text.startswith("{"):
            logger.warning(
                "Skipping dossier extraction for conversation %s: response is not a JSON object",
                conversation_id,
            )
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(
                "Skipping dossier extraction for conversation %s: %s", conversation_id, e
            )
            return None
        return data if isinstance(data, dict) else None

    def _put(
        self,
        client_id: int,
        category: DossierCategory,
        key: str,
        value: str,
        confidence: float,
        source_message_id: Optional[int],
        replace: bool = False,
    ) -> bool:
        """Insert, or update when the new confidence is strictly higher (or replace is set)."""
        existing = self.store.get_dossier_entry(client_id, category, key)
        if existing is None:
            self.store.add_dossier_entry(
                DossierEntry(
                    client_id=client_id,
                    category=category,
                    key_name=key,
                    value=value,
                    confidence_score=confidence,
                    source_message_id=source_message_id,
                )
            )
            return True

        if not replace and confidence <= existing.confidence_score:
            return False

        existing.value = value
        existing.confidence_score = confidence
        if source_message_id is not None:
            existing.source_message_id = source_message_id
        self.store.update_dossier_entry(existing)
        return True


def _confidence(value) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.5
    return min(max(confidence, 0.0), 1.0)
