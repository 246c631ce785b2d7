"""
Free-form AI interviewer.

Instead of reading questions verbatim, the language model holds a natural
conversation and is steered towards one question bank topic per turn.
Dossier extraction and red-flag detection run in the background after
every exchange.
"""

import logging
from typing import Optional

from api.models import MessageRole, Question
from config import InterviewSettings
from intelligence.conversation import (
    COMPLETION_MESSAGE,
    BaseInterview,
    ConversationStart,
    TurnResult,
)
from intelligence.dossier import DossierExtractor
from intelligence.errors import LanguageModelError
from intelligence.llm import ChatMessage, create_language_model
from intelligence.prompts import AI_GREETING, FALLBACK_FOLLOW_UP, build_interview_prompt
from intelligence.red_flags import RedFlagDetector
from intelligence.scoring import ScoringEngine
from intelligence.tasks import TaskRunner
from storage import VettingStore

logger = logging.getLogger(__name__)

# Messages allowed past the configured minimum before the interview must wrap up
GRACE_MESSAGES = 5


class AIInterviewer(BaseInterview):
    """Model-driven interview that works the question bank in naturally."""

    def __init__(self, store: VettingStore, tasks: Optional[TaskRunner] = None):
        super().__init__(store, tasks)
        self.dossier = DossierExtractor(store)
        self.red_flags = RedFlagDetector(store)
        self.scoring = ScoringEngine(store)

    def start_conversation(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> ConversationStart:
        """Start a free-form interview with an open-ended greeting."""
        client = self.clients.begin_interview(email, first_name, last_name)
        conversation = self._open_conversation(client)

        with self.store.conversation_lock(conversation.id):
            greeting = AI_GREETING.format(name=client.first_name or "there")
            self._append(conversation, MessageRole.ASSISTANT, greeting)
            self.store.update_conversation(conversation)

        return ConversationStart(
            conversation_id=conversation.id,
            client_id=client.id,
            greeting=greeting,
        )

    def process_message(self, conversation_id: int, text: str) -> TurnResult:
        """
        Store the client's message and reply through the language model.

        If the model fails or returns nothing, the reply falls back to the
        chosen question's text.

        Raises:
            ConversationNotFound: If the conversation does not exist
            ConversationNotActive: If the conversation already ended
        """
        with self.store.conversation_lock(conversation_id):
            conversation = self._load_active(conversation_id)
            settings = self.store.interview_settings()
            self._append(conversation, MessageRole.USER, text)

            question = self.next_question(conversation.id)
            # The assistant reply about to be stored counts towards the limit
            ended = self._limit_reached(
                conversation.total_messages + 1, settings
            ) and self.required_questions_asked(conversation.id)

            if ended:
                reply = COMPLETION_MESSAGE
            else:
                reply = self._generate_reply(conversation.id, question, settings)
                if question is not None:
                    self.store.mark_question_asked(conversation.id, question.id)
                    conversation.current_question_id = question.id

            message = self._append(conversation, MessageRole.ASSISTANT, reply)
            if ended:
                self._complete(conversation)
            self.store.update_conversation(conversation)

        client_id = conversation.client_id
        self.tasks.submit(
            f"extract-dossier-{conversation_id}",
            self.dossier.extract_from_conversation,
            client_id,
            conversation_id,
        )
        if ended:
            self.tasks.submit(
                f"final-review-{conversation_id}",
                self._final_review,
                client_id,
                conversation_id,
                settings.auto_evaluate,
            )
        else:
            self.tasks.submit(
                f"detect-red-flags-{conversation_id}",
                self.red_flags.detect,
                client_id,
                conversation_id,
            )

        return TurnResult(
            message_id=message.id,
            assistant_text=reply,
            conversation_ended=ended,
            total_messages=conversation.total_messages,
            current_question_id=conversation.current_question_id,
            waiting_for_additional_info=False,
        )

    def next_question(self, conversation_id: int) -> Optional[Question]:
        """Next topic: unasked required questions first, then unasked optional ones."""
        asked = self.store.asked_question_ids(conversation_id)
        unasked = [q for q in self.store.list_active_questions() if q.id not in asked]
        for question in unasked:
            if question.is_required:
                return question
        return unasked[0] if unasked else None

    def required_questions_asked(self, conversation_id: int) -> bool:
        asked = self.store.asked_question_ids(conversation_id)
        return all(
            q.id in asked for q in self.store.list_active_questions() if q.is_required
        )

    def _limit_reached(self, total_messages: int, settings: InterviewSettings) -> bool:
        return total_messages >= settings.min_messages_threshold + GRACE_MESSAGES

    def _generate_reply(
        self,
        conversation_id: int,
        question: Optional[Question],
        settings: InterviewSettings,
    ) -> str:
        fallback = question.text if question else FALLBACK_FOLLOW_UP
        system_prompt = build_interview_prompt(
            settings.system_prompt, question.text if question else None
        )
        history = [
            ChatMessage(m.role.value, m.content)
            for m in self.store.list_messages(conversation_id)
        ]

        model = create_language_model(settings)
        try:
            reply = model.complete(history, system_prompt)
        except LanguageModelError as e:
            logger.warning(
                "Interview reply failed for conversation %s, using fallback: %s",
                conversation_id,
                e,
            )
            return fallback

        if not reply.strip():
            logger.warning("Empty interview reply for conversation %s", conversation_id)
            return fallback
        return reply.strip()

    def _final_review(self, client_id: int, conversation_id: int, evaluate: bool) -> None:
        # Red flags first so the score includes their penalty
        self.red_flags.detect(client_id, conversation_id)
        if evaluate:
            self.scoring.evaluate_client(client_id)
