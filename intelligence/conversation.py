"""
Structured interview engine.

Walks the client through the question bank one question at a time. After
each answer the client is offered a chance to add more detail:

    AwaitingAnswer --answer--> AwaitingAdditionalInfo
    AwaitingAdditionalInfo --"yes"--> AwaitingAdditionalInfo (asks for the detail)
    AwaitingAdditionalInfo --"no" / detail--> AwaitingAnswer (next question) or Completed

Every call to process_message stores exactly one user message and one
assistant message.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from api.models import (
    Client,
    ClientStatus,
    Conversation,
    ConversationStatus,
    MessageRole,
    Question,
)
from intelligence.clients import ClientManager
from intelligence.dossier import DossierExtractor
from intelligence.errors import (
    ConversationNotActive,
    ConversationNotFound,
    NoQuestionsConfigured,
)
from intelligence.tasks import InlineTaskRunner, TaskRunner
from storage import VettingStore

logger = logging.getLogger(__name__)

GREETING = (
    "Hello {name}! Thank you for your interest. I'll be asking you a series of "
    "questions to get to know you better. Let's start:\n\n{question}"
)
ADDITIONAL_INFO_PROMPT = "Would you like to provide any additional information? (yes/no)"
ADDITIONAL_INFO_REQUEST = "Please provide any additional information you'd like to share:"
COMPLETION_MESSAGE = (
    "Thank you for answering all the questions! Your responses have been saved. "
    "We'll review your information and get back to you soon."
)

YES_REPLIES = {"yes", "y"}
NO_REPLIES = {"no", "n"}


@dataclass
class ConversationStart:
    """Result of starting an interview."""

    conversation_id: int
    client_id: int
    greeting: str
    first_question_id: Optional[int] = None
    first_question_text: Optional[str] = None


@dataclass
class TurnResult:
    """Result of processing one client message."""

    message_id: int
    assistant_text: str
    conversation_ended: bool
    total_messages: int
    current_question_id: Optional[int]
    waiting_for_additional_info: bool


class BaseInterview(ABC):
    """Conversation bookkeeping shared by both interview styles."""

    def __init__(self, store: VettingStore, tasks: Optional[TaskRunner] = None):
        self.store = store
        self.tasks = tasks or InlineTaskRunner()
        self.clients = ClientManager(store)

    @abstractmethod
    def start_conversation(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> ConversationStart:
        """Find or create the client and open a new conversation."""

    @abstractmethod
    def process_message(self, conversation_id: int, text: str) -> TurnResult:
        """Store one client message and the assistant's reply."""

    def abandon_conversation(self, conversation_id: int) -> Conversation:
        """Stop an active conversation without completing it."""
        with self.store.conversation_lock(conversation_id):
            conversation = self._load_active(conversation_id)
            conversation.status = ConversationStatus.ABANDONED
            conversation.ended_at = datetime.utcnow()
            self.store.update_conversation(conversation)
        logger.info("Conversation %s abandoned", conversation_id)
        return conversation

    def _open_conversation(self, client: Client) -> Conversation:
        conversation = self.store.add_conversation(Conversation(client_id=client.id))
        logger.info(
            "Created conversation %s for client %s", conversation.id, client.id
        )
        return conversation

    def _load_active(self, conversation_id: int) -> Conversation:
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        if conversation.status != ConversationStatus.ACTIVE:
            raise ConversationNotActive(conversation_id, conversation.status.value)
        return conversation

    def _append(self, conversation: Conversation, role: MessageRole, content: str):
        message = self.store.add_message(conversation.id, role, content)
        conversation.total_messages += 1
        return message

    def _complete(self, conversation: Conversation) -> None:
        conversation.status = ConversationStatus.COMPLETED
        conversation.ended_at = datetime.utcnow()
        self.clients.set_status(conversation.client_id, ClientStatus.INTERVIEW_COMPLETED)
        logger.info(
            "Conversation %s completed after %d messages",
            conversation.id,
            conversation.total_messages,
        )


class ConversationEngine(BaseInterview):
    """Asks the question bank in priority order, one question at a time."""

    def __init__(self, store: VettingStore, tasks: Optional[TaskRunner] = None):
        super().__init__(store, tasks)
        self.dossier = DossierExtractor(store)

    def start_conversation(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> ConversationStart:
        """
        Start an interview for the client with this email.

        Args:
            email: Client email, used to find or create the client
            first_name: Optional first name, kept only if non-empty
            last_name: Optional last name, kept only if non-empty

        Returns:
            Conversation and client ids, the greeting and the first question

        Raises:
            NoQuestionsConfigured: If the question bank has no active questions
        """
        questions = self.store.list_active_questions()
        if not questions:
            logger.error("No active questions found")
            raise NoQuestionsConfigured()
        first = questions[0]

        client = self.clients.begin_interview(email, first_name, last_name)
        conversation = self._open_conversation(client)

        with self.store.conversation_lock(conversation.id):
            conversation.current_question_id = first.id
            greeting = GREETING.format(
                name=client.first_name or "there", question=first.text
            )
            self._append(conversation, MessageRole.ASSISTANT, greeting)
            self.store.update_conversation(conversation)

        return ConversationStart(
            conversation_id=conversation.id,
            client_id=client.id,
            greeting=greeting,
            first_question_id=first.id,
            first_question_text=first.text,
        )

    def process_message(self, conversation_id: int, text: str) -> TurnResult:
        """
        Handle one client message.

        Raises:
            ConversationNotFound: If the conversation does not exist
            ConversationNotActive: If the conversation already ended
        """
        with self.store.conversation_lock(conversation_id):
            conversation = self._load_active(conversation_id)
            self._append(conversation, MessageRole.USER, text)

            if not conversation.waiting_for_additional_info:
                reply, ended = self._record_answer(conversation, text)
            else:
                normalized = text.strip().lower()
                if normalized in YES_REPLIES:
                    reply, ended = ADDITIONAL_INFO_REQUEST, False
                else:
                    self._record_additional_info(
                        conversation, None if normalized in NO_REPLIES else text
                    )
                    reply, ended = self._advance(conversation)

            message = self._append(conversation, MessageRole.ASSISTANT, reply)
            self.store.update_conversation(conversation)

            if ended:
                self.dossier.finalize_conversation(conversation.id)

        return TurnResult(
            message_id=message.id,
            assistant_text=reply,
            conversation_ended=ended,
            total_messages=conversation.total_messages,
            current_question_id=conversation.current_question_id,
            waiting_for_additional_info=conversation.waiting_for_additional_info,
        )

    def _record_answer(self, conversation: Conversation, text: str) -> tuple[str, bool]:
        if conversation.current_question_id is None:
            # Nothing pending; move on as if the previous question was closed
            return self._advance(conversation)
        self.store.save_answer(conversation.id, conversation.current_question_id, text)
        conversation.waiting_for_additional_info = True
        return ADDITIONAL_INFO_PROMPT, False

    def _record_additional_info(
        self, conversation: Conversation, additional_info: Optional[str]
    ) -> None:
        answer = self.store.latest_answer(conversation.id, conversation.current_question_id)
        if answer is not None:
            answer.additional_info = additional_info
            self.store.update_answer(answer)
        conversation.waiting_for_additional_info = False

    def _advance(self, conversation: Conversation) -> tuple[str, bool]:
        """Move to the next unanswered question, or complete the conversation."""
        next_question = self.next_question(conversation.id)
        if next_question is None:
            self._complete(conversation)
            return COMPLETION_MESSAGE, True
        conversation.current_question_id = next_question.id
        return next_question.text, False

    def next_question(self, conversation_id: int) -> Optional[Question]:
        """Highest-priority active question not yet answered in this conversation."""
        answered = self.store.answered_question_ids(conversation_id)
        for question in self.store.list_active_questions():
            if question.id not in answered:
                return question
        return None
