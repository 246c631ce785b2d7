"""
In-memory store for clients, conversations, dossiers and configuration.

All reads return copies; callers persist changes through the update_*
methods. Ids are assigned per table and increase strictly, so message ids
define transcript order.

CONCURRENCY:
- transaction() holds the store lock across check-then-insert sequences
- conversation_lock() serializes all work on one conversation
"""

import itertools
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from functools import lru_cache
from typing import Iterator, Optional

from api.models import (
    AskedQuestion,
    Client,
    Conversation,
    Criteria,
    DossierCategory,
    DossierEntry,
    Message,
    MessageRole,
    Question,
    QuestionAnswer,
    RedFlag,
    RedFlagDetection,
)
from config import InterviewSettings


class VettingStore:
    """In-memory persistence for the vetting service."""

    def __init__(self):
        self._lock = threading.RLock()
        self._conversation_locks: dict[int, threading.Lock] = {}
        self._ids: dict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))

        self._questions: dict[int, Question] = {}
        self._clients: dict[int, Client] = {}
        self._conversations: dict[int, Conversation] = {}
        self._messages: dict[int, Message] = {}
        self._answers: dict[int, QuestionAnswer] = {}
        self._asked: dict[int, AskedQuestion] = {}
        self._dossier: dict[int, DossierEntry] = {}
        self._red_flags: dict[int, RedFlag] = {}
        self._detections: dict[int, RedFlagDetection] = {}
        self._criteria: dict[int, Criteria] = {}
        self._settings: dict[str, str] = {}

    def _next_id(self, table: str) -> int:
        return next(self._ids[table])

    @contextmanager
    def transaction(self):
        """Hold the store lock for a multi-step read/modify/write."""
        with self._lock:
            yield self

    def conversation_lock(self, conversation_id: int) -> threading.Lock:
        """
        Get the lock that serializes work on one conversation.

        Unknown ids get a throwaway lock that is not kept, so lookups for
        missing conversations do not grow the lock table.
        """
        with self._lock:
            if conversation_id not in self._conversations:
                return threading.Lock()
            lock = self._conversation_locks.get(conversation_id)
            if lock is None:
                lock = threading.Lock()
                self._conversation_locks[conversation_id] = lock
            return lock

    # Questions

    def add_question(self, question: Question) -> Question:
        """Store a new question and return it with its id."""
        with self._lock:
            stored = question.model_copy(update={"id": self._next_id("questions")})
            self._questions[stored.id] = stored
            return stored.model_copy()

    def get_question(self, question_id: int) -> Optional[Question]:
        """Retrieve a question by ID."""
        with self._lock:
            question = self._questions.get(question_id)
            return question.model_copy() if question else None

    def list_questions(self) -> list[Question]:
        """List all questions, active or not, in bank order."""
        with self._lock:
            return [q.model_copy() for q in sorted(self._questions.values(), key=_bank_order)]

    def list_active_questions(self) -> list[Question]:
        """List active questions by priority (highest first), then id."""
        return [q for q in self.list_questions() if q.is_active]

    def update_question(self, question: Question) -> None:
        """Update an existing question."""
        with self._lock:
            if question.id not in self._questions:
                raise KeyError(f"Question {question.id} not found")
            self._questions[question.id] = question.model_copy()

    # Clients

    def add_client(self, client: Client) -> Client:
        """Store a new client. Email must be unique."""
        with self._lock:
            if self._find_client_by_email(client.email) is not None:
                raise ValueError(f"Client with email {client.email} already exists")
            stored = client.model_copy(update={"id": self._next_id("clients")})
            self._clients[stored.id] = stored
            return stored.model_copy()

    def get_client(self, client_id: int) -> Optional[Client]:
        """Retrieve a client by ID."""
        with self._lock:
            client = self._clients.get(client_id)
            return client.model_copy() if client else None

    def get_client_by_email(self, email: str) -> Optional[Client]:
        """Retrieve a client by exact email."""
        with self._lock:
            client = self._find_client_by_email(email)
            return client.model_copy() if client else None

    def _find_client_by_email(self, email: str) -> Optional[Client]:
        for client in self._clients.values():
            if client.email == email:
                return client
        return None

    def update_client(self, client: Client) -> None:
        """Update an existing client and stamp updated_at."""
        with self._lock:
            if client.id not in self._clients:
                raise KeyError(f"Client {client.id} not found")
            self._clients[client.id] = client.model_copy(
                update={"updated_at": datetime.utcnow()}
            )

    def list_clients(self) -> list[Client]:
        """List all clients, newest first."""
        with self._lock:
            clients = sorted(self._clients.values(), key=lambda c: c.id, reverse=True)
            return [c.model_copy() for c in clients]

    def delete_client(self, client_id: int) -> bool:
        """Delete a client with its conversations, dossier and detections."""
        with self._lock:
            if self._clients.pop(client_id, None) is None:
                return False
            conversation_ids = {
                c.id for c in self._conversations.values() if c.client_id == client_id
            }
            _drop(self._conversations, lambda c: c.id in conversation_ids)
            _drop(self._messages, lambda m: m.conversation_id in conversation_ids)
            _drop(self._answers, lambda a: a.conversation_id in conversation_ids)
            _drop(self._asked, lambda a: a.conversation_id in conversation_ids)
            _drop(self._dossier, lambda d: d.client_id == client_id)
            _drop(self._detections, lambda d: d.client_id == client_id)
            for conversation_id in conversation_ids:
                self._conversation_locks.pop(conversation_id, None)
            return True

    # Conversations

    def add_conversation(self, conversation: Conversation) -> Conversation:
        """Store a new conversation and return it with its id."""
        with self._lock:
            stored = conversation.model_copy(
                update={"id": self._next_id("conversations")}
            )
            self._conversations[stored.id] = stored
            return stored.model_copy()

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        """Retrieve a conversation by ID."""
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy() if conversation else None

    def update_conversation(self, conversation: Conversation) -> None:
        """Update an existing conversation."""
        with self._lock:
            if conversation.id not in self._conversations:
                raise KeyError(f"Conversation {conversation.id} not found")
            self._conversations[conversation.id] = conversation.model_copy()

    def list_conversations(self, client_id: Optional[int] = None) -> list[Conversation]:
        """List conversations, optionally for one client, oldest first."""
        with self._lock:
            return [
                c.model_copy()
                for c in sorted(self._conversations.values(), key=lambda c: c.id)
                if client_id is None or c.client_id == client_id
            ]

    # Messages

    def add_message(
        self, conversation_id: int, role: MessageRole, content: str
    ) -> Message:
        """Append a message to a conversation transcript."""
        with self._lock:
            message = Message(
                id=self._next_id("messages"),
                conversation_id=conversation_id,
                role=role,
                content=content,
            )
            self._messages[message.id] = message
            return message

    def list_messages(self, conversation_id: int) -> list[Message]:
        """List a conversation's messages in transcript order."""
        with self._lock:
            return [
                m
                for m in sorted(self._messages.values(), key=lambda m: m.id)
                if m.conversation_id == conversation_id
            ]

    def recent_messages(self, conversation_id: int, limit: int) -> list[Message]:
        """The last `limit` messages of a conversation, oldest first."""
        return self.list_messages(conversation_id)[-limit:]

    def latest_message(self, conversation_id: int) -> Optional[Message]:
        """The most recent message of a conversation."""
        messages = self.list_messages(conversation_id)
        return messages[-1] if messages else None

    def list_client_messages(self, client_id: int) -> list[Message]:
        """All messages across a client's conversations, chronological."""
        with self._lock:
            conversation_ids = {
                c.id for c in self._conversations.values() if c.client_id == client_id
            }
            return [
                m
                for m in sorted(self._messages.values(), key=lambda m: m.id)
                if m.conversation_id in conversation_ids
            ]

    # Answers

    def save_answer(
        self, conversation_id: int, question_id: int, answer: str
    ) -> QuestionAnswer:
        """Save the answer for (conversation, question), overwriting any earlier one."""
        with self._lock:
            existing = self._find_answer(conversation_id, question_id)
            if existing is not None:
                stored = existing.model_copy(
                    update={
                        "answer": answer,
                        "additional_info": None,
                        "answered_at": datetime.utcnow(),
                    }
                )
            else:
                stored = QuestionAnswer(
                    id=self._next_id("answers"),
                    conversation_id=conversation_id,
                    question_id=question_id,
                    answer=answer,
                )
            self._answers[stored.id] = stored
            return stored.model_copy()

    def latest_answer(
        self, conversation_id: int, question_id: int
    ) -> Optional[QuestionAnswer]:
        """The answer recorded for a question in a conversation."""
        with self._lock:
            answer = self._find_answer(conversation_id, question_id)
            return answer.model_copy() if answer else None

    def _find_answer(
        self, conversation_id: int, question_id: int
    ) -> Optional[QuestionAnswer]:
        matches = [
            a
            for a in self._answers.values()
            if a.conversation_id == conversation_id and a.question_id == question_id
        ]
        return max(matches, key=lambda a: a.answered_at) if matches else None

    def update_answer(self, answer: QuestionAnswer) -> None:
        """Update an existing answer."""
        with self._lock:
            if answer.id not in self._answers:
                raise KeyError(f"Answer {answer.id} not found")
            self._answers[answer.id] = answer.model_copy()

    def list_answers(self, conversation_id: int) -> list[QuestionAnswer]:
        """List a conversation's answers in the order they were first saved."""
        with self._lock:
            return [
                a.model_copy()
                for a in sorted(self._answers.values(), key=lambda a: a.id)
                if a.conversation_id == conversation_id
            ]

    def list_client_answers(self, client_id: int) -> list[QuestionAnswer]:
        """List every answer the client gave, across conversations."""
        answers = []
        for conversation in self.list_conversations(client_id):
            answers.extend(self.list_answers(conversation.id))
        return answers

    def answered_question_ids(self, conversation_id: int) -> set[int]:
        """Ids of the questions answered in a conversation."""
        return {a.question_id for a in self.list_answers(conversation_id)}

    # Asked questions (AI interviewer)

    def mark_question_asked(self, conversation_id: int, question_id: int) -> None:
        """Record that a question was worked into the conversation."""
        with self._lock:
            if question_id in self.asked_question_ids(conversation_id):
                return
            asked = AskedQuestion(
                id=self._next_id("asked"),
                conversation_id=conversation_id,
                question_id=question_id,
            )
            self._asked[asked.id] = asked

    def asked_question_ids(self, conversation_id: int) -> set[int]:
        """Ids of the questions already asked in a conversation."""
        with self._lock:
            return {
                a.question_id
                for a in self._asked.values()
                if a.conversation_id == conversation_id
            }

    # Dossier

    def get_dossier_entry(
        self, client_id: int, category: DossierCategory, key_name: str
    ) -> Optional[DossierEntry]:
        """Find the entry for (client, category, key)."""
        with self._lock:
            for entry in self._dossier.values():
                if (
                    entry.client_id == client_id
                    and entry.category == category
                    and entry.key_name == key_name
                ):
                    return entry.model_copy()
            return None

    def add_dossier_entry(self, entry: DossierEntry) -> DossierEntry:
        """Store a new dossier entry."""
        with self._lock:
            stored = entry.model_copy(update={"id": self._next_id("dossier")})
            self._dossier[stored.id] = stored
            return stored.model_copy()

    def update_dossier_entry(self, entry: DossierEntry) -> None:
        """Update an existing dossier entry and stamp updated_at."""
        with self._lock:
            if entry.id not in self._dossier:
                raise KeyError(f"Dossier entry {entry.id} not found")
            self._dossier[entry.id] = entry.model_copy(
                update={"updated_at": datetime.utcnow()}
            )

    def delete_dossier_entry(self, entry_id: int) -> bool:
        """Remove one dossier entry. Returns False if it did not exist."""
        with self._lock:
            return self._dossier.pop(entry_id, None) is not None

    def list_dossier(self, client_id: int) -> list[DossierEntry]:
        """List a client's dossier entries by category, then key."""
        with self._lock:
            entries = [e for e in self._dossier.values() if e.client_id == client_id]
            entries.sort(key=lambda e: (e.category.value, e.key_name))
            return [e.model_copy() for e in entries]

    # Red flags

    def add_red_flag(self, red_flag: RedFlag) -> RedFlag:
        """Store a new red flag definition."""
        with self._lock:
            stored = red_flag.model_copy(update={"id": self._next_id("red_flags")})
            self._red_flags[stored.id] = stored
            return stored.model_copy()

    def get_red_flag(self, red_flag_id: int) -> Optional[RedFlag]:
        """Retrieve a red flag by ID."""
        with self._lock:
            red_flag = self._red_flags.get(red_flag_id)
            return red_flag.model_copy() if red_flag else None

    def list_active_red_flags(self) -> list[RedFlag]:
        """List active red flags in id order."""
        with self._lock:
            return [
                f.model_copy()
                for f in sorted(self._red_flags.values(), key=lambda f: f.id)
                if f.is_active
            ]

    def has_detection(self, client_id: int, red_flag_id: int) -> bool:
        """Whether the flag has already been raised for the client."""
        with self._lock:
            return any(
                d.client_id == client_id and d.red_flag_id == red_flag_id
                for d in self._detections.values()
            )

    def add_detection(self, detection: RedFlagDetection) -> Optional[RedFlagDetection]:
        """
        Store a detection unless one exists for (client, red flag).

        Returns:
            The stored detection, or None if it was a duplicate
        """
        with self._lock:
            if self.has_detection(detection.client_id, detection.red_flag_id):
                return None
            stored = detection.model_copy(update={"id": self._next_id("detections")})
            self._detections[stored.id] = stored
            return stored.model_copy()

    def list_detections(self, client_id: int) -> list[RedFlagDetection]:
        """List a client's detections in the order they were raised."""
        with self._lock:
            return [
                d.model_copy()
                for d in sorted(self._detections.values(), key=lambda d: d.id)
                if d.client_id == client_id
            ]

    # Criteria

    def add_criteria(self, criteria: Criteria) -> Criteria:
        """Store a new scoring criterion."""
        with self._lock:
            stored = criteria.model_copy(update={"id": self._next_id("criteria")})
            self._criteria[stored.id] = stored
            return stored.model_copy()

    def list_active_criteria(self) -> list[Criteria]:
        """List active criteria in id order."""
        with self._lock:
            return [
                c.model_copy()
                for c in sorted(self._criteria.values(), key=lambda c: c.id)
                if c.is_active
            ]

    # Settings

    def get_settings(self) -> dict[str, str]:
        """All key/value settings."""
        with self._lock:
            return dict(self._settings)

    def set_setting(self, key: str, value: str) -> None:
        """Create or replace a setting."""
        with self._lock:
            self._settings[key] = value

    def interview_settings(self) -> InterviewSettings:
        """Parse the stored settings into InterviewSettings."""
        return InterviewSettings.from_mapping(self.get_settings())

    def is_empty(self) -> bool:
        """Whether no questions, criteria or red flags have been configured."""
        with self._lock:
            return not (self._questions or self._criteria or self._red_flags)


def _bank_order(question: Question) -> tuple[int, int]:
    return (-question.priority, question.id)


def _drop(table: dict, predicate) -> None:
    for key in [k for k, v in table.items() if predicate(v)]:
        del table[key]


# Singleton instance
_storage_instance: Optional[VettingStore] = None


@lru_cache
def get_storage() -> VettingStore:
    """Get the singleton storage instance."""
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = VettingStore()
    return _storage_instance


def reset_storage() -> None:
    """Drop the singleton so the next get_storage() starts empty."""
    global _storage_instance
    _storage_instance = None
    get_storage.cache_clear()
