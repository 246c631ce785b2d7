"""Tests for the structured interview engine."""

import threading

import pytest

from api.models import (
    Client,
    ClientStatus,
    ConversationStatus,
    DossierCategory,
    MessageRole,
    Question,
)
from intelligence.conversation import (
    ADDITIONAL_INFO_PROMPT,
    ADDITIONAL_INFO_REQUEST,
    COMPLETION_MESSAGE,
    BaseInterview,
    ConversationEngine,
)
from intelligence.errors import (
    ConversationNotActive,
    ConversationNotFound,
    NoQuestionsConfigured,
)
from storage import seed_defaults


@pytest.fixture
def engine(store):
    return ConversationEngine(store)


def test_two_question_interview(store, engine, two_questions):
    q1, q2 = two_questions

    start = engine.start_conversation("a@x.com")
    assert start.first_question_id == q1.id
    assert start.first_question_text == "Q1"
    assert start.greeting.endswith("Let's start:\n\nQ1")
    assert store.get_conversation(start.conversation_id).total_messages == 1

    turn = engine.process_message(start.conversation_id, "My answer to Q1")
    assert turn.assistant_text == ADDITIONAL_INFO_PROMPT
    assert turn.waiting_for_additional_info is True
    assert turn.total_messages == 3

    turn = engine.process_message(start.conversation_id, "no")
    assert turn.assistant_text == "Q2"
    assert turn.current_question_id == q2.id
    assert turn.waiting_for_additional_info is False
    assert turn.total_messages == 5

    turn = engine.process_message(start.conversation_id, "My answer to Q2")
    assert turn.total_messages == 7

    turn = engine.process_message(start.conversation_id, "no")
    assert turn.conversation_ended is True
    assert turn.assistant_text == COMPLETION_MESSAGE
    assert turn.total_messages == 9

    keys = {e.key_name for e in store.list_dossier(start.client_id)}
    assert keys == {f"question_{q1.id}", f"question_{q2.id}"}
    assert all(e.confidence_score == 1.0 for e in store.list_dossier(start.client_id))


def test_greeting_uses_first_name(engine, two_questions):
    start = engine.start_conversation("b@x.com", first_name="Dana")
    assert start.greeting.startswith("Hello Dana! Thank you for your interest.")

    start = engine.start_conversation("c@x.com")
    assert start.greeting.startswith("Hello there!")


def test_start_creates_in_progress_client(store, engine, two_questions):
    start = engine.start_conversation("new@x.com", "Ana", "Lee")
    client = store.get_client(start.client_id)
    assert client.status == ClientStatus.IN_PROGRESS
    assert (client.first_name, client.last_name) == ("Ana", "Lee")


def test_start_keeps_existing_names_when_new_ones_empty(store, engine, two_questions):
    existing = store.add_client(
        Client(email="old@x.com", first_name="Ana", last_name="Lee", status=ClientStatus.REJECTED)
    )

    start = engine.start_conversation("old@x.com", first_name="", last_name=None)

    assert start.client_id == existing.id
    client = store.get_client(existing.id)
    assert client.status == ClientStatus.IN_PROGRESS
    assert (client.first_name, client.last_name) == ("Ana", "Lee")


def test_start_without_questions_fails(store, engine):
    with pytest.raises(NoQuestionsConfigured):
        engine.start_conversation("a@x.com")
    assert store.list_clients() == []


def test_inactive_questions_are_skipped(store, engine):
    store.add_question(Question(text="hidden", priority=99, is_active=False))
    visible = store.add_question(Question(text="visible", priority=1))

    start = engine.start_conversation("a@x.com")
    assert start.first_question_id == visible.id


def test_yes_keeps_waiting_without_saving(store, engine, two_questions):
    q1, _ = two_questions
    start = engine.start_conversation("a@x.com")
    engine.process_message(start.conversation_id, "first answer")

    turn = engine.process_message(start.conversation_id, "  YES ")

    assert turn.assistant_text == ADDITIONAL_INFO_REQUEST
    assert turn.waiting_for_additional_info is True
    assert turn.current_question_id == q1.id
    answer = store.latest_answer(start.conversation_id, q1.id)
    assert answer.answer == "first answer"
    assert answer.additional_info is None


def test_additional_info_attaches_to_answer(store, engine, two_questions):
    q1, q2 = two_questions
    start = engine.start_conversation("a@x.com")
    engine.process_message(start.conversation_id, "first answer")
    engine.process_message(start.conversation_id, "y")

    turn = engine.process_message(start.conversation_id, "Some more detail")

    assert turn.current_question_id == q2.id
    assert turn.waiting_for_additional_info is False
    answers = store.list_answers(start.conversation_id)
    assert len(answers) == 1
    assert answers[0].additional_info == "Some more detail"


def test_no_never_creates_an_answer(store, engine, two_questions):
    start = engine.start_conversation("a@x.com")
    engine.process_message(start.conversation_id, "answer")
    engine.process_message(start.conversation_id, "n")

    assert len(store.list_answers(start.conversation_id)) == 1


def test_every_message_adds_two(store, engine, two_questions):
    start = engine.start_conversation("a@x.com")
    total = 1
    for text in ["a1", "yes", "detail", "a2", "no"]:
        turn = engine.process_message(start.conversation_id, text)
        total += 2
        assert turn.total_messages == total
    assert len(store.list_messages(start.conversation_id)) == total


def test_messages_alternate_roles(store, engine, two_questions):
    start = engine.start_conversation("a@x.com")
    engine.process_message(start.conversation_id, "a1")

    roles = [m.role for m in store.list_messages(start.conversation_id)]
    assert roles == [MessageRole.ASSISTANT, MessageRole.USER, MessageRole.ASSISTANT]


def test_completion_updates_client_and_dossier(store, engine, two_questions):
    q1, _ = two_questions
    start = engine.start_conversation("a@x.com")
    for text in ["a1", "extra", "a2", "no"]:
        engine.process_message(start.conversation_id, text)

    conversation = store.get_conversation(start.conversation_id)
    assert conversation.status == ConversationStatus.COMPLETED
    assert conversation.ended_at is not None
    assert store.get_client(start.client_id).status == ClientStatus.INTERVIEW_COMPLETED

    extra = store.get_dossier_entry(
        start.client_id, DossierCategory.GOALS, f"question_{q1.id}_additional"
    )
    assert extra.value == "extra"


def test_question_sequence_never_repeats(store, engine):
    seed_defaults(store)
    start = engine.start_conversation("a@x.com")

    seen = [start.first_question_id]
    ended = False
    while not ended:
        turn = engine.process_message(start.conversation_id, "answer")
        turn = engine.process_message(start.conversation_id, "no")
        ended = turn.conversation_ended
        if not ended:
            seen.append(turn.current_question_id)

    assert len(seen) == len(set(seen)) == 10
    priorities = [store.get_question(q).priority for q in seen]
    assert priorities == sorted(priorities, reverse=True)


def test_missing_conversation(engine):
    with pytest.raises(ConversationNotFound):
        engine.process_message(999, "hello")


def test_completed_conversation_rejects_messages(engine, two_questions):
    start = engine.start_conversation("a@x.com")
    for text in ["a1", "no", "a2", "no"]:
        engine.process_message(start.conversation_id, text)

    with pytest.raises(ConversationNotActive):
        engine.process_message(start.conversation_id, "one more thing")


def test_abandon_conversation(store, engine, two_questions):
    start = engine.start_conversation("a@x.com")

    conversation = engine.abandon_conversation(start.conversation_id)

    assert conversation.status == ConversationStatus.ABANDONED
    assert store.get_conversation(start.conversation_id).ended_at is not None
    with pytest.raises(ConversationNotActive):
        engine.process_message(start.conversation_id, "hello")
    with pytest.raises(ConversationNotActive):
        engine.abandon_conversation(start.conversation_id)


def test_answer_without_current_question_can_complete(store, engine, two_questions):
    q1, q2 = two_questions
    start = engine.start_conversation("a@x.com")
    store.save_answer(start.conversation_id, q1.id, "a1")
    store.save_answer(start.conversation_id, q2.id, "a2")
    conversation = store.get_conversation(start.conversation_id)
    conversation.current_question_id = None
    store.update_conversation(conversation)

    turn = engine.process_message(start.conversation_id, "anything else?")

    assert turn.conversation_ended is True
    assert turn.assistant_text == COMPLETION_MESSAGE
    assert store.get_conversation(start.conversation_id).status == ConversationStatus.COMPLETED
    assert len(store.list_dossier(start.client_id)) == 2


def test_concurrent_messages_are_serialized(store, engine):
    seed_defaults(store)
    start = engine.start_conversation("a@x.com")
    senders = 8
    barrier = threading.Barrier(senders)

    def send():
        barrier.wait()
        engine.process_message(start.conversation_id, "answer")

    threads = [threading.Thread(target=send) for _ in range(senders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    conversation = store.get_conversation(start.conversation_id)
    assert conversation.total_messages == 1 + 2 * senders

    roles = [m.role for m in store.list_messages(start.conversation_id)]
    assert len(roles) == 1 + 2 * senders
    assert roles[0] == MessageRole.ASSISTANT
    assert all(a != b for a, b in zip(roles, roles[1:]))

    # Each pair of messages is one answer plus its additional info
    answers = store.list_answers(start.conversation_id)
    question_ids = [a.question_id for a in answers]
    assert len(question_ids) == len(set(question_ids)) == senders // 2
    assert all(a.additional_info == "answer" for a in answers)


def test_base_interview_is_abstract(store):
    with pytest.raises(TypeError):
        BaseInterview(store)
