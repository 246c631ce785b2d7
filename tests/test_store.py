"""Tests for the in-memory store."""

import pytest

from api.models import (
    Client,
    Conversation,
    MessageRole,
    Question,
    RedFlag,
    RedFlagDetection,
)
from storage import seed_defaults


def test_active_questions_ordered_by_priority_then_id(store):
    low = store.add_question(Question(text="low", priority=1))
    high_a = store.add_question(Question(text="high a", priority=9))
    high_b = store.add_question(Question(text="high b", priority=9))
    store.add_question(Question(text="off", priority=99, is_active=False))

    assert [q.id for q in store.list_active_questions()] == [high_a.id, high_b.id, low.id]


def test_reads_return_copies(store):
    client = store.add_client(Client(email="a@x.com"))

    copy = store.get_client(client.id)
    copy.first_name = "Changed"

    assert store.get_client(client.id).first_name is None


def test_duplicate_email_rejected(store):
    store.add_client(Client(email="a@x.com"))
    with pytest.raises(ValueError):
        store.add_client(Client(email="a@x.com"))


def test_message_ids_increase(store):
    first = store.add_message(1, MessageRole.USER, "one")
    second = store.add_message(2, MessageRole.USER, "two")
    third = store.add_message(1, MessageRole.ASSISTANT, "three")

    assert first.id < second.id < third.id
    assert [m.content for m in store.list_messages(1)] == ["one", "three"]
    assert store.latest_message(1).id == third.id


def test_save_answer_overwrites(store):
    store.save_answer(1, 5, "first")
    answer = store.save_answer(1, 5, "second")

    assert store.list_answers(1) == [answer]
    assert store.latest_answer(1, 5).answer == "second"
    assert store.answered_question_ids(1) == {5}


def test_add_detection_once_per_flag(store):
    flag = store.add_red_flag(RedFlag(name="f"))
    detection = RedFlagDetection(client_id=1, red_flag_id=flag.id, reason="r", confidence=0.5)

    assert store.add_detection(detection) is not None
    assert store.add_detection(detection) is None
    assert len(store.list_detections(1)) == 1


def test_conversation_lock_is_shared(store):
    first = store.add_conversation(Conversation(client_id=1))
    second = store.add_conversation(Conversation(client_id=1))

    assert store.conversation_lock(first.id) is store.conversation_lock(first.id)
    assert store.conversation_lock(first.id) is not store.conversation_lock(second.id)


def test_missing_conversation_locks_are_not_kept(store):
    for conversation_id in range(100, 110):
        with store.conversation_lock(conversation_id):
            pass

    assert store.conversation_lock(100) is not store.conversation_lock(100)
    assert store._conversation_locks == {}


def test_delete_client_cascades(store):
    client = store.add_client(Client(email="a@x.com"))
    conversation = store.add_conversation(Conversation(client_id=client.id))
    store.add_message(conversation.id, MessageRole.USER, "hi")
    store.save_answer(conversation.id, 1, "answer")

    assert store.delete_client(client.id) is True
    assert store.get_conversation(conversation.id) is None
    assert store.list_messages(conversation.id) == []
    assert store.list_answers(conversation.id) == []
    assert store.delete_client(client.id) is False


def test_seed_defaults_once(store):
    assert seed_defaults(store) is True
    assert seed_defaults(store) is False

    assert len(store.list_active_questions()) == 10
    assert len(store.list_active_criteria()) == 5
    assert len(store.list_active_red_flags()) == 6
    settings = store.interview_settings()
    assert settings.ai_provider == "mock"
    assert settings.min_messages_threshold == 20
    assert settings.auto_evaluate is True
