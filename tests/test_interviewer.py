"""Tests for the free-form AI interviewer."""

import pytest

from api.models import ClientStatus, ConversationStatus, Criteria, Question
from intelligence.conversation import COMPLETION_MESSAGE
from intelligence.errors import ConversationNotActive, LanguageModelError
from intelligence.interviewer import AIInterviewer
from intelligence.prompts import FALLBACK_FOLLOW_UP
from intelligence.tasks import InlineTaskRunner
from tests.conftest import RecordingTasks


@pytest.fixture
def tasks():
    return RecordingTasks()


@pytest.fixture
def interviewer(store, script, tasks):
    return AIInterviewer(store, tasks)


def test_start_has_open_greeting(store, interviewer):
    start = interviewer.start_conversation("a@x.com", first_name="Sam")

    assert start.first_question_id is None
    assert start.greeting.startswith("Hello Sam!")
    assert store.get_conversation(start.conversation_id).total_messages == 1


def test_reply_comes_from_model(store, script, interviewer, two_questions):
    q1, _ = two_questions
    script.replies = ["That sounds great. What are you hoping to achieve?"]
    start = interviewer.start_conversation("a@x.com")

    turn = interviewer.process_message(start.conversation_id, "I run a bakery.")

    assert turn.assistant_text == "That sounds great. What are you hoping to achieve?"
    assert turn.total_messages == 3
    assert turn.current_question_id == q1.id
    assert store.asked_question_ids(start.conversation_id) == {q1.id}

    history, system_prompt = script.requests[0]
    assert [m.content for m in history][-1] == "I run a bakery."
    assert '"Q1"' in system_prompt
    assert "2-4 sentences" in system_prompt


def test_required_questions_come_before_optional(store, script, interviewer):
    optional = store.add_question(Question(text="optional", priority=10, is_required=False))
    required = store.add_question(Question(text="required", priority=1))

    assert interviewer.next_question(1) == required
    store.mark_question_asked(1, required.id)
    assert interviewer.next_question(1) == optional
    store.mark_question_asked(1, optional.id)
    assert interviewer.next_question(1) is None


def test_model_failure_falls_back_to_question(store, script, interviewer, two_questions):
    script.replies = [LanguageModelError("timeout")]
    start = interviewer.start_conversation("a@x.com")

    turn = interviewer.process_message(start.conversation_id, "hello")

    assert turn.assistant_text == "Q1"


def test_empty_reply_falls_back(store, script, interviewer):
    script.replies = ["   "]
    start = interviewer.start_conversation("a@x.com")

    turn = interviewer.process_message(start.conversation_id, "hello")

    assert turn.assistant_text == FALLBACK_FOLLOW_UP


def test_each_exchange_queues_enrichment(store, script, interviewer, tasks, two_questions):
    script.replies = ["ok"]
    start = interviewer.start_conversation("a@x.com")

    interviewer.process_message(start.conversation_id, "hello")

    assert tasks.names() == [
        f"extract-dossier-{start.conversation_id}",
        f"detect-red-flags-{start.conversation_id}",
    ]


def test_ends_after_threshold_once_required_asked(store, script, interviewer, tasks):
    store.set_setting("min_messages_threshold", "0")
    store.set_setting("auto_evaluate", "false")
    question = store.add_question(Question(text="Only question", priority=1))
    script.replies = ["Tell me more.", "Anything else?"]
    start = interviewer.start_conversation("a@x.com")

    first = interviewer.process_message(start.conversation_id, "hi")
    assert first.conversation_ended is False
    assert first.current_question_id == question.id

    second = interviewer.process_message(start.conversation_id, "that's all")
    assert second.conversation_ended is True
    assert second.total_messages == 5
    assert second.assistant_text == COMPLETION_MESSAGE

    conversation = store.get_conversation(start.conversation_id)
    assert conversation.status == ConversationStatus.COMPLETED
    assert store.get_client(start.client_id).status == ClientStatus.INTERVIEW_COMPLETED
    assert f"final-review-{start.conversation_id}" in tasks.names()

    with pytest.raises(ConversationNotActive):
        interviewer.process_message(start.conversation_id, "wait")


def test_does_not_end_while_required_unasked(store, script, interviewer):
    store.set_setting("min_messages_threshold", "0")
    store.add_question(Question(text="R1", priority=3))
    store.add_question(Question(text="R2", priority=2))
    store.add_question(Question(text="R3", priority=1))
    script.replies = ["a", "b", "c"]
    start = interviewer.start_conversation("a@x.com")

    turns = [interviewer.process_message(start.conversation_id, "x") for _ in range(3)]

    # Past the limit after the second turn, but R3 is only asked on the third
    assert [t.conversation_ended for t in turns] == [False, False, False]
    turn = interviewer.process_message(start.conversation_id, "x")
    assert turn.conversation_ended is True


def test_final_review_scores_client(store, script, two_questions):
    store.set_setting("min_messages_threshold", "0")
    interviewer = AIInterviewer(store, InlineTaskRunner())
    script.replies = ["first", "second", "third"]
    script.score = "90"
    store.add_criteria(Criteria(name="Fit", weight=1.0, evaluation_prompt="Rate fit."))
    start = interviewer.start_conversation("a@x.com")

    ended = False
    while not ended:
        ended = interviewer.process_message(start.conversation_id, "answer").conversation_ended

    client = store.get_client(start.client_id)
    assert client.overall_score == 90.0
    assert client.status == ClientStatus.APPROVED
