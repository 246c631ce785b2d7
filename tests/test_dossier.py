"""Tests for dossier extraction."""

import json

import pytest

from api.models import Client, Conversation, DossierCategory, DossierEntry, MessageRole
from intelligence.dossier import DossierExtractor, strip_code_fence
from intelligence.errors import LanguageModelError


@pytest.fixture
def extractor(store):
    return DossierExtractor(store)


@pytest.fixture
def conversation(store):
    client = store.add_client(Client(email="a@x.com"))
    conversation = store.add_conversation(Conversation(client_id=client.id))
    store.add_message(conversation.id, MessageRole.ASSISTANT, "What do you do?")
    store.add_message(conversation.id, MessageRole.USER, "I'm a married CEO.")
    return conversation


def test_category_labels():
    assert DossierCategory.from_label("personal_life") == DossierCategory.PERSONAL_LIFE
    assert DossierCategory.from_label("BusinessLife") == DossierCategory.BUSINESS_LIFE
    assert DossierCategory.from_label("hobbies") == DossierCategory.OTHER
    assert DossierCategory.from_label(None) == DossierCategory.OTHER


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence("```\n[]\n```") == "[]"
    assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


def test_finalize_copies_answers(store, extractor, two_questions):
    q1, q2 = two_questions
    client = store.add_client(Client(email="a@x.com"))
    conversation = store.add_conversation(Conversation(client_id=client.id))
    store.save_answer(conversation.id, q1.id, "Grow my business")
    answer = store.save_answer(conversation.id, q2.id, "Honesty")
    answer.additional_info = "And loyalty"
    store.update_answer(answer)

    written = extractor.finalize_conversation(conversation.id)

    assert written == 3
    goals = store.get_dossier_entry(client.id, DossierCategory.GOALS, f"question_{q1.id}")
    assert goals.value == "Grow my business"
    assert goals.confidence_score == 1.0
    extra = store.get_dossier_entry(
        client.id, DossierCategory.VALUES, f"question_{q2.id}_additional"
    )
    assert extra.value == "And loyalty"


def test_finalize_replaces_earlier_interview(store, extractor, two_questions):
    q1, _ = two_questions
    client = store.add_client(Client(email="a@x.com"))
    for answer in ["first", "second"]:
        conversation = store.add_conversation(Conversation(client_id=client.id))
        store.save_answer(conversation.id, q1.id, answer)
        extractor.finalize_conversation(conversation.id)

    entries = store.list_dossier(client.id)
    assert [e.value for e in entries] == ["second"]


def test_finalize_drops_additional_info_from_earlier_interview(store, extractor, two_questions):
    q1, _ = two_questions
    client = store.add_client(Client(email="a@x.com"))

    first = store.add_conversation(Conversation(client_id=client.id))
    answer = store.save_answer(first.id, q1.id, "old answer")
    answer.additional_info = "old extra"
    store.update_answer(answer)
    extractor.finalize_conversation(first.id)

    second = store.add_conversation(Conversation(client_id=client.id))
    store.save_answer(second.id, q1.id, "new answer")
    extractor.finalize_conversation(second.id)

    entries = store.list_dossier(client.id)
    assert [(e.key_name, e.value) for e in entries] == [(f"question_{q1.id}", "new answer")]


def test_extract_inserts_facts(store, script, extractor, conversation):
    script.extraction = "```json\n" + json.dumps(
        {
            "business_life": [{"key": "current_role", "value": "CEO", "confidence": 0.95}],
            "personallife": [{"key": "marital_status", "value": "married", "confidence": 1.5}],
            "hobbies": [{"key": "sport", "value": "golf", "confidence": 0.4}],
        }
    ) + "\n```"

    changed = extractor.extract_from_conversation(conversation.client_id, conversation.id)

    assert changed == 3
    latest = store.latest_message(conversation.id)
    role = store.get_dossier_entry(
        conversation.client_id, DossierCategory.BUSINESS_LIFE, "current_role"
    )
    assert role.value == "CEO"
    assert role.source_message_id == latest.id
    marital = store.get_dossier_entry(
        conversation.client_id, DossierCategory.PERSONAL_LIFE, "marital_status"
    )
    assert marital.confidence_score == 1.0
    assert store.get_dossier_entry(conversation.client_id, DossierCategory.OTHER, "sport")

    prompt = script.prompts_containing("Conversation:")[0]
    assert "User: I'm a married CEO." in prompt


def test_extract_only_overwrites_with_higher_confidence(store, script, extractor, conversation):
    store.add_dossier_entry(
        DossierEntry(
            client_id=conversation.client_id,
            category=DossierCategory.FINANCIAL,
            key_name="income",
            value="high",
            confidence_score=0.8,
        )
    )

    script.extraction = json.dumps(
        {"financial": [{"key": "income", "value": "medium", "confidence": 0.8}]}
    )
    assert extractor.extract_from_conversation(conversation.client_id, conversation.id) == 0
    entry = store.get_dossier_entry(conversation.client_id, DossierCategory.FINANCIAL, "income")
    assert entry.value == "high"

    script.extraction = json.dumps(
        {"financial": [{"key": "income", "value": "medium", "confidence": 0.9}]}
    )
    assert extractor.extract_from_conversation(conversation.client_id, conversation.id) == 1
    entry = store.get_dossier_entry(conversation.client_id, DossierCategory.FINANCIAL, "income")
    assert entry.value == "medium"
    assert entry.confidence_score == 0.9
    assert len(store.list_dossier(conversation.client_id)) == 1


@pytest.mark.parametrize(
    "response",
    [
        "I couldn't find anything useful.",
        '{"financial": [{"key": "income"',
        "[]",
    ],
)
def test_extract_skips_unusable_responses(store, script, extractor, conversation, response):
    script.extraction = response

    assert extractor.extract_from_conversation(conversation.client_id, conversation.id) == 0
    assert store.list_dossier(conversation.client_id) == []


def test_extract_survives_model_failure(store, script, extractor, conversation):
    script.extraction = LanguageModelError("boom")

    assert extractor.extract_from_conversation(conversation.client_id, conversation.id) == 0


def test_extract_uses_recent_window(store, script, extractor, conversation):
    for i in range(12):
        store.add_message(conversation.id, MessageRole.USER, f"message {i}")

    extractor.extract_from_conversation(conversation.client_id, conversation.id)

    prompt = script.prompts_containing("Conversation:")[0]
    assert "message 11" in prompt
    assert "message 2" in prompt
    assert "message 1\n" not in prompt
    assert "I'm a married CEO." not in prompt
