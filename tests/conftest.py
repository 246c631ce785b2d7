"""Shared fixtures: a fresh store and a scripted language model."""

from typing import Callable, Optional

import pytest

from api.models import Question
from intelligence import llm
from intelligence.llm import ChatMessage, LanguageModel
from intelligence.prompts import EXTRACTION_MARKER, RED_FLAG_MARKER, SCORE_MARKER
from intelligence.tasks import TaskRunner
from storage import VettingStore


class Script:
    """Canned responses shared by every ScriptedModel a test creates."""

    def __init__(self):
        self.replies: list = []  # interview replies, consumed in order
        self.extraction = "{}"
        self.red_flags = "[]"
        self.score = "50"
        self.responder: Optional[Callable[[list[ChatMessage], str], Optional[str]]] = None
        self.requests: list[tuple[list[ChatMessage], str]] = []

    def prompts_containing(self, marker: str) -> list[str]:
        return [h[-1].content for h, _ in self.requests if h and marker in h[-1].content]


class ScriptedModel(LanguageModel):
    """Records every request and replays the script."""

    def __init__(self, settings, script: Script):
        super().__init__(settings)
        self.script = script

    def complete(self, history, system_prompt):
        self.script.requests.append((list(history), system_prompt))

        if self.script.responder is not None:
            custom = self.script.responder(history, system_prompt)
            if custom is not None:
                return _resolve(custom)

        last = history[-1].content if history else ""
        if EXTRACTION_MARKER in last:
            return _resolve(self.script.extraction)
        if RED_FLAG_MARKER in last:
            return _resolve(self.script.red_flags)
        if SCORE_MARKER in last:
            return _resolve(self.script.score)
        if not self.script.replies:
            return ""
        return _resolve(self.script.replies.pop(0))


def _resolve(item):
    if isinstance(item, Exception):
        raise item
    return item


class RecordingTasks(TaskRunner):
    """Collects submitted tasks without running them."""

    def __init__(self):
        self.submitted: list[tuple[str, Callable, tuple]] = []

    def submit(self, name, fn, *args):
        self.submitted.append((name, fn, args))
        return True

    def names(self) -> list[str]:
        return [name for name, _, _ in self.submitted]

    def run_all(self) -> None:
        for _, fn, args in self.submitted:
            fn(*args)
        self.submitted.clear()


@pytest.fixture
def store() -> VettingStore:
    return VettingStore()


@pytest.fixture
def script(store, monkeypatch) -> Script:
    """Route the store's language model calls to a scripted fake."""
    script = Script()
    monkeypatch.setitem(
        llm.PROVIDERS, "scripted", lambda settings: ScriptedModel(settings, script)
    )
    store.set_setting("ai_provider", "scripted")
    return script


@pytest.fixture
def two_questions(store) -> tuple[Question, Question]:
    q1 = store.add_question(Question(text="Q1", category="goals", priority=10))
    q2 = store.add_question(Question(text="Q2", category="values", priority=5))
    return q1, q2
