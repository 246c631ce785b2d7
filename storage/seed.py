"""
Default question bank, scoring criteria, red flags and settings.

Loaded into an empty store at startup so a fresh install can run an
interview end to end.
"""

import logging

from api.models import Criteria, Question, RedFlag, RedFlagSeverity
from config import DEFAULT_SYSTEM_PROMPT
from storage.store import VettingStore

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "ai_provider": "mock",
    "ai_model": "gpt-4o-mini",
    "ai_temperature": "0.7",
    "ai_max_tokens": "500",
    "system_prompt": DEFAULT_SYSTEM_PROMPT,
    "min_messages_threshold": "20",
    "auto_evaluate": "true",
}

# (text, category, priority, is_required)
DEFAULT_QUESTIONS = [
    ("Can you tell me about your current business or professional situation?", "business_life", 10, True),
    ("What are your main goals for seeking our services?", "goals", 10, True),
    ("Tell me about your family and personal life.", "personal_life", 8, True),
    ("What was your childhood like? Where did you grow up?", "childhood", 7, False),
    ("What is your educational background?", "education", 7, True),
    ("What are your core values?", "values", 9, True),
    ("Can you describe your financial situation?", "financial", 8, True),
    ("Have you worked with similar services before?", "background", 6, False),
    ("What challenges are you currently facing?", "business_life", 8, True),
    ("Who are the most important people in your life?", "family", 7, False),
]

# (name, description, category, weight, evaluation prompt)
DEFAULT_CRITERIA = [
    (
        "Financial Stability",
        "Assess the client's financial situation and stability",
        "financial",
        1.5,
        "Evaluate the client's financial stability based on their statements "
        "about income, assets, debts, and financial planning.",
    ),
    (
        "Professional Background",
        "Evaluate professional experience and current business status",
        "business",
        1.2,
        "Assess the client's professional background, experience, and current "
        "business or employment situation.",
    ),
    (
        "Communication Skills",
        "Assess clarity and professionalism in communication",
        "personal",
        1.0,
        "Evaluate how clearly and professionally the client communicates.",
    ),
    (
        "Alignment with Values",
        "Check if client's values align with company values",
        "values",
        1.3,
        "Determine if the client's stated values and principles align with "
        "the company's core values.",
    ),
    (
        "Realistic Expectations",
        "Evaluate if client has realistic expectations",
        "goals",
        1.1,
        "Assess whether the client has realistic expectations about outcomes "
        "and timelines.",
    ),
]

# (name, description, severity, keywords)
DEFAULT_RED_FLAGS = [
    (
        "Inconsistent Information",
        "Client provides contradictory information",
        RedFlagSeverity.HIGH,
        "inconsistent,contradiction,changed story",
    ),
    (
        "Financial Distress",
        "Signs of severe financial problems",
        RedFlagSeverity.CRITICAL,
        "bankruptcy,debt,foreclosure,repossession",
    ),
    (
        "Unrealistic Expectations",
        "Extremely unrealistic goals or expectations",
        RedFlagSeverity.MEDIUM,
        "overnight success,guaranteed,get rich quick",
    ),
    (
        "Poor Communication",
        "Inability to communicate clearly or professionally",
        RedFlagSeverity.MEDIUM,
        "rude,disrespectful,unclear",
    ),
    (
        "Legal Issues",
        "Mentions of ongoing legal problems",
        RedFlagSeverity.HIGH,
        "lawsuit,criminal,investigation,indicted",
    ),
    (
        "Lack of Commitment",
        "Shows minimal commitment or seriousness",
        RedFlagSeverity.LOW,
        "maybe,not sure,just browsing",
    ),
]


def seed_defaults(store: VettingStore) -> bool:
    """
    Load the default configuration into an empty store.

    Returns:
        True if anything was seeded, False if the store was already configured
    """
    with store.transaction():
        if not store.is_empty():
            return False

        for key, value in DEFAULT_SETTINGS.items():
            store.set_setting(key, value)

        for text, category, priority, required in DEFAULT_QUESTIONS:
            store.add_question(
                Question(
                    text=text,
                    category=category,
                    priority=priority,
                    is_required=required,
                )
            )

        for name, description, category, weight, prompt in DEFAULT_CRITERIA:
            store.add_criteria(
                Criteria(
                    name=name,
                    description=description,
                    category=category,
                    weight=weight,
                    evaluation_prompt=prompt,
                )
            )

        for name, description, severity, keywords in DEFAULT_RED_FLAGS:
            store.add_red_flag(
                RedFlag(
                    name=name,
                    description=description,
                    severity=severity,
                    detection_keywords=keywords,
                )
            )

    logger.info(
        "Seeded %d questions, %d criteria, %d red flags",
        len(DEFAULT_QUESTIONS),
        len(DEFAULT_CRITERIA),
        len(DEFAULT_RED_FLAGS),
    )
    return True
