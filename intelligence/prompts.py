"""
Prompt templates for the language model.
"""

# Markers the mock model uses to pick a response shape
EXTRACTION_MARKER = "Format the response as JSON with categories"
RED_FLAG_MARKER = "Return a JSON array of detected red flags"
SCORE_MARKER = "Return ONLY a score between 0 and 100"

EXTRACTION_PROMPT = """Analyze the following conversation and extract key information about the person being interviewed.
Format the response as JSON with categories: personal_life, business_life, family, childhood, education, values, goals, background, financial.
Each category should contain key-value pairs of extracted information with confidence scores (0-1).

Example format:
{{
  "personal_life": [{{"key": "marital_status", "value": "married", "confidence": 0.9}}],
  "business_life": [{{"key": "current_role", "value": "CEO", "confidence": 0.95}}]
}}

Conversation:
{conversation}"""

RED_FLAG_PROMPT = """Analyze the following conversation for potential red flags.
Red flags to look for:
{red_flags}

Return a JSON array of detected red flags with format:
[{{"red_flag_index": 1, "reason": "explanation", "confidence": 0.85}}]

If no red flags are detected, return an empty array [].

Conversation:
{conversation}"""

SCORE_PROMPT = """Evaluate the following conversation based on the criterion: {name}

Evaluation guideline: {guideline}

Return ONLY a score between 0 and 100 (integer). No explanation, just the number.

Conversation:
{conversation}"""

INTERVIEW_QUESTION_INSTRUCTION = """

Suggested next topic to work into the conversation naturally: "{question}"
Acknowledge what the client just said before moving on. Do not read the question verbatim if a more natural phrasing fits."""

INTERVIEW_WRAP_UP_INSTRUCTION = """

All planned topics have been covered. Ask a natural follow-up about anything the client mentioned that deserves more detail."""

INTERVIEW_STYLE_INSTRUCTION = """

Keep your reply concise: 2-4 sentences, ending with a single question."""

AI_GREETING = (
    "Hello {name}! Thank you for your interest. I'd like to get to know you "
    "better, so let's just have a conversation. To start, could you tell me "
    "a little about yourself and what brings you here?"
)

FALLBACK_FOLLOW_UP = "Thank you for sharing that. Could you tell me a bit more?"


def format_transcript(messages) -> str:
    """Render messages as 'Role: content' lines."""
    return "\n".join(m.transcript_line() for m in messages)


def build_interview_prompt(base_prompt: str, question_text: str | None) -> str:
    """System prompt for the AI interviewer's next reply."""
    if question_text:
        guidance = INTERVIEW_QUESTION_INSTRUCTION.format(question=question_text)
    else:
        guidance = INTERVIEW_WRAP_UP_INSTRUCTION
    return base_prompt + guidance + INTERVIEW_STYLE_INSTRUCTION


def build_red_flag_list(red_flags) -> str:
    """Numbered list of red flag descriptions, falling back to the name."""
    return "\n".join(
        f"{i}. {flag.description or flag.name}" for i, flag in enumerate(red_flags, start=1)
    )
