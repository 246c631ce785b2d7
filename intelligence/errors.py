"""
Errors raised by the vetting engines.

Routes translate these into HTTP errors. Soft failures (language model
errors, malformed model output) are logged and never raised to callers.
"""


class VettingError(Exception):
    """Base class for vetting errors."""


class NoQuestionsConfigured(VettingError):
    """The question bank has no active questions."""

    def __init__(self):
        super().__init__("No active questions configured")


class ConversationNotFound(VettingError):
    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class ConversationNotActive(VettingError):
    def __init__(self, conversation_id: int, status: str):
        super().__init__(f"Conversation {conversation_id} is not active (status: {status})")
        self.conversation_id = conversation_id
        self.status = status


class ClientNotFound(VettingError):
    def __init__(self, client_id: int):
        super().__init__(f"Client {client_id} not found")
        self.client_id = client_id


class LanguageModelError(VettingError):
    """A language model call failed, timed out, or is misconfigured."""
