"""
Interview conversation routes.

The configured interview mode decides whether the structured engine or
the AI interviewer handles the conversation.
"""

from datetime import datetime

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from config import get_settings
from intelligence import BaseInterview, create_interview, get_task_queue
from intelligence.errors import (
    ConversationNotActive,
    ConversationNotFound,
    NoQuestionsConfigured,
)
from storage import get_storage

router = APIRouter(prefix="/v1/conversations", tags=["conversations"])


def get_interview() -> BaseInterview:
    """Get the interview engine for the configured mode."""
    return create_interview(
        get_storage(), get_settings().interview_mode, get_task_queue()
    )


class StartConversationRequest(BaseModel):
    """Request to start an interview."""

    email: str = Field(min_length=3)
    first_name: str | None = None
    last_name: str | None = None


class StartConversationResponse(BaseModel):
    """Greeting and first question."""

    conversation_id: int
    client_id: int
    greeting: str
    first_question_id: int | None
    first_question_text: str | None


class MessageRequest(BaseModel):
    """A message from the client."""

    message: str = Field(min_length=1)


class MessageResponse(BaseModel):
    """Assistant reply and conversation state."""

    message_id: int
    assistant_message: str
    conversation_ended: bool
    total_messages: int
    current_question_id: int | None
    waiting_for_additional_info: bool


class ConversationResponse(BaseModel):
    conversation_id: int
    client_id: int
    status: str
    started_at: datetime
    ended_at: datetime | None
    total_messages: int


class TranscriptMessage(BaseModel):
    message_id: int
    role: str
    content: str
    created_at: datetime


@router.post("/start", response_model=StartConversationResponse)
def start_conversation(request: StartConversationRequest):
    """Find or create the client and open a new interview."""
    interview = get_interview()
    try:
        result = interview.start_conversation(
            request.email, request.first_name, request.last_name
        )
    except NoQuestionsConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))

    return StartConversationResponse(
        conversation_id=result.conversation_id,
        client_id=result.client_id,
        greeting=result.greeting,
        first_question_id=result.first_question_id,
        first_question_text=result.first_question_text,
    )


@router.post("/{conversation_id}/messages", response_model=MessageResponse)
def send_message(conversation_id: int, request: MessageRequest):
    """Submit a client message and get the assistant's reply."""
    interview = get_interview()
    try:
        result = interview.process_message(conversation_id, request.message)
    except ConversationNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConversationNotActive as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MessageResponse(
        message_id=result.message_id,
        assistant_message=result.assistant_text,
        conversation_ended=result.conversation_ended,
        total_messages=result.total_messages,
        current_question_id=result.current_question_id,
        waiting_for_additional_info=result.waiting_for_additional_info,
    )


@router.post("/{conversation_id}/abandon", response_model=ConversationResponse)
def abandon_conversation(conversation_id: int):
    """Stop an active interview."""
    interview = get_interview()
    try:
        conversation = interview.abandon_conversation(conversation_id)
    except ConversationNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConversationNotActive as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _conversation_response(conversation)


@router.get("", response_model=list[ConversationResponse])
def list_conversations(client_id: int | None = None):
    """List conversations, optionally for one client."""
    storage = get_storage()
    return [_conversation_response(c) for c in storage.list_conversations(client_id)]


@router.get("/{conversation_id}/messages", response_model=list[TranscriptMessage])
def get_messages(conversation_id: int):
    """Get a conversation's transcript."""
    storage = get_storage()
    if storage.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return [
        TranscriptMessage(
            message_id=m.id,
            role=m.role.value,
            content=m.content,
            created_at=m.created_at,
        )
        for m in storage.list_messages(conversation_id)
    ]


def _conversation_response(conversation) -> ConversationResponse:
    return ConversationResponse(
        conversation_id=conversation.id,
        client_id=conversation.client_id,
        status=conversation.status.value,
        started_at=conversation.started_at,
        ended_at=conversation.ended_at,
        total_messages=conversation.total_messages,
    )
