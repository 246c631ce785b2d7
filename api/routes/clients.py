"""
Client review routes.

Used by the review dashboard: client list, dossier, evaluation, manual
status decisions and red flag scans.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from intelligence import ClientManager, RedFlagDetector, ScoringEngine
from intelligence.errors import ClientNotFound
from intelligence.red_flags import parse_wordlist
from storage import get_storage

router = APIRouter(prefix="/v1/clients", tags=["clients"])


class ClientSummary(BaseModel):
    """Client row for the review queue."""

    client_id: int
    email: str
    username: str | None
    first_name: str | None
    last_name: str | None
    status: str
    overall_score: float
    created_at: datetime
    updated_at: datetime | None


class CreateClientRequest(BaseModel):
    email: str = Field(min_length=3)
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class StatusUpdateRequest(BaseModel):
    status: str


class DossierEntryResponse(BaseModel):
    category: str
    key_name: str
    value: str
    confidence_score: float
    source_message_id: int | None
    updated_at: datetime | None


class RedFlagResponse(BaseModel):
    red_flag_id: int
    name: str
    severity: str
    reason: str
    confidence: float


class DossierResponse(BaseModel):
    """Full dossier for a client (reviewer use only)."""

    client: ClientSummary
    conversation_count: int
    entries: list[DossierEntryResponse]
    red_flags: list[RedFlagResponse]


class EvaluationResponse(BaseModel):
    client_id: int
    overall_score: float
    status: str
    red_flag_count: int


class RedFlagScanResponse(BaseModel):
    client_id: int
    new_detections: int
    total_detections: int


class KeywordScanRequest(BaseModel):
    """Keywords to look for, given directly or as an uploaded wordlist."""

    keywords: list[str] = Field(default_factory=list)
    wordlist: str | None = None
    format: Literal["txt", "csv", "json"] = "txt"


class KeywordMatchResponse(BaseModel):
    keyword: str
    match_count: int
    answers: list[dict]


class KeywordScanResponse(BaseModel):
    client_id: int
    keywords_checked: int
    matches: list[KeywordMatchResponse]


def _summary(client) -> ClientSummary:
    return ClientSummary(
        client_id=client.id,
        email=client.email,
        username=client.username,
        first_name=client.first_name,
        last_name=client.last_name,
        status=client.status.value,
        overall_score=client.overall_score,
        created_at=client.created_at,
        updated_at=client.updated_at,
    )


@router.get("", response_model=list[ClientSummary])
def list_clients(status: str | None = None):
    """List clients, newest first, optionally filtered by status."""
    storage = get_storage()
    clients = storage.list_clients()
    if status:
        clients = [c for c in clients if c.status.value == status]
    return [_summary(c) for c in clients]


@router.post("", response_model=ClientSummary)
def create_or_update_client(request: CreateClientRequest):
    """Create a client, or merge non-empty fields into the existing one."""
    manager = ClientManager(get_storage())
    client = manager.create_or_update_client(
        request.email, request.username, request.first_name, request.last_name
    )
    return _summary(client)


@router.get("/by-email", response_model=ClientSummary)
def get_client_by_email(email: str):
    """Look up a client by email."""
    client = get_storage().get_client_by_email(email)
    if client is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return _summary(client)


@router.delete("/{client_id}")
def delete_client(client_id: int):
    """Delete a client with all conversations and dossier data."""
    manager = ClientManager(get_storage())
    try:
        manager.delete_client(client_id)
    except ClientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": client_id}


@router.get("/{client_id}/dossier", response_model=DossierResponse)
def get_dossier(client_id: int):
    """Get a client's dossier entries and raised red flags."""
    manager = ClientManager(get_storage())
    try:
        view = manager.get_dossier(client_id)
    except ClientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return DossierResponse(
        client=_summary(view.client),
        conversation_count=view.conversation_count,
        entries=[
            DossierEntryResponse(
                category=e.category.value,
                key_name=e.key_name,
                value=e.value,
                confidence_score=e.confidence_score,
                source_message_id=e.source_message_id,
                updated_at=e.updated_at or e.created_at,
            )
            for e in view.entries
        ],
        red_flags=[
            RedFlagResponse(
                red_flag_id=d.red_flag_id,
                name=d.red_flag_name,
                severity=d.severity.value,
                reason=d.reason,
                confidence=d.confidence,
            )
            for d in view.red_flags
        ],
    )


@router.post("/{client_id}/evaluate", response_model=EvaluationResponse)
def evaluate_client(client_id: int):
    """Score the client against the active criteria."""
    storage = get_storage()
    try:
        score = ScoringEngine(storage).evaluate_client(client_id)
    except ClientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    client = storage.get_client(client_id)
    return EvaluationResponse(
        client_id=client_id,
        overall_score=score,
        status=client.status.value,
        red_flag_count=len(storage.list_detections(client_id)),
    )


@router.put("/{client_id}/status", response_model=ClientSummary)
def update_status(client_id: int, request: StatusUpdateRequest):
    """Record a reviewer's status decision."""
    manager = ClientManager(get_storage())
    try:
        client = manager.update_client_status(client_id, request.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ClientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _summary(client)


@router.post("/{client_id}/red-flags/scan", response_model=RedFlagScanResponse)
def scan_red_flags(client_id: int):
    """Run red flag detection over all of the client's conversations."""
    storage = get_storage()
    if storage.get_client(client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")

    raised = RedFlagDetector(storage).detect(client_id)
    return RedFlagScanResponse(
        client_id=client_id,
        new_detections=raised,
        total_detections=len(storage.list_detections(client_id)),
    )


@router.post("/{client_id}/keyword-scan", response_model=KeywordScanResponse)
def keyword_scan(client_id: int, request: KeywordScanRequest):
    """Report keyword hits in the client's answers without raising red flags."""
    keywords = list(request.keywords)
    if request.wordlist:
        keywords.extend(parse_wordlist(request.wordlist, request.format))
    if not keywords:
        raise HTTPException(status_code=400, detail="No keywords given")

    detector = RedFlagDetector(get_storage())
    try:
        result = detector.scan_keywords(client_id, keywords)
    except ClientNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return KeywordScanResponse(
        client_id=result.client_id,
        keywords_checked=result.keywords_checked,
        matches=[
            KeywordMatchResponse(
                keyword=m.keyword, match_count=m.match_count, answers=m.answers
            )
            for m in result.matches
        ],
    )
