"""
Client management.

Creating and updating client profiles, manual status decisions, and the
reviewer's dossier view.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from api.models import Client, ClientStatus, DossierEntry, RedFlagSeverity
from intelligence.errors import ClientNotFound
from storage import VettingStore

logger = logging.getLogger(__name__)


@dataclass
class DetectionView:
    """A detection joined with its red flag definition."""

    red_flag_id: int
    red_flag_name: str
    severity: RedFlagSeverity
    reason: str
    confidence: float


@dataclass
class DossierView:
    """Everything a reviewer sees for one client."""

    client: Client
    entries: list[DossierEntry] = field(default_factory=list)
    red_flags: list[DetectionView] = field(default_factory=list)
    conversation_count: int = 0


def _merge(client: Client, **fields: Optional[str]) -> None:
    # Only non-empty values overwrite stored ones
    for name, value in fields.items():
        if value:
            setattr(client, name, value)


class ClientManager:
    """Client profile operations shared by the API and the conversation engines."""

    def __init__(self, store: VettingStore):
        self.store = store

    def create_or_update_client(
        self,
        email: str,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Client:
        """Create a pending client, or merge non-empty fields into an existing one."""
        with self.store.transaction():
            client = self.store.get_client_by_email(email)
            if client is None:
                client = self.store.add_client(
                    Client(
                        email=email,
                        username=username or None,
                        first_name=first_name or None,
                        last_name=last_name or None,
                        status=ClientStatus.PENDING,
                    )
                )
                logger.info("Created client %s (%s)", client.id, email)
                return client

            _merge(client, username=username, first_name=first_name, last_name=last_name)
            self.store.update_client(client)
            return self.store.get_client(client.id)

    def begin_interview(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Client:
        """Find or create the client by email and mark them in progress."""
        with self.store.transaction():
            client = self.store.get_client_by_email(email)
            if client is None:
                client = self.store.add_client(
                    Client(
                        email=email,
                        first_name=first_name or None,
                        last_name=last_name or None,
                        status=ClientStatus.IN_PROGRESS,
                    )
                )
                logger.info("Created new client with email: %s", email)
                return client

            client.status = ClientStatus.IN_PROGRESS
            _merge(client, first_name=first_name, last_name=last_name)
            self.store.update_client(client)
            logger.info("Updated existing client with email: %s", email)
            return self.store.get_client(client.id)

    def set_status(self, client_id: int, status: ClientStatus) -> Client:
        """Set a client's status."""
        with self.store.transaction():
            client = self.store.get_client(client_id)
            if client is None:
                raise ClientNotFound(client_id)
            client.status = status
            self.store.update_client(client)
            return self.store.get_client(client_id)

    def update_client_status(self, client_id: int, status: str) -> Client:
        """
        Apply a reviewer's status decision.

        Raises:
            ValueError: If the status string is not a known status
            ClientNotFound: If the client does not exist
        """
        parsed = ClientStatus.parse(status)
        client = self.set_status(client_id, parsed)
        logger.info("Client %s status set to %s", client_id, parsed.value)
        return client

    def delete_client(self, client_id: int) -> None:
        """Delete a client and everything recorded about them."""
        if not self.store.delete_client(client_id):
            raise ClientNotFound(client_id)
        logger.info("Deleted client %s", client_id)

    def get_dossier(self, client_id: int) -> DossierView:
        """Build the reviewer's view of a client."""
        client = self.store.get_client(client_id)
        if client is None:
            raise ClientNotFound(client_id)

        detections = []
        for detection in self.store.list_detections(client_id):
            red_flag = self.store.get_red_flag(detection.red_flag_id)
            detections.append(
                DetectionView(
                    red_flag_id=detection.red_flag_id,
                    red_flag_name=red_flag.name if red_flag else "Unknown",
                    severity=red_flag.severity if red_flag else RedFlagSeverity.UNKNOWN,
                    reason=detection.reason,
                    confidence=detection.confidence,
                )
            )

        return DossierView(
            client=client,
            entries=self.store.list_dossier(client_id),
            red_flags=detections,
            conversation_count=len(self.store.list_conversations(client_id)),
        )
