"""
Collaborator interfaces consumed by the workflow engine.

The engine never performs I/O itself: the host provides implementations of
these protocols (see `app.db.memory` and `app.db.firestore_repository`).
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from app.models.doctoral import Campaign, DocumentRef, Enrollment


class CandidateHistory(Protocol):
    def get_prior_enrollments(self, candidate_id: str) -> List[Enrollment]:
        ...


class DocumentStore(Protocol):
    def list_documents(self, owner_id: str) -> List[DocumentRef]:
        ...


class AcademicRecords(Protocol):
    def count_publications(self, candidate_id: str) -> int:
        ...

    def training_hours(self, candidate_id: str) -> float:
        ...


class CampaignCalendar(Protocol):
    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class Repository(Protocol):
    """Versioned persistence. `kind` is "inscription" or "soutenance"."""

    def load(self, kind: str, entity_id: str) -> Tuple[Any, int]:
        ...

    def save(self, kind: str, entity: Any, expected_version: int) -> int:
        ...

    def find(self, kind: str, **filters: Any) -> List[Any]:
        ...

    def insert_unique(
        self,
        kind: str,
        entity: Any,
        filters: Dict[str, Any],
        blocks: Callable[[Any], bool],
        on_conflict: Callable[[Any], Exception],
    ) -> int:
        """Create `entity` unless a stored record matching `filters` blocks it.

        The lookup and the write are one atomic step.
        """
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Deterministic clock for tests and replays"""

    def __init__(self, at: datetime):
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self.at = at

    def now(self) -> datetime:
        return self.at

    def set(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self.at = at
