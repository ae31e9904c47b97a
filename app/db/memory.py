"""
Adaptateurs en mémoire (développement, tests, STORAGE_BACKEND=memory)

Entities are stored as serialized documents, the same shape the Firestore
adapter writes, so every load returns an independent copy.
"""
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import threading

from app.models.doctoral import Campaign, DocumentRef, Enrollment, Inscription, Soutenance
from app.workflow_engine.errors import EntityNotFound, StaleState

MODELS = {
    "inscription": Inscription,
    "soutenance": Soutenance,
}


def _lookup(data: Dict[str, Any], dotted: str) -> Any:
    value: Any = data
    for part in dotted.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class InMemoryRepository:
    """Repository versionné ; les commits sont sérialisés par un verrou"""

    def __init__(self):
        self._lock = threading.Lock()
        self._docs: Dict[str, Dict[str, Tuple[Dict[str, Any], int]]] = defaultdict(dict)

    def load(self, kind: str, entity_id: str) -> Tuple[Any, int]:
        with self._lock:
            stored = self._docs[kind].get(entity_id)
        if stored is None:
            raise EntityNotFound(kind, entity_id)
        data, version = stored
        return MODELS[kind].from_doc({**data, "id": entity_id}), version

    def save(self, kind: str, entity: Any, expected_version: int) -> int:
        data = entity.to_dict()
        with self._lock:
            stored = self._docs[kind].get(entity.id)
            actual = stored[1] if stored else 0
            if actual != expected_version:
                raise StaleState(kind, entity.id, expected_version, actual)
            self._docs[kind][entity.id] = (data, actual + 1)
            return actual + 1

    def _matching(self, kind: str, filters: Dict[str, Any]) -> List[Any]:
        model = MODELS[kind]
        return [
            model.from_doc({**data, "id": doc_id})
            for doc_id, (data, _) in list(self._docs[kind].items())
            if all(_lookup(data, field) == value for field, value in filters.items())
        ]

    def find(self, kind: str, **filters: Any) -> List[Any]:
        with self._lock:
            return self._matching(kind, filters)

    def insert_unique(
        self,
        kind: str,
        entity: Any,
        filters: Dict[str, Any],
        blocks: Callable[[Any], bool],
        on_conflict: Callable[[Any], Exception],
    ) -> int:
        data = entity.to_dict()
        with self._lock:
            for existing in self._matching(kind, filters):
                if blocks(existing):
                    raise on_conflict(existing)
            stored = self._docs[kind].get(entity.id)
            if stored is not None:
                raise StaleState(kind, entity.id, 0, stored[1])
            self._docs[kind][entity.id] = (data, 1)
            return 1


class InMemoryCandidateHistory:
    def __init__(self, enrollments: Optional[Iterable[Enrollment]] = None):
        self._enrollments: Dict[str, List[Enrollment]] = defaultdict(list)
        for e in enrollments or []:
            self.add(e)

    def add(self, enrollment: Enrollment) -> None:
        self._enrollments[enrollment.candidate_id].append(enrollment)

    def get_prior_enrollments(self, candidate_id: str) -> List[Enrollment]:
        return list(self._enrollments.get(candidate_id, []))


class InMemoryDocumentStore:
    def __init__(self):
        self._documents: Dict[str, List[DocumentRef]] = defaultdict(list)

    def add(self, owner_id: str, doc_type: str, present: bool = True) -> None:
        self._documents[owner_id].append(DocumentRef(type=doc_type, present=present))

    def list_documents(self, owner_id: str) -> List[DocumentRef]:
        return list(self._documents.get(owner_id, []))


class InMemoryAcademicRecords:
    def __init__(self):
        self.publications: Dict[str, int] = {}
        self.hours: Dict[str, float] = {}

    def set(self, candidate_id: str, publications: int = 0, training_hours: float = 0.0) -> None:
        self.publications[candidate_id] = publications
        self.hours[candidate_id] = training_hours

    def count_publications(self, candidate_id: str) -> int:
        return self.publications.get(candidate_id, 0)

    def training_hours(self, candidate_id: str) -> float:
        return self.hours.get(candidate_id, 0.0)


class InMemoryCampaigns:
    def __init__(self, campaigns: Optional[Iterable[Campaign]] = None):
        self._campaigns: Dict[str, Campaign] = {}
        for c in campaigns or []:
            self._campaigns[c.id] = c

    def add(self, campaign_id: str, opens_at: datetime, closes_at: datetime, active: bool = True) -> None:
        self._campaigns[campaign_id] = Campaign(
            id=campaign_id, name=campaign_id, active=active, opens_at=opens_at, closes_at=closes_at
        )

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)
