"""
Adaptateurs Firestore (STORAGE_BACKEND=firestore)

Collections :
- inscriptions, soutenances : documents versionnés (champ `version`)
- enrollments : historique des inscriptions (candidate_id, started_at)
- documents : pièces déposées (owner_id, type, present)
- publications, training_records : dossier académique du doctorant
- campaigns : campagnes d'inscription (active, opens_at, closes_at)
"""
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from app.models.doctoral import Campaign, DocumentRef, Enrollment, Inscription, Soutenance
from app.models.firestore_models import VERSION_FIELD, commit_versioned, create_unique, get_doc, list_docs
from app.workflow_engine.errors import EntityNotFound, StaleState

COLLECTIONS = {
    "inscription": ("inscriptions", Inscription),
    "soutenance": ("soutenances", Soutenance),
}


class FirestoreRepository:
    def load(self, kind: str, entity_id: str) -> Tuple[Any, int]:
        collection, model = COLLECTIONS[kind]
        data = get_doc(collection, entity_id)
        if data is None:
            raise EntityNotFound(kind, entity_id)
        version = int(data.get(VERSION_FIELD, 0))
        return model.from_doc(data), version

    def save(self, kind: str, entity: Any, expected_version: int) -> int:
        collection, _ = COLLECTIONS[kind]
        try:
            return commit_versioned(
                collection,
                entity.id,
                entity.to_dict(),
                expected_version,
                on_conflict=lambda actual: StaleState(kind, entity.id, expected_version, actual),
            )
        except StaleState:
            raise
        except Exception:
            logging.exception("Firestore write failed for %s %s", kind, entity.id)
            raise

    def find(self, kind: str, **filters: Any) -> List[Any]:
        collection, model = COLLECTIONS[kind]
        where = [(field, "==", value) for field, value in filters.items()]
        return [model.from_doc(d) for d in list_docs(collection, where=where)]

    def insert_unique(
        self,
        kind: str,
        entity: Any,
        filters: Dict[str, Any],
        blocks: Callable[[Any], bool],
        on_conflict: Callable[[Any], Exception],
    ) -> int:
        collection, model = COLLECTIONS[kind]

        def check(existing: Dict[str, Any]) -> Optional[Exception]:
            found = model.from_doc(existing)
            return on_conflict(found) if blocks(found) else None

        where = [(field, "==", value) for field, value in filters.items()]
        return create_unique(collection, entity.id, entity.to_dict(), where, check)


class FirestoreCandidateHistory:
    def get_prior_enrollments(self, candidate_id: str) -> List[Enrollment]:
        docs = list_docs("enrollments", where=[("candidate_id", "==", candidate_id)])
        return [Enrollment.from_doc(d) for d in docs]


class FirestoreDocumentStore:
    def list_documents(self, owner_id: str) -> List[DocumentRef]:
        docs = list_docs("documents", where=[("owner_id", "==", owner_id)])
        return [DocumentRef(type=d["type"], present=bool(d.get("present", True))) for d in docs if d.get("type")]


class FirestoreAcademicRecords:
    def count_publications(self, candidate_id: str) -> int:
        return len(list_docs("publications", where=[("candidate_id", "==", candidate_id)]))

    def training_hours(self, candidate_id: str) -> float:
        docs = list_docs("training_records", where=[("candidate_id", "==", candidate_id)])
        return float(sum(float(d.get("hours", 0) or 0) for d in docs))


class FirestoreCampaigns:
    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return Campaign.from_doc(get_doc("campaigns", campaign_id))
