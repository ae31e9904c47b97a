"""
Dépendances FastAPI partagées : moteur du workflow et version attendue
"""
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Header, HTTPException, Response, status

from app.core.config import settings
from app.core.security import Roles
from app.workflow_engine import Actor, WorkflowEngine, WorkflowRules


@lru_cache()
def get_engine() -> WorkflowEngine:
    """Construire le moteur selon STORAGE_BACKEND (instance unique)"""
    rules = WorkflowRules.from_settings(settings)
    if settings.STORAGE_BACKEND == "firestore":
        from app.db.firestore_repository import (
            FirestoreAcademicRecords,
            FirestoreCampaigns,
            FirestoreCandidateHistory,
            FirestoreDocumentStore,
            FirestoreRepository,
        )
        return WorkflowEngine(
            FirestoreRepository(),
            FirestoreCandidateHistory(),
            FirestoreDocumentStore(),
            FirestoreAcademicRecords(),
            FirestoreCampaigns(),
            rules=rules,
        )

    from app.db.memory import (
        InMemoryAcademicRecords,
        InMemoryCampaigns,
        InMemoryCandidateHistory,
        InMemoryDocumentStore,
        InMemoryRepository,
    )
    return WorkflowEngine(
        InMemoryRepository(),
        InMemoryCandidateHistory(),
        InMemoryDocumentStore(),
        InMemoryAcademicRecords(),
        InMemoryCampaigns(),
        rules=rules,
    )


def expected_version(if_match: Optional[str] = Header(None)) -> Optional[int]:
    """Version attendue transmise dans l'en-tête If-Match (ex. `3` ou `"3"`)"""
    if if_match is None:
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="If-Match must be an entity version")


def command_response(result, response: Response) -> Dict[str, Any]:
    """Sérialiser un CommandResult ; la nouvelle version est renvoyée en ETag"""
    response.headers["ETag"] = f'"{result.version}"'
    return {
        "entity": result.entity.model_dump(mode="json"),
        "version": result.version,
        "transitions": [r.model_dump(mode="json") for r in result.transitions],
    }


def ensure_candidate(actor: Actor, candidate_id: str) -> None:
    """Un doctorant n'agit que sur ses propres dossiers"""
    if actor.role == Roles.DOCTORANT and actor.id != candidate_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your record")


def ensure_director(actor: Actor, director_id: str) -> None:
    if actor.role == Roles.DIRECTEUR and actor.id != director_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the thesis director")
