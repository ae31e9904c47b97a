"""
Endpoints par doctorant : prérequis de soutenance et dossiers en cours
"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends

from app.api.deps import ensure_candidate, get_engine
from app.core.security import get_current_user
from app.workflow_engine import Actor, WorkflowEngine


router = APIRouter()


@router.get("/{candidate_id}/prerequisites")
async def candidate_prerequisites(
    candidate_id: str,
    current_user: Actor = Depends(get_current_user),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    ensure_candidate(current_user, candidate_id)
    return engine.evaluate_prerequisites(candidate_id).model_dump()


@router.get("/{candidate_id}/inscriptions")
async def candidate_inscriptions(
    candidate_id: str,
    current_user: Actor = Depends(get_current_user),
    engine: WorkflowEngine = Depends(get_engine),
) -> List[Dict[str, Any]]:
    ensure_candidate(current_user, candidate_id)
    return [i.model_dump(mode="json") for i in engine.list_inscriptions(candidate_id)]


@router.get("/{candidate_id}/soutenances")
async def candidate_soutenances(
    candidate_id: str,
    current_user: Actor = Depends(get_current_user),
    engine: WorkflowEngine = Depends(get_engine),
) -> List[Dict[str, Any]]:
    ensure_candidate(current_user, candidate_id)
    return [s.model_dump(mode="json") for s in engine.list_soutenances(candidate_id)]
