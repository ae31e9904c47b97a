"""
Endpoints des inscriptions doctorales : création, soumission, avis du
directeur et validation administrative.
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Response

from app.api.deps import command_response, ensure_candidate, ensure_director, expected_version, get_engine
from app.core.security import Roles, get_current_user, require_role
from app.schemas.workflow import DecisionIn, InscriptionCreate, InscriptionSubmit
from app.workflow_engine import Actor, WorkflowEngine


router = APIRouter()


@router.post("/", status_code=201)
async def create_inscription(
    payload: InscriptionCreate,
    response: Response,
    current_user: Actor = Depends(require_role(Roles.DOCTORANT)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    candidate_id = payload.candidate_id or current_user.id
    ensure_candidate(current_user, candidate_id)
    result = engine.create_inscription(candidate_id, payload.director_id, payload.campaign_id, payload.thesis_subject)
    return command_response(result, response)


@router.get("/{inscription_id}")
async def get_inscription(
    inscription_id: str,
    response: Response,
    current_user: Actor = Depends(get_current_user),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    inscription, version = engine.get_inscription(inscription_id)
    ensure_candidate(current_user, inscription.candidate_id)
    response.headers["ETag"] = f'"{version}"'
    return {"entity": inscription.model_dump(mode="json"), "version": version}


@router.post("/{inscription_id}/submit")
async def submit_inscription(
    inscription_id: str,
    response: Response,
    payload: Optional[InscriptionSubmit] = None,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.DOCTORANT)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    inscription, _ = engine.get_inscription(inscription_id)
    ensure_candidate(current_user, inscription.candidate_id)
    reason = payload.derogation_reason if payload else None
    result = engine.submit_inscription(inscription_id, current_user, reason, expected_version=version)
    return command_response(result, response)


@router.post("/{inscription_id}/director-decision")
async def director_decision(
    inscription_id: str,
    payload: DecisionIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.DIRECTEUR)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    inscription, _ = engine.get_inscription(inscription_id)
    ensure_director(current_user, inscription.director_id)
    result = engine.validate_inscription_by_director(
        inscription_id, payload.approved, current_user, payload.comment, expected_version=version
    )
    return command_response(result, response)


@router.post("/{inscription_id}/admin-decision")
async def admin_decision(
    inscription_id: str,
    payload: DecisionIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.ADMIN)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    result = engine.validate_inscription_by_admin(
        inscription_id, payload.approved, current_user, payload.comment, expected_version=version
    )
    return command_response(result, response)
