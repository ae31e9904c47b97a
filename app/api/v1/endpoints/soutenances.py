"""
Endpoints des demandes de soutenance : brouillon, soumission, jury,
rapports, autorisation, rejet et procès-verbal.
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Response

from app.api.deps import command_response, ensure_candidate, ensure_director, expected_version, get_engine
from app.core.security import Roles, get_current_user, require_role
from app.schemas.workflow import (
    AuthorizeIn,
    DecisionIn,
    JuryProposal,
    OutcomeIn,
    RejectIn,
    ReportIn,
    SoutenanceCreate,
    SoutenanceDraft,
)
from app.workflow_engine import Actor, WorkflowEngine


router = APIRouter()


@router.post("/", status_code=201)
async def create_soutenance(
    payload: SoutenanceCreate,
    response: Response,
    current_user: Actor = Depends(require_role(Roles.DOCTORANT)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    candidate_id = payload.candidate_id or current_user.id
    ensure_candidate(current_user, candidate_id)
    fields = payload.model_dump(exclude={"candidate_id", "director_id"}, exclude_none=True)
    result = engine.save_soutenance_draft(
        fields, current_user, candidate_id=candidate_id, director_id=payload.director_id
    )
    return command_response(result, response)


@router.get("/{soutenance_id}")
async def get_soutenance(
    soutenance_id: str,
    response: Response,
    current_user: Actor = Depends(get_current_user),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    soutenance, version = engine.get_soutenance(soutenance_id)
    ensure_candidate(current_user, soutenance.candidate_id)
    response.headers["ETag"] = f'"{version}"'
    return {"entity": soutenance.model_dump(mode="json"), "version": version}


@router.patch("/{soutenance_id}")
async def update_soutenance(
    soutenance_id: str,
    payload: SoutenanceDraft,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.DOCTORANT)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    soutenance, _ = engine.get_soutenance(soutenance_id)
    ensure_candidate(current_user, soutenance.candidate_id)
    result = engine.save_soutenance_draft(
        payload.model_dump(exclude_none=True), current_user,
        soutenance_id=soutenance_id, expected_version=version,
    )
    return command_response(result, response)


@router.get("/{soutenance_id}/prerequisites")
async def soutenance_prerequisites(
    soutenance_id: str,
    current_user: Actor = Depends(get_current_user),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    soutenance, _ = engine.get_soutenance(soutenance_id)
    ensure_candidate(current_user, soutenance.candidate_id)
    return engine.soutenance_prerequisites(soutenance_id).model_dump()


@router.post("/{soutenance_id}/submit")
async def submit_soutenance(
    soutenance_id: str,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.DOCTORANT)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    soutenance, _ = engine.get_soutenance(soutenance_id)
    ensure_candidate(current_user, soutenance.candidate_id)
    result = engine.submit_soutenance(soutenance_id, current_user, expected_version=version)
    return command_response(result, response)


@router.put("/{soutenance_id}/jury")
async def propose_jury(
    soutenance_id: str,
    payload: JuryProposal,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.DOCTORANT, Roles.DIRECTEUR)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    soutenance, _ = engine.get_soutenance(soutenance_id)
    ensure_candidate(current_user, soutenance.candidate_id)
    ensure_director(current_user, soutenance.director_id)
    result = engine.propose_jury(soutenance_id, payload.members, current_user, expected_version=version)
    return command_response(result, response)


@router.post("/{soutenance_id}/jury/decision")
async def decide_jury(
    soutenance_id: str,
    payload: DecisionIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.PED)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    result = engine.decide_jury(
        soutenance_id, payload.approved, current_user, payload.comment, expected_version=version
    )
    return command_response(result, response)


@router.post("/{soutenance_id}/reports")
async def submit_report(
    soutenance_id: str,
    payload: ReportIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.PED)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Enregistrer le rapport d'un rapporteur (transmis au PED)"""
    result = engine.submit_report(
        soutenance_id, payload.member_id, payload.favorable, current_user, payload.comment,
        expected_version=version,
    )
    return command_response(result, response)


@router.post("/{soutenance_id}/authorize")
async def authorize_soutenance(
    soutenance_id: str,
    payload: AuthorizeIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.PED)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    result = engine.authorize_soutenance(
        soutenance_id, payload.scheduled_date, payload.venue, current_user, expected_version=version
    )
    return command_response(result, response)


@router.post("/{soutenance_id}/reject")
async def reject_soutenance(
    soutenance_id: str,
    payload: RejectIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.PED)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    result = engine.reject_soutenance(soutenance_id, payload.reason, current_user, expected_version=version)
    return command_response(result, response)


@router.post("/{soutenance_id}/outcome")
async def record_outcome(
    soutenance_id: str,
    payload: OutcomeIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.PED)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    result = engine.record_defense_outcome(
        soutenance_id, payload.result, current_user,
        mention=payload.mention, observations=payload.observations, expected_version=version,
    )
    return command_response(result, response)
