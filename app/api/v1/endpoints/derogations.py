"""
Endpoints des dérogations. La version attendue (If-Match) est celle de
l'inscription qui porte la dérogation.
"""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Response

from app.api.deps import command_response, ensure_director, expected_version, get_engine
from app.core.security import Roles, require_role
from app.schemas.workflow import DecisionIn
from app.workflow_engine import Actor, WorkflowEngine


router = APIRouter()


@router.post("/{derogation_id}/director-decision")
async def director_decision(
    derogation_id: str,
    payload: DecisionIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.DIRECTEUR)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    inscription = engine.find_derogation_inscription(derogation_id)
    ensure_director(current_user, inscription.director_id)
    result = engine.decide_derogation_by_director(
        derogation_id, payload.approved, current_user, payload.comment, expected_version=version
    )
    return command_response(result, response)


@router.post("/{derogation_id}/authority-decision")
async def authority_decision(
    derogation_id: str,
    payload: DecisionIn,
    response: Response,
    version: Optional[int] = Depends(expected_version),
    current_user: Actor = Depends(require_role(Roles.PED)),
    engine: WorkflowEngine = Depends(get_engine),
) -> Dict[str, Any]:
    result = engine.decide_derogation_by_authority(
        derogation_id, payload.approved, current_user, payload.comment, expected_version=version
    )
    return command_response(result, response)
