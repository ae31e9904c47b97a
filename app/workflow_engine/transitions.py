"""
Helpers shared by the state machines: actors, edge checks and audit records.
"""
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional
import uuid

from pydantic import BaseModel

from app.models.doctoral import TransitionRecord
from app.workflow_engine.errors import InvalidTransition


class Actor(BaseModel):
    """Utilisateur (ou système) à l'origine d'une commande"""
    id: Optional[str] = None
    role: Optional[str] = None


def new_id() -> str:
    return uuid.uuid4().hex


def clean_comment(comment: Optional[str]) -> Optional[str]:
    if comment is None:
        return None
    comment = comment.strip()
    return comment or None


def move(
    target: Any,
    entity_type: str,
    edges: Dict[Any, FrozenSet[Any]],
    command: str,
    to_status: Any,
    now: datetime,
    actor: Actor,
    history: List[TransitionRecord],
    comment: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> TransitionRecord:
    """
    Cross one edge of a state machine: check the edge exists, update
    `target.status` and append the audit record to `history`.
    """
    current = target.status
    if to_status not in edges.get(current, frozenset()):
        raise InvalidTransition(entity_type, command, current, reason=f"no edge to {to_status.value}")
    record = TransitionRecord(
        entity_type=entity_type,
        entity_id=entity_id or target.id,
        command=command,
        from_status=current.value,
        to_status=to_status.value,
        actor_id=actor.id,
        actor_role=actor.role,
        comment=comment,
        at=now,
    )
    target.status = to_status
    history.append(record)
    return record
