"""
Sous-workflow de dérogation : avis du directeur, puis décision du PED.

Rejection propagation to the parent inscription is the façade's job; this
module only moves the dérogation itself.
"""
from datetime import datetime
from typing import List, Optional
import logging

from app.models.doctoral import (
    Decision,
    Derogation,
    DerogationStatus,
    Inscription,
    TransitionRecord,
)
from app.workflow_engine.errors import InvalidTransition, MissingComment
from app.workflow_engine.rules import WorkflowRules
from app.workflow_engine.transitions import Actor, clean_comment, move, new_id

logger = logging.getLogger(__name__)

ENTITY = "derogation"

TRANSITIONS = {
    DerogationStatus.PENDING_DIRECTOR: frozenset({
        DerogationStatus.DIRECTOR_APPROVED,
        DerogationStatus.DIRECTOR_REJECTED,
    }),
    DerogationStatus.DIRECTOR_APPROVED: frozenset({DerogationStatus.PENDING_AUTHORITY}),
    DerogationStatus.PENDING_AUTHORITY: frozenset({
        DerogationStatus.APPROVED,
        DerogationStatus.REJECTED,
    }),
}


class DerogationWorkflow:
    def __init__(self, rules: Optional[WorkflowRules] = None):
        self.rules = rules or WorkflowRules.get_default_rules()

    def open(
        self,
        inscription: Inscription,
        reason: str,
        duration_months: int,
        now: datetime,
        actor: Actor,
    ) -> Derogation:
        """Créer la demande en attente d'avis du directeur"""
        if not self.rules.is_valid_derogation_reason(reason):
            raise MissingComment("derogation_reason", min_length=self.rules.derogation_reason_min_length)
        derogation = Derogation(
            id=new_id(),
            inscription_id=inscription.id,
            reason=reason.strip(),
            status=DerogationStatus.PENDING_DIRECTOR,
            duration_months=duration_months,
            created_at=now,
        )
        inscription.history.append(TransitionRecord(
            entity_type=ENTITY,
            entity_id=derogation.id,
            command="open",
            from_status=None,
            to_status=derogation.status.value,
            actor_id=actor.id,
            actor_role=actor.role,
            comment=f"duration {duration_months} months",
            at=now,
        ))
        logger.info("Derogation %s opened for inscription %s (%s months)", derogation.id, inscription.id, duration_months)
        return derogation

    def decide_by_director(
        self,
        derogation: Derogation,
        approved: bool,
        comment: Optional[str],
        now: datetime,
        actor: Actor,
        history: List[TransitionRecord],
    ) -> List[TransitionRecord]:
        command = "decide_by_director"
        if derogation.status != DerogationStatus.PENDING_DIRECTOR:
            raise InvalidTransition(ENTITY, command, derogation.status)
        comment = clean_comment(comment)
        if not approved and not comment:
            raise MissingComment()

        derogation.director_decision = Decision(approved=approved, comment=comment, decided_by=actor.id, decided_at=now)
        if approved:
            return [
                move(derogation, ENTITY, TRANSITIONS, command, DerogationStatus.DIRECTOR_APPROVED, now, actor, history, comment),
                move(derogation, ENTITY, TRANSITIONS, command, DerogationStatus.PENDING_AUTHORITY, now, actor, history),
            ]
        return [move(derogation, ENTITY, TRANSITIONS, command, DerogationStatus.DIRECTOR_REJECTED, now, actor, history, comment)]

    def decide_by_authority(
        self,
        derogation: Derogation,
        approved: bool,
        comment: Optional[str],
        now: datetime,
        actor: Actor,
        history: List[TransitionRecord],
    ) -> List[TransitionRecord]:
        command = "decide_by_authority"
        if derogation.status != DerogationStatus.PENDING_AUTHORITY:
            raise InvalidTransition(ENTITY, command, derogation.status)
        comment = clean_comment(comment)
        if not approved and not comment:
            raise MissingComment()

        derogation.authority_decision = Decision(approved=approved, comment=comment, decided_by=actor.id, decided_at=now)
        target = DerogationStatus.APPROVED if approved else DerogationStatus.REJECTED
        return [move(derogation, ENTITY, TRANSITIONS, command, target, now, actor, history, comment)]
