"""
Machine à états de l'inscription doctorale

DRAFT -> SUBMITTED -> PENDING_DIRECTOR -> DIRECTOR_APPROVED -> PENDING_ADMIN
-> VALIDATED | REJECTED, with DIRECTOR_REJECTED as the director's terminal
refusal. The doctorate duration is computed by the caller at submit time only.
"""
from datetime import datetime
from typing import List, Optional
import logging

from app.models.doctoral import (
    Decision,
    DerogationStatus,
    Inscription,
    InscriptionStatus,
    TransitionRecord,
)
from app.workflow_engine.derogation import DerogationWorkflow
from app.workflow_engine.errors import (
    DerogationPending,
    DoctorateDurationExceeded,
    InvalidTransition,
    MissingComment,
)
from app.workflow_engine.rules import WorkflowRules
from app.workflow_engine.transitions import Actor, clean_comment, move, new_id

logger = logging.getLogger(__name__)

ENTITY = "inscription"

TRANSITIONS = {
    InscriptionStatus.DRAFT: frozenset({InscriptionStatus.SUBMITTED}),
    InscriptionStatus.SUBMITTED: frozenset({InscriptionStatus.PENDING_DIRECTOR}),
    InscriptionStatus.PENDING_DIRECTOR: frozenset({
        InscriptionStatus.DIRECTOR_APPROVED,
        InscriptionStatus.DIRECTOR_REJECTED,
        InscriptionStatus.REJECTED,  # dérogation refusée
    }),
    InscriptionStatus.DIRECTOR_APPROVED: frozenset({InscriptionStatus.PENDING_ADMIN}),
    InscriptionStatus.PENDING_ADMIN: frozenset({
        InscriptionStatus.VALIDATED,
        InscriptionStatus.REJECTED,
    }),
}


class EnrollmentStateMachine:
    def __init__(self, rules: Optional[WorkflowRules] = None, derogations: Optional[DerogationWorkflow] = None):
        self.rules = rules or WorkflowRules.get_default_rules()
        self.derogations = derogations or DerogationWorkflow(self.rules)

    def create(
        self,
        candidate_id: str,
        director_id: str,
        campaign_id: str,
        now: datetime,
        thesis_subject: Optional[str] = None,
    ) -> Inscription:
        return Inscription(
            id=new_id(),
            candidate_id=candidate_id,
            director_id=director_id,
            campaign_id=campaign_id,
            thesis_subject=thesis_subject,
            status=InscriptionStatus.DRAFT,
            created_at=now,
        )

    def submit(
        self,
        inscription: Inscription,
        duration_months: int,
        now: datetime,
        actor: Actor,
        derogation_reason: Optional[str] = None,
    ) -> List[TransitionRecord]:
        command = "submit"
        if inscription.status != InscriptionStatus.DRAFT:
            raise InvalidTransition(ENTITY, command, inscription.status)
        if self.rules.exceeds_max_duration(duration_months):
            raise DoctorateDurationExceeded(duration_months, self.rules.max_doctorate_months)

        needs_derogation = self.rules.requires_derogation(duration_months)
        if needs_derogation and not self.rules.is_valid_derogation_reason(derogation_reason):
            raise MissingComment("derogation_reason", min_length=self.rules.derogation_reason_min_length)

        inscription.duration_months = duration_months
        inscription.submitted_at = now
        history = inscription.history
        records = [
            move(inscription, ENTITY, TRANSITIONS, command, InscriptionStatus.SUBMITTED, now, actor, history),
            move(inscription, ENTITY, TRANSITIONS, command, InscriptionStatus.PENDING_DIRECTOR, now, actor, history),
        ]
        if needs_derogation:
            inscription.derogation = self.derogations.open(inscription, derogation_reason, duration_months, now, actor)
            records.append(history[-1])
        return records

    def validate_by_director(
        self,
        inscription: Inscription,
        approved: bool,
        comment: Optional[str],
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "validate_by_director"
        if inscription.status != InscriptionStatus.PENDING_DIRECTOR:
            raise InvalidTransition(ENTITY, command, inscription.status)
        comment = clean_comment(comment)
        if not approved and not comment:
            raise MissingComment()

        inscription.director_decision = Decision(approved=approved, comment=comment, decided_by=actor.id, decided_at=now)
        history = inscription.history
        if approved:
            return [
                move(inscription, ENTITY, TRANSITIONS, command, InscriptionStatus.DIRECTOR_APPROVED, now, actor, history, comment),
                move(inscription, ENTITY, TRANSITIONS, command, InscriptionStatus.PENDING_ADMIN, now, actor, history),
            ]
        return [move(inscription, ENTITY, TRANSITIONS, command, InscriptionStatus.DIRECTOR_REJECTED, now, actor, history, comment)]

    def validate_by_admin(
        self,
        inscription: Inscription,
        approved: bool,
        comment: Optional[str],
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "validate_by_admin"
        if inscription.status != InscriptionStatus.PENDING_ADMIN:
            raise InvalidTransition(ENTITY, command, inscription.status)
        comment = clean_comment(comment)
        if not approved and not comment:
            raise MissingComment()
        derogation = inscription.derogation
        if approved and derogation is not None and derogation.status != DerogationStatus.APPROVED:
            raise DerogationPending(derogation.id, derogation.status)

        inscription.admin_decision = Decision(approved=approved, comment=comment, decided_by=actor.id, decided_at=now)
        target = InscriptionStatus.VALIDATED if approved else InscriptionStatus.REJECTED
        return [move(inscription, ENTITY, TRANSITIONS, command, target, now, actor, inscription.history, comment)]

    def reject_for_derogation(self, inscription: Inscription, now: datetime, actor: Actor) -> List[TransitionRecord]:
        """A refused dérogation rejects the parent inscription, as an admin rejection would"""
        if inscription.is_terminal:
            return []
        derogation = inscription.derogation
        comment = f"derogation {derogation.id} {derogation.status.value}" if derogation else None
        record = move(
            inscription, ENTITY, TRANSITIONS, "reject_for_derogation",
            InscriptionStatus.REJECTED, now, actor, inscription.history, comment,
        )
        logger.info("Inscription %s rejected after derogation refusal", inscription.id)
        return [record]
