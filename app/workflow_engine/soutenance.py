"""
Machine à états de la demande de soutenance

DRAFT -> SUBMITTED -> UNDER_VALIDATION -> AUTHORIZED | REJECTED,
AUTHORIZED -> DEFENDED. Editing a REJECTED request sends it back to DRAFT.
The jury carries its own status (PROPOSED, VALIDATED, REJECTED).
Authorization also waits for a favorable report from every rapporteur.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from app.models.doctoral import (
    Decision,
    DefenseOutcome,
    DefenseResult,
    JuryMember,
    JuryRole,
    JuryStatus,
    Mention,
    PrerequisiteStatus,
    RapporteurReport,
    Soutenance,
    SoutenanceStatus,
    TransitionRecord,
    _utc,
)
from app.workflow_engine.eligibility import CRITERION_DOCUMENTS
from app.workflow_engine.errors import (
    DocumentsIncomplete,
    EntityNotFound,
    InvalidJuryComposition,
    InvalidTransition,
    MissingComment,
    PrerequisitesNotMet,
    ReportsIncomplete,
)
from app.workflow_engine.jury import validate_jury
from app.workflow_engine.rules import WorkflowRules
from app.workflow_engine.transitions import Actor, clean_comment, move, new_id

logger = logging.getLogger(__name__)

ENTITY = "soutenance"
JURY_ENTITY = "jury"
REPORT_ENTITY = "report"

TRANSITIONS = {
    SoutenanceStatus.DRAFT: frozenset({SoutenanceStatus.SUBMITTED}),
    SoutenanceStatus.SUBMITTED: frozenset({SoutenanceStatus.UNDER_VALIDATION}),
    SoutenanceStatus.UNDER_VALIDATION: frozenset({
        SoutenanceStatus.AUTHORIZED,
        SoutenanceStatus.REJECTED,
    }),
    SoutenanceStatus.AUTHORIZED: frozenset({SoutenanceStatus.DEFENDED}),
    SoutenanceStatus.REJECTED: frozenset({SoutenanceStatus.DRAFT}),
}

EDITABLE = frozenset({SoutenanceStatus.DRAFT, SoutenanceStatus.REJECTED})
JURY_OPEN = frozenset({
    SoutenanceStatus.DRAFT,
    SoutenanceStatus.SUBMITTED,
    SoutenanceStatus.UNDER_VALIDATION,
})
JURY_DECISION_OPEN = frozenset({SoutenanceStatus.SUBMITTED, SoutenanceStatus.UNDER_VALIDATION})
DRAFT_FIELDS = ("thesis_title", "abstract", "speciality", "laboratory", "director_name")


def require_prerequisites(prerequisites: PrerequisiteStatus) -> None:
    """Raise the most specific error when a candidate is not eligible"""
    if prerequisites.all_satisfied:
        return
    unmet = prerequisites.unmet
    if all(d.criterion == CRITERION_DOCUMENTS for d in unmet):
        raise DocumentsIncomplete(prerequisites.missing_documents)
    raise PrerequisitesNotMet([d.model_dump() for d in unmet])


class DefenseStateMachine:
    def __init__(self, rules: Optional[WorkflowRules] = None):
        self.rules = rules or WorkflowRules.get_default_rules()

    # --- Brouillon ---

    def create_draft(
        self,
        candidate_id: str,
        director_id: str,
        fields: Dict[str, Any],
        now: datetime,
    ) -> Soutenance:
        values = {k: v for k, v in fields.items() if k in DRAFT_FIELDS and v is not None}
        return Soutenance(
            id=new_id(),
            candidate_id=candidate_id,
            director_id=director_id,
            status=SoutenanceStatus.DRAFT,
            created_at=now,
            **values,
        )

    def update_draft(
        self,
        soutenance: Soutenance,
        fields: Dict[str, Any],
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "update_draft"
        if soutenance.status not in EDITABLE:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        for key in DRAFT_FIELDS:
            if key in fields and fields[key] is not None:
                setattr(soutenance, key, fields[key])
        if soutenance.status == SoutenanceStatus.REJECTED:
            soutenance.rejection_reason = None
            return [move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.DRAFT, now, actor, soutenance.history)]
        return []

    # --- Soumission ---

    def submit(
        self,
        soutenance: Soutenance,
        prerequisites: PrerequisiteStatus,
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "submit"
        if soutenance.status != SoutenanceStatus.DRAFT:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        if soutenance.jury_status == JuryStatus.REJECTED:
            raise InvalidTransition(ENTITY, command, soutenance.status, reason="jury was rejected, propose a new one")
        require_prerequisites(prerequisites)

        history = soutenance.history
        records = [move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.SUBMITTED, now, actor, history)]
        if soutenance.jury_status in (JuryStatus.PROPOSED, JuryStatus.VALIDATED):
            records.append(move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.UNDER_VALIDATION, now, actor, history))
        return records

    # --- Jury ---

    def _with_director(self, soutenance: Soutenance, members: List[JuryMember]) -> List[JuryMember]:
        """Copy the proposal, derive the director member and assign stable ids"""
        members = [m.model_copy() for m in members]
        director_listed = any(
            m.role == JuryRole.DIRECTOR or m.id == soutenance.director_id for m in members
        )
        if not director_listed:
            members.insert(0, JuryMember(
                id=soutenance.director_id,
                name=soutenance.director_name or soutenance.director_id,
                role=JuryRole.DIRECTOR,
                is_external=False,
            ))
        for index, member in enumerate(members, start=1):
            if not member.id:
                member.id = soutenance.director_id if member.role == JuryRole.DIRECTOR else f"jm-{index}"
        return members

    def propose_jury(
        self,
        soutenance: Soutenance,
        members: List[JuryMember],
        prerequisites: PrerequisiteStatus,
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "propose_jury"
        if soutenance.status not in JURY_OPEN:
            raise InvalidTransition(ENTITY, command, soutenance.status)

        members = self._with_director(soutenance, members)
        validation = validate_jury(members, director_id=soutenance.director_id, rules=self.rules)
        if not validation.valid:
            raise InvalidJuryComposition(validation.violations)

        if (soutenance.jury_status == JuryStatus.PROPOSED
                and [m.model_dump() for m in soutenance.jury] == [m.model_dump() for m in members]):
            return []
        if soutenance.status == SoutenanceStatus.SUBMITTED:
            # la proposition fait entrer la demande en validation
            require_prerequisites(prerequisites)

        previous = soutenance.jury_status
        soutenance.jury = members
        soutenance.jury_status = JuryStatus.PROPOSED
        soutenance.jury_decision = None
        soutenance.reports = []
        record = TransitionRecord(
            entity_type=JURY_ENTITY,
            entity_id=soutenance.id,
            command=command,
            from_status=previous.value if previous else None,
            to_status=JuryStatus.PROPOSED.value,
            actor_id=actor.id,
            actor_role=actor.role,
            comment=f"{len(members)} members",
            at=now,
        )
        soutenance.history.append(record)
        records = [record]
        if soutenance.status == SoutenanceStatus.SUBMITTED:
            records.append(move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.UNDER_VALIDATION, now, actor, soutenance.history))
        return records

    def decide_jury(
        self,
        soutenance: Soutenance,
        approved: bool,
        comment: Optional[str],
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "decide_jury"
        if soutenance.status not in JURY_DECISION_OPEN:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        if soutenance.jury_status != JuryStatus.PROPOSED:
            raise InvalidTransition(JURY_ENTITY, command, soutenance.jury_status or "NONE")
        comment = clean_comment(comment)
        if not approved and not comment:
            raise MissingComment()

        target = JuryStatus.VALIDATED if approved else JuryStatus.REJECTED
        soutenance.jury_decision = Decision(approved=approved, comment=comment, decided_by=actor.id, decided_at=now)
        soutenance.jury_status = target
        record = TransitionRecord(
            entity_type=JURY_ENTITY,
            entity_id=soutenance.id,
            command=command,
            from_status=JuryStatus.PROPOSED.value,
            to_status=target.value,
            actor_id=actor.id,
            actor_role=actor.role,
            comment=comment,
            at=now,
        )
        soutenance.history.append(record)
        return [record]

    # --- Rapports ---

    def pending_reports(self, soutenance: Soutenance) -> List[str]:
        """Rapporteurs (ids) sans rapport favorable"""
        favorable = {r.member_id for r in soutenance.reports if r.favorable}
        return [
            m.id for m in soutenance.jury
            if m.role == JuryRole.RAPPORTEUR and m.id not in favorable
        ]

    def submit_report(
        self,
        soutenance: Soutenance,
        member_id: str,
        favorable: bool,
        comment: Optional[str],
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "submit_report"
        if soutenance.status not in JURY_DECISION_OPEN:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        if soutenance.jury_status not in (JuryStatus.PROPOSED, JuryStatus.VALIDATED):
            raise InvalidTransition(JURY_ENTITY, command, soutenance.jury_status or "NONE")
        member = next((m for m in soutenance.jury if m.id == member_id), None)
        if member is None:
            raise EntityNotFound("jury member", member_id)
        if member.role != JuryRole.RAPPORTEUR:
            raise InvalidTransition(JURY_ENTITY, command, soutenance.jury_status,
                                    reason=f"{member.name} is not a rapporteur")
        comment = clean_comment(comment)
        if not favorable and not comment:
            raise MissingComment()

        # un nouveau rapport remplace le précédent
        soutenance.reports = [r for r in soutenance.reports if r.member_id != member_id]
        soutenance.reports.append(RapporteurReport(
            member_id=member_id,
            favorable=favorable,
            comment=comment,
            submitted_by=actor.id,
            submitted_at=now,
        ))
        record = TransitionRecord(
            entity_type=REPORT_ENTITY,
            entity_id=soutenance.id,
            command=command,
            to_status="FAVORABLE" if favorable else "UNFAVORABLE",
            actor_id=actor.id,
            actor_role=actor.role,
            comment=comment or member.name,
            at=now,
        )
        soutenance.history.append(record)
        return [record]

    # --- Autorisation ---

    def authorize(
        self,
        soutenance: Soutenance,
        prerequisites: PrerequisiteStatus,
        scheduled_date: datetime,
        venue: str,
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "authorize"
        if soutenance.status != SoutenanceStatus.UNDER_VALIDATION:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        if soutenance.jury_status != JuryStatus.VALIDATED:
            raise InvalidTransition(ENTITY, command, soutenance.status, reason="jury must be VALIDATED")
        require_prerequisites(prerequisites)
        scheduled_date = _utc(scheduled_date)
        if scheduled_date is None or scheduled_date <= now:
            raise InvalidTransition(ENTITY, command, soutenance.status, reason="scheduled date must be in the future")
        venue = clean_comment(venue)
        if not venue:
            raise MissingComment("venue")
        pending = self.pending_reports(soutenance)
        if pending:
            raise ReportsIncomplete(pending)

        soutenance.scheduled_date = scheduled_date
        soutenance.venue = venue
        return [move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.AUTHORIZED, now, actor, soutenance.history)]

    def reject(
        self,
        soutenance: Soutenance,
        reason: Optional[str],
        now: datetime,
        actor: Actor,
    ) -> List[TransitionRecord]:
        command = "reject"
        if soutenance.status != SoutenanceStatus.UNDER_VALIDATION:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        reason = clean_comment(reason)
        if not reason:
            raise MissingComment("reason")

        soutenance.rejection_reason = reason
        logger.info("Soutenance %s rejected: %s", soutenance.id, reason)
        return [move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.REJECTED, now, actor, soutenance.history, reason)]

    # --- Procès-verbal ---

    def record_outcome(
        self,
        soutenance: Soutenance,
        result: DefenseResult,
        now: datetime,
        actor: Actor,
        mention: Optional[Mention] = None,
        observations: Optional[str] = None,
    ) -> List[TransitionRecord]:
        command = "record_outcome"
        if soutenance.status != SoutenanceStatus.AUTHORIZED:
            raise InvalidTransition(ENTITY, command, soutenance.status)
        if soutenance.scheduled_date is None or soutenance.scheduled_date >= now:
            raise InvalidTransition(ENTITY, command, soutenance.status, reason="defense date not reached")
        result = DefenseResult.parse(result)
        if result == DefenseResult.PASSED and mention is None:
            raise MissingComment("mention")

        soutenance.outcome = DefenseOutcome(
            result=result,
            mention=mention if result == DefenseResult.PASSED else None,
            observations=clean_comment(observations),
            recorded_at=now,
        )
        logger.info("Soutenance %s defended: %s", soutenance.id, result.value)
        return [move(soutenance, ENTITY, TRANSITIONS, command, SoutenanceStatus.DEFENDED, now, actor, soutenance.history, result.value)]
