"""
Erreurs métier du workflow doctoral

Every error is a recoverable, typed condition carrying structured details
(violated rule, missing field, required vs. actual values) so that callers
can render an actionable message.
"""
from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """Base class of all business-rule errors raised by the engine"""

    code = "workflow_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class EntityNotFound(WorkflowError):
    code = "not_found"

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} '{entity_id}' not found", kind=kind, entity_id=entity_id)


class InvalidTransition(WorkflowError):
    """Command not legal from the current state"""

    code = "invalid_transition"

    def __init__(self, entity: str, command: str, current: Any, reason: Optional[str] = None):
        status = getattr(current, "value", current)
        message = f"{command} not allowed on {entity} in state {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, entity=entity, command=command, current_status=status, reason=reason)


class MissingComment(WorkflowError):
    code = "missing_comment"

    def __init__(self, field: str = "comment", min_length: Optional[int] = None):
        message = f"{field} is required"
        if min_length:
            message = f"{field} is required (at least {min_length} characters)"
        super().__init__(message, field=field, min_length=min_length)


class PrerequisitesNotMet(WorkflowError):
    code = "prerequisites_not_met"

    def __init__(self, unmet: List[Dict[str, Any]]):
        criteria = ", ".join(d["criterion"] for d in unmet)
        super().__init__(f"Defense prerequisites not met: {criteria}", unmet=unmet)

    @property
    def unmet(self) -> List[Dict[str, Any]]:
        return self.details["unmet"]


class DocumentsIncomplete(WorkflowError):
    code = "documents_incomplete"

    def __init__(self, missing: List[str]):
        super().__init__(f"Missing required documents: {', '.join(missing)}", missing=missing)

    @property
    def missing(self) -> List[str]:
        return self.details["missing"]


class InvalidJuryComposition(WorkflowError):
    code = "invalid_jury_composition"

    def __init__(self, violations: List[str]):
        super().__init__("Invalid jury composition", violations=violations)

    @property
    def violations(self) -> List[str]:
        return self.details["violations"]


class DerogationPending(WorkflowError):
    code = "derogation_pending"

    def __init__(self, derogation_id: Optional[str], derogation_status: Any):
        status = getattr(derogation_status, "value", derogation_status)
        super().__init__(
            f"Derogation {derogation_id} is {status}, final validation requires APPROVED",
            derogation_id=derogation_id,
            derogation_status=status,
        )


class StaleState(WorkflowError):
    """Concurrency conflict: the record changed since it was read"""

    code = "stale_state"

    def __init__(self, kind: str, entity_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"{kind} '{entity_id}' was modified concurrently (expected version {expected_version}, found {actual_version})",
            kind=kind,
            entity_id=entity_id,
            expected_version=expected_version,
            actual_version=actual_version,
        )


class DuplicateInscription(WorkflowError):
    code = "duplicate_inscription"

    def __init__(self, candidate_id: str, campaign_id: str, existing_id: Optional[str]):
        super().__init__(
            f"Candidate {candidate_id} already has an active inscription for campaign {campaign_id}",
            candidate_id=candidate_id,
            campaign_id=campaign_id,
            existing_id=existing_id,
        )


class DoctorateDurationExceeded(WorkflowError):
    code = "doctorate_duration_exceeded"

    def __init__(self, duration_months: int, max_months: int):
        super().__init__(
            f"Doctorate duration {duration_months} months reaches the maximum of {max_months} months",
            duration_months=duration_months,
            max_months=max_months,
        )


class CampaignClosed(WorkflowError):
    code = "campaign_closed"

    def __init__(self, campaign_id: str):
        super().__init__(f"Campaign {campaign_id} is not open for inscriptions", campaign_id=campaign_id)


class ReportsIncomplete(WorkflowError):
    """Some rapporteurs have not filed a favorable report"""

    code = "reports_incomplete"

    def __init__(self, pending: List[str]):
        super().__init__(f"Favorable reports missing from: {', '.join(pending)}", pending=pending)

    @property
    def pending(self) -> List[str]:
        return self.details["pending"]
