"""
Évaluation des prérequis de soutenance

Quatre critères indépendants : publications, heures de formation, durée du
doctorat et complétude des documents. Le détail liste toujours les quatre
critères, quel que soit le résultat.
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from app.models.doctoral import Enrollment, PrerequisiteDetail, PrerequisiteStatus
from app.workflow_engine.ports import AcademicRecords, CandidateHistory, Clock, DocumentStore
from app.workflow_engine.rules import WorkflowRules

logger = logging.getLogger(__name__)

CRITERION_PUBLICATIONS = "publications"
CRITERION_TRAINING_HOURS = "heures_formation"
CRITERION_DURATION = "duree_doctorat"
CRITERION_DOCUMENTS = "documents_complets"


def months_between(start: datetime, end: datetime) -> int:
    """Nombre de mois entiers écoulés entre deux dates (0 si end < start)"""
    start = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if (end.day, end.time()) < (start.day, start.time()):
        months -= 1
    return max(months, 0)


def doctorate_duration_months(enrollments: List[Enrollment], now: datetime) -> int:
    """Durée du doctorat depuis la première inscription"""
    if not enrollments:
        return 0
    first = min(e.started_at for e in enrollments)
    return months_between(first, now)


def _fmt(value: float) -> str:
    return f"{value:g}"


class EligibilityEvaluator:
    """
    Calcule si un doctorant satisfait les prérequis de soutenance.
    """

    def __init__(
        self,
        history: CandidateHistory,
        documents: DocumentStore,
        academic_records: AcademicRecords,
        clock: Clock,
        rules: Optional[WorkflowRules] = None,
    ):
        self.history = history
        self.documents = documents
        self.academic_records = academic_records
        self.clock = clock
        self.rules = rules or WorkflowRules.get_default_rules()

    def duration_months(self, candidate_id: str) -> int:
        enrollments = self.history.get_prior_enrollments(candidate_id)
        return doctorate_duration_months(enrollments, self.clock.now())

    def missing_documents(self, candidate_id: str) -> List[str]:
        present = {d.type for d in self.documents.list_documents(candidate_id) if d.present}
        return [t for t in self.rules.required_defense_documents if t not in present]

    def evaluate(self, candidate_id: str) -> PrerequisiteStatus:
        rules = self.rules

        publications = int(self.academic_records.count_publications(candidate_id) or 0)
        publications_ok = publications >= rules.min_publications

        hours = float(self.academic_records.training_hours(candidate_id) or 0)
        hours_ok = hours >= rules.min_training_hours

        duration = self.duration_months(candidate_id)
        duration_ok = not rules.exceeds_max_duration(duration)

        missing = self.missing_documents(candidate_id)
        required_docs = len(rules.required_defense_documents)
        documents_ok = not missing

        details = [
            PrerequisiteDetail(
                criterion=CRITERION_PUBLICATIONS,
                satisfied=publications_ok,
                required_value=str(rules.min_publications),
                actual_value=str(publications),
            ),
            PrerequisiteDetail(
                criterion=CRITERION_TRAINING_HOURS,
                satisfied=hours_ok,
                required_value=_fmt(rules.min_training_hours),
                actual_value=_fmt(hours),
            ),
            PrerequisiteDetail(
                criterion=CRITERION_DURATION,
                satisfied=duration_ok,
                required_value=f"< {rules.max_doctorate_months}",
                actual_value=str(duration),
            ),
            PrerequisiteDetail(
                criterion=CRITERION_DOCUMENTS,
                satisfied=documents_ok,
                required_value=str(required_docs),
                actual_value=str(required_docs - len(missing)),
            ),
        ]

        status = PrerequisiteStatus(
            publications_satisfied=publications_ok,
            training_hours_satisfied=hours_ok,
            duration_satisfied=duration_ok,
            documents_satisfied=documents_ok,
            all_satisfied=publications_ok and hours_ok and duration_ok and documents_ok,
            details=details,
            missing_documents=missing,
        )
        logger.debug("Prerequisites for %s: all_satisfied=%s", candidate_id, status.all_satisfied)
        return status
