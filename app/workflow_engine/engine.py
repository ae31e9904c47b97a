"""
Moteur du workflow doctoral (façade)

Chaque commande :
1. charge l'entité et sa version depuis le repository ;
2. vérifie la version attendue par l'appelant (If-Match) ;
3. exécute la machine à états sur une copie ;
4. enregistre avec la version chargée comme version attendue.

A refused command leaves the stored record untouched. The engine never
retries a StaleState.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from pydantic import BaseModel, ConfigDict, Field

from app.models.doctoral import (
    DefenseResult,
    DerogationStatus,
    Inscription,
    JuryMember,
    Mention,
    PrerequisiteStatus,
    Soutenance,
    TransitionRecord,
)
from app.workflow_engine.derogation import DerogationWorkflow
from app.workflow_engine.eligibility import EligibilityEvaluator
from app.workflow_engine.errors import (
    CampaignClosed,
    DuplicateInscription,
    EntityNotFound,
    InvalidTransition,
    StaleState,
    WorkflowError,
)
from app.workflow_engine.inscription import EnrollmentStateMachine
from app.workflow_engine.ports import (
    AcademicRecords,
    CampaignCalendar,
    CandidateHistory,
    Clock,
    DocumentStore,
    Repository,
    SystemClock,
)
from app.workflow_engine.rules import WorkflowRules
from app.workflow_engine.soutenance import DefenseStateMachine
from app.workflow_engine.transitions import Actor

logger = logging.getLogger(__name__)

INSCRIPTION = "inscription"
SOUTENANCE = "soutenance"


class CommandResult(BaseModel):
    """Résultat d'une commande : entité persistée, nouvelle version, transitions"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    entity: Any
    version: int
    transitions: List[TransitionRecord] = Field(default_factory=list)


class WorkflowEngine:
    """
    Point d'entrée unique des commandes du workflow doctoral.
    """

    def __init__(
        self,
        repository: Repository,
        history: CandidateHistory,
        documents: DocumentStore,
        academic_records: AcademicRecords,
        campaigns: CampaignCalendar,
        clock: Optional[Clock] = None,
        rules: Optional[WorkflowRules] = None,
    ):
        self.repository = repository
        self.campaigns = campaigns
        self.clock = clock or SystemClock()
        self.rules = rules or WorkflowRules.get_default_rules()
        self.eligibility = EligibilityEvaluator(history, documents, academic_records, self.clock, self.rules)
        self.derogations = DerogationWorkflow(self.rules)
        self.inscriptions = EnrollmentStateMachine(self.rules, self.derogations)
        self.soutenances = DefenseStateMachine(self.rules)

    # --- Plomberie ---

    def _load(self, kind: str, entity_id: str, expected_version: Optional[int] = None) -> Tuple[Any, int]:
        entity, version = self.repository.load(kind, entity_id)
        if expected_version is not None and expected_version != version:
            raise StaleState(kind, entity_id, expected_version, version)
        return entity.model_copy(deep=True), version

    def _commit(
        self,
        kind: str,
        entity: Any,
        version: int,
        records: List[TransitionRecord],
        command: str,
        changed: bool = True,
    ) -> CommandResult:
        if not changed:
            # commande idempotente : rien à écrire
            return CommandResult(entity=entity, version=version, transitions=[])
        new_version = self.repository.save(kind, entity, version)
        logger.info(
            "%s %s: %s -> %s (v%s)",
            kind, entity.id, command,
            getattr(entity.status, "value", entity.status), new_version,
        )
        return CommandResult(entity=entity, version=new_version, transitions=records)

    def _run(
        self,
        kind: str,
        entity_id: str,
        command: str,
        expected_version: Optional[int],
        step: Callable[[Any, datetime], List[TransitionRecord]],
    ) -> CommandResult:
        try:
            entity, version = self._load(kind, entity_id, expected_version)
            before = entity.model_dump()
            records = step(entity, self.clock.now())
            changed = bool(records) or entity.model_dump() != before
            return self._commit(kind, entity, version, records, command, changed)
        except WorkflowError as e:
            logger.warning("%s refused on %s %s: %s", command, kind, entity_id, e.to_dict())
            raise

    # --- Inscriptions ---

    def create_inscription(
        self,
        candidate_id: str,
        director_id: str,
        campaign_id: str,
        thesis_subject: Optional[str] = None,
    ) -> CommandResult:
        """Créer une inscription en brouillon pour une campagne ouverte"""
        now = self.clock.now()
        try:
            campaign = self.campaigns.get_campaign(campaign_id)
            if campaign is None:
                raise EntityNotFound("campaign", campaign_id)
            if not campaign.is_open(now):
                raise CampaignClosed(campaign_id)
            inscription = self.inscriptions.create(candidate_id, director_id, campaign_id, now, thesis_subject)
            # une seule inscription active par doctorant et par campagne
            version = self.repository.insert_unique(
                INSCRIPTION,
                inscription,
                {"candidate_id": candidate_id, "campaign_id": campaign_id},
                blocks=lambda existing: existing.is_active,
                on_conflict=lambda existing: DuplicateInscription(candidate_id, campaign_id, existing.id),
            )
        except WorkflowError as e:
            logger.warning("create_inscription refused: %s", e.to_dict())
            raise
        logger.info("%s %s: create -> %s (v%s)", INSCRIPTION, inscription.id, inscription.status.value, version)
        return CommandResult(entity=inscription, version=version, transitions=[])

    def submit_inscription(
        self,
        inscription_id: str,
        actor: Actor,
        derogation_reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        def step(inscription: Inscription, now: datetime):
            duration = self.eligibility.duration_months(inscription.candidate_id)
            return self.inscriptions.submit(inscription, duration, now, actor, derogation_reason)
        return self._run(INSCRIPTION, inscription_id, "submit", expected_version, step)

    def validate_inscription_by_director(
        self,
        inscription_id: str,
        approved: bool,
        actor: Actor,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._run(
            INSCRIPTION, inscription_id, "validate_by_director", expected_version,
            lambda i, now: self.inscriptions.validate_by_director(i, approved, comment, now, actor),
        )

    def validate_inscription_by_admin(
        self,
        inscription_id: str,
        approved: bool,
        actor: Actor,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._run(
            INSCRIPTION, inscription_id, "validate_by_admin", expected_version,
            lambda i, now: self.inscriptions.validate_by_admin(i, approved, comment, now, actor),
        )

    # --- Dérogations ---

    def find_derogation_inscription(self, derogation_id: str) -> Inscription:
        """Inscription qui porte la dérogation"""
        found = self.repository.find(INSCRIPTION, **{"derogation.id": derogation_id})
        if not found:
            raise EntityNotFound("derogation", derogation_id)
        return found[0]

    def _decide_derogation(
        self,
        derogation_id: str,
        command: str,
        decide: Callable,
        approved: bool,
        comment: Optional[str],
        actor: Actor,
        expected_version: Optional[int],
    ) -> CommandResult:
        """The dérogation lives in its inscription document: one atomic write for both"""
        def step(inscription: Inscription, now: datetime):
            if inscription.is_terminal:
                raise InvalidTransition("derogation", command, inscription.derogation.status,
                                        reason=f"inscription is {inscription.status.value}")
            records = decide(inscription.derogation, approved, comment, now, actor, inscription.history)
            if inscription.derogation.status in (DerogationStatus.DIRECTOR_REJECTED, DerogationStatus.REJECTED):
                records += self.inscriptions.reject_for_derogation(inscription, now, actor)
            return records

        try:
            inscription_id = self.find_derogation_inscription(derogation_id).id
        except EntityNotFound as e:
            logger.warning("%s refused: %s", command, e.to_dict())
            raise
        return self._run(INSCRIPTION, inscription_id, command, expected_version, step)

    def decide_derogation_by_director(
        self,
        derogation_id: str,
        approved: bool,
        actor: Actor,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._decide_derogation(
            derogation_id, "decide_by_director", self.derogations.decide_by_director,
            approved, comment, actor, expected_version,
        )

    def decide_derogation_by_authority(
        self,
        derogation_id: str,
        approved: bool,
        actor: Actor,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._decide_derogation(
            derogation_id, "decide_by_authority", self.derogations.decide_by_authority,
            approved, comment, actor, expected_version,
        )

    # --- Soutenances ---

    def save_soutenance_draft(
        self,
        fields: Dict[str, Any],
        actor: Actor,
        soutenance_id: Optional[str] = None,
        candidate_id: Optional[str] = None,
        director_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        """Créer (sans soutenance_id) ou modifier le brouillon d'une demande"""
        if soutenance_id is None:
            soutenance = self.soutenances.create_draft(candidate_id, director_id, fields, self.clock.now())
            return self._commit(SOUTENANCE, soutenance, 0, [], "create")
        return self._run(
            SOUTENANCE, soutenance_id, "update_draft", expected_version,
            lambda s, now: self.soutenances.update_draft(s, fields, now, actor),
        )

    def submit_soutenance(
        self,
        soutenance_id: str,
        actor: Actor,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        def step(soutenance: Soutenance, now: datetime):
            prerequisites = self.eligibility.evaluate(soutenance.candidate_id)
            return self.soutenances.submit(soutenance, prerequisites, now, actor)
        return self._run(SOUTENANCE, soutenance_id, "submit", expected_version, step)

    def propose_jury(
        self,
        soutenance_id: str,
        members: List[JuryMember],
        actor: Actor,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        def step(soutenance: Soutenance, now: datetime):
            prerequisites = self.eligibility.evaluate(soutenance.candidate_id)
            return self.soutenances.propose_jury(soutenance, members, prerequisites, now, actor)
        return self._run(SOUTENANCE, soutenance_id, "propose_jury", expected_version, step)

    def decide_jury(
        self,
        soutenance_id: str,
        approved: bool,
        actor: Actor,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._run(
            SOUTENANCE, soutenance_id, "decide_jury", expected_version,
            lambda s, now: self.soutenances.decide_jury(s, approved, comment, now, actor),
        )

    def submit_report(
        self,
        soutenance_id: str,
        member_id: str,
        favorable: bool,
        actor: Actor,
        comment: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._run(
            SOUTENANCE, soutenance_id, "submit_report", expected_version,
            lambda s, now: self.soutenances.submit_report(s, member_id, favorable, comment, now, actor),
        )

    def authorize_soutenance(
        self,
        soutenance_id: str,
        scheduled_date: datetime,
        venue: str,
        actor: Actor,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        def step(soutenance: Soutenance, now: datetime):
            prerequisites = self.eligibility.evaluate(soutenance.candidate_id)
            return self.soutenances.authorize(soutenance, prerequisites, scheduled_date, venue, now, actor)
        return self._run(SOUTENANCE, soutenance_id, "authorize", expected_version, step)

    def reject_soutenance(
        self,
        soutenance_id: str,
        reason: Optional[str],
        actor: Actor,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._run(
            SOUTENANCE, soutenance_id, "reject", expected_version,
            lambda s, now: self.soutenances.reject(s, reason, now, actor),
        )

    def record_defense_outcome(
        self,
        soutenance_id: str,
        result: DefenseResult,
        actor: Actor,
        mention: Optional[Mention] = None,
        observations: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> CommandResult:
        return self._run(
            SOUTENANCE, soutenance_id, "record_outcome", expected_version,
            lambda s, now: self.soutenances.record_outcome(s, result, now, actor, mention, observations),
        )

    # --- Requêtes ---

    def get_inscription(self, inscription_id: str) -> Tuple[Inscription, int]:
        return self.repository.load(INSCRIPTION, inscription_id)

    def get_soutenance(self, soutenance_id: str) -> Tuple[Soutenance, int]:
        return self.repository.load(SOUTENANCE, soutenance_id)

    def list_inscriptions(self, candidate_id: str) -> List[Inscription]:
        return self.repository.find(INSCRIPTION, candidate_id=candidate_id)

    def list_soutenances(self, candidate_id: str) -> List[Soutenance]:
        return self.repository.find(SOUTENANCE, candidate_id=candidate_id)

    def evaluate_prerequisites(self, candidate_id: str) -> PrerequisiteStatus:
        return self.eligibility.evaluate(candidate_id)

    def soutenance_prerequisites(self, soutenance_id: str) -> PrerequisiteStatus:
        soutenance, _ = self.repository.load(SOUTENANCE, soutenance_id)
        return self.eligibility.evaluate(soutenance.candidate_id)
