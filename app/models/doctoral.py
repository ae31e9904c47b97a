"""
Modèles : Inscription doctorale, dérogation, soutenance et jury

Each status enum is the single canonical variant for its workflow. Legacy
French values still found in stored records are translated on parsing
(`Enum.parse`) and never written back.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import enum

from pydantic import BaseModel, Field, field_validator

from app.models.firestore_models import FirestoreModel


def _parse_enum(enum_cls, aliases: Dict[str, str], value: Any):
    if value is None or isinstance(value, enum_cls):
        return value
    key = str(value).strip().upper()
    return enum_cls(aliases.get(key, key))


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_LEGACY_INSCRIPTION = {
    "BROUILLON": "DRAFT",
    "SOUMIS": "SUBMITTED",
    "EN_ATTENTE_DIRECTEUR": "PENDING_DIRECTOR",
    "APPROUVE_DIRECTEUR": "DIRECTOR_APPROVED",
    "REJETE_DIRECTEUR": "DIRECTOR_REJECTED",
    "EN_ATTENTE_ADMIN": "PENDING_ADMIN",
    "VALIDE": "VALIDATED",
    "REJETE": "REJECTED",
}

_LEGACY_DEROGATION = {
    "EN_ATTENTE": "PENDING_DIRECTOR",
    "EN_ATTENTE_DIRECTEUR": "PENDING_DIRECTOR",
    "APPROUVE_DIRECTEUR": "DIRECTOR_APPROVED",
    "REJETE_DIRECTEUR": "DIRECTOR_REJECTED",
    "EN_ATTENTE_PED": "PENDING_AUTHORITY",
    "APPROUVE": "APPROVED",
    "APPROUVE_PED": "APPROVED",
    "REJETE": "REJECTED",
}

_LEGACY_SOUTENANCE = {
    "BROUILLON": "DRAFT",
    "SOUMISE": "SUBMITTED",
    "EN_COURS_VALIDATION": "UNDER_VALIDATION",
    "AUTORISEE": "AUTHORIZED",
    "REJETEE": "REJECTED",
    "SOUTENUE": "DEFENDED",
}

_LEGACY_JURY_STATUS = {
    "PROPOSE": "PROPOSED",
    "VALIDE": "VALIDATED",
    "VALIDATED_BY_ADMIN": "VALIDATED",
    "REJETE": "REJECTED",
}

_LEGACY_JURY_ROLE = {
    "EXAMINATEUR": "EXAMINER",
    "DIRECTEUR": "DIRECTOR",
    "CO_DIRECTEUR": "CO_DIRECTOR",
}

_LEGACY_RESULT = {
    "ADMIS": "PASSED",
    "AJOURNE": "DEFERRED",
    "REFUSE": "FAILED",
}


class InscriptionStatus(str, enum.Enum):
    """Statut d'une inscription doctorale"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    PENDING_DIRECTOR = "PENDING_DIRECTOR"
    DIRECTOR_APPROVED = "DIRECTOR_APPROVED"
    DIRECTOR_REJECTED = "DIRECTOR_REJECTED"
    PENDING_ADMIN = "PENDING_ADMIN"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, value: Any) -> "InscriptionStatus":
        return _parse_enum(cls, _LEGACY_INSCRIPTION, value)


class DerogationStatus(str, enum.Enum):
    """Statut d'une demande de dérogation"""
    PENDING_DIRECTOR = "PENDING_DIRECTOR"
    DIRECTOR_APPROVED = "DIRECTOR_APPROVED"
    DIRECTOR_REJECTED = "DIRECTOR_REJECTED"
    PENDING_AUTHORITY = "PENDING_AUTHORITY"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, value: Any) -> "DerogationStatus":
        return _parse_enum(cls, _LEGACY_DEROGATION, value)


class SoutenanceStatus(str, enum.Enum):
    """Statut d'une demande de soutenance"""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_VALIDATION = "UNDER_VALIDATION"
    AUTHORIZED = "AUTHORIZED"
    REJECTED = "REJECTED"
    DEFENDED = "DEFENDED"

    @classmethod
    def parse(cls, value: Any) -> "SoutenanceStatus":
        return _parse_enum(cls, _LEGACY_SOUTENANCE, value)


class JuryStatus(str, enum.Enum):
    PROPOSED = "PROPOSED"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, value: Any) -> "JuryStatus":
        return _parse_enum(cls, _LEGACY_JURY_STATUS, value)


class JuryRole(str, enum.Enum):
    PRESIDENT = "PRESIDENT"
    RAPPORTEUR = "RAPPORTEUR"
    EXAMINER = "EXAMINER"
    DIRECTOR = "DIRECTOR"
    CO_DIRECTOR = "CO_DIRECTOR"

    @classmethod
    def parse(cls, value: Any) -> "JuryRole":
        return _parse_enum(cls, _LEGACY_JURY_ROLE, value)


class DefenseResult(str, enum.Enum):
    PASSED = "PASSED"
    DEFERRED = "DEFERRED"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: Any) -> "DefenseResult":
        return _parse_enum(cls, _LEGACY_RESULT, value)


class Mention(str, enum.Enum):
    PASSABLE = "PASSABLE"
    HONORABLE = "HONORABLE"
    TRES_HONORABLE = "TRES_HONORABLE"
    TRES_HONORABLE_FELICITATIONS = "TRES_HONORABLE_FELICITATIONS"


INSCRIPTION_TERMINAL = frozenset({
    InscriptionStatus.VALIDATED,
    InscriptionStatus.DIRECTOR_REJECTED,
    InscriptionStatus.REJECTED,
})

INSCRIPTION_REJECTED = frozenset({
    InscriptionStatus.DIRECTOR_REJECTED,
    InscriptionStatus.REJECTED,
})

DEROGATION_TERMINAL = frozenset({
    DerogationStatus.DIRECTOR_REJECTED,
    DerogationStatus.APPROVED,
    DerogationStatus.REJECTED,
})

SOUTENANCE_TERMINAL = frozenset({
    SoutenanceStatus.REJECTED,
    SoutenanceStatus.DEFENDED,
})


class Decision(BaseModel):
    """Avis d'un acteur (directeur, administration, PED)"""
    approved: bool
    comment: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: datetime

    @field_validator("decided_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)


class TransitionRecord(BaseModel):
    """Trace d'une transition d'état (journal d'audit)"""
    entity_type: str
    entity_id: str
    command: str
    from_status: Optional[str] = None
    to_status: str
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    comment: Optional[str] = None
    at: datetime

    @field_validator("at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)


class Derogation(FirestoreModel):
    """Demande de dérogation (durée de doctorat au-delà du plafond)"""
    inscription_id: str
    reason: str
    status: DerogationStatus = DerogationStatus.PENDING_DIRECTOR
    duration_months: int
    director_decision: Optional[Decision] = None
    authority_decision: Optional[Decision] = None
    created_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return DerogationStatus.parse(v)

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in DEROGATION_TERMINAL


class Inscription(FirestoreModel):
    """Inscription d'un doctorant pour une campagne"""
    candidate_id: str
    director_id: str
    campaign_id: str
    thesis_subject: Optional[str] = None
    status: InscriptionStatus = InscriptionStatus.DRAFT
    created_at: datetime
    submitted_at: Optional[datetime] = None
    duration_months: Optional[int] = None
    derogation: Optional[Derogation] = None
    director_decision: Optional[Decision] = None
    admin_decision: Optional[Decision] = None
    history: List[TransitionRecord] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return InscriptionStatus.parse(v)

    @field_validator("created_at", "submitted_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in INSCRIPTION_TERMINAL

    @property
    def is_active(self) -> bool:
        return self.status not in INSCRIPTION_REJECTED


class JuryMember(FirestoreModel):
    """Membre du jury de soutenance"""
    name: str
    affiliation: Optional[str] = None
    academic_rank: Optional[str] = None
    role: JuryRole
    is_external: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        return JuryRole.parse(v)


class RapporteurReport(BaseModel):
    """Rapport d'un rapporteur sur le manuscrit"""
    member_id: str
    favorable: bool
    comment: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: datetime

    @field_validator("submitted_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)


class DefenseOutcome(BaseModel):
    """Procès-verbal : résultat de la soutenance"""
    result: DefenseResult
    mention: Optional[Mention] = None
    observations: Optional[str] = None
    recorded_at: datetime

    @field_validator("result", mode="before")
    @classmethod
    def parse_result(cls, v):
        return DefenseResult.parse(v)

    @field_validator("recorded_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)


class Soutenance(FirestoreModel):
    """Demande de soutenance de thèse"""
    candidate_id: str
    director_id: str
    director_name: Optional[str] = None
    thesis_title: str
    abstract: Optional[str] = None
    speciality: Optional[str] = None
    laboratory: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    venue: Optional[str] = None
    status: SoutenanceStatus = SoutenanceStatus.DRAFT
    jury: List[JuryMember] = Field(default_factory=list)
    jury_status: Optional[JuryStatus] = None
    jury_decision: Optional[Decision] = None
    reports: List[RapporteurReport] = Field(default_factory=list)
    rejection_reason: Optional[str] = None
    outcome: Optional[DefenseOutcome] = None
    created_at: datetime
    history: List[TransitionRecord] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        return SoutenanceStatus.parse(v)

    @field_validator("jury_status", mode="before")
    @classmethod
    def parse_jury_status(cls, v):
        return JuryStatus.parse(v)

    @field_validator("created_at", "scheduled_date")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in SOUTENANCE_TERMINAL


class PrerequisiteDetail(BaseModel):
    criterion: str
    satisfied: bool
    required_value: str
    actual_value: str


class PrerequisiteStatus(BaseModel):
    """Synthèse des prérequis de soutenance (calculée, jamais stockée)"""
    publications_satisfied: bool
    training_hours_satisfied: bool
    duration_satisfied: bool
    documents_satisfied: bool
    all_satisfied: bool
    details: List[PrerequisiteDetail]
    missing_documents: List[str] = Field(default_factory=list)

    @property
    def unmet(self) -> List[PrerequisiteDetail]:
        return [d for d in self.details if not d.satisfied]


class Enrollment(FirestoreModel):
    """Inscription antérieure (historique du doctorant)"""
    candidate_id: str
    campaign_id: Optional[str] = None
    started_at: datetime

    @field_validator("started_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)


class Campaign(FirestoreModel):
    """Campagne d'inscription (ouverte entre opens_at et closes_at)"""
    name: Optional[str] = None
    active: bool = True
    opens_at: datetime
    closes_at: datetime

    @field_validator("opens_at", "closes_at")
    @classmethod
    def ensure_utc(cls, v):
        return _utc(v)

    def is_open(self, at: datetime) -> bool:
        return self.active and self.opens_at <= at <= self.closes_at


class DocumentRef(BaseModel):
    type: str
    present: bool = True
