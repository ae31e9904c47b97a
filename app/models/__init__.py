"""
Modèles du suivi doctoral (documents Firestore).
"""
from app.models.doctoral import (
    Campaign,
    Decision,
    DefenseOutcome,
    DefenseResult,
    Derogation,
    DerogationStatus,
    DocumentRef,
    Enrollment,
    Inscription,
    InscriptionStatus,
    JuryMember,
    JuryRole,
    JuryStatus,
    Mention,
    PrerequisiteDetail,
    PrerequisiteStatus,
    RapporteurReport,
    Soutenance,
    SoutenanceStatus,
    TransitionRecord,
)
from app.models.firestore_models import FirestoreModel

__all__ = [
    "FirestoreModel",
    "Inscription",
    "InscriptionStatus",
    "Derogation",
    "DerogationStatus",
    "Decision",
    "Soutenance",
    "SoutenanceStatus",
    "JuryMember",
    "JuryRole",
    "JuryStatus",
    "DefenseOutcome",
    "DefenseResult",
    "Mention",
    "PrerequisiteDetail",
    "PrerequisiteStatus",
    "TransitionRecord",
    "Enrollment",
    "DocumentRef",
    "Campaign",
    "RapporteurReport",
]
