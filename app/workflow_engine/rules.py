"""
Règles du workflow doctoral configurables
"""
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field


class WorkflowRules(BaseModel):
    """
    Règles paramétrables du workflow doctoral

    Ces règles peuvent être personnalisées par établissement / école doctorale
    """

    # Durée du doctorat (en mois)
    derogation_threshold_months: int = 36  # Au-delà : dérogation obligatoire
    max_doctorate_months: int = 72  # Plafond absolu (6 ans)
    derogation_reason_min_length: int = 50

    # Prérequis de soutenance
    min_publications: int = 2
    min_training_hours: float = 200.0
    required_defense_documents: List[str] = Field(default_factory=lambda: [
        "MANUSCRIT_THESE",
        "RESUME_THESE",
        "PUBLICATIONS",
        "ATTESTATION_FORMATION",
    ])

    # Composition du jury
    jury_min_members: int = 4
    jury_max_members: int = 8
    jury_min_rapporteurs: int = 0  # Rapporteurs, internes ou externes
    jury_min_external_rapporteurs: int = 2
    jury_external_quota: bool = True  # Au moins 50% de membres externes

    def to_dict(self) -> Dict[str, Any]:
        """Convertir en dictionnaire"""
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowRules":
        """Créer depuis un dictionnaire"""
        return cls(**data)

    @classmethod
    def get_default_rules(cls) -> "WorkflowRules":
        """Obtenir les règles par défaut"""
        return cls()

    @classmethod
    def from_settings(cls, settings: Optional[Any] = None) -> "WorkflowRules":
        """Construire les règles depuis la configuration de l'application"""
        if settings is None:
            from app.core.config import settings
        return cls(
            derogation_threshold_months=settings.DEROGATION_THRESHOLD_MONTHS,
            max_doctorate_months=settings.MAX_DOCTORATE_MONTHS,
            derogation_reason_min_length=settings.DEROGATION_REASON_MIN_LENGTH,
            min_publications=settings.MIN_PUBLICATIONS,
            min_training_hours=settings.MIN_TRAINING_HOURS,
            required_defense_documents=list(settings.REQUIRED_DEFENSE_DOCUMENTS),
            jury_min_members=settings.JURY_MIN_MEMBERS,
            jury_max_members=settings.JURY_MAX_MEMBERS,
            jury_min_external_rapporteurs=settings.JURY_MIN_EXTERNAL_RAPPORTEURS,
        )

    @classmethod
    def legacy_jury_rules(cls) -> "WorkflowRules":
        """
        Variante historique de la composition du jury (min 3 membres,
        1 rapporteur, pas de quota d'externes). Conservée pour comparaison
        uniquement : la variante stricte est la règle de référence.
        """
        return cls(
            jury_min_members=3,
            jury_min_rapporteurs=1,
            jury_min_external_rapporteurs=0,
            jury_external_quota=False,
        )

    def requires_derogation(self, duration_months: int) -> bool:
        """Une dérogation est requise strictement au-delà du seuil"""
        return duration_months > self.derogation_threshold_months

    def exceeds_max_duration(self, duration_months: int) -> bool:
        return duration_months >= self.max_doctorate_months

    def is_valid_derogation_reason(self, reason: Optional[str]) -> bool:
        return bool(reason) and len(reason.strip()) >= self.derogation_reason_min_length
