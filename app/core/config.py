"""
Configuration centrale de l'application
"""
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator
import os


class Settings(BaseSettings):
    """Configuration de l'application"""

    # Application
    APP_NAME: str = "Doctoral Studies Tracking"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    API_V1_STR: str = "/api/v1"

    # Security
    SECRET_KEY: str = "votre_cle_secrete_a_changer_en_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS (List[str] pour accepter '*' et URLs réelles)
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str] | str:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Persistence: "memory" (dev/tests) or "firestore"
    STORAGE_BACKEND: str = "memory"
    FIREBASE_CREDENTIALS_JSON: Optional[str] = None

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def check_storage_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("memory", "firestore"):
            raise ValueError(f"Unsupported STORAGE_BACKEND: {v}")
        return v

    # Workflow doctoral : inscription / dérogation
    DEROGATION_THRESHOLD_MONTHS: int = 36
    MAX_DOCTORATE_MONTHS: int = 72
    DEROGATION_REASON_MIN_LENGTH: int = 50

    # Prérequis de soutenance
    MIN_PUBLICATIONS: int = 2
    MIN_TRAINING_HOURS: float = 200.0
    REQUIRED_DEFENSE_DOCUMENTS: List[str] = [
        "MANUSCRIT_THESE",
        "RESUME_THESE",
        "PUBLICATIONS",
        "ATTESTATION_FORMATION",
    ]

    @field_validator("REQUIRED_DEFENSE_DOCUMENTS", mode="before")
    @classmethod
    def assemble_required_documents(cls, v: str | List[str]) -> List[str] | str:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Composition du jury
    JURY_MIN_MEMBERS: int = 4
    JURY_MAX_MEMBERS: int = 8
    JURY_MIN_EXTERNAL_RAPPORTEURS: int = 2

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), ".env")
        case_sensitive = True
        extra = "ignore"  # Ignore les variables non déclarées dans le .env


# Instance unique pour l'application
settings = Settings()
