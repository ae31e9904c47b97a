from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from app.models.doctoral import DefenseResult, JuryMember, Mention


class InscriptionCreate(BaseModel):
    campaign_id: str
    director_id: str
    candidate_id: Optional[str] = None  # défaut : l'utilisateur courant
    thesis_subject: Optional[str] = None

class InscriptionSubmit(BaseModel):
    derogation_reason: Optional[str] = Field(None, description="Obligatoire au-delà de 36 mois (50 caractères min.)")

class DecisionIn(BaseModel):
    approved: bool
    comment: Optional[str] = None

class SoutenanceDraft(BaseModel):
    thesis_title: Optional[str] = None
    abstract: Optional[str] = None
    speciality: Optional[str] = None
    laboratory: Optional[str] = None
    director_name: Optional[str] = None

class SoutenanceCreate(SoutenanceDraft):
    thesis_title: str
    director_id: str
    candidate_id: Optional[str] = None

class JuryProposal(BaseModel):
    members: List[JuryMember]

class AuthorizeIn(BaseModel):
    scheduled_date: datetime
    venue: str

class ReportIn(BaseModel):
    member_id: str
    favorable: bool
    comment: Optional[str] = None

class RejectIn(BaseModel):
    reason: str

class OutcomeIn(BaseModel):
    result: DefenseResult
    mention: Optional[Mention] = None
    observations: Optional[str] = None

    @field_validator("result", mode="before")
    @classmethod
    def parse_result(cls, v):
        return DefenseResult.parse(v)
