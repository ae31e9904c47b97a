from fastapi import APIRouter

from app.api.v1.endpoints import (
    candidates,
    derogations,
    inscriptions,
    soutenances,
)

api_router = APIRouter()

api_router.include_router(inscriptions.router, prefix="/inscriptions", tags=["Inscriptions"])
api_router.include_router(derogations.router, prefix="/derogations", tags=["Derogations"])
api_router.include_router(soutenances.router, prefix="/soutenances", tags=["Soutenances & Jury"])
api_router.include_router(candidates.router, prefix="/candidates", tags=["Candidates"])
