"""
Application FastAPI principale
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import logging
import time

from app.core.config import settings
from app.core.firebase_connector import initialize_firebase
from app.api.v1.api import api_router
from app.workflow_engine.errors import (
    CampaignClosed,
    DerogationPending,
    DocumentsIncomplete,
    DoctorateDurationExceeded,
    DuplicateInscription,
    EntityNotFound,
    InvalidJuryComposition,
    InvalidTransition,
    MissingComment,
    PrerequisitesNotMet,
    ReportsIncomplete,
    StaleState,
    WorkflowError,
)

# Erreur métier -> code HTTP
ERROR_STATUS = {
    EntityNotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_409_CONFLICT,
    StaleState: status.HTTP_409_CONFLICT,
    DuplicateInscription: status.HTTP_409_CONFLICT,
    DerogationPending: status.HTTP_409_CONFLICT,
    CampaignClosed: status.HTTP_409_CONFLICT,
    ReportsIncomplete: status.HTTP_409_CONFLICT,
    MissingComment: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PrerequisitesNotMet: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DocumentsIncomplete: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidJuryComposition: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DoctorateDurationExceeded: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestion du cycle de vie de l'application"""
    # Startup
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    print("🚀 Démarrage de l'application...")
    print(f"📦 {settings.APP_NAME} v{settings.APP_VERSION}")
    print(f"🔧 Debug mode: {settings.DEBUG}, storage: {settings.STORAGE_BACKEND}")

    # Firestore uniquement si STORAGE_BACKEND=firestore
    initialize_firebase()

    yield

    # Shutdown
    print("👋 Arrêt de l'application...")

# Créer l'application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Suivi des études doctorales : inscriptions, dérogations, soutenances et jury",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

if settings.DEBUG:
    origins_to_allow = [
        "http://localhost:3000",
        "http://localhost:4200",
        "http://localhost:5173",
        "http://localhost:8000",
    ]
else:
    origins_to_allow = [o.rstrip("/") for o in settings.BACKEND_CORS_ORIGINS if o and o != "*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins_to_allow,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(), "body": exc.body},
    )

@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/health", tags=["Monitoring"])
async def health_check():
    """Vérifie que le service est en ligne."""
    return {"status": "healthy"}

@app.get("/")
async def root():
    """Route racine"""
    return {
        "message": f"Bienvenue sur {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/api/docs" if settings.DEBUG else "disabled",
        "api": settings.API_V1_STR
    }

# Pour lancer le serveur en mode développement :
# uvicorn app.main:app --reload
