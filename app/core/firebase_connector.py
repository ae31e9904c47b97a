"""
Initialisation du SDK Firebase Admin (STORAGE_BACKEND=firestore uniquement).

Credentials are looked up in this order:
- `settings.FIREBASE_CREDENTIALS_JSON`, either the service account JSON itself
  or a path to the JSON file;
- the GOOGLE_APPLICATION_CREDENTIALS environment variable (path to file).
"""
import os
import json
import logging
import firebase_admin
from firebase_admin import credentials
from app.core.config import settings


def _certificate_from_json(val: str) -> credentials.Certificate:
    try:
        cred_dict = json.loads(val)
    except ValueError as e:
        raise ValueError(f"FIREBASE_CREDENTIALS_JSON does not contain valid JSON: {e}")
    if cred_dict.get("type") != "service_account":
        raise ValueError("Invalid service account certificate: 'type' field must be 'service_account'.")
    return credentials.Certificate(cred_dict)


def _certificate_from_path(path: str, source: str) -> credentials.Certificate:
    path = os.path.expanduser(path)
    if not os.path.isfile(path):
        raise ValueError(f"{source} points to a missing file: {path}")
    return credentials.Certificate(path)


def load_credentials(raw=None) -> credentials.Certificate:
    raw = raw if raw is not None else settings.FIREBASE_CREDENTIALS_JSON
    if raw:
        raw = str(raw).strip()
        if raw.startswith("{"):
            return _certificate_from_json(raw)
        return _certificate_from_path(raw, "FIREBASE_CREDENTIALS_JSON")

    gac = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if gac:
        return _certificate_from_path(gac, "GOOGLE_APPLICATION_CREDENTIALS")

    raise ValueError(
        "Firebase credentials not provided. Set FIREBASE_CREDENTIALS_JSON (content or path) "
        "or GOOGLE_APPLICATION_CREDENTIALS (path)."
    )


def initialize_firebase():
    """Initialise Firebase Admin une seule fois ; lève une erreur explicite sinon"""
    if settings.STORAGE_BACKEND != "firestore":
        logging.info("Storage backend is %s, Firebase not initialized", settings.STORAGE_BACKEND)
        return
    if firebase_admin._apps:
        logging.debug("Firebase already initialized")
        return

    logging.info("Initializing Firebase Admin SDK...")
    try:
        firebase_admin.initialize_app(load_credentials())
    except Exception as e:
        logging.error(f"Fatal error: Failed to initialize Firebase Admin SDK: {e}")
        raise
    logging.info("Firebase Admin SDK initialized successfully.")
