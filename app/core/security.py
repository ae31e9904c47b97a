"""
Sécurité : authentification JWT et contrôle des rôles
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
from jose import JWTError, jwt as jose_jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from app.core.config import settings
from app.workflow_engine.transitions import Actor


# OAuth2
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")


class Roles:
    DOCTORANT = "doctorant"
    DIRECTEUR = "directeur"
    ADMIN = "admin"
    PED = "ped"  # pôle études doctorales

    ALL = (DOCTORANT, DIRECTEUR, ADMIN, PED)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Créer un token JWT (claims attendus : sub, role)"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jose_jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def _claims_from_firebase(token: str) -> Optional[dict]:
    """Fallback : le client a envoyé un id_token Firebase au lieu de notre JWT"""
    if settings.STORAGE_BACKEND != "firestore":
        return None
    from firebase_admin import auth

    try:
        claims = auth.verify_id_token(token)
    except Exception as e:
        logging.debug(f"verify_id_token fallback failed: {e}")
        return None
    return {
        "sub": claims.get("sub") or claims.get("user_id") or claims.get("uid"),
        "role": claims.get("role"),
    }


async def get_current_user(
    token: str = Depends(oauth2_scheme)
) -> Actor:
    """Obtenir l'acteur courant (id + rôle) depuis le token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jose_jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        if settings.DEBUG:
            logging.debug(f"JWT decode error: {e}; ALGORITHM={settings.ALGORITHM}")
        payload = _claims_from_firebase(token)
        if payload is None:
            raise credentials_exception

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in Roles.ALL:
        raise credentials_exception
    return Actor(id=str(user_id), role=role)


def require_role(*roles: str):
    """Dépendance : l'acteur doit avoir l'un des rôles (admin toujours autorisé)"""
    async def role_checker(current_user: Actor = Depends(get_current_user)) -> Actor:
        if current_user.role != Roles.ADMIN and current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions"
            )
        return current_user
    return role_checker
