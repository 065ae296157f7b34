"""
=============================================================================
AUTH.PY — Sistema de Autenticación
=============================================================================
Gestiona:
  - Hashing de contraseñas (bcrypt)
  - Token de ACCESO: JWT corto (30 min) firmado con SECRET_KEY
  - Token de REFRESCO: uuid opaco guardado en la tabla refresh_tokens
  - Cookies HttpOnly "access_token" y "refresh_token"
  - Obtener el usuario actual desde el token

Flujo:
  1. Login → se crean los dos tokens y se mandan como cookies
  2. Cada petición lleva la cookie access_token (o "Authorization: Bearer")
  3. Cuando caduca el acceso → POST /api/auth/reissue con la cookie refresh
  4. Logout → se borra el refresh token de la BD y las dos cookies
"""

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Cookie, Depends, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import (
    SECRET_KEY, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_DAYS, COOKIE_SECURE, COOKIE_DOMAIN
)
from database import get_db
from exceptions import BusinessLogicException, ExceptionCode
from models import Member, RefreshToken
from repositories import MemberRepository

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

# bcrypt solo mira los primeros 72 bytes (y bcrypt 5 rechaza los más largos)
BCRYPT_MAX_BYTES = 72


# ─────────────────────────────────────────────────────────────────────────────
# HASHING DE CONTRASEÑAS
# ─────────────────────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    """Convierte una contraseña en texto plano a un hash seguro"""
    if password_too_long(password):
        raise ValueError(f"password cannot be longer than {BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Compara una contraseña en texto plano con un hash almacenado"""
    if not plain_password or not hashed_password or password_too_long(plain_password):
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > BCRYPT_MAX_BYTES


def encode_member_id(member_id: int) -> str:
    """
    Sufijo para anonimizar un usuario borrado.

    Siempre el mismo para el mismo id (HMAC con SECRET_KEY) y lleva el id
    dentro, así que dos usuarios borrados nunca chocan.
    """
    digest = hmac.new(
        SECRET_KEY.encode("utf-8"), str(member_id).encode("utf-8"), hashlib.sha256
    ).hexdigest()[:16]
    return f"#deleted-{member_id}-{digest}"


# ─────────────────────────────────────────────────────────────────────────────
# TOKENS
# ─────────────────────────────────────────────────────────────────────────────

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(member: Member) -> str:
    """
    JWT de acceso:
      - sub: id del usuario
      - auth: rol (ROLE_USER / ROLE_ADMIN)
      - exp: caducidad
    """
    expire = utc_now() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(member.id),
        "auth": member.authority,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Datos del JWT, o None si es inválido o ha caducado"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def new_refresh_token(member_id: int) -> RefreshToken:
    """Refresh token nuevo (sin guardar todavía)"""
    return RefreshToken(
        token_id=str(uuid.uuid4()),
        member_id=member_id,
        expires_at=utc_now().replace(tzinfo=None) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    )


def is_expired(token: RefreshToken) -> bool:
    return token.expires_at <= utc_now().replace(tzinfo=None)


# ─────────────────────────────────────────────────────────────────────────────
# COOKIES
# ─────────────────────────────────────────────────────────────────────────────

def set_access_cookie(response: Response, access_token: str):
    response.set_cookie(
        ACCESS_COOKIE, access_token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True, secure=COOKIE_SECURE, samesite="lax", domain=COOKIE_DOMAIN,
    )


def set_token_cookies(response: Response, access_token: str, refresh_token: str):
    set_access_cookie(response, access_token)
    response.set_cookie(
        REFRESH_COOKIE, refresh_token,
        max_age=REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        httponly=True, secure=COOKIE_SECURE, samesite="lax", domain=COOKIE_DOMAIN,
    )


def delete_token_cookies(response: Response):
    response.delete_cookie(ACCESS_COOKIE, domain=COOKIE_DOMAIN)
    response.delete_cookie(REFRESH_COOKIE, domain=COOKIE_DOMAIN)


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCIA: OBTENER USUARIO ACTUAL
# ─────────────────────────────────────────────────────────────────────────────

security = HTTPBearer(auto_error=False)
# auto_error=False → si no hay header, probamos con la cookie


def get_current_member(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    access_token: Optional[str] = Cookie(default=None),
    db: Session = Depends(get_db),
) -> Member:
    """
    Usuario autenticado de la petición.

      @app.get("/api/members/me")
      def me(member: Member = Depends(get_current_member)):
          ...

    Sin token / token inválido → NO_AUTHENTICATION (401)
    Usuario inexistente o borrado → MEMBER_NOT_FOUND (404)
    """
    token = credentials.credentials if credentials else access_token
    payload = decode_token(token) if token else None
    if payload is None or payload.get("sub") is None:
        raise BusinessLogicException(ExceptionCode.NO_AUTHENTICATION)

    member = MemberRepository(db).find_by_id(int(payload["sub"]))
    if member is None or member.deleted:
        raise BusinessLogicException(ExceptionCode.MEMBER_NOT_FOUND)
    return member
