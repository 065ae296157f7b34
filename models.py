"""
=============================================================================
MODELS.PY — Todos los Modelos (Tablas) de la Base de Datos
=============================================================================
Cada clase aquí = una tabla en la base de datos.
Cada atributo de la clase = una columna en esa tabla.

RELACIONES (solo claves foráneas, sin relationship()):
  members ──< challenges ──< histories
  members ──< refresh_tokens

  Para ir de un miembro a sus retos se pasa SIEMPRE por los repositorios
  (repositories.py). Así no reconstruimos un grafo de objetos cíclico.

Ciclo de vida de un reto:
  in_progress ──→ success / fail   (lo decide un proceso externo)
  in_progress ──→ deleted          (lo borra el propio usuario)
  Un reto terminado ya no cambia de estado (solo el flag "notified").
"""

import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Index, text
)

import config
from database import Base


# =============================================================================
# ===================== ENUMS (Tipos predefinidos) ============================
# =============================================================================

class ProviderType(str, enum.Enum):
    """Cómo se registró el usuario"""
    cactus = "cactus"    # Email + contraseña propios
    kakao = "kakao"      # OAuth Kakao
    google = "google"    # OAuth Google


class Authority(str, enum.Enum):
    """Rol del usuario"""
    user = "ROLE_USER"
    admin = "ROLE_ADMIN"


class ChallengeType(str, enum.Enum):
    """Tipo de reto"""
    water = "water"          # 💧 Beber agua a una hora fija
    meditate = "meditate"    # 🧘 Meditar a una hora fija
    thanks = "thanks"        # 🙏 Diario de gratitud (sin hora objetivo)


# Único tipo que no necesita target_time
TIME_EXEMPT_TYPE = ChallengeType.thanks


class ChallengeStatus(str, enum.Enum):
    """Estado de un reto"""
    in_progress = "in_progress"
    success = "success"
    fail = "fail"
    deleted = "deleted"


DONE_STATUSES = (ChallengeStatus.success.value, ChallengeStatus.fail.value)


# =============================================================================
# ===================== TABLA 1: MEMBERS ======================================
# =============================================================================

class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Identidad ──
    email = Column(String(320), unique=True, nullable=True, index=True)
    # nullable=True → algunos usuarios de Kakao no comparten su email
    # 320 → cabe un email de 254 + el sufijo de anonimización
    username = Column(String(100), unique=True, nullable=False)
    password = Column(String(255), nullable=True)
    # password → hash bcrypt; NULL para usuarios OAuth

    # ── Proveedor ──
    provider_type = Column(String(20), nullable=False, default=ProviderType.cactus.value)
    provider_id = Column(String(255), unique=True, nullable=True)
    authority = Column(String(20), nullable=False, default=Authority.user.value)

    # ── Estado de la cuenta ──
    deleted = Column(Boolean, nullable=False, default=False)
    # deleted=True → baja lógica; email/username quedan anonimizados

    created_at = Column(DateTime, default=config.now)


# =============================================================================
# ===================== TABLA 2: CHALLENGES ===================================
# =============================================================================

class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    # uuid → identificador público del reto en el historial ("index")
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)

    challenge_type = Column(String(20), nullable=False)
    target_date = Column(Integer, nullable=False)
    # target_date → duración objetivo en días (ej: 7, 14, 30)
    target_time = Column(String(10), nullable=True)
    # target_time → "HH:MM"; obligatorio salvo en retos "thanks"

    status = Column(String(20), nullable=False, default=ChallengeStatus.in_progress.value)
    notified = Column(Boolean, nullable=False, default=False)
    # notified → el usuario ya vio el aviso de fin de reto
    stamp = Column(Integer, nullable=False, default=0)
    # stamp → sello que se gana al completar ciertos retos

    created_at = Column(DateTime, default=config.now)

    # Máximo UN reto en curso por usuario, garantizado también por la BD
    # (dos peticiones simultáneas no pueden colarse las dos).
    __table_args__ = (
        Index(
            "uq_challenge_active_member",
            "member_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )


# =============================================================================
# ===================== TABLA 3: HISTORIES ====================================
# =============================================================================
# Un registro por día de participación en el reto

class History(Base):
    __tablename__ = "histories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=False, index=True)

    contents = Column(Text, nullable=True)
    time = Column(Integer, nullable=True)
    # time → minutos dedicados ese día (opcional)

    created_at = Column(DateTime, default=config.now)


# =============================================================================
# ===================== TABLA 4: REFRESH_TOKENS ===============================
# =============================================================================

class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    token_id = Column(String(36), primary_key=True)
    member_id = Column(Integer, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
