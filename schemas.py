"""
=============================================================================
SCHEMAS.PY — Esquemas de Validación (Pydantic)
=============================================================================
  - Models (SQLAlchemy) → definen las TABLAS de la BD
  - Schemas (Pydantic) → definen qué DATOS acepta/devuelve la API

La app web espera los campos en camelCase ("targetDate", "myRanking"...),
así que todos los esquemas usan alias camelCase. En Python seguimos
escribiendo snake_case.

Convención de nombres:
  XxxRequest → lo que envía el cliente (POST/PATCH)
  XxxInfo / XxxResponse → lo que devuelve la API (valores inmutables)

Las respuestas NO se construyen a mano en los endpoints: cada una tiene
su función fábrica aquí abajo (member_info_without_challenge, make_ranker...).
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from auth import BCRYPT_MAX_BYTES, password_too_long
from models import Member, Challenge, History

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseValue(BaseModel):
    """Base de las respuestas: camelCase e inmutables"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SingleResponse(BaseModel, Generic[T]):
    """Envoltorio de todas las respuestas: {"data": ...}"""
    data: T


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

def check_password_bytes(password: Optional[str]) -> Optional[str]:
    """bcrypt no admite más de 72 bytes (ojo: un carácter coreano son 3)"""
    if password is not None and password_too_long(password):
        raise ValueError(f"La contraseña no puede ocupar más de {BCRYPT_MAX_BYTES} bytes")
    return password


class SignupRequest(CamelModel):
    """Datos para registrar un usuario nuevo"""
    email: EmailStr
    password: str = Field(min_length=8, max_length=64, description="Mínimo 8 caracteres")
    username: str = Field(min_length=1, max_length=20)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_bytes(v)


class LoginRequest(CamelModel):
    """Datos para iniciar sesión"""
    email: EmailStr
    password: str


class EditRequest(CamelModel):
    """
    Cambio de perfil.
    pre_password es obligatorio para usuarios con email+contraseña;
    los usuarios de Kakao/Google solo pueden cambiar el username.
    """
    username: str = Field(min_length=1, max_length=20)
    pre_password: Optional[str] = None
    new_password: Optional[str] = Field(default=None, min_length=8, max_length=64)

    @field_validator("new_password")
    @classmethod
    def new_password_fits_bcrypt(cls, v: Optional[str]) -> Optional[str]:
        return check_password_bytes(v)


class RecoveryRequest(CamelModel):
    """Recuperar contraseña: email + username deben coincidir"""
    email: EmailStr
    username: str


class MemberInfo(ResponseValue):
    """Resumen de "mi info": perfil + estado del reto actual"""
    email: Optional[str] = None
    username: str
    provider_type: str
    challenge_type: str
    status: str
    progress: Optional[int] = None
    now: Optional[int] = None
    # now → día actual del reto (1 = el día en que se creó)
    target_date: Optional[int] = None


class EditResponse(ResponseValue):
    username: str


def member_info_without_challenge(member: Member) -> MemberInfo:
    """Usuario sin reto visible: tipo y estado "none" """
    return MemberInfo(
        email=member.email,
        username=member.username,
        provider_type=member.provider_type,
        challenge_type="none",
        status="none",
    )


def member_info_with_challenge(member: Member, challenge: Challenge,
                               progress: int, elapsed: int) -> MemberInfo:
    return MemberInfo(
        email=member.email,
        username=member.username,
        provider_type=member.provider_type,
        challenge_type=challenge.challenge_type,
        status=challenge.status,
        progress=progress,
        now=elapsed,
        target_date=challenge.target_date,
    )


# =============================================================================
# ===================== CHALLENGES ============================================
# =============================================================================

class EnrollRequest(CamelModel):
    target_date: int = Field(ge=1, le=365, description="Duración del reto en días")
    target_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")


class HistoryRequest(CamelModel):
    """Registro del día"""
    contents: Optional[str] = Field(default=None, max_length=1000)
    time: Optional[int] = Field(default=None, ge=0)


class EnrollResponse(ResponseValue):
    challenge_type: str


class HistoryInfo(ResponseValue):
    day: int
    created_at: str
    contents: Optional[str] = None
    time: Optional[int] = None


class DoneChallengeInfo(ResponseValue):
    index: str
    success: bool
    type: str
    target_date: int
    target_time: Optional[str] = None
    histories: list[HistoryInfo]


class AllInfo(ResponseValue):
    """Historial de retos terminados"""
    total_date: int
    total_chall: int
    challenges: Optional[list[DoneChallengeInfo]] = None


class ActiveInfo(ResponseValue):
    """Reto en curso (todo None si no hay ninguno)"""
    challenge_type: Optional[str] = None
    target_date: Optional[int] = None
    progress: Optional[int] = None
    histories: Optional[list[HistoryInfo]] = None


class WateringResponse(ResponseValue):
    message: str


class Ranker(ResponseValue):
    rank: int
    username: str
    stamps: int


class RankingResponse(ResponseValue):
    rankers: list[Ranker]
    my_ranking: Optional[Ranker] = None
    my_stamps: list[int]


def make_history_info(day: int, history: History) -> HistoryInfo:
    return HistoryInfo(
        day=day,
        created_at=history.created_at.date().isoformat(),
        contents=history.contents,
        time=history.time,
    )


def make_done_challenge_info(challenge: Challenge, success: bool,
                             histories: list[HistoryInfo]) -> DoneChallengeInfo:
    return DoneChallengeInfo(
        index=challenge.uuid,
        success=success,
        type=challenge.challenge_type,
        target_date=challenge.target_date,
        target_time=challenge.target_time,
        histories=histories,
    )


def make_active_info(challenge: Challenge, progress: int,
                     histories: list[HistoryInfo]) -> ActiveInfo:
    return ActiveInfo(
        challenge_type=challenge.challenge_type,
        target_date=challenge.target_date,
        progress=progress,
        histories=histories,
    )


def make_ranker(rank: int, username: str, stamps: int) -> Ranker:
    return Ranker(rank=rank, username=username, stamps=stamps)
