"""
=============================================================================
MEMBERS.PY — Directorio de Usuarios
=============================================================================
Gestiona:
  - Registro, login, logout y renovación del token de acceso
  - "Mi info": perfil + estado del reto más reciente
  - Editar perfil, recuperar contraseña, darse de baja

La baja es LÓGICA: el usuario queda con deleted=True y su email, username
(y provider_id si es de Kakao/Google) llevan un sufijo derivado de su id.
Así el email queda libre para registrarse de nuevo y el ranking lo ignora.
"""

import logging
import uuid
from typing import Callable, NamedTuple, Optional

import config
from auth import (
    hash_password, verify_password as check_password, create_access_token,
    new_refresh_token, is_expired, encode_member_id
)
from exceptions import BusinessLogicException, ExceptionCode
from gamification import progress_percent, elapsed_days
from mailer import EmailSender
from models import Member, Challenge, ProviderType, Authority, ChallengeStatus
from repositories import (
    MemberRepository, ChallengeRepository, HistoryRepository, RefreshTokenRepository
)
from schemas import (
    MemberInfo, EditResponse, member_info_without_challenge, member_info_with_challenge
)

logger = logging.getLogger("cactus.members")

RECOVERY_SUBJECT = "선인장 키우기의 임시 비밀번호입니다"
TEMP_PASSWORD_LENGTH = 10


class LoginResult(NamedTuple):
    member_info: MemberInfo
    access_token: str
    refresh_token: str


def temp_password() -> str:
    """Contraseña temporal: 10 caracteres alfanuméricos sacados de un uuid"""
    return uuid.uuid4().hex[:TEMP_PASSWORD_LENGTH]


class MemberService:

    def __init__(self, members: MemberRepository, challenges: ChallengeRepository,
                 histories: HistoryRepository, tokens: RefreshTokenRepository,
                 mailer: EmailSender, today: Callable = config.today):
        self.members = members
        self.challenges = challenges
        self.histories = histories
        self.tokens = tokens
        self.mailer = mailer
        self.today = today

    # ─────────────────────────────────────────────────────────────────────
    # SESIÓN
    # ─────────────────────────────────────────────────────────────────────

    def signup(self, email: str, password: str, username: str) -> Member:
        if self.members.find_by_email(email) or self.members.find_by_username(username):
            raise BusinessLogicException(ExceptionCode.MEMBER_EXISTS)

        member = self.members.save(Member(
            email=email,
            username=username,
            password=hash_password(password),
            provider_type=ProviderType.cactus.value,
            authority=Authority.user.value,
        ))
        logger.info(f"👤 Nuevo usuario registrado: {member.username} ({member.email})")
        return member

    def login(self, email: str, password: str) -> LoginResult:
        """
        Flujo:
          1. Verificar email + contraseña
          2. Borrar los refresh tokens anteriores (una sesión por usuario)
          3. Crear token de acceso + refresh token
          4. Devolver "mi info" para pintar la pantalla inicial
        """
        member = self.verify_password(email, password)

        if member.authority == Authority.user.value:
            self.tokens.delete_by_member_id(member.id)

        refresh = self.tokens.save(new_refresh_token(member.id))
        logger.info(f"🔑 Login: {member.username}")
        return LoginResult(
            member_info=self.build_member_summary(member),
            access_token=create_access_token(member),
            refresh_token=refresh.token_id,
        )

    def logout(self, refresh_token_id: Optional[str]):
        token = self._get_refresh_token(refresh_token_id)
        member_id = token.member_id
        self.tokens.delete_by_id(token.token_id)
        logger.info(f"👋 Logout: member_id={member_id}")

    def reissue(self, refresh_token_id: Optional[str]) -> str:
        """Nuevo token de acceso a partir de un refresh token válido"""
        token = self._get_refresh_token(refresh_token_id)
        if is_expired(token):
            self.tokens.delete_by_id(token.token_id)
            raise BusinessLogicException(ExceptionCode.NO_AUTHENTICATION)

        member = self.find_member(token.member_id)
        return create_access_token(member)

    def _get_refresh_token(self, refresh_token_id: Optional[str]):
        token = self.tokens.find_by_id(refresh_token_id) if refresh_token_id else None
        if token is None:
            raise BusinessLogicException(ExceptionCode.NO_AUTHENTICATION)
        return token

    # ─────────────────────────────────────────────────────────────────────
    # CONSULTAS
    # ─────────────────────────────────────────────────────────────────────

    def find_member(self, member_id: int) -> Member:
        member = self.members.find_by_id(member_id)
        if member is None:
            raise BusinessLogicException(ExceptionCode.MEMBER_NOT_FOUND)
        return member

    def verify_password(self, email: str, raw_password: str) -> Member:
        """
        Usuario con ese email y contraseña.
        Cualquier fallo (email desconocido, contraseña mala, cuenta borrada)
        da el MISMO error, para no revelar qué emails existen.
        """
        member = self.members.find_by_email(email)
        if member is None or member.deleted or not check_password(raw_password, member.password):
            raise BusinessLogicException(ExceptionCode.MEMBER_NOT_MATCH)
        return member

    def get_recent_challenge(self, member: Member) -> Optional[Challenge]:
        return self.challenges.find_recent_by_member_id(member.id)

    def build_member_summary(self, member: Member) -> MemberInfo:
        """
        "Mi info".

        Solo se mira el reto más reciente. Si no hay, si está borrado o si
        el usuario ya vio el aviso de fin (notified) → tipo y estado "none".
        """
        challenge = self.get_recent_challenge(member)
        if (challenge is None
                or challenge.status == ChallengeStatus.deleted.value
                or challenge.notified):
            return member_info_without_challenge(member)

        history_count = self.histories.count_by_challenge_id(challenge.id)
        return member_info_with_challenge(
            member,
            challenge,
            progress=progress_percent(history_count, challenge.target_date),
            elapsed=elapsed_days(challenge.created_at, self.today()),
        )

    # ─────────────────────────────────────────────────────────────────────
    # CAMBIOS DE CUENTA
    # ─────────────────────────────────────────────────────────────────────

    def edit_member(self, member: Member, username: str,
                    pre_password: Optional[str] = None,
                    new_password: Optional[str] = None) -> EditResponse:
        """
        Usuarios con contraseña propia: deben confirmar la actual y pueden
        cambiar username y contraseña.
        Usuarios Kakao/Google: solo username.
        """
        if member.provider_type == ProviderType.cactus.value:
            self.verify_password(member.email, pre_password)

        owner = self.members.find_by_username(username)
        if owner is not None and owner.id != member.id:
            raise BusinessLogicException(ExceptionCode.MEMBER_EXISTS)

        member.username = username
        if member.provider_type == ProviderType.cactus.value and new_password is not None:
            member.password = hash_password(new_password)

        member = self.members.save(member)
        return EditResponse(username=member.username)

    def recover_password(self, email: str, username: str):
        """
        Envía una contraseña temporal por email.
        Si el email no existe o el username no coincide → MEMBER_NOT_FOUND
        (en ambos casos, para no revelar si el email está registrado).
        """
        member = self.members.find_by_email(email)
        if member is None or member.username != username:
            raise BusinessLogicException(ExceptionCode.MEMBER_NOT_FOUND)

        password = temp_password()
        self.mailer.send(email, RECOVERY_SUBJECT, "recovery",
                         {"username": username, "tempPassword": password})

        member.password = hash_password(password)
        self.members.save(member)
        logger.info(f"📧 Contraseña temporal enviada a {member.username}")

    def delete_member(self, member: Member) -> Member:
        """
        Baja lógica + anonimización.

        Kakao/Google → email (si tiene), username y provider_id con sufijo
        Email propio  → email y username con sufijo, provider_id a NULL
        """
        dummy = encode_member_id(member.id)

        if member.email is not None:
            member.email = member.email + dummy
        member.username = member.username + dummy
        if member.provider_type in (ProviderType.kakao.value, ProviderType.google.value):
            member.provider_id = (member.provider_id or "") + dummy
        else:
            member.provider_id = None
        member.deleted = True

        self.tokens.delete_by_member_id(member.id)
        member = self.members.save(member)
        logger.info(f"🗑️ Cuenta dada de baja: member_id={member.id}")
        return member
