"""
=============================================================================
REPOSITORIES.PY — Acceso a Datos
=============================================================================
Un repositorio por tabla. Los servicios NUNCA hacen db.query() directamente:
piden los datos a estos objetos, que reciben la sesión en el constructor.

    members = MemberRepository(db)
    member = members.find_by_email("ana@example.com")

save() hace commit: cada operación de negocio termina en UNA transacción.
"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import (
    Member, Challenge, History, RefreshToken, ChallengeStatus
)


class MemberRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, member_id: int) -> Optional[Member]:
        return self.db.get(Member, member_id)

    def find_by_email(self, email: str) -> Optional[Member]:
        return self.db.query(Member).filter(Member.email == email).first()

    def find_by_username(self, username: str) -> Optional[Member]:
        return self.db.query(Member).filter(Member.username == username).first()

    def find_all_by_deleted(self, deleted: bool) -> list[Member]:
        """Usuarios con deleted=<deleted>, ordenados por id ascendente"""
        return (
            self.db.query(Member)
            .filter(Member.deleted == deleted)
            .order_by(Member.id.asc())
            .all()
        )

    def save(self, member: Member) -> Member:
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        return member


class ChallengeRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_all_by_member_id(self, member_id: int) -> list[Challenge]:
        return (
            self.db.query(Challenge)
            .filter(Challenge.member_id == member_id)
            .order_by(Challenge.id.asc())
            .all()
        )

    def find_active_by_member_id(self, member_id: int) -> Optional[Challenge]:
        return (
            self.db.query(Challenge)
            .filter(
                Challenge.member_id == member_id,
                Challenge.status == ChallengeStatus.in_progress.value,
            )
            .first()
        )

    def find_recent_by_member_id(self, member_id: int) -> Optional[Challenge]:
        """El último reto creado (id más alto), esté como esté"""
        return (
            self.db.query(Challenge)
            .filter(Challenge.member_id == member_id)
            .order_by(Challenge.id.desc())
            .first()
        )

    def count_successes_by_member(self) -> list[tuple[Member, int]]:
        """
        Retos superados por usuario, solo usuarios no borrados.

        Devuelve [(Member, n_success), ...] sin ordenar: el orden del
        ranking lo decide gamification.sort_candidates().
        """
        rows = (
            self.db.query(Member, func.count(Challenge.id))
            .join(Challenge, Challenge.member_id == Member.id)
            .filter(
                Challenge.status == ChallengeStatus.success.value,
                Member.deleted.is_(False),
            )
            .group_by(Member.id)
            .all()
        )
        return [(member, count) for member, count in rows]

    def save(self, challenge: Challenge) -> Challenge:
        self.db.add(challenge)
        self.db.commit()
        self.db.refresh(challenge)
        return challenge

    def rollback(self):
        self.db.rollback()


class HistoryRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_all_by_challenge_id(self, challenge_id: int) -> list[History]:
        """Registros de un reto en el orden en que se crearon"""
        return (
            self.db.query(History)
            .filter(History.challenge_id == challenge_id)
            .order_by(History.id.asc())
            .all()
        )

    def find_all_by_challenge_ids(self, challenge_ids: list[int]) -> list[History]:
        if not challenge_ids:
            return []
        return (
            self.db.query(History)
            .filter(History.challenge_id.in_(challenge_ids))
            .order_by(History.challenge_id.asc(), History.id.asc())
            .all()
        )

    def count_by_challenge_id(self, challenge_id: int) -> int:
        return self.db.query(History).filter(History.challenge_id == challenge_id).count()

    def save(self, history: History) -> History:
        self.db.add(history)
        self.db.commit()
        self.db.refresh(history)
        return history


class RefreshTokenRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, token_id: str) -> Optional[RefreshToken]:
        return self.db.get(RefreshToken, token_id)

    def save(self, token: RefreshToken) -> RefreshToken:
        self.db.add(token)
        self.db.commit()
        return token

    def delete_by_id(self, token_id: str):
        self.db.query(RefreshToken).filter(RefreshToken.token_id == token_id).delete()
        self.db.commit()

    def delete_by_member_id(self, member_id: int):
        """Borra todas las sesiones abiertas del usuario"""
        self.db.query(RefreshToken).filter(RefreshToken.member_id == member_id).delete()
        self.db.commit()
