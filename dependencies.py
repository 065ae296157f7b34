"""
Cableado de dependencias para FastAPI.

Cada petición recibe servicios nuevos construidos sobre SU sesión de BD:

    @app.get("/api/challenges/ranking")
    def ranking(service: ChallengeService = Depends(get_challenge_service)):
        ...

En los tests se sustituyen con app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from challenges import ChallengeService
from database import get_db
from mailer import EmailSender
from members import MemberService
from repositories import (
    MemberRepository, ChallengeRepository, HistoryRepository, RefreshTokenRepository
)

_mailer: EmailSender | None = None


def get_mailer() -> EmailSender:
    """Un único EmailSender para toda la app"""
    global _mailer
    if _mailer is None:
        _mailer = EmailSender()
    return _mailer


def get_member_service(db: Session = Depends(get_db),
                       mailer: EmailSender = Depends(get_mailer)) -> MemberService:
    return MemberService(
        members=MemberRepository(db),
        challenges=ChallengeRepository(db),
        histories=HistoryRepository(db),
        tokens=RefreshTokenRepository(db),
        mailer=mailer,
    )


def get_challenge_service(db: Session = Depends(get_db)) -> ChallengeService:
    return ChallengeService(
        challenges=ChallengeRepository(db),
        histories=HistoryRepository(db),
        members=MemberRepository(db),
    )
