"""
Pytest configuration and fixtures for the Cactus Village API tests.

Every test gets a fresh in-memory SQLite database (StaticPool keeps the
single connection alive across sessions), and the app's get_db / get_mailer
dependencies are overridden to use it.
"""

from datetime import datetime, timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from auth import hash_password
from challenges import ChallengeService
from database import Base, get_db, init_db
from dependencies import get_mailer
from main import app
from members import MemberService
from models import Member, Challenge, History, ChallengeStatus, ProviderType
from repositories import (
    MemberRepository, ChallengeRepository, HistoryRepository, RefreshTokenRepository
)

PASSWORD = "cactus-password-1"


class FakeMailer:
    """Collects e-mails instead of talking to SMTP."""

    def __init__(self):
        self.sent = []

    def send(self, destination, subject, template_name, variables):
        self.sent.append({
            "destination": destination,
            "subject": subject,
            "template": template_name,
            "variables": variables,
        })
        return True


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def member_service(db, mailer) -> MemberService:
    return MemberService(
        members=MemberRepository(db),
        challenges=ChallengeRepository(db),
        histories=HistoryRepository(db),
        tokens=RefreshTokenRepository(db),
        mailer=mailer,
    )


@pytest.fixture
def challenge_service(db, tmp_path) -> ChallengeService:
    message_file = tmp_path / "water.txt"
    message_file.write_text("only line\n", encoding="utf-8")
    return ChallengeService(
        challenges=ChallengeRepository(db),
        histories=HistoryRepository(db),
        members=MemberRepository(db),
        message_file=str(message_file),
    )


@pytest.fixture
def client(session_factory, mailer) -> Generator[TestClient, None, None]:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


# ─────────────────────────────────────────────────────────────────────────────
# Data builders
# ─────────────────────────────────────────────────────────────────────────────

def make_member(db: Session, username: str, email: str = None, deleted: bool = False,
                provider_type: str = ProviderType.cactus.value,
                provider_id: str = None) -> Member:
    member = Member(
        email=email if email is not None else f"{username}@cactus.example.com",
        username=username,
        password=hash_password(PASSWORD) if provider_type == ProviderType.cactus.value else None,
        provider_type=provider_type,
        provider_id=provider_id,
        deleted=deleted,
    )
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def make_challenge(db: Session, member: Member, status: str = ChallengeStatus.success.value,
                   histories: int = 0, stamp: int = 0, target_date: int = 7,
                   challenge_type: str = "water", created_at: datetime = None,
                   notified: bool = False) -> Challenge:
    created_at = created_at or datetime(2024, 3, 1, 9, 0)
    challenge = Challenge(
        member_id=member.id,
        challenge_type=challenge_type,
        target_date=target_date,
        target_time=None if challenge_type == "thanks" else "08:00",
        status=status,
        stamp=stamp,
        notified=notified,
        created_at=created_at,
    )
    db.add(challenge)
    db.commit()
    db.refresh(challenge)

    for day in range(histories):
        db.add(History(
            challenge_id=challenge.id,
            contents=f"day {day + 1}",
            time=10,
            created_at=created_at + timedelta(days=day),
        ))
    db.commit()
    return challenge


@pytest.fixture
def signed_up(client) -> dict:
    """Registers a local member through the API and returns its credentials."""
    credentials = {"email": "ana@cactus.example.com", "password": PASSWORD, "username": "ana"}
    response = client.post("/api/auth/signup", json=credentials)
    assert response.status_code == 201
    return credentials


@pytest.fixture
def logged_in(client, signed_up) -> dict:
    """Logs the signed-up member in; the client keeps the token cookies."""
    response = client.post(
        "/api/auth/login",
        json={"email": signed_up["email"], "password": signed_up["password"]},
    )
    assert response.status_code == 200
    return signed_up
