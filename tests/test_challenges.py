from datetime import datetime

import pytest

from challenges import DEFAULT_MESSAGE
from conftest import make_member, make_challenge
from exceptions import BusinessLogicException, ExceptionCode
from models import ChallengeType, ChallengeStatus, Challenge


def assert_code(excinfo, code):
    assert excinfo.value.code is code


@pytest.mark.parametrize("challenge_type", list(ChallengeType))
def test_enroll_twice_is_always_rejected(db, challenge_service, challenge_type):
    ana = make_member(db, "ana")
    challenge_service.enroll(ana, ChallengeType.water, 7, "08:00")

    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.enroll(ana, challenge_type, 14, "09:00")
    assert_code(excinfo, ExceptionCode.ENROLL_CHALLENGE_CANNOT_BE_DUPLICATED)


@pytest.mark.parametrize("challenge_type", [ChallengeType.water, ChallengeType.meditate])
def test_enroll_timed_type_requires_target_time(db, challenge_service, challenge_type):
    ana = make_member(db, "ana")
    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.enroll(ana, challenge_type, 7, None)
    assert_code(excinfo, ExceptionCode.CHALLENGE_TARGET_TIME_NOT_NULL)


def test_enroll_thanks_without_target_time(db, challenge_service):
    ana = make_member(db, "ana")
    response = challenge_service.enroll(ana, ChallengeType.thanks, 7, None)

    assert response.challenge_type == "thanks"
    active = challenge_service.challenges.find_active_by_member_id(ana.id)
    assert active.status == ChallengeStatus.in_progress.value
    assert active.target_time is None


def test_enroll_after_finished_challenge(db, challenge_service):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.fail.value)
    challenge_service.enroll(ana, ChallengeType.meditate, 30, "21:30")
    assert challenge_service.challenges.find_active_by_member_id(ana.id) is not None


def test_active_challenge_unique_in_database(db, challenge_service, monkeypatch):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.in_progress.value)
    monkeypatch.setattr(challenge_service.challenges, "find_active_by_member_id", lambda _: None)

    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.enroll(ana, ChallengeType.water, 7, "08:00")
    assert_code(excinfo, ExceptionCode.ENROLL_CHALLENGE_CANNOT_BE_DUPLICATED)
    assert db.query(Challenge).count() == 1


def test_delete_marks_active_challenge_deleted(db, challenge_service):
    ana = make_member(db, "ana")
    challenge = make_challenge(db, ana, status=ChallengeStatus.in_progress.value)

    challenge_service.delete(ana)

    db.refresh(challenge)
    assert challenge.status == ChallengeStatus.deleted.value


def test_delete_without_active_challenge(db, challenge_service):
    ana = make_member(db, "ana")
    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.delete(ana)
    assert_code(excinfo, ExceptionCode.ACTIVE_CHALLENGE_NOT_FOUND)


def test_post_history_once_per_day(db, challenge_service):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.in_progress.value, histories=2,
                   created_at=datetime(2024, 5, 1, 8, 0))
    challenge_service.now = lambda: datetime(2024, 5, 3, 20, 0)

    info = challenge_service.post_history(ana, "drank water", 5)
    assert (info.day, info.created_at, info.contents) == (3, "2024-05-03", "drank water")

    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.post_history(ana, "again", None)
    assert_code(excinfo, ExceptionCode.HISTORY_ALREADY_POSTED)


def test_done_records_empty(db, challenge_service):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.in_progress.value, histories=3)

    records = challenge_service.get_records(ana)
    assert (records.total_date, records.total_chall, records.challenges) == (0, 0, None)


def test_done_records_totals(db, challenge_service):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.fail.value, histories=1,
                   created_at=datetime(2024, 1, 1, 9, 0))
    make_challenge(db, ana, status=ChallengeStatus.fail.value, histories=1,
                   created_at=datetime(2024, 1, 2, 9, 0))
    make_challenge(db, ana, status=ChallengeStatus.success.value, histories=5,
                   created_at=datetime(2024, 1, 3, 9, 0))
    make_challenge(db, ana, status=ChallengeStatus.deleted.value, histories=4)

    records = challenge_service.get_records(ana)

    assert records.total_date == 7
    assert records.total_chall == 3
    assert [c.success for c in records.challenges] == [False, False, True]
    assert [h.day for h in records.challenges[2].histories] == [1, 2, 3, 4, 5]
    assert records.challenges[2].histories[0].created_at == "2024-01-03"


def test_active_record(db, challenge_service):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.in_progress.value, histories=10,
                   target_date=30, challenge_type="thanks")

    record = challenge_service.get_records(ana, active="true")

    assert record.challenge_type == "thanks"
    assert record.target_date == 30
    assert record.progress == 33
    assert len(record.histories) == 10


def test_active_record_without_challenge_is_empty(db, challenge_service):
    ana = make_member(db, "ana")
    record = challenge_service.get_records(ana, active="true")
    assert record.challenge_type is None and record.histories is None


def test_message_requires_active_challenge(db, challenge_service):
    ana = make_member(db, "ana")
    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.get_message(ana)
    assert_code(excinfo, ExceptionCode.ACTIVE_CHALLENGE_NOT_FOUND)


def test_message_picks_a_line(db, challenge_service):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.in_progress.value)
    assert challenge_service.get_message(ana).message == "only line"


@pytest.mark.parametrize("content", [None, ""])
def test_message_falls_back_when_file_unusable(db, challenge_service, tmp_path, content):
    ana = make_member(db, "ana")
    make_challenge(db, ana, status=ChallengeStatus.in_progress.value)
    path = tmp_path / "messages.txt"
    if content is not None:
        path.write_text(content, encoding="utf-8")
    challenge_service.message_file = str(path)

    assert challenge_service.get_message(ana).message == DEFAULT_MESSAGE


def test_ranking_top_three_without_padding(db, challenge_service):
    counts = {"m1": 1, "m2": 5, "m3": 3, "m4": 4, "m5": 2}
    members = {}
    for username, count in counts.items():
        members[username] = make_member(db, username)
        for _ in range(count):
            make_challenge(db, members[username], stamp=1)

    ranking = challenge_service.get_ranking(members["m5"])

    assert [(r.rank, r.username, r.stamps) for r in ranking.rankers] == [
        (1, "m2", 5), (2, "m4", 4), (3, "m3", 3),
    ]
    assert (ranking.my_ranking.rank, ranking.my_ranking.stamps) == (4, 2)
    assert ranking.my_stamps == [1, 1]


def test_ranking_ignores_deleted_members_and_pads(db, challenge_service):
    ghost = make_member(db, "ghost", deleted=True)
    for _ in range(3):
        make_challenge(db, ghost)
    make_member(db, "first")
    winner = make_member(db, "winner")
    make_challenge(db, winner, stamp=2)
    third = make_member(db, "third")
    make_member(db, "fourth")

    ranking = challenge_service.get_ranking(third)

    assert [(r.rank, r.username, r.stamps) for r in ranking.rankers] == [
        (1, "winner", 1), (2, "first", 0), (3, "third", 0),
    ]
    assert ranking.my_ranking is None


def test_ranking_my_entry_when_few_candidates(db, challenge_service):
    members = [make_member(db, f"m{i}") for i in range(1, 5)]
    make_challenge(db, members[0])
    make_challenge(db, members[3], status=ChallengeStatus.fail.value, stamp=1)

    ranking = challenge_service.get_ranking(members[3])

    assert [r.username for r in ranking.rankers] == ["m1", "m2", "m3"]
    assert (ranking.my_ranking.rank, ranking.my_ranking.stamps) == (4, 0)
    assert ranking.my_stamps == [1]


def test_set_notified_marks_most_recent_challenge(db, challenge_service):
    ana = make_member(db, "ana")
    older = make_challenge(db, ana, status=ChallengeStatus.fail.value)
    recent = make_challenge(db, ana, status=ChallengeStatus.success.value)

    challenge_service.set_notified(ana)

    db.refresh(older)
    db.refresh(recent)
    assert recent.notified is True
    assert older.notified is False


def test_set_notified_without_challenge(db, challenge_service):
    ana = make_member(db, "ana")
    with pytest.raises(BusinessLogicException) as excinfo:
        challenge_service.set_notified(ana)
    assert_code(excinfo, ExceptionCode.CHALLENGE_NOT_FOUND)
