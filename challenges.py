"""
=============================================================================
CHALLENGES.PY — Retos del Cactus
=============================================================================
Gestiona:
  - Apuntarse a un reto (máximo UNO en curso por usuario)
  - Registro diario (un registro por día)
  - Historial: retos terminados o el reto en curso
  - Mensaje de riego aleatorio
  - Ranking (top 3 + mi puesto)
  - Marcar como visto el aviso de fin de reto

El paso in_progress → success/fail lo hace un proceso externo;
aquí solo se crea, se registra y se borra.
"""

import logging
import random
from collections import defaultdict
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

import config
from exceptions import BusinessLogicException, ExceptionCode
from gamification import (
    RANKER_SIZE, progress_percent, number_histories, total_days,
    sort_candidates, fill_leaderboard, my_ranking, nonzero_stamps
)
from models import (
    Member, Challenge, History, ChallengeType, ChallengeStatus,
    TIME_EXEMPT_TYPE, DONE_STATUSES
)
from repositories import ChallengeRepository, HistoryRepository, MemberRepository
from schemas import (
    EnrollResponse, AllInfo, ActiveInfo, WateringResponse, RankingResponse,
    HistoryInfo, make_done_challenge_info, make_active_info, make_history_info
)

logger = logging.getLogger("cactus.challenges")

DEFAULT_MESSAGE = "선인장 키우기와 함께 해주셔서 감사합니다! 앞으로도 화이팅!"


class ChallengeService:

    def __init__(self, challenges: ChallengeRepository, histories: HistoryRepository,
                 members: MemberRepository, message_file: str = config.MESSAGE_FILE,
                 rng: random.Random = None, now: Callable = config.now):
        self.challenges = challenges
        self.histories = histories
        self.members = members
        self.message_file = message_file
        self.rng = rng or random.Random()
        self.now = now

    def get_active_challenge(self, member: Member) -> Challenge:
        challenge = self.challenges.find_active_by_member_id(member.id)
        if challenge is None:
            raise BusinessLogicException(ExceptionCode.ACTIVE_CHALLENGE_NOT_FOUND)
        return challenge

    # =========================================================================
    # APUNTARSE / BORRAR
    # =========================================================================

    def enroll(self, member: Member, challenge_type: ChallengeType,
               target_date: int, target_time: Optional[str]) -> EnrollResponse:
        """
        Crea un reto en curso.

        Errores:
          - Ya hay un reto en curso → ENROLL_CHALLENGE_CANNOT_BE_DUPLICATED
          - Tipo con hora y sin target_time → CHALLENGE_TARGET_TIME_NOT_NULL
        """
        if self.challenges.find_active_by_member_id(member.id) is not None:
            raise BusinessLogicException(ExceptionCode.ENROLL_CHALLENGE_CANNOT_BE_DUPLICATED)

        if challenge_type != TIME_EXEMPT_TYPE and target_time is None:
            raise BusinessLogicException(ExceptionCode.CHALLENGE_TARGET_TIME_NOT_NULL)

        challenge = Challenge(
            member_id=member.id,
            challenge_type=challenge_type.value,
            target_date=target_date,
            target_time=target_time,
            status=ChallengeStatus.in_progress.value,
            created_at=self.now(),
        )
        try:
            self.challenges.save(challenge)
        except IntegrityError:
            # Otra petición creó el reto entre la comprobación y el INSERT
            self.challenges.rollback()
            raise BusinessLogicException(ExceptionCode.ENROLL_CHALLENGE_CANNOT_BE_DUPLICATED)

        logger.info(f"🌵 {member.username} se apunta a un reto '{challenge_type.value}' "
                    f"de {target_date} días")
        return EnrollResponse(challenge_type=challenge_type.value)

    def delete(self, member: Member):
        challenge = self.get_active_challenge(member)
        challenge.status = ChallengeStatus.deleted.value
        self.challenges.save(challenge)
        logger.info(f"🗑️ {member.username} borra su reto {challenge.uuid}")

    # =========================================================================
    # REGISTRO DIARIO
    # =========================================================================

    def post_history(self, member: Member, contents: Optional[str],
                     time: Optional[int]) -> HistoryInfo:
        """Añade el registro de hoy al reto en curso (uno por día)"""
        challenge = self.get_active_challenge(member)
        now = self.now()

        histories = self.histories.find_all_by_challenge_id(challenge.id)
        if any(history.created_at.date() == now.date() for history in histories):
            raise BusinessLogicException(ExceptionCode.HISTORY_ALREADY_POSTED)

        history = self.histories.save(History(
            challenge_id=challenge.id,
            contents=contents,
            time=time,
            created_at=now,
        ))
        return make_history_info(len(histories) + 1, history)

    # =========================================================================
    # HISTORIAL
    # =========================================================================

    def get_records(self, member: Member, active: Optional[str] = None):
        """
        Sin filtro `active` → resumen de los retos terminados (AllInfo)
        Con filtro `active` → el reto en curso (ActiveInfo, vacío si no hay)
        """
        if active is None:
            return self._done_records(member)
        return self._active_record(member)

    def _done_records(self, member: Member) -> AllInfo:
        done = [
            challenge for challenge in self.challenges.find_all_by_member_id(member.id)
            if challenge.status in DONE_STATUSES
        ]
        if not done:
            return AllInfo(total_date=0, total_chall=0, challenges=None)

        by_challenge = defaultdict(list)
        for history in self.histories.find_all_by_challenge_ids([c.id for c in done]):
            by_challenge[history.challenge_id].append(history)

        return AllInfo(
            total_date=total_days([(c, len(by_challenge[c.id])) for c in done]),
            total_chall=len(done),
            challenges=[
                make_done_challenge_info(
                    challenge,
                    success=challenge.status == ChallengeStatus.success.value,
                    histories=number_histories(by_challenge[challenge.id]),
                )
                for challenge in done
            ],
        )

    def _active_record(self, member: Member) -> ActiveInfo:
        challenge = self.challenges.find_active_by_member_id(member.id)
        if challenge is None:
            return ActiveInfo()

        histories = self.histories.find_all_by_challenge_id(challenge.id)
        return make_active_info(
            challenge,
            progress=progress_percent(len(histories), challenge.target_date),
            histories=number_histories(histories),
        )

    # =========================================================================
    # MENSAJE DE RIEGO
    # =========================================================================

    def get_message(self, member: Member) -> WateringResponse:
        """
        Una línea al azar de static/water.txt.
        Si el fichero no se puede leer (o está vacío) → DEFAULT_MESSAGE.
        """
        self.get_active_challenge(member)

        try:
            with open(self.message_file, encoding="utf-8") as f:
                lines = [line.strip() for line in f if line.strip()]
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"⚠️ No se pudo leer {self.message_file}: {e}")
            lines = []

        if not lines:
            return WateringResponse(message=DEFAULT_MESSAGE)
        return WateringResponse(message=self.rng.choice(lines))

    # =========================================================================
    # RANKING
    # =========================================================================

    def get_ranking(self, member: Member) -> RankingResponse:
        """
        Podio de los 3 usuarios con más retos superados + mi puesto.
        Ver gamification.py para las reglas de relleno y desempate.
        """
        candidates = sort_candidates(self.challenges.count_successes_by_member())

        padding = []
        if len(candidates) < RANKER_SIZE:
            padding = self.members.find_all_by_deleted(False)

        rankers = fill_leaderboard(candidates, padding)
        stamps = nonzero_stamps(self.challenges.find_all_by_member_id(member.id))

        return RankingResponse(
            rankers=rankers,
            my_ranking=my_ranking(candidates, rankers, member, stamps),
            my_stamps=stamps,
        )

    # =========================================================================
    # AVISO DE FIN DE RETO
    # =========================================================================

    def set_notified(self, member: Member):
        """El usuario ya vio el aviso de su último reto"""
        challenge = self.challenges.find_recent_by_member_id(member.id)
        if challenge is None:
            raise BusinessLogicException(ExceptionCode.CHALLENGE_NOT_FOUND)
        challenge.notified = True
        self.challenges.save(challenge)
