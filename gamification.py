"""
=============================================================================
GAMIFICATION.PY — Progreso, Días y Ranking
=============================================================================
Gestiona:
  - Progreso del reto (% de días registrados sobre el objetivo)
  - Día actual del reto (día 1 = el día en que se creó)
  - Total de días de todos los retos terminados
  - Ranking (top 3 + "mi ranking")

Son funciones puras: reciben datos ya cargados por los servicios y
devuelven números o esquemas. No tocan la base de datos.
"""

from datetime import date, datetime
from typing import Iterable, Optional

from models import Member, Challenge, History
from schemas import HistoryInfo, Ranker, make_history_info, make_ranker

# Plazas del podio
RANKER_SIZE = 3


# =============================================================================
# ===================== PROGRESO ==============================================
# =============================================================================

def progress_percent(history_count: int, target_date: int) -> int:
    """
    % de progreso, redondeado hacia abajo.
    Ej: 10 registros en un reto de 30 días → 33
    """
    if target_date <= 0:
        return 0
    # floor exacto con enteros
    return history_count * 100 // target_date


def elapsed_days(created_at: datetime, today: date) -> int:
    """Día actual del reto: el día de creación cuenta como día 1"""
    return (today - created_at.date()).days + 1


def number_histories(histories: Iterable[History]) -> list[HistoryInfo]:
    """Renumera los registros como días 1, 2, 3... en el orden original"""
    return [make_history_info(day, history) for day, history in enumerate(histories, start=1)]


# =============================================================================
# ===================== TOTAL DE DÍAS =========================================
# =============================================================================

def total_days(done: list[tuple[Challenge, int]]) -> int:
    """
    Días totales de los retos terminados [(reto, n_registros), ...].

    Los retos con UN solo registro cuentan por fecha de creación distinta
    (dos retos de un día creados el mismo día suman 1). El resto suma
    su número de registros tal cual.

    Ej: registros {1, 1, 5} en días distintos → 2 + 5 = 7
    """
    one_day_dates = {challenge.created_at.date() for challenge, count in done if count == 1}
    others = sum(count for _, count in done if count != 1)
    return len(one_day_dates) + others


# =============================================================================
# ===================== RANKING ===============================================
# =============================================================================
# Flujo:
#   1. count_successes_by_member() → [(Member, n_success), ...]
#   2. sort_candidates() → más éxitos primero; empate → id más bajo primero
#   3. fill_leaderboard() → top 3 (rellenando con usuarios a 0 si faltan)
#   4. my_ranking() → mi puesto si no estoy en el podio

def sort_candidates(counts: list[tuple[Member, int]]) -> list[tuple[Member, int]]:
    return sorted(counts, key=lambda item: (-item[1], item[0].id))


def fill_leaderboard(candidates: list[tuple[Member, int]], members: list[Member],
                     size: int = RANKER_SIZE) -> list[Ranker]:
    """
    Construye el podio.

    Con `size` candidatos o más → los `size` primeros, tal cual.
    Con menos → todos los candidatos y luego se rellena con usuarios
    activos (`members`, por id ascendente) a 0 sellos, saltando los
    username que ya están en el podio.
    """
    rankers = [
        make_ranker(rank, member.username, count)
        for rank, (member, count) in enumerate(candidates[:size], start=1)
    ]
    if len(candidates) >= size:
        return rankers

    taken = {ranker.username for ranker in rankers}
    for member in members:
        if len(rankers) >= size:
            break
        if member.username in taken:
            continue
        rankers.append(make_ranker(len(rankers) + 1, member.username, 0))
        taken.add(member.username)
    return rankers


def my_ranking(candidates: list[tuple[Member, int]], rankers: list[Ranker],
               member: Member, my_stamps: list[int],
               size: int = RANKER_SIZE) -> Optional[Ranker]:
    """
    Mi puesto fuera del podio (None si ya estoy en el podio).

    - Menos de `size` candidatos reales → puesto size+1 con 0 sellos
    - Si no → posición real en la lista (o al final si no tengo éxitos),
      con tantos sellos como retos con sello distinto de 0
    """
    if any(ranker.username == member.username for ranker in rankers):
        return None

    if len(candidates) < size:
        return make_ranker(size + 1, member.username, 0)

    position = next(
        (index for index, (candidate, _) in enumerate(candidates, start=1)
         if candidate.id == member.id),
        len(candidates) + 1,
    )
    return make_ranker(position, member.username, len(my_stamps))


def nonzero_stamps(challenges: Iterable[Challenge]) -> list[int]:
    """Sellos del usuario (solo los retos con sello)"""
    return [challenge.stamp for challenge in challenges if challenge.stamp]
