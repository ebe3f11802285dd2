from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

LOADING_STAGES: List[str] = [
    "Установка соединения с базой данных...",
    "Загрузка массива результатов (150,000+ строк)...",
    "Индексация данных по муниципалитетам...",
    "Расчет маркеров необъективности...",
    "Подготовка визуализаций...",
]
STAGE_DELAY_SECONDS = 0.6
LOAD_AT_STAGE = 1


def stage_progress(index: int, total: int = len(LOADING_STAGES)) -> float:
    if total <= 0:
        return 1.0
    return min(max((index + 1) / total, 0.0), 1.0)


def run_staged_load(
    load: Callable[[], T],
    on_stage: Optional[Callable[[int, str, float], None]] = None,
    *,
    stages: Optional[List[str]] = None,
    delay: float = STAGE_DELAY_SECONDS,
    load_at: int = LOAD_AT_STAGE,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Walk the named loading stages and materialize the data once.

    Stage pacing is cosmetic. ``load`` runs exactly once, at stage ``load_at``
    (clamped into range), and its return value is passed back unchanged.
    """
    stages = list(stages if stages is not None else LOADING_STAGES)
    if not stages:
        return load()
    load_at = min(max(load_at, 0), len(stages) - 1)

    result: Optional[T] = None
    for i, message in enumerate(stages):
        if on_stage is not None:
            on_stage(i, message, stage_progress(i, len(stages)))
        if delay > 0:
            sleep(delay)
        if i == load_at:
            logger.debug("materializing data at stage %d", i)
            result = load()
    return result  # type: ignore[return-value]
