"""
Pricing - грубая оценка токенов и стоимости перевода до запуска.

Оценка токенов намеренно простая (длина / 4) и детерминированная:
одно и то же число показывается и в предварительной оценке, и в ожидаемом
расходе. Стоимость completion приближается длиной исходного текста
(перевод примерно такой же длины, как оригинал).
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from ..prompt import build_prompt

# Стоимость за 1M токенов (USD)
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"prompt": 0.15, "completion": 0.6},
    "gpt-4o": {"prompt": 5.0, "completion": 15.0},
    "gpt-4.1-mini": {"prompt": 0.3, "completion": 1.2},
    "gpt-4.1": {"prompt": 5.0, "completion": 15.0},
}


@dataclass
class TranslationEstimate:
    """Предварительная оценка пакетного перевода."""
    missing_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: Optional[float] = None


def estimate_token_count(text: str) -> int:
    """Приблизительное число токенов: ceil(len / 4) по обрезанному тексту."""
    trimmed = text.strip()
    if not trimmed:
        return 0
    return math.ceil(len(trimmed) / 4)


def estimate_cost(prompt_tokens: int, completion_tokens: int, model: str) -> Optional[float]:
    """
    Считает стоимость в USD.

    Returns:
        Стоимость или None, если модели нет в таблице цен
    """
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        return None
    return (prompt_tokens / 1_000_000 * pricing["prompt"]
            + completion_tokens / 1_000_000 * pricing["completion"])


def estimate_jobs(jobs: Iterable, model: str) -> TranslationEstimate:
    """
    Оценивает расход для списка задач перевода.

    Args:
        jobs: Задачи (TranslationJob)
        model: Модель, для которой берётся цена

    Returns:
        TranslationEstimate
    """
    jobs = list(jobs)
    if not jobs:
        return TranslationEstimate(cost=estimate_cost(0, 0, model))

    prompt_tokens = 0
    completion_tokens = 0
    source_tokens: Dict[str, int] = {}

    for job in jobs:
        prompt = build_prompt(job.source_text, job.target_language_name,
                              job.source_language_name, job.display_key)
        prompt_tokens += estimate_token_count(prompt)
        if job.key_id not in source_tokens:
            source_tokens[job.key_id] = estimate_token_count(job.source_text)
        completion_tokens += source_tokens[job.key_id]

    return TranslationEstimate(
        missing_count=len(jobs),
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
        cost=estimate_cost(prompt_tokens, completion_tokens, model),
    )


def format_usd(value: float) -> str:
    if value == 0:
        return "$0.00"
    if value < 0.01:
        return f"${value:.4f}"
    return f"${value:.2f}"
