"""
Модуль учёта расхода и оценки стоимости.

Компоненты:
- pricing: Оценка токенов и стоимости до запуска перевода
- token_tracker: Учёт фактического расхода токенов
"""

from .pricing import TranslationEstimate, estimate_cost, estimate_jobs, estimate_token_count
from .token_tracker import TokenTracker, TokenUsageDelta, TokenUsageReport, apply_usage

__all__ = [
    "TokenTracker",
    "TokenUsageDelta",
    "TokenUsageReport",
    "TranslationEstimate",
    "apply_usage",
    "estimate_cost",
    "estimate_jobs",
    "estimate_token_count",
]
