"""
TokenTracker - учёт расхода токенов на переводы.

Каждый успешный вызов провайдера даёт TokenUsageDelta. Дельта складывается
в накопительный TokenUsageReport (итоги, по моделям, по языкам) и
записывается строкой в SQLite, из которой отчёт восстанавливается при
следующем запуске.

Использование:
    tracker = TokenTracker(Path(".kraken-i18n/token_usage.db"))
    report = tracker.load_report()
    report = apply_usage(report, delta)
    tracker.record_call(delta, report.last_updated)
"""

import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class TokenUsageDelta:
    """Расход одного вызова провайдера."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str
    target_language_code: str


@dataclass
class TokenUsageReport:
    """Накопительный отчёт. Только растёт, сбрасывается снаружи."""
    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    requests: int = 0
    per_model: Dict[str, int] = field(default_factory=dict)
    per_language: Dict[str, int] = field(default_factory=dict)
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "total_tokens": self.total_tokens,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "requests": self.requests,
            "per_model": dict(self.per_model),
            "per_language": dict(self.per_language),
            "last_updated": self.last_updated,
        }


def apply_usage(report: TokenUsageReport, usage: TokenUsageDelta,
                now: Optional[datetime] = None) -> TokenUsageReport:
    """
    Складывает дельту в отчёт. Исходный отчёт не изменяется.

    per_model ключуется строкой модели, которую вернул провайдер (она может
    отличаться от запрошенной), per_language кодом целевого языка задачи.
    """
    per_model = dict(report.per_model)
    per_language = dict(report.per_language)
    per_model[usage.model] = per_model.get(usage.model, 0) + usage.total_tokens
    per_language[usage.target_language_code] = (
        per_language.get(usage.target_language_code, 0) + usage.total_tokens
    )

    return TokenUsageReport(
        total_tokens=report.total_tokens + usage.total_tokens,
        prompt_tokens=report.prompt_tokens + usage.prompt_tokens,
        completion_tokens=report.completion_tokens + usage.completion_tokens,
        requests=report.requests + 1,
        per_model=per_model,
        per_language=per_language,
        last_updated=(now or datetime.now()).isoformat(),
    )


class TokenTracker:
    """Хранение расхода токенов в SQLite."""

    def __init__(self, db_path: Path):
        # Поддержка и Path, и str
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Создаёт таблицы если не существуют."""
        with closing(self._conn()) as conn, conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS calls (
                    call_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    model TEXT NOT NULL,
                    target_language TEXT NOT NULL,
                    prompt_tokens INTEGER NOT NULL,
                    completion_tokens INTEGER NOT NULL,
                    total_tokens INTEGER NOT NULL,
                    timestamp TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_calls_timestamp ON calls(timestamp);
            """)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def record_call(self, usage: TokenUsageDelta, timestamp: Optional[str] = None):
        """Записывает один вызов провайдера."""
        with closing(self._conn()) as conn, conn:
            conn.execute(
                "INSERT INTO calls (model, target_language, prompt_tokens, completion_tokens, "
                "total_tokens, timestamp) VALUES (?, ?, ?, ?, ?, ?)",
                (usage.model, usage.target_language_code, usage.prompt_tokens,
                 usage.completion_tokens, usage.total_tokens,
                 timestamp or datetime.now().isoformat()),
            )
        logger.debug("Записан расход: %s/%s %d токенов",
                     usage.model, usage.target_language_code, usage.total_tokens)

    def load_report(self) -> TokenUsageReport:
        """Восстанавливает накопительный отчёт из всех записанных вызовов."""
        with closing(self._conn()) as conn:
            totals = conn.execute(
                "SELECT COUNT(*) as requests, "
                "COALESCE(SUM(total_tokens), 0) as total, "
                "COALESCE(SUM(prompt_tokens), 0) as prompt, "
                "COALESCE(SUM(completion_tokens), 0) as completion, "
                "MAX(timestamp) as last_updated "
                "FROM calls"
            ).fetchone()
            by_model = conn.execute(
                "SELECT model, SUM(total_tokens) as tokens FROM calls GROUP BY model"
            ).fetchall()
            by_language = conn.execute(
                "SELECT target_language, SUM(total_tokens) as tokens "
                "FROM calls GROUP BY target_language"
            ).fetchall()

        return TokenUsageReport(
            total_tokens=totals["total"],
            prompt_tokens=totals["prompt"],
            completion_tokens=totals["completion"],
            requests=totals["requests"],
            per_model={row["model"]: row["tokens"] for row in by_model},
            per_language={row["target_language"]: row["tokens"] for row in by_language},
            last_updated=totals["last_updated"],
        )
