"""
kraken_i18n - Каталог переводов (JSON per locale) с переводом через LLM.

Модули:
- keypath: Плоские ключи <-> вложенные JSON-деревья
- languages: Нормализация и порядок кодов языков
- catalog: Поиск, чтение и запись каталога переводов
- prompt: Компактный промпт перевода
- translator: Перевод одной строки через LLM
- orchestrator: Пакетный перевод недостающих значений
- session: Контекст проекта и обработка команд UI
- coalesce: Отложенная запись частых правок
- config: Настройки (YAML + переменные окружения)
- reporting: Оценка стоимости и учёт расхода токенов
- manager: CLI
"""

from .catalog import Catalog, CatalogStatus, CatalogStore
from .config import Settings, load_settings
from .orchestrator import BatchResult, BatchTranslator, TranslationJob, collect_jobs
from .translator import LLMTranslator, TranslationResult

__version__ = "1.0.0"

__all__ = [
    "BatchResult",
    "BatchTranslator",
    "Catalog",
    "CatalogStatus",
    "CatalogStore",
    "LLMTranslator",
    "Settings",
    "TranslationJob",
    "TranslationResult",
    "collect_jobs",
    "load_settings",
]
