"""
Config - настройки Kraken i18n.

Порядок слоёв (каждый следующий перекрывает предыдущий):
    1. значения по умолчанию (Settings)
    2. глобальный файл ~/.config/kraken-i18n/config.yaml
    3. файл проекта <project_root>/.kraken-i18n.yaml
    4. переменные окружения OPENAI_API_KEY, KRAKEN_I18N_MODEL

Пример .kraken-i18n.yaml:
    i18n_folder: locales
    source_language: en
    openai_model: gpt-4o-mini
    active_languages: [en, pt-BR, es]
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-5-nano-2025-08-07"
WORKSPACE_CONFIG_NAME = ".kraken-i18n.yaml"
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "kraken-i18n" / "config.yaml"

# Ключи, которые можно менять командой update_config
EDITABLE_KEYS = ("source_language", "openai_api_key", "openai_model",
                 "i18n_folder", "active_languages")


@dataclass
class Settings:
    """Настройки сессии."""
    project_root: Optional[Path] = None
    i18n_folder: str = "i18n"
    source_language: str = "en"
    openai_api_key: str = ""
    openai_model: str = DEFAULT_MODEL
    active_languages: List[str] = field(default_factory=list)  # пусто = все
    request_delay: float = 0.3        # Пауза между запросами (секунды)
    write_window: float = 0.0         # Склейка правок ячейки (секунды), 0 = сразу
    max_retries: int = 1              # Попыток на один запрос к провайдеру
    usage_db: Optional[Path] = None   # SQLite с расходом токенов

    @property
    def has_api_key(self) -> bool:
        return bool(self.openai_api_key.strip())

    def usage_db_path(self) -> Path:
        """Путь к БД расхода токенов: явный, в проекте или глобальный."""
        if self.usage_db:
            return Path(self.usage_db)
        if self.project_root:
            return Path(self.project_root) / ".kraken-i18n" / "token_usage.db"
        return GLOBAL_CONFIG_PATH.parent / "token_usage.db"

    def with_value(self, key: str, value: Any) -> "Settings":
        return replace(self, **_coerce({key: value}))


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Читает YAML-конфиг. Отсутствующий или битый файл даёт пустой словарь."""
    if not path.exists():
        logger.debug("Конфиг %s не найден", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ошибка разбора конфига %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Конфиг %s должен быть словарём, пропущен", path)
        return {}
    return data


def _coerce(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Оставляет только известные поля и приводит типы."""
    known = {f.name for f in fields(Settings)}
    result: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.debug("Неизвестный ключ конфига пропущен: %s", key)
            continue
        if key in ("project_root", "usage_db") and value is not None:
            value = Path(value)
        elif key == "active_languages":
            if isinstance(value, str):
                value = [v.strip() for v in value.split(",") if v.strip()]
            value = list(value or [])
        elif key in ("request_delay", "write_window"):
            value = float(value)
        elif key == "max_retries":
            value = max(1, int(value))
        elif value is None:
            continue
        else:
            value = str(value)
        result[key] = value
    return result


def workspace_config_path(project_root: Path) -> Path:
    return Path(project_root) / WORKSPACE_CONFIG_NAME


def load_settings(project_root: Optional[Path] = None,
                  global_path: Optional[Path] = None) -> Settings:
    """
    Собирает настройки из всех слоёв.

    Args:
        project_root: Корень проекта (None, если проекта нет)
        global_path: Путь к глобальному конфигу (для тестов)

    Returns:
        Settings
    """
    merged: Dict[str, Any] = {}
    merged.update(_read_yaml(global_path or GLOBAL_CONFIG_PATH))
    if project_root is not None:
        merged.update(_read_yaml(workspace_config_path(project_root)))

    env_key = os.environ.get("OPENAI_API_KEY")
    if env_key:
        merged["openai_api_key"] = env_key
    env_model = os.environ.get("KRAKEN_I18N_MODEL")
    if env_model:
        merged["openai_model"] = env_model

    settings = Settings(**_coerce(merged))
    if project_root is not None:
        settings.project_root = Path(project_root)
    return settings


def update_setting(settings: Settings, key: str, value: Any, scope: str = "global",
                   global_path: Optional[Path] = None) -> Path:
    """
    Сохраняет один ключ в глобальный или проектный YAML.

    Returns:
        Путь к изменённому файлу
    """
    if key not in EDITABLE_KEYS:
        raise ValueError(f"Ключ нельзя изменить: {key!r}")

    if scope == "workspace":
        if settings.project_root is None:
            raise ValueError("Нет корня проекта для настроек workspace")
        path = workspace_config_path(settings.project_root)
    else:
        path = global_path or GLOBAL_CONFIG_PATH

    data = _read_yaml(path)
    data[key] = value
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, allow_unicode=True, sort_keys=True)
    logger.info("Настройка %s сохранена в %s", key, path)
    return path
