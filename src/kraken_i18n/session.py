#!/usr/bin/env python3
"""
Session - контекст работы с каталогом одного проекта.

Вместо глобального состояния всё, что нужно командам (настройки, каталог
на диске, накопительный расход токенов), хранится в объекте Session.

Команды UI обрабатываются по схеме команда -> результат:
    dispatch(state, command) -> (new_state, effects)   # чистая функция
    Session.handle(command)  -> [Response]              # исполняет эффекты

Пример:
    session = Session(load_settings(Path(".")))
    [init] = session.handle(Command(CommandType.READY))
    session.handle(Command(CommandType.UPDATE_VALUE, key="app.title", lang="fr", value="Titre"))
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union

from . import languages
from .catalog import Catalog, CatalogStatus, CatalogStore
from .coalesce import WriteCoalescer
from .config import EDITABLE_KEYS, Settings, update_setting
from .errors import ERROR_MESSAGES, DuplicateKeyError, ErrorCode
from .orchestrator import BatchTranslator
from .reporting.token_tracker import TokenTracker, TokenUsageDelta, TokenUsageReport, apply_usage
from .translator import LLMTranslator

logger = logging.getLogger(__name__)


class CommandType(str, Enum):
    READY = "ready"
    REFRESH = "refresh"
    INIT_CATALOG = "init_catalog"
    UPDATE_VALUE = "update_value"
    ADD_KEY = "add_key"
    ADD_LANGUAGE = "add_language"
    RECORD_TOKEN_USAGE = "record_token_usage"
    UPDATE_CONFIG = "update_config"


class ResponseType(str, Enum):
    INIT = "init"
    TOKEN_REPORT = "token_report"
    ERROR = "error"


@dataclass(frozen=True)
class Command:
    """Команда от UI. Используются только поля, нужные её типу."""
    type: CommandType
    key: str = ""
    lang: str = ""
    value: Any = ""
    source_lang: str = ""
    usage: Optional[TokenUsageDelta] = None
    scope: str = "global"       # global | workspace
    force: bool = False         # добавить язык даже при совпадении базового кода
    issued_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SessionState:
    settings: Settings
    token_report: TokenUsageReport
    language_codes: Tuple[str, ...] = ()


# ── Эффекты ──

@dataclass(frozen=True)
class EmitInit:
    pass


@dataclass(frozen=True)
class EmitTokenReport:
    report: TokenUsageReport


@dataclass(frozen=True)
class EmitError:
    code: ErrorCode
    message: str


@dataclass(frozen=True)
class WriteCell:
    lang: str
    key: str
    value: str


@dataclass(frozen=True)
class AddKey:
    key: str
    source_lang: str
    value: str


@dataclass(frozen=True)
class AddLanguage:
    code: str


@dataclass(frozen=True)
class SeedCatalog:
    source_lang: str


@dataclass(frozen=True)
class RecordUsage:
    usage: TokenUsageDelta
    timestamp: str


@dataclass(frozen=True)
class SaveSetting:
    key: str
    value: Any
    scope: str


Effect = Union[EmitInit, EmitTokenReport, EmitError, WriteCell, AddKey,
               AddLanguage, SeedCatalog, RecordUsage, SaveSetting]


def _error(code: ErrorCode, message: str = "") -> EmitError:
    return EmitError(code, message or ERROR_MESSAGES[code])


def dispatch(state: SessionState, command: Command) -> Tuple[SessionState, List[Effect]]:
    """
    Обрабатывает команду без побочных эффектов.

    Returns:
        (новое состояние, список эффектов для исполнения)
    """
    kind = command.type

    if kind in (CommandType.READY, CommandType.REFRESH):
        return state, [EmitInit()]

    if kind == CommandType.INIT_CATALOG:
        return state, [SeedCatalog(state.settings.source_language), EmitInit()]

    if kind == CommandType.UPDATE_VALUE:
        if not command.key.strip():
            return state, [_error(ErrorCode.KEY_REQUIRED)]
        return state, [WriteCell(command.lang, command.key, str(command.value))]

    if kind == CommandType.ADD_KEY:
        key = command.key.strip()
        if not key:
            return state, [_error(ErrorCode.KEY_REQUIRED)]
        source = command.source_lang or state.settings.source_language
        return state, [AddKey(key, source, str(command.value))]

    if kind == CommandType.ADD_LANGUAGE:
        code = command.lang.strip()
        if not code:
            return state, [_error(ErrorCode.LANGUAGE_REQUIRED)]
        variant = languages.find_variant(code, state.language_codes)
        if variant and not command.force:
            return state, [_error(ErrorCode.LANGUAGE_VARIANT,
                                  f"Язык {code} совпадает с уже существующим {variant}.")]
        return state, [AddLanguage(code), EmitInit()]

    if kind == CommandType.RECORD_TOKEN_USAGE:
        if command.usage is None:
            return state, []
        report = apply_usage(state.token_report, command.usage, now=command.issued_at)
        new_state = replace(state, token_report=report)
        return new_state, [RecordUsage(command.usage, report.last_updated), EmitTokenReport(report)]

    if kind == CommandType.UPDATE_CONFIG:
        if command.key not in EDITABLE_KEYS:
            return state, [_error(ErrorCode.INVALID_SETTING,
                                  f"Неизвестная настройка: {command.key}")]
        settings = state.settings.with_value(command.key, command.value)
        new_state = replace(state, settings=settings)
        return new_state, [SaveSetting(command.key, command.value, command.scope), EmitInit()]

    raise ValueError(f"Неизвестная команда: {kind!r}")


@dataclass
class Response:
    type: ResponseType
    payload: Any = None


@dataclass
class InitPayload:
    """Всё, что нужно UI для отрисовки каталога."""
    catalog: Catalog
    openai_model: str
    has_api_key: bool
    token_report: TokenUsageReport
    i18n_folder: str
    active_languages: List[str]

    @property
    def status(self) -> CatalogStatus:
        return self.catalog.status

    @property
    def error(self) -> str:
        return self.catalog.message


class Session:
    """
    Контекст одного проекта.

    Args:
        settings: Настройки (см. config.load_settings)
        tracker: Хранилище расхода токенов (по умолчанию SQLite из настроек)
        global_config_path: Путь к глобальному конфигу для команды update_config

    При settings.write_window > 0 правки ячеек (update_value) склеиваются
    WriteCoalescer и пишутся после паузы. Перед чтением каталога и в close()
    ожидающие правки сбрасываются на диск.
    """

    def __init__(self, settings: Settings, tracker: Optional[TokenTracker] = None,
                 global_config_path: Optional[Path] = None):
        self.tracker = tracker or TokenTracker(settings.usage_db_path())
        self.global_config_path = global_config_path
        store = CatalogStore.from_settings(settings)
        self.state = SessionState(
            settings=settings,
            token_report=self.tracker.load_report(),
            language_codes=tuple(store.list_language_codes()),
        )
        self.coalescer: Optional[WriteCoalescer] = None
        if settings.write_window > 0:
            self.coalescer = WriteCoalescer(settings.write_window, self._write_cell)

    @property
    def settings(self) -> Settings:
        return self.state.settings

    @property
    def token_report(self) -> TokenUsageReport:
        return self.state.token_report

    @property
    def store(self) -> CatalogStore:
        return CatalogStore.from_settings(self.state.settings)

    def handle(self, command: Command) -> List[Response]:
        """Обрабатывает команду и возвращает ответы для UI."""
        if command.type == CommandType.UPDATE_CONFIG:
            # правки уходят в каталог, который был до смены настроек
            self.close()
        self.state, effects = dispatch(self.state, command)
        return self._execute(effects)

    def close(self) -> None:
        """Сбрасывает ожидающие правки на диск."""
        if self.coalescer is not None:
            self.coalescer.flush()

    def _write_cell(self, key_id: str, language_code: str, value: str) -> None:
        self.store.write_cell(language_code, key_id, value)

    def record_usage(self, usage: TokenUsageDelta) -> None:
        """Колбэк расхода токенов для BatchTranslator."""
        self.handle(Command(CommandType.RECORD_TOKEN_USAGE, usage=usage))

    def load_catalog(self) -> Catalog:
        self.close()
        catalog = self.store.load_catalog()
        self.state = replace(self.state, language_codes=tuple(catalog.language_codes))
        return catalog

    def active_languages(self, catalog: Catalog) -> List[str]:
        """Активные языки: из настроек (только существующие) или все языки каталога."""
        configured = self.settings.active_languages
        if not configured:
            return catalog.language_codes
        return [code for code in catalog.language_codes if code in configured]

    def batch_translator(self, translator=None,
                         sleep: Callable[[float], None] = time.sleep) -> BatchTranslator:
        return BatchTranslator(
            self.store,
            translator or LLMTranslator.from_settings(self.settings),
            on_usage=self.record_usage,
            request_delay=self.settings.request_delay,
            sleep=sleep,
        )

    def _init_payload(self) -> InitPayload:
        catalog = self.load_catalog()
        return InitPayload(
            catalog=catalog,
            openai_model=self.settings.openai_model,
            has_api_key=self.settings.has_api_key,
            token_report=self.token_report,
            i18n_folder=self.settings.i18n_folder,
            active_languages=self.active_languages(catalog),
        )

    def _execute(self, effects: List[Effect]) -> List[Response]:
        responses = []
        store = self.store
        for effect in effects:
            if isinstance(effect, EmitInit):
                responses.append(Response(ResponseType.INIT, self._init_payload()))
            elif isinstance(effect, EmitTokenReport):
                responses.append(Response(ResponseType.TOKEN_REPORT, effect.report))
            elif isinstance(effect, EmitError):
                logger.info("Команда отклонена: %s", effect.message)
                responses.append(Response(ResponseType.ERROR, effect))
            elif isinstance(effect, WriteCell):
                if self.coalescer is not None:
                    self.coalescer.schedule(effect.key, effect.lang, effect.value)
                else:
                    store.write_cell(effect.lang, effect.key, effect.value)
            elif isinstance(effect, AddKey):
                try:
                    store.create_key(effect.key, effect.source_lang, effect.value)
                except DuplicateKeyError as exc:
                    responses.append(Response(ResponseType.ERROR, EmitError(exc.code, str(exc))))
            elif isinstance(effect, AddLanguage):
                store.add_language_file(effect.code)
            elif isinstance(effect, SeedCatalog):
                store.seed_catalog(effect.source_lang)
            elif isinstance(effect, RecordUsage):
                self.tracker.record_call(effect.usage, effect.timestamp)
            elif isinstance(effect, SaveSetting):
                update_setting(self.settings, effect.key, effect.value, effect.scope,
                               global_path=self.global_config_path)
                store = self.store
        return responses
