#!/usr/bin/env python3
"""
Orchestrator - пакетный перевод недостающих значений каталога.

Задача (job) это пара (ключ, целевой язык), у которой нет значения.
Задачи выполняются строго последовательно, по одной, с паузой между
запросами: так ограничивается нагрузка и стоимость, а учёт токенов
остаётся упорядоченным.

Режимы:
- run_all: все недостающие значения каталога
- translate_missing_for_key: все недостающие языки одного ключа
- add_key_and_translate: новый ключ с немедленным переводом

При первой ошибке пакет останавливается. Уже записанные переводы
остаются на диске, следующий collect_jobs подхватит оставшиеся.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from . import languages
from .catalog import Catalog, CatalogStore
from .errors import (
    ERROR_MESSAGES,
    ErrorCode,
    MissingApiKeyError,
    TranslationFailedError,
    WriteFailedError,
)
from .reporting.token_tracker import TokenUsageDelta

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_DELAY = 0.3

ProgressCallback = Callable[[int, int], None]
UsageCallback = Callable[[TokenUsageDelta], None]


@dataclass
class TranslationJob:
    """Одна единица работы: перевести ключ на один язык."""
    key_id: str
    display_key: str
    source_text: str
    target_language_code: str
    target_language_name: str
    source_language_name: str


@dataclass
class BatchResult:
    """Итог пакетного перевода."""
    ok: bool
    done: int = 0
    total: int = 0
    error: Optional[ErrorCode] = None
    message: str = ""
    failed_job: Optional[TranslationJob] = None
    editor_value: Optional[str] = None

    @classmethod
    def failure(cls, code: ErrorCode, message: str = "", **kwargs) -> "BatchResult":
        return cls(ok=False, error=code, message=message or ERROR_MESSAGES[code], **kwargs)


def _target_codes(active_languages: Iterable[str], source_language_code: str) -> List[str]:
    return [code for code in languages.sort_codes(set(active_languages))
            if code != source_language_code]


def collect_jobs(catalog: Catalog, active_languages: Iterable[str],
                 source_language_code: str) -> List[TranslationJob]:
    """
    Находит все недостающие переводы.

    Порядок: ключи в порядке каталога, внутри ключа активные языки
    (кроме исходного) в порядке реестра языков.

    Args:
        catalog: Загруженный каталог
        active_languages: Коды активных языков
        source_language_code: Код исходного языка

    Returns:
        Список TranslationJob
    """
    targets = _target_codes(active_languages, source_language_code)
    if not targets:
        return []

    source_name = catalog.language(source_language_code).display_name
    jobs = []
    for key in catalog.keys:
        source_text = catalog.get(key.id, source_language_code)
        if not source_text.strip():
            continue
        for code in targets:
            if catalog.get(key.id, code).strip():
                continue
            jobs.append(TranslationJob(
                key_id=key.id,
                display_key=key.display_key,
                source_text=source_text,
                target_language_code=code,
                target_language_name=catalog.language(code).display_name,
                source_language_name=source_name,
            ))
    return jobs


class BatchTranslator:
    """
    Последовательный исполнитель задач перевода.

    Args:
        store: Каталог на диске, куда пишутся переводы
        translator: Провайдер с методом translate() и свойством has_credentials
        on_usage: Вызывается с TokenUsageDelta после каждого успешного запроса
        request_delay: Пауза между задачами (секунды)
        sleep: Функция паузы (подменяется в тестах)
    """

    def __init__(self, store: CatalogStore, translator,
                 on_usage: Optional[UsageCallback] = None,
                 request_delay: float = DEFAULT_REQUEST_DELAY,
                 sleep: Callable[[float], None] = time.sleep):
        self.store = store
        self.translator = translator
        self.on_usage = on_usage
        self.request_delay = request_delay
        self._sleep = sleep

    def run_single(self, job: TranslationJob, catalog: Optional[Catalog] = None) -> str:
        """
        Переводит одну задачу и записывает результат.

        Returns:
            Переведённый текст

        Raises:
            TranslationFailedError: провайдер не вернул перевод, каталог не изменён
            MissingApiKeyError: не задан ключ API
            WriteFailedError: файл локали не записан, расход уже учтён
        """
        try:
            result = self.translator.translate(
                job.source_text,
                job.target_language_name,
                job.source_language_name,
                job.display_key,
                target_language_code=job.target_language_code,
            )
        except MissingApiKeyError:
            raise
        except Exception as exc:
            logger.warning("Ошибка перевода %s -> %s: %s", job.key_id, job.target_language_code, exc)
            raise TranslationFailedError(
                f"Не удалось перевести {job.key_id} на {job.target_language_code}: {exc}"
            ) from exc

        if result.usage is not None and self.on_usage is not None:
            self.on_usage(result.usage)

        try:
            self.store.write_cell(job.target_language_code, job.key_id, result.text)
        except OSError as exc:
            logger.error("Не удалось записать %s [%s]: %s", job.key_id, job.target_language_code, exc)
            raise WriteFailedError(
                f"Не удалось записать {job.key_id} в {job.target_language_code}.json: {exc}"
            ) from exc
        if catalog is not None:
            catalog.set(job.key_id, job.target_language_code, result.text)
        return result.text

    def run_all(self, jobs: List[TranslationJob],
                on_progress: Optional[ProgressCallback] = None,
                catalog: Optional[Catalog] = None,
                should_cancel: Optional[Callable[[], bool]] = None) -> BatchResult:
        """
        Выполняет задачи по одной.

        После каждой задачи (успешной или нет) вызывается on_progress(done, total).
        Первая ошибка останавливает пакет.

        Returns:
            BatchResult
        """
        if not jobs:
            return BatchResult.failure(ErrorCode.NO_MISSING)
        if not self.translator.has_credentials:
            return BatchResult.failure(ErrorCode.MISSING_API_KEY, total=len(jobs))
        return self._run_jobs(jobs, on_progress, catalog, should_cancel)

    def translate_missing_for_key(self, catalog: Catalog, key_id: str,
                                  active_languages: Iterable[str],
                                  source_language_code: str,
                                  editing_language_code: Optional[str] = None,
                                  editor_value: Optional[str] = None,
                                  on_progress: Optional[ProgressCallback] = None) -> BatchResult:
        """
        Переводит один ключ на все языки, где нет значения.

        Язык, открытый в редакторе, считается недостающим, если пусто
        значение в редакторе (editor_value). Его перевод дополнительно
        возвращается в BatchResult.editor_value.
        """
        codes = set(active_languages)
        if editing_language_code:
            codes.add(editing_language_code)

        source_text = catalog.get(key_id, source_language_code)
        if not source_text.strip():
            return BatchResult.failure(ErrorCode.NO_MISSING)

        source_name = catalog.language(source_language_code).display_name
        display_key = next((k.display_key for k in catalog.keys if k.id == key_id), key_id)

        jobs = []
        for code in _target_codes(codes, source_language_code):
            if code == editing_language_code and editor_value is not None:
                current = editor_value
            else:
                current = catalog.get(key_id, code)
            if current.strip():
                continue
            jobs.append(TranslationJob(
                key_id=key_id,
                display_key=display_key,
                source_text=source_text,
                target_language_code=code,
                target_language_name=catalog.language(code).display_name,
                source_language_name=source_name,
            ))

        if not jobs:
            return BatchResult.failure(ErrorCode.NO_MISSING)
        if not self.translator.has_credentials:
            return BatchResult.failure(ErrorCode.MISSING_API_KEY, total=len(jobs))
        return self._run_jobs(jobs, on_progress, catalog,
                              editing_language_code=editing_language_code)

    def add_key_and_translate(self, catalog: Catalog, key_id: str, source_value: str,
                              active_languages: Iterable[str],
                              source_language_code: str,
                              on_progress: Optional[ProgressCallback] = None) -> BatchResult:
        """
        Создаёт ключ со значением исходного языка и сразу переводит его.

        Существующий ключ не трогается: возвращается duplicate_key без записи.
        """
        key = key_id.strip()
        if not key:
            return BatchResult.failure(ErrorCode.KEY_REQUIRED)

        targets = _target_codes(active_languages, source_language_code)
        if targets and not self.translator.has_credentials:
            return BatchResult.failure(ErrorCode.MISSING_API_KEY)

        if key in catalog.values or self.store.has_key(key):
            return BatchResult.failure(ErrorCode.DUPLICATE_KEY)

        try:
            self.store.add_key(key, source_language_code, source_value)
        except OSError as exc:
            logger.error("Не удалось добавить ключ %s: %s", key, exc)
            return BatchResult.failure(ErrorCode.WRITE_FAILED, f"Не удалось добавить ключ {key}: {exc}")
        catalog.set(key, source_language_code, source_value)

        if not source_value.strip() or not targets:
            return BatchResult(ok=True)

        source_name = catalog.language(source_language_code).display_name
        jobs = [
            TranslationJob(
                key_id=key,
                display_key=key,
                source_text=source_value,
                target_language_code=code,
                target_language_name=catalog.language(code).display_name,
                source_language_name=source_name,
            )
            for code in targets
        ]
        return self._run_jobs(jobs, on_progress, catalog)

    def _run_jobs(self, jobs: List[TranslationJob],
                  on_progress: Optional[ProgressCallback],
                  catalog: Optional[Catalog],
                  should_cancel: Optional[Callable[[], bool]] = None,
                  editing_language_code: Optional[str] = None) -> BatchResult:
        total = len(jobs)
        done = 0
        editor_value = None
        if on_progress:
            on_progress(done, total)

        for index, job in enumerate(jobs):
            if should_cancel is not None and should_cancel():
                logger.info("Перевод остановлен на задаче %d из %d", index + 1, total)
                return BatchResult.failure(ErrorCode.CANCELLED, done=done, total=total,
                                           editor_value=editor_value)
            try:
                translated = self.run_single(job, catalog)
            except (TranslationFailedError, MissingApiKeyError, WriteFailedError) as exc:
                done += 1
                if on_progress:
                    on_progress(done, total)
                return BatchResult.failure(
                    exc.code,
                    f"Задача {index + 1} из {total} ({job.key_id} -> {job.target_language_code}): {exc}",
                    done=done, total=total, failed_job=job, editor_value=editor_value,
                )

            if job.target_language_code == editing_language_code:
                editor_value = translated
            done += 1
            if on_progress:
                on_progress(done, total)

            if index < total - 1:
                self._sleep(self.request_delay)

        logger.info("Переведено %d значений", total)
        return BatchResult(ok=True, done=done, total=total, editor_value=editor_value)
