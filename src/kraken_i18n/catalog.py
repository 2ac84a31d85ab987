#!/usr/bin/env python3
"""
Catalog - управление каталогом переводов.

Хранит переводы в JSON-файлах: <i18n>/{locale}.json
Формат: произвольно вложенные объекты со строковыми листьями,
ключ перевода это путь через точку ("app.title").

Поддерживает:
- Поиск директории каталога в проекте
- Загрузка всех локалей в плотную таблицу key -> {locale: value}
- Запись одной ячейки (единственный примитив сохранения)
- Добавление ключа, языка и начальное заполнение пустого каталога
"""

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from . import languages
from .errors import DuplicateKeyError
from .keypath import flatten, has_path, set_value
from .languages import Language

logger = logging.getLogger(__name__)

# Директории, которые не обходятся при поиске каталога
SKIP_DIRS = {"node_modules", "dist", "out", "coverage", ".git",
             ".vscode", ".vscode-test", "media"}
MAX_SEARCH_DEPTH = 6

SEED_DOCUMENT = {"app": {"title": "App Title"}}


class CatalogStatus(str, Enum):
    OK = "ok"
    MISSING_WORKSPACE = "missing_workspace"
    MISSING_FOLDER = "missing_folder"
    EMPTY_FOLDER = "empty_folder"


@dataclass
class TranslationKey:
    """Ключ перевода. id совпадает с путём в JSON."""
    id: str
    display_key: str
    tags: Set[str] = field(default_factory=set)


@dataclass
class Catalog:
    """Объединение всех файлов локалей проекта."""
    languages: List[Language] = field(default_factory=list)
    keys: List[TranslationKey] = field(default_factory=list)
    values: Dict[str, Dict[str, str]] = field(default_factory=dict)
    source_language_code: str = ""
    status: CatalogStatus = CatalogStatus.OK
    message: str = ""
    directory: Optional[Path] = None

    @property
    def language_codes(self) -> List[str]:
        return [lang.code for lang in self.languages]

    def language(self, code: str) -> Language:
        for lang in self.languages:
            if lang.code == code:
                return lang
        return languages.language_info(code)

    def get(self, key_id: str, code: str) -> str:
        return self.values.get(key_id, {}).get(code, "")

    def set(self, key_id: str, code: str, value: str) -> None:
        """Обновляет ячейку в памяти, сохраняя плотность таблицы."""
        if key_id not in self.values:
            self.keys.append(TranslationKey(id=key_id, display_key=key_id))
            self.values[key_id] = {c: "" for c in self.language_codes}
        if code not in self.language_codes:
            self.languages.append(languages.language_info(code))
            for row in self.values.values():
                row.setdefault(code, "")
        self.values[key_id][code] = value


def read_json_file(path: Path) -> Dict[str, Any]:
    """
    Читает JSON-документ локали.

    Отсутствующий файл, не-UTF-8 байты, битый JSON и не-объект на верхнем
    уровне дают {}.
    """
    if not path.exists():
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
        if raw.startswith("\ufeff"):
            raw = raw[1:]
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Файл %s не является корректным JSON (%s), используется пустой документ",
                       path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Файл %s содержит не объект, используется пустой документ", path)
        return {}
    return data


def write_json_file(path: Path, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(json.dumps(data, ensure_ascii=False, indent=2) + "\n")


def find_folder_by_name(root: Path, folder_name: str,
                        max_depth: int = MAX_SEARCH_DEPTH) -> Optional[Path]:
    """Поиск в ширину директории с именем folder_name (без учёта регистра)."""
    target = folder_name.lower()
    queue = deque([(Path(root), 0)])

    while queue:
        current, depth = queue.popleft()
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.debug("Не удалось прочитать %s: %s", current, exc)
            continue

        for entry in entries:
            if not entry.is_dir():
                continue
            lower = entry.name.lower()
            if lower == target:
                return entry
            if lower in SKIP_DIRS or entry.name.startswith("."):
                continue
            if depth < max_depth:
                queue.append((entry, depth + 1))

    return None


class CatalogStore:
    """
    Каталог переводов проекта поверх директории JSON-файлов.

    Структура файлов:
        i18n/
            en.json     - Английский
            pt-BR.json  - Португальский (Бразилия)
            ...
    """

    def __init__(self, project_root: Optional[Path], i18n_folder: str = "i18n",
                 source_language: str = "en"):
        self.project_root = Path(project_root) if project_root else None
        self.i18n_folder = i18n_folder
        self.source_language = source_language

    @classmethod
    def from_settings(cls, settings) -> "CatalogStore":
        return cls(settings.project_root, settings.i18n_folder, settings.source_language)

    # ── Директория ──

    def resolve_catalog_directory(self) -> Optional[Path]:
        """Находит существующую директорию каталога или возвращает None."""
        if self.project_root is None:
            return None

        configured = Path(self.i18n_folder)
        if configured.is_absolute() and configured.is_dir():
            return configured

        direct = self.project_root / configured
        if direct.is_dir():
            return direct

        return find_folder_by_name(self.project_root, configured.name)

    def ensure_catalog_directory(self) -> Optional[Path]:
        """Возвращает директорию каталога, создавая её при необходимости."""
        if self.project_root is None:
            return None

        existing = self.resolve_catalog_directory()
        if existing:
            return existing

        configured = Path(self.i18n_folder)
        target = configured if configured.is_absolute() else self.project_root / configured
        target.mkdir(parents=True, exist_ok=True)
        logger.info("Создана директория каталога %s", target)
        return target

    @staticmethod
    def _language_files(directory: Path) -> List[Path]:
        return [p for p in directory.glob("*.json") if p.is_file()]

    def list_language_codes(self) -> List[str]:
        directory = self.resolve_catalog_directory()
        if directory is None:
            return []
        return languages.sort_codes(p.stem for p in self._language_files(directory))

    # ── Чтение ──

    def load_catalog(self) -> Catalog:
        """
        Загружает все локали в плотную таблицу.

        Returns:
            Catalog. При отсутствии проекта, директории или файлов возвращается
            пустой каталог с соответствующим статусом и сообщением.
        """
        preference = self.source_language

        if self.project_root is None:
            return Catalog(source_language_code=preference,
                           status=CatalogStatus.MISSING_WORKSPACE,
                           message="Не открыт проект.")

        directory = self.resolve_catalog_directory()
        if directory is None or not directory.is_dir():
            return Catalog(source_language_code=preference,
                           status=CatalogStatus.MISSING_FOLDER,
                           message=f"Директория не найдена: {self.i18n_folder}")

        files = self._language_files(directory)
        if not files:
            return Catalog(source_language_code=preference,
                           status=CatalogStatus.EMPTY_FOLDER,
                           message=f"В {directory} нет JSON-файлов.",
                           directory=directory)

        codes = languages.sort_codes(p.stem for p in files)

        per_language: Dict[str, Dict[str, str]] = {}
        all_keys: Set[str] = set()
        for code in codes:
            flat = flatten(read_json_file(directory / f"{code}.json"))
            per_language[code] = flat
            all_keys.update(flat)

        key_list = sorted(all_keys)
        values = {
            key: {code: per_language[code].get(key, "") for code in codes}
            for key in key_list
        }

        source = preference if preference in codes else codes[0]
        logger.debug("Загружен каталог %s: %d языков, %d ключей",
                     directory, len(codes), len(key_list))

        return Catalog(
            languages=[languages.language_info(code) for code in codes],
            keys=[TranslationKey(id=key, display_key=key) for key in key_list],
            values=values,
            source_language_code=source,
            status=CatalogStatus.OK,
            directory=directory,
        )

    def has_key(self, key_id: str) -> bool:
        """Есть ли ключ хотя бы в одном файле локали."""
        directory = self.resolve_catalog_directory()
        if directory is None:
            return False
        return any(has_path(read_json_file(p), key_id)
                   for p in self._language_files(directory))

    # ── Запись ──

    def write_cell(self, language_code: str, key_id: str, value: str) -> Optional[Path]:
        """
        Записывает одно значение в файл локали.

        Returns:
            Путь к изменённому файлу или None, если проекта нет
        """
        directory = self.ensure_catalog_directory()
        if directory is None:
            return None

        path = directory / f"{language_code}.json"
        data = read_json_file(path)
        set_value(data, key_id, value)
        write_json_file(path, data)
        logger.debug("[%s] %s записан", language_code, key_id)
        return path

    def add_key(self, key_id: str, source_language_code: str, source_value: str) -> bool:
        """
        Добавляет ключ во все файлы локалей, не перезаписывая существующие значения.

        Исходный язык получает source_value, остальные пустую строку.

        Returns:
            True, если ключ был записан хотя бы в один файл
        """
        directory = self.ensure_catalog_directory()
        if directory is None:
            return False

        codes = [p.stem for p in self._language_files(directory)]
        if source_language_code not in codes:
            codes.append(source_language_code)

        written = False
        for code in codes:
            path = directory / f"{code}.json"
            data = read_json_file(path)
            if has_path(data, key_id):
                continue
            set_value(data, key_id, source_value if code == source_language_code else "")
            write_json_file(path, data)
            written = True

        if written:
            logger.info("Добавлен ключ %s", key_id)
        return written

    def create_key(self, key_id: str, source_language_code: str, source_value: str) -> bool:
        """Как add_key, но существующий ключ считается ошибкой."""
        if self.has_key(key_id):
            raise DuplicateKeyError(f"Ключ {key_id} уже существует.")
        return self.add_key(key_id, source_language_code, source_value)

    def add_language_file(self, code: str) -> bool:
        """Создаёт пустой файл локали. Существующий файл не трогается."""
        directory = self.ensure_catalog_directory()
        if directory is None:
            return False

        path = directory / f"{code}.json"
        if path.exists():
            return False
        write_json_file(path, {})
        logger.info("Добавлен язык %s", code)
        return True

    def seed_catalog(self, source_language_code: Optional[str] = None) -> bool:
        """
        Создаёт минимальный файл исходного языка в пустом каталоге.

        Returns:
            True, если файл создан. Каталог с JSON-файлами не изменяется.
        """
        directory = self.ensure_catalog_directory()
        if directory is None:
            return False
        if self._language_files(directory):
            return False

        code = source_language_code or self.source_language
        write_json_file(directory / f"{code}.json", SEED_DOCUMENT)
        logger.info("Каталог %s инициализирован файлом %s.json", directory, code)
        return True


def coverage(catalog: Catalog) -> Dict[str, Tuple[int, int]]:
    """
    Считает заполненность по языкам.

    Returns:
        Dict[код языка, (заполнено, всего ключей)]
    """
    total = len(catalog.keys)
    stats = {}
    for code in catalog.language_codes:
        filled = sum(1 for key in catalog.keys if catalog.get(key.id, code).strip())
        stats[code] = (filled, total)
    return stats
