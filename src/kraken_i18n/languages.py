"""
Languages - нормализация кодов языков и порядок отображения.

Файлы каталога могут называться с региональным суффиксом (pt-BR, zh-CN).
Такие коды ранжируются и отображаются как базовый язык, но остаются
отдельными файлами.
"""

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple


# Самые распространённые языки, в порядке приоритета
POPULAR_LANGUAGE_ORDER = ["en", "es", "pt", "fr", "de", "it", "ja", "zh", "ru", "ko"]

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "pt": "Portuguese",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "ja": "Japanese",
    "zh": "Chinese",
    "ru": "Russian",
    "ko": "Korean",
}

# Частая опечатка для китайского
_CHINESE_ALIASES = {"zn"}


@dataclass(frozen=True)
class Language:
    """Язык каталога."""
    code: str
    display_name: str


def normalize(code: str) -> str:
    """Приводит код к базовому: pt-BR -> pt, zh-TW / zn -> zh."""
    lower = code.lower()
    if lower in _CHINESE_ALIASES or lower.startswith("zh"):
        return "zh"
    if lower.startswith("pt"):
        return "pt"
    return lower


def _sort_key(code: str) -> Tuple[int, str, str, str]:
    base = normalize(code)
    try:
        rank = POPULAR_LANGUAGE_ORDER.index(base)
    except ValueError:
        rank = len(POPULAR_LANGUAGE_ORDER)
    return rank, base, code.casefold(), code


def compare(a: str, b: str) -> int:
    """
    Сравнивает два кода языка.

    Популярные языки идут первыми в порядке POPULAR_LANGUAGE_ORDER, затем все
    остальные. Равенство ранга разрешается по нормализованному коду, затем по
    исходному коду без учёта регистра и, наконец, по исходному коду.

    Returns:
        -1, 0 или 1
    """
    ka, kb = _sort_key(a), _sort_key(b)
    return (ka > kb) - (ka < kb)


def sort_codes(codes: Iterable[str]) -> List[str]:
    """Сортирует коды языков в порядке отображения."""
    return sorted(codes, key=cmp_to_key(compare))


def display_name(code: str) -> str:
    return LANGUAGE_NAMES.get(normalize(code), code)


def language_info(code: str) -> Language:
    return Language(code=code, display_name=display_name(code))


def find_variant(code: str, existing: Iterable[str]) -> Optional[str]:
    """
    Ищет уже существующий код с тем же базовым языком.

    Используется перед добавлением языка: "EN" рядом с "en" или "pt-PT" рядом
    с "pt-BR" не должны появиться без явного подтверждения.
    """
    base = normalize(code)
    for other in existing:
        if other != code and normalize(other) == base:
            return other
    return None
