"""
Ошибки и коды ошибок Kraken i18n.

Локально восстанавливаемые ситуации (битый JSON, нет директории) сюда не
попадают: они превращаются в пустой документ или статус каталога.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Коды ошибок, которые видит вызывающая сторона."""
    KEY_REQUIRED = "key_required"
    DUPLICATE_KEY = "duplicate_key"
    MISSING_API_KEY = "missing_api_key"
    NO_MISSING = "no_missing"
    TRANSLATION_FAILED = "translation_failed"
    LANGUAGE_VARIANT = "language_variant"
    CANCELLED = "cancelled"
    LANGUAGE_REQUIRED = "language_required"
    INVALID_SETTING = "invalid_setting"
    WRITE_FAILED = "write_failed"


ERROR_MESSAGES = {
    ErrorCode.KEY_REQUIRED: "Ключ не может быть пустым.",
    ErrorCode.DUPLICATE_KEY: "Такой ключ уже существует.",
    ErrorCode.MISSING_API_KEY: "Не задан API ключ OpenAI.",
    ErrorCode.NO_MISSING: "Нет непереведённых строк.",
    ErrorCode.TRANSLATION_FAILED: "Не удалось перевести текст.",
    ErrorCode.LANGUAGE_VARIANT: "Язык с таким базовым кодом уже есть в каталоге.",
    ErrorCode.CANCELLED: "Перевод остановлен.",
    ErrorCode.LANGUAGE_REQUIRED: "Код языка не может быть пустым.",
    ErrorCode.INVALID_SETTING: "Неизвестная настройка.",
    ErrorCode.WRITE_FAILED: "Не удалось сохранить перевод в файл.",
}


class KrakenError(Exception):
    """Базовая ошибка пакета."""
    code: ErrorCode = ErrorCode.TRANSLATION_FAILED

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or ERROR_MESSAGES[self.code])


class TranslationFailedError(KrakenError):
    """Провайдер не вернул перевод."""
    code = ErrorCode.TRANSLATION_FAILED


class MissingApiKeyError(KrakenError):
    code = ErrorCode.MISSING_API_KEY


class DuplicateKeyError(KrakenError):
    code = ErrorCode.DUPLICATE_KEY


class WriteFailedError(KrakenError):
    """Перевод получен, но файл локали не записан."""
    code = ErrorCode.WRITE_FAILED
