#!/usr/bin/env python3
"""
Translator - перевод одной строки через LLM (OpenAI-совместимый API через litellm).

Промпт собирается в prompt.py. Ответ модели нормализуется: модели не всегда
соблюдают правило "только текст" и оборачивают перевод в ```, тройные
или одиночные кавычки.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

import litellm

from .config import DEFAULT_MODEL
from .errors import MissingApiKeyError
from .prompt import build_messages
from .reporting.token_tracker import TokenUsageDelta

logger = logging.getLogger(__name__)

RETRY_DELAYS = [1.0, 2.0, 4.0]  # Exponential backoff (секунды)
MAX_UNWRAP_PASSES = 4

_FENCE_RE = re.compile(r"^```(?:[a-zA-Z0-9_-]+)?\s*([\s\S]*?)\s*```$")
_TRIPLE_QUOTE_RE = re.compile(r"^(?:\"\"\"|''')\s*([\s\S]*?)\s*(?:\"\"\"|''')$")
_DOUBLE_QUOTE_RE = re.compile(r'^"([\s\S]*)"$')
_SINGLE_QUOTE_RE = re.compile(r"^'([\s\S]*)'$")


@dataclass
class TranslationResult:
    """Ответ провайдера."""
    text: str
    usage: Optional[TokenUsageDelta] = None


def normalize_translation_output(raw: str) -> str:
    """
    Снимает обёртки с ответа модели.

    За один проход снимается один слой: code fence, тройные кавычки,
    двойные или одиночные кавычки. Проходов не больше MAX_UNWRAP_PASSES.
    """
    text = raw.strip()
    if not text:
        return text

    for _ in range(MAX_UNWRAP_PASSES):
        for pattern in (_FENCE_RE, _TRIPLE_QUOTE_RE, _DOUBLE_QUOTE_RE, _SINGLE_QUOTE_RE):
            match = pattern.match(text)
            if match:
                text = match.group(1).strip()
                break
        else:
            break
    return text


class LLMTranslator:
    """
    Переводчик строк через LLM.

    Один вызов = одна строка на один язык. Повторные попытки включаются
    параметром max_retries (по умолчанию одна попытка).
    """

    def __init__(self, api_key: str = "", model: str = DEFAULT_MODEL,
                 max_retries: int = 1, timeout: float = 120.0):
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.max_retries = max(1, max_retries)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "LLMTranslator":
        return cls(api_key=settings.openai_api_key, model=settings.openai_model,
                   max_retries=settings.max_retries)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key.strip())

    def translate(self, text: str, target_lang: str, source_lang: str = "English",
                  context: Optional[str] = None,
                  target_language_code: Optional[str] = None) -> TranslationResult:
        """
        Переводит одну строку.

        Args:
            text: Исходный текст
            target_lang: Название целевого языка
            source_lang: Название исходного языка
            context: Ключ перевода (подсказка для модели)
            target_language_code: Код языка для учёта расхода

        Returns:
            TranslationResult с текстом и расходом токенов

        Raises:
            MissingApiKeyError: если ключ API не задан
        """
        if not self.has_credentials:
            raise MissingApiKeyError()

        messages = build_messages(text, target_lang, source_lang, context)
        response = self._call_llm(messages)

        usage = None
        raw_usage = getattr(response, "usage", None)
        if raw_usage is not None:
            model_name = getattr(response, "model", None)
            usage = TokenUsageDelta(
                prompt_tokens=int(getattr(raw_usage, "prompt_tokens", 0) or 0),
                completion_tokens=int(getattr(raw_usage, "completion_tokens", 0) or 0),
                total_tokens=int(getattr(raw_usage, "total_tokens", 0) or 0),
                model=model_name if isinstance(model_name, str) else self.model,
                target_language_code=target_language_code or target_lang,
            )

        content = response.choices[0].message.content
        translated = normalize_translation_output(content) if isinstance(content, str) else ""
        return TranslationResult(text=translated, usage=usage)

    def _call_llm(self, messages):
        """Вызывает провайдера с повторами."""
        kwargs = {
            "model": self.model,
            "messages": messages,
            "api_key": self.api_key,
            "timeout": self.timeout,
        }
        # gpt-5 принимает только температуру по умолчанию
        if not self.model.startswith("gpt-5"):
            kwargs["temperature"] = 0.2

        for attempt in range(self.max_retries):
            try:
                return litellm.completion(**kwargs)
            except Exception as exc:
                if attempt < self.max_retries - 1:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.warning(
                        "Попытка %d/%d для %s не удалась: %s. Повтор через %.1fс",
                        attempt + 1, self.max_retries, self.model, exc, delay,
                    )
                    time.sleep(delay)
                else:
                    raise
