import json
from pathlib import Path

import pytest

from kraken_i18n import config
from kraken_i18n.errors import TranslationFailedError
from kraken_i18n.reporting.token_tracker import TokenUsageDelta
from kraken_i18n.translator import TranslationResult


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Глобальный конфиг и переменные окружения не должны влиять на тесты."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("KRAKEN_I18N_MODEL", raising=False)
    monkeypatch.setattr(config, "GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")


def write_locale(directory: Path, code: str, data) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{code}.json"
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


def read_locale(directory: Path, code: str):
    return json.loads((directory / f"{code}.json").read_text(encoding="utf-8"))


class FakeTranslator:
    """Провайдер для тестов: "[<код>] <текст>", ошибка на заданных вызовах."""

    def __init__(self, fail_on=(), has_credentials=True, model="gpt-4o-mini"):
        self.fail_on = set(fail_on)
        self.has_credentials = has_credentials
        self.model = model
        self.calls = []

    def translate(self, text, target_lang, source_lang="English", context=None,
                  target_language_code=None):
        self.calls.append((context, target_language_code))
        if len(self.calls) in self.fail_on:
            raise RuntimeError("provider unavailable")
        usage = TokenUsageDelta(prompt_tokens=10, completion_tokens=5, total_tokens=15,
                                model=self.model, target_language_code=target_language_code)
        return TranslationResult(text=f"[{target_language_code}] {text}", usage=usage)


class FailingTranslator(FakeTranslator):
    def translate(self, *args, **kwargs):
        raise TranslationFailedError("empty response")


@pytest.fixture
def fake_translator():
    return FakeTranslator()
