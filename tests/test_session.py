from datetime import datetime

import yaml
from conftest import FakeTranslator, read_locale, write_locale

from kraken_i18n.catalog import CatalogStatus
from kraken_i18n.config import Settings
from kraken_i18n.errors import ErrorCode
from kraken_i18n.reporting.token_tracker import TokenTracker, TokenUsageDelta, TokenUsageReport
from kraken_i18n.session import (
    AddLanguage,
    Command,
    CommandType,
    EmitError,
    EmitInit,
    RecordUsage,
    ResponseType,
    SaveSetting,
    Session,
    SessionState,
    WriteCell,
    dispatch,
)


def _usage(total=15, lang="fr"):
    return TokenUsageDelta(prompt_tokens=10, completion_tokens=total - 10, total_tokens=total,
                           model="gpt-4o-mini", target_language_code=lang)


def _state(**kwargs):
    return SessionState(settings=Settings(), token_report=TokenUsageReport(), **kwargs)


def _session(tmp_path, **settings):
    settings = Settings(project_root=tmp_path, openai_api_key="sk-test", **settings)
    return Session(settings, tracker=TokenTracker(tmp_path / "usage.db"),
                   global_config_path=tmp_path / "global.yaml")


def test_dispatch_is_pure():
    state = _state()
    new_state, effects = dispatch(state, Command(CommandType.UPDATE_VALUE, key="a", lang="fr", value="x"))
    assert new_state is state
    assert effects == [WriteCell("fr", "a", "x")]


def test_dispatch_rejects_blank_key():
    _, effects = dispatch(_state(), Command(CommandType.ADD_KEY, key="  ", value="x"))
    [error] = effects
    assert isinstance(error, EmitError)
    assert error.code == ErrorCode.KEY_REQUIRED


def test_dispatch_language_variant():
    state = _state(language_codes=("en", "pt-BR"))

    _, effects = dispatch(state, Command(CommandType.ADD_LANGUAGE, lang="pt-PT"))
    assert effects[0].code == ErrorCode.LANGUAGE_VARIANT

    _, effects = dispatch(state, Command(CommandType.ADD_LANGUAGE, lang="pt-PT", force=True))
    assert effects == [AddLanguage("pt-PT"), EmitInit()]

    _, effects = dispatch(state, Command(CommandType.ADD_LANGUAGE, lang=" "))
    assert effects[0].code == ErrorCode.LANGUAGE_REQUIRED


def test_dispatch_record_usage():
    issued = datetime(2026, 5, 1, 12, 0, 0)
    state = _state()

    new_state, effects = dispatch(state, Command(CommandType.RECORD_TOKEN_USAGE, usage=_usage(),
                                                 issued_at=issued))

    assert state.token_report.total_tokens == 0
    assert new_state.token_report.total_tokens == 15
    assert effects[0] == RecordUsage(_usage(), issued.isoformat())


def test_dispatch_update_config():
    state = _state()
    new_state, effects = dispatch(state, Command(CommandType.UPDATE_CONFIG, key="openai_model",
                                                 value="gpt-4o"))
    assert new_state.settings.openai_model == "gpt-4o"
    assert state.settings.openai_model != "gpt-4o"
    assert effects[0] == SaveSetting("openai_model", "gpt-4o", "global")

    _, effects = dispatch(state, Command(CommandType.UPDATE_CONFIG, key="project_root", value="/"))
    assert effects[0].code == ErrorCode.INVALID_SETTING


def test_ready_returns_catalog(tmp_path):
    write_locale(tmp_path / "i18n", "en", {"a": "A"})
    session = _session(tmp_path)

    [response] = session.handle(Command(CommandType.READY))

    assert response.type == ResponseType.INIT
    assert response.payload.status == CatalogStatus.OK
    assert response.payload.has_api_key
    assert response.payload.catalog.values == {"a": {"en": "A"}}


def test_init_catalog_seeds_empty_project(tmp_path):
    session = _session(tmp_path)
    [response] = session.handle(Command(CommandType.INIT_CATALOG))
    assert response.payload.status == CatalogStatus.OK
    assert read_locale(tmp_path / "i18n", "en") == {"app": {"title": "App Title"}}


def test_update_value_and_add_key(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    write_locale(i18n, "fr", {})
    session = _session(tmp_path)

    assert session.handle(Command(CommandType.UPDATE_VALUE, key="a", lang="fr", value="A-fr")) == []
    session.handle(Command(CommandType.ADD_KEY, key="b.c", source_lang="en", value="C"))

    assert read_locale(i18n, "fr") == {"a": "A-fr", "b": {"c": ""}}
    assert read_locale(i18n, "en") == {"a": "A", "b": {"c": "C"}}


def test_add_language_refuses_variant(tmp_path):
    write_locale(tmp_path / "i18n", "en", {"a": "A"})
    session = _session(tmp_path)

    [error] = session.handle(Command(CommandType.ADD_LANGUAGE, lang="EN"))
    assert error.type == ResponseType.ERROR
    assert not (tmp_path / "i18n" / "EN.json").exists()

    [init] = session.handle(Command(CommandType.ADD_LANGUAGE, lang="de"))
    assert init.payload.catalog.language_codes == ["en", "de"]


def test_record_usage_persists(tmp_path):
    session = _session(tmp_path)
    [response] = session.handle(Command(CommandType.RECORD_TOKEN_USAGE, usage=_usage()))

    assert response.type == ResponseType.TOKEN_REPORT
    assert response.payload.total_tokens == 15
    assert session.tracker.load_report().total_tokens == 15


def test_update_config_writes_global_yaml(tmp_path):
    session = _session(tmp_path)
    session.handle(Command(CommandType.UPDATE_CONFIG, key="i18n_folder", value="locales"))

    assert session.settings.i18n_folder == "locales"
    assert yaml.safe_load((tmp_path / "global.yaml").read_text(encoding="utf-8")) == {
        "i18n_folder": "locales",
    }
    assert session.store.i18n_folder == "locales"


def test_batch_translator_reports_usage(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    write_locale(i18n, "fr", {})
    session = _session(tmp_path)
    catalog = session.load_catalog()

    batch = session.batch_translator(FakeTranslator(), sleep=lambda s: None)
    result = batch.translate_missing_for_key(catalog, "a", session.active_languages(catalog), "en")

    assert result.ok
    assert session.token_report.requests == 1
    assert session.token_report.per_language == {"fr": 15}
    assert read_locale(i18n, "fr") == {"a": "[fr] A"}


def test_active_languages_filter(tmp_path):
    i18n = tmp_path / "i18n"
    for code in ("en", "fr", "de"):
        write_locale(i18n, code, {})
    session = _session(tmp_path, active_languages=["de", "en", "xx"])
    catalog = session.load_catalog()
    assert session.active_languages(catalog) == ["en", "de"]


def test_add_existing_key_is_error(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    session = _session(tmp_path)

    [error] = session.handle(Command(CommandType.ADD_KEY, key="a", value="Other"))
    assert error.type == ResponseType.ERROR
    assert error.payload.code == ErrorCode.DUPLICATE_KEY
    assert read_locale(i18n, "en") == {"a": "A"}


def test_update_value_is_coalesced(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    session = _session(tmp_path, write_window=60.0)

    session.handle(Command(CommandType.UPDATE_VALUE, key="a", lang="en", value="A1"))
    session.handle(Command(CommandType.UPDATE_VALUE, key="a", lang="en", value="A2"))
    assert read_locale(i18n, "en") == {"a": "A"}

    catalog = session.load_catalog()
    assert catalog.get("a", "en") == "A2"
    assert read_locale(i18n, "en") == {"a": "A2"}


def test_pending_edits_flushed_before_folder_change(tmp_path):
    write_locale(tmp_path / "i18n", "en", {"a": "A"})
    session = _session(tmp_path, write_window=60.0)

    session.handle(Command(CommandType.UPDATE_VALUE, key="a", lang="en", value="A1"))
    session.handle(Command(CommandType.UPDATE_CONFIG, key="i18n_folder", value="locales"))

    assert read_locale(tmp_path / "i18n", "en") == {"a": "A1"}
    session.close()
    assert session.coalescer.pending == {}
