import pytest
from conftest import read_locale, write_locale

from kraken_i18n.catalog import (
    SEED_DOCUMENT,
    Catalog,
    CatalogStatus,
    CatalogStore,
    coverage,
    find_folder_by_name,
    read_json_file,
)
from kraken_i18n.errors import DuplicateKeyError, ErrorCode


def test_load_builds_dense_table(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"app": {"title": "Title", "ok": "OK"}})
    write_locale(i18n, "fr", {"app": {"title": "Titre"}, "extra": "Extra"})

    catalog = CatalogStore(tmp_path).load_catalog()

    assert catalog.status == CatalogStatus.OK
    assert catalog.language_codes == ["en", "fr"]
    assert [k.id for k in catalog.keys] == ["app.ok", "app.title", "extra"]
    assert catalog.values["app.ok"] == {"en": "OK", "fr": ""}
    assert catalog.values["extra"] == {"en": "", "fr": "Extra"}
    assert catalog.source_language_code == "en"
    # файлы не изменяются при чтении
    assert read_locale(i18n, "fr") == {"app": {"title": "Titre"}, "extra": "Extra"}


def test_source_falls_back_to_first_language(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "fr", {"a": "A"})
    write_locale(i18n, "de", {"a": "A"})

    catalog = CatalogStore(tmp_path, source_language="en").load_catalog()
    assert catalog.language_codes == ["fr", "de"]
    assert catalog.source_language_code == "fr"


def test_bom_and_corrupt_files(tmp_path):
    i18n = tmp_path / "i18n"
    i18n.mkdir()
    (i18n / "en.json").write_text('\ufeff{"a": "Hello"}', encoding="utf-8")
    (i18n / "fr.json").write_text("{not json", encoding="utf-8")
    (i18n / "de.json").write_text('["a"]', encoding="utf-8")
    (i18n / "it.json").write_bytes(b'{"a": "caf\xe9"}')

    catalog = CatalogStore(tmp_path).load_catalog()
    assert catalog.status == CatalogStatus.OK
    assert catalog.values == {"a": {"en": "Hello", "fr": "", "de": "", "it": ""}}
    assert read_json_file(i18n / "missing.json") == {}


def test_status_missing_workspace():
    catalog = CatalogStore(None).load_catalog()
    assert catalog.status == CatalogStatus.MISSING_WORKSPACE
    assert catalog.keys == []


def test_status_missing_folder(tmp_path):
    catalog = CatalogStore(tmp_path).load_catalog()
    assert catalog.status == CatalogStatus.MISSING_FOLDER
    assert catalog.message


def test_status_empty_folder(tmp_path):
    (tmp_path / "i18n").mkdir()
    catalog = CatalogStore(tmp_path).load_catalog()
    assert catalog.status == CatalogStatus.EMPTY_FOLDER
    assert catalog.directory == tmp_path / "i18n"


def test_resolve_prefers_configured_path(tmp_path):
    (tmp_path / "locales").mkdir()
    (tmp_path / "src" / "locales").mkdir(parents=True)
    store = CatalogStore(tmp_path, i18n_folder="locales")
    assert store.resolve_catalog_directory() == tmp_path / "locales"

    absolute = tmp_path / "elsewhere"
    absolute.mkdir()
    assert CatalogStore(tmp_path, i18n_folder=str(absolute)).resolve_catalog_directory() == absolute


def test_resolve_searches_tree_case_insensitive(tmp_path):
    (tmp_path / "node_modules" / "i18n").mkdir(parents=True)
    (tmp_path / ".hidden" / "i18n").mkdir(parents=True)
    (tmp_path / "packages" / "web" / "I18N").mkdir(parents=True)

    found = CatalogStore(tmp_path).resolve_catalog_directory()
    assert found == tmp_path / "packages" / "web" / "I18N"


def test_resolve_respects_depth(tmp_path):
    deep = tmp_path
    for i in range(8):
        deep = deep / f"d{i}"
    (deep / "i18n").mkdir(parents=True)

    assert find_folder_by_name(tmp_path, "i18n") is None
    assert find_folder_by_name(tmp_path, "i18n", max_depth=10) == deep / "i18n"


def test_write_cell_format(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"app": {"title": "Title"}})
    store = CatalogStore(tmp_path)

    path = store.write_cell("pt-BR", "app.title", "Título")

    assert path == i18n / "pt-BR.json"
    text = path.read_text(encoding="utf-8")
    assert text == '{\n  "app": {\n    "title": "Título"\n  }\n}\n'


def test_write_cell_without_project():
    assert CatalogStore(None).write_cell("en", "a", "b") is None


def test_add_key_is_idempotent(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {})
    store = CatalogStore(tmp_path)

    assert store.add_key("x.y", "en", "Hi") is True
    assert sorted(p.name for p in i18n.iterdir()) == ["en.json"]
    assert read_locale(i18n, "en") == {"x": {"y": "Hi"}}

    assert store.add_key("x.y", "en", "Other") is False
    assert read_locale(i18n, "en") == {"x": {"y": "Hi"}}


def test_add_key_fills_other_languages_with_empty(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    write_locale(i18n, "fr", {"a": "A-fr", "x": {"y": "déjà"}})
    store = CatalogStore(tmp_path)

    store.add_key("x.y", "en", "Hi")
    assert read_locale(i18n, "en") == {"a": "A", "x": {"y": "Hi"}}
    assert read_locale(i18n, "fr") == {"a": "A-fr", "x": {"y": "déjà"}}
    assert store.has_key("x.y")
    assert not store.has_key("x.z")


def test_add_language_file(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    store = CatalogStore(tmp_path)

    assert store.add_language_file("de") is True
    assert read_locale(i18n, "de") == {}
    assert store.add_language_file("de") is False
    assert store.list_language_codes() == ["en", "de"]


def test_seed_catalog(tmp_path):
    store = CatalogStore(tmp_path, source_language="en")

    assert store.seed_catalog() is True
    assert read_locale(tmp_path / "i18n", "en") == SEED_DOCUMENT
    assert store.seed_catalog() is False
    assert store.load_catalog().status == CatalogStatus.OK


def test_catalog_set_keeps_table_dense():
    catalog = Catalog()
    catalog.set("a", "en", "A")
    catalog.set("b", "fr", "B")
    assert catalog.values == {"a": {"en": "A", "fr": ""}, "b": {"en": "", "fr": "B"}}
    assert catalog.get("missing", "en") == ""


def test_coverage(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A", "b": "B"})
    write_locale(i18n, "fr", {"a": "A", "b": "  "})
    catalog = CatalogStore(tmp_path).load_catalog()
    assert coverage(catalog) == {"en": (2, 2), "fr": (1, 2)}


def test_create_key_rejects_duplicate(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    write_locale(i18n, "fr", {"x": {"y": "Y"}})
    store = CatalogStore(tmp_path)

    with pytest.raises(DuplicateKeyError) as info:
        store.create_key("x.y", "en", "Hi")
    assert info.value.code == ErrorCode.DUPLICATE_KEY
    assert read_locale(i18n, "en") == {"a": "A"}

    assert store.create_key("b", "en", "B") is True


def test_write_cell_replaces_undecodable_file(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"a": "A"})
    (i18n / "fr.json").write_bytes(b"\xff\xfe{}")
    store = CatalogStore(tmp_path)

    assert not store.has_key("b")
    store.write_cell("fr", "a", "A-fr")
    assert read_locale(i18n, "fr") == {"a": "A-fr"}


def test_null_leaf_counts_as_existing_key(tmp_path):
    i18n = tmp_path / "i18n"
    write_locale(i18n, "en", {"x": {"y": None}})
    store = CatalogStore(tmp_path)

    assert store.has_key("x.y")
    assert store.add_key("x.y", "en", "Hi") is False
    assert read_locale(i18n, "en") == {"x": {"y": None}}
