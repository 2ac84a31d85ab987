from kraken_i18n.keypath import flatten, get_value, has_path, set_value, unflatten


def test_flatten_nested_string_leaves():
    tree = {"app": {"title": "Hello", "menu": {"open": "Open"}}, "ok": "OK"}
    assert flatten(tree) == {"app.title": "Hello", "app.menu.open": "Open", "ok": "OK"}


def test_flatten_drops_arrays_and_non_strings():
    tree = {"list": ["a", "b"], "n": 3, "flag": True, "none": None, "s": "x",
            "nested": {"items": [{"a": "b"}]}}
    assert flatten(tree) == {"s": "x"}


def test_flatten_non_dict_root():
    assert flatten(["a"]) == {}
    assert flatten("text") == {}


def test_set_value_creates_intermediate_nodes():
    tree = {}
    set_value(tree, "x.y.z", "Hi")
    assert tree == {"x": {"y": {"z": "Hi"}}}


def test_set_value_replaces_non_object_intermediate():
    tree = {"x": "plain", "y": ["a"]}
    set_value(tree, "x.a", "1")
    set_value(tree, "y.b", "2")
    assert tree == {"x": {"a": "1"}, "y": {"b": "2"}}


def test_set_value_keeps_siblings():
    tree = {"app": {"title": "A", "subtitle": "B"}}
    set_value(tree, "app.title", "C")
    assert tree == {"app": {"title": "C", "subtitle": "B"}}


def test_empty_segments_are_kept():
    tree = {}
    set_value(tree, "a..b", "v")
    assert tree == {"a": {"": {"b": "v"}}}
    assert flatten(tree) == {"a..b": "v"}
    assert get_value(tree, "a..b") == "v"


def test_get_value_missing_path():
    tree = {"a": {"b": "c"}}
    assert get_value(tree, "a.b") == "c"
    assert get_value(tree, "a.x") is None
    assert get_value(tree, "a.b.c") is None


def test_unflatten_restores_tree():
    flat = {"app.title": "T", "app.menu.open": "O", "root": "R"}
    tree = unflatten(flat)
    assert tree == {"app": {"title": "T", "menu": {"open": "O"}}, "root": "R"}
    assert flatten(tree) == flat


def test_has_path_tells_null_from_missing():
    tree = {"a": {"b": None, "c": ""}}
    assert has_path(tree, "a.b")
    assert has_path(tree, "a.c")
    assert has_path(tree, "a")
    assert not has_path(tree, "a.d")
    assert not has_path(tree, "a.b.c")
    assert get_value(tree, "a.b") is None
