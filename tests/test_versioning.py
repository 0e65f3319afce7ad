"""Tests for version comparison and history helpers."""

import itertools

from prompt_registry.versioning import (
    compare_versions,
    parse_version,
    sort_versions,
    suggest_next_version,
    version_tree,
)

SAMPLES = ["0", "1", "1.0", "1.0.0", "1.2", "1.2.0", "1.10", "2.0.0", "1.9.9", "abc", ""]


def test_compare_basic_ordering():
    assert compare_versions("2.0.0", "1.9.9") == 1
    assert compare_versions("1.9.9", "2.0.0") == -1
    assert compare_versions("1.10.0", "1.9.0") == 1


def test_missing_components_are_zero():
    assert compare_versions("1.2", "1.2.0") == 0
    assert compare_versions("1.0", "1.0.0") == 0
    assert compare_versions("1", "1.0.1") == -1


def test_compare_is_reflexive_and_antisymmetric():
    for a in SAMPLES:
        assert compare_versions(a, a) == 0
    for a, b in itertools.product(SAMPLES, repeat=2):
        assert compare_versions(a, b) == -compare_versions(b, a)


def test_compare_is_transitive():
    for a, b, c in itertools.product(SAMPLES, repeat=3):
        if compare_versions(a, b) <= 0 and compare_versions(b, c) <= 0:
            assert compare_versions(a, c) <= 0


def test_malformed_versions_never_raise():
    assert parse_version("1.x.3") == (1, 0, 3)
    assert parse_version("1.-2") == (1, 0)
    assert compare_versions(None, "0.0") == 0
    assert compare_versions("abc", "0") == 0
    assert compare_versions(12, "1") == -1
    assert parse_version("1_0.+3.\u0663") == (0, 0, 0)
    assert compare_versions("1_0.0", "2.0.0") == -1


def test_sort_versions():
    assert sort_versions(["1.10.0", "1.2.0", "1.9", "0.1"]) == ["0.1", "1.2.0", "1.9", "1.10.0"]
    assert sort_versions(["1.0", "2.0"], reverse=True) == ["2.0", "1.0"]


def test_suggest_next_version():
    assert suggest_next_version("1.2.3") == "1.2.4"
    assert suggest_next_version("1.2.3", fix=True) == "1.2.4"
    assert suggest_next_version("1.2.3", feature=True) == "1.3.0"
    assert suggest_next_version("1.2.3", breaking=True, feature=True) == "2.0.0"
    assert suggest_next_version("1") == "1.0.1"


def test_version_tree_links_neighbours():
    entry = {
        "latest": "1.10.0",
        "versions": {
            "1.10.0": {"prompt": "c"},
            "1.2.0": {"prompt": "a"},
            "1.9.0": {"prompt": "b"},
        },
    }
    tree = version_tree(entry)

    assert list(tree["versions"]) == ["1.2.0", "1.9.0", "1.10.0"]
    assert tree["versions"]["1.2.0"]["previous"] is None
    assert tree["versions"]["1.9.0"]["previous"] == "1.2.0"
    assert tree["versions"]["1.9.0"]["next"] == "1.10.0"
    assert tree["versions"]["1.10.0"]["next"] is None
    assert "previous" not in entry["versions"]["1.2.0"]
