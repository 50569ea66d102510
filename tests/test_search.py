import pytest

from models import Package
from search import (
    SORT_NAME_ASC,
    SORT_NAME_DESC,
    SORT_REPOSITORY,
    filter_and_sort_packages,
    filter_updates,
    levenshtein_bounded,
    package_match_score,
    rank_packages_by_query,
    smart_search_packages,
)


def pkg(name, description="", repository="extra"):
    return Package(name=name, version="1.0-1", description=description, repository=repository)


@pytest.mark.parametrize("a, b, max_dist, expected", [
    ("firefox", "firefox", 2, 0),
    ("firefox", "firefix", 2, 1),
    ("kitten", "sitting", 3, 3),
    ("kitten", "sitting", 2, None),
    ("", "abc", 4, 3),
    ("a", "abcdefgh", 4, None),
])
def test_levenshtein_bounded(a, b, max_dist, expected):
    assert levenshtein_bounded(a, b, max_dist) == expected


def test_package_match_score_ordering():
    assert package_match_score(pkg("vim"), "vim") == 0
    assert package_match_score(pkg("vim-plug"), "vim") == 1
    assert package_match_score(pkg("gvim"), "vim") == 2
    assert package_match_score(pkg("neovim-qt", "vim GUI"), "VIM ") == 2
    assert package_match_score(pkg("emacs", "not vim at all"), "vim") == 3
    assert package_match_score(pkg("firefix"), "firefox") == 11
    assert package_match_score(pkg("completely-unrelated"), "vim") == 20


def test_rank_packages_by_query_sorts_and_limits():
    pkgs = [pkg("gvim"), pkg("vim-plug"), pkg("vim"), pkg("avim")]

    ranked = rank_packages_by_query(pkgs, "vim", 3)

    assert [p.name for p in ranked] == ["vim", "vim-plug", "avim"]


def test_smart_search_returns_direct_results():
    calls = []

    def search(query, limit):
        calls.append((query, limit))
        return [pkg("firefox-nightly"), pkg("firefox")]

    result = smart_search_packages(" firefox ", 10, search=search)

    assert [p.name for p in result] == ["firefox", "firefox-nightly"]
    assert calls == [("firefox", 10)]


def test_smart_search_falls_back_to_prefix_for_typos():
    calls = []

    def search(query, limit):
        calls.append((query, limit))
        if query == "fir":
            return [pkg("firejail"), pkg("firefox")]
        return []

    result = smart_search_packages("firefxo", 200, search=search)

    assert calls == [("firefxo", 200), ("fir", 500)]
    assert result[0].name == "firefox"


def test_smart_search_short_query_has_no_fallback():
    calls = []

    def search(query, limit):
        calls.append(query)
        return []

    assert smart_search_packages("ab", 50, search=search) == []
    assert calls == ["ab"]


def test_filter_and_sort_packages():
    pkgs = [
        pkg("zsh", "Z shell", "extra"),
        pkg("bash", "Bourne shell", "core"),
        pkg("yay", "AUR helper", "aur"),
    ]

    assert [p.name for p in filter_and_sort_packages(pkgs, "", SORT_NAME_ASC)] == ["bash", "yay", "zsh"]
    assert [p.name for p in filter_and_sort_packages(pkgs, "", SORT_NAME_DESC)] == ["zsh", "yay", "bash"]
    assert [p.name for p in filter_and_sort_packages(pkgs, "", SORT_REPOSITORY)] == ["yay", "bash", "zsh"]
    assert [p.name for p in filter_and_sort_packages(pkgs, "SHELL", SORT_NAME_ASC)] == ["bash", "zsh"]


def test_filter_updates_scope_and_ignores():
    updates = [pkg("linux", repository="core"), pkg("yay", repository="aur"), pkg("Mesa", repository="extra")]

    assert [p.name for p in filter_updates(updates, "all", [])] == ["linux", "yay", "Mesa"]
    assert [p.name for p in filter_updates(updates, "repo-only", [])] == ["linux", "Mesa"]
    assert [p.name for p in filter_updates(updates, "aur-only", [])] == ["yay"]
    assert [p.name for p in filter_updates(updates, "all", [" mesa ", ""])] == ["linux", "yay"]
