import pytest

import paru
from conftest import FakeCompleted


def test_search_packages_returns_parsed_results(fake_run):
    fake_run.responses["paru -Ss"] = "aur/foo 1.0-1\n    Foo tool\naur/foo-git r10-1\n    Foo from git\n"

    pkgs = paru.search_packages("foo")

    assert [p.name for p in pkgs] == ["foo", "foo-git"]
    assert fake_run.calls == [["paru", "-Ss", "foo"]]


def test_search_packages_applies_limit(fake_run):
    fake_run.responses["paru -Ss"] = "".join(f"aur/p{i} 1-1\n    d\n" for i in range(5))

    assert len(paru.search_packages("p", limit=3)) == 3


def test_search_packages_exit_one_without_output_is_empty(fake_run):
    fake_run.responses["paru -Ss"] = FakeCompleted("", 1)

    assert paru.search_packages("nothing-matches") == []
    assert paru.consume_errors() == []


def test_search_packages_failure_raises(fake_run):
    fake_run.responses["paru -Ss"] = FakeCompleted("", 2, "error: database locked")

    with pytest.raises(paru.ParuError, match="database locked"):
        paru.search_packages("foo")

    errors = paru.consume_errors()
    assert errors[0]["command"] == "paru -Ss foo"
    assert errors[0]["message"] == "exit-code 2"


def test_missing_binary_is_recorded(fake_run):
    fake_run.responses["paru -Ss"] = FileNotFoundError("paru")

    with pytest.raises(paru.ParuError):
        paru.search_packages("foo")

    assert paru.consume_errors()[0]["message"] == "not-found"
    assert paru.consume_errors() == []


def test_list_installed_merges_descriptions_and_origin(fake_run):
    fake_run.responses.update({
        "pacman -Q": "bash 5.2-1\nyay-bin 12.3-1\n",
        "pacman -Qi": (
            "Name            : bash\nDescription     : The GNU shell\n\n"
            "Name            : yay-bin\nDescription     : AUR helper\n"
        ),
        "pacman -Qm": "yay-bin 12.3-1\n",
    })

    pkgs = paru.list_installed()

    assert [(p.name, p.repository, p.description) for p in pkgs] == [
        ("bash", "repo", "The GNU shell"),
        ("yay-bin", "aur", "AUR helper"),
    ]


def test_list_installed_failure_raises(fake_run):
    fake_run.responses["pacman -Q"] = FakeCompleted("", 1, "boom")

    with pytest.raises(paru.ParuError):
        paru.list_installed()


def test_list_updates_with_checkupdates(fake_run, monkeypatch):
    monkeypatch.setattr(paru, "_which", lambda cmd: True)
    fake_run.responses.update({
        "checkupdates": "linux 6.9.6-1 -> 6.9.7-1\n",
        "paru -Qu --noconfirm -a": FakeCompleted("yay 12.3.0-1 -> 12.3.1-1\n", 1),
    })

    pkgs = paru.list_updates()

    assert [(p.name, p.repository) for p in pkgs] == [("linux", "repo"), ("yay", "aur")]
    assert ["paru", "-Qu", "--noconfirm", "-a"] in fake_run.calls


def test_list_updates_without_checkupdates_resolves_repositories(fake_run, monkeypatch):
    monkeypatch.setattr(paru, "_which", lambda cmd: False)
    fake_run.responses.update({
        "paru -Qu --noconfirm": "linux 6.9.6-1 -> 6.9.7-1\nyay 12.3.0-1 -> 12.3.1-1\nmesa 24.1-1 -> 24.2-1\n",
        "pacman -Qm": "yay 12.3.0-1\n",
        "pacman -Si": "Repository      : core\nName            : linux\n\nName            : mesa\n",
    })

    pkgs = paru.list_updates()

    assert {p.name: p.repository for p in pkgs} == {"linux": "core", "yay": "aur", "mesa": "core"}
    assert ["pacman", "-Si", "linux", "mesa"] in fake_run.calls


def test_list_updates_nothing_pending(fake_run, monkeypatch):
    monkeypatch.setattr(paru, "_which", lambda cmd: True)
    fake_run.responses.update({
        "checkupdates": FakeCompleted("", 2),
        "paru -Qu --noconfirm -a": FakeCompleted("", 1),
    })

    assert paru.list_updates() == []
    assert paru.consume_errors() == []


def test_get_pkgbuild(fake_run):
    fake_run.responses["paru -Gp"] = "pkgname=foo\npkgver=1.0\n"

    assert paru.get_pkgbuild("foo").startswith("pkgname=foo")


def test_get_pkgbuild_errors(fake_run):
    fake_run.responses["paru -Gp"] = FakeCompleted("", 1, "no such package")
    with pytest.raises(paru.ParuError, match="no such package"):
        paru.get_pkgbuild("missing")

    fake_run.responses["paru -Gp"] = "   \n"
    with pytest.raises(paru.ParuError, match="empty"):
        paru.get_pkgbuild("blank")


def test_get_package_details_uses_local_query_when_installed(fake_run):
    fake_run.responses.update({
        "pacman -Qi": "Name : foo\n",
        "paru -Qi": "Name            : foo\nVersion         : 1.0-1\n",
    })

    details = paru.get_package_details("foo")

    assert details.version == "1.0-1"
    assert ["paru", "-Qi", "foo"] in fake_run.calls


def test_get_package_details_failure(fake_run):
    with pytest.raises(paru.ParuError):
        paru.get_package_details("ghost")


def test_package_size_text_prefers_installed_size(fake_run):
    fake_run.responses["pacman -Si"] = "Name            : foo\nDownload Size   : 2.00 MiB\n"
    assert paru.package_size_text("foo") == "Size: 2.00 MiB"

    fake_run.responses["pacman -Qi"] = "Name            : foo\nInstalled Size  : 8.00 MiB\n"
    assert paru.package_size_text("foo") == "Size: 8.00 MiB"


def test_estimate_cleanup(fake_run):
    fake_run.responses.update({
        "du -sb /var/cache/pacman/pkg": "1048576\t/var/cache/pacman/pkg\n",
        "pacman -Qtdq": "orphan-a\norphan-b\n",
    })

    estimate = paru.estimate_cleanup()

    assert estimate.pacman_cache_bytes == 1048576
    assert estimate.paru_clone_bytes == 0
    assert estimate.orphan_count == 2
    assert estimate.total_bytes == 1048576


def test_is_aur_package(fake_run):
    fake_run.responses["pacman -Si firefox"] = "Name : firefox\n"
    assert not paru.is_aur_package("firefox")
    assert paru.is_aur_package("yay")


def test_aur_packages_keeps_names_missing_from_sync_repos(fake_run):
    fake_run.responses["pacman -Si firefox"] = "Name : firefox\n"
    assert paru.aur_packages(["firefox", "yay", "paru-bin"]) == {"yay", "paru-bin"}
