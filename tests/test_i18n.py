from i18n import STRINGS, tr


def test_known_key():
    assert tr("tab_search") == "Search"


def test_placeholders_are_filled():
    assert tr("search_results", 3, "vim") == '3 results for "vim"'


def test_unknown_key_returns_key():
    assert tr("no_such_string") == "no_such_string"


def test_missing_arguments_return_template():
    assert tr("search_results", 3) == STRINGS["search_results"]


def test_status_labels_exist_for_every_task_status():
    from task_queue import TaskStatus

    for status in TaskStatus:
        assert f"status_{status.value}" in STRINGS


def test_update_scopes_have_labels():
    for scope in ("all", "repo-only", "aur-only"):
        assert f"scope_{scope}" in STRINGS
