import json

from settings import AUTO_REFRESH_INTERVALS, Settings


def test_defaults_without_file(config):
    assert config.get("execution_mode") == "embedded"
    assert config.get("max_parallel_tasks") == 1
    assert config.auto_refresh_seconds() is None
    assert config.startup_tab() == "dashboard"


def test_update_saves_and_reloads(tmp_path):
    directory = tmp_path / "config"
    Settings(directory).update(search_result_limit=250, confirm_remove=False)

    reloaded = Settings(directory)

    assert reloaded.get("search_result_limit") == 250
    assert reloaded.get("confirm_remove") is False
    assert reloaded.get("confirm_update_all") is True


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    directory = tmp_path / "config"
    directory.mkdir()
    (directory / "settings.json").write_text("[broken", encoding="utf-8")

    assert Settings(directory).get("log_level") == "info"


def test_reset_to_defaults(config):
    config.update(log_level="debug")
    config.reset_to_defaults()

    assert config.get("log_level") == "info"
    saved = json.loads(config.config_file.read_text(encoding="utf-8"))
    assert saved["log_level"] == "info"


def test_defaults_are_not_shared_between_instances(tmp_path):
    first = Settings(tmp_path / "a")
    first.get("ignored_updates").append("linux")

    assert Settings(tmp_path / "b").get("ignored_updates") == []


def test_numeric_helpers_clamp_and_recover(config):
    config.set("max_parallel_tasks", 0)
    config.set("task_output_lines_limit", 10)
    config.set("cache_ttl_minutes", "garbage")
    config.set("auto_clear_completed_tasks_minutes", -5)

    assert config.max_parallel() == 1
    assert config.output_lines_limit() == 50
    assert config.cache_ttl_minutes() == 60
    assert config.auto_clear_minutes() == 0


def test_auto_refresh_seconds(config):
    for key, seconds in AUTO_REFRESH_INTERVALS.items():
        config.set("auto_refresh_interval", key)
        assert config.auto_refresh_seconds() == seconds


def test_ignored_update_names_accepts_list_or_string(config):
    config.set("ignored_updates", [" linux ", "", "mesa"])
    assert config.ignored_update_names() == ["linux", "mesa"]

    config.set("ignored_updates", "linux, nvidia ,")
    assert config.ignored_update_names() == ["linux", "nvidia"]


def test_unknown_startup_tab_falls_back(config):
    config.set("startup_tab", "nowhere")
    assert config.startup_tab() == "dashboard"


def test_terminal_candidates_put_preference_first(config):
    config.set("terminal_preference", "alacritty")
    candidates = config.terminal_candidates()

    assert candidates[0] == "alacritty"
    assert candidates.count("alacritty") == 1
