import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from logger import get_logger

log = get_logger("settings")

TERMINALS = ["gnome-terminal", "konsole", "xterm", "xfce4-terminal", "alacritty"]

AUTO_REFRESH_INTERVALS = {
    "15m": 15 * 60,
    "30m": 30 * 60,
    "1h": 60 * 60,
    "6h": 6 * 60 * 60,
}

STARTUP_TABS = ["dashboard", "search", "installed", "updates", "watchlist"]


def config_dir() -> Path:
    override = os.environ.get("PARUT_CONFIG_DIR")
    if override:
        return Path(override)
    base = os.environ.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "parut"


class Settings:
    """Central settings management with sensible defaults."""

    DEFAULTS = {
        # Notifications
        "notifications_enabled": True,
        "notify_on_task_complete": False,
        "notify_on_task_failed": True,

        # Startup
        "check_updates_on_startup": True,
        "startup_tab": "dashboard",  # dashboard, search, installed, updates, watchlist

        # Refresh & cache
        "auto_refresh_interval": "off",  # off, 15m, 30m, 1h, 6h
        "refresh_on_network_reconnect": True,
        "cache_ttl_minutes": 60,

        # Search & lists
        "search_result_limit": 100,  # 50, 100, 250, 500
        "default_sort_search": 0,
        "default_sort_installed": 0,
        "show_package_sizes_in_lists": False,
        "show_package_details_on_single_click": False,
        "open_links_in_external_browser": True,

        # Confirmations
        "confirm_actions": True,
        "confirm_remove": True,
        "confirm_update_all": True,
        "confirm_clean_cache": True,
        "confirm_remove_orphans": True,
        "confirm_batch_install": True,
        "confirm_batch_remove": True,

        # AUR review
        "aur_pkgbuild_required": True,
        "always_show_pkgbuild_for_aur": False,

        # Updates
        "show_only_updates_from": "all",  # all, repo-only, aur-only
        "default_update_scope": "all",  # all, repo-only, aur-only
        "ignored_updates": [],

        # Task execution
        "execution_mode": "embedded",  # "embedded" or "terminal"
        "terminal_preference": "auto",
        "max_parallel_tasks": 1,
        "task_output_lines_limit": 300,
        "auto_clear_completed_tasks_minutes": 0,  # 0, 5, 15, 60

        # Logging
        "log_level": "info",  # error, warn, info, debug
        "max_log_size_mb": 10,

        # Dashboard
        "show_arch_news": True,
        "arch_news_items": 5,
        "show_arch_news_dates": True,
    }

    def __init__(self, directory: Optional[Path] = None):
        self.config_dir = Path(directory) if directory else config_dir()
        self.config_file = self.config_dir / "settings.json"
        self._data: Dict[str, Any] = {}
        self.load()

    def load(self):
        """Load settings from file and fall back to defaults."""
        self._data = json.loads(json.dumps(self.DEFAULTS))

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    user_data = json.load(f)
                if isinstance(user_data, dict):
                    self._data.update(user_data)
            except (OSError, ValueError) as e:
                log.warning("Could not load settings: %s", e)

    def save(self):
        """Persist the current settings."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            log.error("Error while saving settings: %s", e)

    def get(self, key: str, default=None) -> Any:
        """Retrieve a setting value."""
        if default is None:
            default = self.DEFAULTS.get(key)
        return self._data.get(key, default)

    def set(self, key: str, value: Any):
        """Store a setting value."""
        self._data[key] = value

    def update(self, **values: Any):
        """Store several values and save immediately."""
        self._data.update(values)
        self.save()

    def reset_to_defaults(self):
        """Reset all settings."""
        self._data = json.loads(json.dumps(self.DEFAULTS))
        self.save()

    # ---- Convenience methods ----

    def _int(self, key: str) -> int:
        try:
            return int(self.get(key))
        except (TypeError, ValueError):
            return int(self.DEFAULTS[key])

    def auto_refresh_seconds(self) -> Optional[int]:
        """Auto refresh period in seconds, or None when switched off."""
        return AUTO_REFRESH_INTERVALS.get(self.get("auto_refresh_interval"))

    def output_lines_limit(self) -> int:
        return max(self._int("task_output_lines_limit"), 50)

    def max_parallel(self) -> int:
        return max(self._int("max_parallel_tasks"), 1)

    def cache_ttl_minutes(self) -> int:
        return max(self._int("cache_ttl_minutes"), 0)

    def auto_clear_minutes(self) -> int:
        return max(self._int("auto_clear_completed_tasks_minutes"), 0)

    def ignored_update_names(self) -> List[str]:
        raw = self.get("ignored_updates") or []
        if isinstance(raw, str):
            raw = raw.split(",")
        return [str(name).strip() for name in raw if str(name).strip()]

    def startup_tab(self) -> str:
        tab = self.get("startup_tab")
        return tab if tab in STARTUP_TABS else "dashboard"

    def terminal_candidates(self) -> List[str]:
        """Terminal emulators in the order they should be tried."""
        preferred = self.get("terminal_preference", "auto")
        terminals = list(TERMINALS)
        if preferred and preferred != "auto":
            terminals = [t for t in terminals if t != preferred]
            terminals.insert(0, preferred)
        return terminals


# Global instance
settings = Settings()
