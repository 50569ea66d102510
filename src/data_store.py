import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from logger import get_logger
from models import Package
from settings import config_dir

log = get_logger("data_store")

MAX_RECENT_SEARCHES = 12
MIN_QUERY_LENGTH = 2


class DataStore:
    """Favorites, search history and cached package lists in one JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.data_file = Path(path) if path else config_dir() / "data.json"
        self.favorite_names: List[str] = []
        self.recent: List[str] = []
        self.search_counts: Dict[str, int] = {}
        self.installed_cache: List[Package] = []
        self.updates_cache: List[Package] = []
        self.installed_cache_at: Optional[int] = None
        self.updates_cache_at: Optional[int] = None
        self.load()

    def load(self):
        if not self.data_file.exists():
            return
        try:
            with open(self.data_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("Could not read %s, starting fresh: %s", self.data_file, e)
            return
        if not isinstance(data, dict):
            return

        self.favorite_names = sorted({str(n) for n in data.get("favorites", []) if n})
        self.recent = [str(q) for q in data.get("recent_searches", [])][:MAX_RECENT_SEARCHES]
        counts = data.get("search_counts", {})
        if isinstance(counts, dict):
            self.search_counts = {
                str(k): int(v) for k, v in counts.items() if isinstance(v, (int, float))
            }
        self.installed_cache = self._packages(data.get("cached_installed"))
        self.updates_cache = self._packages(data.get("cached_updates"))
        self.installed_cache_at = data.get("cached_installed_at")
        self.updates_cache_at = data.get("cached_updates_at")

    @staticmethod
    def _packages(raw: Any) -> List[Package]:
        if not isinstance(raw, list):
            return []
        return [Package.from_dict(item) for item in raw if isinstance(item, dict)]

    def save(self):
        data = {
            "favorites": self.favorite_names,
            "recent_searches": self.recent,
            "search_counts": self.search_counts,
            "cached_installed": [p.to_dict() for p in self.installed_cache],
            "cached_updates": [p.to_dict() for p in self.updates_cache],
            "cached_installed_at": self.installed_cache_at,
            "cached_updates_at": self.updates_cache_at,
        }
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            log.error("Error while saving %s: %s", self.data_file, e)

    # ---- favorites ----

    def toggle_favorite(self, name: str) -> bool:
        if name in self.favorite_names:
            self.favorite_names.remove(name)
            state = False
        else:
            self.favorite_names = sorted(set(self.favorite_names) | {name})
            state = True
        self.save()
        return state

    def is_favorite(self, name: str) -> bool:
        return name in self.favorite_names

    def favorites(self) -> List[str]:
        return list(self.favorite_names)

    # ---- search history ----

    def record_search(self, query: str):
        query = query.strip().lower()
        if len(query) < MIN_QUERY_LENGTH:
            return
        if query in self.recent:
            self.recent.remove(query)
        self.recent.insert(0, query)
        self.recent = self.recent[:MAX_RECENT_SEARCHES]
        self.search_counts[query] = self.search_counts.get(query, 0) + 1
        self.save()

    def recent_searches(self, limit: int = MAX_RECENT_SEARCHES) -> List[str]:
        return self.recent[:limit]

    def trending_searches(self, limit: int = 5) -> List[str]:
        ranked = sorted(self.search_counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return [q for q, _ in ranked[:limit]]

    # ---- cached package lists ----

    def set_cached_installed(self, pkgs: List[Package]):
        self.installed_cache = list(pkgs)
        self.installed_cache_at = int(time.time())
        self.save()

    def set_cached_updates(self, pkgs: List[Package]):
        self.updates_cache = list(pkgs)
        self.updates_cache_at = int(time.time())
        self.save()

    def cached_installed(self) -> List[Package]:
        return list(self.installed_cache)

    def cached_updates(self) -> List[Package]:
        return list(self.updates_cache)

    def cached_installed_at(self) -> Optional[int]:
        return self.installed_cache_at

    def cached_updates_at(self) -> Optional[int]:
        return self.updates_cache_at

    def newest_cache_timestamp(self) -> Optional[int]:
        stamps = [t for t in (self.installed_cache_at, self.updates_cache_at) if t is not None]
        return max(stamps) if stamps else None
