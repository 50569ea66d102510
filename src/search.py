from typing import Callable, Iterable, List, Optional

import paru
from logger import get_logger
from models import Package

log = get_logger("search")

MAX_TYPO_DISTANCE = 4
PREFIX_LENGTH = 3
MAX_PREFIX_RESULTS = 500

SORT_NAME_ASC = 0
SORT_NAME_DESC = 1
SORT_REPOSITORY = 2


def levenshtein_bounded(a: str, b: str, max_dist: int) -> Optional[int]:
    """Edit distance between *a* and *b*, or None once it must exceed *max_dist*."""
    if abs(len(a) - len(b)) > max_dist:
        return None
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i] + [0] * len(b)
        row_min = curr[0]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr[j] = min(prev[j] + 1, curr[j - 1] + 1, prev[j - 1] + cost)
            row_min = min(row_min, curr[j])
        if row_min > max_dist:
            return None
        prev = curr

    dist = prev[-1]
    return dist if dist <= max_dist else None


def package_match_score(pkg: Package, query: str) -> int:
    """Lower is better; exact names first, then prefixes, substrings and typos."""
    q = query.strip().lower()
    name = pkg.name.lower()
    if name == q:
        return 0
    if name.startswith(q):
        return 1
    if q in name:
        return 2
    if q in pkg.description.lower():
        return 3
    dist = levenshtein_bounded(name, q, MAX_TYPO_DISTANCE)
    return 20 if dist is None else 10 + dist


def rank_packages_by_query(pkgs: Iterable[Package], query: str, limit: int) -> List[Package]:
    ranked = sorted(pkgs, key=lambda p: (package_match_score(p, query), p.name.lower()))
    return ranked[:limit]


def smart_search_packages(
    query: str,
    limit: int,
    search: Callable[..., List[Package]] = paru.search_packages,
) -> List[Package]:
    """Search paru, retrying with a short prefix when a typo returns nothing."""
    query = query.strip()
    direct = rank_packages_by_query(search(query, limit), query, limit)
    if direct or len(query) < PREFIX_LENGTH:
        return direct

    prefix = query[:PREFIX_LENGTH]
    log.debug("No results for %r, retrying with prefix %r", query, prefix)
    broad = search(prefix, min(limit * 3, MAX_PREFIX_RESULTS))
    return rank_packages_by_query(broad, query, limit)


def filter_and_sort_packages(pkgs: Iterable[Package], query: str, sort_idx: int) -> List[Package]:
    q = query.strip().lower()
    if q:
        out = [p for p in pkgs if q in p.name.lower() or q in p.description.lower()]
    else:
        out = list(pkgs)

    if sort_idx == SORT_NAME_ASC:
        out.sort(key=lambda p: p.name.lower())
    elif sort_idx == SORT_NAME_DESC:
        out.sort(key=lambda p: p.name.lower(), reverse=True)
    elif sort_idx == SORT_REPOSITORY:
        out.sort(key=lambda p: (p.repository.lower(), p.name.lower()))
    return out


def filter_updates(pkgs: Iterable[Package], scope: str, ignored: Iterable[str]) -> List[Package]:
    """Apply the update scope (all, repo-only, aur-only) and the ignore list."""
    if scope == "repo-only":
        out = [p for p in pkgs if not p.is_aur]
    elif scope == "aur-only":
        out = [p for p in pkgs if p.is_aur]
    else:
        out = list(pkgs)

    skip = {name.strip().lower() for name in ignored if name.strip()}
    return [p for p in out if p.name.lower() not in skip]
