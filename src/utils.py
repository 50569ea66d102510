import shutil
import subprocess
import time
from typing import Optional

from logger import get_logger

log = get_logger("utils")


def send_notification(title: str, body: str, enabled: bool = True) -> None:
    """Show a desktop notification through notify-send when it is installed."""
    if not enabled:
        return
    if shutil.which("notify-send") is None:
        log.info("Notification skipped (notify-send not found): %s: %s", title, body)
        return
    try:
        subprocess.Popen(
            [
                "notify-send",
                "--app-name=Parut",
                "--icon=system-software-install",
                title,
                body,
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as exc:
        log.error("Failed to send notification: %s", exc)


def format_bytes(num: int) -> str:
    kb = 1024.0
    mb = kb * 1024
    gb = mb * 1024
    if num >= gb:
        return f"{num / gb:.1f} GB"
    if num >= mb:
        return f"{num / mb:.1f} MB"
    if num >= kb:
        return f"{num / kb:.1f} KB"
    return f"{num} B"


def format_duration(total_secs: int) -> str:
    total_secs = max(int(total_secs), 0)
    if total_secs < 60:
        return f"{total_secs}s"
    if total_secs < 3600:
        return f"{total_secs // 60}m {total_secs % 60}s"
    return f"{total_secs // 3600}h {(total_secs % 3600) // 60}m"


def _age_text(elapsed: int) -> str:
    if elapsed < 60:
        return "just now"
    if elapsed < 3600:
        return f"{elapsed // 60} min ago"
    if elapsed < 86400:
        return f"{elapsed // 3600} hr ago"
    return f"{elapsed // 86400} days ago"


def freshness_text(
    unix_ts: int,
    ttl_minutes: int,
    only_age: bool = False,
    now: Optional[int] = None,
) -> str:
    """Describe how old cached data is, flagging it once the TTL is exceeded."""
    now = int(time.time()) if now is None else now
    elapsed = max(now - unix_ts, 0)
    age = _age_text(elapsed)
    if only_age:
        return age
    if elapsed >= max(ttl_minutes * 60, 60):
        return f"Data synced {age} (stale)"
    return f"Data synced {age}"


def is_cache_within_ttl(unix_ts: int, ttl_minutes: int, now: Optional[int] = None) -> bool:
    if ttl_minutes <= 0:
        return True
    now = int(time.time()) if now is None else now
    return max(now - unix_ts, 0) <= ttl_minutes * 60
