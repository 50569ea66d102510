import os
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from logger import get_logger
from models import CleanupEstimate, Package, PackageDetails

log = get_logger("paru")

_run_errors: list[dict[str, str]] = []

PACMAN_CACHE_DIR = "/var/cache/pacman/pkg"

_ANSI_RE = re.compile(r"\x1B(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1B]*(?:\x07|\x1B\\)|[@-Z\\-_])")

DETAIL_KEYS = {
    "Name": "name",
    "Version": "version",
    "Description": "description",
    "Repository": "repository",
    "URL": "url",
    "Licenses": "licenses",
    "Groups": "groups",
    "Provides": "provides",
    "Depends On": "depends_on",
    "Optional Deps": "optional_deps",
    "Required By": "required_by",
    "Optional For": "optional_for",
    "Conflicts With": "conflicts_with",
    "Replaces": "replaces",
    "Installed Size": "installed_size",
    "Packager": "packager",
    "Build Date": "build_date",
    "Install Date": "install_date",
    "Install Reason": "install_reason",
    "Install Script": "install_script",
    "Validated By": "validated_by",
    "Votes": "votes",
    "Popularity": "popularity",
}


class ParuError(RuntimeError):
    """Raised when a paru/pacman query could not be completed."""


def _format_cmd(cmd: list[str]) -> str:
    return shlex.join(cmd)


def _record_error(cmd: list[str], message: str, stderr: str = "") -> None:
    log.warning("%s: %s %s", _format_cmd(cmd), message, stderr.strip())
    _run_errors.append({
        "command": _format_cmd(cmd),
        "message": message,
        "stderr": stderr.strip(),
    })


def consume_errors() -> list[dict[str, str]]:
    global _run_errors
    errors = list(_run_errors)
    _run_errors = []
    return errors


def _env(lang_c: bool) -> Optional[dict]:
    if not lang_c:
        return None
    env = os.environ.copy()
    env["LANG"] = "C"
    env["LC_ALL"] = "C"
    return env


def _run_with_code(
    cmd: list[str],
    ignore_exit_codes: Iterable[int] = (),
    lang_c: bool = False,
    record: bool = True,
) -> tuple[str, int, str]:
    """Run a command and return stdout, the exit code and stderr."""
    try:
        proc = subprocess.run(cmd, text=True, capture_output=True, check=False, env=_env(lang_c))
    except FileNotFoundError:
        if record:
            _record_error(cmd, "not-found")
        return "", -1, ""
    except OSError as exc:
        if record:
            _record_error(cmd, f"exception: {exc}")
        return "", -1, str(exc)

    if record and proc.returncode != 0 and proc.returncode not in ignore_exit_codes:
        details = proc.stderr.strip() or proc.stdout.strip()
        _record_error(cmd, f"exit-code {proc.returncode}", details)
    return proc.stdout, proc.returncode, proc.stderr


def _which(cmd: str) -> bool:
    """Return True if an executable command is available."""
    return shutil.which(cmd) is not None


# ---------------------------------------------------------------------------
# parsers
# ---------------------------------------------------------------------------

def strip_ansi(text: str) -> str:
    """Return *text* with ANSI escape sequences removed."""
    if "\x1b" not in text:
        return text
    return _ANSI_RE.sub("", text)


def _installed_marker(line: str, version: str) -> Optional[str]:
    marker = "[installed:"
    start = line.find(marker)
    if start != -1:
        start += len(marker)
        end = line.find("]", start)
        value = line[start:end].strip() if end != -1 else ""
        return value or version
    if "[installed]" in line:
        return version
    return None


def parse_search_output(output: str) -> List[Package]:
    """Parse ``paru -Ss`` output (header line + indented description)."""
    packages: List[Package] = []
    lines = strip_ansi(output).splitlines()

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        if not line:
            i += 1
            continue

        parts = line.split()
        if len(parts) >= 2 and "/" in parts[0]:
            repository, name = parts[0].split("/", 1)
            version = parts[1]
            description = lines[i + 1].strip() if i + 1 < len(lines) else ""
            packages.append(
                Package(
                    name=name,
                    version=version,
                    description=description,
                    repository=repository,
                    installed_version=_installed_marker(line, version),
                )
            )
            i += 2
            continue

        i += 1

    return packages


def parse_installed_output(output: str) -> List[Package]:
    """Parse ``pacman -Q`` lines of the form ``name version``."""
    items: List[Package] = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        items.append(
            Package(
                name=parts[0],
                version=parts[1],
                repository="unknown",
                installed_version=parts[1],
            )
        )
    return items


def parse_update_lines(output: str, default_repo: str) -> List[Package]:
    """Parse ``[repo/]name old -> new`` lines from checkupdates or paru -Qu."""
    items: List[Package] = []
    for line in strip_ansi(output).splitlines():
        parts = line.replace("[ignored]", "").split()
        if len(parts) < 4:
            continue
        raw_name = parts[0]
        if "/" in raw_name:
            repo, name = raw_name.split("/", 1)
        else:
            repo, name = default_repo, raw_name
        items.append(
            Package(
                name=name,
                version=parts[3],
                repository=repo,
                installed_version=parts[1],
            )
        )
    return items


def parse_info_list(output: str) -> List[Dict[str, str]]:
    """Split ``pacman -Qi``/``-Si`` output into key/value maps, in output order."""
    blocks: List[Dict[str, str]] = []
    current: Dict[str, str] = {}
    last_key: Optional[str] = None

    # Packages are separated by blank lines; "Repository" precedes "Name" in -Si output.
    for raw in strip_ansi(output).splitlines():
        if not raw.strip():
            if current:
                blocks.append(current)
            current = {}
            last_key = None
            continue
        if raw[0].isspace():
            if last_key is not None:
                current[last_key] = f"{current[last_key]}\n{raw.strip()}".strip()
            continue
        if ":" not in raw:
            continue
        key, value = raw.split(":", 1)
        key = key.strip()
        current[key] = value.strip()
        last_key = key

    if current:
        blocks.append(current)
    return blocks


def parse_info_blocks(output: str) -> Dict[str, Dict[str, str]]:
    """Name-keyed view of :func:`parse_info_list`; the first block per name wins."""
    blocks: Dict[str, Dict[str, str]] = {}
    for block in parse_info_list(output):
        name = block.get("Name")
        if name and name not in blocks:
            blocks[name] = block
    return blocks


def parse_package_details(output: str, name: str) -> PackageDetails:
    details = PackageDetails(name=name)
    blocks = parse_info_list(output)
    if not blocks:
        return details
    for key, value in blocks[0].items():
        attr = DETAIL_KEYS.get(key)
        if attr:
            setattr(details, attr, value)
    return details


# ---------------------------------------------------------------------------
# queries
# ---------------------------------------------------------------------------

def is_paru_installed() -> bool:
    return _which("paru")


def search_packages(query: str, limit: Optional[int] = None) -> List[Package]:
    log.debug("Searching packages with query: %s", query)
    cmd = ["paru", "-Ss", query]
    out, code, err = _run_with_code(cmd, ignore_exit_codes=(1,))
    if code == 1 and not out.strip():
        # paru exits 1 when nothing matched
        log.info("Search completed: found 0 packages")
        return []
    if code != 0:
        message = err.strip() or "Paru search failed"
        log.error("Paru search failed: %s", message)
        raise ParuError(message)

    packages = parse_search_output(out)
    if limit is not None and len(packages) > limit:
        packages = packages[:limit]
    log.info("Search completed: found %d packages", len(packages))
    return packages


def foreign_packages() -> Set[str]:
    out, code, _ = _run_with_code(["pacman", "-Qm"], ignore_exit_codes=(1,), lang_c=True)
    if code != 0:
        return set()
    names = set()
    for line in out.splitlines():
        parts = line.split()
        if parts:
            names.add(parts[0])
    return names


def list_installed() -> List[Package]:
    log.debug("Listing installed packages with descriptions")
    out, code, _ = _run_with_code(["pacman", "-Q"], lang_c=True)
    if code != 0:
        log.error("Failed to list installed packages via pacman -Q")
        raise ParuError("Failed to list installed packages")

    packages = parse_installed_output(out)

    # One -Qi call for all descriptions
    details_out, details_code, _ = _run_with_code(["pacman", "-Qi"], lang_c=True)
    descriptions: Dict[str, str] = {}
    if details_code == 0:
        for name, block in parse_info_blocks(details_out).items():
            descriptions[name] = block.get("Description", "")

    foreign = foreign_packages()
    for pkg in packages:
        pkg.description = descriptions.get(pkg.name, "")
        pkg.repository = "aur" if pkg.name in foreign else "repo"

    log.info("Listed %d installed packages (%d from AUR)", len(packages), len(foreign))
    return packages


def repositories_for(names: Sequence[str]) -> Dict[str, str]:
    """Resolve sync repositories for *names* with a single ``pacman -Si`` call."""
    if not names:
        return {}
    out, code, _ = _run_with_code(["pacman", "-Si", *names], lang_c=True, record=False)
    if code != 0 and not out:
        return {}
    return {
        name: block["Repository"]
        for name, block in parse_info_blocks(out).items()
        if block.get("Repository")
    }


def list_updates() -> List[Package]:
    log.debug("Checking for available updates")
    packages: List[Package] = []
    seen: Set[str] = set()

    use_checkupdates = _which("checkupdates")
    if use_checkupdates:
        log.info("Using checkupdates for repo updates")
        out, code, _ = _run_with_code(["checkupdates"], ignore_exit_codes=(2,))
        if code == 0:
            for pkg in parse_update_lines(out, "repo"):
                if pkg.name not in seen:
                    seen.add(pkg.name)
                    packages.append(pkg)

    cmd = ["paru", "-Qu", "--noconfirm"]
    if use_checkupdates:
        cmd.append("-a")
    out, code, err = _run_with_code(cmd, ignore_exit_codes=(1,))
    # paru exits 1 when there is nothing to upgrade
    if code in (0, 1):
        default_repo = "aur" if use_checkupdates else "unknown"
        for pkg in parse_update_lines(out, default_repo):
            if pkg.name not in seen:
                seen.add(pkg.name)
                packages.append(pkg)
    elif code != -1:
        log.error("paru -Qu failed: %s", err.strip())

    if not use_checkupdates and packages:
        foreign = foreign_packages()
        repo_map = repositories_for([p.name for p in packages if p.name not in foreign])
        for pkg in packages:
            if pkg.name in foreign:
                pkg.repository = "aur"
            else:
                pkg.repository = repo_map.get(pkg.name, "core")

    log.info("Found %d available updates", len(packages))
    return packages


def is_package_installed(name: str) -> bool:
    _, code, _ = _run_with_code(["pacman", "-Qi", name], record=False)
    return code == 0


def is_aur_package(name: str) -> bool:
    _, code, _ = _run_with_code(["pacman", "-Si", name], record=False)
    return code != 0


def aur_packages(names: Iterable[str]) -> Set[str]:
    """Names from *names* that no sync repository provides."""
    return {name for name in names if is_aur_package(name)}


def get_pkgbuild(name: str) -> str:
    log.debug("Fetching PKGBUILD for package: %s", name)
    out, code, err = _run_with_code(["paru", "-Gp", name], record=False)
    if code != 0:
        message = f"Failed to get PKGBUILD: {err.strip() or 'paru not available'}"
        log.error(message)
        raise ParuError(message)
    if not out.strip():
        log.warning("PKGBUILD is empty or package not found for package: %s", name)
        raise ParuError("PKGBUILD is empty or package not found")
    log.info("Successfully fetched PKGBUILD for package: %s", name)
    return out


def get_package_details(name: str) -> PackageDetails:
    flag = "-Qi" if is_package_installed(name) else "-Si"
    out, code, _ = _run_with_code(["paru", flag, name], lang_c=True, record=False)
    if code != 0:
        raise ParuError(f"Failed to get details for {name}")
    return parse_package_details(out, name)


def package_size_text(name: str) -> Optional[str]:
    for flag, key in (("-Qi", "Installed Size"), ("-Si", "Download Size")):
        out, code, _ = _run_with_code(["pacman", flag, name], lang_c=True, record=False)
        if code != 0:
            continue
        for block in parse_info_list(out):
            value = block.get(key)
            if value:
                return f"Size: {value}"
    return None


def _dir_size_bytes(path: str) -> int:
    out, code, _ = _run_with_code(["du", "-sb", path], record=False)
    if code != 0:
        return 0
    parts = out.split()
    try:
        return int(parts[0]) if parts else 0
    except ValueError:
        return 0


def estimate_cleanup() -> CleanupEstimate:
    clone_dir = Path.home() / ".cache" / "paru" / "clone"
    out, code, _ = _run_with_code(["pacman", "-Qtdq"], record=False)
    orphans = sum(1 for ln in out.splitlines() if ln.strip()) if code == 0 else 0
    return CleanupEstimate(
        pacman_cache_bytes=_dir_size_bytes(PACMAN_CACHE_DIR),
        paru_clone_bytes=_dir_size_bytes(str(clone_dir)),
        orphan_count=orphans,
    )


# ---------------------------------------------------------------------------
# operation command lines
# ---------------------------------------------------------------------------

def install_command(name: str) -> list[str]:
    return ["paru", "-S", "--noconfirm", name]


def remove_command(name: str) -> list[str]:
    return ["paru", "-Rns", "--noconfirm", name]


def update_package_command(name: str) -> list[str]:
    return ["paru", "-S", "--noconfirm", name]


def update_system_command(scope: str = "all", ignored: Iterable[str] = ()) -> list[str]:
    cmd = ["paru", "-Syu", "--noconfirm"]
    if scope == "repo-only":
        cmd.append("--repo")
    elif scope == "aur-only":
        cmd.append("--aur")
    names = [n.strip() for n in ignored if n and n.strip()]
    if names:
        cmd.extend(["--ignore", ",".join(names)])
    return cmd


def clean_cache_command() -> list[str]:
    return ["paru", "-Sc", "--noconfirm"]


def remove_orphans_command() -> list[str]:
    return ["paru", "-c", "--noconfirm"]
