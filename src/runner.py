import os
import re
import shutil
import subprocess
import time
from typing import Callable, Iterable, Optional

import pexpect

from logger import get_logger
from paru import strip_ansi

log = get_logger("runner")

OutputFn = Callable[[str], None]
CancelFn = Callable[[], bool]
PasswordFn = Callable[[str], Optional[str]]

POLL_INTERVAL = 0.2
TERMINATE_GRACE = 3.0


class TaskError(RuntimeError):
    """Base class for errors raised while running a task."""


class TaskFailedError(TaskError):
    """The command could not be started or exited unsuccessfully."""


class TaskCanceledError(TaskError):
    """The command was stopped because the user asked for it."""


def _never() -> bool:
    return False


def _quote(value: str) -> str:
    if any(ch.isspace() for ch in value):
        return "'" + value.replace("'", "'\\''") + "'"
    return value


def format_argv(argv: Iterable[str]) -> str:
    return " ".join(_quote(a) for a in argv)


class ProcessRunner:
    """Run a command in a pty via pexpect and stream its output line by line."""

    PASSWORD_PATTERNS = [
        re.compile(r"\[sudo\] password for [^:\r\n]*:\s*$"),
        re.compile(r"doas \([^)]*\) password:\s*$"),
        re.compile(r"^\s*[Pp]assword:\s*$"),
    ]

    def __init__(self, poll_interval: float = POLL_INTERVAL):
        self.poll_interval = poll_interval
        self._last_progress: Optional[str] = None

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def run(
        self,
        argv: Iterable[str],
        on_output: OutputFn,
        cancel_requested: CancelFn = _never,
        password_provider: Optional[PasswordFn] = None,
    ) -> int:
        argv = list(argv)
        if not argv:
            raise TaskFailedError("Empty command")

        env = os.environ.copy()
        env.update({
            "NO_COLOR": "1",
            "CLICOLOR": "0",
            # paru warns about terminals that are "not fully functional"
            "TERM": "xterm-256color",
            "PACMAN_COLOR": "never",
        })

        log.info("Running: %s", format_argv(argv))
        try:
            proc = pexpect.spawn(
                argv[0],
                argv[1:],
                env=env,
                encoding="utf-8",
                codec_errors="replace",
                echo=False,
                timeout=None,
            )
        except pexpect.ExceptionPexpect as exc:
            log.error("Could not start %s: %s", argv[0], exc)
            raise TaskFailedError(f"Failed to execute {argv[0]}: {exc}") from exc

        proc.delaybeforesend = None
        self._last_progress = None
        buffer = ""

        try:
            while True:
                if cancel_requested():
                    self._stop(proc)
                    on_output("Task canceled by user.")
                    raise TaskCanceledError("Task canceled by user")

                try:
                    chunk = proc.read_nonblocking(4096, timeout=self.poll_interval)
                except pexpect.TIMEOUT:
                    chunk = ""
                except pexpect.EOF:
                    break

                if chunk:
                    buffer = self._emit_lines(buffer + chunk, on_output)

                if buffer and self._is_password_prompt(buffer):
                    prompt = strip_ansi(buffer).strip()
                    buffer = ""
                    self._answer_prompt(proc, prompt, on_output, password_provider)
        finally:
            if proc.isalive():
                self._stop(proc)
            proc.close()

        tail = self._clean(buffer)
        if tail:
            on_output(tail)

        code = proc.exitstatus
        if code is None:
            code = -proc.signalstatus if proc.signalstatus is not None else 0

        log.info("%s finished with exit code %s", argv[0], code)
        if code != 0:
            raise TaskFailedError(f"{os.path.basename(argv[0])} exited with code {code}")
        return code

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    @staticmethod
    def _clean(segment: str) -> str:
        # Carriage returns overwrite the line; keep the last visible segment.
        parts = [p for p in strip_ansi(segment).split("\r") if p.strip()]
        return parts[-1].rstrip() if parts else ""

    def _emit_lines(self, buffer: str, on_output: OutputFn) -> str:
        *complete, partial = buffer.split("\n")
        for raw in complete:
            line = self._clean(raw)
            if line:
                on_output(line)
        self._last_progress = None if complete else self._last_progress

        if "\r" in partial:
            # Live progress bars redraw with \r and never end the line.
            *redrawn, partial = partial.split("\r")
            latest = self._clean("\r".join(redrawn))
            if latest and latest != self._last_progress:
                self._last_progress = latest
                on_output(latest)
        return partial

    def _is_password_prompt(self, buffer: str) -> bool:
        text = strip_ansi(buffer).strip("\r\n")
        return any(p.search(text) for p in self.PASSWORD_PATTERNS)

    def _answer_prompt(
        self,
        proc: pexpect.spawn,
        prompt: str,
        on_output: OutputFn,
        password_provider: Optional[PasswordFn],
    ) -> None:
        on_output(prompt)
        if password_provider is None:
            self._stop(proc)
            raise TaskFailedError("Authentication required but no password prompt is available")

        password = password_provider(prompt)
        if password is None:
            self._stop(proc)
            on_output("Authentication canceled.")
            raise TaskCanceledError("Authentication canceled by user")
        proc.sendline(password)

    @staticmethod
    def _stop(proc: pexpect.spawn) -> None:
        if not proc.isalive():
            return
        try:
            proc.sendintr()
        except OSError:
            pass

        deadline = time.monotonic() + TERMINATE_GRACE
        while proc.isalive() and time.monotonic() < deadline:
            time.sleep(0.1)

        if proc.isalive():
            try:
                proc.terminate(force=True)
            except pexpect.ExceptionPexpect:
                log.warning("Could not terminate pid %s", proc.pid)


class TerminalRunner:
    """Run a command inside an external terminal emulator and wait for it."""

    def __init__(self, terminals: Iterable[str], poll_interval: float = POLL_INTERVAL):
        self.terminals = list(terminals)
        self.poll_interval = poll_interval

    @staticmethod
    def terminal_argv(terminal: str, argv: list[str]) -> list[str]:
        if terminal == "gnome-terminal":
            return [terminal, "--wait", "--", *argv]
        if terminal == "xfce4-terminal":
            return [terminal, "--disable-server", "-x", *argv]
        return [terminal, "-e", *argv]

    def run(
        self,
        argv: Iterable[str],
        on_output: OutputFn,
        cancel_requested: CancelFn = _never,
        password_provider: Optional[PasswordFn] = None,
    ) -> int:
        argv = list(argv)
        terminal_found = False
        last_error = ""

        for terminal in self.terminals:
            if shutil.which(terminal) is None:
                continue
            terminal_found = True

            on_output(f"Running in terminal: {terminal} {format_argv(argv)}")
            try:
                child = subprocess.Popen(self.terminal_argv(terminal, argv))
            except OSError as exc:
                last_error = f"Failed to spawn {terminal}: {exc}"
                log.warning(last_error)
                continue

            on_output("Terminal opened - waiting for completion...")
            while True:
                if cancel_requested():
                    child.kill()
                    child.wait()
                    on_output("Task canceled by user.")
                    raise TaskCanceledError("Task canceled by user")

                code = child.poll()
                if code is None:
                    time.sleep(self.poll_interval)
                    continue
                if code == 0:
                    return 0
                raise TaskFailedError("Operation failed - check terminal output")

        if not terminal_found:
            raise TaskFailedError(f"No terminal emulator found. Last error: {last_error}")
        raise TaskFailedError(last_error)


def build_runner(config) -> "ProcessRunner | TerminalRunner":
    """Pick the runner configured by ``execution_mode``."""
    if config.get("execution_mode") == "terminal":
        return TerminalRunner(config.terminal_candidates())
    return ProcessRunner()
