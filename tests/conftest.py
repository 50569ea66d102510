import os
import sys
import tempfile
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parent.parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Modules read these at import time, so they are set before any test imports them.
_TMP = Path(tempfile.mkdtemp(prefix="parut-tests-"))
os.environ["PARUT_CONFIG_DIR"] = str(_TMP / "config")
os.environ["XDG_DATA_HOME"] = str(_TMP / "data")


class FakeCompleted:
    def __init__(self, stdout="", returncode=0, stderr=""):
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr


class FakeRun:
    """Stand-in for ``subprocess.run`` that answers by command prefix."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        key = " ".join(cmd)
        best = None
        for prefix in self.responses:
            if key == prefix or key.startswith(prefix + " "):
                if best is None or len(prefix) > len(best):
                    best = prefix
        if best is None:
            return FakeCompleted("", 1, "unexpected command")
        response = self.responses[best]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, FakeCompleted):
            return response
        return FakeCompleted(response)


@pytest.fixture
def fake_run(monkeypatch):
    import paru

    runner = FakeRun()
    monkeypatch.setattr(paru.subprocess, "run", runner)
    paru.consume_errors()
    yield runner
    paru.consume_errors()


@pytest.fixture
def config(tmp_path):
    from settings import Settings

    return Settings(tmp_path / "config")
