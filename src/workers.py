from typing import Any, Callable, Optional, Set

from PySide6.QtCore import QObject, QThread, Signal

from logger import get_logger

log = get_logger("workers")

# Threads must outlive the dialogs that started them.
_active: Set["BlockingCall"] = set()


class BlockingCall(QThread):
    """Run a blocking function off the UI thread and report the outcome."""

    succeeded = Signal(object)
    failed = Signal(str)

    def __init__(self, fn: Callable[..., Any], *args, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._fn = fn
        self._args = args

    def run(self):
        try:
            result = self._fn(*self._args)
        except Exception as exc:
            log.exception("Background call %s failed", getattr(self._fn, "__name__", self._fn))
            self.failed.emit(str(exc))
        else:
            self.succeeded.emit(result)


def run_async(
    fn: Callable[..., Any],
    *args,
    on_success: Optional[Callable[[Any], None]] = None,
    on_error: Optional[Callable[[str], None]] = None,
) -> BlockingCall:
    """Start *fn* on a :class:`BlockingCall` that is kept alive until it finishes."""
    call = BlockingCall(fn, *args)
    if on_success is not None:
        call.succeeded.connect(on_success)
    if on_error is not None:
        call.failed.connect(on_error)

    def _done():
        _active.discard(call)
        call.deleteLater()

    call.finished.connect(_done)
    _active.add(call)
    call.start()
    return call


def wait_all(timeout_ms: int = 3000) -> None:
    """Give running calls a chance to finish before the application exits."""
    for call in list(_active):
        call.wait(timeout_ms)
