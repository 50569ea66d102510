from PySide6.QtWidgets import (
    QDialog,
    QVBoxLayout,
    QLabel,
    QCheckBox,
    QDialogButtonBox,
)

import paru
from i18n import tr
from models import CleanupEstimate
from utils import format_bytes
from workers import run_async


class CleanupDialog(QDialog):
    """Pick the maintenance tasks to queue and show what they would reclaim."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle(tr("dialog_cleanup_title"))
        self.resize(440, 0)

        layout = QVBoxLayout(self)

        info = QLabel(tr("cleanup_dialog_intro"))
        info.setWordWrap(True)
        layout.addWidget(info)

        self.chk_cache = QCheckBox(tr("cleanup_option_clean_cache"))
        self.chk_orphans = QCheckBox(tr("cleanup_option_remove_orphans"))
        for chk in (self.chk_cache, self.chk_orphans):
            chk.setChecked(True)
            layout.addWidget(chk)

        self.estimate_label = QLabel(tr("cleanup_estimate_loading"))
        self.estimate_label.setWordWrap(True)
        self.estimate_label.setStyleSheet("color: gray;")
        layout.addWidget(self.estimate_label)

        self.buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self.buttons.accepted.connect(self.accept)
        self.buttons.rejected.connect(self.reject)
        layout.addWidget(self.buttons)

        for chk in (self.chk_cache, self.chk_orphans):
            chk.toggled.connect(self._update_ok_button)

        run_async(
            paru.estimate_cleanup,
            on_success=self._on_estimate,
            on_error=self._on_estimate_failed,
        )

    def _update_ok_button(self):
        any_checked = self.chk_cache.isChecked() or self.chk_orphans.isChecked()
        self.buttons.button(QDialogButtonBox.Ok).setEnabled(any_checked)

    def _on_estimate(self, estimate: CleanupEstimate):
        self.estimate_label.setText(tr(
            "cleanup_estimate",
            format_bytes(estimate.pacman_cache_bytes),
            format_bytes(estimate.paru_clone_bytes),
            estimate.orphan_count,
            format_bytes(estimate.total_bytes),
        ))
        self.chk_orphans.setText(
            tr("cleanup_option_remove_orphans") + f" ({estimate.orphan_count})"
        )

    def _on_estimate_failed(self, message: str):
        self.estimate_label.setText(tr("cleanup_estimate_failed", message))

    def selections(self) -> dict:
        return {
            "cache": self.chk_cache.isChecked(),
            "orphans": self.chk_orphans.isChecked(),
        }
