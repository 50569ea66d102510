import re
from html import escape
from typing import List, Optional

from PySide6.QtCore import Signal
from PySide6.QtGui import QFontDatabase
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QDialogButtonBox,
    QLabel,
    QPlainTextEdit,
    QTabWidget,
    QTextBrowser,
    QVBoxLayout,
)

import news
import paru
from i18n import tr
from models import AurComment, Package, PackageDetails
from settings import settings
from workers import run_async

_URL_RE = re.compile(r'(https?://[^\s<>"]+)')


def _linkify(text: str) -> str:
    parts: List[str] = []
    last = 0
    for match in _URL_RE.finditer(text):
        parts.append(escape(text[last:match.start()]))
        url = match.group(1)
        parts.append(f'<a href="{escape(url)}">{escape(url)}</a>')
        last = match.end()
    parts.append(escape(text[last:]))
    return "".join(parts).replace("\n", "<br>")


def details_html(details: PackageDetails, size_text: Optional[str] = None) -> str:
    rows = [
        f"<tr><td style='padding:3px 12px 3px 0; vertical-align:top;'><b>{escape(label)}</b></td>"
        f"<td style='padding:3px 0;'>{_linkify(value)}</td></tr>"
        for label, value in details.rows()
    ]
    if size_text:
        rows.append(f"<tr><td colspan='2' style='padding-top:8px; color:gray;'>{escape(size_text)}</td></tr>")
    return "<table>" + "".join(rows) + "</table>"


def comments_html(comments: List[AurComment]) -> str:
    if not comments:
        return f"<p style='color:gray;'>{escape(tr('details_no_comments'))}</p>"
    blocks = []
    for c in comments:
        blocks.append(
            f"<p><b>{escape(c.author)}</b> <span style='color:gray;'>{escape(c.date)}</span><br>"
            f"{_linkify(c.content)}</p><hr>"
        )
    return "".join(blocks)


class PackageDetailsDialog(QDialog):
    """Details for one package, loaded in the background."""

    install_requested = Signal(str)
    remove_requested = Signal(str)
    watch_toggled = Signal(str)

    def __init__(self, pkg: Package, installed: bool = False, watched: bool = False, parent=None):
        super().__init__(parent)
        self.pkg = pkg
        self.setWindowTitle(tr("dialog_details_title", pkg.name))
        self.resize(820, 600)

        self._raw_text = ""
        self._size_text: Optional[str] = None
        self._details: Optional[PackageDetails] = None

        self.tabs = QTabWidget(self)

        self.details_view = QTextBrowser()
        self.details_view.setOpenExternalLinks(bool(settings.get("open_links_in_external_browser")))
        self.details_view.setHtml(f"<p style='color:gray;'>{escape(tr('details_loading'))}</p>")
        self.tabs.addTab(self.details_view, tr("tab_details"))

        self.comments_view: Optional[QTextBrowser] = None
        if pkg.is_aur:
            self.comments_view = QTextBrowser()
            self.comments_view.setOpenExternalLinks(bool(settings.get("open_links_in_external_browser")))
            self.comments_view.setHtml(f"<p style='color:gray;'>{escape(tr('details_loading_comments'))}</p>")
            self.tabs.addTab(self.comments_view, tr("tab_comments"))

        buttons = QDialogButtonBox(QDialogButtonBox.Close)
        buttons.rejected.connect(self.reject)
        if installed:
            btn = buttons.addButton(tr("btn_remove"), QDialogButtonBox.ActionRole)
            btn.clicked.connect(lambda: self._emit_and_close(self.remove_requested))
        else:
            btn = buttons.addButton(tr("btn_install"), QDialogButtonBox.ActionRole)
            btn.clicked.connect(lambda: self._emit_and_close(self.install_requested))
        self._watched = watched
        self.watch_btn = buttons.addButton("", QDialogButtonBox.ActionRole)
        self.watch_btn.clicked.connect(self._toggle_watch)
        self._update_watch_button()
        copy_btn = buttons.addButton(tr("btn_copy_all"), QDialogButtonBox.ActionRole)
        copy_btn.clicked.connect(lambda: QApplication.clipboard().setText(self._raw_text))

        layout = QVBoxLayout(self)
        layout.addWidget(self.tabs)
        layout.addWidget(buttons)

        run_async(paru.get_package_details, pkg.name,
                  on_success=self._on_details, on_error=self._on_details_failed)
        if settings.get("show_package_sizes_in_lists"):
            run_async(paru.package_size_text, pkg.name, on_success=self._on_size)
        if pkg.is_aur:
            run_async(news.fetch_aur_comments, pkg.name,
                      on_success=self._on_comments, on_error=self._on_comments_failed)

    def _toggle_watch(self):
        self._watched = not self._watched
        self._update_watch_button()
        self.watch_toggled.emit(self.pkg.name)

    def _update_watch_button(self):
        self.watch_btn.setText(tr("btn_unwatch") if self._watched else tr("btn_watch"))

    def _emit_and_close(self, signal):
        signal.emit(self.pkg.name)
        self.accept()

    def _render(self):
        if self._details is not None:
            self.details_view.setHtml(details_html(self._details, self._size_text))

    def _on_details(self, details: PackageDetails):
        self._details = details
        self._raw_text = "\n".join(f"{label}: {value}" for label, value in details.rows())
        self._render()

    def _on_details_failed(self, message: str):
        self.details_view.setHtml(
            f"<p style='color:#cc6600;'>{escape(tr('msg_no_details', self.pkg.name))}</p>"
            f"<pre>{escape(message)}</pre>"
        )

    def _on_size(self, size_text: Optional[str]):
        self._size_text = size_text
        self._render()

    def _on_comments(self, comments: List[AurComment]):
        if self.comments_view is not None:
            self.comments_view.setHtml(comments_html(comments))
            self.tabs.setTabText(1, tr("tab_comments_count", len(comments)))

    def _on_comments_failed(self, message: str):
        if self.comments_view is not None:
            self.comments_view.setHtml(
                f"<p style='color:#cc6600;'>{escape(tr('details_comments_failed', message))}</p>"
            )


class PkgbuildReviewDialog(QDialog):
    """Show the PKGBUILD of an AUR package; accepting it queues the install."""

    def __init__(self, name: str, parent=None):
        super().__init__(parent)
        self.name = name
        self.setWindowTitle(tr("dialog_pkgbuild_title", name))
        self.resize(820, 640)

        layout = QVBoxLayout(self)

        hint = QLabel(tr("pkgbuild_review_hint"))
        hint.setWordWrap(True)
        hint.setStyleSheet(
            "background-color: #fff3cd; padding: 8px; border-radius: 5px; color: #856404;"
        )
        layout.addWidget(hint)

        self.view = QPlainTextEdit()
        self.view.setReadOnly(True)
        self.view.setFont(QFontDatabase.systemFont(QFontDatabase.FixedFont))
        self.view.setPlainText(tr("pkgbuild_loading"))
        layout.addWidget(self.view, 1)

        self.buttons = QDialogButtonBox(QDialogButtonBox.Cancel)
        self.btn_install = self.buttons.addButton(tr("btn_install"), QDialogButtonBox.AcceptRole)
        self.btn_install.setEnabled(False)
        self.buttons.accepted.connect(self.accept)
        self.buttons.rejected.connect(self.reject)
        layout.addWidget(self.buttons)

        run_async(paru.get_pkgbuild, name, on_success=self._on_loaded, on_error=self._on_failed)

    def _on_loaded(self, text: str):
        self.view.setPlainText(text)
        self.btn_install.setEnabled(True)

    def _on_failed(self, message: str):
        self.view.setPlainText(tr("pkgbuild_failed", self.name, message))
