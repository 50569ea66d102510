import argparse
import sys
import threading
from html import escape
from typing import Callable, List, Optional, Sequence, Set

from PySide6.QtGui import QAction, QDesktopServices, QIcon, QKeySequence, QShortcut
from PySide6.QtCore import Qt, QObject, QStringListModel, QThread, QTimer, QUrl, Signal, Slot
from PySide6.QtNetwork import QAbstractSocket, QLocalServer, QLocalSocket, QNetworkInformation
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QPushButton,
    QTableView, QLineEdit, QLabel, QMessageBox, QMenu, QTabWidget, QComboBox,
    QCompleter, QDialog, QInputDialog, QProgressBar, QTextBrowser, QGroupBox,
    QGridLayout, QAbstractItemView,
)

import news
import paru
from cleanup_dialog import CleanupDialog
from data_store import DataStore
from i18n import tr
from logger import LEVELS, get_logger, log_path, setup_logging
from models import Package, PackageModel
from package_dialogs import PackageDetailsDialog, PkgbuildReviewDialog
from queue_window import QueueBridge, QueueWindow, queue_summary
from search import filter_updates, smart_search_packages
from settings import settings, STARTUP_TABS
from settings_dialog import SettingsDialog
from task_queue import TaskQueue, TaskStatus, TaskType, TaskWorker
from utils import freshness_text, is_cache_within_ttl, send_notification
from workers import run_async, wait_all

log = get_logger("main")

SINGLE_INSTANCE_SERVER_NAME = "parut-single-instance"
SEARCH_DEBOUNCE_MS = 300
REFRESH_AFTER_TASK_MS = 400


def _load_app_icon() -> QIcon:
    return QIcon.fromTheme("system-software-install")


def _notify_running_instance(server_name: str, message: str, timeout_ms: int = 1000) -> bool:
    """Send a message to a running instance if possible."""

    socket = QLocalSocket()
    socket.connectToServer(server_name)
    if not socket.waitForConnected(timeout_ms):
        return False

    if message:
        socket.write(message.encode("utf-8"))
        socket.flush()
        socket.waitForBytesWritten(timeout_ms)

    socket.disconnectFromServer()
    if socket.state() != QLocalSocket.UnconnectedState:
        socket.waitForDisconnected(timeout_ms)
    return True


def _create_single_instance_server(server_name: str) -> Optional[QLocalServer]:
    """Create a QLocalServer for enforcing a single running instance."""

    server = QLocalServer()
    if server.listen(server_name):
        return server

    if server.serverError() == QAbstractSocket.AddressInUseError:
        QLocalServer.removeServer(server_name)
        if server.listen(server_name):
            return server

    return None


class PasswordBroker(QObject):
    """Answer password prompts from worker threads with a dialog on the UI thread."""

    requested = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._answer: Optional[str] = None
        self.requested.connect(self._ask_user)

    def ask(self, prompt: str) -> Optional[str]:
        if QThread.currentThread() == self.thread():
            return self._dialog(prompt)
        # One prompt at a time, parallel tasks wait their turn.
        with self._lock:
            self._event.clear()
            self._answer = None
            self.requested.emit(prompt)
            self._event.wait()
            return self._answer

    def _dialog(self, prompt: str) -> Optional[str]:
        text, ok = QInputDialog.getText(
            QApplication.activeWindow(),
            tr("dialog_password_title"),
            prompt or tr("dialog_password_prompt"),
            QLineEdit.Password,
        )
        return text if ok else None

    @Slot(str)
    def _ask_user(self, prompt: str):
        try:
            self._answer = self._dialog(prompt)
        finally:
            self._event.set()


class MainWindow(QMainWindow):
    def __init__(
        self,
        queue: TaskQueue,
        store: DataStore,
        start_tab: Optional[str] = None,
        show_updates: bool = False,
    ):
        super().__init__()
        self.queue = queue
        self.store = store
        self.setWindowIcon(_load_app_icon())
        self.setWindowTitle(tr("app_title"))
        self.resize(1200, 780)

        self._single_instance_server: Optional[QLocalServer] = None
        self._queue_window: Optional[QueueWindow] = None
        self._loading_installed = False
        self._loading_updates = False
        self._search_seq = 0
        self._installed_names: set[str] = set()
        self._all_updates: List[Package] = []
        self._seen_finished: set[int] = set()
        self._updates_failed = False

        self.bridge = QueueBridge(queue, self)
        self.bridge.changed.connect(self._on_queue_changed)

        self.tabs = QTabWidget()
        self.tabs.addTab(self._build_dashboard_tab(), tr("tab_dashboard"))
        self.tabs.addTab(self._build_search_tab(), tr("tab_search"))
        self.tabs.addTab(self._build_installed_tab(), tr("tab_installed"))
        self.tabs.addTab(self._build_updates_tab(), tr("tab_updates"))
        self.tabs.addTab(self._build_watchlist_tab(), tr("tab_watchlist"))
        self.setCentralWidget(self.tabs)

        self.statusbar = self.statusBar()
        self.loading_indicator = QProgressBar()
        self.loading_indicator.setRange(0, 0)
        self.loading_indicator.setFixedWidth(160)
        self.loading_indicator.setVisible(False)
        self.freshness_label = QLabel()
        self.freshness_label.setStyleSheet("color: gray;")
        self.queue_label = QLabel(tr("queue_idle"))
        btn_queue = QPushButton(tr("btn_show_queue"))
        btn_queue.setFlat(True)
        btn_queue.clicked.connect(self._show_queue)
        self.statusbar.addPermanentWidget(self.loading_indicator)
        self.statusbar.addPermanentWidget(self.freshness_label)
        self.statusbar.addPermanentWidget(self.queue_label)
        self.statusbar.addPermanentWidget(btn_queue)

        self._build_menu()
        self._build_shortcuts()

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(SEARCH_DEBOUNCE_MS)
        self._search_timer.timeout.connect(self._run_search)

        self._auto_refresh_timer = QTimer(self)
        self._auto_refresh_timer.timeout.connect(self._auto_refresh)

        self._freshness_timer = QTimer(self)
        self._freshness_timer.setInterval(60 * 1000)
        self._freshness_timer.timeout.connect(self._update_freshness)
        self._freshness_timer.start()

        self._network = None
        self._was_reachable: Optional[bool] = None
        self._setup_network_monitor()

        self._apply_settings()
        self._load_cached_data()

        tab = start_tab or settings.startup_tab()
        if show_updates:
            tab = "updates"
        self.tabs.setCurrentIndex(STARTUP_TABS.index(tab) if tab in STARTUP_TABS else 0)

        self.refresh_installed()
        if show_updates or settings.get("check_updates_on_startup"):
            self.check_updates()
        self._load_news()

    # ------------------------------------------------------------------
    # layout
    # ------------------------------------------------------------------
    def _build_dashboard_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        stats = QGroupBox(tr("dashboard_overview"))
        grid = QGridLayout(stats)
        self.dash_installed = QLabel("-")
        self.dash_aur = QLabel("-")
        self.dash_updates = QLabel("-")
        self.dash_watchlist = QLabel("-")
        self.dash_queue = QLabel(tr("queue_idle"))
        rows = [
            (tr("dashboard_installed"), self.dash_installed),
            (tr("dashboard_aur"), self.dash_aur),
            (tr("dashboard_updates"), self.dash_updates),
            (tr("dashboard_watchlist"), self.dash_watchlist),
            (tr("dashboard_queue"), self.dash_queue),
        ]
        for row, (label, value) in enumerate(rows):
            grid.addWidget(QLabel(f"<b>{label}</b>"), row, 0)
            grid.addWidget(value, row, 1)
        grid.setColumnStretch(1, 1)
        layout.addWidget(stats)

        actions = QHBoxLayout()
        btn_update = QPushButton(tr("btn_system_update"))
        btn_update.clicked.connect(self._update_all)
        btn_check = QPushButton(tr("btn_check_updates"))
        btn_check.clicked.connect(self.check_updates)
        btn_cleanup = QPushButton(tr("btn_system_cleanup"))
        btn_cleanup.clicked.connect(self._system_cleanup_dialog)
        btn_refresh = QPushButton(tr("btn_refresh"))
        btn_refresh.clicked.connect(self.refresh)
        for b in (btn_update, btn_check, btn_cleanup, btn_refresh):
            actions.addWidget(b)
        actions.addStretch(1)
        layout.addLayout(actions)

        self.news_group = QGroupBox(tr("dashboard_news"))
        news_layout = QVBoxLayout(self.news_group)
        self.news_view = QTextBrowser()
        self.news_view.setOpenLinks(False)
        self.news_view.anchorClicked.connect(self._open_link)
        news_layout.addWidget(self.news_view)
        layout.addWidget(self.news_group, 1)
        return widget

    def _make_table(self, model: PackageModel, multi: bool = True) -> QTableView:
        table = QTableView()
        table.setModel(model)
        table.setSelectionBehavior(QTableView.SelectRows)
        table.setSelectionMode(
            QAbstractItemView.ExtendedSelection if multi else QAbstractItemView.SingleSelection
        )
        table.setSortingEnabled(True)
        table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        table.verticalHeader().setVisible(False)
        table.verticalHeader().setDefaultSectionSize(24)
        table.horizontalHeader().setStretchLastSection(True)
        for i, w in enumerate([240, 130, 130, 100]):
            table.setColumnWidth(i, w)
        table.setContextMenuPolicy(Qt.CustomContextMenu)
        table.clicked.connect(lambda idx, t=table: self._on_table_clicked(t, idx, single=True))
        table.doubleClicked.connect(lambda idx, t=table: self._on_table_clicked(t, idx, single=False))
        return table

    def _sort_combo(self) -> QComboBox:
        combo = QComboBox()
        combo.addItems([tr("sort_name_asc"), tr("sort_name_desc"), tr("sort_repository")])
        return combo

    def _source_buttons(self, on_change: Callable[[str], None]) -> QHBoxLayout:
        row = QHBoxLayout()
        buttons = {
            "all": QPushButton(tr("btn_all")),
            "repo": QPushButton(tr("btn_official")),
            "aur": QPushButton(tr("btn_aur")),
        }

        def select(src: str):
            for key, b in buttons.items():
                b.setChecked(key == src)
            on_change(src)

        for key, b in buttons.items():
            b.setCheckable(True)
            b.clicked.connect(lambda _checked=False, k=key: select(k))
            row.addWidget(b)
        buttons["all"].setChecked(True)
        return row

    def _build_search_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText(tr("search_placeholder"))
        self.search_edit.setClearButtonEnabled(True)
        self._completer_model = QStringListModel()
        self.search_completer = QCompleter(self._completer_model, self)
        self.search_completer.setCaseSensitivity(Qt.CaseInsensitive)
        self.search_completer.setFilterMode(Qt.MatchContains)
        self.search_edit.setCompleter(self.search_completer)
        self.search_edit.textChanged.connect(self._on_search_text_changed)
        self.search_edit.returnPressed.connect(self._run_search)

        self.search_sort = self._sort_combo()

        self.search_model = PackageModel()
        self.search_sort.currentIndexChanged.connect(self.search_model.set_sort_mode)

        row = QHBoxLayout()
        row.addWidget(self.search_edit, 1)
        row.addLayout(self._source_buttons(self.search_model.set_source_filter))
        row.addWidget(self.search_sort)
        layout.addLayout(row)

        self.search_info = QLabel()
        self.search_info.setStyleSheet("color: gray;")
        self.search_info.setWordWrap(True)
        layout.addWidget(self.search_info)

        self.search_table = self._make_table(self.search_model)
        self.search_table.customContextMenuRequested.connect(
            lambda pos: self._ctx_menu(self.search_table, self.search_model, pos)
        )
        layout.addWidget(self.search_table, 1)

        buttons = QHBoxLayout()
        btn_install = QPushButton(tr("btn_install_selected"))
        btn_install.clicked.connect(lambda: self._install_selected(self.search_table, self.search_model))
        btn_details = QPushButton(tr("btn_details"))
        btn_details.clicked.connect(lambda: self._details_selected(self.search_table, self.search_model))
        btn_watch = QPushButton(tr("btn_watch"))
        btn_watch.clicked.connect(lambda: self._watch_selected(self.search_table, self.search_model))
        for b in (btn_install, btn_details, btn_watch):
            buttons.addWidget(b)
        buttons.addStretch(1)
        layout.addLayout(buttons)
        return widget

    def _build_installed_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.installed_model = PackageModel()
        self.installed_filter = QLineEdit()
        self.installed_filter.setPlaceholderText(tr("installed_filter_placeholder"))
        self.installed_filter.setClearButtonEnabled(True)
        self.installed_filter.textChanged.connect(
            lambda text: self.installed_model.set_text_filter(text.strip())
        )
        self.installed_sort = self._sort_combo()
        self.installed_sort.currentIndexChanged.connect(self.installed_model.set_sort_mode)

        row = QHBoxLayout()
        row.addWidget(self.installed_filter, 1)
        row.addLayout(self._source_buttons(self.installed_model.set_source_filter))
        row.addWidget(self.installed_sort)
        layout.addLayout(row)

        self.installed_table = self._make_table(self.installed_model)
        self.installed_table.customContextMenuRequested.connect(
            lambda pos: self._ctx_menu(self.installed_table, self.installed_model, pos)
        )
        layout.addWidget(self.installed_table, 1)

        buttons = QHBoxLayout()
        btn_remove = QPushButton(tr("btn_remove_selected"))
        btn_remove.clicked.connect(self._remove_selected)
        btn_details = QPushButton(tr("btn_details"))
        btn_details.clicked.connect(lambda: self._details_selected(self.installed_table, self.installed_model))
        btn_watch = QPushButton(tr("btn_watch"))
        btn_watch.clicked.connect(lambda: self._watch_selected(self.installed_table, self.installed_model))
        self.installed_count = QLabel()
        self.installed_count.setStyleSheet("color: gray;")
        for b in (btn_remove, btn_details, btn_watch):
            buttons.addWidget(b)
        buttons.addStretch(1)
        buttons.addWidget(self.installed_count)
        layout.addLayout(buttons)
        return widget

    def _build_updates_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        row = QHBoxLayout()
        row.addWidget(QLabel(tr("updates_show_from")))
        self.updates_scope = QComboBox()
        self.updates_scope.addItems([tr("scope_all"), tr("scope_repo-only"), tr("scope_aur-only")])
        self.updates_scope.currentIndexChanged.connect(self._apply_update_filter)
        row.addWidget(self.updates_scope)
        row.addStretch(1)
        self.updates_info = QLabel()
        self.updates_info.setStyleSheet("color: gray;")
        row.addWidget(self.updates_info)
        layout.addLayout(row)

        self.updates_model = PackageModel()
        self.updates_table = self._make_table(self.updates_model)
        self.updates_table.customContextMenuRequested.connect(
            lambda pos: self._ctx_menu(self.updates_table, self.updates_model, pos)
        )
        layout.addWidget(self.updates_table, 1)

        buttons = QHBoxLayout()
        btn_all = QPushButton(tr("btn_update_all"))
        btn_all.clicked.connect(self._update_all)
        btn_selected = QPushButton(tr("btn_update_selected"))
        btn_selected.clicked.connect(self._update_selected)
        btn_check = QPushButton(tr("btn_check_updates"))
        btn_check.clicked.connect(self.check_updates)
        for b in (btn_all, btn_selected, btn_check):
            buttons.addWidget(b)
        buttons.addStretch(1)
        layout.addLayout(buttons)
        return widget

    def _build_watchlist_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        info = QLabel(tr("watchlist_info"))
        info.setWordWrap(True)
        info.setStyleSheet("color: gray;")
        layout.addWidget(info)

        self.watch_model = PackageModel()
        self.watch_table = self._make_table(self.watch_model)
        self.watch_table.customContextMenuRequested.connect(
            lambda pos: self._ctx_menu(self.watch_table, self.watch_model, pos)
        )
        layout.addWidget(self.watch_table, 1)

        buttons = QHBoxLayout()
        btn_details = QPushButton(tr("btn_details"))
        btn_details.clicked.connect(lambda: self._details_selected(self.watch_table, self.watch_model))
        btn_unwatch = QPushButton(tr("btn_unwatch"))
        btn_unwatch.clicked.connect(lambda: self._watch_selected(self.watch_table, self.watch_model))
        for b in (btn_details, btn_unwatch):
            buttons.addWidget(b)
        buttons.addStretch(1)
        layout.addLayout(buttons)
        return widget

    def _build_menu(self):
        m = self.menuBar().addMenu(tr("menu_actions"))
        for label, handler, shortcut in [
            (tr("action_refresh"), self.refresh, "F5"),
            (tr("btn_check_updates"), self.check_updates, None),
            (tr("btn_system_update"), self._update_all, "Ctrl+U"),
            (tr("btn_system_cleanup"), self._system_cleanup_dialog, None),
            (tr("btn_show_queue"), self._show_queue, "Ctrl+T"),
        ]:
            act = QAction(label, self)
            act.triggered.connect(handler)
            if shortcut:
                act.setShortcut(shortcut)
            m.addAction(act)
        m.addSeparator()
        act_quit = QAction(tr("action_quit"), self)
        act_quit.setShortcut("Ctrl+Q")
        act_quit.triggered.connect(self.close)
        m.addAction(act_quit)

        m_settings = self.menuBar().addMenu(tr("menu_settings"))
        act_settings = QAction(tr("action_settings"), self)
        act_settings.triggered.connect(self._show_settings)
        act_settings.setShortcut("Ctrl+,")
        m_settings.addAction(act_settings)

        m_h = self.menuBar().addMenu(tr("menu_help"))
        act_shortcuts = QAction(tr("menu_shortcuts"), self)
        act_shortcuts.triggered.connect(self._show_shortcuts_help)
        m_h.addAction(act_shortcuts)
        act_log = QAction(tr("action_open_log"), self)
        act_log.triggered.connect(
            lambda: QDesktopServices.openUrl(QUrl.fromLocalFile(str(log_path().parent)))
        )
        m_h.addAction(act_log)

    def _build_shortcuts(self):
        shortcuts = [
            ("Ctrl+F", self._focus_search),
            ("Ctrl+R", self.refresh),
            ("Escape", lambda: self.search_edit.clear() if self.search_edit.hasFocus() else None),
        ]
        for index in range(len(STARTUP_TABS)):
            shortcuts.append((f"Alt+{index + 1}", lambda i=index: self.tabs.setCurrentIndex(i)))

        for key, handler in shortcuts:
            QShortcut(QKeySequence(key), self).activated.connect(handler)

    def _show_shortcuts_help(self) -> None:
        rows = [
            ("Ctrl+F", tr("shortcut_focus_search")),
            ("Ctrl+R / F5", tr("shortcut_refresh")),
            ("Ctrl+U", tr("shortcut_update_system")),
            ("Ctrl+T", tr("shortcut_show_queue")),
            ("Alt+1..5", tr("shortcut_switch_tab")),
            ("Escape", tr("shortcut_clear_search")),
            ("Ctrl+,", tr("shortcut_open_settings")),
        ]

        table_rows = [
            "<table style='width:100%; border-collapse:collapse;'>",
            f"<tr><th align='left'>{tr('shortcut_column_key')}</th><th align='left'>{tr('shortcut_column_action')}</th></tr>",
        ]
        for key, description in rows:
            table_rows.append(
                f"<tr><td style='padding:4px 8px;'><b>{key}</b></td><td style='padding:4px 8px;'>{description}</td></tr>"
            )
        table_rows.append("</table>")

        box = QMessageBox(self)
        box.setWindowTitle(tr("menu_shortcuts"))
        box.setIcon(QMessageBox.Information)
        box.setTextFormat(Qt.RichText)
        box.setText("".join(table_rows))
        box.exec()

    # ------------------------------------------------------------------
    # single instance
    # ------------------------------------------------------------------
    def setup_single_instance_server(self, server: QLocalServer) -> None:
        self._single_instance_server = server
        server.newConnection.connect(self._on_single_instance_connection)

    @Slot()
    def _on_single_instance_connection(self):
        if not self._single_instance_server:
            return

        while self._single_instance_server.hasPendingConnections():
            socket = self._single_instance_server.nextPendingConnection()
            if not socket:
                continue
            socket.setProperty("parut_handled", False)
            socket.readyRead.connect(lambda s=socket: self._process_single_instance_socket(s))
            socket.disconnected.connect(lambda s=socket: self._on_single_instance_socket_disconnected(s))
            if socket.bytesAvailable():
                self._process_single_instance_socket(socket)

    def _process_single_instance_socket(self, socket: QLocalSocket) -> None:
        if not socket or not socket.bytesAvailable():
            return

        data = bytes(socket.readAll()).decode("utf-8", errors="ignore").strip()
        self._handle_single_instance_command(data or "show")
        socket.setProperty("parut_handled", True)
        socket.disconnectFromServer()

    def _on_single_instance_socket_disconnected(self, socket: QLocalSocket) -> None:
        if not socket:
            return
        if not bool(socket.property("parut_handled")):
            self._handle_single_instance_command("show")
        socket.deleteLater()

    def _handle_single_instance_command(self, command: str) -> None:
        self._focus_main_window()
        normalized = command.strip().lower()
        if normalized == "show-updates":
            self.tabs.setCurrentIndex(STARTUP_TABS.index("updates"))
            QTimer.singleShot(150, self.check_updates)
        elif normalized.startswith("tab:"):
            tab = normalized.split(":", 1)[1]
            if tab in STARTUP_TABS:
                self.tabs.setCurrentIndex(STARTUP_TABS.index(tab))

    def _focus_main_window(self) -> None:
        if self.isMinimized():
            self.showNormal()
        else:
            self.show()
        self.raise_()
        self.activateWindow()
        handle = self.windowHandle()
        if handle is not None:
            handle.requestActivate()

    # ------------------------------------------------------------------
    # settings, timers, network
    # ------------------------------------------------------------------
    def _show_settings(self):
        dlg = SettingsDialog(self)
        if dlg.exec() == QDialog.Accepted:
            self._apply_settings()
            self.statusbar.showMessage(tr("msg_settings_saved"), 4000)

    def _apply_settings(self):
        self.search_sort.setCurrentIndex(int(settings.get("default_sort_search")))
        self.installed_sort.setCurrentIndex(int(settings.get("default_sort_installed")))
        self.search_model.set_sort_mode(self.search_sort.currentIndex())
        self.installed_model.set_sort_mode(self.installed_sort.currentIndex())
        scopes = ["all", "repo-only", "aur-only"]
        scope = settings.get("show_only_updates_from")
        self.updates_scope.setCurrentIndex(scopes.index(scope) if scope in scopes else 0)
        self.news_group.setVisible(bool(settings.get("show_arch_news")))

        seconds = settings.auto_refresh_seconds()
        if seconds:
            self._auto_refresh_timer.start(seconds * 1000)
            log.info("Auto refresh every %d seconds", seconds)
        else:
            self._auto_refresh_timer.stop()

        self._apply_update_filter()
        self._update_completer()

    def _setup_network_monitor(self):
        if not QNetworkInformation.loadDefaultBackend():
            log.debug("No network information backend available")
            return
        info = QNetworkInformation.instance()
        if info is None:
            return
        self._network = info
        self._was_reachable = info.reachability() == QNetworkInformation.Reachability.Online
        info.reachabilityChanged.connect(self._on_reachability_changed)

    def _on_reachability_changed(self, reachability):
        online = reachability == QNetworkInformation.Reachability.Online
        reconnected = online and self._was_reachable is False
        self._was_reachable = online
        if reconnected and settings.get("refresh_on_network_reconnect"):
            log.info("Network reconnected, refreshing")
            self.refresh()

    def _auto_refresh(self):
        log.debug("Auto refresh triggered")
        self.refresh()

    # ------------------------------------------------------------------
    # data loading
    # ------------------------------------------------------------------
    def _load_cached_data(self):
        ttl = settings.cache_ttl_minutes()
        installed_at = self.store.cached_installed_at()
        if installed_at is not None and is_cache_within_ttl(installed_at, ttl):
            self._set_installed(self.store.cached_installed())
        updates_at = self.store.cached_updates_at()
        if updates_at is not None and is_cache_within_ttl(updates_at, ttl):
            self._set_updates(self.store.cached_updates())
        self._refresh_watchlist()
        self._update_freshness()

    def _set_loading(self):
        busy = self._loading_installed or self._loading_updates
        self.loading_indicator.setVisible(busy)

    def refresh(self):
        self.refresh_installed()
        self.check_updates()

    def refresh_installed(self):
        if self._loading_installed:
            return
        self._loading_installed = True
        self._set_loading()
        run_async(paru.list_installed, on_success=self._on_installed_loaded,
                  on_error=self._on_installed_failed)

    @Slot(object)
    def _on_installed_loaded(self, pkgs: List[Package]):
        self._loading_installed = False
        self._set_loading()
        self.store.set_cached_installed(pkgs)
        self._set_installed(pkgs)
        self._update_freshness()
        self._report_backend_errors()

    @Slot(str)
    def _on_installed_failed(self, message: str):
        self._loading_installed = False
        self._set_loading()
        self.statusbar.showMessage(tr("msg_installed_failed", message), 8000)
        self._report_backend_errors()

    def _set_installed(self, pkgs: List[Package]):
        self.installed_model.set_items(pkgs)
        self._installed_names = {p.name for p in pkgs}
        self.search_model.set_installed_names(self._installed_names)
        self.installed_count.setText(tr("installed_count", len(pkgs)))
        self.dash_installed.setText(str(len(pkgs)))
        self.dash_aur.setText(str(sum(1 for p in pkgs if p.is_aur)))
        self._refresh_watchlist()

    def check_updates(self):
        if self._loading_updates:
            return
        self._loading_updates = True
        self._set_loading()
        self.updates_info.setText(tr("updates_checking"))
        run_async(paru.list_updates, on_success=self._on_updates_loaded,
                  on_error=self._on_updates_failed)

    @Slot(object)
    def _on_updates_loaded(self, pkgs: List[Package]):
        self._loading_updates = False
        self._updates_failed = False
        self._set_loading()
        previous = {p.name for p in self._all_updates}
        self.store.set_cached_updates(pkgs)
        self._set_updates(pkgs)
        self._update_freshness()
        self._report_backend_errors()

        visible = self.updates_model.total_count()
        new_names = {p.name for p in self.updates_model.all_items()} - previous
        if visible and new_names:
            send_notification(
                tr("notify_updates_title"),
                tr("notify_updates_body", visible),
                settings.get("notifications_enabled"),
            )

    @Slot(str)
    def _on_updates_failed(self, message: str):
        self._loading_updates = False
        self._updates_failed = True
        self._set_loading()
        if self._all_updates:
            self.updates_info.setText(tr("updates_failed_cached", message))
        else:
            self.updates_info.setText(tr("updates_failed", message))
        self._report_backend_errors()

    def _set_updates(self, pkgs: List[Package]):
        self._all_updates = list(pkgs)
        self._apply_update_filter()
        self._refresh_watchlist()

    def _apply_update_filter(self):
        scopes = ["all", "repo-only", "aur-only"]
        scope = scopes[max(self.updates_scope.currentIndex(), 0)]
        shown = filter_updates(self._all_updates, scope, settings.ignored_update_names())
        self.updates_model.set_items(shown)
        self.dash_updates.setText(str(len(shown)))
        if not self._loading_updates and not self._updates_failed:
            if shown:
                self.updates_info.setText(tr("updates_available", len(shown)))
            else:
                self.updates_info.setText(tr("updates_none"))
        self.tabs.setTabText(
            STARTUP_TABS.index("updates"),
            tr("tab_updates_count", len(shown)) if shown else tr("tab_updates"),
        )

    def _refresh_watchlist(self):
        installed = {p.name: p for p in self.installed_model.all_items()}
        updates = {p.name: p for p in self._all_updates}
        rows = []
        for name in self.store.favorites():
            if name in updates:
                rows.append(updates[name])
            elif name in installed:
                rows.append(installed[name])
            else:
                rows.append(Package(name, "", tr("watchlist_not_installed")))
        self.watch_model.set_items(rows)
        self.dash_watchlist.setText(str(len(rows)))

    def _update_freshness(self):
        ts = self.store.newest_cache_timestamp()
        if ts is None:
            self.freshness_label.setText(tr("freshness_never"))
            return
        self.freshness_label.setText(freshness_text(ts, settings.cache_ttl_minutes()))

    def _report_backend_errors(self):
        errors = paru.consume_errors()
        if not errors:
            return
        first = errors[0]
        line = tr("msg_command_failed", first.get("command", ""), first.get("message", ""))
        if len(errors) > 1:
            line += " " + tr("msg_more_errors", len(errors) - 1)
        self.statusbar.showMessage(line, 10000)

    def _load_news(self):
        if not settings.get("show_arch_news"):
            return
        self.news_view.setHtml(f"<p style='color:gray;'>{escape(tr('news_loading'))}</p>")
        run_async(news.fetch_arch_news, int(settings.get("arch_news_items")),
                  on_success=self._on_news_loaded, on_error=self._on_news_failed)

    @Slot(object)
    def _on_news_loaded(self, items):
        show_dates = settings.get("show_arch_news_dates")
        parts = []
        for item in items:
            date = f" <span style='color:gray;'>{escape(item.published)}</span>" if show_dates and item.published else ""
            parts.append(f"<p><a href='{escape(item.link)}'>{escape(item.title)}</a>{date}</p>")
        self.news_view.setHtml("".join(parts))

    @Slot(str)
    def _on_news_failed(self, message: str):
        self.news_view.setHtml(f"<p style='color:#cc6600;'>{escape(tr('news_failed', message))}</p>")

    def _open_link(self, url: QUrl):
        if settings.get("open_links_in_external_browser"):
            QDesktopServices.openUrl(url)
        else:
            QApplication.clipboard().setText(url.toString())
            self.statusbar.showMessage(tr("msg_link_copied"), 4000)

    # ------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------
    def _focus_search(self):
        self.tabs.setCurrentIndex(STARTUP_TABS.index("search"))
        self.search_edit.setFocus()
        self.search_edit.selectAll()

    def _update_completer(self):
        seen = []
        for q in self.store.recent_searches() + self.store.trending_searches():
            if q not in seen:
                seen.append(q)
        self._completer_model.setStringList(seen)
        if not self.search_edit.text().strip():
            self._show_suggestions()

    def _show_suggestions(self):
        recent = ", ".join(self.store.recent_searches(6))
        trending = ", ".join(self.store.trending_searches(5))
        if not recent and not trending:
            self.search_info.setText(tr("search_info_start"))
            return
        self.search_info.setText(tr("search_suggestions", recent or "-", trending or "-"))

    def _on_search_text_changed(self, text: str):
        if len(text.strip()) < 2:
            self._search_timer.stop()
            if not text.strip():
                self._show_suggestions()
            return
        self._search_timer.start()

    def _run_search(self):
        self._search_timer.stop()
        query = self.search_edit.text().strip()
        if len(query) < 2:
            return
        self._search_seq += 1
        seq = self._search_seq
        limit = int(settings.get("search_result_limit"))
        self.search_info.setText(tr("search_running", query))
        run_async(
            smart_search_packages, query, limit,
            on_success=lambda pkgs: self._on_search_done(seq, query, pkgs),
            on_error=lambda message: self._on_search_failed(seq, message),
        )

    def _on_search_done(self, seq: int, query: str, pkgs: List[Package]):
        if seq != self._search_seq:
            return
        self.store.record_search(query)
        self._update_completer()
        self.search_model.set_installed_names(self._installed_names)
        self.search_model.set_items(pkgs)
        if pkgs:
            self.search_info.setText(tr("search_results", len(pkgs), query))
        else:
            self.search_info.setText(tr("search_no_results", query))

    def _on_search_failed(self, seq: int, message: str):
        if seq != self._search_seq:
            return
        self.search_info.setText(tr("search_failed", message))
        self._report_backend_errors()

    # ------------------------------------------------------------------
    # selection helpers, details, watchlist
    # ------------------------------------------------------------------
    @staticmethod
    def _selected(table: QTableView, model: PackageModel) -> List[Package]:
        rows = sorted({idx.row() for idx in table.selectionModel().selectedRows()})
        return [model.item_at(r) for r in rows]

    def _on_table_clicked(self, table: QTableView, index, single: bool):
        if not index.isValid():
            return
        if single != bool(settings.get("show_package_details_on_single_click")):
            return
        self._show_details(table.model().item_at(index.row()))

    def _ctx_menu(self, table: QTableView, model: PackageModel, pos):
        idx = table.indexAt(pos)
        if not idx.isValid():
            return
        pkg = model.item_at(idx.row())
        installed = pkg.name in self._installed_names

        menu = QMenu(self)
        menu.addAction(tr("ctx_show_details")).triggered.connect(lambda: self._show_details(pkg))
        if installed:
            if pkg.has_update:
                menu.addAction(tr("ctx_update_item", pkg.name)).triggered.connect(
                    lambda: self._queue_update_packages([pkg])
                )
            menu.addAction(tr("ctx_remove_item", pkg.name)).triggered.connect(
                lambda: self._remove_packages([pkg])
            )
        elif pkg.version:
            menu.addAction(tr("ctx_install_item", pkg.name)).triggered.connect(
                lambda: self._install_packages([pkg])
            )
        watch_key = "ctx_unwatch" if self.store.is_favorite(pkg.name) else "ctx_watch"
        menu.addAction(tr(watch_key)).triggered.connect(lambda: self._toggle_watch(pkg.name))
        menu.exec(table.viewport().mapToGlobal(pos))

    def _details_selected(self, table: QTableView, model: PackageModel):
        pkgs = self._selected(table, model)
        if pkgs:
            self._show_details(pkgs[0])

    def _show_details(self, pkg: Package):
        installed = pkg.name in self._installed_names
        dlg = PackageDetailsDialog(pkg, installed, self.store.is_favorite(pkg.name), self)
        dlg.install_requested.connect(lambda _name: self._install_packages([pkg]))
        dlg.remove_requested.connect(lambda _name: self._remove_packages([pkg]))
        dlg.watch_toggled.connect(self._toggle_watch)
        dlg.exec()

    def _watch_selected(self, table: QTableView, model: PackageModel):
        for pkg in self._selected(table, model):
            self._toggle_watch(pkg.name)

    def _toggle_watch(self, name: str):
        watched = self.store.toggle_favorite(name)
        self.statusbar.showMessage(tr("msg_watch_added" if watched else "msg_watch_removed", name), 4000)
        self._refresh_watchlist()

    # ------------------------------------------------------------------
    # actions that queue tasks
    # ------------------------------------------------------------------
    @staticmethod
    def _needs_confirm(key: str) -> bool:
        return bool(settings.get("confirm_actions")) or bool(settings.get(key))

    def _confirm(self, key: str, text: str) -> bool:
        if not self._needs_confirm(key):
            return True
        return QMessageBox.question(self, tr("dialog_confirm"), text) == QMessageBox.Yes

    def _add_task(self, task_type: TaskType, name: str = "system"):
        self.queue.add_task(task_type, name)
        self.statusbar.showMessage(tr("msg_task_queued", task_type.label, name), 4000)

    def _install_selected(self, table: QTableView, model: PackageModel):
        pkgs = [p for p in self._selected(table, model) if p.name not in self._installed_names]
        if not pkgs:
            self.statusbar.showMessage(tr("msg_nothing_to_install"), 4000)
            return
        self._install_packages(pkgs)

    def _install_packages(self, pkgs: Sequence[Package]):
        if len(pkgs) > 1:
            names = ", ".join(p.name for p in pkgs)
            if not self._confirm("confirm_batch_install", tr("msg_batch_install_confirm", len(pkgs), names)):
                return

        review = settings.get("aur_pkgbuild_required") or settings.get("always_show_pkgbuild_for_aur")
        unresolved = [p.name for p in pkgs if not p.repository_known] if review else []
        if not unresolved:
            self._queue_installs(pkgs, review, set())
            return
        # Watchlist rows carry no repository; ask pacman before skipping the review.
        run_async(
            paru.aur_packages, unresolved,
            on_success=lambda aur: self._queue_installs(pkgs, review, aur),
            on_error=lambda message: self._queue_installs(pkgs, review, set(unresolved)),
        )

    def _queue_installs(self, pkgs: Sequence[Package], review: bool, aur_names: Set[str]):
        for pkg in pkgs:
            if review and (pkg.is_aur or pkg.name in aur_names):
                dlg = PkgbuildReviewDialog(pkg.name, self)
                if dlg.exec() != QDialog.Accepted:
                    log.info("Install of %s skipped after PKGBUILD review", pkg.name)
                    continue
            self._add_task(TaskType.INSTALL, pkg.name)

    def _remove_selected(self):
        pkgs = self._selected(self.installed_table, self.installed_model)
        if pkgs:
            self._remove_packages(pkgs)

    def _remove_packages(self, pkgs: Sequence[Package]):
        if len(pkgs) > 1:
            names = ", ".join(p.name for p in pkgs)
            ok = self._confirm("confirm_batch_remove", tr("msg_batch_remove_confirm", len(pkgs), names))
        else:
            ok = self._confirm("confirm_remove", tr("msg_remove_confirm", pkgs[0].name))
        if not ok:
            return
        for pkg in pkgs:
            self._add_task(TaskType.REMOVE, pkg.name)

    def _update_selected(self):
        pkgs = self._selected(self.updates_table, self.updates_model)
        if pkgs:
            self._queue_update_packages(pkgs)

    def _queue_update_packages(self, pkgs: Sequence[Package]):
        for pkg in pkgs:
            self._add_task(TaskType.UPDATE_PACKAGE, pkg.name)

    def _update_all(self):
        count = self.updates_model.total_count()
        text = tr("msg_update_all_confirm", count) if count else tr("msg_update_all_confirm_unknown")
        if not self._confirm("confirm_update_all", text):
            return
        self._add_task(TaskType.UPDATE)

    def _system_cleanup_dialog(self):
        dlg = CleanupDialog(self)
        if dlg.exec() != QDialog.Accepted:
            return
        selections = dlg.selections()
        if selections.get("cache") and self._confirm("confirm_clean_cache", tr("msg_clean_cache_confirm")):
            self._add_task(TaskType.CLEAN_CACHE)
        if selections.get("orphans") and self._confirm("confirm_remove_orphans", tr("msg_remove_orphans_confirm")):
            self._add_task(TaskType.REMOVE_ORPHANS)

    # ------------------------------------------------------------------
    # queue
    # ------------------------------------------------------------------
    def _show_queue(self):
        if self._queue_window is None:
            self._queue_window = QueueWindow(self.queue, self.bridge, self)
        self._queue_window.show()
        self._queue_window.raise_()
        self._queue_window.activateWindow()

    @Slot()
    def _on_queue_changed(self):
        tasks = self.queue.get_tasks()
        summary = queue_summary(tasks)
        self.queue_label.setText(summary)
        self.dash_queue.setText(summary)

        newly_done = [
            t for t in tasks
            if t.is_finished and t.id not in self._seen_finished
        ]
        for t in newly_done:
            self._seen_finished.add(t.id)
        if any(t.status == TaskStatus.COMPLETED for t in newly_done):
            QTimer.singleShot(REFRESH_AFTER_TASK_MS, self.refresh)
        for t in newly_done:
            if t.status == TaskStatus.FAILED:
                self.statusbar.showMessage(tr("msg_task_failed", t.title, t.error or ""), 10000)

    def closeEvent(self, event):
        """Ask before quitting while tasks are still running."""
        if self.queue.has_running_task():
            reply = QMessageBox.question(self, tr("dialog_confirm"), tr("msg_quit_running"))
            if reply != QMessageBox.Yes:
                event.ignore()
                return
            for task in self.queue.get_tasks():
                if task.status == TaskStatus.RUNNING:
                    self.queue.request_cancel(task.id)
        self.bridge.detach()
        event.accept()
        super().closeEvent(event)


def main():
    parser = argparse.ArgumentParser(description="Parut - a graphical front end for paru")
    parser.add_argument(
        "--tab",
        choices=STARTUP_TABS,
        help="Tab to show after startup.",
    )
    parser.add_argument(
        "--show-updates",
        action="store_true",
        help="Open the updates tab and check for updates after startup.",
    )
    parser.add_argument(
        "--log-level",
        choices=list(LEVELS),
        help="Override the configured log level.",
    )
    args, qt_args = parser.parse_known_args()

    setup_logging(args.log_level or settings.get("log_level"), settings.get("max_log_size_mb"))
    log.info("Starting Parut")

    app = QApplication([sys.argv[0], *qt_args])
    app.setApplicationName("Parut")
    app.setDesktopFileName("parut")

    if args.show_updates:
        message = "show-updates"
    elif args.tab:
        message = f"tab:{args.tab}"
    else:
        message = "show"
    if _notify_running_instance(SINGLE_INSTANCE_SERVER_NAME, message):
        log.info("Parut is already running, focused the existing window")
        return

    server = _create_single_instance_server(SINGLE_INSTANCE_SERVER_NAME)
    if server is None:
        QMessageBox.warning(None, tr("dialog_hint"), tr("single_instance_error"))
        return

    app.aboutToQuit.connect(server.close)
    app.aboutToQuit.connect(lambda: QLocalServer.removeServer(SINGLE_INSTANCE_SERVER_NAME))
    app.setWindowIcon(_load_app_icon())

    if not paru.is_paru_installed():
        log.warning("paru was not found in PATH")
        QMessageBox.warning(None, tr("dialog_hint"), tr("msg_paru_missing"))

    queue = TaskQueue(settings)
    broker = PasswordBroker()
    worker = TaskWorker(queue, settings=settings, password_provider=broker.ask)
    worker.start()
    app.aboutToQuit.connect(lambda: worker.stop(timeout=2.0))
    app.aboutToQuit.connect(wait_all)

    w = MainWindow(queue, DataStore(), start_tab=args.tab, show_updates=args.show_updates)
    w.setup_single_instance_server(server)
    w.show()
    code = app.exec()
    log.info("Parut exited with code %s", code)
    sys.exit(code)


if __name__ == "__main__":
    main()
