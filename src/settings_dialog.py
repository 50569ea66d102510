"""
Settings dialog for Parut, one tab per settings group.
"""

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QTabWidget, QWidget,
    QPushButton, QLabel, QComboBox, QSpinBox, QCheckBox,
    QGroupBox, QLineEdit, QMessageBox, QFormLayout
)

from logger import setup_logging
from settings import settings, AUTO_REFRESH_INTERVALS, STARTUP_TABS, TERMINALS
from i18n import tr

REFRESH_CHOICES = ["off", *AUTO_REFRESH_INTERVALS]
SCOPE_CHOICES = ["all", "repo-only", "aur-only"]
RESULT_LIMITS = [50, 100, 250, 500]
AUTO_CLEAR_CHOICES = [0, 5, 15, 60]
LOG_LEVELS = ["error", "warn", "info", "debug"]
SORT_LABELS = ["sort_name_asc", "sort_name_desc", "sort_repository"]


def _info_label(text: str) -> QLabel:
    info = QLabel(text)
    info.setWordWrap(True)
    info.setStyleSheet("color: gray; margin-bottom: 10px;")
    return info


def _select(combo: QComboBox, values: list, value) -> None:
    combo.setCurrentIndex(values.index(value) if value in values else 0)


class SettingsDialog(QDialog):
    """Tabbed editor for the persisted settings."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle(tr("settings_dialog_title"))
        self.resize(620, 520)

        self._build_ui()
        self._load_values()

    def _build_ui(self):
        layout = QVBoxLayout(self)

        tabs = QTabWidget()
        tabs.addTab(self._build_general_tab(), tr("settings_tab_general"))
        tabs.addTab(self._build_search_tab(), tr("settings_tab_search"))
        tabs.addTab(self._build_confirm_tab(), tr("settings_tab_confirm"))
        tabs.addTab(self._build_updates_tab(), tr("settings_tab_updates"))
        tabs.addTab(self._build_tasks_tab(), tr("settings_tab_tasks"))
        tabs.addTab(self._build_dashboard_tab(), tr("settings_tab_dashboard"))

        layout.addWidget(tabs)

        btn_row = QHBoxLayout()
        btn_row.addStretch()

        self.btn_reset = QPushButton(tr("settings_btn_reset"))
        self.btn_cancel = QPushButton(tr("btn_cancel"))
        self.btn_save = QPushButton(tr("settings_btn_save"))

        self.btn_reset.clicked.connect(self._reset_defaults)
        self.btn_cancel.clicked.connect(self.reject)
        self.btn_save.clicked.connect(self._save_and_close)

        btn_row.addWidget(self.btn_reset)
        btn_row.addWidget(self.btn_cancel)
        btn_row.addWidget(self.btn_save)

        layout.addLayout(btn_row)

    # ===== TAB 1: General =====
    def _build_general_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        grp_notify = QGroupBox(tr("settings_notifications_group"))
        notify_layout = QVBoxLayout()
        self.notifications_enabled = QCheckBox(tr("settings_notifications_enabled"))
        self.notify_complete = QCheckBox(tr("settings_notify_complete"))
        self.notify_failed = QCheckBox(tr("settings_notify_failed"))
        for chk in (self.notifications_enabled, self.notify_complete, self.notify_failed):
            notify_layout.addWidget(chk)
        self.notifications_enabled.toggled.connect(self.notify_complete.setEnabled)
        self.notifications_enabled.toggled.connect(self.notify_failed.setEnabled)
        grp_notify.setLayout(notify_layout)
        layout.addWidget(grp_notify)

        grp_startup = QGroupBox(tr("settings_startup_group"))
        form = QFormLayout()
        self.check_updates_on_startup = QCheckBox(tr("settings_check_updates_on_startup"))
        form.addRow(self.check_updates_on_startup)
        self.startup_tab = QComboBox()
        self.startup_tab.addItems([tr(f"tab_{name}") for name in STARTUP_TABS])
        form.addRow(tr("settings_startup_tab"), self.startup_tab)
        grp_startup.setLayout(form)
        layout.addWidget(grp_startup)

        grp_refresh = QGroupBox(tr("settings_refresh_group"))
        form = QFormLayout()
        self.auto_refresh = QComboBox()
        self.auto_refresh.addItems([tr(f"settings_refresh_{value}") for value in REFRESH_CHOICES])
        form.addRow(tr("settings_auto_refresh"), self.auto_refresh)
        self.refresh_on_reconnect = QCheckBox(tr("settings_refresh_on_reconnect"))
        form.addRow(self.refresh_on_reconnect)
        self.cache_ttl = QSpinBox()
        self.cache_ttl.setRange(0, 24 * 60)
        self.cache_ttl.setSuffix(" min")
        self.cache_ttl.setSpecialValueText(tr("settings_cache_ttl_never"))
        form.addRow(tr("settings_cache_ttl"), self.cache_ttl)
        grp_refresh.setLayout(form)
        layout.addWidget(grp_refresh)

        layout.addStretch()
        return widget

    # ===== TAB 2: Search & lists =====
    def _build_search_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.addWidget(_info_label(tr("settings_search_info")))

        form = QFormLayout()
        self.result_limit = QComboBox()
        self.result_limit.addItems([str(n) for n in RESULT_LIMITS])
        form.addRow(tr("settings_result_limit"), self.result_limit)

        self.sort_search = QComboBox()
        self.sort_search.addItems([tr(key) for key in SORT_LABELS])
        form.addRow(tr("settings_sort_search"), self.sort_search)

        self.sort_installed = QComboBox()
        self.sort_installed.addItems([tr(key) for key in SORT_LABELS])
        form.addRow(tr("settings_sort_installed"), self.sort_installed)
        layout.addLayout(form)

        layout.addSpacing(10)
        self.show_sizes = QCheckBox(tr("settings_show_sizes"))
        self.details_single_click = QCheckBox(tr("settings_details_single_click"))
        self.external_browser = QCheckBox(tr("settings_external_browser"))
        for chk in (self.show_sizes, self.details_single_click, self.external_browser):
            layout.addWidget(chk)

        layout.addStretch()
        return widget

    # ===== TAB 3: Confirmations =====
    def _build_confirm_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.addWidget(_info_label(tr("settings_confirm_info")))

        self.confirm_actions = QCheckBox(tr("settings_confirm_actions"))
        self.confirm_actions.setStyleSheet("font-weight: bold;")
        layout.addWidget(self.confirm_actions)

        self.confirm_boxes = {}
        for key in (
            "confirm_remove",
            "confirm_update_all",
            "confirm_clean_cache",
            "confirm_remove_orphans",
            "confirm_batch_install",
            "confirm_batch_remove",
        ):
            chk = QCheckBox(tr(f"settings_{key}"))
            chk.setStyleSheet("margin-left: 25px;")
            self.confirm_boxes[key] = chk
            layout.addWidget(chk)

        grp_aur = QGroupBox(tr("settings_aur_review_group"))
        aur_layout = QVBoxLayout()
        self.pkgbuild_required = QCheckBox(tr("settings_pkgbuild_required"))
        self.pkgbuild_always = QCheckBox(tr("settings_pkgbuild_always"))
        aur_layout.addWidget(self.pkgbuild_required)
        aur_layout.addWidget(self.pkgbuild_always)
        grp_aur.setLayout(aur_layout)
        layout.addWidget(grp_aur)

        layout.addStretch()
        return widget

    # ===== TAB 4: Updates =====
    def _build_updates_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        form = QFormLayout()
        self.show_updates_from = QComboBox()
        self.show_updates_from.addItems([tr(f"scope_{value}") for value in SCOPE_CHOICES])
        form.addRow(tr("settings_show_updates_from"), self.show_updates_from)

        self.update_scope = QComboBox()
        self.update_scope.addItems([tr(f"scope_{value}") for value in SCOPE_CHOICES])
        form.addRow(tr("settings_update_scope"), self.update_scope)

        self.ignored_updates = QLineEdit()
        self.ignored_updates.setPlaceholderText("linux, nvidia-dkms")
        form.addRow(tr("settings_ignored_updates"), self.ignored_updates)
        layout.addLayout(form)

        hint = QLabel(tr("settings_ignored_updates_hint"))
        hint.setWordWrap(True)
        hint.setStyleSheet(
            "background-color: #e8f4f8; padding: 10px; border-radius: 5px; "
            "color: #0c5460;"
        )
        layout.addWidget(hint)

        layout.addStretch()
        return widget

    # ===== TAB 5: Task execution =====
    def _build_tasks_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.addWidget(_info_label(tr("settings_tasks_info")))

        form = QFormLayout()
        self.execution_mode = QComboBox()
        self.execution_mode.addItems([
            tr("settings_execution_embedded"),
            tr("settings_execution_terminal"),
        ])
        form.addRow(tr("settings_execution_mode"), self.execution_mode)

        self.terminal_preference = QComboBox()
        self.terminal_preference.addItems(["auto", *TERMINALS])
        form.addRow(tr("settings_terminal_preference"), self.terminal_preference)
        self.execution_mode.currentIndexChanged.connect(
            lambda idx: self.terminal_preference.setEnabled(idx == 1)
        )

        self.max_parallel = QSpinBox()
        self.max_parallel.setRange(1, 8)
        form.addRow(tr("settings_max_parallel"), self.max_parallel)

        self.output_limit = QSpinBox()
        self.output_limit.setRange(50, 5000)
        self.output_limit.setSingleStep(50)
        form.addRow(tr("settings_output_limit"), self.output_limit)

        self.auto_clear = QComboBox()
        self.auto_clear.addItems([tr("settings_auto_clear_off")] + [f"{n} min" for n in AUTO_CLEAR_CHOICES[1:]])
        form.addRow(tr("settings_auto_clear"), self.auto_clear)
        layout.addLayout(form)

        grp_log = QGroupBox(tr("settings_logging_group"))
        log_form = QFormLayout()
        self.log_level = QComboBox()
        self.log_level.addItems(LOG_LEVELS)
        log_form.addRow(tr("settings_log_level"), self.log_level)
        self.log_size = QSpinBox()
        self.log_size.setRange(1, 500)
        self.log_size.setSuffix(" MB")
        log_form.addRow(tr("settings_log_size"), self.log_size)
        grp_log.setLayout(log_form)
        layout.addWidget(grp_log)

        layout.addStretch()
        return widget

    # ===== TAB 6: Dashboard =====
    def _build_dashboard_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.show_news = QCheckBox(tr("settings_show_news"))
        layout.addWidget(self.show_news)

        form = QFormLayout()
        self.news_items = QSpinBox()
        self.news_items.setRange(1, 20)
        form.addRow(tr("settings_news_items"), self.news_items)
        self.news_dates = QCheckBox(tr("settings_news_dates"))
        form.addRow(self.news_dates)
        layout.addLayout(form)
        self.show_news.toggled.connect(self.news_items.setEnabled)
        self.show_news.toggled.connect(self.news_dates.setEnabled)

        layout.addStretch()
        return widget

    def _load_values(self):
        """Load the current settings into the UI."""

        # General
        self.notifications_enabled.setChecked(bool(settings.get("notifications_enabled")))
        self.notify_complete.setChecked(bool(settings.get("notify_on_task_complete")))
        self.notify_failed.setChecked(bool(settings.get("notify_on_task_failed")))
        self.notify_complete.setEnabled(self.notifications_enabled.isChecked())
        self.notify_failed.setEnabled(self.notifications_enabled.isChecked())
        self.check_updates_on_startup.setChecked(bool(settings.get("check_updates_on_startup")))
        _select(self.startup_tab, STARTUP_TABS, settings.startup_tab())
        _select(self.auto_refresh, REFRESH_CHOICES, settings.get("auto_refresh_interval"))
        self.refresh_on_reconnect.setChecked(bool(settings.get("refresh_on_network_reconnect")))
        self.cache_ttl.setValue(settings.cache_ttl_minutes())

        # Search
        _select(self.result_limit, RESULT_LIMITS, settings.get("search_result_limit"))
        _select(self.sort_search, [0, 1, 2], settings.get("default_sort_search"))
        _select(self.sort_installed, [0, 1, 2], settings.get("default_sort_installed"))
        self.show_sizes.setChecked(bool(settings.get("show_package_sizes_in_lists")))
        self.details_single_click.setChecked(bool(settings.get("show_package_details_on_single_click")))
        self.external_browser.setChecked(bool(settings.get("open_links_in_external_browser")))

        # Confirmations
        self.confirm_actions.setChecked(bool(settings.get("confirm_actions")))
        for key, chk in self.confirm_boxes.items():
            chk.setChecked(bool(settings.get(key)))
        self.pkgbuild_required.setChecked(bool(settings.get("aur_pkgbuild_required")))
        self.pkgbuild_always.setChecked(bool(settings.get("always_show_pkgbuild_for_aur")))

        # Updates
        _select(self.show_updates_from, SCOPE_CHOICES, settings.get("show_only_updates_from"))
        _select(self.update_scope, SCOPE_CHOICES, settings.get("default_update_scope"))
        self.ignored_updates.setText(", ".join(settings.ignored_update_names()))

        # Tasks
        terminal_mode = settings.get("execution_mode") == "terminal"
        self.execution_mode.setCurrentIndex(1 if terminal_mode else 0)
        _select(self.terminal_preference, ["auto", *TERMINALS], settings.get("terminal_preference"))
        self.terminal_preference.setEnabled(terminal_mode)
        self.max_parallel.setValue(settings.max_parallel())
        self.output_limit.setValue(settings.output_lines_limit())
        _select(self.auto_clear, AUTO_CLEAR_CHOICES, settings.auto_clear_minutes())
        _select(self.log_level, LOG_LEVELS, settings.get("log_level"))
        self.log_size.setValue(int(settings.get("max_log_size_mb")))

        # Dashboard
        self.show_news.setChecked(bool(settings.get("show_arch_news")))
        self.news_items.setValue(int(settings.get("arch_news_items")))
        self.news_dates.setChecked(bool(settings.get("show_arch_news_dates")))
        self.news_items.setEnabled(self.show_news.isChecked())
        self.news_dates.setEnabled(self.show_news.isChecked())

    def _save_and_close(self):
        """Write the UI values back into the settings."""
        if self.pkgbuild_always.isChecked() and not self.pkgbuild_required.isChecked():
            # Always showing the PKGBUILD implies reviewing it before install.
            self.pkgbuild_required.setChecked(True)

        values = {
            "notifications_enabled": self.notifications_enabled.isChecked(),
            "notify_on_task_complete": self.notify_complete.isChecked(),
            "notify_on_task_failed": self.notify_failed.isChecked(),
            "check_updates_on_startup": self.check_updates_on_startup.isChecked(),
            "startup_tab": STARTUP_TABS[self.startup_tab.currentIndex()],
            "auto_refresh_interval": REFRESH_CHOICES[self.auto_refresh.currentIndex()],
            "refresh_on_network_reconnect": self.refresh_on_reconnect.isChecked(),
            "cache_ttl_minutes": self.cache_ttl.value(),
            "search_result_limit": RESULT_LIMITS[self.result_limit.currentIndex()],
            "default_sort_search": self.sort_search.currentIndex(),
            "default_sort_installed": self.sort_installed.currentIndex(),
            "show_package_sizes_in_lists": self.show_sizes.isChecked(),
            "show_package_details_on_single_click": self.details_single_click.isChecked(),
            "open_links_in_external_browser": self.external_browser.isChecked(),
            "confirm_actions": self.confirm_actions.isChecked(),
            "aur_pkgbuild_required": self.pkgbuild_required.isChecked(),
            "always_show_pkgbuild_for_aur": self.pkgbuild_always.isChecked(),
            "show_only_updates_from": SCOPE_CHOICES[self.show_updates_from.currentIndex()],
            "default_update_scope": SCOPE_CHOICES[self.update_scope.currentIndex()],
            "ignored_updates": [
                name.strip() for name in self.ignored_updates.text().split(",") if name.strip()
            ],
            "execution_mode": "terminal" if self.execution_mode.currentIndex() == 1 else "embedded",
            "terminal_preference": self.terminal_preference.currentText(),
            "max_parallel_tasks": self.max_parallel.value(),
            "task_output_lines_limit": self.output_limit.value(),
            "auto_clear_completed_tasks_minutes": AUTO_CLEAR_CHOICES[self.auto_clear.currentIndex()],
            "log_level": self.log_level.currentText(),
            "max_log_size_mb": self.log_size.value(),
            "show_arch_news": self.show_news.isChecked(),
            "arch_news_items": self.news_items.value(),
            "show_arch_news_dates": self.news_dates.isChecked(),
        }
        for key, chk in self.confirm_boxes.items():
            values[key] = chk.isChecked()

        settings.update(**values)
        setup_logging(settings.get("log_level"), settings.get("max_log_size_mb"))
        self.accept()

    def _reset_defaults(self):
        """Reset all values to their defaults."""
        reply = QMessageBox.question(
            self, tr("settings_reset_title"),
            tr("settings_reset_message"),
            QMessageBox.Yes | QMessageBox.No
        )
        if reply == QMessageBox.Yes:
            settings.reset_to_defaults()
            self._load_values()
            QMessageBox.information(
                self, tr("settings_reset_done_title"),
                tr("settings_reset_done_message")
            )
