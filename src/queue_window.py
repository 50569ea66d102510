from typing import List, Optional

from PySide6.QtCore import QObject, Qt, QTimer, Signal, Slot
from PySide6.QtGui import QColor, QFontDatabase
from PySide6.QtWidgets import (
    QDialog,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
)

from i18n import tr
from task_queue import SYSTEM_TARGET, Task, TaskQueue, TaskStatus
from utils import format_duration

COLUMNS = [
    "queue_col_type",
    "queue_col_package",
    "queue_col_status",
    "queue_col_phase",
    "queue_col_progress",
    "queue_col_elapsed",
    "queue_col_error",
]

STATUS_COLORS = {
    TaskStatus.RUNNING: "#1d6fb8",
    TaskStatus.COMPLETED: "#2e7d32",
    TaskStatus.FAILED: "#c62828",
    TaskStatus.CANCELED: "#8d6e63",
}


class QueueBridge(QObject):
    """Re-emit task queue changes on the UI thread, at most every 100 ms."""

    changed = Signal()
    _poke = Signal()

    def __init__(self, queue: TaskQueue, parent=None):
        super().__init__(parent)
        self.queue = queue
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(100)
        self._timer.timeout.connect(self.changed.emit)
        self._poke.connect(self._schedule)
        queue.add_listener(self._on_queue_changed)

    def _on_queue_changed(self):
        # Called from worker threads; the signal hops to the UI thread.
        self._poke.emit()

    @Slot()
    def _schedule(self):
        if not self._timer.isActive():
            self._timer.start()

    def detach(self):
        self.queue.remove_listener(self._on_queue_changed)


def queue_summary(tasks: List[Task]) -> str:
    running = sum(1 for t in tasks if t.status == TaskStatus.RUNNING)
    queued = sum(1 for t in tasks if t.status == TaskStatus.QUEUED)
    failed = sum(1 for t in tasks if t.status == TaskStatus.FAILED)
    if not running and not queued and not failed:
        return tr("queue_idle")
    return tr("queue_summary", running, queued, failed)


class QueueWindow(QDialog):
    """Live view of the task queue with per-task actions and output."""

    def __init__(self, queue: TaskQueue, bridge: QueueBridge, parent=None):
        super().__init__(parent)
        self.queue = queue
        self.setWindowTitle(tr("queue_window_title"))
        self.resize(960, 620)
        self.setModal(False)

        self._tasks: List[Task] = []
        self._selected_id: Optional[int] = None

        self.table = QTableWidget(0, len(COLUMNS))
        self.table.setHorizontalHeaderLabels([tr(key) for key in COLUMNS])
        self.table.verticalHeader().setVisible(False)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionBehavior(QTableWidget.SelectRows)
        self.table.setSelectionMode(QTableWidget.SingleSelection)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.Interactive)
        self.table.horizontalHeader().setStretchLastSection(True)
        for i, w in enumerate([130, 200, 100, 170, 120, 80]):
            self.table.setColumnWidth(i, w)
        self.table.itemSelectionChanged.connect(self._on_selection_changed)

        self.output = QPlainTextEdit()
        self.output.setReadOnly(True)
        self.output.setFont(QFontDatabase.systemFont(QFontDatabase.FixedFont))
        self.output.setPlaceholderText(tr("queue_output_placeholder"))

        self.btn_cancel = QPushButton(tr("queue_btn_cancel"))
        self.btn_up = QPushButton(tr("queue_btn_up"))
        self.btn_down = QPushButton(tr("queue_btn_down"))
        self.btn_run_now = QPushButton(tr("queue_btn_run_now"))
        self.btn_retry = QPushButton(tr("queue_btn_retry"))
        self.btn_clear = QPushButton(tr("queue_btn_clear"))

        self.btn_cancel.clicked.connect(self._cancel_selected)
        self.btn_up.clicked.connect(lambda: self._with_selected(self.queue.move_queued_task_up))
        self.btn_down.clicked.connect(lambda: self._with_selected(self.queue.move_queued_task_down))
        self.btn_run_now.clicked.connect(lambda: self._with_selected(self.queue.run_queued_task_now))
        self.btn_retry.clicked.connect(lambda: self._with_selected(self.queue.retry_failed_task))
        self.btn_clear.clicked.connect(self.queue.clear_completed)

        self.summary_label = QLabel()
        self.summary_label.setStyleSheet("color: gray;")

        buttons = QHBoxLayout()
        for b in (self.btn_cancel, self.btn_up, self.btn_down, self.btn_run_now, self.btn_retry):
            buttons.addWidget(b)
        buttons.addStretch(1)
        buttons.addWidget(self.summary_label)
        buttons.addWidget(self.btn_clear)

        split = QSplitter(Qt.Vertical)
        split.addWidget(self.table)
        split.addWidget(self.output)
        split.setSizes([320, 260])

        layout = QVBoxLayout(self)
        layout.addLayout(buttons)
        layout.addWidget(split, 1)

        bridge.changed.connect(self.refresh)

        # Elapsed times tick even without queue changes.
        self._ticker = QTimer(self)
        self._ticker.setInterval(1000)
        self._ticker.timeout.connect(self._tick)
        self._ticker.start()

        self.refresh()

    # ---- rendering ----

    @Slot()
    def refresh(self):
        self._tasks = self.queue.get_tasks()
        self.table.blockSignals(True)
        self.table.setRowCount(len(self._tasks))
        selected_row = -1
        for row, task in enumerate(self._tasks):
            self._fill_row(row, task)
            if task.id == self._selected_id:
                selected_row = row
        if selected_row >= 0:
            self.table.selectRow(selected_row)
        else:
            self._selected_id = None
            self.table.clearSelection()
        self.table.blockSignals(False)

        self.summary_label.setText(queue_summary(self._tasks))
        self._show_output()
        self._update_buttons()

    def _fill_row(self, row: int, task: Task):
        package = tr("queue_system") if task.package_name == SYSTEM_TARGET else task.package_name
        duration = task.duration()
        values = [
            task.task_type.label,
            package,
            tr(f"status_{task.status.value}"),
            task.phase or "",
            "",
            format_duration(duration) if duration is not None else "",
            task.error or "",
        ]
        for col, text in enumerate(values):
            item = QTableWidgetItem(text)
            item.setData(Qt.UserRole, task.id)
            if col == 2 and task.status in STATUS_COLORS:
                item.setForeground(Qt.GlobalColor.white)
                item.setBackground(QColor(STATUS_COLORS[task.status]))
            if col == 6 and task.error:
                item.setToolTip(task.error)
            self.table.setItem(row, col, item)

        bar = QProgressBar()
        bar.setRange(0, 100)
        if task.status == TaskStatus.RUNNING and task.progress is None:
            bar.setRange(0, 0)
        elif task.status == TaskStatus.COMPLETED:
            bar.setValue(100)
        else:
            bar.setValue(int((task.progress or 0.0) * 100))
        self.table.setCellWidget(row, 4, bar)

    def _tick(self):
        for row, task in enumerate(self._tasks):
            if task.status == TaskStatus.RUNNING:
                duration = task.duration()
                item = self.table.item(row, 5)
                if item is not None and duration is not None:
                    item.setText(format_duration(duration))

    def _show_output(self):
        task = self._selected_task()
        if task is None:
            self.output.clear()
            return
        text = "\n".join(task.output)
        if text != self.output.toPlainText():
            self.output.setPlainText(text)
            self.output.verticalScrollBar().setValue(self.output.verticalScrollBar().maximum())

    def _update_buttons(self):
        task = self._selected_task()
        status = task.status if task else None
        queued = status == TaskStatus.QUEUED
        self.btn_cancel.setEnabled(status in (TaskStatus.QUEUED, TaskStatus.RUNNING))
        self.btn_up.setEnabled(queued)
        self.btn_down.setEnabled(queued)
        self.btn_run_now.setEnabled(queued)
        self.btn_retry.setEnabled(status == TaskStatus.FAILED)
        self.btn_clear.setEnabled(any(t.is_finished for t in self._tasks))

    # ---- actions ----

    def _selected_task(self) -> Optional[Task]:
        for task in self._tasks:
            if task.id == self._selected_id:
                return task
        return None

    def _on_selection_changed(self):
        rows = self.table.selectionModel().selectedRows()
        if rows:
            item = self.table.item(rows[0].row(), 0)
            self._selected_id = item.data(Qt.UserRole) if item else None
        else:
            self._selected_id = None
        self._show_output()
        self._update_buttons()

    def _with_selected(self, action):
        if self._selected_id is not None:
            action(self._selected_id)

    def _cancel_selected(self):
        task = self._selected_task()
        if task is None:
            return
        if task.status == TaskStatus.QUEUED:
            self.queue.cancel_queued_task(task.id)
        elif task.status == TaskStatus.RUNNING:
            self.queue.request_cancel(task.id)

    def closeEvent(self, event):
        self._ticker.stop()
        super().closeEvent(event)

    def showEvent(self, event):
        self._ticker.start()
        self.refresh()
        super().showEvent(event)
