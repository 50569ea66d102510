from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

from PySide6.QtCore import Qt, QAbstractTableModel, QModelIndex

from i18n import tr


@dataclass
class Package:
    name: str
    version: str
    description: str = ""
    repository: str = "unknown"   # core, extra, ..., "aur", "repo" or "unknown"
    installed_version: Optional[str] = None

    @property
    def is_aur(self) -> bool:
        return self.repository == "aur"

    @property
    def repository_known(self) -> bool:
        return self.repository not in ("", "unknown")

    @property
    def is_installed(self) -> bool:
        return self.installed_version is not None

    @property
    def has_update(self) -> bool:
        return self.installed_version is not None and self.installed_version != self.version

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Package":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values.setdefault("name", "")
        values.setdefault("version", "")
        return cls(**values)


@dataclass
class PackageDetails:
    name: str
    version: str = ""
    description: str = ""
    repository: str = ""
    url: str = ""
    licenses: str = ""
    groups: str = ""
    provides: str = ""
    depends_on: str = ""
    optional_deps: str = ""
    required_by: str = ""
    optional_for: str = ""
    conflicts_with: str = ""
    replaces: str = ""
    installed_size: str = ""
    packager: str = ""
    build_date: str = ""
    install_date: str = ""
    install_reason: str = ""
    install_script: str = ""
    validated_by: str = ""
    votes: str = ""
    popularity: str = ""

    def rows(self) -> List[tuple]:
        """(label, value) pairs for the non-empty fields, in display order."""
        out = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value:
                out.append((f.name.replace("_", " ").title(), value))
        return out


@dataclass
class NewsItem:
    title: str
    link: str
    published: str = ""


@dataclass
class AurComment:
    author: str
    date: str
    content: str


@dataclass
class CleanupEstimate:
    pacman_cache_bytes: int = 0
    paru_clone_bytes: int = 0
    orphan_count: int = 0

    @property
    def total_bytes(self) -> int:
        return self.pacman_cache_bytes + self.paru_clone_bytes


class PackageModel(QAbstractTableModel):
    headers = ["Name", "Version", "Installed", "Repository", "Description"]

    def __init__(self, items: List[Package] | None = None):
        super().__init__()
        self._all: List[Package] = items or []
        self._filtered: List[Package] = list(self._all)
        self._text_filter = ""
        self._source_filter = "all"
        self._sort_mode = 0
        self._installed: set[str] = set()
        self._sort_column: Optional[int] = None
        self._sort_order = Qt.AscendingOrder

    def set_items(self, items: List[Package]):
        self.beginResetModel()
        self._all = list(items)
        self._apply_filters()
        self.endResetModel()

    def set_installed_names(self, names: set[str]):
        """Names shown as installed even when the row has no installed version."""
        self.beginResetModel()
        self._installed = set(names)
        self.endResetModel()

    def _apply_filters(self):
        from search import filter_and_sort_packages

        src = self._source_filter

        def ok(it: Package) -> bool:
            if src == "aur":
                return it.is_aur
            if src == "repo":
                return not it.is_aur
            return True

        scoped = [it for it in self._all if ok(it)]
        self._filtered = filter_and_sort_packages(scoped, self._text_filter, self._sort_mode)
        if self._sort_column is not None:
            self._apply_column_sort()

    def _apply_column_sort(self):
        attr_map = {
            0: 'name',
            1: 'version',
            2: 'installed_version',
            3: 'repository',
            4: 'description',
        }
        attr = attr_map.get(self._sort_column, 'name')
        reverse = (self._sort_order == Qt.DescendingOrder)
        self._filtered.sort(key=lambda it: (getattr(it, attr) or "").lower(), reverse=reverse)

    def set_text_filter(self, text: str):
        self._text_filter = text
        self.beginResetModel()
        self._apply_filters()
        self.endResetModel()

    def set_source_filter(self, src: str):
        self._source_filter = src
        self.beginResetModel()
        self._apply_filters()
        self.endResetModel()

    def set_sort_mode(self, mode: int):
        self._sort_mode = mode
        self._sort_column = None
        self.beginResetModel()
        self._apply_filters()
        self.endResetModel()

    def sort(self, column: int, order: Qt.SortOrder = Qt.AscendingOrder):
        """Implement sorting support for QTableView."""
        if column < 0 or column >= len(self.headers):
            return

        self.layoutAboutToBeChanged.emit()
        self._sort_column = column
        self._sort_order = order
        self._apply_column_sort()
        self.layoutChanged.emit()

    def total_count(self) -> int:
        return len(self._all)

    def filtered_count(self) -> int:
        return len(self._filtered)

    def all_items(self) -> List[Package]:
        return list(self._all)

    # Qt model impl
    def rowCount(self, parent=QModelIndex()) -> int:
        return len(self._filtered)

    def columnCount(self, parent=QModelIndex()) -> int:
        return len(self.headers)

    def data(self, index, role=Qt.DisplayRole):
        if not index.isValid():
            return None
        it = self._filtered[index.row()]
        col = index.column()
        if role == Qt.ToolTipRole and col == 4:
            return it.description
        if role not in (Qt.DisplayRole, Qt.EditRole):
            return None
        installed = it.installed_version or ""
        if not installed and it.name in self._installed:
            installed = tr("label_installed")
        values = [
            it.name,
            it.version,
            installed,
            it.repository,
            it.description,
        ]
        return values[col]

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            labels = [
                tr("table_package"),
                tr("table_version"),
                tr("table_installed"),
                tr("table_repository"),
                tr("table_description"),
            ]
            if 0 <= section < len(labels):
                return labels[section]
            return self.headers[section]
        return None

    def item_at(self, row: int) -> Package:
        return self._filtered[row]
