"""Side panel listing the target layer's annotations and drawings."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from PyQt6.QtCore import QPoint, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QAction, QBrush, QColor
from PyQt6.QtWidgets import (
    QColorDialog, QInputDialog, QMenu, QTreeWidget, QTreeWidgetItem, QVBoxLayout, QWidget,
)

from ..core import annotation_store as store
from ..core.colors import to_css_rgba
from ..core.edit_session import EditSession
from ..core.layers import Layer, LayerManager

logger = logging.getLogger(__name__)

ANNOTATION = "annotation"
DRAWING = "drawing"
ITEM_ROLE = Qt.ItemDataRole.UserRole


class AnnotationPanel(QWidget):
    """
    Tree of annotation groups and drawings for the target layer.

    Check boxes toggle visibility, expanding an entry opens its details
    and the context menu exposes the display flags, colors, label and
    deletion.
    """

    tag_requested = pyqtSignal(int, str)  # layer_id, drawing_id

    def __init__(
        self,
        layers: LayerManager,
        session: EditSession,
        parent: Optional[QWidget] = None
    ) -> None:
        super().__init__(parent)
        self.layers = layers
        self.session = session
        self._rebuilding = False
        self._rebuild_pending = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.tree = QTreeWidget()
        self.tree.setHeaderLabels(["Name", "Details"])
        self.tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._show_context_menu)
        self.tree.itemChanged.connect(self._on_item_changed)
        self.tree.itemExpanded.connect(self._on_item_expanded)
        self.tree.itemCollapsed.connect(self._on_item_expanded)
        self.tree.itemDoubleClicked.connect(self._on_item_double_clicked)
        layout.addWidget(self.tree)

        self.layers.layer_changed.connect(self._on_layer_changed)
        self.layers.layers_changed.connect(self.schedule_rebuild)
        self.rebuild()

    def _on_layer_changed(self, layer_id: int) -> None:
        target = self.layers.target_layer()
        if target is not None and target.id == layer_id:
            self.schedule_rebuild()

    # === Building ===

    def schedule_rebuild(self) -> None:
        """Rebuild once control returns to the event loop."""
        if self._rebuild_pending:
            return
        self._rebuild_pending = True
        QTimer.singleShot(0, self.rebuild)

    def rebuild(self) -> None:
        """Repopulate the tree from the target layer."""
        self._rebuild_pending = False
        self._rebuilding = True
        try:
            self.tree.clear()
            layer = self.layers.target_layer()
            if layer is not None:
                self._populate(layer)
        finally:
            self._rebuilding = False

    def _populate(self, layer: Layer) -> None:
        for group in layer.active_annotations or ():
            group_item = QTreeWidgetItem([group.class_name, f"{len(group.members)}"])
            self.tree.addTopLevelItem(group_item)
            for coord in group.members:
                item = QTreeWidgetItem([coord.label, ""])
                item.setData(0, ITEM_ROLE, (ANNOTATION, coord.id))
                item.setFlags(item.flags() | Qt.ItemFlag.ItemIsUserCheckable)
                item.setCheckState(0, Qt.CheckState.Checked if coord.visible else Qt.CheckState.Unchecked)
                item.setForeground(0, QBrush(coord.stroke_color))
                x1, y1, x2, y2 = coord.coordinates
                item.addChild(QTreeWidgetItem(["Box", f"{x1:.0f}, {y1:.0f}, {x2:.0f}, {y2:.0f}"]))
                item.addChild(QTreeWidgetItem(["Fill", to_css_rgba(coord.fill_color)]))
                item.addChild(QTreeWidgetItem(["Stroke", to_css_rgba(coord.stroke_color)]))
                group_item.addChild(item)
                item.setExpanded(coord.drawer_open)
            group_item.setExpanded(True)

        if layer.drawings:
            drawings_item = QTreeWidgetItem(["Drawings", f"{len(layer.drawings)}"])
            self.tree.addTopLevelItem(drawings_item)
            for drawing in layer.drawings:
                item = QTreeWidgetItem([drawing.label or drawing.id, drawing.kind.value])
                item.setData(0, ITEM_ROLE, (DRAWING, drawing.id))
                item.setFlags(item.flags() | Qt.ItemFlag.ItemIsUserCheckable)
                item.setCheckState(0, Qt.CheckState.Checked if drawing.visible else Qt.CheckState.Unchecked)
                item.setForeground(0, QBrush(drawing.stroke_color))
                if drawing.tooth_number:
                    item.addChild(QTreeWidgetItem(["Tooth", drawing.tooth_number]))
                if drawing.pathology:
                    item.addChild(QTreeWidgetItem(["Pathology", drawing.custom_pathology or drawing.pathology]))
                item.addChild(QTreeWidgetItem(["Points", str(len(drawing.points) // 2)]))
                drawings_item.addChild(item)
                item.setExpanded(drawing.drawer_open)
            drawings_item.setExpanded(True)

    # === Edits ===

    @staticmethod
    def _entry(item: Optional[QTreeWidgetItem]) -> Optional[Tuple[str, str]]:
        if item is None:
            return None
        return item.data(0, ITEM_ROLE)

    def _apply(self, kind: str, entry_id: str, groups_fn, drawings_fn) -> None:
        layer = self.layers.target_layer()
        if layer is None:
            return
        if kind == ANNOTATION:
            self.layers.update_annotations(layer.id, lambda groups: groups_fn(groups, entry_id))
        else:
            self.layers.update_drawings(layer.id, lambda drawings: drawings_fn(drawings, entry_id))

    def _on_item_changed(self, item: QTreeWidgetItem, column: int) -> None:
        entry = self._entry(item)
        if self._rebuilding or entry is None or column != 0:
            return
        kind, entry_id = entry
        self._apply(kind, entry_id, store.toggle_visibility, store.toggle_drawing_visibility)

    def _on_item_expanded(self, item: QTreeWidgetItem) -> None:
        entry = self._entry(item)
        if self._rebuilding or entry is None:
            return
        kind, entry_id = entry
        self._apply(kind, entry_id, store.toggle_drawer_open, store.toggle_drawing_drawer)

    def _on_item_double_clicked(self, item: QTreeWidgetItem, column: int) -> None:
        entry = self._entry(item)
        if entry is not None:
            self._rename(*entry, item.text(0))

    def _toggle_flag(self, kind: str, entry_id: str, flag: str) -> None:
        self._apply(
            kind,
            entry_id,
            lambda groups, cid: store.toggle_display_flag(groups, cid, flag),
            lambda drawings, did: store.toggle_drawing_flag(drawings, did, flag),
        )

    def _recolor(self, kind: str, entry_id: str, field: str, current: QColor) -> None:
        color = QColorDialog.getColor(
            current, self, "Choose Color", QColorDialog.ColorDialogOption.ShowAlphaChannel
        )
        if not color.isValid():
            return
        self._apply(
            kind,
            entry_id,
            lambda groups, cid: store.recolor(groups, cid, field, color),
            lambda drawings, did: store.recolor_drawing(drawings, did, field, color),
        )

    def _rename(self, kind: str, entry_id: str, current: str) -> None:
        text, ok = QInputDialog.getText(self, "Rename", "Label:", text=current)
        if not ok:
            return
        self._apply(
            kind,
            entry_id,
            lambda groups, cid: store.relabel(groups, cid, text),
            lambda drawings, did: store.relabel_drawing(drawings, did, text),
        )

    def _delete(self, kind: str, entry_id: str) -> None:
        layer = self.layers.target_layer()
        if layer is None:
            return
        if kind == ANNOTATION:
            self.layers.update_annotations(layer.id, lambda groups: store.delete(groups, entry_id))
        else:
            self.session.delete_drawing(entry_id, layer.id)

    def _current_colors(self, kind: str, entry_id: str) -> Tuple[QColor, QColor]:
        layer = self.layers.target_layer()
        if kind == ANNOTATION:
            found = store.find_coord(layer.active_annotations, entry_id)
            shape = found[1] if found else None
        else:
            shape = store.find_drawing(layer.drawings, entry_id)
        if shape is None:
            return QColor(), QColor()
        return shape.stroke_color, shape.fill_color

    def _show_context_menu(self, position: QPoint) -> None:
        item = self.tree.itemAt(position)
        entry = self._entry(item)
        if entry is None or self.layers.target_layer() is None:
            return
        kind, entry_id = entry
        stroke, fill = self._current_colors(kind, entry_id)

        menu = QMenu(self)
        actions = [
            ("Toggle Label", lambda: self._toggle_flag(kind, entry_id, "show_label")),
            ("Toggle Outline", lambda: self._toggle_flag(kind, entry_id, "show_stroke")),
            ("Toggle Fill", lambda: self._toggle_flag(kind, entry_id, "show_background")),
            ("Outline Color...", lambda: self._recolor(kind, entry_id, "stroke_color", stroke)),
            ("Fill Color...", lambda: self._recolor(kind, entry_id, "fill_color", fill)),
            ("Rename...", lambda: self._rename(kind, entry_id, item.text(0))),
        ]
        for text, slot in actions:
            action = QAction(text, self)
            action.triggered.connect(slot)
            menu.addAction(action)

        if kind == DRAWING:
            tag_action = QAction("Tag Tooth/Pathology...", self)
            tag_action.triggered.connect(
                lambda: self.tag_requested.emit(self.layers.target_layer().id, entry_id)
            )
            menu.addAction(tag_action)

        menu.addSeparator()
        delete_action = QAction("Delete", self)
        delete_action.triggered.connect(lambda: self._delete(kind, entry_id))
        menu.addAction(delete_action)

        menu.exec(self.tree.viewport().mapToGlobal(position))
