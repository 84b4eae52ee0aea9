"""Canvas widget showing one layer's image with its annotation overlay."""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QPointF, QRectF, Qt, QTimer
from PyQt6.QtGui import QColor, QKeyEvent, QMouseEvent, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QSizePolicy, QWidget

from ..core.edit_session import EditSession, Tool
from ..core.layers import Layer, LayerManager
from ..core.renderer import Renderer
from ..core.transform import DisplayMetrics

logger = logging.getLogger(__name__)

_TOOL_CURSORS = {
    Tool.SELECT: Qt.CursorShape.PointingHandCursor,
    Tool.MOVE: Qt.CursorShape.SizeAllCursor,
    Tool.RESHAPE: Qt.CursorShape.CrossCursor,
    Tool.ZOOM_IN: Qt.CursorShape.CrossCursor,
    Tool.ZOOM_OUT: Qt.CursorShape.CrossCursor,
}


class LayerCanvas(QWidget):
    """
    Displays a layer's image fitted to the widget and forwards input.

    The image keeps its aspect ratio inside the widget. Pointer positions
    are made relative to the displayed image rectangle before they reach
    the edit session, and that rectangle's size is the display size used
    by the view transform.
    """

    def __init__(
        self,
        layer_id: int,
        layers: LayerManager,
        session: EditSession,
        renderer: Renderer,
        parent: Optional[QWidget] = None
    ) -> None:
        """Initialize the canvas for one layer."""
        super().__init__(parent)
        self.layer_id = layer_id
        self.layers = layers
        self.session = session
        self.renderer = renderer

        self._pixmap: Optional[QPixmap] = None
        self._pixmap_revision: Optional[int] = None
        self._repaint_pending = False

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(200, 150)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self.layers.layer_changed.connect(self._on_layer_changed)
        self.layers.layers_changed.connect(self.update)
        self.layers.loading_changed.connect(self._on_layer_changed)
        self.session.changed.connect(self.update)
        self.session.tool_changed.connect(self._update_cursor)
        self._update_cursor()

    @property
    def layer(self) -> Optional[Layer]:
        return self.layers.layer(self.layer_id)

    # === Geometry ===

    def _ensure_pixmap(self, layer: Layer) -> Optional[QPixmap]:
        if layer.source_path is None:
            self._pixmap = None
            self._pixmap_revision = None
            return None
        if self._pixmap_revision != layer.image_revision:
            self._pixmap = QPixmap(str(layer.source_path))
            self._pixmap_revision = layer.image_revision
            if self._pixmap.isNull():
                logger.warning(f"Failed to load image: {layer.source_path}")
        return self._pixmap

    def image_rect(self) -> QRectF:
        """Rectangle the image occupies inside the widget."""
        layer = self.layer
        if layer is None or not layer.image_size.is_known:
            return QRectF()

        size = layer.image_size
        scale = min(self.width() / size.width, self.height() / size.height)
        width = size.width * scale
        height = size.height * scale
        return QRectF((self.width() - width) / 2, (self.height() - height) / 2, width, height)

    def display_metrics(self) -> DisplayMetrics:
        """Current on-screen size of the image."""
        rect = self.image_rect()
        return DisplayMetrics(rect.width(), rect.height(), self.devicePixelRatioF())

    def _local(self, event: QMouseEvent) -> QPointF:
        return event.position() - self.image_rect().topLeft()

    # === Painting ===

    def paintEvent(self, event) -> None:
        """Paint the image and the overlay, both under the layer zoom."""
        self._repaint_pending = False
        painter = QPainter(self)
        try:
            self._paint(painter)
        finally:
            painter.end()

    def _paint(self, painter: QPainter) -> None:
        painter.fillRect(self.rect(), self.palette().window())
        layer = self.layer
        if layer is None:
            return

        is_target = self.layers.target_layer() is layer
        pixmap = self._ensure_pixmap(layer)
        rect = self.image_rect()

        if pixmap is None or pixmap.isNull() or rect.isEmpty():
            painter.setPen(self.palette().text().color())
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, f"Layer {layer.id}\nNo image loaded")
        else:
            metrics = self.display_metrics()
            painter.save()
            painter.setClipRect(rect)
            painter.translate(rect.topLeft())
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
            painter.setTransform(layer.view_transform(metrics).zoom_transform(), True)
            painter.drawPixmap(QRectF(0, 0, rect.width(), rect.height()), pixmap, QRectF(pixmap.rect()))
            painter.restore()

            painter.save()
            painter.setClipRect(rect)
            painter.translate(rect.topLeft())
            self.renderer.render(
                painter, layer, metrics, self.session, self.layers.annotations_enabled
            )
            painter.restore()

        if self.layers.is_loading(layer.id):
            painter.setPen(QColor("#FFFFFF"))
            painter.fillRect(QRectF(0, 0, self.width(), 24), QColor(0, 0, 0, 160))
            painter.drawText(QRectF(0, 0, self.width(), 24), Qt.AlignmentFlag.AlignCenter, "Classifying...")

        if is_target and len(self.layers.layers) > 1:
            painter.setPen(QPen(self.palette().highlight().color(), 3))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(self.rect().adjusted(1, 1, -2, -2))

    @property
    def repaint_pending(self) -> bool:
        """True while a coalesced repaint is queued."""
        return self._repaint_pending

    def schedule_repaint(self) -> None:
        """Coalesce repaint requests into one per event-loop turn."""
        if self._repaint_pending:
            return
        self._repaint_pending = True
        QTimer.singleShot(0, self.update)

    def resizeEvent(self, event) -> None:
        """Re-render (not re-layout) when the displayed size changes."""
        super().resizeEvent(event)
        self.schedule_repaint()

    def _on_layer_changed(self, layer_id: int, *args) -> None:
        if layer_id == self.layer_id:
            self.schedule_repaint()

    def _update_cursor(self, *args) -> None:
        self.setCursor(_TOOL_CURSORS.get(self.session.tool, Qt.CursorShape.CrossCursor))

    # === Input ===

    def _activate(self) -> None:
        target = self.layers.target_layer()
        if target is None or target.id != self.layer_id:
            self.layers.select_layer(self.layer_id)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Forward primary-button presses to the edit session."""
        self.setFocus()
        if event.button() == Qt.MouseButton.RightButton:
            self.session.cancel()
            return
        if event.button() != Qt.MouseButton.LeftButton:
            return
        self._activate()
        self.session.pointer_down(self._local(event), self.display_metrics())

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """Forward pointer motion to the edit session."""
        if self.session.active_layer_id not in (None, self.layer_id):
            return
        target = self.layers.target_layer()
        if target is None or target.id != self.layer_id:
            return
        self.session.pointer_move(self._local(event), self.display_metrics())

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """Forward releases; the press widget receives them wherever they happen."""
        if event.button() != Qt.MouseButton.LeftButton:
            return
        if self.session.active_layer_id == self.layer_id:
            self.session.pointer_up(self._local(event), self.display_metrics())

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        """Finish a polygon on double-click."""
        if event.button() == Qt.MouseButton.LeftButton and self.session.active_layer_id == self.layer_id:
            self.session.double_click(self._local(event), self.display_metrics())

    def leaveEvent(self, event) -> None:
        """Commit an in-progress rectangle or line when the pointer leaves."""
        if self.session.active_layer_id == self.layer_id:
            self.session.pointer_leave()
        super().leaveEvent(event)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Escape abandons the interaction in progress."""
        if event.key() == Qt.Key.Key_Escape:
            self.session.cancel()
            return
        super().keyPressEvent(event)
