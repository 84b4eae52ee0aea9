"""Pointer-driven editing state machine for drawings on the target layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from . import annotation_store as store
from .geometry import (
    VertexHit, canonical_box, distance, nearest_vertex, point_in_box,
    point_in_polygon, point_to_segment_distance,
)
from .layers import Layer, LayerManager
from .models import Drawing, DrawingKind
from .transform import DisplayMetrics

logger = logging.getLogger(__name__)

SNAP_THRESHOLD = 10.0
VERTEX_THRESHOLD = 10.0
HIT_TOLERANCE = 10.0
ZOOM_STEP = 0.2


class Tool(str, Enum):
    """Editing tools available in the toolbar."""

    SELECT = "select"
    MOVE = "move"
    RESHAPE = "reshape"
    RECTANGLE = "rectangle"
    LINE = "line"
    POINT = "point"
    POLYGON = "polygon"
    ZOOM_IN = "zoom-in"
    ZOOM_OUT = "zoom-out"


# Tools that still work while overlays are hidden
ZOOM_TOOLS = (Tool.ZOOM_IN, Tool.ZOOM_OUT)


class Interaction(Enum):
    """Transient interaction in progress. Only one can be active at a time."""

    IDLE = "idle"
    DRAWING = "drawing"
    POLYGON = "polygon"
    TRANSFORMING = "transforming"
    DRAGGING_POINT = "dragging_point"


@dataclass(frozen=True)
class HitResult:
    """Shape found under the pointer; ``kind`` is "annotation" or "drawing"."""

    kind: str
    id: str


@dataclass(frozen=True)
class Preview:
    """In-progress shape in image space, drawn on top of committed geometry."""

    kind: DrawingKind
    points: Tuple[QPointF, ...]
    cursor: Optional[QPointF] = None


def drawing_contains(drawing: Drawing, p: QPointF, tolerance: float = HIT_TOLERANCE) -> bool:
    """Check if an image-space point hits a drawing's body."""
    if drawing.kind == DrawingKind.RECTANGLE:
        return point_in_box(p, canonical_box(drawing.points))
    if drawing.kind == DrawingKind.POLYGON:
        return point_in_polygon(p, drawing.vertices())
    vertices = drawing.vertices()
    if drawing.kind == DrawingKind.LINE and len(vertices) >= 2:
        return point_to_segment_distance(p, vertices[0], vertices[1]) <= tolerance
    if drawing.kind == DrawingKind.POINT and vertices:
        return distance(p, vertices[0]) <= tolerance
    return False


class EditSession(QObject):
    """
    Vector editing state machine.

    Receives pointer events in display space together with the current
    display metrics, converts them to image space through the target
    layer's view transform and applies the active tool. All edits go
    through the LayerManager so every change is signalled.
    """

    changed = pyqtSignal()  # Transient state changed, repaint needed
    tool_changed = pyqtSignal(str)
    drawing_committed = pyqtSignal(int, str)  # layer_id, drawing_id

    def __init__(
        self,
        layers: LayerManager,
        snap_threshold: float = SNAP_THRESHOLD,
        vertex_threshold: float = VERTEX_THRESHOLD,
        zoom_step: float = ZOOM_STEP,
        first_match: bool = True
    ) -> None:
        """
        Initialize the session.

        Args:
            layers: Layer manager whose target layer receives edits
            snap_threshold: Distance in image pixels that closes a polygon
            vertex_threshold: Distance in image pixels to grab a vertex
            zoom_step: Zoom change per zoom-tool click
            first_match: Grab the first vertex in range instead of the nearest
        """
        super().__init__()
        self.layers = layers
        self.snap_threshold = snap_threshold
        self.vertex_threshold = vertex_threshold
        self.zoom_step = zoom_step
        self.first_match = first_match

        self._tool = Tool.SELECT
        self._reset()
        self.layers.layers_changed.connect(self._on_layers_changed)

    def _reset(self) -> None:
        """Clear all transient state."""
        self._interaction = Interaction.IDLE
        self._layer_id: Optional[int] = None
        self._polygon: List[QPointF] = []
        self._cursor: Optional[QPointF] = None
        self._drag_start: Optional[QPointF] = None
        self._drag_end: Optional[QPointF] = None
        self._move_id: Optional[str] = None
        self._move_origin: Optional[QPointF] = None
        self._reshape: Optional[VertexHit] = None
        self._grab_offset = QPointF()
        self._snapshot: Optional[List[Drawing]] = None

    # === State ===

    @property
    def tool(self) -> Tool:
        """Currently selected tool."""
        return self._tool

    @property
    def interaction(self) -> Interaction:
        """Interaction in progress."""
        return self._interaction

    @property
    def is_drawing(self) -> bool:
        return self._interaction == Interaction.DRAWING

    @property
    def is_polygon_drawing(self) -> bool:
        return self._interaction == Interaction.POLYGON

    @property
    def is_transforming(self) -> bool:
        return self._interaction == Interaction.TRANSFORMING

    @property
    def is_dragging_point(self) -> bool:
        return self._interaction == Interaction.DRAGGING_POINT

    @property
    def polygon_vertices(self) -> List[QPointF]:
        """Copy of the polygon vertex buffer."""
        return [QPointF(p) for p in self._polygon]

    @property
    def active_layer_id(self) -> Optional[int]:
        """Layer the interaction in progress belongs to."""
        return self._layer_id

    def preview(self) -> Optional[Preview]:
        """Shape being drawn, or None when nothing is in progress."""
        if self._interaction == Interaction.DRAWING and self._drag_start and self._drag_end:
            kind = DrawingKind.LINE if self._tool == Tool.LINE else DrawingKind.RECTANGLE
            return Preview(kind, (QPointF(self._drag_start), QPointF(self._drag_end)))
        if self._interaction == Interaction.POLYGON and self._polygon:
            cursor = QPointF(self._cursor) if self._cursor is not None else None
            return Preview(DrawingKind.POLYGON, tuple(QPointF(p) for p in self._polygon), cursor)
        return None

    def set_tool(self, tool: Tool) -> None:
        """Switch tools, discarding any interaction in progress."""
        tool = Tool(tool)
        self.cancel()
        if tool != self._tool:
            self._tool = tool
            logger.debug(f"Tool set to {tool.value}")
            self.tool_changed.emit(tool.value)

    def cancel(self) -> None:
        """Abandon the interaction in progress without committing it."""
        was_active = self._interaction != Interaction.IDLE
        self._reset()
        if was_active:
            self.changed.emit()

    def _on_layers_changed(self) -> None:
        if self._layer_id is None:
            return
        target = self.layers.target_layer()
        if target is None or target.id != self._layer_id:
            self.cancel()

    # === Pointer input ===

    def _resolve(self, pos: QPointF, metrics: DisplayMetrics) -> Tuple[Optional[Layer], Optional[QPointF]]:
        if not self.layers.annotations_enabled and self._tool not in ZOOM_TOOLS:
            return None, None

        if self._layer_id is not None:
            layer = self.layers.layer(self._layer_id)
        else:
            layer = self.layers.target_layer()
        if layer is None:
            return None, None

        point = layer.view_transform(metrics).to_image(pos)
        if point is None:
            logger.debug(f"Ignoring pointer event on layer {layer.id}: size unknown")
            return layer, None
        return layer, point

    def pointer_down(self, pos: QPointF, metrics: DisplayMetrics) -> None:
        """Handle a primary-button press at a display-space position."""
        layer, p = self._resolve(pos, metrics)
        if layer is None or p is None:
            return

        if self._tool == Tool.SELECT:
            self._toggle_label_at(layer, p)
        elif self._tool == Tool.MOVE:
            self._begin_move(layer, p)
        elif self._tool == Tool.RESHAPE:
            self._begin_reshape(layer, p)
        elif self._tool in (Tool.RECTANGLE, Tool.LINE):
            self._interaction = Interaction.DRAWING
            self._layer_id = layer.id
            self._drag_start = QPointF(p)
            self._drag_end = QPointF(p)
        elif self._tool == Tool.POINT:
            self._commit(layer, Drawing(DrawingKind.POINT, (p.x(), p.y())))
        elif self._tool == Tool.POLYGON:
            self._polygon_click(layer, p)
        elif self._tool in ZOOM_TOOLS:
            delta = self.zoom_step if self._tool == Tool.ZOOM_IN else -self.zoom_step
            self.layers.zoom_by(layer.id, delta, p)

        self.changed.emit()

    def pointer_move(self, pos: QPointF, metrics: DisplayMetrics) -> None:
        """Handle pointer motion with or without a button held."""
        layer, p = self._resolve(pos, metrics)
        if layer is None or p is None:
            return

        if self._interaction == Interaction.DRAWING:
            self._drag_end = QPointF(p)
        elif self._interaction == Interaction.POLYGON:
            self._cursor = QPointF(p)
        elif self._interaction == Interaction.TRANSFORMING:
            self._continue_move(layer, p)
        elif self._interaction == Interaction.DRAGGING_POINT:
            self._continue_reshape(layer, p)
        else:
            return
        self.changed.emit()

    def pointer_up(self, pos: QPointF, metrics: DisplayMetrics) -> None:
        """Handle a primary-button release, wherever it happens."""
        if self._interaction in (Interaction.IDLE, Interaction.POLYGON):
            return

        layer, p = self._resolve(pos, metrics)
        if layer is None:
            self.cancel()
            return

        if self._interaction == Interaction.DRAWING:
            if p is not None:
                self._drag_end = QPointF(p)
            self._finish_drag(layer)
        elif self._interaction == Interaction.TRANSFORMING:
            if p is not None:
                self._continue_move(layer, p)
            self._finish_edit(layer, "Move drawing")
        elif self._interaction == Interaction.DRAGGING_POINT:
            if p is not None:
                self._continue_reshape(layer, p)
            self._finish_reshape(layer)
        self.changed.emit()

    def pointer_leave(self) -> None:
        """Commit a rectangle or line drag when the pointer leaves the canvas."""
        if self._interaction != Interaction.DRAWING or self._layer_id is None:
            return
        layer = self.layers.layer(self._layer_id)
        if layer is None:
            self.cancel()
            return
        self._finish_drag(layer)
        self.changed.emit()

    def double_click(self, pos: QPointF, metrics: DisplayMetrics) -> None:
        """Finish the polygon being drawn, or discard it if it is too short."""
        if self._interaction != Interaction.POLYGON or self._layer_id is None:
            return
        layer = self.layers.layer(self._layer_id)
        if layer is not None and len(self._polygon) >= 3:
            self._commit_polygon(layer)
        else:
            logger.debug("Discarding polygon with fewer than 3 vertices")
            self._reset()
        self.changed.emit()

    # === Hit testing ===

    def find_shape_at_point(self, layer: Layer, p: QPointF) -> Optional[HitResult]:
        """
        Find the topmost shape under an image-space point.

        Annotations of the active check type are searched before drawings,
        each in store order. Hidden shapes are skipped.
        """
        for group in layer.active_annotations or ():
            for coord in group.members:
                if not coord.visible:
                    continue
                if coord.has_polygon:
                    hit = point_in_polygon(p, coord.polygon)
                else:
                    hit = point_in_box(p, coord.coordinates)
                if hit:
                    return HitResult("annotation", coord.id)

        drawing = self._drawing_at(layer, p)
        if drawing is not None:
            return HitResult("drawing", drawing.id)
        return None

    def _drawing_at(self, layer: Layer, p: QPointF) -> Optional[Drawing]:
        for drawing in layer.drawings:
            if drawing.visible and drawing_contains(drawing, p):
                return drawing
        return None

    # === Tool handlers ===

    def _toggle_label_at(self, layer: Layer, p: QPointF) -> None:
        hit = self.find_shape_at_point(layer, p)
        if hit is None:
            return
        if hit.kind == "annotation":
            self.layers.update_annotations(
                layer.id, lambda groups: store.toggle_display_flag(groups, hit.id, "show_label")
            )
        else:
            self.layers.update_drawings(
                layer.id, lambda drawings: store.toggle_drawing_flag(drawings, hit.id, "show_label")
            )

    def _begin_move(self, layer: Layer, p: QPointF) -> None:
        drawing = self._drawing_at(layer, p)
        if drawing is None:
            return
        self._interaction = Interaction.TRANSFORMING
        self._layer_id = layer.id
        self._move_id = drawing.id
        self._move_origin = QPointF(p)
        self._snapshot = list(layer.drawings)

    def _continue_move(self, layer: Layer, p: QPointF) -> None:
        dx = p.x() - self._move_origin.x()
        dy = p.y() - self._move_origin.y()
        if dx == 0 and dy == 0:
            return
        self._move_origin = QPointF(p)
        self.layers.set_drawings(
            layer.id,
            store.replace_drawing(layer.drawings, self._move_id, lambda d: d.translated(dx, dy)),
        )

    def _begin_reshape(self, layer: Layer, p: QPointF) -> None:
        hit = nearest_vertex(p, layer.drawings, self.vertex_threshold, self.first_match)
        if hit is None:
            return
        self._interaction = Interaction.DRAGGING_POINT
        self._layer_id = layer.id
        self._reshape = hit
        self._grab_offset = QPointF(
            hit.original_point.x() - p.x(), hit.original_point.y() - p.y()
        )
        self._snapshot = list(layer.drawings)

    def _continue_reshape(self, layer: Layer, p: QPointF) -> None:
        target = QPointF(p.x() + self._grab_offset.x(), p.y() + self._grab_offset.y())
        hit = self._reshape
        self.layers.set_drawings(
            layer.id,
            store.replace_drawing(
                layer.drawings, hit.drawing_id, lambda d: d.with_vertex(hit.vertex_index, target)
            ),
        )

    def _finish_reshape(self, layer: Layer) -> None:
        drawing_id = self._reshape.drawing_id
        drawings = store.replace_drawing(layer.drawings, drawing_id, lambda d: d.normalized())
        if drawings != layer.drawings:
            self.layers.set_drawings(layer.id, drawings)
        self._finish_edit(layer, "Reshape drawing")

    def _finish_edit(self, layer: Layer, description: str) -> None:
        """Record the pre-interaction snapshot if the drawings changed."""
        snapshot = self._snapshot
        self._reset()
        if snapshot is not None and snapshot != layer.drawings:
            layer.history.push(snapshot, description)

    def _finish_drag(self, layer: Layer) -> None:
        start, end = self._drag_start, self._drag_end
        kind = DrawingKind.LINE if self._tool == Tool.LINE else DrawingKind.RECTANGLE
        self._reset()
        if start is None or end is None:
            return

        drawing = Drawing(kind, (start.x(), start.y(), end.x(), end.y())).normalized()
        if drawing.is_degenerate():
            logger.debug(f"Discarding degenerate {kind.value}")
            return
        self._commit(layer, drawing)

    def _polygon_click(self, layer: Layer, p: QPointF) -> None:
        if self._interaction != Interaction.POLYGON:
            self._reset()
            self._interaction = Interaction.POLYGON
            self._layer_id = layer.id
            self._polygon = [QPointF(p)]
            self._cursor = QPointF(p)
            return

        if len(self._polygon) >= 3 and distance(p, self._polygon[0]) < self.snap_threshold:
            self._commit_polygon(layer)
            return
        self._polygon.append(QPointF(p))
        self._cursor = QPointF(p)

    def _commit_polygon(self, layer: Layer) -> None:
        points: List[float] = []
        for vertex in self._polygon:
            points.extend((vertex.x(), vertex.y()))
        self._reset()
        self._commit(layer, Drawing(DrawingKind.POLYGON, tuple(points)))

    def _commit(self, layer: Layer, drawing: Drawing) -> None:
        self.layers.update_drawings(
            layer.id,
            lambda drawings: drawings + [drawing],
            record_history=True,
            description=f"Add {drawing.kind.value}",
        )
        logger.debug(f"Committed {drawing.kind.value} {drawing.id} on layer {layer.id}")
        self.drawing_committed.emit(layer.id, drawing.id)

    # === Commands ===

    def undo(self) -> bool:
        """Undo the last drawings edit on the target layer."""
        self.cancel()
        layer = self.layers.target_layer()
        if layer is None:
            return False
        restored = layer.history.undo(layer.drawings)
        if restored is None:
            return False
        self.layers.set_drawings(layer.id, restored)
        self.changed.emit()
        return True

    def redo(self) -> bool:
        """Redo the last undone drawings edit on the target layer."""
        self.cancel()
        layer = self.layers.target_layer()
        if layer is None:
            return False
        restored = layer.history.redo(layer.drawings)
        if restored is None:
            return False
        self.layers.set_drawings(layer.id, restored)
        self.changed.emit()
        return True

    def delete_drawing(self, drawing_id: str, layer_id: Optional[int] = None) -> None:
        """Delete a drawing, recording the previous state in history."""
        layer = self.layers.layer(layer_id) if layer_id is not None else self.layers.target_layer()
        if layer is None:
            return
        self.layers.update_drawings(
            layer.id,
            lambda drawings: store.delete_drawing(drawings, drawing_id),
            record_history=True,
            description="Delete drawing",
        )

    def tag_drawing(
        self,
        layer_id: int,
        drawing_id: str,
        tooth_number: str,
        pathology: str,
        custom_pathology: Optional[str] = None
    ) -> None:
        """Attach clinical tags to a freshly committed drawing."""
        self.layers.update_drawings(
            layer_id,
            lambda drawings: store.assign_clinical_tags(
                drawings, drawing_id, tooth_number, pathology, custom_pathology
            ),
        )
