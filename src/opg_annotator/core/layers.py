"""Multi-layer state: images, classification slots, drawings and zoom per layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from .annotation_store import ingest_classifier_result
from .history import DrawingHistory
from .models import AnnotationGroup, CheckType, Detection, Drawing
from .transform import DisplayMetrics, ImageSize, ViewTransform

logger = logging.getLogger(__name__)

DEFAULT_MAX_LAYERS = 6
DEFAULT_MIN_ZOOM = 0.5
DEFAULT_MAX_ZOOM = 3.0


def _empty_slots() -> Dict[CheckType, Optional[List[AnnotationGroup]]]:
    return {check_type: None for check_type in CheckType}


@dataclass(eq=False)
class Layer:
    """
    One independently editable view of an image.

    Collections are replaced rather than mutated in place, so references
    handed out earlier keep describing the state they were taken from.
    """

    id: int
    source_path: Optional[Path] = None
    image_size: ImageSize = field(default_factory=ImageSize)
    image_revision: int = 0
    check_type: CheckType = CheckType.QC
    annotations: Dict[CheckType, Optional[List[AnnotationGroup]]] = field(default_factory=_empty_slots)
    drawings: List[Drawing] = field(default_factory=list)
    history: DrawingHistory = field(default_factory=DrawingHistory)
    zoom: float = 1.0
    zoom_center: QPointF = field(default_factory=QPointF)
    zoom_pan: QPointF = field(default_factory=QPointF)

    @property
    def has_image(self) -> bool:
        """True once an image has been loaded into the layer."""
        return self.source_path is not None

    @property
    def active_annotations(self) -> Optional[List[AnnotationGroup]]:
        """Annotation groups of the layer's current check type."""
        return self.annotations.get(self.check_type)

    def view_transform(self, metrics: DisplayMetrics) -> ViewTransform:
        """Build the image/display transform for the given display metrics."""
        return ViewTransform(
            self.image_size, metrics, self.zoom, QPointF(self.zoom_center), QPointF(self.zoom_pan)
        )


class LayerManager(QObject):
    """
    Owns the ordered set of layers and the selection/fullscreen state.

    Rejected user actions (too many layers, deleting the last one,
    classification failures) are reported through ``notification``
    and leave state unchanged.
    """

    layers_changed = pyqtSignal()  # Layer added, removed, selected or fullscreened
    layer_changed = pyqtSignal(int)  # Content of one layer changed
    loading_changed = pyqtSignal(int, bool)  # layer_id, is_loading
    notification = pyqtSignal(str)

    def __init__(
        self,
        max_layers: int = DEFAULT_MAX_LAYERS,
        max_history: int = 100,
        min_zoom: float = DEFAULT_MIN_ZOOM,
        max_zoom: float = DEFAULT_MAX_ZOOM
    ) -> None:
        """
        Initialize with a single empty layer.

        Args:
            max_layers: Maximum number of layers alive at once
            max_history: Undo history depth for each layer
            min_zoom: Lower zoom bound
            max_zoom: Upper zoom bound
        """
        super().__init__()
        self.max_layers = max_layers
        self.max_history = max_history
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom

        self._layers: Dict[int, Layer] = {}
        self._loading: Dict[int, int] = {}
        self._selected_id: Optional[int] = None
        self._fullscreen_id: Optional[int] = None
        self._annotations_enabled = True

        first = self._create_layer(1)
        self._selected_id = first.id

    def _create_layer(self, layer_id: int) -> Layer:
        layer = Layer(id=layer_id, history=DrawingHistory(self.max_history))
        self._layers[layer_id] = layer
        return layer

    def _notify(self, message: str) -> None:
        logger.warning(message)
        self.notification.emit(message)

    # === Layer set ===

    @property
    def layers(self) -> List[Layer]:
        """Layers in creation order."""
        return list(self._layers.values())

    @property
    def selected_id(self) -> Optional[int]:
        """Id of the selected layer."""
        return self._selected_id

    @property
    def fullscreen_id(self) -> Optional[int]:
        """Id of the fullscreen layer, or None when showing the grid."""
        return self._fullscreen_id

    def layer(self, layer_id: int) -> Optional[Layer]:
        """Get a layer by id."""
        return self._layers.get(layer_id)

    def add_layer(self) -> Optional[Layer]:
        """
        Append a new empty layer and select it.

        Returns:
            The new layer, or None when the layer limit is reached
        """
        if len(self._layers) >= self.max_layers:
            self._notify(f"Maximum of {self.max_layers} layers reached")
            return None

        layer = self._create_layer(max(self._layers, default=0) + 1)
        self._selected_id = layer.id
        logger.info(f"Added layer {layer.id}")
        self.layers_changed.emit()
        return layer

    def delete_layer(self, layer_id: int) -> bool:
        """
        Remove a layer.

        The last remaining layer cannot be deleted. Selection falls back to
        the first remaining layer and fullscreen is exited if it showed the
        deleted one.

        Returns:
            True if the layer was removed
        """
        if layer_id not in self._layers:
            return False
        if len(self._layers) <= 1:
            self._notify("Cannot delete the last layer")
            return False

        del self._layers[layer_id]
        self._loading.pop(layer_id, None)
        if self._selected_id == layer_id:
            self._selected_id = next(iter(self._layers))
        if self._fullscreen_id == layer_id:
            self._fullscreen_id = None

        logger.info(f"Deleted layer {layer_id}")
        self.layers_changed.emit()
        return True

    def select_layer(self, layer_id: int) -> None:
        """Make a layer the target of editing."""
        if layer_id in self._layers and layer_id != self._selected_id:
            self._selected_id = layer_id
            self.layers_changed.emit()

    def set_fullscreen(self, layer_id: Optional[int]) -> None:
        """Show one layer fullscreen, or return to the grid with None."""
        if layer_id is not None and layer_id not in self._layers:
            return
        self._fullscreen_id = layer_id
        if layer_id is not None:
            self._selected_id = layer_id
        self.layers_changed.emit()

    def target_layer(self) -> Optional[Layer]:
        """The layer edits apply to: fullscreen layer if any, else selected."""
        layer_id = self._fullscreen_id if self._fullscreen_id is not None else self._selected_id
        if layer_id is None:
            return None
        return self._layers.get(layer_id)

    # === Image ===

    def load_image(self, layer_id: int, path: Path, size: ImageSize) -> Optional[int]:
        """
        Put an image into a layer, dropping anything tied to the previous one.

        Returns:
            The new image revision, or None for an unknown layer
        """
        layer = self._layers.get(layer_id)
        if layer is None:
            return None

        self._reset_layer_content(layer)
        layer.source_path = Path(path)
        layer.image_size = size
        logger.info(f"Loaded {layer.source_path.name} ({size.width:g}x{size.height:g}) into layer {layer_id}")
        self.layer_changed.emit(layer_id)
        return layer.image_revision

    def remove_image(self, layer_id: int) -> None:
        """Clear the image, annotations, drawings, history and zoom of a layer."""
        layer = self._layers.get(layer_id)
        if layer is None:
            return

        self._reset_layer_content(layer)
        layer.source_path = None
        layer.image_size = ImageSize()
        logger.info(f"Removed image from layer {layer_id}")
        self.layer_changed.emit(layer_id)

    def _reset_layer_content(self, layer: Layer) -> None:
        layer.image_revision += 1
        layer.annotations = _empty_slots()
        layer.drawings = []
        layer.history.clear()
        layer.zoom = 1.0
        layer.zoom_center = QPointF()
        layer.zoom_pan = QPointF()

    # === Check type and annotations ===

    def set_check_type(self, layer_id: int, check_type: CheckType) -> None:
        """Choose which classification pass a layer displays."""
        layer = self._layers.get(layer_id)
        if layer is None or layer.check_type == check_type:
            return
        layer.check_type = check_type
        logger.debug(f"Layer {layer_id} check type set to {check_type.value}")
        self.layer_changed.emit(layer_id)

    def cycle_check_type(self, layer_id: int) -> Optional[CheckType]:
        """Advance a layer to the next check type (qc -> path -> tooth -> qc)."""
        layer = self._layers.get(layer_id)
        if layer is None:
            return None
        self.set_check_type(layer_id, layer.check_type.next())
        return layer.check_type

    @property
    def annotations_enabled(self) -> bool:
        """Whether annotations and drawings are rendered and editable."""
        return self._annotations_enabled

    def set_annotations_enabled(self, enabled: bool) -> None:
        """Show or hide all annotation overlays."""
        if self._annotations_enabled == enabled:
            return
        self._annotations_enabled = enabled
        for layer_id in self._layers:
            self.layer_changed.emit(layer_id)

    def toggle_annotations_enabled(self) -> bool:
        """Flip the overlay toggle and return the new value."""
        self.set_annotations_enabled(not self._annotations_enabled)
        return self._annotations_enabled

    def active_annotations(self, layer_id: int) -> Optional[List[AnnotationGroup]]:
        """Annotation groups of a layer's current check type."""
        layer = self._layers.get(layer_id)
        return layer.active_annotations if layer is not None else None

    def update_annotations(
        self,
        layer_id: int,
        update: Callable[[Optional[List[AnnotationGroup]]], Optional[List[AnnotationGroup]]],
        check_type: Optional[CheckType] = None
    ) -> None:
        """
        Replace one annotation slot with the result of ``update``.

        Args:
            layer_id: Target layer
            update: Function from the current groups to the new groups
            check_type: Slot to update, defaults to the layer's current one
        """
        layer = self._layers.get(layer_id)
        if layer is None:
            return
        slot = check_type or layer.check_type
        current = layer.annotations.get(slot)
        updated = update(current)
        if updated is current:
            return
        annotations = dict(layer.annotations)
        annotations[slot] = updated
        layer.annotations = annotations
        self.layer_changed.emit(layer_id)

    def update_drawings(
        self,
        layer_id: int,
        update: Callable[[List[Drawing]], List[Drawing]],
        record_history: bool = False,
        description: str = ""
    ) -> None:
        """
        Replace a layer's drawings with the result of ``update``.

        Args:
            layer_id: Target layer
            update: Function from the current drawings to the new drawings
            record_history: Push the pre-update drawings onto the undo stack
            description: History entry name
        """
        layer = self._layers.get(layer_id)
        if layer is None:
            return
        current = layer.drawings
        updated = update(current)
        if updated is current:
            return
        if record_history:
            layer.history.push(current, description)
        layer.drawings = list(updated)
        self.layer_changed.emit(layer_id)

    def set_drawings(self, layer_id: int, drawings: Sequence[Drawing]) -> None:
        """Replace a layer's drawings without touching history."""
        layer = self._layers.get(layer_id)
        if layer is None:
            return
        layer.drawings = list(drawings)
        self.layer_changed.emit(layer_id)

    # === Zoom ===

    def zoom_by(self, layer_id: int, delta: float, center: Optional[QPointF] = None) -> Optional[float]:
        """
        Change a layer's zoom by ``delta``, clamped to the zoom range.

        Args:
            layer_id: Target layer
            delta: Amount added to the zoom factor
            center: New zoom center in image space, unchanged if None. The
                pan is adjusted so this point keeps its on-screen position.

        Returns:
            The new zoom factor, or None for an unknown layer
        """
        layer = self._layers.get(layer_id)
        if layer is None:
            return None
        if center is not None:
            # Where the center is drawn now, in zoomed image units
            old_center, old_zoom = layer.zoom_center, layer.zoom
            drawn = old_center + (center - old_center) * old_zoom + layer.zoom_pan
            layer.zoom_center = QPointF(center)
            layer.zoom_pan = drawn - center
        layer.zoom = max(self.min_zoom, min(self.max_zoom, round(layer.zoom + delta, 6)))
        logger.debug(f"Layer {layer_id} zoom {layer.zoom:g} at ({layer.zoom_center.x():.1f}, {layer.zoom_center.y():.1f})")
        self.layer_changed.emit(layer_id)
        return layer.zoom

    def reset_zoom(self, layer_id: int) -> None:
        """Return a layer to 1:1 zoom."""
        layer = self._layers.get(layer_id)
        if layer is None:
            return
        layer.zoom = 1.0
        layer.zoom_center = QPointF()
        layer.zoom_pan = QPointF()
        self.layer_changed.emit(layer_id)

    # === Classification bookkeeping ===

    def is_loading(self, layer_id: int) -> bool:
        """True while a classification request for the layer is in flight."""
        return self._loading.get(layer_id, 0) > 0

    def begin_classification(self, layer_id: int) -> Optional[int]:
        """
        Mark a classification request as started.

        Returns:
            The layer's current image revision to hand back with the result,
            or None if the layer has no image
        """
        layer = self._layers.get(layer_id)
        if layer is None or not layer.has_image:
            return None
        self._loading[layer_id] = self._loading.get(layer_id, 0) + 1
        self.loading_changed.emit(layer_id, True)
        return layer.image_revision

    def _finish_loading(self, layer_id: int) -> None:
        count = self._loading.get(layer_id, 0) - 1
        if count > 0:
            self._loading[layer_id] = count
        else:
            self._loading.pop(layer_id, None)
        self.loading_changed.emit(layer_id, self.is_loading(layer_id))

    def apply_classification(
        self,
        layer_id: int,
        check_type: CheckType,
        revision: int,
        detections: Sequence[Detection]
    ) -> bool:
        """
        Store a classification result unless it is stale.

        A result is stale when its layer has been deleted or the layer's image
        was removed or replaced after the request was sent.

        Returns:
            True if the result was stored
        """
        layer = self._layers.get(layer_id)
        if layer is None:
            logger.info(f"Discarding classification result for deleted layer {layer_id}")
            return False

        self._finish_loading(layer_id)
        if layer.image_revision != revision:
            logger.info(f"Discarding stale {check_type.value} result for layer {layer_id}")
            return False

        annotations = dict(layer.annotations)
        annotations[check_type] = ingest_classifier_result(check_type, detections)
        layer.annotations = annotations
        logger.info(f"Layer {layer_id}: {len(detections)} {check_type.value} detections")
        self.layer_changed.emit(layer_id)
        return True

    def classification_failed(self, layer_id: int, message: str) -> None:
        """Report a failed classification request; existing annotations are kept."""
        if layer_id in self._layers:
            self._finish_loading(layer_id)
        logger.error(f"Classification failed for layer {layer_id}: {message}")
        self.notification.emit(f"Classification failed: {message}")

    def set_max_history(self, max_history: int) -> None:
        """Apply a new undo depth to every layer."""
        self.max_history = max_history
        for layer in self._layers.values():
            layer.history.set_max_history(max_history)
