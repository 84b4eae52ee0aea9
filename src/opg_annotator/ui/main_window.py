"""Main application window for OPG Annotator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from PyQt6.QtCore import QSize, Qt
from PyQt6.QtGui import QAction, QActionGroup, QImage, QImageReader, QKeySequence
from PyQt6.QtWidgets import (
    QDockWidget, QFileDialog, QGridLayout, QLabel, QMainWindow, QMessageBox,
    QStatusBar, QToolBar, QWidget,
)

from ..core.classifier import ClassificationClient, check_types_from_names
from ..core.config import AppConfig, ConfigManager
from ..core.edit_session import EditSession, Tool
from ..core.layers import LayerManager
from ..core.models import CheckType
from ..core.renderer import Renderer, export_filename
from ..core.transform import ImageSize
from ..workers.classification_worker import ClassificationWorker
from .annotation_panel import AnnotationPanel
from .canvas import LayerCanvas
from .dialogs.clinical_tags import ClinicalTagsDialog

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp")

GRID_COLUMNS = 3
NOTIFICATION_TIMEOUT_MS = 5000
CLOSE_WAIT_MS = 2000

TOOL_ACTIONS = (
    (Tool.SELECT, "Select", "S"),
    (Tool.MOVE, "Move", "M"),
    (Tool.RESHAPE, "Reshape", "V"),
    (Tool.RECTANGLE, "Rectangle", "R"),
    (Tool.LINE, "Line", "L"),
    (Tool.POINT, "Point", "P"),
    (Tool.POLYGON, "Polygon", "G"),
    (Tool.ZOOM_IN, "Zoom In", "+"),
    (Tool.ZOOM_OUT, "Zoom Out", "-"),
)


def increase_image_allocation_limit() -> None:
    """Remove image allocation limit for large radiographs."""
    QImageReader.setAllocationLimit(0)


class MainWindow(QMainWindow):
    """
    Main application window for OPG Annotator.

    Provides:
    - A grid of up to six layer canvases with a fullscreen mode
    - Drawing and editing tools
    - Remote classification of loaded images
    - Annotation list panel and PNG export
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None) -> None:
        """Initialize the main window."""
        super().__init__()

        increase_image_allocation_limit()

        self.config_manager = config_manager or ConfigManager()
        config = self.config

        self.layers = LayerManager(
            max_layers=config.max_layers,
            max_history=config.max_history_entries,
            min_zoom=config.min_zoom,
            max_zoom=config.max_zoom,
        )
        self.session = EditSession(
            self.layers,
            snap_threshold=config.snap_threshold,
            vertex_threshold=config.vertex_threshold,
            zoom_step=config.zoom_step,
            first_match=config.first_match,
        )
        self.renderer = Renderer(
            line_width=config.line_thickness,
            polygon_line_width=config.polygon_line_thickness,
            font_size=config.font_size,
            label_font_size=config.label_font_size,
            tension=config.smoothing_tension,
        )
        self.client = ClassificationClient(config.classifier_url, config.classifier_timeout)

        self.canvases: Dict[int, LayerCanvas] = {}
        self.workers: List[ClassificationWorker] = []
        self.tool_actions: Dict[Tool, QAction] = {}

        self.status_bar: Optional[QStatusBar] = None
        self.layer_label: Optional[QLabel] = None
        self.check_type_label: Optional[QLabel] = None
        self.zoom_label: Optional[QLabel] = None

        self._init_ui()
        self._setup_connections()
        self._sync_canvases()

        logger.info("MainWindow initialization complete")

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self.config_manager.config

    def _init_ui(self) -> None:
        """Initialize the user interface."""
        self.setWindowTitle("OPG Annotator")
        self.setGeometry(100, 100, 1400, 900)

        self.grid_widget = QWidget()
        self.grid_layout = QGridLayout(self.grid_widget)
        self.grid_layout.setContentsMargins(4, 4, 4, 4)
        self.grid_layout.setSpacing(4)
        self.setCentralWidget(self.grid_widget)

        self._create_status_bar()
        self._create_toolbar()
        self._create_dock_widgets()

    def _create_status_bar(self) -> None:
        """Create the status bar."""
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self.layer_label = QLabel()
        self.status_bar.addPermanentWidget(self.layer_label)

        self.check_type_label = QLabel()
        self.status_bar.addPermanentWidget(self.check_type_label)

        self.zoom_label = QLabel()
        self.status_bar.addPermanentWidget(self.zoom_label)

    def _create_toolbar(self) -> None:
        """Create the main toolbar."""
        self.toolbar = QToolBar()
        self.toolbar.setObjectName("MainToolBar")
        self.toolbar.setIconSize(QSize(24, 24))
        self.addToolBar(self.toolbar)

        open_action = QAction("Open Image", self)
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self._open_image)
        self.toolbar.addAction(open_action)

        remove_action = QAction("Remove Image", self)
        remove_action.triggered.connect(self._remove_image)
        self.toolbar.addAction(remove_action)

        self.classify_action = QAction("Classify", self)
        self.classify_action.triggered.connect(self._classify_target)
        self.toolbar.addAction(self.classify_action)

        export_action = QAction("Export PNG", self)
        export_action.setShortcut("Ctrl+E")
        export_action.triggered.connect(self._export_image)
        self.toolbar.addAction(export_action)

        self.toolbar.addSeparator()

        self.undo_action = QAction("Undo", self)
        self.undo_action.setShortcut("Ctrl+Z")
        self.undo_action.triggered.connect(self._undo)
        self.undo_action.setEnabled(False)
        self.toolbar.addAction(self.undo_action)

        self.redo_action = QAction("Redo", self)
        self.redo_action.setShortcut("Ctrl+Shift+Z")
        self.redo_action.triggered.connect(self._redo)
        self.redo_action.setEnabled(False)
        self.toolbar.addAction(self.redo_action)

        self.toolbar.addSeparator()

        drawing_tools = QActionGroup(self)
        for tool, text, shortcut in TOOL_ACTIONS:
            action = QAction(text, self)
            action.setCheckable(True)
            action.setShortcut(shortcut)
            action.triggered.connect(lambda checked, t=tool: self.session.set_tool(t))
            drawing_tools.addAction(action)
            self.tool_actions[tool] = action
        self.toolbar.addActions(drawing_tools.actions())
        self.tool_actions[Tool.SELECT].setChecked(True)

        self.toolbar.addSeparator()

        add_layer_action = QAction("Add Layer", self)
        add_layer_action.triggered.connect(lambda: self.layers.add_layer())
        self.toolbar.addAction(add_layer_action)

        delete_layer_action = QAction("Delete Layer", self)
        delete_layer_action.triggered.connect(self._delete_layer)
        self.toolbar.addAction(delete_layer_action)

        self.fullscreen_action = QAction("Fullscreen", self)
        self.fullscreen_action.setCheckable(True)
        self.fullscreen_action.setShortcut("F")
        self.fullscreen_action.triggered.connect(self._toggle_fullscreen)
        self.toolbar.addAction(self.fullscreen_action)

        self.check_type_action = QAction("Check Type", self)
        self.check_type_action.setShortcut("C")
        self.check_type_action.triggered.connect(self._cycle_check_type)
        self.toolbar.addAction(self.check_type_action)

        self.annotations_action = QAction("Annotations", self)
        self.annotations_action.setCheckable(True)
        self.annotations_action.setChecked(self.layers.annotations_enabled)
        self.annotations_action.setShortcut("A")
        self.annotations_action.triggered.connect(self.layers.set_annotations_enabled)
        self.toolbar.addAction(self.annotations_action)

        reset_zoom_action = QAction("Reset Zoom", self)
        reset_zoom_action.setShortcut("Ctrl+0")
        reset_zoom_action.triggered.connect(self._reset_zoom)
        self.toolbar.addAction(reset_zoom_action)

    def _create_dock_widgets(self) -> None:
        """Create the annotation list dock."""
        self.annotation_panel = AnnotationPanel(self.layers, self.session)
        dock = QDockWidget("Annotations", self)
        dock.setObjectName("AnnotationsDock")
        dock.setWidget(self.annotation_panel)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, dock)

    def _setup_connections(self) -> None:
        """Connect model signals to the UI."""
        self.layers.layers_changed.connect(self._sync_canvases)
        self.layers.layer_changed.connect(self._on_layer_changed)
        self.layers.notification.connect(self._show_status_message)
        self.session.tool_changed.connect(self._on_tool_changed)
        self.session.changed.connect(self._update_undo_redo_state)
        self.session.drawing_committed.connect(self._prompt_clinical_tags)
        self.annotation_panel.tag_requested.connect(self._prompt_clinical_tags)

    # === Layer grid ===

    def _sync_canvases(self) -> None:
        """Create, remove and arrange canvases to match the layers."""
        alive = {layer.id for layer in self.layers.layers}
        for layer_id in list(self.canvases):
            if layer_id not in alive:
                canvas = self.canvases.pop(layer_id)
                self.grid_layout.removeWidget(canvas)
                canvas.deleteLater()

        for layer in self.layers.layers:
            if layer.id not in self.canvases:
                self.canvases[layer.id] = LayerCanvas(
                    layer.id, self.layers, self.session, self.renderer, self.grid_widget
                )

        for canvas in self.canvases.values():
            self.grid_layout.removeWidget(canvas)

        fullscreen_id = self.layers.fullscreen_id
        if fullscreen_id is not None:
            for layer_id, canvas in self.canvases.items():
                canvas.setVisible(layer_id == fullscreen_id)
            self.grid_layout.addWidget(self.canvases[fullscreen_id], 0, 0)
        else:
            for index, layer in enumerate(self.layers.layers):
                canvas = self.canvases[layer.id]
                canvas.setVisible(True)
                self.grid_layout.addWidget(canvas, index // GRID_COLUMNS, index % GRID_COLUMNS)

        self.fullscreen_action.setChecked(fullscreen_id is not None)
        self._update_status()
        self._update_undo_redo_state()

    def _on_layer_changed(self, layer_id: int) -> None:
        target = self.layers.target_layer()
        if target is not None and target.id == layer_id:
            self._update_status()
            self._update_undo_redo_state()

    def _delete_layer(self) -> None:
        target = self.layers.target_layer()
        if target is not None:
            self.layers.delete_layer(target.id)

    def _toggle_fullscreen(self, checked: bool) -> None:
        target = self.layers.target_layer()
        if checked and target is not None:
            self.layers.set_fullscreen(target.id)
        else:
            self.layers.set_fullscreen(None)

    def _cycle_check_type(self) -> None:
        target = self.layers.target_layer()
        if target is not None:
            self.layers.cycle_check_type(target.id)

    def _reset_zoom(self) -> None:
        target = self.layers.target_layer()
        if target is not None:
            self.layers.reset_zoom(target.id)

    def _on_tool_changed(self, tool: str) -> None:
        action = self.tool_actions.get(Tool(tool))
        if action is not None:
            action.setChecked(True)

    # === File Operations ===

    def _open_image(self) -> None:
        """Load an image into the target layer."""
        target = self.layers.target_layer()
        if target is None:
            return

        patterns = " ".join(f"*{ext}" for ext in IMAGE_EXTENSIONS)
        file_path, _ = QFileDialog.getOpenFileName(
            self, "Open Image", self.config.last_directory, f"Images ({patterns})"
        )
        if file_path:
            self.load_image(target.id, Path(file_path))

    def load_image(self, layer_id: int, path: Path) -> bool:
        """
        Load an image file into a layer and start classification.

        Args:
            layer_id: Target layer
            path: Image file

        Returns:
            True if the image was loaded
        """
        reader = QImageReader(str(path))
        size = reader.size()
        if not size.isValid():
            QMessageBox.warning(self, "Warning", f"Cannot read image: {path.name}")
            logger.error(f"Cannot read image size of {path}")
            return False

        self.layers.load_image(layer_id, path, ImageSize(size.width(), size.height()))
        self.config_manager.update(last_directory=str(path.parent))

        if self.config.auto_classify:
            self.classify(layer_id)
        return True

    def _remove_image(self) -> None:
        target = self.layers.target_layer()
        if target is not None and target.has_image:
            self.session.cancel()
            self.layers.remove_image(target.id)

    def _export_image(self) -> None:
        """Export the target layer as an annotated PNG."""
        target = self.layers.target_layer()
        if target is None or not target.has_image:
            self._show_status_message("No image to export")
            return

        source = QImage(str(target.source_path))
        if source.isNull():
            QMessageBox.critical(self, "Error", f"Cannot read image: {target.source_path.name}")
            return

        default_path = str(Path(self.config.last_directory or ".") / export_filename(target.source_path))
        file_path, _ = QFileDialog.getSaveFileName(self, "Export PNG", default_path, "PNG (*.png)")
        if not file_path:
            return

        try:
            data = self.renderer.export_png(target, source, self.layers.annotations_enabled)
            Path(file_path).write_bytes(data)
        except OSError as e:
            QMessageBox.critical(self, "Error", f"Export failed: {e}")
            logger.error(f"Export error: {e}")
            return
        self._show_status_message("Download completed")

    # === Classification ===

    def _classify_target(self) -> None:
        target = self.layers.target_layer()
        if target is None or not target.has_image:
            self._show_status_message("No image selected")
            return
        self.classify(target.id)

    def classify(self, layer_id: int) -> None:
        """Start one background request per configured check type for a layer's image."""
        layer = self.layers.layer(layer_id)
        check_types = check_types_from_names(self.config.classify_check_types)
        if layer is None or not layer.has_image or not check_types:
            return

        for check_type in check_types:
            revision = self.layers.begin_classification(layer_id)
            if revision is None:
                return

            worker = ClassificationWorker(self.client, layer_id, revision, layer.source_path, [check_type])
            worker.succeeded.connect(self._on_classification_succeeded)
            worker.failed.connect(self._on_classification_failed)
            worker.finished.connect(lambda w=worker: self._on_worker_finished(w))
            self.workers.append(worker)
            worker.start()

    def _on_classification_succeeded(self, layer_id: int, check_type: str, revision: int, detections) -> None:
        self.layers.apply_classification(layer_id, CheckType(check_type), revision, detections)

    def _on_classification_failed(self, layer_id: int, check_type: str, message: str) -> None:
        self.layers.classification_failed(layer_id, message)

    def _on_worker_finished(self, worker: ClassificationWorker) -> None:
        if worker in self.workers:
            self.workers.remove(worker)
        worker.deleteLater()

    # === Drawing tags ===

    def _prompt_clinical_tags(self, layer_id: int, drawing_id: str) -> None:
        """Ask for tooth number and pathology of a drawing."""
        dialog = ClinicalTagsDialog(self)
        if dialog.exec():
            tooth, pathology, custom = dialog.get_tags()
            self.session.tag_drawing(layer_id, drawing_id, tooth, pathology, custom)

    # === Undo/Redo Operations ===

    def _undo(self) -> None:
        """Undo the last drawing edit."""
        self.session.undo()

    def _redo(self) -> None:
        """Redo the last undone drawing edit."""
        self.session.redo()

    def _update_undo_redo_state(self) -> None:
        """Update undo/redo action enabled states."""
        target = self.layers.target_layer()
        history = target.history if target is not None else None
        can_undo = history is not None and history.can_undo()
        can_redo = history is not None and history.can_redo()
        self.undo_action.setEnabled(can_undo)
        self.redo_action.setEnabled(can_redo)
        self.undo_action.setToolTip(f"Undo: {history.undo_description()}" if can_undo else "Undo")
        self.redo_action.setToolTip(f"Redo: {history.redo_description()}" if can_redo else "Redo")

    # === Status ===

    def _update_status(self) -> None:
        target = self.layers.target_layer()
        if target is None:
            return
        name = target.source_path.name if target.source_path else "no image"
        self.layer_label.setText(f"Layer {target.id}: {name}")
        self.check_type_label.setText(target.check_type.display_name)
        self.check_type_action.setText(f"Check: {target.check_type.value.upper()}")
        self.zoom_label.setText(f"{target.zoom * 100:.0f}%")

    def _show_status_message(self, message: str, timeout: int = NOTIFICATION_TIMEOUT_MS) -> None:
        """Show a transient status bar message."""
        if self.status_bar:
            self.status_bar.showMessage(message, timeout)

    def closeEvent(self, event) -> None:
        """Give in-flight classification requests a bounded time to finish before closing."""
        for worker in list(self.workers):
            if not worker.wait(CLOSE_WAIT_MS):
                logger.warning(f"Classification worker for layer {worker.layer_id} did not finish, terminating")
                worker.terminate()
                worker.wait()
        super().closeEvent(event)
