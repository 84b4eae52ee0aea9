"""Offscreen smoke tests for the widgets."""

import pytest
from PyQt6.QtCore import QPointF, QSize
from PyQt6.QtGui import QCloseEvent, QResizeEvent

from opg_annotator import app
from opg_annotator.core.config import ConfigManager
from opg_annotator.core.edit_session import Tool
from opg_annotator.core.models import OTHER_PATHOLOGY, CheckType, Detection
from opg_annotator.core.transform import DisplayMetrics
from opg_annotator.ui import canvas as canvas_module
from opg_annotator.ui.canvas import LayerCanvas
from opg_annotator.ui.dialogs.clinical_tags import ClinicalTagsDialog
from opg_annotator.ui.main_window import CLOSE_WAIT_MS, MainWindow


@pytest.fixture
def window(qapp, tmp_path, monkeypatch):
    monkeypatch.setattr(ClinicalTagsDialog, "exec", lambda self: 0)
    manager = ConfigManager(tmp_path / "config.yaml")
    manager.update(auto_classify=False)
    main_window = MainWindow(manager)
    yield main_window
    main_window.close()


class TestLayerCanvas:
    """Tests for the canvas geometry."""

    def test_image_rect_keeps_aspect_ratio(self, qapp, layers):
        """Test the image is letterboxed inside the widget."""
        from opg_annotator.core.edit_session import EditSession
        from opg_annotator.core.renderer import Renderer

        canvas = LayerCanvas(1, layers, EditSession(layers), Renderer())
        canvas.resize(400, 400)

        rect = canvas.image_rect()
        assert (rect.x(), rect.y(), rect.width(), rect.height()) == (0, 50, 400, 300)
        assert canvas.display_metrics().width == 400

    def test_resizes_coalesce_into_one_repaint(self, qapp, layers, monkeypatch):
        """Test repeated resizes queue a single repaint until the canvas paints."""
        from opg_annotator.core.edit_session import EditSession
        from opg_annotator.core.renderer import Renderer

        queued = []

        class RecordingTimer:
            @staticmethod
            def singleShot(msec, callback):
                queued.append((msec, callback))

        monkeypatch.setattr(canvas_module, "QTimer", RecordingTimer)
        canvas = LayerCanvas(1, layers, EditSession(layers), Renderer())
        canvas.resize(400, 400)

        for width, height in [(400, 400), (500, 300), (640, 480)]:
            canvas.resizeEvent(QResizeEvent(QSize(width, height), canvas.size()))
        layers.zoom_by(1, 0.2)

        assert len(queued) == 1
        assert queued[0][0] == 0
        assert canvas.repaint_pending

        canvas.grab()
        assert not canvas.repaint_pending

        canvas.resizeEvent(QResizeEvent(QSize(300, 300), canvas.size()))
        assert len(queued) == 2


class TestMainWindow:
    """Tests for MainWindow wiring."""

    def test_canvas_per_layer(self, window):
        """Test the grid follows the layer set."""
        assert list(window.canvases) == [1]

        window.layers.add_layer()
        assert list(window.canvases) == [1, 2]

        window.layers.delete_layer(2)
        assert list(window.canvases) == [1]

    def test_fullscreen_hides_other_canvases(self, window):
        """Test fullscreen shows only one layer."""
        window.layers.add_layer()
        window.layers.set_fullscreen(2)

        assert window.canvases[1].isHidden()
        assert not window.canvases[2].isHidden()
        assert window.fullscreen_action.isChecked()

    def test_load_image(self, window, sample_image_file):
        """Test loading measures the image and remembers the directory."""
        assert window.load_image(1, sample_image_file)

        layer = window.layers.layer(1)
        assert (layer.image_size.width, layer.image_size.height) == (40, 30)
        assert window.config.last_directory == str(sample_image_file.parent)

    def test_load_unreadable_image(self, window, tmp_path, monkeypatch):
        """Test unreadable files are rejected."""
        monkeypatch.setattr("opg_annotator.ui.main_window.QMessageBox.warning", lambda *args: None)
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"not an image")

        assert not window.load_image(1, broken)
        assert not window.layers.layer(1).has_image

    def test_tool_action_follows_session(self, window):
        """Test the toolbar reflects the active tool."""
        window.session.set_tool(Tool.POLYGON)
        assert window.tool_actions[Tool.POLYGON].isChecked()

    def test_undo_action_enabled_after_commit(self, window, sample_image_file):
        """Test undo becomes available once a drawing is committed."""
        window.load_image(1, sample_image_file)
        assert not window.undo_action.isEnabled()

        window.session.set_tool(Tool.POINT)
        window.session.pointer_down(QPointF(10, 10), DisplayMetrics(40, 30))

        assert window.undo_action.isEnabled()
        window.undo_action.trigger()
        assert window.layers.layer(1).drawings == []

    def test_notification_in_status_bar(self, window):
        """Test rejected actions are shown in the status bar."""
        window.layers.delete_layer(1)
        assert window.status_bar.currentMessage() == "Cannot delete the last layer"

    def test_close_waits_a_bounded_time_for_workers(self, window):
        """Test closing does not block forever on an unanswered request."""

        class FakeWorker:
            layer_id = 1

            def __init__(self, finishes):
                self.finishes = finishes
                self.waits = []
                self.terminated = False

            def wait(self, *args):
                self.waits.append(args)
                return self.finishes or self.terminated

            def terminate(self):
                self.terminated = True

        done, stuck = FakeWorker(True), FakeWorker(False)
        window.workers.extend([done, stuck])

        window.closeEvent(QCloseEvent())
        window.workers.clear()

        assert done.waits == [(CLOSE_WAIT_MS,)]
        assert not done.terminated
        assert stuck.waits[0] == (CLOSE_WAIT_MS,)
        assert stuck.terminated


class TestApp:
    """Tests for the application bootstrap."""

    def test_parse_args(self, tmp_path):
        """Test the config path and images are read from the command line."""
        args = app.parse_args(["-c", str(tmp_path / "prefs.yaml"), "a.png", "b.png"])

        assert args.config == tmp_path / "prefs.yaml"
        assert [p.name for p in args.images] == ["a.png", "b.png"]

    def test_images_open_in_separate_layers(self, qapp, tmp_path, sample_image_file):
        """Test each image gets its own layer up to the layer limit."""
        config_path = tmp_path / "config.yaml"
        ConfigManager(config_path).update(auto_classify=False, max_layers=2)

        window = app.create_main_window(config_path, [sample_image_file] * 3)
        try:
            assert [layer.id for layer in window.layers.layers] == [1, 2]
            assert all(layer.has_image for layer in window.layers.layers)
        finally:
            window.close()


class TestAnnotationPanel:
    """Tests for the annotation list."""

    def test_lists_active_annotations(self, window, sample_image_file):
        """Test groups and members appear in the tree."""
        window.load_image(1, sample_image_file)
        revision = window.layers.layer(1).image_revision
        window.layers.apply_classification(1, CheckType.QC, revision, [
            Detection("Blur", (0, 0, 5, 5)),
            Detection("Blur", (5, 5, 9, 9)),
        ])

        panel = window.annotation_panel
        panel.rebuild()

        assert panel.tree.topLevelItemCount() == 1
        assert panel.tree.topLevelItem(0).childCount() == 2


class TestClinicalTagsDialog:
    """Tests for the tagging dialog."""

    def test_custom_text_only_for_other(self, qapp):
        """Test the free-text field follows the pathology choice."""
        dialog = ClinicalTagsDialog()
        dialog.tooth_combo.setCurrentText("36")
        dialog.pathology_combo.setCurrentText("Caries")
        dialog.custom_edit.setText("ignored")

        assert not dialog.custom_edit.isEnabled()
        assert dialog.get_tags() == ("36", "Caries", None)

        dialog.pathology_combo.setCurrentText(OTHER_PATHOLOGY)
        assert dialog.custom_edit.isEnabled()
        assert dialog.get_tags() == ("36", OTHER_PATHOLOGY, "ignored")
