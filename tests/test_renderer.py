"""Tests for overlay rendering and PNG export."""

from pathlib import Path

import pytest
from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QColor, QImage

from opg_annotator.core import annotation_store as store
from opg_annotator.core.edit_session import EditSession, Tool
from opg_annotator.core.models import CheckType, Detection, Drawing, DrawingKind
from opg_annotator.core.renderer import (
    Renderer,
    annotation_label,
    export_filename,
    label_plate_rect,
)
from opg_annotator.core.transform import DisplayMetrics


def solid_image(color, width=800, height=600):
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(QColor(color))
    return image


@pytest.fixture
def renderer():
    return Renderer()


class TestLabelPlate:
    """Tests for label plate placement."""

    def test_above_anchor(self):
        """Test the plate sits above the top-left corner."""
        plate = label_plate_rect(100, 100, 40, 400)

        assert (plate.x(), plate.y()) == (100, 80)
        assert (plate.width(), plate.height()) == (50, 20)

    def test_clamped_at_right_edge(self):
        """Test plates overflowing the right edge are pushed left."""
        plate = label_plate_rect(380, 100, 40, 400)
        assert plate.x() == 345
        assert plate.right() <= 400

    def test_clamped_at_left_edge(self):
        """Test plates wider than the canvas start at the margin."""
        plate = label_plate_rect(50, 100, 500, 400)
        assert plate.x() == 5

    def test_flipped_below_at_top(self):
        """Test plates that would leave the top go below the anchor."""
        plate = label_plate_rect(10, 10, 40, 400)
        assert plate.y() == 15

    def test_zoom_shrinks_plate(self):
        """Test padding and height are divided by zoom."""
        plate = label_plate_rect(100, 100, 20, 400, zoom=2.0)

        assert plate.height() == 10
        assert plate.width() == 25
        assert plate.y() == 90


class TestNames:
    """Tests for export naming and label text."""

    def test_export_filename(self):
        """Test the exported file name."""
        assert export_filename(Path("/scans/patient_01.jpg")) == "annotated_patient_01.png"
        assert export_filename(None) == "annotated_image.png"

    def test_annotation_label(self, layers):
        """Test QC labels carry the ordinal, other checks only the class."""
        layers.apply_classification(1, CheckType.QC, layers.layer(1).image_revision, [
            Detection("Blur", (0, 0, 1, 1))
        ])
        group = layers.layer(1).annotations[CheckType.QC][0]
        coord = group.members[0]

        assert annotation_label(CheckType.QC, group, coord) == "Blur 1"
        assert annotation_label(CheckType.PATH, group, coord) == "Blur"


class TestExport:
    """Tests for natural-resolution export."""

    def test_rectangle_at_exact_pixel_bounds(self, qapp, layers, renderer):
        """Test an 800x600 export shows the rectangle at its image bounds."""
        layers.set_drawings(1, [Drawing(DrawingKind.RECTANGLE, (100, 100, 200, 200))])

        result = renderer.export_image(layers.layer(1), solid_image("#000000"))

        assert (result.width(), result.height()) == (800, 600)
        for x, y in [(100, 150), (199, 150), (150, 100), (150, 199)]:
            assert result.pixelColor(x, y).red() > 200
        for x, y in [(96, 150), (204, 150), (150, 96), (150, 204)]:
            assert result.pixelColor(x, y).red() == 0
        inside = result.pixelColor(150, 150)
        assert 30 < inside.red() < 80
        assert inside.green() == 0

    def test_export_ignores_zoom(self, qapp, layers, renderer):
        """Test zoom does not affect exported geometry."""
        layers.set_drawings(1, [Drawing(DrawingKind.RECTANGLE, (100, 100, 200, 200))])
        layers.zoom_by(1, 1.0, QPointF(400, 300))

        result = renderer.export_image(layers.layer(1), solid_image("#000000"))

        assert result.pixelColor(100, 150).red() > 200
        assert result.pixelColor(300, 150).red() == 0

    def test_disabled_annotations_export_plain_image(self, qapp, layers, renderer):
        """Test nothing is drawn when overlays are off."""
        layers.set_drawings(1, [Drawing(DrawingKind.RECTANGLE, (100, 100, 200, 200))])

        result = renderer.export_image(layers.layer(1), solid_image("#000000"), annotations_enabled=False)

        assert result.pixelColor(100, 150).red() == 0

    def test_annotation_box_and_visibility(self, qapp, layers, renderer):
        """Test QC boxes are stroked without fill and hidden ones are skipped."""
        layers.apply_classification(1, CheckType.QC, layers.layer(1).image_revision, [
            Detection("Caries", (300, 300, 400, 400)),
            Detection("Caries", (500, 300, 600, 400)),
        ])
        layers.update_annotations(1, lambda groups: store.toggle_visibility(groups, "Caries-qc-1"))

        result = renderer.export_image(layers.layer(1), solid_image("#000000"))

        assert result.pixelColor(300, 350).red() > 100
        assert result.pixelColor(350, 350).red() == 0
        assert result.pixelColor(500, 350).red() == 0

    def test_label_plate_drawn(self, qapp, layers, renderer):
        """Test a labelled drawing gets a dark plate above its corner."""
        drawing = Drawing(DrawingKind.RECTANGLE, (100, 100, 200, 200), label="36 Caries", show_label=True)
        layers.set_drawings(1, [drawing])

        result = renderer.export_image(layers.layer(1), solid_image("#FFFFFF"))

        assert result.pixelColor(102, 85).red() < 120
        assert result.pixelColor(102, 60).red() == 255

    def test_export_png_bytes(self, qapp, layers, renderer):
        """Test PNG export produces a decodable image."""
        layers.set_drawings(1, [Drawing(DrawingKind.POINT, (400, 300))])

        data = renderer.export_png(layers.layer(1), solid_image("#000000"))

        assert data[:8] == b"\x89PNG\r\n\x1a\n"
        decoded = QImage.fromData(data, "PNG")
        assert (decoded.width(), decoded.height()) == (800, 600)
        assert decoded.pixelColor(402, 300).red() > 200


class TestRenderToImage:
    """Tests for on-screen rendering."""

    def test_backing_store_size(self, qapp, layers, renderer):
        """Test the image uses the device pixel ratio."""
        image = renderer.render_to_image(layers.layer(1), DisplayMetrics(400, 300, 2.0))

        assert (image.width(), image.height()) == (800, 600)
        assert image.devicePixelRatio() == 2.0

    def test_scaled_to_display(self, qapp, layers, renderer, metrics):
        """Test geometry is mapped to display space."""
        layers.set_drawings(1, [Drawing(DrawingKind.RECTANGLE, (100, 100, 200, 200))])

        image = renderer.render_to_image(layers.layer(1), metrics)

        assert image.pixelColor(50, 75).alpha() > 200
        assert image.pixelColor(10, 10).alpha() == 0

    def test_disabled_renders_nothing(self, qapp, layers, renderer, metrics):
        """Test the global toggle suppresses all overlays."""
        layers.set_drawings(1, [Drawing(DrawingKind.RECTANGLE, (100, 100, 200, 200))])

        image = renderer.render_to_image(layers.layer(1), metrics, annotations_enabled=False)

        assert image.pixelColor(50, 75).alpha() == 0

    def test_unknown_size_renders_nothing(self, qapp, layers, renderer):
        """Test zero display size skips rendering."""
        layers.set_drawings(1, [Drawing(DrawingKind.POINT, (0, 0))])

        image = renderer.render_to_image(layers.layer(1), DisplayMetrics())

        assert image.pixelColor(0, 0).alpha() == 0

    def test_preview_drawn(self, qapp, layers, renderer, metrics):
        """Test an in-progress rectangle is rendered translucent."""
        session = EditSession(layers)
        session.set_tool(Tool.RECTANGLE)
        session.pointer_down(QPointF(50, 50), metrics)
        session.pointer_move(QPointF(100, 100), metrics)

        image = renderer.render_to_image(layers.layer(1), metrics, session)
        inside = image.pixelColor(75, 75)

        assert 20 < inside.alpha() < 90
        assert inside.red() > 200
