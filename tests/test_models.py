"""Tests for core models."""

import pytest
from PyQt6.QtCore import QPointF

from opg_annotator.core.models import (
    OTHER_PATHOLOGY,
    AnnotationCoord,
    CheckType,
    Drawing,
    DrawingKind,
    TOOTH_NUMBERS,
)
from opg_annotator.core.colors import parse_color


class TestCheckType:
    """Tests for the CheckType enum."""

    def test_model_selectors(self):
        """Test the model names sent to the service."""
        assert CheckType.QC.model_selector == "qc-mode"
        assert CheckType.PATH.model_selector == "pathology-mode"
        assert CheckType.TOOTH.model_selector == "tooth-mode"

    def test_cycle_order(self):
        """Test qc -> path -> tooth -> qc."""
        assert CheckType.QC.next() == CheckType.PATH
        assert CheckType.PATH.next() == CheckType.TOOTH
        assert CheckType.TOOTH.next() == CheckType.QC


class TestDrawing:
    """Tests for the Drawing class."""

    def test_defaults(self):
        """Test default colors, flags and id."""
        drawing = Drawing(DrawingKind.POINT, (5, 6))

        assert drawing.id.startswith("drawing-")
        assert drawing.visible is True
        assert drawing.show_background is True
        assert drawing.show_label is False
        assert drawing.stroke_color.name() == "#ff0000"
        assert drawing.fill_color.alphaF() == pytest.approx(0.2, abs=0.01)

    def test_ids_are_unique(self):
        """Test every drawing gets a fresh id."""
        a = Drawing(DrawingKind.POINT, (0, 0))
        b = Drawing(DrawingKind.POINT, (0, 0))
        assert a.id != b.id

    def test_points_stored_as_float_tuple(self):
        """Test points are normalized to an immutable float tuple."""
        drawing = Drawing(DrawingKind.LINE, [1, 2, 3, 4])
        assert drawing.points == (1.0, 2.0, 3.0, 4.0)

    def test_rectangle_vertices(self):
        """Test rectangle corners in TL, TR, BR, BL order."""
        rect = Drawing(DrawingKind.RECTANGLE, (10, 20, 30, 40))
        assert rect.vertices() == [
            QPointF(10, 20), QPointF(30, 20), QPointF(30, 40), QPointF(10, 40)
        ]

    def test_translated_accumulates_transform(self):
        """Test move deltas shift every coordinate and accumulate."""
        polygon = Drawing(DrawingKind.POLYGON, (0, 0, 10, 0, 10, 10))
        moved = polygon.translated(5, -2).translated(1, 1)

        assert moved.points == (6, -1, 16, -1, 16, 9)
        assert moved.transform.translate == QPointF(6, -1)
        assert moved.id == polygon.id
        assert polygon.points == (0, 0, 10, 0, 10, 10)

    def test_with_vertex_rectangle_corner(self):
        """Test dragging a rectangle corner updates two coordinates."""
        rect = Drawing(DrawingKind.RECTANGLE, (10, 20, 30, 40))
        moved = rect.with_vertex(1, QPointF(50, 5))
        assert moved.points == (10, 5, 50, 40)

    def test_with_vertex_out_of_range(self):
        """Test invalid vertex indices leave the drawing unchanged."""
        line = Drawing(DrawingKind.LINE, (0, 0, 10, 10))
        assert line.with_vertex(2, QPointF(1, 1)) is line

    def test_normalized_rectangle(self):
        """Test rectangles are sorted to top-left/bottom-right."""
        rect = Drawing(DrawingKind.RECTANGLE, (30, 40, 10, 20)).normalized()
        assert rect.points == (10, 20, 30, 40)

    @pytest.mark.parametrize("kind,points,expected", [
        (DrawingKind.RECTANGLE, (5, 5, 5, 20), True),
        (DrawingKind.RECTANGLE, (5, 5, 6, 20), False),
        (DrawingKind.LINE, (5, 5, 5, 5), True),
        (DrawingKind.LINE, (5, 5, 5, 6), False),
        (DrawingKind.POLYGON, (0, 0, 1, 1), True),
        (DrawingKind.POLYGON, (0, 0, 1, 1, 2, 0), False),
    ])
    def test_degenerate_shapes(self, kind, points, expected):
        """Test which shapes are too small to commit."""
        assert Drawing(kind, points).is_degenerate() is expected

    def test_clinical_tags_label(self):
        """Test tagging relabels the drawing."""
        drawing = Drawing(DrawingKind.RECTANGLE, (0, 0, 1, 1))
        tagged = drawing.with_clinical_tags("36", "Caries")

        assert tagged.label == "36 Caries"
        assert tagged.tooth_number == "36"
        assert tagged.pathology == "Caries"

    def test_clinical_tags_custom_pathology(self):
        """Test the custom text replaces "Other" in the label."""
        drawing = Drawing(DrawingKind.RECTANGLE, (0, 0, 1, 1))
        tagged = drawing.with_clinical_tags("11", OTHER_PATHOLOGY, "Ankylosis")

        assert tagged.label == "11 Ankylosis"
        assert tagged.custom_pathology == "Ankylosis"


class TestAnnotationCoord:
    """Tests for AnnotationCoord."""

    def test_has_polygon_requires_three_points(self):
        """Test short outlines fall back to the box."""
        red = parse_color("#FF0000")
        coord = AnnotationCoord("a-qc-0", (0, 0, 1, 1), "1", red, red, polygon=(QPointF(0, 0), QPointF(1, 1)))
        assert not coord.has_polygon

    def test_tooth_numbers_are_fdi(self):
        """Test tooth numbers cover the four FDI quadrants."""
        assert len(TOOTH_NUMBERS) == 32
        assert TOOTH_NUMBERS[0] == "11"
        assert TOOTH_NUMBERS[-1] == "48"
