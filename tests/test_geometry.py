"""Tests for the geometry helpers."""

import math

import pytest
from PyQt6.QtCore import QPointF

from opg_annotator.core.geometry import (
    canonical_box,
    distance,
    nearest_vertex,
    point_in_box,
    point_in_polygon,
    point_to_segment_distance,
    smooth_polygon_path,
    smooth_polygon_segments,
    subdivide,
)
from opg_annotator.core.models import Drawing, DrawingKind


SQUARE = [QPointF(0, 0), QPointF(10, 0), QPointF(10, 10), QPointF(0, 10)]


class TestPointInPolygon:
    """Tests for the even-odd polygon test."""

    def test_square_contains_center(self):
        """Test that a square contains its center."""
        assert point_in_polygon(QPointF(5, 5), SQUARE)

    def test_square_excludes_outside_point(self):
        """Test that a point outside the square is excluded."""
        assert not point_in_polygon(QPointF(15, 15), SQUARE)

    def test_concave_notch_is_outside(self):
        """Test a point inside the notch of a concave polygon."""
        u_shape = [
            QPointF(0, 0), QPointF(30, 0), QPointF(30, 30), QPointF(20, 30),
            QPointF(20, 10), QPointF(10, 10), QPointF(10, 30), QPointF(0, 30),
        ]
        assert point_in_polygon(QPointF(5, 20), u_shape)
        assert not point_in_polygon(QPointF(15, 20), u_shape)

    def test_ray_through_horizontal_edge(self):
        """Test a ray level with a horizontal edge does not divide by zero."""
        assert point_in_polygon(QPointF(5, 0.5), SQUARE)
        assert not point_in_polygon(QPointF(-5, 0), SQUARE)

    def test_fewer_than_three_vertices(self):
        """Test degenerate polygons contain nothing."""
        assert not point_in_polygon(QPointF(0, 0), [QPointF(0, 0), QPointF(1, 1)])


class TestDistances:
    """Tests for point and segment distances."""

    def test_distance(self):
        """Test Euclidean distance."""
        assert distance(QPointF(0, 0), QPointF(3, 4)) == pytest.approx(5.0)

    def test_segment_projection_inside(self):
        """Test distance to the interior of a segment."""
        d = point_to_segment_distance(QPointF(5, 3), QPointF(0, 0), QPointF(10, 0))
        assert d == pytest.approx(3.0)

    def test_segment_projection_clamped(self):
        """Test distance past an endpoint uses the endpoint."""
        d = point_to_segment_distance(QPointF(13, 4), QPointF(0, 0), QPointF(10, 0))
        assert d == pytest.approx(5.0)

    def test_zero_length_segment(self):
        """Test a collapsed segment measures distance to its point."""
        d = point_to_segment_distance(QPointF(3, 4), QPointF(0, 0), QPointF(0, 0))
        assert d == pytest.approx(5.0)


class TestBoxes:
    """Tests for box helpers."""

    def test_canonical_box_sorts_corners(self):
        """Test that inverted boxes are canonicalized."""
        assert canonical_box((200, 150, 100, 50)) == (100.0, 50.0, 200.0, 150.0)

    def test_point_in_box_includes_edges(self):
        """Test box containment includes the border."""
        box = (0, 0, 10, 10)
        assert point_in_box(QPointF(10, 10), box)
        assert point_in_box(QPointF(0, 5), box)
        assert not point_in_box(QPointF(10.1, 5), box)


class TestNearestVertex:
    """Tests for vertex grabbing."""

    def test_rectangle_corner_order(self):
        """Test rectangle corners are indexed TL, TR, BR, BL."""
        rect = Drawing(DrawingKind.RECTANGLE, (0, 0, 100, 50))
        hit = nearest_vertex(QPointF(2, 48), [rect], 10)

        assert hit.drawing_id == rect.id
        assert hit.vertex_index == 3
        assert hit.original_point == QPointF(0, 50)

    def test_nothing_in_range(self):
        """Test that distant points find no vertex."""
        line = Drawing(DrawingKind.LINE, (0, 0, 100, 0))
        assert nearest_vertex(QPointF(50, 50), [line], 10) is None

    def test_skips_hidden_and_point_drawings(self):
        """Test hidden drawings and points are not reshapable."""
        point = Drawing(DrawingKind.POINT, (5, 5))
        hidden = Drawing(DrawingKind.LINE, (5, 5, 50, 50), visible=False)
        assert nearest_vertex(QPointF(5, 5), [point, hidden], 10) is None

    def test_first_match_wins_by_default(self):
        """Test the first candidate in store order is returned."""
        first = Drawing(DrawingKind.LINE, (0, 0, 100, 0))
        second = Drawing(DrawingKind.LINE, (7, 0, 100, 100))
        hit = nearest_vertex(QPointF(6, 0), [first, second], 10)

        assert hit.drawing_id == first.id

    def test_global_mode_returns_nearest(self):
        """Test the global mode returns the closest candidate."""
        first = Drawing(DrawingKind.LINE, (0, 0, 100, 0))
        second = Drawing(DrawingKind.LINE, (7, 0, 100, 100))
        hit = nearest_vertex(QPointF(6, 0), [first, second], 10, first_match=False)

        assert hit.drawing_id == second.id
        assert hit.vertex_index == 0


class TestSmoothing:
    """Tests for Catmull-Rom polygon smoothing."""

    def test_subdivide_inserts_points(self):
        """Test subdivision of an open chain."""
        result = subdivide([QPointF(0, 0), QPointF(3, 0)], 3)
        assert [p.x() for p in result] == pytest.approx([0, 1, 2, 3])

    def test_closed_curve_passes_through_vertices(self):
        """Test that every input vertex is a segment end point."""
        segments = smooth_polygon_segments(SQUARE, 0.3, closed=True)
        ends = [(s.end.x(), s.end.y()) for s in segments]

        for vertex in SQUARE:
            assert (vertex.x(), vertex.y()) in ends
        assert ends[-1] == (0.0, 0.0)

    def test_zero_tension_gives_straight_controls(self):
        """Test control points collapse onto the chain without tension."""
        segments = smooth_polygon_segments(SQUARE, 0.0, closed=True)
        first = segments[0]
        assert first.c1 == QPointF(0, 0)
        assert first.c2 == first.end

    def test_open_curve_segment_count(self):
        """Test open curves have one fewer segment than points."""
        vertices = [QPointF(0, 0), QPointF(10, 0), QPointF(10, 10)]
        segments = smooth_polygon_segments(vertices, 0.3, closed=False, subdivisions=1)
        assert len(segments) == 2

    def test_path_bounds_cover_polygon(self, qapp):
        """Test the smoothed path stays close to the polygon bounds."""
        path = smooth_polygon_path(SQUARE, 0.3)
        rect = path.boundingRect()

        assert not path.isEmpty()
        assert rect.left() == pytest.approx(0, abs=2)
        assert rect.right() == pytest.approx(10, abs=2)
        assert math.isclose(rect.top(), 0, abs_tol=2)
