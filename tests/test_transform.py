"""Tests for image/display coordinate transforms."""

import pytest
from PyQt6.QtCore import QPointF

from opg_annotator.core.transform import (
    DisplayMetrics,
    ImageSize,
    ViewTransform,
    to_display,
    to_image,
)


def assert_point(actual, expected, tol=1e-6):
    assert actual is not None
    assert actual.x() == pytest.approx(expected[0], abs=tol)
    assert actual.y() == pytest.approx(expected[1], abs=tol)


class TestScaleFunctions:
    """Tests for the plain scale conversions."""

    def test_to_display_scales(self):
        """Test image -> display scaling."""
        p = to_display(QPointF(400, 300), ImageSize(800, 600), DisplayMetrics(400, 300))
        assert_point(p, (200, 150))

    @pytest.mark.parametrize("x,y", [(0, 0), (123.4, 56.7), (799, 599)])
    def test_round_trip(self, x, y):
        """Test that to_image inverts to_display."""
        size = ImageSize(2880, 1504)
        display = DisplayMetrics(917, 479)
        back = to_image(to_display(QPointF(x, y), size, display), size, display)
        assert_point(back, (x, y))

    @pytest.mark.parametrize("size,display", [
        (ImageSize(0, 0), DisplayMetrics(400, 300)),
        (ImageSize(800, 600), DisplayMetrics(0, 0)),
    ])
    def test_unknown_size_is_no_op(self, size, display):
        """Test conversions return None instead of dividing by zero."""
        assert to_display(QPointF(1, 1), size, display) is None
        assert to_image(QPointF(1, 1), size, display) is None


class TestDisplayMetrics:
    """Tests for DisplayMetrics."""

    def test_backing_size_applies_device_pixel_ratio(self):
        """Test backing store dimensions."""
        assert DisplayMetrics(400, 300, 2.0).backing_size() == (800, 600)

    def test_unknown_until_sized(self):
        """Test zero-sized metrics are unknown."""
        assert not DisplayMetrics().is_known
        assert not ImageSize(800, 0).is_known


class TestViewTransform:
    """Tests for the zoom-aware view transform."""

    def test_invalid_transform_returns_none(self):
        """Test conversions are skipped while sizes are unknown."""
        view = ViewTransform(ImageSize(), DisplayMetrics(400, 300))

        assert not view.is_valid
        assert view.to_display(QPointF(1, 1)) is None
        assert view.to_image(QPointF(1, 1)) is None

    def test_unzoomed_matches_base_scale(self):
        """Test zoom 1 is a pure scale."""
        view = ViewTransform(ImageSize(800, 600), DisplayMetrics(400, 300))
        assert_point(view.to_display(QPointF(100, 100)), (50, 50))

    def test_zoom_pivot_invariance(self):
        """Test the zoom center keeps its on-screen position."""
        size, metrics = ImageSize(800, 600), DisplayMetrics(400, 300)
        center = QPointF(300, 200)
        before = ViewTransform(size, metrics).to_display(center)
        after = ViewTransform(size, metrics, 1.6, center).to_display(center)

        assert_point(after, (before.x(), before.y()))

    def test_zoom_scales_about_center(self):
        """Test other points move away from the center by the zoom factor."""
        view = ViewTransform(ImageSize(800, 600), DisplayMetrics(400, 300), 2.0, QPointF(200, 200))
        # Center sits at (100, 100) on screen; (400, 200) is 100px right of it unzoomed
        assert_point(view.to_display(QPointF(400, 200)), (300, 100))

    @pytest.mark.parametrize("zoom", [0.5, 1.0, 2.2, 3.0])
    def test_zoomed_round_trip(self, zoom):
        """Test to_image inverts to_display including zoom."""
        view = ViewTransform(ImageSize(800, 600), DisplayMetrics(640, 480), zoom, QPointF(250, 410))
        p = QPointF(612.5, 33.25)
        assert_point(view.to_image(view.to_display(p)), (612.5, 33.25))

    def test_pan_shifts_display(self):
        """Test pan moves every point by its base-scaled amount."""
        view = ViewTransform(ImageSize(800, 600), DisplayMetrics(400, 300), 2.0, QPointF(200, 200), QPointF(40, -20))
        assert_point(view.to_display(QPointF(200, 200)), (120, 90))

    def test_panned_round_trip(self):
        """Test to_image inverts to_display with zoom and pan."""
        view = ViewTransform(ImageSize(800, 600), DisplayMetrics(640, 480), 1.4, QPointF(250, 410), QPointF(-33, 12.5))
        p = QPointF(612.5, 33.25)
        assert_point(view.to_image(view.to_display(p)), (612.5, 33.25))

    def test_scaled_divides_by_zoom(self):
        """Test stroke widths shrink with zoom."""
        view = ViewTransform(ImageSize(800, 600), DisplayMetrics(400, 300), 2.0)
        assert view.scaled(2.0) == pytest.approx(1.0)
