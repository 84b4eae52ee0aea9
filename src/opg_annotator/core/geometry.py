"""Geometry helpers for hit-testing and smooth polygon rendering."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QPainterPath

from .models import Drawing, DrawingKind

Box = Tuple[float, float, float, float]


@dataclass(frozen=True)
class VertexHit:
    """A drawing vertex found near the pointer."""

    drawing_id: str
    vertex_index: int
    original_point: QPointF


@dataclass(frozen=True)
class BezierSegment:
    """Cubic Bezier segment; the start point is the previous segment's end."""

    c1: QPointF
    c2: QPointF
    end: QPointF


def distance(a: QPointF, b: QPointF) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a.x() - b.x(), a.y() - b.y())


def canonical_box(box: Sequence[float]) -> Box:
    """Return the box with x1 <= x2 and y1 <= y2."""
    x1, y1, x2, y2 = (float(v) for v in box[:4])
    return (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


def point_in_box(p: QPointF, box: Sequence[float]) -> bool:
    """Check if a point lies inside or on the edge of an axis-aligned box."""
    x1, y1, x2, y2 = box[:4]
    return x1 <= p.x() <= x2 and y1 <= p.y() <= y2


def point_in_polygon(p: QPointF, vertices: Sequence[QPointF]) -> bool:
    """
    Even-odd point-in-polygon test.

    Casts a horizontal ray from ``p`` and counts edge crossings. Edges are
    taken pairwise with wraparound; horizontal edges never cross the ray
    and are skipped before the intersection is computed.

    Args:
        p: Point to test
        vertices: Polygon vertices in order

    Returns:
        True if the point is inside the polygon
    """
    n = len(vertices)
    if n < 3:
        return False

    x, y = p.x(), p.y()
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i].x(), vertices[i].y()
        xj, yj = vertices[j].x(), vertices[j].y()
        if yi != yj and (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_to_segment_distance(p: QPointF, a: QPointF, b: QPointF) -> float:
    """Distance from point p to line segment a-b."""
    dx = b.x() - a.x()
    dy = b.y() - a.y()
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return distance(p, a)

    t = ((p.x() - a.x()) * dx + (p.y() - a.y()) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    closest = QPointF(a.x() + t * dx, a.y() + t * dy)
    return distance(p, closest)


def nearest_vertex(
    p: QPointF,
    drawings: Iterable[Drawing],
    threshold: float,
    first_match: bool = True
) -> Optional[VertexHit]:
    """
    Find a reshapable vertex within ``threshold`` of ``p``.

    Drawings are scanned in store order, skipping hidden ones and points.
    By default the first vertex closer than the threshold wins, even if a
    later shape has a closer one. With ``first_match=False`` the globally
    nearest candidate is returned instead.

    Args:
        p: Pointer position in image space
        drawings: Drawings to search
        threshold: Maximum distance in image-space pixels
        first_match: Return the first candidate rather than the nearest

    Returns:
        VertexHit or None if nothing is close enough
    """
    best: Optional[VertexHit] = None
    best_distance = threshold

    for drawing in drawings:
        if not drawing.visible or drawing.kind == DrawingKind.POINT:
            continue
        for index, vertex in enumerate(drawing.vertices()):
            d = distance(vertex, p)
            if d >= threshold:
                continue
            hit = VertexHit(drawing.id, index, QPointF(vertex))
            if first_match:
                return hit
            if best is None or d < best_distance:
                best = hit
                best_distance = d
    return best


def subdivide(points: Sequence[QPointF], subdivisions: int = 3) -> List[QPointF]:
    """Insert evenly spaced points between consecutive points of an open chain."""
    if len(points) < 2 or subdivisions < 2:
        return list(points)

    result: List[QPointF] = []
    for current, following in zip(points, points[1:]):
        result.append(QPointF(current))
        for step in range(1, subdivisions):
            t = step / subdivisions
            result.append(QPointF(
                current.x() + (following.x() - current.x()) * t,
                current.y() + (following.y() - current.y()) * t,
            ))
    result.append(QPointF(points[-1]))
    return result


def smooth_polygon_segments(
    vertices: Sequence[QPointF],
    tension: float = 0.3,
    closed: bool = True,
    subdivisions: int = 3
) -> List[BezierSegment]:
    """
    Build Catmull-Rom Bezier segments through the given vertices.

    The vertex chain is first subdivided, then every consecutive pair is
    joined by a cubic segment whose control points follow the neighbouring
    tangents scaled by ``tension``. Closed curves wrap around, open curves
    clamp at their ends. Segments pass through every input vertex.

    Args:
        vertices: Polygon vertices (already in the space to draw in)
        tension: Smoothness factor, 0 gives straight edges
        closed: Whether the curve returns to the first vertex
        subdivisions: Segments inserted per original edge

    Returns:
        Segments starting at ``vertices[0]``
    """
    if len(vertices) < 2:
        return []

    pts = subdivide(vertices, subdivisions)
    n = len(pts)
    k = tension * 0.5
    segments: List[BezierSegment] = []

    def at(i: int) -> QPointF:
        if closed:
            return pts[i % n]
        return pts[max(0, min(n - 1, i))]

    count = n if closed else n - 1
    for i in range(count):
        p0, p1, p2, p3 = at(i - 1), at(i), at(i + 1), at(i + 2)
        c1 = QPointF(p1.x() + (p2.x() - p0.x()) * k, p1.y() + (p2.y() - p0.y()) * k)
        c2 = QPointF(p2.x() - (p3.x() - p1.x()) * k, p2.y() - (p3.y() - p1.y()) * k)
        segments.append(BezierSegment(c1, c2, QPointF(p2)))
    return segments


def smooth_polygon_path(
    vertices: Sequence[QPointF],
    tension: float = 0.3,
    closed: bool = True
) -> QPainterPath:
    """Return a QPainterPath tracing the smoothed curve through the vertices."""
    path = QPainterPath()
    if len(vertices) < 2:
        return path

    path.moveTo(vertices[0])
    if len(vertices) == 2:
        path.lineTo(vertices[1])
        return path

    for segment in smooth_polygon_segments(vertices, tension, closed and len(vertices) >= 3):
        path.cubicTo(segment.c1, segment.c2, segment.end)
    if closed:
        path.closeSubpath()
    return path
