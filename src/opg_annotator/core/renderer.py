"""QPainter rendering of annotations, drawings and edit previews."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from PyQt6.QtCore import QBuffer, QByteArray, QIODevice, QPointF, QRectF, Qt
from PyQt6.QtGui import (
    QBrush, QColor, QFont, QFontMetricsF, QImage, QPainter, QPainterPath, QPen, QPolygonF,
)

from .colors import LABEL_PLATE, LABEL_TEXT, PREVIEW_FILL, PREVIEW_STROKE, parse_color
from .edit_session import EditSession, Preview
from .geometry import smooth_polygon_path
from .layers import Layer
from .models import AnnotationCoord, AnnotationGroup, CheckType, Drawing, DrawingKind
from .transform import DisplayMetrics, ImageSize, ViewTransform

logger = logging.getLogger(__name__)

POINT_RADIUS = 3.0
PREVIEW_LINE_WIDTH = 1.0
PLATE_HEIGHT = 20.0
PLATE_PADDING = 5.0
PLATE_MARGIN = 5.0
PLATE_BASELINE = 15.0


def label_plate_rect(
    anchor_x: float,
    anchor_y: float,
    text_width: float,
    canvas_width: float,
    zoom: float = 1.0
) -> QRectF:
    """
    Place a label plate above a shape's top-left corner.

    The plate is pushed left when it would overflow the right edge of the
    canvas, pushed right when that makes it negative, and flipped below
    the anchor when it would go above the top.

    Args:
        anchor_x: Anchor x in unzoomed display space
        anchor_y: Anchor y in unzoomed display space
        text_width: Measured label width (already zoom-compensated)
        canvas_width: Displayed canvas width
        zoom: Active zoom factor

    Returns:
        Plate rectangle in unzoomed display space
    """
    width = text_width + 2 * PLATE_PADDING / zoom
    height = PLATE_HEIGHT / zoom
    x = anchor_x
    y = anchor_y - height

    if x + width > canvas_width / zoom:
        x = canvas_width / zoom - width - PLATE_MARGIN / zoom
    if x < 0:
        x = PLATE_MARGIN / zoom
    if y < 0:
        y = anchor_y + PLATE_MARGIN / zoom
    return QRectF(x, y, width, height)


def export_filename(source_path: Optional[Path]) -> str:
    """Name of the exported PNG for an image file."""
    stem = Path(source_path).stem if source_path else "image"
    return f"annotated_{stem}.png"


def annotation_label(check_type: CheckType, group: AnnotationGroup, coord: AnnotationCoord) -> str:
    """Text shown on an annotation's label plate."""
    if check_type == CheckType.QC:
        return f"{group.class_name} {coord.label}".strip()
    return group.class_name.strip()


class Renderer:
    """
    Draws a layer's overlay with a QPainter.

    Geometry is mapped image -> display through the layer's view transform.
    The painter is given the zoom part of the transform, so every stroke
    width, font size and plate padding is divided by the zoom to keep a
    constant on-screen size.
    """

    def __init__(
        self,
        line_width: float = 2.0,
        polygon_line_width: float = 0.8,
        font_size: float = 12.0,
        label_font_size: float = 10.0,
        tension: float = 0.3,
        font_family: str = "Arial"
    ) -> None:
        self.line_width = line_width
        self.polygon_line_width = polygon_line_width
        self.font_size = font_size
        self.label_font_size = label_font_size
        self.tension = tension
        self.font_family = font_family
        self._plate_color = parse_color(LABEL_PLATE)
        self._text_color = parse_color(LABEL_TEXT)
        self._preview_stroke = parse_color(PREVIEW_STROKE)
        self._preview_fill = parse_color(PREVIEW_FILL)

    # === Entry points ===

    def render(
        self,
        painter: QPainter,
        layer: Layer,
        metrics: DisplayMetrics,
        session: Optional[EditSession] = None,
        annotations_enabled: bool = True
    ) -> None:
        """
        Draw a layer's annotations, drawings and edit preview.

        Draws nothing when annotations are disabled or the image or display
        size is still unknown.

        Args:
            painter: Active painter in widget (display) coordinates
            layer: Layer to draw
            metrics: Current on-screen size of the layer's image
            session: Edit session whose preview is drawn if it targets this layer
            annotations_enabled: Global overlay toggle
        """
        if not annotations_enabled:
            return

        view = layer.view_transform(metrics)
        if not view.is_valid:
            logger.debug(f"Skipping render of layer {layer.id}: size unknown")
            return

        preview = None
        if session is not None and session.active_layer_id == layer.id:
            preview = session.preview()

        painter.save()
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setTransform(view.zoom_transform(), True)
        self._draw_layer(painter, layer, view, metrics.width, preview)
        painter.restore()

    def render_to_image(
        self,
        layer: Layer,
        metrics: DisplayMetrics,
        session: Optional[EditSession] = None,
        annotations_enabled: bool = True
    ) -> QImage:
        """Render a layer's overlay onto a transparent image sized to the backing store."""
        width, height = metrics.backing_size()
        image = QImage(max(width, 1), max(height, 1), QImage.Format.Format_ARGB32_Premultiplied)
        image.setDevicePixelRatio(metrics.device_pixel_ratio)
        image.fill(Qt.GlobalColor.transparent)

        painter = QPainter(image)
        try:
            self.render(painter, layer, metrics, session, annotations_enabled)
        finally:
            painter.end()
        return image

    def export_image(
        self,
        layer: Layer,
        source_image: QImage,
        annotations_enabled: bool = True
    ) -> QImage:
        """
        Composite a layer's overlay onto its image at natural resolution.

        Zoom and device pixel ratio are ignored; geometry is drawn 1:1.
        """
        result = source_image.convertToFormat(QImage.Format.Format_ARGB32)
        result.setDevicePixelRatio(1.0)
        if not annotations_enabled:
            return result

        size = layer.image_size
        if not size.is_known:
            size = ImageSize(source_image.width(), source_image.height())
        view = ViewTransform(size, DisplayMetrics(size.width, size.height))

        painter = QPainter(result)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)
            painter.scale(source_image.width() / size.width, source_image.height() / size.height)
            self._draw_layer(painter, layer, view, size.width, None)
        finally:
            painter.end()

        logger.info(f"Exported layer {layer.id} at {result.width()}x{result.height()}")
        return result

    def export_png(
        self,
        layer: Layer,
        source_image: QImage,
        annotations_enabled: bool = True
    ) -> bytes:
        """Export a layer as PNG bytes."""
        image = self.export_image(layer, source_image, annotations_enabled)
        data = QByteArray()
        buffer = QBuffer(data)
        buffer.open(QIODevice.OpenModeFlag.WriteOnly)
        image.save(buffer, "PNG")
        buffer.close()
        return bytes(data)

    # === Drawing ===

    def _draw_layer(
        self,
        painter: QPainter,
        layer: Layer,
        view: ViewTransform,
        canvas_width: float,
        preview: Optional[Preview]
    ) -> None:
        for group in layer.active_annotations or ():
            for coord in group.members:
                if coord.visible:
                    self._draw_annotation(painter, layer.check_type, group, coord, view, canvas_width)

        for drawing in layer.drawings:
            if drawing.visible:
                self._draw_drawing(painter, drawing, view, canvas_width)

        if preview is not None:
            self._draw_preview(painter, preview, view)

    def _pen(self, color: QColor, width: float, enabled: bool = True) -> QPen:
        if not enabled:
            return QPen(Qt.PenStyle.NoPen)
        pen = QPen(color, width)
        pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        return pen

    def _brush(self, color: QColor, enabled: bool = True) -> QBrush:
        if not enabled:
            return QBrush(Qt.BrushStyle.NoBrush)
        return QBrush(color)

    def _display_points(self, points: Sequence[QPointF], view: ViewTransform) -> list:
        return [view.base_display(p) for p in points]

    def _draw_annotation(
        self,
        painter: QPainter,
        check_type: CheckType,
        group: AnnotationGroup,
        coord: AnnotationCoord,
        view: ViewTransform,
        canvas_width: float
    ) -> None:
        if coord.has_polygon:
            outline = self._display_points(coord.polygon, view)
            painter.setPen(self._pen(coord.stroke_color, view.scaled(self.polygon_line_width), coord.show_stroke))
            painter.setBrush(self._brush(coord.fill_color, coord.show_background))
            painter.drawPolygon(QPolygonF(outline))
            anchor = outline[0]
            font_size = self.font_size
        else:
            x1, y1, x2, y2 = coord.coordinates
            top_left = view.base_display(QPointF(x1, y1))
            bottom_right = view.base_display(QPointF(x2, y2))
            painter.setPen(self._pen(coord.stroke_color, view.scaled(self.line_width), coord.show_stroke))
            painter.setBrush(self._brush(coord.fill_color, coord.show_background))
            painter.drawRect(QRectF(top_left, bottom_right))
            anchor = top_left
            font_size = self.label_font_size

        if coord.show_label:
            text = annotation_label(check_type, group, coord)
            if text:
                self._draw_label(painter, text, anchor, font_size, view, canvas_width)

    def _draw_drawing(
        self,
        painter: QPainter,
        drawing: Drawing,
        view: ViewTransform,
        canvas_width: float
    ) -> None:
        vertices = self._display_points(drawing.vertices(), view)
        if not vertices:
            return

        width = view.scaled(self.line_width)
        painter.setPen(self._pen(drawing.stroke_color, width, drawing.show_stroke))
        painter.setBrush(self._brush(drawing.fill_color, drawing.show_background))

        if drawing.kind == DrawingKind.RECTANGLE:
            painter.drawRect(QRectF(vertices[0], vertices[2]))
        elif drawing.kind == DrawingKind.LINE and len(vertices) >= 2:
            painter.drawLine(vertices[0], vertices[1])
        elif drawing.kind == DrawingKind.POINT:
            radius = view.scaled(POINT_RADIUS)
            painter.drawEllipse(vertices[0], radius, radius)
        elif drawing.kind == DrawingKind.POLYGON:
            if len(vertices) >= 3:
                painter.drawPath(smooth_polygon_path(vertices, self.tension, closed=True))
            else:
                painter.drawPolygon(QPolygonF(vertices))

        if drawing.show_label and drawing.label:
            self._draw_label(painter, drawing.label, vertices[0], self.font_size, view, canvas_width)

    def _draw_label(
        self,
        painter: QPainter,
        text: str,
        anchor: QPointF,
        font_size: float,
        view: ViewTransform,
        canvas_width: float
    ) -> None:
        """Draw a label plate with white text near the anchor."""
        zoom = view.zoom
        font = QFont(self.font_family)
        font.setPixelSize(max(1, round(font_size / zoom)))
        text_width = QFontMetricsF(font).horizontalAdvance(text)
        plate = label_plate_rect(anchor.x(), anchor.y(), text_width, canvas_width, zoom)

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(self._plate_color)
        painter.drawRect(plate)

        painter.setFont(font)
        painter.setPen(self._text_color)
        painter.drawText(
            QPointF(plate.x() + PLATE_PADDING / zoom, plate.y() + PLATE_BASELINE / zoom), text
        )

    def _draw_preview(self, painter: QPainter, preview: Preview, view: ViewTransform) -> None:
        points = self._display_points(preview.points, view)
        painter.setPen(self._pen(self._preview_stroke, view.scaled(PREVIEW_LINE_WIDTH)))

        if preview.kind == DrawingKind.RECTANGLE and len(points) >= 2:
            painter.setBrush(self._brush(self._preview_fill))
            painter.drawRect(QRectF(points[0], points[1]).normalized())
        elif preview.kind == DrawingKind.LINE and len(points) >= 2:
            painter.drawLine(points[0], points[1])
        elif preview.kind == DrawingKind.POLYGON:
            if preview.cursor is not None:
                points.append(view.base_display(preview.cursor))
            if len(points) >= 2:
                path = QPainterPath(points[0])
                for point in points[1:]:
                    path.lineTo(point)
                painter.setBrush(Qt.BrushStyle.NoBrush)
                painter.drawPath(path)
