"""Image-space / display-space coordinate transforms."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageSize:
    """Natural pixel size of a loaded image. Zero until the image is measured."""

    width: float = 0.0
    height: float = 0.0

    @property
    def is_known(self) -> bool:
        """True once both dimensions are non-zero."""
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class DisplayMetrics:
    """
    On-screen size of a layer's image as reported by the UI each frame.

    The device pixel ratio only affects backing-store pixel dimensions,
    never stored geometry.
    """

    width: float = 0.0
    height: float = 0.0
    device_pixel_ratio: float = 1.0

    @property
    def is_known(self) -> bool:
        """True once both dimensions are non-zero."""
        return self.width > 0 and self.height > 0

    def backing_size(self) -> Tuple[int, int]:
        """Pixel dimensions of the backing store."""
        return (
            int(round(self.width * self.device_pixel_ratio)),
            int(round(self.height * self.device_pixel_ratio)),
        )


def to_display(p: QPointF, image_size: ImageSize, display: DisplayMetrics) -> Optional[QPointF]:
    """Scale an image-space point to display space, None while either size is unknown."""
    if not (image_size.is_known and display.is_known):
        return None
    return QPointF(
        p.x() * display.width / image_size.width,
        p.y() * display.height / image_size.height,
    )


def to_image(p: QPointF, image_size: ImageSize, display: DisplayMetrics) -> Optional[QPointF]:
    """Scale a display-space point back to image space, None while either size is unknown."""
    if not (image_size.is_known and display.is_known):
        return None
    return QPointF(
        p.x() * image_size.width / display.width,
        p.y() * image_size.height / display.height,
    )


@dataclass(frozen=True)
class ViewTransform:
    """
    Full image -> display mapping for one layer, including zoom.

    Image points are first scaled by the base ratio (display size over
    image size), then scaled by ``zoom`` about the base-display position
    of ``zoom_center`` and shifted by ``pan``. Center and pan are stored
    in image pixels so they stay put when the widget is resized.
    """

    image_size: ImageSize
    metrics: DisplayMetrics
    zoom: float = 1.0
    zoom_center: QPointF = field(default_factory=QPointF)
    pan: QPointF = field(default_factory=QPointF)

    @property
    def is_valid(self) -> bool:
        """False while the image or display size is unknown."""
        return self.image_size.is_known and self.metrics.is_known and self.zoom > 0

    @property
    def scale_x(self) -> float:
        """Base horizontal image -> display ratio."""
        return self.metrics.width / self.image_size.width

    @property
    def scale_y(self) -> float:
        """Base vertical image -> display ratio."""
        return self.metrics.height / self.image_size.height

    def base_display(self, p: QPointF) -> Optional[QPointF]:
        """Map an image point to display space without zoom."""
        if not self.is_valid:
            return None
        return to_display(p, self.image_size, self.metrics)

    def zoom_transform(self) -> QTransform:
        """
        Zoom about the base-display zoom center, then pan.

        Applied on top of base-display coordinates: translate to the
        center plus pan, scale, translate back by the center.
        """
        if not self.is_valid:
            return QTransform()
        cx = self.zoom_center.x() * self.scale_x
        cy = self.zoom_center.y() * self.scale_y
        transform = QTransform()
        transform.translate(cx + self.pan.x() * self.scale_x, cy + self.pan.y() * self.scale_y)
        transform.scale(self.zoom, self.zoom)
        transform.translate(-cx, -cy)
        return transform

    def to_display(self, p: QPointF) -> Optional[QPointF]:
        """Map an image-space point to its on-screen position."""
        base = self.base_display(p)
        if base is None:
            return None
        return self.zoom_transform().map(base)

    def to_image(self, p: QPointF) -> Optional[QPointF]:
        """Map an on-screen position back to image space."""
        if not self.is_valid:
            return None
        cx = self.zoom_center.x() * self.scale_x
        cy = self.zoom_center.y() * self.scale_y
        base = QPointF(
            (p.x() - cx - self.pan.x() * self.scale_x) / self.zoom + cx,
            (p.y() - cy - self.pan.y() * self.scale_y) / self.zoom + cy,
        )
        return to_image(base, self.image_size, self.metrics)

    def scaled(self, value: float) -> float:
        """Divide a stroke width, font size or padding by the zoom factor."""
        return value / self.zoom if self.zoom else value
