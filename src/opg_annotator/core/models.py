"""Data models for OPG annotations and hand-drawn shapes."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QColor

from .colors import DRAWING_FILL, DRAWING_STROKE, parse_color

logger = logging.getLogger(__name__)

_drawing_ids = itertools.count(1)

# Pathology value that switches the drawing label to the free-text entry
OTHER_PATHOLOGY = "Other"

TOOTH_NUMBERS: Tuple[str, ...] = tuple(
    f"{quadrant}{position}" for quadrant in range(1, 5) for position in range(1, 9)
)

PATHOLOGY_OPTIONS: Tuple[str, ...] = (
    "Caries", "Deep Caries", "Crown", "Filling", "Implant", "Misaligned Teeth",
    "Mandibular Canal", "Missing Teeth", "Periapical Lesion", "Retained Root",
    "Root Canal Treatment", "Root Piece", "Impacted Tooth", "Maxillary Sinus",
    "Bone Loss", "Fractured Teeth", "Permanent Teeth", "Primary Teeth",
    "Supra Eruption", "TAD (Temporary Anchorage Device)", "Abutment",
    "Attrition", "Bone Defect", "Gingival Former", "Metal Band",
    "Orthodontic Brackets", "Permanent Retainer", "Post-core", "Plating",
    "Wire", "Cyst", "Root Resorption", "Hyperdontia", "Hypodontia",
    "Amalgam Tattoo", "Periodontal Abscess", "Fibrous Dysplasia",
    "Enamel Hypoplasia", "Temporomandibular Joint (TMJ) Disorders",
    "Sinusitis", "Torus Mandibularis", "Zygomatic Process Abnormalities",
    "Cemento-Osseous Dysplasia", "Osteosclerosis", "Pulp Stones",
    "Dilaceration", OTHER_PATHOLOGY,
)


class CheckType(str, Enum):
    """Classification pass whose results a layer displays."""

    QC = "qc"
    PATH = "path"
    TOOTH = "tooth"

    @property
    def model_selector(self) -> str:
        """Model name sent to the classification service."""
        return {
            CheckType.QC: "qc-mode",
            CheckType.PATH: "pathology-mode",
            CheckType.TOOTH: "tooth-mode",
        }[self]

    @property
    def display_name(self) -> str:
        """Human-readable name of the check type."""
        return {
            CheckType.QC: "Quality Control",
            CheckType.PATH: "Pathology",
            CheckType.TOOTH: "Tooth Numbering",
        }[self]

    def next(self) -> CheckType:
        """Return the following check type in the qc -> path -> tooth cycle."""
        members = list(CheckType)
        return members[(members.index(self) + 1) % len(members)]


class DrawingKind(str, Enum):
    """Type of hand-drawn shape."""

    RECTANGLE = "rectangle"
    LINE = "line"
    POINT = "point"
    POLYGON = "polygon"


@dataclass(frozen=True)
class Detection:
    """One raw region returned by the classification service."""

    class_name: str
    box: Tuple[float, float, float, float]
    polygon: Optional[Tuple[Tuple[float, float], ...]] = None


@dataclass(frozen=True)
class AnnotationCoord:
    """
    A single classifier-produced region instance.

    Geometry is stored in image space. When ``polygon`` is present the
    region is drawn and hit-tested by its outline, otherwise by the box.
    """

    id: str
    coordinates: Tuple[float, float, float, float]
    label: str
    stroke_color: QColor
    fill_color: QColor
    polygon: Optional[Tuple[QPointF, ...]] = None
    visible: bool = True
    show_stroke: bool = True
    show_background: bool = False
    show_label: bool = False
    drawer_open: bool = False

    @property
    def has_polygon(self) -> bool:
        """True when the region carries a usable outline."""
        return self.polygon is not None and len(self.polygon) >= 3


@dataclass(frozen=True)
class AnnotationGroup:
    """All region instances of one class, in detector output order."""

    class_name: str
    members: Tuple[AnnotationCoord, ...] = ()


@dataclass(frozen=True)
class DrawingTransform:
    """Bookkeeping for move-tool deltas. ``rotation`` is reserved."""

    scale: float = 1.0
    rotation: float = 0.0
    translate: QPointF = field(default_factory=QPointF)


@dataclass(frozen=True)
class Drawing:
    """
    A user-authored shape.

    ``points`` is a flat sequence of x, y pairs in image space:
    four values for rectangles (x1, y1, x2, y2) and lines, two for points,
    and an even count of at least six for polygons.
    """

    kind: DrawingKind
    points: Tuple[float, ...]
    id: str = field(default_factory=lambda: Drawing.next_id())
    label: str = ""
    visible: bool = True
    stroke_color: QColor = field(default_factory=lambda: parse_color(DRAWING_STROKE))
    fill_color: QColor = field(default_factory=lambda: parse_color(DRAWING_FILL))
    show_stroke: bool = True
    show_background: bool = True
    show_label: bool = False
    drawer_open: bool = False
    transform: DrawingTransform = field(default_factory=DrawingTransform)
    tooth_number: Optional[str] = None
    pathology: Optional[str] = None
    custom_pathology: Optional[str] = None

    def __post_init__(self) -> None:
        """Store points as an immutable tuple of floats."""
        object.__setattr__(self, "points", tuple(float(v) for v in self.points))

    @staticmethod
    def next_id() -> str:
        """Allocate a session-unique drawing id."""
        return f"drawing-{next(_drawing_ids)}"

    def vertices(self) -> List[QPointF]:
        """
        Return the editable vertices of the shape.

        Rectangles yield their four corners in TL, TR, BR, BL order,
        lines their two endpoints, points their single position and
        polygons their stored vertices.
        """
        p = self.points
        if self.kind == DrawingKind.RECTANGLE:
            x1, y1, x2, y2 = p[:4]
            return [QPointF(x1, y1), QPointF(x2, y1), QPointF(x2, y2), QPointF(x1, y2)]
        return [QPointF(p[i], p[i + 1]) for i in range(0, len(p) - 1, 2)]

    def translated(self, dx: float, dy: float) -> Drawing:
        """Return a copy moved by (dx, dy) with the delta accumulated in the transform."""
        points = tuple(
            value + (dx if i % 2 == 0 else dy) for i, value in enumerate(self.points)
        )
        previous = self.transform.translate
        transform = replace(
            self.transform,
            translate=QPointF(previous.x() + dx, previous.y() + dy),
        )
        return replace(self, points=points, transform=transform)

    def with_vertex(self, index: int, position: QPointF) -> Drawing:
        """
        Return a copy with one vertex moved.

        Rectangle corners update two coordinates each so the shape stays
        axis-aligned. Out-of-range indices return the drawing unchanged.

        Args:
            index: Vertex index as produced by ``vertices()``
            position: New vertex position in image space
        """
        x, y = position.x(), position.y()
        points = list(self.points)

        if self.kind == DrawingKind.RECTANGLE:
            corner_slots = {0: (0, 1), 1: (2, 1), 2: (2, 3), 3: (0, 3)}
            if index not in corner_slots:
                return self
            xi, yi = corner_slots[index]
        else:
            if not (0 <= index < len(points) // 2):
                return self
            xi, yi = index * 2, index * 2 + 1

        points[xi] = x
        points[yi] = y
        return replace(self, points=tuple(points))

    def normalized(self) -> Drawing:
        """Return rectangles with (x1, y1) top-left and (x2, y2) bottom-right."""
        if self.kind != DrawingKind.RECTANGLE:
            return self
        x1, y1, x2, y2 = self.points[:4]
        return replace(
            self, points=(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))
        )

    def is_degenerate(self) -> bool:
        """True for shapes that must not be committed."""
        p = self.points
        if self.kind == DrawingKind.RECTANGLE:
            return len(p) < 4 or p[0] == p[2] or p[1] == p[3]
        if self.kind == DrawingKind.LINE:
            return len(p) < 4 or (p[0] == p[2] and p[1] == p[3])
        if self.kind == DrawingKind.POINT:
            return len(p) < 2
        return len(p) < 6 or len(p) % 2 != 0

    def with_clinical_tags(
        self,
        tooth_number: str,
        pathology: str,
        custom_pathology: Optional[str] = None
    ) -> Drawing:
        """Return a copy tagged with tooth number and pathology, relabelled to match."""
        if pathology == OTHER_PATHOLOGY and custom_pathology:
            label = f"{tooth_number} {custom_pathology}"
        else:
            label = f"{tooth_number} {pathology}"
        return replace(
            self,
            label=label,
            tooth_number=tooth_number,
            pathology=pathology,
            custom_pathology=custom_pathology,
        )
