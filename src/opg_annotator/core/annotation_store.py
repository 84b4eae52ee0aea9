"""
Immutable-update operations over classifier annotations and drawings.

Every function returns a new collection and leaves its input untouched.
Operations that cannot find their target id return the input unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QColor

from .colors import class_colors, tooth_colors
from .geometry import canonical_box
from .models import AnnotationCoord, AnnotationGroup, CheckType, Detection, Drawing

logger = logging.getLogger(__name__)

# Boolean display toggles shared by annotation coords and drawings
DISPLAY_FLAGS = ("visible", "show_stroke", "show_background", "show_label", "drawer_open")
COLOR_FIELDS = ("stroke_color", "fill_color")


def _tooth_sort_key(class_name: str) -> Tuple[int, int, str]:
    try:
        return (0, int(class_name), class_name)
    except ValueError:
        return (1, 0, class_name)


def ingest_classifier_result(
    check_type: CheckType,
    detections: Sequence[Detection]
) -> List[AnnotationGroup]:
    """
    Group raw detections by class name.

    Groups appear in first-seen order (tooth numbering orders groups by
    numeric tooth number instead); members keep detector output order.
    Boxes are canonicalized so x1 <= x2 and y1 <= y2.

    Args:
        check_type: Classification pass the detections came from
        detections: Raw detector output

    Returns:
        List of AnnotationGroup, empty when there are no detections
    """
    members: Dict[str, List[AnnotationCoord]] = {}

    for index, detection in enumerate(detections):
        class_name = detection.class_name
        if check_type == CheckType.TOOTH:
            fill, stroke = tooth_colors(class_name)
        else:
            fill, stroke = class_colors(class_name)

        polygon = None
        if detection.polygon and len(detection.polygon) >= 3:
            polygon = tuple(QPointF(float(x), float(y)) for x, y in detection.polygon)

        coord = AnnotationCoord(
            id=f"{class_name}-{check_type.value}-{index}",
            coordinates=canonical_box(detection.box),
            label=str(index + 1),
            stroke_color=stroke,
            fill_color=fill,
            polygon=polygon,
            show_background=check_type in (CheckType.PATH, CheckType.TOOTH),
        )
        members.setdefault(class_name, []).append(coord)

    class_names = list(members)
    if check_type == CheckType.TOOTH:
        class_names.sort(key=_tooth_sort_key)

    groups = [AnnotationGroup(name, tuple(members[name])) for name in class_names]
    logger.debug(f"Ingested {len(detections)} {check_type.value} detections into {len(groups)} groups")
    return groups


def find_coord(
    groups: Optional[Sequence[AnnotationGroup]],
    coord_id: str
) -> Optional[Tuple[AnnotationGroup, AnnotationCoord]]:
    """Locate a coord and its parent group by id."""
    for group in groups or ():
        for coord in group.members:
            if coord.id == coord_id:
                return group, coord
    return None


def _update_coord(
    groups: Optional[List[AnnotationGroup]],
    coord_id: str,
    update: Callable[[AnnotationCoord], AnnotationCoord]
) -> Optional[List[AnnotationGroup]]:
    if groups is None or find_coord(groups, coord_id) is None:
        return groups

    result = []
    for group in groups:
        if any(coord.id == coord_id for coord in group.members):
            group = replace(group, members=tuple(
                update(coord) if coord.id == coord_id else coord
                for coord in group.members
            ))
        result.append(group)
    return result


def toggle_visibility(groups, coord_id: str):
    """Flip ``visible`` on one coord."""
    return _update_coord(groups, coord_id, lambda c: replace(c, visible=not c.visible))


def toggle_drawer_open(groups, coord_id: str):
    """Flip the list-panel expansion flag on one coord."""
    return _update_coord(groups, coord_id, lambda c: replace(c, drawer_open=not c.drawer_open))


def toggle_display_flag(groups, coord_id: str, flag: str):
    """Flip any boolean display flag on one coord."""
    if flag not in DISPLAY_FLAGS:
        raise ValueError(f"Unknown display flag: {flag}")
    return _update_coord(
        groups, coord_id, lambda c: replace(c, **{flag: not getattr(c, flag)})
    )


def recolor(groups, coord_id: str, color_field: str, color: QColor):
    """Set the stroke or fill color of one coord."""
    if color_field not in COLOR_FIELDS:
        raise ValueError(f"Unknown color field: {color_field}")
    return _update_coord(
        groups, coord_id, lambda c: replace(c, **{color_field: QColor(color)})
    )


def relabel(groups, coord_id: str, new_label: str):
    """Set the display label of one coord."""
    return _update_coord(groups, coord_id, lambda c: replace(c, label=new_label))


def delete(groups, coord_id: str):
    """Remove one coord, dropping its group if it becomes empty."""
    if groups is None or find_coord(groups, coord_id) is None:
        return groups

    result = []
    for group in groups:
        kept = tuple(coord for coord in group.members if coord.id != coord_id)
        if kept:
            result.append(group if len(kept) == len(group.members) else replace(group, members=kept))
    logger.debug(f"Deleted annotation {coord_id}")
    return result


# === Drawings ===

def find_drawing(drawings: Sequence[Drawing], drawing_id: str) -> Optional[Drawing]:
    """Return the drawing with the given id, if any."""
    for drawing in drawings:
        if drawing.id == drawing_id:
            return drawing
    return None


def replace_drawing(
    drawings: List[Drawing],
    drawing_id: str,
    update: Callable[[Drawing], Drawing]
) -> List[Drawing]:
    """Apply ``update`` to the drawing with ``drawing_id``."""
    if find_drawing(drawings, drawing_id) is None:
        return drawings
    return [update(d) if d.id == drawing_id else d for d in drawings]


def toggle_drawing_visibility(drawings: List[Drawing], drawing_id: str) -> List[Drawing]:
    """Flip ``visible`` on one drawing."""
    return replace_drawing(drawings, drawing_id, lambda d: replace(d, visible=not d.visible))


def toggle_drawing_drawer(drawings: List[Drawing], drawing_id: str) -> List[Drawing]:
    """Flip the list-panel expansion flag on one drawing."""
    return replace_drawing(drawings, drawing_id, lambda d: replace(d, drawer_open=not d.drawer_open))


def toggle_drawing_flag(drawings: List[Drawing], drawing_id: str, flag: str) -> List[Drawing]:
    """Flip any boolean display flag on one drawing."""
    if flag not in DISPLAY_FLAGS:
        raise ValueError(f"Unknown display flag: {flag}")
    return replace_drawing(
        drawings, drawing_id, lambda d: replace(d, **{flag: not getattr(d, flag)})
    )


def recolor_drawing(
    drawings: List[Drawing],
    drawing_id: str,
    color_field: str,
    color: QColor
) -> List[Drawing]:
    """Set the stroke or fill color of one drawing."""
    if color_field not in COLOR_FIELDS:
        raise ValueError(f"Unknown color field: {color_field}")
    return replace_drawing(
        drawings, drawing_id, lambda d: replace(d, **{color_field: QColor(color)})
    )


def relabel_drawing(drawings: List[Drawing], drawing_id: str, new_label: str) -> List[Drawing]:
    """Set the label of one drawing."""
    return replace_drawing(drawings, drawing_id, lambda d: replace(d, label=new_label))


def assign_clinical_tags(
    drawings: List[Drawing],
    drawing_id: str,
    tooth_number: str,
    pathology: str,
    custom_pathology: Optional[str] = None
) -> List[Drawing]:
    """Tag one drawing with a tooth number and pathology."""
    return replace_drawing(
        drawings,
        drawing_id,
        lambda d: d.with_clinical_tags(tooth_number, pathology, custom_pathology),
    )


def delete_drawing(drawings: List[Drawing], drawing_id: str) -> List[Drawing]:
    """Remove one drawing."""
    if find_drawing(drawings, drawing_id) is None:
        return drawings
    return [d for d in drawings if d.id != drawing_id]
