"""Color tables and CSS color conversions for OPG annotations."""

from __future__ import annotations

import logging
import re
from typing import Dict, Tuple

from PyQt6.QtGui import QColor

logger = logging.getLogger(__name__)

_RGBA_PATTERN = re.compile(
    r"rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)",
    re.IGNORECASE,
)

# (fill, stroke) pairs keyed by pathology/QC class name
CLASS_COLORS: Dict[str, Tuple[str, str]] = {
    "Caries": ("rgba(255, 0, 0, 0.5)", "rgba(255, 0, 0, 0.6)"),
    "Crown": ("rgba(255, 215, 0, 0.5)", "rgba(255, 215, 0, 0.6)"),
    "Filling": ("rgba(0, 128, 255, 0.5)", "rgba(0, 128, 255, 0.6)"),
    "Implant": ("rgba(192, 192, 192, 0.5)", "rgba(192, 192, 192, 0.6)"),
    "Malaligned": ("rgba(255, 20, 147, 0.5)", "rgba(255, 20, 147, 0.6)"),
    "Mandibular Canal": ("rgba(0, 0, 255, 0.5)", "rgba(0, 0, 255, 0.6)"),
    "Missing teeth": ("rgba(211, 211, 211, 0.5)", "rgba(211, 211, 211, 0.6)"),
    "Periapical lesion": ("rgba(138, 43, 226, 0.8)", "rgba(138, 43, 226, 0.9)"),
    "Root Canal Treatment": ("rgba(75, 0, 130, 0.5)", "rgba(75, 0, 130, 0.6)"),
    "Retained root": ("rgba(205, 92, 92, 0.5)", "rgba(205, 92, 92, 0.6)"),
    "Root Piece": ("rgba(233, 150, 122, 0.5)", "rgba(233, 150, 122, 0.6)"),
    "impacted tooth": ("rgba(255, 165, 0, 0.5)", "rgba(255, 165, 0, 0.6)"),
    "maxillary sinus": ("rgba(65, 105, 225, 0.5)", "rgba(65, 105, 225, 0.6)"),
    "Bone Loss": ("rgba(139, 69, 19, 0.5)", "rgba(139, 69, 19, 0.6)"),
    "Fracture teeth": ("rgba(255, 69, 0, 0.5)", "rgba(255, 69, 0, 0.6)"),
    "Permanent Teeth": ("rgba(46, 139, 87, 0.5)", "rgba(46, 139, 87, 0.6)"),
    "Supra Eruption": ("rgba(34, 139, 34, 0.5)", "rgba(34, 139, 34, 0.6)"),
    "TAD": ("rgba(219, 112, 147, 0.5)", "rgba(219, 112, 147, 0.6)"),
    "abutment": ("rgba(218, 165, 32, 0.5)", "rgba(218, 165, 32, 0.6)"),
    "attrition": ("rgba(210, 105, 30, 0.5)", "rgba(210, 105, 30, 0.6)"),
    "bone defect": ("rgba(160, 82, 45, 0.5)", "rgba(160, 82, 45, 0.6)"),
    "gingival former": ("rgba(112, 128, 144, 0.5)", "rgba(112, 128, 144, 0.6)"),
    "metal band": ("rgba(119, 136, 153, 0.5)", "rgba(119, 136, 153, 0.6)"),
    "orthodontic brackets": ("rgba(255, 182, 193, 0.5)", "rgba(255, 182, 193, 0.6)"),
    "permanent retainer": ("rgba(255, 105, 180, 0.5)", "rgba(255, 105, 180, 0.6)"),
    "post - core": ("rgba(184, 134, 11, 0.5)", "rgba(184, 134, 11, 0.6)"),
    "plating": ("rgba(128, 128, 128, 0.5)", "rgba(128, 128, 128, 0.6)"),
    "wire": ("rgba(169, 169, 169, 0.5)", "rgba(169, 169, 169, 0.6)"),
    "Cyst": ("rgba(148, 0, 211, 0.5)", "rgba(148, 0, 211, 0.6)"),
    "Root resorption": ("rgba(186, 85, 211, 0.5)", "rgba(186, 85, 211, 0.6)"),
    "Primary teeth": ("rgba(60, 179, 113, 0.5)", "rgba(60, 179, 113, 0.6)"),
}

DEFAULT_CLASS_COLORS: Tuple[str, str] = ("rgba(255, 0, 0, 0.5)", "#FF0000")

# (fill, stroke) pairs keyed by FDI tooth number
TOOTH_COLORS: Dict[str, Tuple[str, str]] = {
    "11": ("rgba(255, 0, 0, 0.4)", "rgba(255, 0, 0, 0.8)"),
    "12": ("rgba(0, 255, 0, 0.4)", "rgba(0, 255, 0, 0.8)"),
    "13": ("rgba(0, 0, 255, 0.4)", "rgba(0, 0, 255, 0.8)"),
    "14": ("rgba(255, 255, 0, 0.4)", "rgba(255, 255, 0, 0.8)"),
    "15": ("rgba(255, 0, 255, 0.4)", "rgba(255, 0, 255, 0.8)"),
    "16": ("rgba(0, 255, 255, 0.4)", "rgba(0, 255, 255, 0.8)"),
    "17": ("rgba(255, 165, 0, 0.4)", "rgba(255, 165, 0, 0.8)"),
    "18": ("rgba(128, 0, 128, 0.4)", "rgba(128, 0, 128, 0.8)"),
    "21": ("rgba(255, 20, 147, 0.4)", "rgba(255, 20, 147, 0.8)"),
    "22": ("rgba(0, 128, 0, 0.4)", "rgba(0, 128, 0, 0.8)"),
    "23": ("rgba(128, 128, 0, 0.4)", "rgba(128, 128, 0, 0.8)"),
    "24": ("rgba(255, 69, 0, 0.4)", "rgba(255, 69, 0, 0.8)"),
    "25": ("rgba(138, 43, 226, 0.4)", "rgba(138, 43, 226, 0.8)"),
    "26": ("rgba(75, 0, 130, 0.4)", "rgba(75, 0, 130, 0.8)"),
    "27": ("rgba(205, 92, 92, 0.4)", "rgba(205, 92, 92, 0.8)"),
    "28": ("rgba(233, 150, 122, 0.4)", "rgba(233, 150, 122, 0.8)"),
    "31": ("rgba(255, 182, 193, 0.4)", "rgba(255, 182, 193, 0.8)"),
    "32": ("rgba(255, 105, 180, 0.4)", "rgba(255, 105, 180, 0.8)"),
    "33": ("rgba(184, 134, 11, 0.4)", "rgba(184, 134, 11, 0.8)"),
    "34": ("rgba(128, 128, 128, 0.4)", "rgba(128, 128, 128, 0.8)"),
    "35": ("rgba(169, 169, 169, 0.4)", "rgba(169, 169, 169, 0.8)"),
    "36": ("rgba(148, 0, 211, 0.4)", "rgba(148, 0, 211, 0.8)"),
    "37": ("rgba(186, 85, 211, 0.4)", "rgba(186, 85, 211, 0.8)"),
    "38": ("rgba(60, 179, 113, 0.4)", "rgba(60, 179, 113, 0.8)"),
    "41": ("rgba(255, 215, 0, 0.4)", "rgba(255, 215, 0, 0.8)"),
    "42": ("rgba(0, 128, 255, 0.4)", "rgba(0, 128, 255, 0.8)"),
    "43": ("rgba(192, 192, 192, 0.4)", "rgba(192, 192, 192, 0.8)"),
    "44": ("rgba(255, 20, 147, 0.4)", "rgba(255, 20, 147, 0.8)"),
    "45": ("rgba(34, 139, 34, 0.4)", "rgba(34, 139, 34, 0.8)"),
    "46": ("rgba(219, 112, 147, 0.4)", "rgba(219, 112, 147, 0.8)"),
    "47": ("rgba(218, 165, 32, 0.4)", "rgba(218, 165, 32, 0.8)"),
    "48": ("rgba(210, 105, 30, 0.4)", "rgba(210, 105, 30, 0.8)"),
}

DEFAULT_TOOTH_COLORS: Tuple[str, str] = ("rgba(255, 0, 0, 0.3)", "rgba(255, 0, 0, 0.8)")

# Hand-drawn shapes and in-progress previews
DRAWING_STROKE = "#FF0000"
DRAWING_FILL = "rgba(255, 0, 0, 0.2)"
PREVIEW_STROKE = "#FF0000"
PREVIEW_FILL = "rgba(255, 0, 0, 0.2)"
LABEL_PLATE = "rgba(0, 0, 0, 0.7)"
LABEL_TEXT = "#FFFFFF"


def parse_color(value: str) -> QColor:
    """
    Parse a CSS color string into a QColor.

    Accepts ``rgb(...)``/``rgba(...)`` with a 0-1 alpha and anything
    QColor understands natively (``#RRGGBB``, ``#AARRGGBB``, named colors).

    Args:
        value: CSS color string

    Returns:
        Parsed QColor; opaque red if the string cannot be parsed
    """
    match = _RGBA_PATTERN.fullmatch(value.strip())
    if match:
        r, g, b = (int(match.group(i)) for i in range(1, 4))
        alpha = float(match.group(4)) if match.group(4) is not None else 1.0
        color = QColor(r, g, b)
        color.setAlphaF(max(0.0, min(1.0, alpha)))
        return color

    color = QColor(value.strip())
    if not color.isValid():
        logger.warning(f"Invalid color string '{value}', using red")
        return QColor(255, 0, 0)
    return color


def to_css_rgba(color: QColor) -> str:
    """Format a QColor as a CSS ``rgba()`` string."""
    return (
        f"rgba({color.red()}, {color.green()}, {color.blue()}, "
        f"{round(color.alphaF(), 3):g})"
    )


def hex_to_rgba(hex_color: str, alpha: float = 1.0) -> str:
    """Convert ``#RRGGBB`` to a CSS ``rgba()`` string with the given alpha."""
    r = int(hex_color[1:3], 16)
    g = int(hex_color[3:5], 16)
    b = int(hex_color[5:7], 16)
    return f"rgba({r}, {g}, {b}, {alpha:g})"


def rgba_to_hex(rgba: str) -> str:
    """Convert a CSS ``rgba()`` string to ``#rrggbb``, dropping alpha."""
    numbers = re.findall(r"\d+", rgba)
    if len(numbers) < 3:
        return "#000000"
    r, g, b = (int(n) for n in numbers[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def class_colors(class_name: str) -> Tuple[QColor, QColor]:
    """
    Look up the (fill, stroke) colors for a classifier class name.

    Detector class names may carry a numeric prefix (``"3.Caries"``), so
    the full name is tried first, then the part after the first dot.

    Args:
        class_name: Class name as returned by the classifier

    Returns:
        Tuple of (fill_color, stroke_color)
    """
    entry = CLASS_COLORS.get(class_name)
    if entry is None and "." in class_name:
        entry = CLASS_COLORS.get(class_name.split(".", 1)[1])
    fill, stroke = entry or DEFAULT_CLASS_COLORS
    return parse_color(fill), parse_color(stroke)


def tooth_colors(tooth_number: str) -> Tuple[QColor, QColor]:
    """Look up the (fill, stroke) colors for an FDI tooth number."""
    fill, stroke = TOOTH_COLORS.get(tooth_number, DEFAULT_TOOTH_COLORS)
    return parse_color(fill), parse_color(stroke)
