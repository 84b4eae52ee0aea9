"""UI components for OPG Annotator."""

from .canvas import LayerCanvas
from .main_window import MainWindow

__all__ = [
    "LayerCanvas",
    "MainWindow",
]
