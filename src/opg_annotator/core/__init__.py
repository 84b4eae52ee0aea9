"""Core business logic modules for OPG Annotator."""

from .models import AnnotationCoord, AnnotationGroup, CheckType, Detection, Drawing, DrawingKind
from .config import AppConfig, ConfigManager
from .history import DrawingHistory
from .layers import Layer, LayerManager
from .edit_session import EditSession, Tool
from .renderer import Renderer
from .classifier import ClassificationClient, ClassificationError

__all__ = [
    "AnnotationCoord",
    "AnnotationGroup",
    "CheckType",
    "Detection",
    "Drawing",
    "DrawingKind",
    "AppConfig",
    "ConfigManager",
    "DrawingHistory",
    "Layer",
    "LayerManager",
    "EditSession",
    "Tool",
    "Renderer",
    "ClassificationClient",
    "ClassificationError",
]
