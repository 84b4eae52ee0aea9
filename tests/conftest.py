"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Widgets and fonts need a platform plugin even without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def layers():
    """Layer manager with one 800x600 image loaded into layer 1."""
    from opg_annotator.core.layers import LayerManager
    from opg_annotator.core.transform import ImageSize

    manager = LayerManager()
    manager.load_image(1, Path("scan.png"), ImageSize(800, 600))
    return manager


@pytest.fixture
def metrics():
    """Display metrics showing the image at half size."""
    from opg_annotator.core.transform import DisplayMetrics

    return DisplayMetrics(400, 300)


@pytest.fixture
def sample_image_file(tmp_path):
    """Write a small PNG to disk and return its path."""
    from PyQt6.QtGui import QColor, QImage

    image = QImage(40, 30, QImage.Format.Format_RGB32)
    image.fill(QColor("#202020"))
    path = tmp_path / "opg.png"
    image.save(str(path), "PNG")
    return path
