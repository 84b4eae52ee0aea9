"""Application bootstrap for OPG Annotator."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from PyQt6.QtWidgets import QApplication

from .core.config import DEFAULT_CONFIG_PATH, ConfigManager
from .ui.main_window import MainWindow

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line options: a config file and images to open."""
    parser = argparse.ArgumentParser(
        prog="opg-annotator",
        description="Annotate dental panoramic radiographs side by side.",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path, default=DEFAULT_CONFIG_PATH,
        help=f"Preferences file (default: {DEFAULT_CONFIG_PATH}).",
    )
    parser.add_argument(
        "images",
        type=Path, nargs="*",
        help="Images to open, one per layer.",
    )
    return parser.parse_args(argv)


def create_application() -> QApplication:
    """
    Create and configure the Qt application.

    Returns:
        Configured QApplication instance
    """
    app = QApplication(sys.argv)
    app.setApplicationName("OPG Annotator")
    app.setApplicationVersion("1.0.0")
    app.setOrganizationName("OPG Annotator")
    return app


def create_main_window(config_path: Path = DEFAULT_CONFIG_PATH, images: Sequence[Path] = ()) -> MainWindow:
    """
    Create the main window and open the given images.

    The first image goes into the initial layer, every further image into a
    new layer until the layer limit is reached.

    Args:
        config_path: Preferences file
        images: Image files to open

    Returns:
        MainWindow instance
    """
    window = MainWindow(ConfigManager(config_path))

    layer_ids: List[int] = [layer.id for layer in window.layers.layers]
    for index, image_path in enumerate(images):
        if index < len(layer_ids):
            layer_id = layer_ids[index]
        else:
            layer = window.layers.add_layer()
            if layer is None:
                logger.warning(f"Layer limit reached, skipping {len(images) - index} image(s)")
                break
            layer_id = layer.id
        window.load_image(layer_id, image_path)

    return window


def run(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the OPG Annotator application.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    logger.info("Starting OPG Annotator")

    try:
        app = create_application()
        window = create_main_window(args.config, args.images)
        window.show()
        logger.info("MainWindow shown")
        return app.exec()

    except Exception as e:
        logger.error(f"Application error: {e}", exc_info=True)
        return 1


def main() -> None:
    """Main entry point for the application."""
    sys.exit(run())


if __name__ == "__main__":
    main()
