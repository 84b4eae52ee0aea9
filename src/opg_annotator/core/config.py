"""Configuration management for OPG Annotator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class AppConfig:
    """
    Application configuration settings.

    Stores classifier connection details, rendering and editing
    preferences. Annotations themselves are never persisted.
    """

    classifier_url: str = "http://localhost:8000"
    classifier_timeout: Optional[float] = None  # Seconds; None waits indefinitely
    auto_classify: bool = True  # Classify automatically after loading an image
    classify_check_types: list[str] = field(default_factory=lambda: ["qc", "path", "tooth"])
    line_thickness: float = 2.0
    polygon_line_thickness: float = 0.8
    font_size: float = 12.0
    label_font_size: float = 10.0
    smoothing_tension: float = 0.3
    snap_threshold: float = 10.0  # Image pixels
    vertex_threshold: float = 10.0  # Image pixels
    nearest_vertex_mode: str = "first"  # first, global
    zoom_step: float = 0.2
    min_zoom: float = 0.5
    max_zoom: float = 3.0
    max_layers: int = 6
    max_history_entries: int = 100
    last_directory: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "classifierUrl": self.classifier_url,
            "classifierTimeout": self.classifier_timeout,
            "autoClassify": self.auto_classify,
            "classifyCheckTypes": self.classify_check_types,
            "lineThickness": self.line_thickness,
            "polygonLineThickness": self.polygon_line_thickness,
            "fontSize": self.font_size,
            "labelFontSize": self.label_font_size,
            "smoothingTension": self.smoothing_tension,
            "snapThreshold": self.snap_threshold,
            "vertexThreshold": self.vertex_threshold,
            "nearestVertexMode": self.nearest_vertex_mode,
            "zoomStep": self.zoom_step,
            "minZoom": self.min_zoom,
            "maxZoom": self.max_zoom,
            "maxLayers": self.max_layers,
            "maxHistoryEntries": self.max_history_entries,
            "lastDirectory": self.last_directory,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Create config from dictionary."""
        return cls(
            classifier_url=data.get("classifierUrl", "http://localhost:8000"),
            classifier_timeout=data.get("classifierTimeout"),
            auto_classify=data.get("autoClassify", True),
            classify_check_types=data.get("classifyCheckTypes", ["qc", "path", "tooth"]),
            line_thickness=data.get("lineThickness", 2.0),
            polygon_line_thickness=data.get("polygonLineThickness", 0.8),
            font_size=data.get("fontSize", 12.0),
            label_font_size=data.get("labelFontSize", 10.0),
            smoothing_tension=data.get("smoothingTension", 0.3),
            snap_threshold=data.get("snapThreshold", 10.0),
            vertex_threshold=data.get("vertexThreshold", 10.0),
            nearest_vertex_mode=data.get("nearestVertexMode", "first"),
            zoom_step=data.get("zoomStep", 0.2),
            min_zoom=data.get("minZoom", 0.5),
            max_zoom=data.get("maxZoom", 3.0),
            max_layers=data.get("maxLayers", 6),
            max_history_entries=data.get("maxHistoryEntries", 100),
            last_directory=data.get("lastDirectory", ""),
        )

    @property
    def first_match(self) -> bool:
        """Whether vertex grabbing takes the first candidate in range."""
        return self.nearest_vertex_mode != "global"


class ConfigManager:
    """
    Manager for loading and saving application configuration.

    Handles YAML serialization and provides a clean interface
    for configuration access.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = config_path
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        """
        Load configuration from file.

        Returns:
            AppConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return AppConfig()

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {self.config_path}")
            return AppConfig.from_dict(data)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return AppConfig()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            return AppConfig()

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def update(self, **kwargs: Any) -> None:
        """
        Update configuration with new values.

        Args:
            **kwargs: Key-value pairs to update
        """
        config = self.config
        for key, value in kwargs.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown config key: {key}")
        self.save()
