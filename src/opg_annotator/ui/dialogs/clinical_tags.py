"""Dialog for tagging a drawing with a tooth number and pathology."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from PyQt6.QtWidgets import (
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QLineEdit,
    QVBoxLayout,
)

from ...core.models import OTHER_PATHOLOGY, PATHOLOGY_OPTIONS, TOOTH_NUMBERS

logger = logging.getLogger(__name__)


class ClinicalTagsDialog(QDialog):
    """
    Asks for the tooth number and pathology of a freshly drawn shape.

    Choosing "Other" enables a free-text pathology field.
    """

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._init_ui()

    def _init_ui(self) -> None:
        """Initialize the dialog UI."""
        self.setWindowTitle("Tag Drawing")
        self.setMinimumWidth(320)
        self.setModal(True)

        layout = QVBoxLayout()
        form = QFormLayout()

        self.tooth_combo = QComboBox()
        self.tooth_combo.addItems(TOOTH_NUMBERS)
        form.addRow("Tooth number:", self.tooth_combo)

        self.pathology_combo = QComboBox()
        self.pathology_combo.addItems(PATHOLOGY_OPTIONS)
        self.pathology_combo.currentTextChanged.connect(self._on_pathology_changed)
        form.addRow("Pathology:", self.pathology_combo)

        self.custom_edit = QLineEdit()
        self.custom_edit.setPlaceholderText("Describe the pathology")
        self.custom_edit.setEnabled(False)
        form.addRow("Custom:", self.custom_edit)

        layout.addLayout(form)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

        self.setLayout(layout)

    def _on_pathology_changed(self, text: str) -> None:
        self.custom_edit.setEnabled(text == OTHER_PATHOLOGY)

    def get_tags(self) -> Tuple[str, str, Optional[str]]:
        """Return (tooth_number, pathology, custom_pathology)."""
        pathology = self.pathology_combo.currentText()
        custom = self.custom_edit.text().strip() if pathology == OTHER_PATHOLOGY else ""
        return self.tooth_combo.currentText(), pathology, custom or None
