"""Background classification worker threads."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.classifier import ClassificationClient, ClassificationError
from ..core.models import CheckType

logger = logging.getLogger(__name__)


class ClassificationWorker(QThread):
    """
    Background thread running classification requests for one layer image.

    Requests run sequentially for each requested check type. Each result is
    emitted with the image revision it was requested for so the receiver
    can drop results that arrive after the image changed. Requests cannot
    be cancelled once sent.
    """

    # Signal emitted per completed check type (layer_id, check_type, revision, detections)
    succeeded = pyqtSignal(int, str, int, object)

    # Signal emitted per failed check type (layer_id, check_type, message)
    failed = pyqtSignal(int, str, str)

    def __init__(
        self,
        client: ClassificationClient,
        layer_id: int,
        revision: int,
        image_path: Path,
        check_types: Sequence[CheckType]
    ) -> None:
        """
        Initialize the worker.

        Args:
            client: Classification service client
            layer_id: Layer the image belongs to
            revision: Layer image revision at request time
            image_path: Image file to classify
            check_types: Classification passes to request
        """
        super().__init__()
        self.client = client
        self.layer_id = layer_id
        self.revision = revision
        self.image_path = Path(image_path)
        self.check_types: List[CheckType] = list(check_types)

    def run(self) -> None:
        """Run each classification request in turn."""
        for check_type in self.check_types:
            try:
                detections = self.client.classify(self.image_path, check_type)
            except ClassificationError as e:
                logger.error(f"Classification of layer {self.layer_id} ({check_type.value}) failed: {e}")
                self.failed.emit(self.layer_id, check_type.value, str(e))
                continue
            self.succeeded.emit(self.layer_id, check_type.value, self.revision, detections)

        logger.info(f"Classification worker for layer {self.layer_id} finished")
