"""HTTP client for the remote OPG classification service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

import httpx

from .models import CheckType, Detection

logger = logging.getLogger(__name__)

INFERENCE_PATH = "/api/inference/"


class ClassificationError(Exception):
    """Raised when a classification request fails or returns an unusable payload."""


def _is_nested(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0 and isinstance(value[0], (list, tuple))


def _parse_box(value: Any) -> tuple:
    # Boxes arrive either flat [x1, y1, x2, y2] or wrapped as [[x1, y1, x2, y2]]
    if _is_nested(value):
        value = value[0]
    if not isinstance(value, (list, tuple)) or len(value) < 4:
        raise ClassificationError(f"Malformed box: {value!r}")
    try:
        return tuple(float(v) for v in value[:4])
    except (TypeError, ValueError) as e:
        raise ClassificationError(f"Malformed box: {value!r}") from e


def _parse_polygon(value: Any) -> Optional[tuple]:
    # Polygons arrive as [[x, y], ...] or wrapped as [[[x, y], ...]]
    if not value:
        return None
    if _is_nested(value) and _is_nested(value[0]):
        value = value[0]
    try:
        points = tuple((float(x), float(y)) for x, y in value)
    except (TypeError, ValueError) as e:
        raise ClassificationError(f"Malformed polygon: {value!r}") from e
    return points if len(points) >= 3 else None


def parse_response(payload: Any) -> List[Detection]:
    """
    Convert a classification service payload to detections.

    Accepts ``{"results": [...]}`` or ``{"data": {"results": [...]}}``.
    Each result carries ``class``, a box under ``box`` or ``roi_xyxy`` and
    an optional outline under ``polygon`` or ``poly``.

    Args:
        payload: Decoded JSON body

    Returns:
        Detections in service order

    Raises:
        ClassificationError: If the payload does not have the expected shape
    """
    if not isinstance(payload, dict):
        raise ClassificationError("Response is not a JSON object")

    results = payload.get("results")
    if results is None and isinstance(payload.get("data"), dict):
        results = payload["data"].get("results")
    if results is None:
        raise ClassificationError("Response has no results")
    if not isinstance(results, list):
        raise ClassificationError("Results is not a list")

    detections: List[Detection] = []
    for result in results:
        if not isinstance(result, dict) or "class" not in result:
            raise ClassificationError(f"Malformed result: {result!r}")
        box = result.get("box", result.get("roi_xyxy"))
        polygon = result.get("polygon", result.get("poly"))
        detections.append(Detection(
            class_name=str(result["class"]),
            box=_parse_box(box),
            polygon=_parse_polygon(polygon),
        ))
    return detections


class ClassificationClient:
    """
    Synchronous client for the classification endpoint.

    Sends the image as multipart form data together with the model
    selector of the requested check type.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Service root, e.g. ``http://localhost:8000``
            timeout: Request timeout in seconds, None to wait indefinitely
            transport: Custom httpx transport (used for testing)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        """Full inference URL."""
        return f"{self.base_url}{INFERENCE_PATH}"

    def classify(self, image_path: Path, check_type: CheckType) -> List[Detection]:
        """
        Classify an image file.

        Args:
            image_path: Image to upload
            check_type: Classification pass to run

        Returns:
            Detections returned by the service

        Raises:
            ClassificationError: On I/O, transport, HTTP status or payload errors
        """
        image_path = Path(image_path)
        try:
            content = image_path.read_bytes()
        except OSError as e:
            raise ClassificationError(f"Cannot read {image_path.name}: {e}") from e

        return self.classify_bytes(content, image_path.name, check_type)

    def classify_bytes(
        self,
        content: bytes,
        filename: str,
        check_type: CheckType
    ) -> List[Detection]:
        """Classify in-memory image data."""
        files = {"file": (filename, content, "application/octet-stream")}
        data = {"model_name": check_type.model_selector}

        logger.info(f"Requesting {check_type.value} classification for {filename}")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.endpoint, files=files, data=data)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ClassificationError(
                f"Service returned {e.response.status_code} for {check_type.value}"
            ) from e
        except httpx.HTTPError as e:
            raise ClassificationError(f"Request failed: {e}") from e
        except ValueError as e:
            raise ClassificationError("Response is not valid JSON") from e

        detections = parse_response(payload)
        logger.info(f"Received {len(detections)} {check_type.value} detections for {filename}")
        return detections


def check_types_from_names(names: Sequence[str]) -> List[CheckType]:
    """Map configured check type names to enum members, skipping unknown ones."""
    result: List[CheckType] = []
    for name in names:
        try:
            result.append(CheckType(name))
        except ValueError:
            logger.warning(f"Unknown check type in config: {name}")
    return result
