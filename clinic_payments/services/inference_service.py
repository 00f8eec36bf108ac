"""
Inference service — mocked object detection for the clinic demo.

There is no real model. The service validates the image, makes
sure the (fake) model handle is loaded, and answers with two
fixed detections. The model handle is a ModelResource with an
explicit TTL and an explicit invalidate(); nothing about it is
module-level state.
"""

import base64
import binascii
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

import httpx

from clinic_payments.config import get_settings
from clinic_payments.exceptions import InvalidImage, UpstreamUnavailable
from clinic_payments.schemas.inference import BoundingBox, Detection, ModelInfo

logger = logging.getLogger(__name__)

COCO_CLASSES = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train",
    "truck", "boat", "traffic light", "fire hydrant", "stop sign",
    "parking meter", "bench", "bird", "cat", "dog", "horse", "sheep", "cow",
    "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella",
    "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard",
    "sports ball", "kite", "baseball bat", "baseball glove", "skateboard",
    "surfboard", "tennis racket", "bottle", "wine glass", "cup", "fork",
    "knife", "spoon", "bowl", "banana", "apple", "sandwich", "orange",
    "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair",
    "couch", "potted plant", "bed", "dining table", "toilet", "tv",
    "laptop", "mouse", "remote", "keyboard", "cell phone", "microwave",
    "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase",
    "scissors", "teddy bear", "hair drier", "toothbrush",
)

MOCK_DETECTIONS = (
    Detection(
        label="person",
        confidence=0.95,
        bbox=BoundingBox(x=100, y=50, width=200, height=400),
    ),
    Detection(
        label="car",
        confidence=0.87,
        bbox=BoundingBox(x=350, y=200, width=300, height=150),
    ),
)


@dataclass(frozen=True)
class DetectionModel:
    version: str
    classes: tuple[str, ...] = field(default=COCO_CLASSES)


def is_supported_image(data: bytes) -> bool:
    """JPEG, PNG or WebP, judged by magic bytes."""
    return (
        data[:3] == b"\xff\xd8\xff"
        or data[:8] == b"\x89PNG\r\n\x1a\n"
        or (data[:4] == b"RIFF" and data[8:12] == b"WEBP")
    )


class ModelResource:
    """
    Lazily loaded model handle.

    get() loads the model on first use and again once ttl_seconds
    have passed since the last load. invalidate() drops it so the
    next get() reloads.
    """

    def __init__(
        self,
        loader: Callable[[], DetectionModel],
        ttl_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._model: DetectionModel | None = None
        self._loaded_at: float | None = None
        self._loaded_at_wall: datetime | None = None

    def _expired(self) -> bool:
        return (
            self._loaded_at is None
            or self._clock() - self._loaded_at > self.ttl_seconds
        )

    def get(self) -> DetectionModel:
        with self._lock:
            if self._model is None or self._expired():
                self._load()
            return self._model

    def reload(self) -> DetectionModel:
        with self._lock:
            self._load()
            return self._model

    def invalidate(self) -> None:
        with self._lock:
            self._model = None
            self._loaded_at = None
            self._loaded_at_wall = None

    def _load(self) -> None:
        logger.info("Loading detection model")
        self._model = self._loader()
        self._loaded_at = self._clock()
        self._loaded_at_wall = datetime.utcnow()

    def info(self) -> ModelInfo:
        model = self._model
        return ModelInfo(
            loaded=model is not None and not self._expired(),
            version=model.version if model else None,
            loaded_at=self._loaded_at_wall,
            classes=len(model.classes) if model else 0,
            ttl_seconds=self.ttl_seconds,
        )


class InferenceService:

    def __init__(
        self,
        model: ModelResource,
        simulated_delay: float = 0.0,
        http_client: httpx.Client | None = None,
    ):
        self.model = model
        self.simulated_delay = simulated_delay
        self.http_client = http_client

    def decode_base64(self, image_base64: str) -> bytes:
        try:
            return base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidImage("imageBase64 is not valid base64") from e

    def download(self, url: str) -> bytes:
        try:
            if self.http_client is not None:
                response = self.http_client.get(url)
            else:
                with httpx.Client(timeout=10.0) as client:
                    response = client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error downloading image from {url}: {e}")
            raise UpstreamUnavailable("Could not download image") from e
        return response.content

    def detect(self, image: bytes) -> tuple[list[Detection], float]:
        """
        Run the (mocked) detector on raw image bytes.

        Returns the detections and the processing time in ms.
        """
        started = time.perf_counter()
        if not image or not is_supported_image(image):
            raise InvalidImage("Unsupported image format. Use JPEG, PNG or WebP")

        model = self.model.get()
        logger.info(
            f"Running inference ({len(image)} bytes, model {model.version})"
        )
        if self.simulated_delay:
            time.sleep(self.simulated_delay)

        detections = [d.model_copy(deep=True) for d in MOCK_DETECTIONS]
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Inference completed: {len(detections)} detections "
            f"in {elapsed_ms:.1f} ms"
        )
        return detections, elapsed_ms


def build_inference_service() -> InferenceService:
    settings = get_settings()
    resource = ModelResource(
        loader=lambda: DetectionModel(version=settings.MODEL_VERSION),
        ttl_seconds=settings.MODEL_TTL_SECONDS,
    )
    return InferenceService(
        resource, simulated_delay=settings.INFERENCE_SIMULATED_DELAY
    )
