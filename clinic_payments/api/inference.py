"""
Object detection endpoints (mocked model).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from clinic_payments.exceptions import PaymentError
from clinic_payments.schemas.inference import (
    DetectRequest,
    DetectResponse,
    ModelActionRequest,
    ModelInfo,
)
from clinic_payments.services.inference_service import InferenceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inference", tags=["Inference"])


def get_inference_service(request: Request) -> InferenceService:
    """The service (and its model handle) is owned by the app."""
    return request.app.state.inference_service


@router.post("/detect", response_model=DetectResponse)
def detect(
    request: DetectRequest,
    service: InferenceService = Depends(get_inference_service),
):
    """Detect objects in an image given as base64 or URL."""
    try:
        if request.image_base64:
            image = service.decode_base64(request.image_base64)
        elif request.image_url:
            image = service.download(request.image_url)
        else:
            raise HTTPException(
                status_code=400, detail="imageUrl or imageBase64 is required"
            )
        detections, elapsed_ms = service.detect(image)
    except PaymentError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return DetectResponse(detections=detections, processing_time_ms=elapsed_ms)


@router.get("/model", response_model=ModelInfo)
def model_info(service: InferenceService = Depends(get_inference_service)):
    """Report whether the model is loaded, and which one."""
    return service.model.info()


@router.post("/model", response_model=ModelInfo)
def model_action(
    request: ModelActionRequest,
    service: InferenceService = Depends(get_inference_service),
):
    """Manage the model handle: "reload" or "invalidate"."""
    if request.action == "reload":
        logger.info("Force reloading detection model")
        service.model.reload()
    elif request.action == "invalidate":
        service.model.invalidate()
    else:
        raise HTTPException(
            status_code=400, detail=f"Unknown action '{request.action}'"
        )
    return service.model.info()
