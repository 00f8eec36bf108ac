"""
Pydantic schemas for the mocked object detector.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BoundingBox(BaseModel):
    x: int
    y: int
    width: int
    height: int


class Detection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(alias="class")
    confidence: float
    bbox: BoundingBox


class DetectRequest(BaseModel):
    image_url: str | None = Field(
        default=None, validation_alias=AliasChoices("imageUrl", "image_url")
    )
    image_base64: str | None = Field(
        default=None, validation_alias=AliasChoices("imageBase64", "image_base64")
    )


class DetectResponse(BaseModel):
    success: bool = True
    detections: list[Detection]
    processing_time_ms: float


class ModelInfo(BaseModel):
    loaded: bool
    version: str | None
    loaded_at: datetime | None
    classes: int
    ttl_seconds: int


class ModelActionRequest(BaseModel):
    action: str
