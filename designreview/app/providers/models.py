"""Feedback schema returned by the AI design review."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Category = Literal["accessibility", "visual_hierarchy", "content", "ui_pattern"]
Severity = Literal["high", "medium", "low"]
Role = Literal["designer", "reviewer", "pm", "developer"]
AnchorType = Literal["bbox", "point"]

MIN_BOX_SIZE = 0.02  # 2% of the image, keeps tiny anchors visible


class BoundingBox(BaseModel):
    """Region of the design, as fractions of the image size."""
    x: float = Field(ge=0, le=1)
    y: float = Field(ge=0, le=1)
    width: float = Field(ge=0, le=1)
    height: float = Field(ge=0, le=1)


class FeedbackItem(BaseModel):
    """One piece of feedback anchored to a region of the design."""
    model_config = ConfigDict(populate_by_name=True)

    category: Category
    severity: Severity
    roles: List[Role]
    bbox: BoundingBox
    anchor_type: AnchorType = Field(alias="anchorType")
    title: str
    text: str
    recommendations: List[str]
    model_version: Optional[str] = Field(default=None, alias="modelVersion")


def improve_bounding_box(bbox: BoundingBox) -> BoundingBox:
    """Round to 2 decimals, keep the box inside the image and above a minimum size."""
    x = round(bbox.x, 2)
    y = round(bbox.y, 2)
    width = round(bbox.width, 2)
    height = round(bbox.height, 2)

    width = max(min(width, 1 - x), MIN_BOX_SIZE)
    height = max(min(height, 1 - y), MIN_BOX_SIZE)

    return BoundingBox(
        x=max(0.0, min(x, 1 - width)),
        y=max(0.0, min(y, 1 - height)),
        width=width,
        height=height,
    )
