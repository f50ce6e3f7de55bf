"""Design analysis endpoint."""

import base64
import binascii

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from designreview.app.core.config import settings
from designreview.app.core.logging import get_log_context, get_logger
from designreview.app.middleware.rate_limit.adapter import enforce_rate_limits
from designreview.app.middleware.rate_limit.presets import AI_ANALYSIS, AI_DAILY
from designreview.app.middleware.request_id import get_request_id
from designreview.app.services.analysis import AnalysisService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/images", tags=["analysis"])


class AnalyzeImageRequest(BaseModel):
    image_base64: str = Field(min_length=1)
    mime_type: str = Field(pattern=r"^image/[a-zA-Z0-9.+-]+$")


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis


@router.post(
    "/analyze",
    dependencies=[
        Depends(enforce_rate_limits(("minute", AI_ANALYSIS), ("daily", AI_DAILY)))
    ],
)
async def analyze_image(
    body: AnalyzeImageRequest,
    request: Request,
    analysis: AnalysisService = Depends(get_analysis_service),
) -> dict:
    """Run AI design review on one base64-encoded image."""
    try:
        image = base64.b64decode(body.image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="image_base64 is not valid base64")

    if not image:
        raise HTTPException(status_code=400, detail="Image is empty")
    if len(image) > settings.max_image_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Image exceeds {settings.max_image_bytes} bytes",
        )

    feedback = await analysis.analyze(image, body.mime_type)

    logger.info(
        f"Analysis returned {len(feedback)} feedback items",
        extra=get_log_context(request_id=get_request_id(request)),
    )
    return {
        "success": True,
        "data": {
            "feedback": [item.model_dump(by_alias=True) for item in feedback],
            "totalItems": len(feedback),
            "modelVersion": analysis.provider.model,
        },
    }
