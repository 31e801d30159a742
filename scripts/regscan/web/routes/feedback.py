"""
Relevance feedback route: learns filtering rules from user verdicts.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from regscan.scanner.learning import Feedback, RuleLearner
from regscan.web.dependencies import get_learner

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feedback"])


class FeedbackBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    is_relevant: bool = Field(alias="isRelevant")
    reason: str = ""
    feedback_id: Optional[int] = Field(None, alias="feedbackId")
    update_id: Optional[int] = Field(None, alias="updateId")
    summary: str = ""
    source: str = ""
    domain: str = ""
    details: str = ""
    include_keywords: List[str] = Field(default_factory=list, alias="includeKeywords")


@router.post("/feedback")
async def submit_feedback(body: FeedbackBody, learner: RuleLearner = Depends(get_learner)):
    """Learn relevance rules from one piece of feedback."""
    feedback = Feedback(**body.model_dump())
    try:
        result = await asyncio.to_thread(learner.learn, feedback)
    except Exception as e:
        logger.exception("Learning from feedback failed")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    return result.to_dict()
