"""GET /api/questionnaire: sections and questions shown by the feedback wizard."""

from fastapi import APIRouter

from app.models.responses import QuestionnaireResponse
from app.services.questionnaire import QUESTIONNAIRE

router = APIRouter()


@router.get("/questionnaire", response_model=QuestionnaireResponse, response_model_exclude_none=True)
async def get_questionnaire():
    return {"success": True, "data": QUESTIONNAIRE}
