from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from revision_planner.agents.planner_agent import PlannerAgent, get_planner_agent
from revision_planner.api.routes.auth import _active_subscriber
from revision_planner.utils.planner_utils import to_payload

router = APIRouter(prefix="/quiz", tags=["quiz"])


class SolvedQuestionRequest(BaseModel):
    question: Dict[str, Any] = Field(..., description="The question document as served in the planner.")
    is_correct: bool


@router.post("/weekly/create", status_code=status.HTTP_201_CREATED)
def create_weekly_quiz(user=Depends(_active_subscriber), agent: PlannerAgent = Depends(get_planner_agent)):
    quiz = agent.create_weekly_quiz(user)
    return {"success": True, "message": "Weekly quiz created successfully.", "quiz": to_payload(quiz)}


@router.post("/solved", status_code=status.HTTP_201_CREATED)
def record_solved_question(
    payload: SolvedQuestionRequest,
    user=Depends(_active_subscriber),
    agent: PlannerAgent = Depends(get_planner_agent),
):
    agent.record_solved_question(user, payload.question, is_correct=payload.is_correct)
    return {"success": True, "message": "Answer recorded."}
