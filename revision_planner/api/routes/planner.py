# revision_planner/api/routes/planner.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from revision_planner.agents.planner_agent import PlannerAgent, get_planner_agent
from revision_planner.api.routes.auth import _active_subscriber
from revision_planner.utils.planner_utils import to_payload

router = APIRouter(prefix="/planner", tags=["planner"])


class CreatePlannerRequest(BaseModel):
    next_week: bool = False


@router.post("/create")
def create_planner(
    payload: CreatePlannerRequest | None = None,
    user=Depends(_active_subscriber),
    agent: PlannerAgent = Depends(get_planner_agent),
):
    """
    Build the seven-day revision planner for the caller.

    Example request body:
    {"next_week": false}
    """
    result = agent.create_planner(user, next_week=bool(payload and payload.next_week))
    return {
        "success": result["created"],
        "message": result["message"],
        "planner": to_payload(result["planner"]),
    }


@router.post("/update")
def update_planner(user=Depends(_active_subscriber), agent: PlannerAgent = Depends(get_planner_agent)):
    """Add today's new continuous-revision topics to tomorrow."""
    result = agent.update_daily_planner(user)
    return {
        "success": result["updated"],
        "message": result["message"],
        "planner": to_payload(result["planner"]),
    }


@router.get("/get")
def get_planner(user=Depends(_active_subscriber), agent: PlannerAgent = Depends(get_planner_agent)):
    planner = agent.get_planner(user)
    return {"success": True, "message": "Planner fetched successfully.", "data": to_payload(planner)}
