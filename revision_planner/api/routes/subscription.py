import logging

from fastapi import APIRouter, Depends

from revision_planner.api.routes.auth import _current_user
from revision_planner.config import FREE_TRIAL_DAYS
from revision_planner.services.mailer import send_free_trial_email
from revision_planner.services.user_store import UserStoreProtocol, get_user_store
from revision_planner.utils.planner_utils import to_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.post("/free-trial")
def activate_free_trial(context=Depends(_current_user), users: UserStoreProtocol = Depends(get_user_store)):
    """
    Start the one-time free trial for the caller and send the welcome email.
    """
    user, _ = context
    activated = users.activate_free_trial(user["id"])
    logger.info("Free trial activated for %s", user["id"])

    send_free_trial_email(activated["email"], activated.get("firstname") or "there", FREE_TRIAL_DAYS)

    return {
        "success": True,
        "message": f"Your {FREE_TRIAL_DAYS}-day free trial is now active.",
        "user": to_payload(users.public_view(activated)),
    }
