"""
revision_planner/tasks/planner_jobs.py

Scheduled planner jobs. The module is scheduler-agnostic; an external cron
calls it, e.g. for next-week builds every Thursday:

    10 19 * * 4  python -m revision_planner.tasks.planner_jobs weekly --next-week
    12 19 * * 4  python -m revision_planner.tasks.planner_jobs weekly --next-week

and once a night for the daily update:

    30 18 * * *  python -m revision_planner.tasks.planner_jobs daily
"""

import argparse
import logging
import sys
from typing import Any, Dict, Optional

from revision_planner.agents.planner_agent import PlannerAgent, get_planner_agent
from revision_planner.config import JOB_MAX_RETRIES, LOG_FORMAT, LOG_LEVEL
from revision_planner.errors import PlannerError
from revision_planner.services.user_store import UserStoreProtocol, get_user_store
from revision_planner.tasks.batch_runner import run_for_all_eligible_users

logger = logging.getLogger(__name__)


def build_weekly_for_user(
    user: Dict[str, Any],
    next_week: bool = False,
    agent: Optional[PlannerAgent] = None,
) -> Optional[Dict[str, Any]]:
    """Build one student's planner; a failure is logged and does not stop the batch."""
    agent = agent or get_planner_agent()
    try:
        result = agent.create_planner(user, next_week=next_week)
    except PlannerError as exc:
        logger.error("Weekly planner failed for %s: %s", user.get("id"), exc.message)
        return None
    except Exception:
        logger.exception("Unexpected error building weekly planner for %s", user.get("id"))
        return None
    logger.info("Weekly planner for %s: %s", user.get("id"), result["message"])
    return result


def update_daily_for_user(user: Dict[str, Any], agent: Optional[PlannerAgent] = None) -> Optional[Dict[str, Any]]:
    agent = agent or get_planner_agent()
    try:
        result = agent.update_daily_planner(user)
    except PlannerError as exc:
        logger.error("Daily planner update failed for %s: %s", user.get("id"), exc.message)
        return None
    except Exception:
        logger.exception("Unexpected error updating daily planner for %s", user.get("id"))
        return None
    logger.info("Daily planner for %s: %s", user.get("id"), result["message"])
    return result


def run_weekly_planner_job(
    next_week: bool = True,
    *,
    users: Optional[UserStoreProtocol] = None,
    agent: Optional[PlannerAgent] = None,
    max_retries: int = JOB_MAX_RETRIES,
) -> bool:
    flags: Dict[str, Any] = {"next_week": next_week}
    if agent is not None:
        flags["agent"] = agent
    return run_for_all_eligible_users(
        build_weekly_for_user,
        max_retries,
        flags,
        users=users or get_user_store(),
    )


def run_daily_planner_job(
    *,
    users: Optional[UserStoreProtocol] = None,
    agent: Optional[PlannerAgent] = None,
    max_retries: int = JOB_MAX_RETRIES,
) -> bool:
    flags: Dict[str, Any] = {"agent": agent} if agent is not None else {}
    return run_for_all_eligible_users(
        update_daily_for_user,
        max_retries,
        flags,
        users=users or get_user_store(),
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run scheduled revision planner jobs.")
    sub = parser.add_subparsers(dest="job", required=True)

    weekly = sub.add_parser("weekly", help="Build weekly planners for every eligible student.")
    weekly.add_argument("--next-week", action="store_true", help="Build the planner for the upcoming week.")
    weekly.add_argument("--max-retries", type=int, default=JOB_MAX_RETRIES)

    daily = sub.add_parser("daily", help="Fold today's new topics into tomorrow's planner slot.")
    daily.add_argument("--max-retries", type=int, default=JOB_MAX_RETRIES)

    args = parser.parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    if args.job == "weekly":
        ok = run_weekly_planner_job(next_week=args.next_week, max_retries=args.max_retries)
    else:
        ok = run_daily_planner_job(max_retries=args.max_retries)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
