"""
revision_planner/tasks/batch_runner.py

Runs a per-user build function over every eligible student, one user at a
time, retrying the whole pass when the pass itself fails.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from revision_planner.config import JOB_MAX_RETRIES, JOB_RETRY_DELAY_SECONDS
from revision_planner.services.user_store import UserStoreProtocol

logger = logging.getLogger(__name__)

BuildFn = Callable[..., Any]


def run_for_all_eligible_users(
    build_fn: BuildFn,
    max_retries: int = JOB_MAX_RETRIES,
    flags: Optional[Dict[str, Any]] = None,
    *,
    users: UserStoreProtocol,
    retry_delay: float = JOB_RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Invoke `build_fn(user, **flags)` for each eligible user.

    `build_fn` is expected to contain its own per-user error boundary. Anything
    escaping the pass (including the eligibility query) counts as a failed
    attempt; after `max_retries` further attempts the failure is logged and
    False is returned.
    """
    flags = flags or {}
    job_name = getattr(build_fn, "__name__", "build")
    attempt = 0

    while True:
        try:
            eligible = users.list_eligible()
            logger.info("Scheduled %s: %d eligible users", job_name, len(eligible))
            for user in eligible:
                build_fn(user, **flags)
            logger.info("Scheduled %s job completed successfully.", job_name)
            return True
        except Exception as exc:
            retries_left = max_retries - attempt
            if retries_left <= 0:
                logger.error("Error running scheduled %s after multiple retries: %s", job_name, exc)
                return False
            logger.warning(
                "Error running scheduled %s, retrying in %ss... (%d retries left): %s",
                job_name,
                retry_delay,
                retries_left,
                exc,
            )
            attempt += 1
            sleep(retry_delay)
