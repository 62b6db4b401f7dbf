import copy
import itertools
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pytest

from revision_planner.agents.planner.question_assembler import QuestionAssembler
from revision_planner.agents.planner_agent import PlannerAgent
from revision_planner.config import PLANNER_TIMEZONE
from revision_planner.errors import PlannerExists, PlannerNotFound, PreconditionFailed, RetrievalError
from revision_planner.utils.planner_utils import CONTINUOUS_REVISION, same_day

# Wednesday of ISO week 2025-W02 (Monday 2025-01-06).
NOW = datetime(2025, 1, 8, 10, 30, tzinfo=PLANNER_TIMEZONE)
WEEK_START = datetime(2025, 1, 6, tzinfo=PLANNER_TIMEZONE)

_ids = itertools.count(1)


def local(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=PLANNER_TIMEZONE)


def make_user(
    user_id: str = "user_1",
    *,
    activated_at: Optional[datetime] = local(2024, 12, 1),
    trial: bool = False,
    subjects: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    subjects = subjects if subjects is not None else {"Physics": 40, "Chemistry": 60, "Maths": 80}
    user = {
        "id": user_id,
        "firstname": "Asha",
        "email": f"{user_id}@example.com",
        "academic": {
            "standard": 11,
            "subjects": [{"name": name, "overall_efficiency": eff} for name, eff in subjects.items()],
        },
        "subscription": {"status": None, "date_of_activation": None},
        "free_trial": {"availed": False, "active": False, "date_of_activation": None},
    }
    if activated_at is not None and trial:
        user["free_trial"] = {"availed": True, "active": True, "date_of_activation": activated_at}
    elif activated_at is not None:
        user["subscription"] = {"status": "active", "date_of_activation": activated_at}
    return user


def make_topic(
    name: str,
    subject: str = "Physics",
    *,
    user_id: str = "user_1",
    tag: str = CONTINUOUS_REVISION,
    created_at: datetime = NOW - timedelta(hours=1),
    efficiency: float = 50,
    frequency: int = 0,
) -> Dict[str, Any]:
    return {
        "id": f"topic_{next(_ids)}",
        "user_id": user_id,
        "tag": tag,
        "subject": subject,
        "created_at": created_at,
        "topic": {
            "name": name,
            "overall_efficiency": efficiency,
            "planner_frequency": frequency,
            "studied_at": [],
        },
    }


def make_question(topic: str, tier: str, n: int) -> Dict[str, Any]:
    return {"id": f"{topic}-{tier}-{n}", "topics": topic, "level": tier, "question": f"{topic} {tier} #{n}"}


class FakeTopicStore:
    def __init__(self, records: Iterable[Dict[str, Any]] = ()) -> None:
        self.records: Dict[str, Dict[str, Any]] = {r["id"]: r for r in records}
        self.fail_writes = False
        self.tag_calls: List[tuple] = []

    def add(self, *records: Dict[str, Any]) -> None:
        for record in records:
            self.records[record["id"]] = record

    def find_by_tag_since(self, user_id, tag, since):
        found = [
            copy.deepcopy(r)
            for r in self.records.values()
            if r["user_id"] == user_id and r["tag"] == tag and r["created_at"] >= since
        ]
        return sorted(found, key=lambda r: r["created_at"])

    def find_back_revision(self, user_id):
        return [copy.deepcopy(r) for r in self.records.values() if r["user_id"] == user_id and r["tag"] == "back_revision"]

    def record_study_events(self, events):
        if self.fail_writes:
            raise RetrievalError("Unable to record study events.")
        for topic_id, dates in events.items():
            topic = self.records[topic_id]["topic"]
            topic["studied_at"].extend({"date": d, "efficiency": 0} for d in dates)
            topic["planner_frequency"] += len(dates)

    def set_tag(self, topic_ids, tag):
        ids = list(topic_ids)
        self.tag_calls.append((ids, tag))
        changed = 0
        for topic_id in ids:
            if self.records[topic_id]["tag"] != tag:
                self.records[topic_id]["tag"] = tag
                changed += 1
        return changed


class FakePlannerStore:
    def __init__(self) -> None:
        self.planners: Dict[str, Dict[str, Any]] = {}
        self.deleted: List[str] = []
        self.fail_delete = False

    def find_for_week(self, student_id, week_start, week_end):
        matches = [
            copy.deepcopy(p)
            for p in self.planners.values()
            if p["student_id"] == student_id and week_start <= p["start_date"] <= week_end
        ]
        matches.sort(key=lambda p: p["start_date"], reverse=True)
        return matches[0] if matches else None

    def create(self, planner):
        for existing in self.planners.values():
            if existing["student_id"] == planner["student_id"] and existing["start_date"] == planner["start_date"]:
                raise PlannerExists("Planner already exists for this week.")
        doc = copy.deepcopy(planner)
        doc["id"] = f"planner_{next(_ids)}"
        self.planners[doc["id"]] = doc
        return copy.deepcopy(doc)

    def delete(self, planner_id):
        if self.fail_delete:
            raise RetrievalError("Unable to roll back planner.")
        self.deleted.append(planner_id)
        self.planners.pop(planner_id, None)

    def push_day_topics(self, planner_id, day_date, topics, questions):
        planner = self.planners[planner_id]
        for day in planner["days"]:
            if same_day(day["date"], day_date):
                day["continuous_revision_topics"].extend(copy.deepcopy(topics))
                day["questions"] = copy.deepcopy(questions)
        return copy.deepcopy(planner)


class FakeQuestionBank:
    """Serves questions in a fixed order so draws are predictable."""

    def __init__(self, questions: Iterable[Dict[str, Any]] = ()) -> None:
        self.questions = list(questions)
        self.calls: List[tuple] = []
        self.fail = False

    def sample(self, topic, tier, size, exclude_ids=()):
        self.calls.append((topic, tier, size))
        if self.fail:
            raise RetrievalError("Question bank unavailable.")
        excluded = set(exclude_ids)
        pool = [q for q in self.questions if q["topics"] == topic and q["level"] == tier and q["id"] not in excluded]
        return copy.deepcopy(pool[:size])


class FakeSolvedQuestionStore:
    def __init__(self) -> None:
        self.solved: set = set()
        self.records: List[Dict[str, Any]] = []

    def has_solved(self, student_id, question_body):
        return (student_id, question_body) in self.solved

    def record(self, student_id, question, *, is_correct):
        self.records.append({"student_id": student_id, "question": question, "is_correct": is_correct})
        self.solved.add((student_id, question.get("question")))


class FakeQuizStore:
    def __init__(self) -> None:
        self.quizzes: List[Dict[str, Any]] = []

    def create(self, quiz):
        doc = dict(quiz, id=f"quiz_{next(_ids)}")
        self.quizzes.append(doc)
        return doc


class FakeUserStore:
    def __init__(self, users: Iterable[Dict[str, Any]] = ()) -> None:
        self.users: Dict[str, Dict[str, Any]] = {u["id"]: u for u in users}
        self.sessions: Dict[str, str] = {}
        self.planner_enabled: List[str] = []
        self.fail_listing = 0

    def create_user(self, *, firstname, email, password, lastname=None, standard=None, subjects=None):
        if any(u["email"] == email for u in self.users.values()):
            raise ValueError("An account with this email already exists.")
        user = make_user(f"user_{next(_ids)}", activated_at=None, subjects={s: 0 for s in subjects or []})
        user.update(firstname=firstname, lastname=lastname, email=email, password=password)
        self.users[user["id"]] = user
        return user

    def verify_credentials(self, email, password):
        for user in self.users.values():
            if user["email"] == email and user.get("password") == password:
                return user
        raise ValueError("Invalid email or password.")

    def create_session(self, user_id):
        token = f"token_{user_id}"
        self.sessions[token] = user_id
        return token

    def drop_session(self, token):
        self.sessions.pop(token, None)

    def resolve_token(self, token):
        user_id = self.sessions.get(token)
        return self.users.get(user_id) if user_id else None

    def public_view(self, user):
        return {key: value for key, value in user.items() if key != "password"}

    def list_eligible(self):
        if self.fail_listing:
            self.fail_listing -= 1
            raise RetrievalError("Unable to load eligible users.")
        return [
            u
            for u in self.users.values()
            if (u["subscription"].get("status") == "active" and u["subscription"].get("date_of_activation"))
            or u["free_trial"].get("active")
        ]

    def activate_free_trial(self, user_id):
        user = self.users.get(user_id)
        if not user:
            raise PlannerNotFound("User not found")
        if user["free_trial"].get("availed"):
            raise PreconditionFailed("Free trial has already been availed.")
        user["free_trial"] = {"availed": True, "active": True, "date_of_activation": NOW}
        user["category"] = "free"
        return user

    def mark_planner_enabled(self, user_id):
        self.planner_enabled.append(user_id)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def topic_store():
    return FakeTopicStore()


@pytest.fixture
def planner_store():
    return FakePlannerStore()


@pytest.fixture
def question_bank():
    return FakeQuestionBank()


@pytest.fixture
def solved_store():
    return FakeSolvedQuestionStore()


@pytest.fixture
def quiz_store():
    return FakeQuizStore()


@pytest.fixture
def user_store():
    return FakeUserStore()


@pytest.fixture
def assembler(question_bank, solved_store):
    return QuestionAssembler(question_bank, solved_store)


@pytest.fixture
def agent(topic_store, planner_store, question_bank, solved_store, quiz_store, user_store, clock):
    return PlannerAgent(
        topics=topic_store,
        planners=planner_store,
        question_bank=question_bank,
        solved_questions=solved_store,
        quizzes=quiz_store,
        users=user_store,
        clock=clock,
    )
