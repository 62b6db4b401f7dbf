from datetime import timedelta

import pytest

from conftest import NOW, WEEK_START, local, make_question, make_topic, make_user
from revision_planner.agents.planner.daily_updater import NOTHING_NEW_MESSAGE, DailyPlannerUpdater, find_day
from revision_planner.errors import PlannerNotFound
from revision_planner.utils.planner_utils import (
    ACTIVE_CONTINUOUS_REVISION,
    BACK_REVISION,
    CONTINUOUS_REVISION,
    DAY_ORDER,
    topic_name,
)

THURSDAY = WEEK_START + timedelta(days=3)


def seed_planner(planner_store, thursday_topics=(), thursday_questions=None, thursday_back=()):
    days = []
    for index, name in enumerate(DAY_ORDER):
        date = WEEK_START + timedelta(days=index)
        days.append(
            {
                "day": name,
                "date": date,
                "continuous_revision_topics": list(thursday_topics) if date == THURSDAY else [],
                "back_revision_topics": list(thursday_back) if date == THURSDAY else [],
                "questions": dict(thursday_questions or {}) if date == THURSDAY else {},
            }
        )
    return planner_store.create(
        {
            "student_id": "user_1",
            "start_date": WEEK_START,
            "end_date": WEEK_START + timedelta(days=6),
            "days": days,
        }
    )


@pytest.fixture
def updater(topic_store, planner_store, assembler, clock):
    return DailyPlannerUpdater(topic_store, planner_store, assembler, clock=clock)


def test_same_topic_different_case_adds_nothing(updater, topic_store, planner_store):
    seed_planner(planner_store, thursday_topics=[make_topic("Thermodynamics")])
    candidate = make_topic("thermodynamics", "Chemistry", created_at=NOW - timedelta(hours=2))
    topic_store.add(candidate)

    result = updater.update(make_user())

    assert result["updated"] is False
    assert result["message"] == NOTHING_NEW_MESSAGE
    thursday = find_day(result["planner"], THURSDAY)
    assert [topic_name(r) for r in thursday["continuous_revision_topics"]] == ["Thermodynamics"]
    assert topic_store.records[candidate["id"]]["tag"] == ACTIVE_CONTINUOUS_REVISION
    assert topic_store.records[candidate["id"]]["topic"]["planner_frequency"] == 0


def test_new_topics_are_merged_into_tomorrow(updater, topic_store, planner_store, question_bank):
    existing_questions = {"Thermodynamics": [make_question("Thermodynamics", "neet", 0)]}
    planner = seed_planner(
        planner_store,
        thursday_topics=[make_topic("Thermodynamics")],
        thursday_questions=existing_questions,
    )
    optics = make_topic("Optics", created_at=NOW - timedelta(hours=1))
    topic_store.add(optics)
    question_bank.questions = [make_question("Optics", "jeemains_easy", n) for n in range(2)]

    result = updater.update(make_user())

    assert result["updated"] is True
    assert result["message"] == "Planner Updated for 2025-01-09"
    thursday = find_day(planner_store.planners[planner["id"]], THURSDAY)
    assert [topic_name(r) for r in thursday["continuous_revision_topics"]] == ["Thermodynamics", "Optics"]
    assert set(thursday["questions"]) == {"Thermodynamics", "Optics"}
    assert len(thursday["questions"]["Optics"]) == 2
    stored = topic_store.records[optics["id"]]
    assert stored["tag"] == ACTIVE_CONTINUOUS_REVISION
    assert stored["topic"]["planner_frequency"] == 1
    assert stored["topic"]["studied_at"][0]["date"] == THURSDAY


def test_other_days_are_untouched(updater, topic_store, planner_store):
    planner = seed_planner(planner_store)
    topic_store.add(make_topic("Optics"))

    updater.update(make_user())

    days = planner_store.planners[planner["id"]]["days"]
    assert [len(day["continuous_revision_topics"]) for day in days] == [0, 0, 0, 1, 0, 0, 0]


def test_topics_from_yesterday_are_ignored(updater, topic_store, planner_store):
    seed_planner(planner_store)
    old = make_topic("Optics", created_at=NOW - timedelta(days=1))
    topic_store.add(old)

    result = updater.update(make_user())

    assert result["updated"] is False
    assert topic_store.records[old["id"]]["tag"] == CONTINUOUS_REVISION


def test_missing_planner(updater):
    with pytest.raises(PlannerNotFound):
        updater.update(make_user())


def test_tomorrow_outside_planner(topic_store, planner_store, assembler):
    seed_planner(planner_store)
    sunday_evening = DailyPlannerUpdater(topic_store, planner_store, assembler, clock=lambda: local(2025, 1, 12, 20))

    with pytest.raises(PlannerNotFound):
        sunday_evening.update(make_user())


def test_topic_already_in_back_revision_is_not_added(updater, topic_store, planner_store):
    back_questions = {"Optics": [make_question("Optics", "neet", 0)]}
    planner = seed_planner(
        planner_store,
        thursday_back=[make_topic("Optics", tag=BACK_REVISION)],
        thursday_questions=back_questions,
    )
    topic_store.add(make_topic("optics", created_at=NOW - timedelta(hours=1)))

    result = updater.update(make_user())

    assert result["updated"] is False
    thursday = find_day(planner_store.planners[planner["id"]], THURSDAY)
    assert thursday["continuous_revision_topics"] == []
    assert thursday["questions"] == back_questions
