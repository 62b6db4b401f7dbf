import copy
from datetime import timedelta

from conftest import NOW, make_topic, make_user
from revision_planner.agents.planner.topic_selector import select_daily_topics
from revision_planner.utils.planner_utils import BACK_REVISION, topic_name


def names(records):
    return [topic_name(r) for r in records]


class TestContinuousSelection:
    def test_at_most_three_continuous_topics_oldest_first(self):
        pool = [
            make_topic("Optics", "Physics", created_at=NOW - timedelta(hours=5)),
            make_topic("Kinematics", "Physics", created_at=NOW - timedelta(hours=9)),
            make_topic("Mole Concept", "Chemistry", created_at=NOW - timedelta(hours=8)),
            make_topic("Limits", "Maths", created_at=NOW - timedelta(hours=7)),
            make_topic("Vectors", "Maths", created_at=NOW - timedelta(hours=6)),
        ]

        continuous, back = select_daily_topics(pool, [], make_user())

        assert back == []
        assert len(continuous) == 3
        # weakest subject first, one topic per subject before any subject repeats
        assert names(continuous) == ["Kinematics", "Mole Concept", "Limits"]

    def test_per_subject_cap(self):
        pool = [make_topic(f"Physics topic {i}", "Physics", created_at=NOW - timedelta(hours=i)) for i in range(5)]

        continuous, _ = select_daily_topics(pool, [], make_user())

        assert len(continuous) == 2

    def test_inputs_are_not_mutated(self):
        pool = [make_topic("Optics"), make_topic("Waves")]
        back = [make_topic("Gravitation", tag=BACK_REVISION)]
        before = copy.deepcopy((pool, back))

        select_daily_topics(pool, back, make_user())

        assert (pool, back) == before


class TestBackSelection:
    def test_back_topics_weakest_first_within_each_subject(self):
        back_pool = [
            make_topic("Strong", "Physics", tag=BACK_REVISION, efficiency=90),
            make_topic("Weak", "Chemistry", tag=BACK_REVISION, efficiency=10),
            make_topic("Middling", "Maths", tag=BACK_REVISION, efficiency=50),
            make_topic("Weakest maths", "Maths", tag=BACK_REVISION, efficiency=5),
        ]

        _, back = select_daily_topics([], back_pool, make_user())

        assert len(back) == 3
        assert set(names(back)) == {"Strong", "Weak", "Weakest maths"}
        assert "Middling" not in names(back)

    def test_subject_cap_is_shared_with_continuous(self):
        continuous_pool = [make_topic("Optics", "Physics"), make_topic("Waves", "Physics")]
        back_pool = [
            make_topic("Gravitation", "Physics", tag=BACK_REVISION),
            make_topic("Equilibrium", "Chemistry", tag=BACK_REVISION),
        ]

        continuous, back = select_daily_topics(continuous_pool, back_pool, make_user())

        assert names(continuous) == ["Optics", "Waves"]
        assert names(back) == ["Equilibrium"]

    def test_names_unique_within_day_case_insensitive(self):
        continuous_pool = [make_topic("Thermodynamics", "Physics")]
        back_pool = [make_topic("thermodynamics", "Chemistry", tag=BACK_REVISION)]

        continuous, back = select_daily_topics(continuous_pool, back_pool, make_user())

        assert names(continuous) == ["Thermodynamics"]
        assert back == []

    def test_limits_can_be_overridden(self):
        back_pool = [make_topic(f"T{i}", subject, tag=BACK_REVISION) for i, subject in
                     enumerate(["Physics", "Chemistry", "Maths", "Biology"])]

        _, back = select_daily_topics([], back_pool, make_user(), max_back=1)

        assert len(back) == 1
