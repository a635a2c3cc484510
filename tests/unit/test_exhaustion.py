"""Tests for exhaustion policies operating on draw plans."""
import pytest

from quizalloc.allocation import (
    BestEffortPolicy,
    DrawPlan,
    InsufficientPoolError,
    RecyclePolicy,
    StrictPolicy,
    get_policy,
)


def short_plan():
    """math needs 4 but only 2 remain; science is fine."""
    pools = {"math": tuple(f"m{i}" for i in range(10)), "science": ("s1", "s2", "s3")}
    return DrawPlan(
        generation=1,
        requested={"math": 4, "science": 2},
        requirements={"math": 4, "science": 2},
        candidates={"math": ("m8", "m9"), "science": ("s1", "s2", "s3")},
        pools=pools,
    )


def test_plan_shortfalls():
    shortfalls = short_plan().shortfalls()
    assert len(shortfalls) == 1
    assert shortfalls[0].section_id == "math"
    assert (shortfalls[0].requested, shortfalls[0].available, shortfalls[0].missing) == (4, 2, 2)


def test_strict_raises_with_shortfalls():
    with pytest.raises(InsufficientPoolError) as exc_info:
        StrictPolicy().apply("quiz-1", short_plan())
    shortfall = exc_info.value.shortfall_for("math")
    assert shortfall.requested == 4
    assert shortfall.available == 2
    assert exc_info.value.shortfall_for("science") is None


def test_recycle_moves_to_next_generation():
    plan = RecyclePolicy().apply("quiz-1", short_plan())
    assert plan.generation == 2
    assert plan.recycled is True
    assert plan.candidates["math"] == short_plan().pools["math"]
    assert plan.shortfalls() == []


def test_recycle_only_once():
    recycled = short_plan().recycle()
    with pytest.raises(InsufficientPoolError):
        RecyclePolicy().apply("quiz-1", recycled)


def test_recycle_fails_when_full_pool_is_too_small():
    plan = DrawPlan(
        generation=1,
        requested={"math": 4},
        requirements={"math": 4},
        candidates={"math": ()},
        pools={"math": ("m1", "m2")},
    )
    with pytest.raises(InsufficientPoolError):
        RecyclePolicy().apply("quiz-1", plan)


def test_best_effort_trims_and_reports():
    plan = BestEffortPolicy().apply("quiz-1", short_plan())
    assert plan.requirements == {"math": 2, "science": 2}
    unmet = plan.unmet()
    assert set(unmet) == {"math"}
    assert (unmet["math"].requested, unmet["math"].available) == (4, 2)


def test_best_effort_with_nothing_left_fails():
    plan = DrawPlan(
        generation=1,
        requested={"math": 4},
        requirements={"math": 4},
        candidates={"math": ()},
        pools={"math": ("m1",)},
    )
    with pytest.raises(InsufficientPoolError):
        BestEffortPolicy().apply("quiz-1", plan)


@pytest.mark.parametrize(
    "name, expected",
    [("strict", StrictPolicy), ("recycle", RecyclePolicy), ("best_effort", BestEffortPolicy),
     ("best-effort", BestEffortPolicy), ("RECYCLE", RecyclePolicy)],
)
def test_get_policy_by_name(name, expected):
    assert isinstance(get_policy(name), expected)


def test_get_policy_default_and_instance():
    assert isinstance(get_policy(None), StrictPolicy)
    policy = BestEffortPolicy()
    assert get_policy(policy) is policy


def test_get_policy_unknown():
    with pytest.raises(ValueError):
        get_policy("lenient")
