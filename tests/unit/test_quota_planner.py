"""Tests for QuotaSpec validation and QuotaPlanner resolution."""
import pytest
from pydantic import ValidationError

from quizalloc.allocation import (
    FLAT_SECTION,
    BySectionQuota,
    Difficulty,
    FlatQuota,
    InvalidQuotaError,
    PoolFilter,
    PoolIndex,
    QuotaPlanner,
    QuotaSpec,
    ResolvedQuota,
    SectionQuota,
)


@pytest.fixture
def planner():
    return QuotaPlanner()


@pytest.fixture
def index(sample_bank):
    return PoolIndex(sample_bank)


def resolve(planner, index, spec):
    return planner.resolve(spec, index.snapshot(spec.pool_filter()))


class TestQuotaSpec:
    def test_requires_a_shape(self):
        with pytest.raises(ValidationError):
            QuotaSpec()

    def test_rejects_both_shapes(self):
        with pytest.raises(ValidationError):
            QuotaSpec(
                section_distribution=[SectionQuota(section_id="math", requested_count=1)],
                total_count=1,
            )

    def test_rejects_negative_counts(self):
        with pytest.raises(ValidationError):
            SectionQuota(section_id="math", requested_count=-1)
        with pytest.raises(ValidationError):
            QuotaSpec(total_count=-2)

    def test_rejects_duplicate_sections(self):
        with pytest.raises(ValidationError):
            QuotaSpec(
                section_distribution=[
                    SectionQuota(section_id="math", requested_count=1),
                    SectionQuota(section_id="math", requested_count=2),
                ]
            )

    def test_flat_key_cannot_name_a_section(self):
        with pytest.raises(ValidationError):
            SectionQuota(section_id=FLAT_SECTION, requested_count=1)
        with pytest.raises(ValidationError):
            QuotaSpec.flat(2, section_ids=["math", FLAT_SECTION])

    def test_difficulty_accepts_strings(self):
        spec = QuotaSpec.flat(3, difficulty="hard")
        assert spec.difficulty is Difficulty.HARD

    def test_pool_filter_for_distribution(self):
        spec = QuotaSpec.by_section({"math": 2, None: 1}, difficulty="easy")
        pool_filter = spec.pool_filter()
        assert pool_filter.section_ids == ("math", None)
        assert pool_filter.difficulty is Difficulty.EASY

    def test_pool_filter_for_flat(self):
        assert QuotaSpec.flat(3).pool_filter().section_ids is None
        assert QuotaSpec.flat(3, section_ids=["math"]).pool_filter().section_ids == ("math",)


class TestResolve:
    def test_by_section(self, planner, index):
        resolved = resolve(planner, index, QuotaSpec.by_section({"math": 4, "science": 2}))
        assert isinstance(resolved, BySectionQuota)
        assert resolved.requirements() == {"math": 4, "science": 2}
        assert resolved.total == 6

    def test_zero_count_sections_are_dropped(self, planner, index):
        resolved = resolve(planner, index, QuotaSpec.by_section({"math": 2, "science": 0}))
        assert resolved.requirements() == {"math": 2}

    def test_all_zero_is_invalid(self, planner, index):
        with pytest.raises(InvalidQuotaError) as exc_info:
            resolve(planner, index, QuotaSpec.by_section({"math": 0}))
        assert exc_info.value.violations == []

    def test_reports_every_violation(self, planner, index):
        spec = QuotaSpec.by_section({"math": 11, "science": 2, "history": 1})
        with pytest.raises(InvalidQuotaError) as exc_info:
            resolve(planner, index, spec)

        violations = {v.section_id: v for v in exc_info.value.violations}
        assert set(violations) == {"math", "history"}
        assert violations["math"].requested == 11
        assert violations["math"].available == 10
        assert violations["history"].available == 0
        assert violations["history"].missing == 1

    def test_difficulty_narrows_section_pools(self, planner, index):
        spec = QuotaSpec.by_section({"science": 3}, difficulty="medium")
        with pytest.raises(InvalidQuotaError) as exc_info:
            resolve(planner, index, spec)
        assert exc_info.value.violations[0].available == 2

    def test_flat(self, planner, index):
        resolved = resolve(planner, index, QuotaSpec.flat(18))
        assert isinstance(resolved, FlatQuota)
        assert resolved.requirements() == {FLAT_SECTION: 18}

    def test_flat_over_pool(self, planner, index):
        with pytest.raises(InvalidQuotaError) as exc_info:
            resolve(planner, index, QuotaSpec.flat(6, section_ids=["science"]))
        violation = exc_info.value.violations[0]
        assert violation.section_id == FLAT_SECTION
        assert (violation.requested, violation.available) == (6, 5)

    def test_flat_zero_is_invalid(self, planner, index):
        with pytest.raises(InvalidQuotaError):
            resolve(planner, index, QuotaSpec.flat(0))

    def test_flat_pool_covers_filtered_snapshot(self, planner, index):
        spec = QuotaSpec.flat(3, section_ids=[None, "science"], difficulty="easy")
        snapshot = index.snapshot(spec.pool_filter())
        resolved = planner.resolve(spec, snapshot)
        assert set(resolved.pool(snapshot, FLAT_SECTION)) == {
            "uncat-1", "uncat-2", "uncat-3", "sci-easy-1", "sci-easy-2",
        }


def test_resolved_quota_base_is_abstract():
    with pytest.raises(TypeError):
        ResolvedQuota(pool_filter=PoolFilter(), shuffle=True)
