"""
Tests for worktrack/services/impact_service.py

Scenarios covered:
  1. job_counts_by_business_function — grouping, unassigned Jobs excluded
  2. Mapping CRUD — endpoint validation writes nothing, snapshot fields,
     immutable endpoints, filters by Job / PI
  3. recalculate_impact — built-in strategies, idempotence, custom callables
  4. impact_totals — roll-up per PI and per Business Function
"""

import pytest

from worktrack.core.exceptions import NotFoundError, ValidationError
from worktrack.services.impact_service import (
    IMPACT_STRATEGIES,
    ImpactAggregator,
    completion_ratio_impact,
    resolve_strategy,
)
from worktrack.services.registry import build_services

OWNER = "user_alice"
OTHER_OWNER = "user_bob"


# ── Test helpers ─────────────────────────────────────────────────────────────


def _make_bf(services, name="Finance", owner=OWNER):
    return services.catalog.create_business_function(owner, {"name": name})


def _make_job(services, title="Migrate DB", owner=OWNER, **fields):
    return services.jobs.create_job(owner, {"title": title, **fields})


def _make_pi(services, name="Uptime", target=100, owner=OWNER):
    return services.catalog.create_pi(owner, {"name": name, "target_value": target})


def _map(services, job, pi, owner=OWNER, **fields):
    return services.impact.create_mapping(owner, {"job_id": job["id"], "pi_id": pi["id"], **fields})


# ── 1. Job counts ────────────────────────────────────────────────────────────


class TestJobCounts:
    def test_counts_per_business_function(self, services):
        """Two Jobs under F and one unassigned Job → {F: 2}."""
        bf = _make_bf(services, "F")
        _make_job(services, "J1", business_function_id=bf["id"])
        _make_job(services, "J2", business_function_id=bf["id"])
        _make_job(services, "J3")
        assert services.impact.job_counts_by_business_function(OWNER) == {bf["id"]: 2}

    def test_counts_sum_to_assigned_jobs(self, services):
        f = _make_bf(services, "F")
        g = _make_bf(services, "G")
        for bf_id in (f["id"], g["id"], g["id"], None):
            _make_job(services, business_function_id=bf_id)
        counts = services.impact.job_counts_by_business_function(OWNER)
        assert sum(counts.values()) == 3
        assert None not in counts

    def test_counts_are_owner_scoped(self, services):
        bf = _make_bf(services, "Theirs", owner=OTHER_OWNER)
        _make_job(services, owner=OTHER_OWNER, business_function_id=bf["id"])
        assert services.impact.job_counts_by_business_function(OWNER) == {}

    def test_requires_owner(self, services):
        with pytest.raises(ValueError, match="owner_id"):
            services.impact.job_counts_by_business_function("")


# ── 2. Mapping CRUD ──────────────────────────────────────────────────────────


class TestMappings:
    def test_create_snapshots_names_and_target(self, services):
        job = _make_job(services, "Migrate DB")
        pi = _make_pi(services, "Uptime", 99.9)
        mapping = _map(services, job, pi)
        assert mapping["job_name"] == "Migrate DB"
        assert mapping["pi_name"] == "Uptime"
        assert mapping["pi_target"] == 99.9
        assert mapping["pi_impact_value"] == 0
        assert mapping["names_are_snapshots"] is True

    def test_snapshot_not_refreshed_on_rename(self, services):
        job = _make_job(services, "Old title")
        pi = _make_pi(services, "Old PI")
        mapping = _map(services, job, pi)
        services.jobs.update_job(OWNER, job["id"], {"title": "New title"})
        services.catalog.update_pi(OWNER, pi["id"], {"name": "New PI"})
        reread = services.impact.get_mapping(OWNER, mapping["id"])
        assert reread["job_name"] == "Old title"
        assert reread["pi_name"] == "Old PI"

    def test_target_override(self, services):
        mapping = _map(services, _make_job(services), _make_pi(services, target=100), pi_target=40)
        assert mapping["pi_target"] == 40

    def test_unknown_pi_rejected_without_write(self, services):
        job = _make_job(services)
        with pytest.raises(ValidationError) as exc_info:
            services.impact.create_mapping(OWNER, {"job_id": job["id"], "pi_id": "missing-pi"})
        assert exc_info.value.details == {"pi_id": "unknown performance indicator"}
        assert services.impact.list_mappings(OWNER) == []

    def test_foreign_job_rejected(self, services):
        job = _make_job(services, owner=OTHER_OWNER)
        pi = _make_pi(services)
        with pytest.raises(ValidationError) as exc_info:
            _map(services, job, pi)
        assert "job_id" in exc_info.value.details

    def test_missing_endpoints_reported_together(self, services):
        with pytest.raises(ValidationError) as exc_info:
            services.impact.create_mapping(OWNER, {})
        assert set(exc_info.value.details) == {"job_id", "pi_id"}

    def test_invalid_numbers_rejected(self, services):
        with pytest.raises(ValidationError, match="Invalid mapping values"):
            _map(services, _make_job(services), _make_pi(services), pi_impact_value="lots")

    @pytest.mark.parametrize("field", ["pi_target", "pi_impact_value"])
    def test_negative_numbers_rejected(self, services, field):
        with pytest.raises(ValidationError) as exc_info:
            _map(services, _make_job(services), _make_pi(services), **{field: -1})
        assert exc_info.value.details == {field: "Must not be negative."}
        assert services.impact.list_mappings(OWNER) == []

    @pytest.mark.parametrize("ids", [
        {"job_id": ["job-1"], "pi_id": "pi-1"},
        {"job_id": "job-1", "pi_id": {"id": "pi-1"}},
    ])
    def test_non_string_ids_rejected(self, services, ids):
        with pytest.raises(ValidationError) as exc_info:
            services.impact.create_mapping(OWNER, ids)
        bad = next(k for k, v in ids.items() if not isinstance(v, str))
        assert exc_info.value.details == {bad: "Must be an id string."}

    def test_update_values(self, services):
        mapping = _map(services, _make_job(services), _make_pi(services))
        updated = services.impact.update_mapping(
            OWNER, mapping["id"], {"pi_impact_value": 12.5, "notes": "manual"},
        )
        assert updated["pi_impact_value"] == 12.5
        assert updated["notes"] == "manual"

    def test_endpoints_are_immutable(self, services):
        mapping = _map(services, _make_job(services), _make_pi(services))
        other = _make_pi(services, "Other")
        with pytest.raises(ValidationError, match="cannot be changed"):
            services.impact.update_mapping(OWNER, mapping["id"], {"pi_id": other["id"]})

    def test_filters_by_job_and_pi(self, services):
        j1, j2 = _make_job(services, "J1"), _make_job(services, "J2")
        p1, p2 = _make_pi(services, "P1"), _make_pi(services, "P2")
        _map(services, j1, p1)
        _map(services, j1, p2)
        _map(services, j2, p2)
        assert len(services.impact.mappings_for_job(OWNER, j1["id"])) == 2
        assert {m["job_name"] for m in services.impact.mappings_for_pi(OWNER, p2["id"])} == {"J1", "J2"}

    def test_delete(self, services):
        mapping = _map(services, _make_job(services), _make_pi(services))
        assert services.impact.delete_mapping(OWNER, mapping["id"]) is True
        assert services.impact.delete_mapping(OWNER, mapping["id"]) is False
        with pytest.raises(NotFoundError):
            services.impact.get_mapping(OWNER, mapping["id"])


# ── 3. recalculate_impact ────────────────────────────────────────────────────


class TestRecalculateImpact:
    def _job_with_tasks(self, services, done_hours=(3,), open_hours=(5,)):
        job = _make_job(services)
        for hours in done_hours:
            services.tasks.create_task(
                OWNER, job["id"], {"title": "done", "required_hours": hours, "completed": True},
            )
        for hours in open_hours:
            services.tasks.create_task(OWNER, job["id"], {"title": "open", "required_hours": hours})
        return job

    def test_completion_ratio(self, services):
        job = self._job_with_tasks(services)
        mapping = _map(services, job, _make_pi(services, target=100))
        summary = services.impact.recalculate_impact(OWNER)
        assert summary.strategy == "completion_ratio"
        assert summary.mappings_updated == 1
        assert services.impact.get_mapping(OWNER, mapping["id"])["pi_impact_value"] == 50.0

    def test_job_without_tasks_contributes_zero(self, services):
        mapping = _map(services, _make_job(services), _make_pi(services), pi_impact_value=7)
        services.impact.recalculate_impact(OWNER)
        assert services.impact.get_mapping(OWNER, mapping["id"])["pi_impact_value"] == 0.0

    def test_idempotent(self, services):
        job = self._job_with_tasks(services, done_hours=(1, 2), open_hours=(4,))
        _map(services, job, _make_pi(services, target=30))
        first = services.impact.recalculate_impact(OWNER)
        values = [m["pi_impact_value"] for m in services.impact.list_mappings(OWNER)]
        second = services.impact.recalculate_impact(OWNER)
        assert first.mappings_changed == 1
        assert second.mappings_changed == 0
        assert [m["pi_impact_value"] for m in services.impact.list_mappings(OWNER)] == values

    def test_completed_hours_strategy(self, services):
        job = self._job_with_tasks(services, done_hours=(1.5, 2), open_hours=(10,))
        mapping = _map(services, job, _make_pi(services))
        aggregator = ImpactAggregator(services.store, strategy="completed_hours")
        aggregator.recalculate_impact(OWNER)
        assert services.impact.get_mapping(OWNER, mapping["id"])["pi_impact_value"] == 3.5

    def test_passthrough_keeps_supplied_value(self, services):
        job = self._job_with_tasks(services)
        mapping = _map(services, job, _make_pi(services), pi_impact_value=42)
        summary = build_services(services.store.session, "passthrough").impact.recalculate_impact(OWNER)
        assert summary.mappings_changed == 0
        assert services.impact.get_mapping(OWNER, mapping["id"])["pi_impact_value"] == 42

    def test_custom_callable_strategy(self, services):
        mapping = _map(services, _make_job(services), _make_pi(services))

        def fixed_bonus(mapping, job, tasks):
            return 5

        summary = ImpactAggregator(services.store, strategy=fixed_bonus).recalculate_impact(OWNER)
        assert summary.strategy == "fixed_bonus"
        assert services.impact.get_mapping(OWNER, mapping["id"])["pi_impact_value"] == 5.0

    def test_only_owner_mappings_touched(self, services):
        theirs = _map(
            services,
            _make_job(services, owner=OTHER_OWNER),
            _make_pi(services, owner=OTHER_OWNER),
            owner=OTHER_OWNER,
            pi_impact_value=9,
        )
        assert services.impact.recalculate_impact(OWNER).mappings_updated == 0
        assert services.impact.get_mapping(OTHER_OWNER, theirs["id"])["pi_impact_value"] == 9


class TestStrategyRegistry:
    def test_builtins_registered(self):
        assert set(IMPACT_STRATEGIES) == {"passthrough", "completion_ratio", "completed_hours"}
        assert resolve_strategy("completion_ratio") is completion_ratio_impact

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError, match="Unknown impact strategy"):
            resolve_strategy("vibes")


# ── 4. impact_totals ─────────────────────────────────────────────────────────


class TestImpactTotals:
    def test_rolls_up_per_pi_and_business_function(self, services):
        bf = _make_bf(services, "Ops")
        j1 = _make_job(services, "J1", business_function_id=bf["id"])
        j2 = _make_job(services, "J2")
        pi = _make_pi(services, "Uptime", target=50)
        _map(services, j1, pi, pi_impact_value=10)
        _map(services, j2, pi, pi_impact_value=15)

        totals = services.impact.impact_totals(OWNER)

        assert totals["by_pi"][pi["id"]] == {
            "name": "Uptime",
            "target": 50.0,
            "impact": 25.0,
            "progress_pct": 50.0,
        }
        assert totals["by_business_function"] == {bf["id"]: 10.0}

    def test_zero_target_has_no_progress(self, services):
        pi = _make_pi(services, target=0)
        _map(services, _make_job(services), pi, pi_impact_value=3)
        assert services.impact.impact_totals(OWNER)["by_pi"][pi["id"]]["progress_pct"] is None

    def test_empty(self, services):
        assert services.impact.impact_totals(OWNER) == {"by_pi": {}, "by_business_function": {}}
