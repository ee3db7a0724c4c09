"""
Tests for worktrack/services/catalog_service.py

Scenarios covered:
  1. Business Functions — create, rename, derived job_count, delete detaches Jobs
  2. Performance Indicators — create, validation, update, delete removes mappings
"""

import pytest

from worktrack.core.exceptions import NotFoundError, ValidationError

OWNER = "user_alice"
OTHER_OWNER = "user_bob"


# ── 1. Business Functions ────────────────────────────────────────────────────


class TestBusinessFunctions:
    def test_create_and_get(self, services):
        bf = services.catalog.create_business_function(OWNER, {"name": "  Finance "})
        assert bf["name"] == "Finance"
        assert bf["job_count"] == 0
        assert services.catalog.get_business_function(OWNER, bf["id"])["name"] == "Finance"

    def test_name_required(self, services):
        with pytest.raises(ValidationError, match="name is required"):
            services.catalog.create_business_function(OWNER, {"name": ""})

    def test_list_merges_job_count(self, services):
        """Functions without Jobs report 0 rather than being omitted."""
        finance = services.catalog.create_business_function(OWNER, {"name": "Finance"})
        services.catalog.create_business_function(OWNER, {"name": "Ops"})
        for _ in range(2):
            services.jobs.create_job(OWNER, {"title": "Close books", "business_function_id": finance["id"]})

        listed = {bf["name"]: bf["job_count"] for bf in services.catalog.list_business_functions(OWNER)}
        assert listed == {"Finance": 2, "Ops": 0}

    def test_rename(self, services):
        bf = services.catalog.create_business_function(OWNER, {"name": "Fin"})
        renamed = services.catalog.rename_business_function(OWNER, bf["id"], {"name": "Finance"})
        assert renamed["name"] == "Finance"

    def test_delete_detaches_jobs(self, services):
        bf = services.catalog.create_business_function(OWNER, {"name": "Finance"})
        job = services.jobs.create_job(OWNER, {"title": "Close books", "business_function_id": bf["id"]})

        assert services.catalog.delete_business_function(OWNER, bf["id"]) is True

        assert services.jobs.get_job(OWNER, job["id"])["business_function_id"] is None
        assert services.impact.job_counts_by_business_function(OWNER) == {}

    def test_delete_missing_returns_false(self, services):
        assert services.catalog.delete_business_function(OWNER, "missing-bf") is False

    def test_foreign_function_not_visible(self, services):
        bf = services.catalog.create_business_function(OTHER_OWNER, {"name": "Theirs"})
        assert services.catalog.list_business_functions(OWNER) == []
        with pytest.raises(NotFoundError):
            services.catalog.rename_business_function(OWNER, bf["id"], {"name": "Mine"})


# ── 2. Performance Indicators ────────────────────────────────────────────────


class TestPerformanceIndicators:
    def test_create_defaults_target_to_zero(self, services):
        pi = services.catalog.create_pi(OWNER, {"name": "NPS"})
        assert pi["target_value"] == 0

    def test_invalid_target_rejected(self, services):
        with pytest.raises(ValidationError, match="target_value"):
            services.catalog.create_pi(OWNER, {"name": "NPS", "target_value": "high"})

    def test_negative_target_rejected(self, services):
        with pytest.raises(ValidationError) as exc_info:
            services.catalog.create_pi(OWNER, {"name": "NPS", "target_value": -5})
        assert exc_info.value.details == {"target_value": "Must not be negative."}
        assert services.catalog.list_pis(OWNER) == []

    def test_update_target(self, services):
        pi = services.catalog.create_pi(OWNER, {"name": "NPS", "target_value": 40})
        updated = services.catalog.update_pi(OWNER, pi["id"], {"target_value": "55"})
        assert updated["target_value"] == 55.0
        assert updated["name"] == "NPS"

    def test_update_does_not_touch_mapping_snapshots(self, services):
        pi = services.catalog.create_pi(OWNER, {"name": "NPS", "target_value": 40})
        job = services.jobs.create_job(OWNER, {"title": "Survey"})
        mapping = services.impact.create_mapping(OWNER, {"job_id": job["id"], "pi_id": pi["id"]})
        services.catalog.update_pi(OWNER, pi["id"], {"target_value": 80})
        assert services.impact.get_mapping(OWNER, mapping["id"])["pi_target"] == 40

    def test_delete_removes_mappings(self, services):
        pi = services.catalog.create_pi(OWNER, {"name": "NPS"})
        job = services.jobs.create_job(OWNER, {"title": "Survey"})
        services.impact.create_mapping(OWNER, {"job_id": job["id"], "pi_id": pi["id"]})

        assert services.catalog.delete_pi(OWNER, pi["id"]) is True

        assert services.impact.list_mappings(OWNER) == []
        assert services.jobs.get_job(OWNER, job["id"])["title"] == "Survey"

    def test_list_sorted_by_name(self, services):
        for name in ("Uptime", "Cost", "NPS"):
            services.catalog.create_pi(OWNER, {"name": name})
        assert [p["name"] for p in services.catalog.list_pis(OWNER)] == ["Cost", "NPS", "Uptime"]
