"""
Business Function and Performance Indicator catalog service.

Both entities are simple owner-scoped records; the only derived value is a
Business Function's ``job_count``, merged in on list from
ImpactAggregator.job_counts_by_business_function (0 when a BF has no Jobs).

Deletion rules:
    - Deleting a Business Function detaches its Jobs (business_function_id
      becomes null); the Jobs themselves survive.
    - Deleting a PI removes its mappings.
"""

import logging

from worktrack.core.exceptions import ValidationError
from worktrack.models.impact import PerformanceIndicator
from worktrack.models.job import BusinessFunction
from worktrack.utils.helpers import parse_number

logger = logging.getLogger(__name__)


def _required_name(data: dict) -> str:
    raw = data.get("name")
    name = raw.strip() if isinstance(raw, str) else ""
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    return name


class CatalogManager:
    """CRUD for Business Functions and PIs."""

    def __init__(self, store, aggregator):
        self.store = store
        self.aggregator = aggregator

    # ── Business Functions ────────────────────────────────────────────────

    def list_business_functions(self, owner_id: str) -> list[dict]:
        functions = self.store.find(BusinessFunction, owner_id, order_by=BusinessFunction.name)
        counts = self.aggregator.job_counts_by_business_function(owner_id)
        return [bf.to_dict(job_count=counts.get(bf.id, 0)) for bf in functions]

    def get_business_function(self, owner_id: str, bf_id: str) -> dict:
        bf = self.store.get(BusinessFunction, bf_id, owner_id)
        counts = self.aggregator.job_counts_by_business_function(owner_id)
        return bf.to_dict(job_count=counts.get(bf.id, 0))

    def create_business_function(self, owner_id: str, data: dict) -> dict:
        name = _required_name(data)
        with self.store.transaction():
            bf = BusinessFunction(owner_id=owner_id, name=name)
            self.store.insert(bf)
        logger.info("Business function created", extra={"owner_id": owner_id, "bf_id": bf.id})
        return bf.to_dict(job_count=0)

    def rename_business_function(self, owner_id: str, bf_id: str, data: dict) -> dict:
        name = _required_name(data)
        with self.store.transaction():
            bf = self.store.get(BusinessFunction, bf_id, owner_id)
            bf.name = name
        return self.get_business_function(owner_id, bf_id)

    def delete_business_function(self, owner_id: str, bf_id: str) -> bool:
        with self.store.transaction():
            bf = self.store.get_or_none(BusinessFunction, bf_id, owner_id)
            if bf is None:
                return False
            for job in list(bf.jobs):
                job.business_function_id = None
            self.store.delete_one(BusinessFunction, bf_id, owner_id)
        logger.info("Business function deleted", extra={"owner_id": owner_id, "bf_id": bf_id})
        return True

    # ── Performance Indicators ────────────────────────────────────────────

    def list_pis(self, owner_id: str) -> list[dict]:
        pis = self.store.find(PerformanceIndicator, owner_id, order_by=PerformanceIndicator.name)
        return [pi.to_dict() for pi in pis]

    def get_pi(self, owner_id: str, pi_id: str) -> dict:
        return self.store.get(PerformanceIndicator, pi_id, owner_id).to_dict()

    def create_pi(self, owner_id: str, data: dict) -> dict:
        name = _required_name(data)
        target = _target_value(data)
        with self.store.transaction():
            pi = PerformanceIndicator(
                owner_id=owner_id,
                name=name,
                target_value=target if target is not None else 0,
            )
            self.store.insert(pi)
        logger.info("PI created", extra={"owner_id": owner_id, "pi_id": pi.id})
        return pi.to_dict()

    def update_pi(self, owner_id: str, pi_id: str, data: dict) -> dict:
        """Update name / target_value. Existing mapping snapshots are left as-is."""
        patch = {}
        if "name" in data:
            patch["name"] = _required_name(data)
        if "target_value" in data:
            target = _target_value(data)
            patch["target_value"] = target if target is not None else 0
        with self.store.transaction():
            pi = self.store.get(PerformanceIndicator, pi_id, owner_id)
            self.store.update_one(PerformanceIndicator, pi_id, owner_id, patch)
        return pi.to_dict()

    def delete_pi(self, owner_id: str, pi_id: str) -> bool:
        with self.store.transaction():
            deleted = self.store.delete_one(PerformanceIndicator, pi_id, owner_id)
        if deleted:
            logger.info("PI deleted", extra={"owner_id": owner_id, "pi_id": pi_id})
        return deleted


def _target_value(data: dict):
    try:
        return parse_number(data.get("target_value"), allow_negative=False)
    except ValueError as exc:
        raise ValidationError("Invalid target_value", details={"target_value": str(exc)}) from exc
