"""
PI impact aggregation service.

Business context:
    A PIJobMapping records how much one Job contributes toward one
    Performance Indicator. This module owns mapping CRUD and the roll-ups
    built on top of it:

      job_counts_by_business_function  — Jobs per BF (Jobs without a BF excluded)
      recalculate_impact               — recompute pi_impact_value per mapping
      impact_totals                    — contribution summed per PI and per BF

Impact strategies:
    How a Job's contribution is derived from its state is a business choice,
    so it is pluggable. A strategy is any callable
    ``(mapping, job, tasks) -> float``. Built-ins:

      passthrough       keep the externally supplied pi_impact_value
      completion_ratio  pi_target × completed_tasks / total_tasks (0 if no tasks)
      completed_hours   Σ required_hours over completed tasks

    Every strategy reads only stored state, so running recalculate_impact
    twice with no data change in between writes identical values.

Snapshots:
    job_name, pi_name and pi_target are captured when a mapping is created
    and are not refreshed on rename.
"""

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass

from sqlalchemy import func, select

from worktrack.core.exceptions import ValidationError
from worktrack.models.impact import PerformanceIndicator, PIJobMapping
from worktrack.models.job import Job
from worktrack.models.task import Task
from worktrack.utils.helpers import parse_id, parse_number

logger = logging.getLogger(__name__)


# ── Strategies ────────────────────────────────────────────────────────────────


def passthrough_impact(mapping, job, tasks) -> float:
    return float(mapping.pi_impact_value or 0)


def completion_ratio_impact(mapping, job, tasks) -> float:
    if not tasks:
        return 0.0
    done = sum(1 for t in tasks if t.completed)
    return round(float(mapping.pi_target or 0) * done / len(tasks), 4)


def completed_hours_impact(mapping, job, tasks) -> float:
    return round(sum(float(t.required_hours or 0) for t in tasks if t.completed), 4)


IMPACT_STRATEGIES = {
    "passthrough": passthrough_impact,
    "completion_ratio": completion_ratio_impact,
    "completed_hours": completed_hours_impact,
}


def resolve_strategy(strategy):
    """Return a strategy callable from a registry name or a callable."""
    if callable(strategy):
        return strategy
    try:
        return IMPACT_STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown impact strategy {strategy!r}. "
            f"Expected one of: {', '.join(sorted(IMPACT_STRATEGIES))}"
        ) from None


@dataclass(frozen=True)
class ImpactSummary:
    strategy: str
    mappings_updated: int
    mappings_changed: int

    def to_dict(self) -> dict:
        return asdict(self)


# ── Aggregator ────────────────────────────────────────────────────────────────


class ImpactAggregator:
    """Mapping CRUD plus Business-Function / PI roll-ups for one store."""

    def __init__(self, store, strategy="completion_ratio"):
        self.store = store
        self.strategy = resolve_strategy(strategy)
        self.strategy_name = strategy if isinstance(strategy, str) else getattr(
            strategy, "__name__", "custom"
        )

    # ── Counts ────────────────────────────────────────────────────────────

    def job_counts_by_business_function(self, owner_id: str) -> dict[str, int]:
        """Count the owner's Jobs per Business Function.

        Jobs with no Business Function contribute to no entry (there is no
        ``None`` key).
        """
        if not owner_id:
            raise ValueError("job_counts_by_business_function requires an owner_id scope.")
        stmt = (
            select(Job.business_function_id, func.count(Job.id))
            .where(Job.owner_id == owner_id, Job.business_function_id.is_not(None))
            .group_by(Job.business_function_id)
        )
        return {bf_id: count for bf_id, count in self.store.execute(stmt).all()}

    # ── Mapping reads ─────────────────────────────────────────────────────

    def list_mappings(self, owner_id: str) -> list[dict]:
        mappings = self.store.find(PIJobMapping, owner_id, order_by=PIJobMapping.created_at)
        return [m.to_dict() for m in mappings]

    def get_mapping(self, owner_id: str, mapping_id: str) -> dict:
        return self.store.get(PIJobMapping, mapping_id, owner_id).to_dict()

    def mappings_for_job(self, owner_id: str, job_id: str) -> list[dict]:
        mappings = self.store.find(
            PIJobMapping, owner_id, order_by=PIJobMapping.created_at, job_id=job_id,
        )
        return [m.to_dict() for m in mappings]

    def mappings_for_pi(self, owner_id: str, pi_id: str) -> list[dict]:
        mappings = self.store.find(
            PIJobMapping, owner_id, order_by=PIJobMapping.created_at, pi_id=pi_id,
        )
        return [m.to_dict() for m in mappings]

    # ── Mapping mutations ─────────────────────────────────────────────────

    def create_mapping(self, owner_id: str, data: dict) -> dict:
        """Create a Job → PI mapping.

        Both endpoints must exist for the owner. Names and the PI target are
        snapshotted now; ``pi_target`` may be overridden in ``data``.

        Raises:
            ValidationError: Missing / unknown job_id or pi_id, or bad numbers.
                             No row is written.
        """
        errors: dict[str, str] = {}
        ids: dict[str, str | None] = {}
        for key in ("job_id", "pi_id"):
            try:
                ids[key] = parse_id(data.get(key))
            except ValueError as exc:
                errors[key] = str(exc)
                continue
            if ids[key] is None:
                errors[key] = "required"
        if errors:
            raise ValidationError("job_id and pi_id must be given as id strings", details=errors)
        job_id, pi_id = ids["job_id"], ids["pi_id"]
        numbers = _clean_mapping_numbers(data)

        with self.store.transaction():
            job = self.store.get_or_none(Job, job_id, owner_id)
            pi = self.store.get_or_none(PerformanceIndicator, pi_id, owner_id)
            if job is None:
                errors["job_id"] = "unknown job"
            if pi is None:
                errors["pi_id"] = "unknown performance indicator"
            if errors:
                raise ValidationError("Mapping references unknown entities", details=errors)

            mapping = PIJobMapping(
                owner_id=owner_id,
                job_id=job.id,
                pi_id=pi.id,
                job_name=job.title,
                pi_name=pi.name,
                pi_target=numbers.get("pi_target", pi.target_value or 0),
                pi_impact_value=numbers.get("pi_impact_value", 0) or 0,
                notes=data.get("notes") or None,
            )
            self.store.insert(mapping)

        logger.info(
            "PI mapping created",
            extra={"owner_id": owner_id, "job_id": job_id, "mapping_id": mapping.id},
        )
        return mapping.to_dict()

    def update_mapping(self, owner_id: str, mapping_id: str, data: dict) -> dict:
        """Update pi_impact_value, pi_target and/or notes. Endpoints are immutable."""
        for key in ("job_id", "pi_id"):
            if key in data:
                raise ValidationError(
                    "Mapping endpoints cannot be changed; create a new mapping",
                    details={key: "immutable"},
                )
        patch = _clean_mapping_numbers(data)
        if "notes" in data:
            patch["notes"] = data["notes"] or None

        with self.store.transaction():
            mapping = self.store.get(PIJobMapping, mapping_id, owner_id)
            self.store.update_one(PIJobMapping, mapping_id, owner_id, patch)

        logger.info("PI mapping updated", extra={"owner_id": owner_id, "mapping_id": mapping_id})
        return mapping.to_dict()

    def delete_mapping(self, owner_id: str, mapping_id: str) -> bool:
        with self.store.transaction():
            deleted = self.store.delete_one(PIJobMapping, mapping_id, owner_id)
        if deleted:
            logger.info("PI mapping deleted", extra={"owner_id": owner_id, "mapping_id": mapping_id})
        return deleted

    # ── Roll-ups ──────────────────────────────────────────────────────────

    def recalculate_impact(self, owner_id: str) -> ImpactSummary:
        """Recompute pi_impact_value for every mapping of the owner.

        Idempotent: the strategy reads only stored state, so a second run with
        no intervening change reports ``mappings_changed == 0``.
        """
        with self.store.transaction():
            mappings = self.store.find(PIJobMapping, owner_id)
            tasks_by_job = self._tasks_by_job(owner_id, {m.job_id for m in mappings})
            changed = 0
            for mapping in mappings:
                value = float(self.strategy(mapping, mapping.job, tasks_by_job.get(mapping.job_id, [])))
                if mapping.pi_impact_value != value:
                    mapping.pi_impact_value = value
                    changed += 1

        summary = ImpactSummary(
            strategy=self.strategy_name,
            mappings_updated=len(mappings),
            mappings_changed=changed,
        )
        logger.info(
            "Impact recalculated: %d mapping(s), %d changed", summary.mappings_updated, changed,
            extra={"owner_id": owner_id},
        )
        return summary

    def impact_totals(self, owner_id: str) -> dict:
        """Roll mapping contributions up to PI and Business-Function totals.

        Returns:
            {
              "by_pi": {pi_id: {"name", "target", "impact", "progress_pct"}},
              "by_business_function": {bf_id: total_impact},
            }
            progress_pct is None when the PI target is 0. Jobs without a
            Business Function contribute to no BF entry.
        """
        mappings = self.store.find(PIJobMapping, owner_id)
        pis = {pi.id: pi for pi in self.store.find(PerformanceIndicator, owner_id)}

        by_pi: dict[str, dict] = {}
        by_bf: dict[str, float] = defaultdict(float)
        for mapping in mappings:
            pi = pis.get(mapping.pi_id)
            entry = by_pi.setdefault(
                mapping.pi_id,
                {
                    "name": pi.name if pi else mapping.pi_name,
                    "target": float(pi.target_value or 0) if pi else float(mapping.pi_target or 0),
                    "impact": 0.0,
                },
            )
            entry["impact"] += float(mapping.pi_impact_value or 0)
            bf_id = mapping.job.business_function_id if mapping.job else None
            if bf_id is not None:
                by_bf[bf_id] += float(mapping.pi_impact_value or 0)

        for entry in by_pi.values():
            target = entry["target"]
            entry["progress_pct"] = round(entry["impact"] / target * 100, 1) if target else None

        return {"by_pi": by_pi, "by_business_function": dict(by_bf)}

    # ── Private helpers ───────────────────────────────────────────────────

    def _tasks_by_job(self, owner_id: str, job_ids: set[str]) -> dict[str, list]:
        if not job_ids:
            return {}
        stmt = select(Task).where(Task.owner_id == owner_id, Task.job_id.in_(job_ids))
        grouped: dict[str, list] = defaultdict(list)
        for task in self.store.execute(stmt).scalars().all():
            grouped[task.job_id].append(task)
        return grouped


def _clean_mapping_numbers(data: dict) -> dict:
    cleaned: dict = {}
    errors: dict[str, str] = {}
    for key in ("pi_target", "pi_impact_value"):
        if key in data:
            try:
                value = parse_number(data[key], allow_negative=False)
            except ValueError as exc:
                errors[key] = str(exc)
                continue
            cleaned[key] = value if value is not None else 0.0
    if errors:
        raise ValidationError("Invalid mapping values", details=errors)
    return cleaned
