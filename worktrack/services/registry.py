"""
Service wiring.

Managers are built per unit of work around an explicit session handle;
there are no module-level manager singletons.

Usage:
    services = build_services(db.session, impact_strategy="completion_ratio")
    services.jobs.create_job(owner_id, {"title": "Migrate DB"})
"""

from dataclasses import dataclass

from worktrack.services.catalog_service import CatalogManager
from worktrack.services.helpers.entity_store import EntityStore
from worktrack.services.impact_service import ImpactAggregator
from worktrack.services.job_service import JobManager
from worktrack.services.task_service import TaskManager


@dataclass(frozen=True)
class Services:
    store: EntityStore
    tasks: TaskManager
    jobs: JobManager
    impact: ImpactAggregator
    catalog: CatalogManager


def build_services(session, impact_strategy="completion_ratio") -> Services:
    store = EntityStore(session)
    tasks = TaskManager(store)
    impact = ImpactAggregator(store, strategy=impact_strategy)
    return Services(
        store=store,
        tasks=tasks,
        jobs=JobManager(store, tasks),
        impact=impact,
        catalog=CatalogManager(store, impact),
    )
