"""Convergence of a plan onto a host.

The converger walks the plan in dependency order, asks each resource's
provider what is out of sync and fixes it. A resource that changed queues a
refresh for its notify targets; every target is refreshed at most once per
run. Applying a plan to a host that already matches it performs no actions.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from ..models import Plan, Resource
from .executor import CommandError, Executor
from .providers import Provider, ResourceError, build_providers

logger = logging.getLogger("hactl.engine.converge")


class PlanError(Exception):
    """Raised when a plan references unknown resources or contains a cycle."""
    pass


@dataclass
class Event:
    """One action taken (or, in dry-run mode, one that would be taken)."""
    ref: str
    action: str
    noop: bool = False

    def __str__(self) -> str:
        suffix = ' (noop)' if self.noop else ''
        return f"{self.ref}: {self.action}{suffix}"


@dataclass
class Report:
    """Outcome of converging one host."""
    host: str
    dry_run: bool = False
    events: List[Event] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.events)

    @property
    def ok(self) -> bool:
        return not self.failed

    def actions(self, action: str) -> List[Event]:
        return [e for e in self.events if e.action == action]

    def events_for(self, ref: str) -> List[Event]:
        return [e for e in self.events if e.ref == ref]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'host': self.host,
            'dry_run': self.dry_run,
            'events': [str(e) for e in self.events],
            'failed': dict(self.failed),
            'skipped': list(self.skipped),
        }


def order_resources(resources: List[Resource]) -> List[Resource]:
    """Sort resources so requirements and notifiers come first.

    Ties keep declaration order.

    Raises:
        PlanError: On duplicate or unknown references, or a cycle
    """
    index: Dict[str, int] = {}
    for i, resource in enumerate(resources):
        if resource.ref in index:
            raise PlanError(f"Duplicate resource {resource.ref}")
        index[resource.ref] = i

    successors: Dict[str, Set[str]] = {ref: set() for ref in index}
    for resource in resources:
        for dep in resource.requires:
            if dep not in index:
                raise PlanError(f"{resource.ref} requires unknown resource {dep}")
            successors[dep].add(resource.ref)
        for target in resource.notifies:
            if target not in index:
                raise PlanError(f"{resource.ref} notifies unknown resource {target}")
            successors[resource.ref].add(target)

    in_degree = {ref: 0 for ref in index}
    for targets in successors.values():
        for target in targets:
            in_degree[target] += 1

    ready = [index[ref] for ref, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)
    ordered = []
    while ready:
        resource = resources[heapq.heappop(ready)]
        ordered.append(resource)
        for target in successors[resource.ref]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                heapq.heappush(ready, index[target])

    if len(ordered) != len(resources):
        stuck = sorted(ref for ref, degree in in_degree.items() if degree > 0)
        raise PlanError(f"Dependency cycle between: {', '.join(stuck)}")
    return ordered


class Converger:
    """Applies plans to the host behind an executor."""

    def __init__(self, executor: Executor, dry_run: bool = False):
        self.executor = executor
        self.dry_run = dry_run

    def converge(self, plan: Plan) -> Report:
        """Bring the host in line with the plan.

        Failures are recorded per resource; resources that require or are
        notified by a failed resource are skipped.

        Raises:
            PlanError: If the plan's graph is invalid
        """
        resources = plan.all_resources()
        ordered = order_resources(resources)
        providers = build_providers(self.executor, plan.package_manager)

        notifiers: Dict[str, Set[str]] = {r.ref: set() for r in resources}
        for resource in resources:
            for target in resource.notifies:
                notifiers[target].add(resource.ref)

        report = Report(host=self.executor.name, dry_run=self.dry_run)
        pending_refresh: Set[str] = set()
        blocked: Set[str] = set()

        logger.info(f"🔧 Converging {self.executor.name} ({plan.platform.value}, {len(ordered)} resources)")
        for resource in ordered:
            ref = resource.ref
            if (set(resource.requires) | notifiers[ref]) & blocked:
                logger.warning(f"⏭️  {ref}: skipped because a dependency failed")
                report.skipped.append(ref)
                blocked.add(ref)
                continue
            try:
                changed = self._apply(resource, providers[resource.kind], ref in pending_refresh, report)
            except (CommandError, ResourceError, OSError) as e:
                logger.error(f"❌ {ref}: {e}")
                report.failed[ref] = str(e)
                blocked.add(ref)
                continue
            if changed:
                pending_refresh.update(resource.notifies)

        if report.failed:
            logger.error(f"❌ {self.executor.name}: {len(report.failed)} failed, {len(report.skipped)} skipped")
        elif report.changed:
            logger.info(f"✅ {self.executor.name}: {len(report.events)} changes")
        else:
            logger.info(f"✅ {self.executor.name}: already in sync")
        return report

    def _apply(self, resource: Resource, provider: Provider, refresh_requested: bool, report: Report) -> bool:
        changes = provider.changes(resource)
        if changes and self.dry_run:
            actions = [f"would change {', '.join(changes)}"]
        elif changes:
            actions = provider.sync(resource, changes)
        else:
            actions = []

        if refresh_requested and provider.refreshable(resource):
            if provider.refresh_suppressed(resource, changes):
                logger.debug(f"{resource.ref}: refresh not needed after {', '.join(changes)}")
            elif self.dry_run:
                actions.append('would refresh')
            else:
                action = provider.refresh(resource)
                if action:
                    actions.append(action)

        for action in actions:
            event = Event(resource.ref, action, noop=self.dry_run)
            report.events.append(event)
            logger.info(f"{'📝' if self.dry_run else '✅'} {event}")
        return bool(actions)
