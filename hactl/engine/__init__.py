"""Convergence engine.

- executor: command and file access on local or SSH hosts
- providers: per-kind inspection and change of resources
- converge: ordering, refresh propagation and reporting
"""

from .converge import Converger, Event, PlanError, Report, order_resources
from .executor import CommandError, CommandResult, Executor, FileStat, LocalExecutor, SSHExecutor
from .providers import ResourceError, build_providers

__all__ = [
    'Converger',
    'Event',
    'PlanError',
    'Report',
    'order_resources',
    'CommandError',
    'CommandResult',
    'Executor',
    'FileStat',
    'LocalExecutor',
    'SSHExecutor',
    'ResourceError',
    'build_providers',
]
