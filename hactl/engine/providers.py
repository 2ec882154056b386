"""Resource providers.

A provider knows how to inspect and change one kind of resource through an
executor:

- ``changes``: names of the properties that differ from the declaration
- ``sync``: bring those properties in line, returning the actions taken
- ``refresh``: react to a notification (restart, run), if the kind supports it
"""

import logging
from typing import Dict, List, Optional

from ..models import Exec, File, Package, Repository, Resource, ResourceKind, Service
from .executor import Executor

logger = logging.getLogger("hactl.engine.providers")

SYSTEMD_RUNTIME_DIR = '/run/systemd/system'


class ResourceError(Exception):
    """Raised when a provider cannot handle a declaration."""
    pass


class Provider:
    """Base provider. Subclasses implement ``changes`` and ``sync``."""

    def __init__(self, executor: Executor, package_manager: str):
        self.executor = executor
        self.package_manager = package_manager

    def changes(self, resource: Resource) -> List[str]:
        raise NotImplementedError

    def sync(self, resource: Resource, changes: List[str]) -> List[str]:
        raise NotImplementedError

    def refreshable(self, resource: Resource) -> bool:
        return False

    def refresh_suppressed(self, resource: Resource, changes: List[str]) -> bool:
        """True when the sync already had the effect of a refresh."""
        return False

    def refresh(self, resource: Resource) -> Optional[str]:
        return None


class PackageProvider(Provider):
    """Packages through apt or yum."""

    def __init__(self, executor: Executor, package_manager: str):
        if package_manager not in ('apt', 'yum'):
            raise ResourceError(f"Unknown package manager: {package_manager}")
        super().__init__(executor, package_manager)

    def is_installed(self, name: str) -> bool:
        if self.package_manager == 'apt':
            result = self.executor.run(['dpkg-query', '-W', '-f=${Status}', name], check=False)
            return result.ok and 'ok installed' in result.stdout
        return self.executor.run(['rpm', '-q', name], check=False).ok

    def changes(self, package: Package) -> List[str]:
        if package.ensure not in ('installed', 'absent'):
            raise ResourceError(f"{package.ref}: unsupported ensure value {package.ensure!r}")
        installed = self.is_installed(package.name)
        if installed != (package.ensure == 'installed'):
            return ['ensure']
        return []

    def sync(self, package: Package, changes: List[str]) -> List[str]:
        verb = 'install' if package.ensure == 'installed' else 'remove'
        if self.package_manager == 'apt':
            argv = ['env', 'DEBIAN_FRONTEND=noninteractive', 'apt-get', verb, '-y', '-q', package.name]
        else:
            argv = ['yum', verb, '-y', '-q', package.name]
        self.executor.run(argv)
        return ['installed' if verb == 'install' else 'removed']


class RepositoryProvider(Provider):
    """yum repository definitions."""

    def changes(self, repo: Repository) -> List[str]:
        if self.package_manager != 'yum':
            raise ResourceError(f"{repo.ref}: repositories are only supported with yum")
        if not repo.path:
            raise ResourceError(f"{repo.ref}: no descriptor path")
        current = self.executor.read_file(repo.path)
        if current is None:
            return ['ensure']
        if current != repo.render().encode('utf-8'):
            return ['definition']
        return []

    def sync(self, repo: Repository, changes: List[str]) -> List[str]:
        self.executor.write_file(repo.path, repo.render().encode('utf-8'), 0o644)
        return ['defined' if 'ensure' in changes else 'definition changed']


class FileProvider(Provider):
    """Plain files with optional content, mode and ownership."""

    def changes(self, file: File) -> List[str]:
        st = self.executor.stat(file.path)
        if st is None:
            return ['ensure']
        changes = []
        if file.content is not None:
            if self.executor.read_file(file.path) != file.data:
                changes.append('content')
        if st.mode != file.mode_bits:
            changes.append('mode')
        if (file.owner and st.owner != file.owner) or (file.group and st.group != file.group):
            changes.append('owner')
        return changes

    def sync(self, file: File, changes: List[str]) -> List[str]:
        actions = []
        if 'ensure' in changes or 'content' in changes:
            self.executor.write_file(file.path, file.data, file.mode_bits)
            actions.append('created' if 'ensure' in changes else 'content changed')
        elif 'mode' in changes:
            self.executor.run(['chmod', file.mode, file.path])
            actions.append('mode changed')

        if 'ensure' in changes:
            if file.owner or file.group:
                self.executor.chown(file.path, file.owner, file.group)
        elif 'owner' in changes:
            self.executor.chown(file.path, file.owner, file.group)
            actions.append('owner changed')
        return actions


class ServiceProvider(Provider):
    """Services under systemd, or SysV init scripts on older hosts."""

    def __init__(self, executor: Executor, package_manager: str):
        super().__init__(executor, package_manager)
        self._systemd: Optional[bool] = None

    @property
    def systemd(self) -> bool:
        if self._systemd is None:
            self._systemd = self.executor.exists(SYSTEMD_RUNTIME_DIR)
            logger.debug(f"[{self.executor.name}] service manager: {'systemd' if self._systemd else 'sysv'}")
        return self._systemd

    def is_running(self, service: Service) -> bool:
        if self.systemd:
            argv = ['systemctl', 'is-active', '--quiet', service.name]
        elif service.hasstatus:
            argv = ['service', service.name, 'status']
        else:
            argv = ['pgrep', '-x', service.name]
        return self.executor.run(argv, check=False).ok

    def is_enabled(self, service: Service) -> bool:
        if self.systemd:
            argv = ['systemctl', 'is-enabled', '--quiet', service.name]
        elif self.package_manager == 'yum':
            argv = ['chkconfig', service.name]
        else:
            argv = ['sh', '-c', 'ls /etc/rc2.d/S*"$1" >/dev/null 2>&1', 'sh', service.name]
        return self.executor.run(argv, check=False).ok

    def _control(self, service: Service, action: str) -> None:
        if self.systemd:
            self.executor.run(['systemctl', action, service.name])
        else:
            self.executor.run(['service', service.name, action])

    def _set_enabled(self, service: Service, enable: bool) -> None:
        if self.systemd:
            argv = ['systemctl', 'enable' if enable else 'disable', service.name]
        elif self.package_manager == 'yum':
            argv = ['chkconfig', service.name, 'on' if enable else 'off']
        else:
            argv = ['update-rc.d', service.name, 'defaults' if enable else 'disable']
        self.executor.run(argv)

    def changes(self, service: Service) -> List[str]:
        changes = []
        if self.is_running(service) != service.ensure_running:
            changes.append('ensure')
        if self.is_enabled(service) != service.enable:
            changes.append('enable')
        return changes

    def sync(self, service: Service, changes: List[str]) -> List[str]:
        actions = []
        if 'ensure' in changes:
            if service.ensure_running:
                self._control(service, 'start')
                actions.append('started')
            else:
                self._control(service, 'stop')
                actions.append('stopped')
        if 'enable' in changes:
            self._set_enabled(service, service.enable)
            actions.append('enabled' if service.enable else 'disabled')
        return actions

    def refreshable(self, service: Service) -> bool:
        return service.ensure_running

    def refresh_suppressed(self, service: Service, changes: List[str]) -> bool:
        return service.ensure_running and 'ensure' in changes

    def refresh(self, service: Service) -> Optional[str]:
        if not service.ensure_running:
            return None
        if service.hasrestart:
            self._control(service, 'restart')
        else:
            self._control(service, 'stop')
            self._control(service, 'start')
        return 'restarted'


class ExecProvider(Provider):
    """Commands. Refresh-only commands run only when notified."""

    def changes(self, exec_: Exec) -> List[str]:
        if not exec_.command:
            raise ResourceError(f"{exec_.ref}: empty command")
        return [] if exec_.refreshonly else ['run']

    def sync(self, exec_: Exec, changes: List[str]) -> List[str]:
        self.executor.run(exec_.command)
        return ['executed']

    def refreshable(self, exec_: Exec) -> bool:
        return True

    def refresh_suppressed(self, exec_: Exec, changes: List[str]) -> bool:
        return 'run' in changes

    def refresh(self, exec_: Exec) -> Optional[str]:
        self.executor.run(exec_.command)
        return 'executed'


_PROVIDERS = {
    ResourceKind.PACKAGE: PackageProvider,
    ResourceKind.REPOSITORY: RepositoryProvider,
    ResourceKind.FILE: FileProvider,
    ResourceKind.SERVICE: ServiceProvider,
    ResourceKind.EXEC: ExecProvider,
}


def build_providers(executor: Executor, package_manager: str) -> Dict[ResourceKind, Provider]:
    """One provider per resource kind for a host."""
    return {kind: cls(executor, package_manager) for kind, cls in _PROVIDERS.items()}
