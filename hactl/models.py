"""Data models for hactl plans.

A plan is a static graph of desired-state declarations. Each declaration is
identified by a reference of the form ``kind[name]`` (e.g.
``file[/etc/ha.d/ha.cf]``) and points to other declarations through two
kinds of edges:

- ``requires``: ordering only, the referenced resource is processed first
- ``notifies``: ordering plus refresh, a change here refreshes the target
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


class ResourceKind(str, Enum):
    """Kinds of resources a plan can declare."""
    PACKAGE = 'package'
    FILE = 'file'
    SERVICE = 'service'
    REPOSITORY = 'repository'
    EXEC = 'exec'


class PlatformName(str, Enum):
    """Platforms a plan can be built for."""
    REDHAT_5 = 'redhat-5'
    DEBIAN = 'debian'


def make_ref(kind: ResourceKind, name: str) -> str:
    return f"{kind.value}[{name}]"


@dataclass
class Resource:
    """Base class for all declarations."""
    name: str
    requires: List[str] = field(default_factory=list)
    notifies: List[str] = field(default_factory=list)

    kind: ClassVar[ResourceKind]

    @property
    def ref(self) -> str:
        return make_ref(self.kind, self.name)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        return {'kind': self.kind.value, **asdict(self)}


@dataclass
class Package(Resource):
    ensure: str = 'installed'

    kind: ClassVar[ResourceKind] = ResourceKind.PACKAGE


@dataclass
class File(Resource):
    """A managed file. ``content=None`` manages existence and permissions only.

    Text content is written UTF-8 encoded; bytes are written as they are.
    """
    content: Optional[Union[str, bytes]] = None
    mode: str = '0644'
    owner: str = 'root'
    group: str = 'root'
    sensitive: bool = False

    kind: ClassVar[ResourceKind] = ResourceKind.FILE

    @property
    def path(self) -> str:
        return self.name

    @property
    def mode_bits(self) -> int:
        return int(self.mode, 8)

    @property
    def data(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return (self.content or '').encode('utf-8')

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        data = super().to_dict(redact)
        if redact and self.sensitive and self.content is not None:
            data['content'] = '[REDACTED]'
        elif isinstance(self.content, bytes):
            data['content'] = self.content.decode('utf-8', errors='backslashreplace')
        return data


@dataclass
class Service(Resource):
    ensure_running: bool = True
    enable: bool = True
    hasstatus: bool = True
    hasrestart: bool = True

    kind: ClassVar[ResourceKind] = ResourceKind.SERVICE


@dataclass
class Repository(Resource):
    """A yum repository definition written to ``path``."""
    descr: str = ''
    baseurl: str = ''
    enabled: bool = True
    gpgcheck: bool = False
    path: str = ''

    kind: ClassVar[ResourceKind] = ResourceKind.REPOSITORY

    def render(self) -> str:
        return (
            f"[{self.name}]\n"
            f"name={self.descr}\n"
            f"baseurl={self.baseurl}\n"
            f"enabled={int(self.enabled)}\n"
            f"gpgcheck={int(self.gpgcheck)}\n"
        )


@dataclass
class Exec(Resource):
    """A command. Refresh-only execs run only when notified."""
    command: List[str] = field(default_factory=list)
    refreshonly: bool = True

    kind: ClassVar[ResourceKind] = ResourceKind.EXEC


@dataclass
class ClusterConfigPlan:
    """The optional CRM file and the reload it triggers."""
    file: File
    reload: Exec

    def resources(self) -> List[Resource]:
        return [self.file, self.reload]


@dataclass
class Plan:
    """Everything one host needs, in declaration order."""
    platform: PlatformName
    package_manager: str
    resources: List[Resource] = field(default_factory=list)
    cluster_config: Optional[ClusterConfigPlan] = None

    def all_resources(self) -> List[Resource]:
        resources = list(self.resources)
        if self.cluster_config is not None:
            resources.extend(self.cluster_config.resources())
        return resources

    def get(self, ref: str) -> Resource:
        for resource in self.all_resources():
            if resource.ref == ref:
                return resource
        raise KeyError(ref)

    def refs(self) -> List[str]:
        return [r.ref for r in self.all_resources()]

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        return {
            'platform': self.platform.value,
            'package_manager': self.package_manager,
            'resources': [r.to_dict(redact) for r in self.all_resources()],
        }
