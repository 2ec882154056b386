"""Host facts and platform resolution.

``detect_facts`` gathers the operating system identity of a host through an
executor. ``resolve_platform`` maps those facts to the package source and
package set for the heartbeat stack. Only families listed in the dispatch
table are supported; everything else fails before any resource is declared.
"""

import logging
import re
import shlex
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from .engine.executor import Executor
from .models import File, Package, PlatformName, Repository, Resource

logger = logging.getLogger("hactl.platform")

REDHAT = 'RedHat'
DEBIAN = 'Debian'

_FAMILY_IDS = {
    REDHAT: {'rhel', 'redhat', 'centos', 'fedora', 'rocky', 'almalinux', 'ol', 'scientific', 'amzn'},
    DEBIAN: {'debian', 'ubuntu', 'raspbian', 'linuxmint'},
}

CLUSTERLABS_REPO = 'clusterlabs'
CLUSTERLABS_DESCR = 'High Availability/Clustering server technologies (epel-5)'
CLUSTERLABS_BASEURL = 'http://www.clusterlabs.org/rpm/epel-5'
CLUSTERLABS_REPO_FILE = '/etc/yum.repos.d/clusterlabs.repo'


class UnsupportedPlatform(Exception):
    """Raised when no package set exists for the host's OS family or version."""

    def __init__(self, facts: 'Facts'):
        self.facts = facts
        release = facts.os_release or 'unknown version'
        super().__init__(
            f"Unsupported operating system: {facts.os_name} {release} "
            f"(family {facts.os_family})"
        )


@dataclass
class Facts:
    """Operating system identity of a host."""
    os_family: str
    os_name: str
    os_release: str = ''
    architecture: str = 'x86_64'

    @property
    def major_release(self) -> str:
        return self.os_release.split('.')[0] if self.os_release else ''

    def to_dict(self) -> Dict[str, str]:
        return {
            'os_family': self.os_family,
            'os_name': self.os_name,
            'os_release': self.os_release,
            'major_release': self.major_release,
            'architecture': self.architecture,
        }


@dataclass
class PackageSet:
    """Package source and packages selected for a platform."""
    platform: PlatformName
    package_manager: str
    resources: List[Resource] = field(default_factory=list)

    @property
    def packages(self) -> List[Package]:
        return [r for r in self.resources if isinstance(r, Package)]

    @property
    def package_refs(self) -> List[str]:
        return [p.ref for p in self.packages]


def normalize_family(value: str) -> str:
    """Map a distribution id or family name to a canonical family."""
    lowered = value.strip().lower()
    for family, ids in _FAMILY_IDS.items():
        if lowered == family.lower() or lowered in ids:
            return family
    return value.strip()


def normalize_arch(machine: str) -> str:
    """Report 32-bit x86 the way rpm names it."""
    if re.fullmatch(r'i[3-6]86', machine):
        return 'i386'
    return machine


def parse_os_release(text: str) -> Dict[str, str]:
    info = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, _, value = line.partition('=')
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value.strip('"\'')]
        info[key.strip()] = parts[0] if parts else ''
    return info


def _family_from_ids(os_id: str, id_like: List[str]) -> str:
    for candidate in [os_id] + id_like:
        family = normalize_family(candidate)
        if family in _FAMILY_IDS:
            return family
    return ''


def detect_facts(executor: Executor) -> Facts:
    """Detect OS family, name, release and architecture of a host.

    Reads ``/etc/os-release`` and falls back to ``/etc/redhat-release`` and
    ``/etc/debian_version`` for hosts that predate it.
    """
    os_release = executor.read_file('/etc/os-release')
    if os_release is not None:
        info = parse_os_release(os_release.decode('utf-8', errors='replace'))
        os_id = info.get('ID', '').lower()
        name = info.get('NAME', os_id) or 'Unknown'
        family = _family_from_ids(os_id, info.get('ID_LIKE', '').lower().split()) or name
        release = info.get('VERSION_ID', '')
    else:
        redhat_release = executor.read_file('/etc/redhat-release')
        debian_version = executor.read_file('/etc/debian_version')
        if redhat_release is not None:
            text = redhat_release.decode('utf-8', errors='replace').strip()
            match = re.search(r'release\s+([\d.]+)', text)
            family = REDHAT
            name = text.split(' release')[0].strip() or REDHAT
            release = match.group(1) if match else ''
        elif debian_version is not None:
            family = name = DEBIAN
            release = debian_version.decode('utf-8', errors='replace').strip()
        else:
            family = name = 'Unknown'
            release = ''

    arch = normalize_arch(executor.run(['uname', '-m']).stdout.strip())
    facts = Facts(os_family=family, os_name=name, os_release=release, architecture=arch)
    logger.debug(f"Facts for {executor.name}: {facts.to_dict()}")
    return facts


def _resolve_redhat(facts: Facts) -> PackageSet:
    if facts.major_release != '5':
        raise UnsupportedPlatform(facts)

    repo = Repository(
        name=CLUSTERLABS_REPO,
        descr=CLUSTERLABS_DESCR,
        baseurl=CLUSTERLABS_BASEURL,
        enabled=True,
        gpgcheck=False,
        path=CLUSTERLABS_REPO_FILE,
    )
    # Managed so that repo purging leaves the definition in place
    descriptor = File(
        name=CLUSTERLABS_REPO_FILE,
        mode='0644',
        owner='root',
        group='root',
        requires=[repo.ref],
    )
    heartbeat = Package(name=f'heartbeat.{facts.architecture}', requires=[repo.ref])
    pacemaker = Package(name=f'pacemaker.{facts.architecture}', requires=[heartbeat.ref])
    return PackageSet(PlatformName.REDHAT_5, 'yum', [repo, descriptor, heartbeat, pacemaker])


def _resolve_debian(facts: Facts) -> PackageSet:
    return PackageSet(PlatformName.DEBIAN, 'apt', [Package(name='heartbeat'), Package(name='pacemaker')])


_RESOLVERS: Dict[str, Callable[[Facts], PackageSet]] = {
    REDHAT: _resolve_redhat,
    DEBIAN: _resolve_debian,
}


def resolve_platform(facts: Facts) -> PackageSet:
    """Select the package source and package set for a host.

    Raises:
        UnsupportedPlatform: If the OS family, or for RedHat the major
            release, has no package set
    """
    resolver = _RESOLVERS.get(facts.os_family)
    if resolver is None:
        raise UnsupportedPlatform(facts)
    package_set = resolver(facts)
    logger.debug(
        f"Resolved {facts.os_name} {facts.os_release} to {package_set.platform.value} "
        f"({', '.join(package_set.package_refs)})"
    )
    return package_set
