import shlex
from typing import Dict, List, Optional

import pytest

from hactl.config import ConfigSource, NodeConfig
from hactl.engine.executor import CommandResult, Executor, FileStat
from hactl.platform import Facts


class FakeHost(Executor):
    """In-memory host: files, packages and services driven by commands."""

    def __init__(self, name: str = 'fakehost', systemd: bool = True, machine: str = 'x86_64'):
        self.name = name
        self.systemd = systemd
        self.machine = machine
        self.files: Dict[str, dict] = {}
        self.packages = set()
        self.services: Dict[str, dict] = {}
        self.commands: List[str] = []
        self.failing: List[str] = []

    # helpers for tests
    def add_file(self, path, content, mode=0o644, owner='root', group='root'):
        data = content.encode('utf-8') if isinstance(content, str) else content
        self.files[path] = {'data': data, 'mode': mode, 'owner': owner, 'group': group}

    def text(self, path) -> str:
        return self.files[path]['data'].decode('utf-8')

    def ran(self, fragment: str) -> List[str]:
        return [c for c in self.commands if fragment in c]

    def _service(self, name) -> dict:
        return self.services.setdefault(name, {'active': False, 'enabled': False})

    # Executor interface
    def _run(self, argv: List[str]) -> CommandResult:
        command = shlex.join(argv)
        self.commands.append(command)
        for prefix in self.failing:
            if command.startswith(prefix):
                return CommandResult(argv, 1, '', 'simulated failure')

        def result(ok=True, out=''):
            return CommandResult(argv, 0 if ok else 1, out, '')

        head = argv[0]
        if head == 'uname':
            return result(out=self.machine + '\n')
        if head == 'dpkg-query':
            name = argv[-1]
            if name in self.packages:
                return result(out='install ok installed')
            return result(False)
        if head == 'env' and argv[2] == 'apt-get':
            verb, name = argv[3], argv[-1]
            (self.packages.add if verb == 'install' else self.packages.discard)(name)
            return result()
        if head == 'rpm':
            return result(argv[-1] in self.packages)
        if head == 'yum':
            verb, name = argv[1], argv[-1]
            (self.packages.add if verb == 'install' else self.packages.discard)(name)
            return result()
        if head == 'systemctl':
            action, name = argv[1], argv[-1]
            svc = self._service(name)
            if action == 'is-active':
                return result(svc['active'])
            if action == 'is-enabled':
                return result(svc['enabled'])
            if action in ('start', 'restart'):
                svc['active'] = True
            elif action == 'stop':
                svc['active'] = False
            elif action in ('enable', 'disable'):
                svc['enabled'] = action == 'enable'
            return result()
        if head == 'service':
            name, action = argv[1], argv[2]
            svc = self._service(name)
            if action == 'status':
                return result(svc['active'])
            svc['active'] = action in ('start', 'restart')
            return result()
        if head == 'chkconfig':
            svc = self._service(argv[1])
            if len(argv) == 2:
                return result(svc['enabled'])
            svc['enabled'] = argv[2] == 'on'
            return result()
        if head == 'sh':
            return result(self._service(argv[-1])['enabled'])
        if head == 'update-rc.d':
            self._service(argv[1])['enabled'] = argv[2] == 'defaults'
            return result()
        if head == 'chmod':
            self.files[argv[2]]['mode'] = int(argv[1], 8)
            return result()
        if head == '/usr/sbin/crm':
            return result()
        return CommandResult(argv, 127, '', f'{head}: command not found')

    def read_file(self, path: str) -> Optional[bytes]:
        entry = self.files.get(path)
        return entry['data'] if entry else None

    def write_file(self, path: str, data: bytes, mode: int) -> None:
        self.commands.append(f'write {path}')
        entry = self.files.setdefault(path, {'owner': 'root', 'group': 'root'})
        entry.update(data=data, mode=mode)

    def stat(self, path: str) -> Optional[FileStat]:
        entry = self.files.get(path)
        if entry is None:
            return None
        return FileStat(mode=entry['mode'], owner=entry['owner'], group=entry['group'])

    def chown(self, path: str, owner: str, group: str) -> None:
        self.files[path].update(owner=owner, group=group)

    def exists(self, path: str) -> bool:
        if path == '/run/systemd/system':
            return self.systemd
        return path in self.files


DEBIAN_OS_RELEASE = '''PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"
NAME="Debian GNU/Linux"
VERSION_ID="12"
ID=debian
'''


@pytest.fixture
def fake_host():
    host = FakeHost()
    host.add_file('/etc/os-release', DEBIAN_OS_RELEASE)
    return host


@pytest.fixture
def debian_facts():
    return Facts(os_family='Debian', os_name='Debian GNU/Linux', os_release='12', architecture='x86_64')


@pytest.fixture
def redhat5_facts():
    return Facts(os_family='RedHat', os_name='CentOS', os_release='5.11', architecture='x86_64')


@pytest.fixture
def node_config():
    return NodeConfig(authkey='XYZ', nodes=['ha1', 'ha2'], ping='10.0.0.254')


@pytest.fixture
def cib_file(tmp_path):
    path = tmp_path / 'crm.cib'
    path.write_text('primitive vip ocf:heartbeat:IPaddr2 params ip=10.0.0.100\n')
    return path


@pytest.fixture
def source_with_cib(cib_file):
    return ConfigSource(config_template='', cluster_config=str(cib_file))


MANIFEST_YAML = '''
cluster:
  authkey: s3cret
  nodes: [ha1, ha2]
  ping: 10.0.0.254
sources:
  config_template: ""
  cluster_config: crm.cib
hosts:
  - name: ha1
    address: 10.0.0.11
  - name: ha2
    address: 10.0.0.12
    user: admin
    sudo: true
'''


@pytest.fixture
def manifest_file(tmp_path, cib_file):
    path = tmp_path / 'hactl.yaml'
    path.write_text(MANIFEST_YAML)
    return path
