import pytest

from hactl.models import File, Package, PlatformName, Repository
from hactl.platform import (
    CLUSTERLABS_BASEURL,
    CLUSTERLABS_REPO_FILE,
    Facts,
    UnsupportedPlatform,
    detect_facts,
    normalize_arch,
    normalize_family,
    parse_os_release,
    resolve_platform,
)

from conftest import FakeHost


def test_debian_packages(debian_facts):
    package_set = resolve_platform(debian_facts)
    assert package_set.platform == PlatformName.DEBIAN
    assert package_set.package_manager == 'apt'
    assert package_set.package_refs == ['package[heartbeat]', 'package[pacemaker]']
    assert all(not p.requires for p in package_set.packages)
    assert not any(isinstance(r, Repository) for r in package_set.resources)


def test_redhat5_repository_and_packages(redhat5_facts):
    package_set = resolve_platform(redhat5_facts)
    assert package_set.platform == PlatformName.REDHAT_5
    assert package_set.package_manager == 'yum'

    repo, descriptor, heartbeat, pacemaker = package_set.resources
    assert isinstance(repo, Repository)
    assert repo.baseurl == CLUSTERLABS_BASEURL
    assert repo.path == CLUSTERLABS_REPO_FILE

    assert isinstance(descriptor, File)
    assert descriptor.path == CLUSTERLABS_REPO_FILE
    assert descriptor.mode == '0644'
    assert descriptor.content is None
    assert descriptor.requires == [repo.ref]

    assert isinstance(heartbeat, Package) and heartbeat.name == 'heartbeat.x86_64'
    assert heartbeat.requires == [repo.ref]
    assert pacemaker.name == 'pacemaker.x86_64'
    assert pacemaker.requires == [heartbeat.ref]


def test_redhat5_uses_architecture():
    facts = Facts(os_family='RedHat', os_name='CentOS', os_release='5.4', architecture='i386')
    assert resolve_platform(facts).package_refs == ['package[heartbeat.i386]', 'package[pacemaker.i386]']


@pytest.mark.parametrize('release', ['6.10', '7', '8.9', ''])
def test_other_redhat_releases_are_unsupported(release):
    facts = Facts(os_family='RedHat', os_name='CentOS', os_release=release)
    with pytest.raises(UnsupportedPlatform) as excinfo:
        resolve_platform(facts)
    assert 'CentOS' in str(excinfo.value)
    if release:
        assert release in str(excinfo.value)


def test_unknown_family_is_unsupported():
    facts = Facts(os_family='Suse', os_name='SLES', os_release='15.5')
    with pytest.raises(UnsupportedPlatform, match='SLES 15.5'):
        resolve_platform(facts)


@pytest.mark.parametrize('value,expected', [
    ('redhat', 'RedHat'),
    ('CentOS', 'RedHat'),
    ('rhel', 'RedHat'),
    ('debian', 'Debian'),
    ('Ubuntu', 'Debian'),
    ('Gentoo', 'Gentoo'),
])
def test_normalize_family(value, expected):
    assert normalize_family(value) == expected


def test_normalize_arch():
    assert normalize_arch('i686') == 'i386'
    assert normalize_arch('x86_64') == 'x86_64'


def test_parse_os_release():
    info = parse_os_release('# comment\nNAME="CentOS Linux"\nID="centos"\nID_LIKE="rhel fedora"\nVERSION_ID=7\n')
    assert info == {'NAME': 'CentOS Linux', 'ID': 'centos', 'ID_LIKE': 'rhel fedora', 'VERSION_ID': '7'}


def test_detect_facts_from_os_release(fake_host):
    facts = detect_facts(fake_host)
    assert facts.os_family == 'Debian'
    assert facts.os_name == 'Debian GNU/Linux'
    assert facts.os_release == '12'
    assert facts.architecture == 'x86_64'


def test_detect_facts_id_like():
    host = FakeHost()
    host.add_file('/etc/os-release', 'NAME="Rocky Linux"\nID="rocky"\nID_LIKE="rhel centos fedora"\nVERSION_ID="9.3"\n')
    facts = detect_facts(host)
    assert facts.os_family == 'RedHat'
    assert facts.major_release == '9'


def test_detect_facts_from_redhat_release():
    host = FakeHost(machine='i686')
    host.add_file('/etc/redhat-release', 'CentOS release 5.11 (Final)\n')
    facts = detect_facts(host)
    assert facts.os_family == 'RedHat'
    assert facts.os_name == 'CentOS'
    assert facts.os_release == '5.11'
    assert facts.major_release == '5'
    assert facts.architecture == 'i386'
    assert resolve_platform(facts).platform == PlatformName.REDHAT_5


def test_detect_facts_from_debian_version():
    host = FakeHost()
    host.add_file('/etc/debian_version', '5.0.10\n')
    facts = detect_facts(host)
    assert facts.os_family == 'Debian'
    assert facts.os_release == '5.0.10'


def test_detect_facts_unknown_host_is_unsupported():
    facts = detect_facts(FakeHost())
    assert facts.os_family == 'Unknown'
    with pytest.raises(UnsupportedPlatform):
        resolve_platform(facts)
