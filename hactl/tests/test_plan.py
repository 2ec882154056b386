import pytest

from hactl.config import ConfigSource, Manifest
from hactl.models import Exec, File, PlatformName, Service
from hactl.platform import Facts, UnsupportedPlatform
from hactl.plan import (
    AUTHKEYS_PATH,
    CIB_PATH,
    HA_CF_PATH,
    build_plan,
    plan_for_manifest,
)


def test_debian_plan_without_cluster_config(node_config, debian_facts):
    plan = build_plan(node_config, ConfigSource(config_template=''), debian_facts)
    assert plan.platform == PlatformName.DEBIAN
    assert plan.cluster_config is None
    assert plan.refs() == [
        'package[heartbeat]',
        'package[pacemaker]',
        f'file[{AUTHKEYS_PATH}]',
        f'file[{HA_CF_PATH}]',
        'service[heartbeat]',
    ]
    assert not any(isinstance(r, Exec) for r in plan.all_resources())
    assert not any(CIB_PATH in ref for ref in plan.refs())


def test_authkeys_declaration(node_config, debian_facts):
    plan = build_plan(node_config, ConfigSource(), debian_facts)
    authkeys = plan.get(f'file[{AUTHKEYS_PATH}]')
    assert isinstance(authkeys, File)
    assert authkeys.content == 'auth 1\n1 sha1 XYZ\n'
    assert authkeys.mode == '0600'
    assert authkeys.owner == 'root'
    assert authkeys.sensitive
    assert authkeys.requires == ['package[heartbeat]', 'package[pacemaker]']
    assert authkeys.notifies == ['service[heartbeat]']


def test_main_config_declaration(node_config, debian_facts):
    plan = build_plan(node_config, ConfigSource(), debian_facts)
    ha_cf = plan.get(f'file[{HA_CF_PATH}]')
    assert 'node ha1' in ha_cf.content
    assert ha_cf.notifies == ['service[heartbeat]']
    assert ha_cf.requires == ['package[heartbeat]', 'package[pacemaker]']


def test_service_declaration(node_config, debian_facts):
    service = build_plan(node_config, ConfigSource(), debian_facts).get('service[heartbeat]')
    assert isinstance(service, Service)
    assert service.ensure_running and service.enable and service.hasstatus
    assert service.requires == ['package[heartbeat]', 'package[pacemaker]']
    assert service.notifies == []


def test_cluster_config_sub_plan(node_config, debian_facts, source_with_cib, cib_file):
    plan = build_plan(node_config, source_with_cib, debian_facts)
    assert plan.cluster_config is not None

    cib = plan.cluster_config.file
    assert cib.path == CIB_PATH
    assert cib.content == cib_file.read_bytes()
    assert cib.mode == '0644'
    assert cib.requires == ['package[heartbeat]', 'package[pacemaker]']
    assert cib.notifies == ['exec[crm-load-replace]']

    reload = plan.cluster_config.reload
    assert reload.refreshonly
    assert reload.command == ['/usr/sbin/crm', 'configure', 'load', 'replace', CIB_PATH]
    assert reload.requires == ['service[heartbeat]']
    assert plan.refs()[-2:] == [f'file[{CIB_PATH}]', 'exec[crm-load-replace]']


def test_redhat5_plan_orders_repository_first(node_config, redhat5_facts):
    plan = build_plan(node_config, ConfigSource(), redhat5_facts)
    assert plan.package_manager == 'yum'
    assert plan.refs()[:4] == [
        'repository[clusterlabs]',
        'file[/etc/yum.repos.d/clusterlabs.repo]',
        'package[heartbeat.x86_64]',
        'package[pacemaker.x86_64]',
    ]
    authkeys = plan.get(f'file[{AUTHKEYS_PATH}]')
    assert authkeys.requires == ['package[heartbeat.x86_64]', 'package[pacemaker.x86_64]']


def test_unsupported_platform_fails_before_rendering(node_config, tmp_path):
    facts = Facts(os_family='RedHat', os_name='CentOS', os_release='6.10')
    missing = ConfigSource(config_template=str(tmp_path / 'missing.j2'), cluster_config=str(tmp_path / 'missing.cib'))
    with pytest.raises(UnsupportedPlatform, match='CentOS 6.10'):
        build_plan(node_config, missing, facts)


def test_plan_to_dict_redacts_authkey(node_config, debian_facts):
    plan = build_plan(node_config, ConfigSource(), debian_facts)
    data = plan.to_dict()
    authkeys = next(r for r in data['resources'] if r['name'] == AUTHKEYS_PATH)
    assert authkeys['content'] == '[REDACTED]'
    assert authkeys['kind'] == 'file'

    revealed = plan.to_dict(redact=False)
    authkeys = next(r for r in revealed['resources'] if r['name'] == AUTHKEYS_PATH)
    assert authkeys['content'] == 'auth 1\n1 sha1 XYZ\n'


def test_plan_for_manifest_resolves_relative_sources(manifest_file, cib_file, debian_facts):
    manifest = Manifest.load(manifest_file)
    plan = plan_for_manifest(manifest, debian_facts)
    assert plan.cluster_config.file.content == cib_file.read_bytes()
    assert plan.get(f'file[{AUTHKEYS_PATH}]').content == 'auth 1\n1 sha1 s3cret\n'


def test_cluster_config_content_is_verbatim(node_config, debian_facts, tmp_path):
    payload = b'# r\xe9seau\r\nproperty stonith-enabled=false\r\n'
    cib_file = tmp_path / 'crm.cib'
    cib_file.write_bytes(payload)
    plan = build_plan(node_config, ConfigSource(cluster_config=str(cib_file)), debian_facts)

    cib = plan.cluster_config.file
    assert cib.content == payload
    assert cib.data == payload
    assert plan.to_dict()['resources'][-2]['content'] == '# r\\xe9seau\r\nproperty stonith-enabled=false\r\n'


def test_whitespace_template_reference_uses_default(node_config, debian_facts):
    blank = build_plan(node_config, ConfigSource(config_template='  '), debian_facts)
    default = build_plan(node_config, ConfigSource(), debian_facts)
    assert blank.get(f'file[{HA_CF_PATH}]').content == default.get(f'file[{HA_CF_PATH}]').content
