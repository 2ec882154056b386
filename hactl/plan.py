"""Plan builder for a heartbeat/pacemaker node.

``build_plan`` turns the node settings, the configuration sources and the
host facts into a ``Plan``. It only declares state; applying a plan is the
job of ``hactl.engine``.

Resulting graph (RedHat 5 adds the clusterlabs repository in front):

    package[heartbeat] ... package[pacemaker]
        <- file[/etc/ha.d/authkeys] --notify--> service[heartbeat]
        <- file[/etc/ha.d/ha.cf]    --notify--> service[heartbeat]
        <- file[/etc/ha.d/crm.cib]  --notify--> exec[crm-load-replace]
"""

import logging
from typing import List

from .config import ConfigSource, Manifest, NodeConfig
from .models import ClusterConfigPlan, Exec, File, Plan, Service
from .platform import Facts, resolve_platform
from .rendering import load_source, render_authkeys, render_main_config

logger = logging.getLogger("hactl.plan")

AUTHKEYS_PATH = '/etc/ha.d/authkeys'
HA_CF_PATH = '/etc/ha.d/ha.cf'
CIB_PATH = '/etc/ha.d/crm.cib'
SERVICE_NAME = 'heartbeat'
CRM_BIN = '/usr/sbin/crm'
RELOAD_NAME = 'crm-load-replace'


def build_cluster_config(content: bytes, package_refs: List[str], service_ref: str) -> ClusterConfigPlan:
    """Declare the CRM file and the refresh-only reload it triggers."""
    reload = Exec(
        name=RELOAD_NAME,
        command=[CRM_BIN, 'configure', 'load', 'replace', CIB_PATH],
        refreshonly=True,
        requires=[service_ref],
    )
    cib = File(
        name=CIB_PATH,
        content=content,
        mode='0644',
        owner='root',
        group='root',
        requires=list(package_refs),
        notifies=[reload.ref],
    )
    return ClusterConfigPlan(file=cib, reload=reload)


def build_plan(node: NodeConfig, source: ConfigSource, facts: Facts) -> Plan:
    """Build the plan for one host.

    Args:
        node: Heartbeat settings
        source: Template and CRM references, already resolved to paths/URLs
        facts: Facts of the target host

    Returns:
        Plan: The declarations for the host

    Raises:
        UnsupportedPlatform: If the host's OS is not supported. Raised before
            anything is rendered or declared.
    """
    package_set = resolve_platform(facts)
    package_refs = package_set.package_refs

    service = Service(
        name=SERVICE_NAME,
        ensure_running=True,
        enable=True,
        hasstatus=True,
        requires=list(package_refs),
    )
    authkeys = File(
        name=AUTHKEYS_PATH,
        content=render_authkeys(node.authkey),
        mode='0600',
        owner='root',
        group='root',
        sensitive=True,
        requires=list(package_refs),
        notifies=[service.ref],
    )
    ha_cf = File(
        name=HA_CF_PATH,
        content=render_main_config(node, source.config_template),
        mode='0644',
        owner='root',
        group='root',
        requires=list(package_refs),
        notifies=[service.ref],
    )

    plan = Plan(
        platform=package_set.platform,
        package_manager=package_set.package_manager,
        resources=package_set.resources + [authkeys, ha_cf, service],
    )
    if source.cluster_config:
        plan.cluster_config = build_cluster_config(
            load_source(source.cluster_config), package_refs, service.ref
        )

    logger.debug(f"Built plan with {len(plan.all_resources())} resources for {plan.platform.value}")
    return plan


def plan_for_manifest(manifest: Manifest, facts: Facts) -> Plan:
    """Build a plan with the manifest's references resolved against its directory."""
    sources = manifest.sources
    resolved = ConfigSource(
        config_template=manifest.resolve_reference(sources.config_template) if sources.config_template else None,
        cluster_config=manifest.resolve_reference(sources.cluster_config) if sources.cluster_config else None,
    )
    return build_plan(manifest.cluster, resolved, facts)
