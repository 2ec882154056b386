"""Rendering of the heartbeat configuration files.

``ha.cf`` is rendered with Jinja2 from either a user template or the
built-in ``templates/ha.cf.j2``. The template context is:
- port, interface: UDP port and broadcast interface
- keepalive, warntime, deadtime, initdead: timing parameters, ints or heartbeat time strings such as "500ms"
- nodes: list of cluster member names
- ping: ping node

Template errors are jinja2's own exceptions and are not wrapped here.
"""

import logging
import os
from typing import Optional
from urllib.parse import urlparse

import requests
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .config import Config, NodeConfig

logger = logging.getLogger("hactl.rendering")

DEFAULT_TEMPLATE = 'ha.cf.j2'


def get_template_path() -> str:
    """Get the absolute path to the templates directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


def _environment(search_path: str) -> Environment:
    return Environment(
        loader=FileSystemLoader(search_path),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def render_authkeys(authkey: str) -> str:
    """Content of /etc/ha.d/authkeys for a shared key."""
    return f"auth 1\n1 sha1 {authkey}\n"


def render_main_config(node: NodeConfig, template: Optional[str] = None) -> str:
    """Render ha.cf for the cluster.

    Args:
        node: Heartbeat settings
        template: Path to a Jinja2 template; None or empty uses the default

    Returns:
        str: Rendered configuration

    Raises:
        jinja2.TemplateNotFound: If the template does not exist
        jinja2.TemplateSyntaxError: If the template cannot be parsed
        jinja2.UndefinedError: If the template uses an unknown variable
    """
    if template:
        path = os.path.abspath(os.path.expanduser(template))
        env = _environment(os.path.dirname(path))
        name = os.path.basename(path)
    else:
        env = _environment(get_template_path())
        name = DEFAULT_TEMPLATE
    logger.debug(f"Rendering ha.cf from {template or 'built-in template'}")

    return env.get_template(name).render(
        port=node.port,
        interface=node.interface,
        keepalive=node.keepalive,
        warntime=node.warntime,
        deadtime=node.deadtime,
        initdead=node.initdead,
        nodes=node.nodes,
        ping=node.ping,
    )


def load_source(ref: str, timeout: Optional[int] = None) -> bytes:
    """Read a file source verbatim from a path, file:// or http(s):// URL.

    The raw bytes are returned; line endings and encoding are left untouched.
    """
    scheme = urlparse(ref).scheme
    if scheme in ('http', 'https'):
        logger.debug(f"Fetching {ref}")
        response = requests.get(ref, timeout=timeout or Config.FETCH_TIMEOUT)
        response.raise_for_status()
        return response.content
    if scheme == 'file':
        ref = urlparse(ref).path
    with open(os.path.expanduser(ref), 'rb') as f:
        return f.read()
