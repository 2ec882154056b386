"""Configuration management for the hactl application.

Configuration comes from two places:
1. ``Config`` holds process-wide settings read from the environment
   (a ``.env`` file is loaded first if it exists).
2. ``Manifest`` is the YAML document describing one cluster: the heartbeat
   node settings, where the configuration templates come from and which
   hosts the plan is applied to.
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

# Load environment variables from .env file if it exists
load_dotenv()

logger = logging.getLogger("hactl.config")


class Config:
    """Application configuration with sensible defaults."""

    # Logging
    LOG_LEVEL: str = os.getenv("HACTL_LOG_LEVEL", "INFO").upper()

    # SSH defaults for manifest hosts
    SSH_USER: str = os.getenv("HACTL_SSH_USER", "root")
    SSH_KEY_PATH: str = os.getenv("HACTL_SSH_KEY_PATH", "")
    SSH_PORT: int = int(os.getenv("HACTL_SSH_PORT", "22"))

    # Timeouts (in seconds)
    SSH_TIMEOUT: int = int(os.getenv("HACTL_SSH_TIMEOUT", "10"))
    COMMAND_TIMEOUT: int = int(os.getenv("HACTL_COMMAND_TIMEOUT", "600"))
    FETCH_TIMEOUT: int = int(os.getenv("HACTL_FETCH_TIMEOUT", "30"))

    # Default manifest location
    MANIFEST: str = os.getenv("HACTL_MANIFEST", "hactl.yaml")

    # Security
    REDACT_KEYS: tuple = ("authkey", "password", "secret", "token")


class ManifestError(Exception):
    """Raised when a manifest cannot be read or does not validate."""
    pass


class NodeConfig(BaseModel):
    """Heartbeat settings shared by every node of the cluster."""
    model_config = ConfigDict(extra="forbid")

    authkey: str = Field(..., min_length=1, description="Shared secret written to the authkeys file")
    nodes: List[str] = Field(..., min_length=1, description="Names of the cluster members")
    ping: str = Field(..., min_length=1, description="Ping node used for connectivity checks")
    port: int = Field(default=691, ge=1, le=65535, description="UDP port for heartbeat traffic")
    interface: str = Field(default="eth0", min_length=1, description="Broadcast interface")
    # Passed to the template as given; heartbeat also accepts units like "500ms"
    keepalive: Union[int, str] = Field(default=1, description="Time between heartbeats")
    warntime: Union[int, str] = Field(default=6, description="Time before a late heartbeat warning")
    deadtime: Union[int, str] = Field(default=10, description="Time before a node is declared dead")
    initdead: Union[int, str] = Field(default=15, description="deadtime used right after startup")

    @field_validator("nodes")
    @classmethod
    def check_node_names(cls, v: List[str]) -> List[str]:
        names = [name.strip() for name in v]
        if any(not name for name in names):
            raise ValueError("node names cannot be empty")
        return names


class ConfigSource(BaseModel):
    """Where the main configuration template and the CRM payload come from."""
    model_config = ConfigDict(extra="forbid")

    config_template: Optional[str] = Field(
        default=None,
        description="Jinja2 template for ha.cf; empty selects the built-in default",
    )
    cluster_config: Optional[str] = Field(
        default=None,
        description="Path or URL of a crm configuration loaded on change",
    )

    @field_validator("config_template", "cluster_config")
    @classmethod
    def blank_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class SSHTarget(BaseModel):
    """A host the plan is applied to over SSH."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    user: str = Field(default_factory=lambda: Config.SSH_USER)
    port: int = Field(default_factory=lambda: Config.SSH_PORT, ge=1, le=65535)
    key_path: Optional[str] = Field(default_factory=lambda: Config.SSH_KEY_PATH or None)
    sudo: bool = Field(default=False, description="Prefix commands with sudo -n")

    @field_validator("key_path")
    @classmethod
    def expand_key_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand the user home directory in the key path."""
        return os.path.expanduser(v) if v else None


class Manifest(BaseModel):
    """A cluster manifest loaded from YAML."""
    model_config = ConfigDict(extra="forbid")

    cluster: NodeConfig
    sources: ConfigSource = Field(default_factory=ConfigSource)
    hosts: List[SSHTarget] = Field(default_factory=list)

    _base_dir: Path = PrivateAttr(default_factory=Path.cwd)

    @field_validator("hosts")
    @classmethod
    def unique_host_names(cls, v: List[SSHTarget]) -> List[SSHTarget]:
        seen = set()
        for host in v:
            if host.name in seen:
                raise ValueError(f"duplicate host name: {host.name}")
            seen.add(host.name)
        return v

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Manifest':
        """Load and validate a manifest file.

        The authkey may be left out of the file and provided through the
        ``HACTL_AUTHKEY`` environment variable instead.

        Raises:
            ManifestError: If the file cannot be read or is invalid
        """
        path = Path(path).expanduser().absolute()
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ManifestError(f"Cannot read manifest {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {path} must be a mapping")

        cluster = data.get("cluster")
        env_authkey = os.getenv("HACTL_AUTHKEY")
        if isinstance(cluster, dict) and not cluster.get("authkey") and env_authkey:
            logger.debug("Using authkey from HACTL_AUTHKEY")
            data = {**data, "cluster": {**cluster, "authkey": env_authkey}}

        try:
            manifest = cls.model_validate(data)
        except ValidationError as e:
            raise ManifestError(f"Invalid manifest {path}:\n{e}") from e

        manifest._base_dir = path.parent
        logger.debug(f"Loaded manifest {path} ({len(manifest.hosts)} hosts)")
        return manifest

    def resolve_reference(self, ref: str) -> str:
        """Resolve a template/source reference relative to the manifest."""
        if "://" in ref:
            return ref
        p = Path(ref).expanduser()
        if not p.is_absolute():
            p = self._base_dir / p
        return str(p)

    def find_host(self, name: str) -> SSHTarget:
        for host in self.hosts:
            if host.name == name:
                return host
        known = ", ".join(h.name for h in self.hosts) or "none"
        raise ManifestError(f"Host {name!r} is not defined in the manifest (known: {known})")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
