"""hactl - heartbeat/pacemaker node provisioning."""

__version__ = "0.1.0"
