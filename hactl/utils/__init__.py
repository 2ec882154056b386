"""Utility functions and helpers for the hactl application."""
from typing import Any, Iterable, Optional

import yaml

from ..config import Config

REDACTED = "[REDACTED]"


def redact_sensitive_data(data: Any, keys: Optional[Iterable[str]] = None) -> Any:
    """Recursively redact sensitive data from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information
        keys: Key fragments to redact (default: Config.REDACT_KEYS)

    Returns:
        Data with sensitive values redacted
    """
    keys = tuple(keys) if keys is not None else Config.REDACT_KEYS
    if isinstance(data, dict):
        return {
            k: REDACTED if any(
                redact_key.lower() in str(k).lower()
                for redact_key in keys
            ) else redact_sensitive_data(v, keys)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item, keys) for item in data]
    return data


def dump_yaml(data: Any) -> str:
    """Serialize data as block-style YAML, keeping key order."""
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
