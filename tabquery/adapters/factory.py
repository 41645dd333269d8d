"""
Adapter Factory for tabquery

Maps a backend ``kind`` to its adapter class and creates connected
adapters. Adapters are never cached or shared: every call returns a fresh
instance owned by the caller.

Usage:
    from tabquery.adapters import get_adapter

    adapter = get_adapter(BackendConfig(kind="embedded"))
"""

import logging
from typing import Any, Dict, List, Type, Union

from tabquery.adapters.base import BaseAdapter
from tabquery.adapters.duckdb_adapter import DuckDBAdapter
from tabquery.adapters.remote_adapter import RemoteAdapter
from tabquery.core.config import BackendConfig
from tabquery.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# ADAPTER REGISTRY
# =============================================================================

# Map of backend kind -> adapter class
_ADAPTER_REGISTRY: Dict[str, Type[BaseAdapter]] = {}


def register_adapter(kind: str, adapter_class: Type[BaseAdapter]) -> None:
    """
    Register an adapter class for a backend kind.

    Args:
        kind: Backend kind (e.g., "embedded", "remote")
        adapter_class: Adapter class to use for this kind
    """
    _ADAPTER_REGISTRY[kind.lower()] = adapter_class
    logger.debug(f"Registered adapter for kind: {kind}")


def list_adapters() -> List[str]:
    """Get list of registered backend kinds."""
    return list(_ADAPTER_REGISTRY.keys())


# =============================================================================
# ADAPTER FACTORY
# =============================================================================

def get_adapter(config: Union[BackendConfig, Dict[str, Any]], connect: bool = True) -> BaseAdapter:
    """
    Create an adapter for the configured backend kind.

    Args:
        config: BackendConfig or raw config dict
        connect: Connect before returning (default: True)

    Returns:
        Adapter instance, connected unless ``connect`` is False

    Raises:
        ConfigurationError: If the config is invalid or the kind unknown
        ConnectionError: If connecting fails
    """
    config = BackendConfig.parse(config)

    adapter_class = _ADAPTER_REGISTRY.get(config.kind)
    if adapter_class is None:
        available = ", ".join(list_adapters())
        raise ConfigurationError(
            f"Unsupported backend kind: {config.kind}. Available: {available}",
            details={"kind": config.kind},
        )

    adapter = adapter_class(config)
    if connect:
        adapter.connect()
    return adapter


# =============================================================================
# BUILT-IN ADAPTERS
# =============================================================================

register_adapter("embedded", DuckDBAdapter)
register_adapter("remote", RemoteAdapter)
