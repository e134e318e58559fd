"""Chain data package: per-network snapshots and the snapshot cache."""
from .chain_cache import ChainDataCache
from .snapshot import CachedSnapshot, ChainSnapshot

__all__ = [
    "CachedSnapshot",
    "ChainDataCache",
    "ChainSnapshot",
]
