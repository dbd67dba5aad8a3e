"""
Persistence layer.

A single SQLite-backed key-value store holds every relay record, partitioned
by key prefix so each component owns a disjoint slice.
"""

from .kv_store import CreateResult, KeyValueStore, MoveResult, UpdateResult

__all__ = ["CreateResult", "KeyValueStore", "MoveResult", "UpdateResult"]
