"""
Persistent Storage Module.

Provides JSON-file persistence for the commitment salts that must survive
between the commit and reveal phases.
"""

from truthminer.core.storage.salt_cache import SaltCache, CommitmentRecord, CommitmentMap

__all__ = ["SaltCache", "CommitmentRecord", "CommitmentMap"]
