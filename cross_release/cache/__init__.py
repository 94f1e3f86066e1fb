"""Cross-build dependency cache module.

This module handles:
- Cache key computation from target triple and lockfile fingerprint
- Archiving and restoring per-target dependency state
- The cache entry index

Access the store via cross_release.cache.store to avoid import cycles.
"""

from cross_release.cache.keys import CacheInputs, compute_cache_key

__all__ = ["CacheInputs", "compute_cache_key"]
