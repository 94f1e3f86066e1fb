"""Dependency cache store.

This module provides the cache used between runs of the same target:
- lookup(): find the archive stored for a cache key
- store(): archive the current dependency state under a cache key
- restore(): unpack an archive back into CARGO_HOME

Archives live under ``<cache_dir>/deps/<triple>/`` and are indexed in the
database. Writes go through a temporary file and an atomic rename, so
concurrent writers of one key resolve to the last write.
"""

from __future__ import annotations

import logging
import os
import tarfile
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from cross_release.builds.artifacts import compute_file_hash
from cross_release.cache.keys import CacheInputs
from cross_release.cache.models import CacheEntry
from cross_release.config import get_settings
from cross_release.db import get_session, open_database
from cross_release.errors import StoreError

if TYPE_CHECKING:
    from cross_release.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheBlob:
    """A stored dependency state archive."""

    key: str
    triple: str
    path: Path
    size_bytes: int
    sha256: str
    created_at: datetime | None = None


def _blob_from_entry(entry: CacheEntry) -> CacheBlob:
    return CacheBlob(
        key=entry.cache_key,
        triple=entry.triple,
        path=Path(entry.archive_path),
        size_bytes=entry.size_bytes,
        sha256=entry.sha256,
        created_at=entry.created_at,
    )


class DependencyCache:
    """Keyed store of per-target dependency state."""

    def __init__(
        self,
        settings: Settings | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        if session_factory is None:
            session_factory = open_database(self.settings.db_url)
        self._session_factory = session_factory

    @property
    def root(self) -> Path:
        return self.settings.cache_dir / "deps"

    def archive_path(self, key: str, triple: str) -> Path:
        """Return where the archive for a key is stored."""
        digest = key.split(":", 1)[-1]
        return self.root / triple / f"{digest}.tar.gz"

    def lookup(self, key: str) -> CacheBlob | None:
        """Look up the blob stored under a key.

        An index entry whose archive no longer exists counts as a miss.
        """
        with get_session(self._session_factory) as session:
            entry = session.execute(
                select(CacheEntry).where(CacheEntry.cache_key == key)
            ).scalar_one_or_none()
            if entry is None:
                logger.info("Cache miss for key %s", key[:32])
                return None
            blob = _blob_from_entry(entry)

        if not blob.path.is_file():
            logger.warning(
                "Cache entry %s points at missing archive %s", key[:32], blob.path
            )
            return None
        logger.info("Cache hit for key %s (%s)", key[:32], blob.triple)
        return blob

    def store(self, key: str, inputs: CacheInputs) -> CacheBlob:
        """Archive the current dependency state under a key.

        Args:
            key: Cache key.
            inputs: Inputs the key was computed from.

        Returns:
            The stored blob.

        Raises:
            StoreError: If there is nothing to archive or the write fails.
        """
        final_path = self.archive_path(key, inputs.triple)
        sources = [
            (rel, self.settings.cargo_home / rel)
            for rel in self.settings.cache_paths
            if (self.settings.cargo_home / rel).exists()
        ]
        if not sources:
            raise StoreError(
                f"No dependency state under {self.settings.cargo_home} to cache"
            )

        tmp_path: Path | None = None
        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file, then move over the final archive
            with tempfile.NamedTemporaryFile(
                dir=final_path.parent, suffix=".tmp", delete=False
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
            with tarfile.open(tmp_path, "w:gz") as tar:
                for rel, source in sources:
                    tar.add(source, arcname=rel)
            os.replace(tmp_path, final_path)
            tmp_path = None
        except (OSError, tarfile.TarError) as e:
            raise StoreError(f"Failed to write cache archive {final_path}: {e}") from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()

        size_bytes = final_path.stat().st_size
        sha256 = compute_file_hash(final_path)
        try:
            self._upsert(key, inputs, final_path, size_bytes, sha256)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to index cache entry {key[:32]}: {e}") from e

        logger.info(
            "Stored dependency cache for %s (%d bytes, key=%s)",
            inputs.triple,
            size_bytes,
            key[:32],
        )
        return CacheBlob(
            key=key,
            triple=inputs.triple,
            path=final_path,
            size_bytes=size_bytes,
            sha256=sha256,
            created_at=datetime.now(),
        )

    def _upsert(
        self,
        key: str,
        inputs: CacheInputs,
        path: Path,
        size_bytes: int,
        sha256: str,
    ) -> None:
        for attempt in range(2):
            try:
                with get_session(self._session_factory) as session:
                    entry = session.execute(
                        select(CacheEntry).where(CacheEntry.cache_key == key)
                    ).scalar_one_or_none()
                    if entry is None:
                        entry = CacheEntry(cache_key=key)
                        session.add(entry)
                    entry.triple = inputs.triple
                    entry.lock_fingerprint = inputs.lock_fingerprint
                    entry.archive_path = str(path)
                    entry.size_bytes = size_bytes
                    entry.sha256 = sha256
                    entry.updated_at = datetime.now()
                return
            except IntegrityError:
                # Another writer inserted the key first; update its row instead
                if attempt:
                    raise

    def restore(self, blob: CacheBlob) -> None:
        """Unpack a stored blob into CARGO_HOME.

        Raises:
            StoreError: If the archive is unreadable or unsafe.
        """
        dest = self.settings.cargo_home
        logger.info("Restoring dependency cache %s into %s", blob.key[:32], dest)
        try:
            dest.mkdir(parents=True, exist_ok=True)
            with tarfile.open(blob.path, "r:gz") as tar:
                for member in tar.getmembers():
                    member_path = Path(member.name)
                    if member_path.is_absolute() or ".." in member_path.parts:
                        raise StoreError(
                            f"Refusing to extract {member.name}: path traversal detected",
                            code="restore_failed",
                        )
                tar.extractall(dest, filter="data")
        except (OSError, tarfile.TarError) as e:
            raise StoreError(
                f"Failed to restore cache archive {blob.path}: {e}",
                code="restore_failed",
            ) from e

    def list_entries(self, triple: str | None = None) -> list[CacheBlob]:
        """List indexed cache entries, newest first."""
        stmt = select(CacheEntry)
        if triple is not None:
            stmt = stmt.where(CacheEntry.triple == triple)
        stmt = stmt.order_by(CacheEntry.triple, CacheEntry.id.desc())
        with get_session(self._session_factory) as session:
            return [_blob_from_entry(e) for e in session.execute(stmt).scalars().all()]


__all__ = ["CacheBlob", "DependencyCache"]
