"""Dependency cache ORM models.

The cache index maps a cache key to the archive holding the dependency
state for one (triple, lock fingerprint) pair.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from cross_release.db import Base


class CacheEntry(Base):
    """ORM model for one dependency cache entry.

    Attributes:
        id: Primary key.
        cache_key: Hash of (triple, lock fingerprint); unique.
        triple: Target triple.
        lock_fingerprint: SHA-256 of the lockfile the entry was built from.
        archive_path: Path to the tar.gz archive.
        size_bytes: Archive size in bytes.
        sha256: SHA-256 of the archive.
        created_at: First store time.
        updated_at: Last store time.
    """

    __tablename__ = "cache_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cache_key: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True, index=True
    )
    triple: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    lock_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    archive_path: Mapped[str] = mapped_column(String(500), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of CacheEntry."""
        return (
            f"<CacheEntry(triple='{self.triple}', "
            f"cache_key='{self.cache_key[:16]}...', size={self.size_bytes})>"
        )


__all__ = ["CacheEntry"]
