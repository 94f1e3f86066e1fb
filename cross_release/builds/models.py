"""Build ORM models.

This module defines the JobRecord model storing the terminal outcome of
each target job of a matrix run.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from cross_release.db import Base
from cross_release.types import JobResult, JobStatus


class JobRecord(Base):
    """ORM model for one target job of a matrix run.

    Attributes:
        id: Primary key.
        run_id: Identifier shared by all jobs of one invocation.
        triple: Target triple.
        status: Terminal status (succeeded or failed).
        error_type: Error code if the job failed.
        error_message: Diagnostic text if the job failed.
        artifact_name: Packaged artifact name.
        artifact_path: Packaged artifact path.
        artifact_sha256: SHA-256 of the packaged artifact.
        artifact_size_bytes: Size of the packaged artifact.
        cache_hit: Whether dependency state was restored from cache.
        log_path: Build log path.
        recorded_at: Row creation time.
        started_at: Job start time.
        finished_at: Job finish time.
    """

    __tablename__ = "job_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    triple: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    artifact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    artifact_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    artifact_sha256: Mapped[str | None] = mapped_column(String(64), nullable=True)
    artifact_size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    cache_hit: Mapped[bool] = mapped_column(nullable=False, default=False)
    log_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_job_records_triple_status", "triple", "status"),)

    def __repr__(self) -> str:
        """Return string representation of JobRecord."""
        return (
            f"<JobRecord(id={self.id}, run_id='{self.run_id}', "
            f"triple='{self.triple}', status='{self.status}')>"
        )

    @classmethod
    def from_result(cls, run_id: str, result: JobResult) -> "JobRecord":
        """Create a record from a job result."""
        artifact = result.artifact
        return cls(
            run_id=run_id,
            triple=result.triple,
            status=result.status.value,
            error_type=result.error_code,
            error_message=result.diagnostic,
            artifact_name=artifact.name if artifact else None,
            artifact_path=str(artifact.path) if artifact else None,
            artifact_sha256=artifact.sha256 if artifact else None,
            artifact_size_bytes=artifact.size_bytes if artifact else None,
            cache_hit=result.cache_hit,
            log_path=str(result.log_path) if result.log_path else None,
            started_at=result.started_at,
            finished_at=result.finished_at,
        )

    def is_succeeded(self) -> bool:
        """Check if this job succeeded."""
        return self.status == JobStatus.SUCCEEDED.value


__all__ = ["JobRecord"]
