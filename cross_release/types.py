"""Shared type definitions for cross_release.

This module contains dataclasses and enums shared across subpackages to
avoid circular imports.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class JobStatus(str, Enum):
    """Status of a single target build job."""

    PENDING = "pending"
    PROVISIONING = "provisioning"
    BUILDING = "building"
    PACKAGING = "packaging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are possible."""
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


class OSFamily(str, Enum):
    """Operating system family of an execution host."""

    LINUX = "linux"
    MACOS = "macos"
    WINDOWS = "windows"


@dataclass
class Artifact:
    """A packaged binary for one target.

    Attributes:
        name: Deterministic artifact name, ``<tool>-<triple>``.
        triple: Target triple the binary was built for.
        path: Packaged file handed to the upload collaborator.
        source_path: Original build output (left in place).
        size_bytes: File size in bytes.
        sha256: SHA-256 hex digest of the file.
    """

    name: str
    triple: str
    path: Path
    source_path: Path
    size_bytes: int
    sha256: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["path"] = str(self.path)
        data["source_path"] = str(self.source_path)
        return data


@dataclass
class JobResult:
    """Terminal outcome of one target build job."""

    triple: str
    status: JobStatus
    error_code: str | None = None
    diagnostic: str | None = None
    artifact: Artifact | None = None
    cache_hit: bool = False
    log_path: Path | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "triple": self.triple,
            "status": self.status.value,
            "error_code": self.error_code,
            "diagnostic": self.diagnostic,
            "artifact": self.artifact.to_dict() if self.artifact else None,
            "cache_hit": self.cache_hit,
            "log_path": str(self.log_path) if self.log_path else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class MatrixResult:
    """Aggregate outcome of one matrix invocation, keyed by triple."""

    run_id: str
    results: dict[str, JobResult] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and all(r.succeeded for r in self.results.values())

    @property
    def failed(self) -> list[JobResult]:
        return [r for r in self.results.values() if not r.succeeded]

    @property
    def artifacts(self) -> list[Artifact]:
        return [r.artifact for r in self.results.values() if r.artifact is not None]

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 iff every job succeeded."""
        return 0 if self.succeeded else 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "run_id": self.run_id,
            "succeeded": self.succeeded,
            "total": len(self.results),
            "failed": len(self.failed),
            "results": [r.to_dict() for r in self.results.values()],
        }


__all__ = [
    "Artifact",
    "JobResult",
    "JobStatus",
    "MatrixResult",
    "OSFamily",
]
