"""Matrix orchestration.

This module provides the top-level build API:
- expand_matrix(): turn a target matrix into one BuildJob per target
- run_job(): drive one job through provisioning, build and packaging
- run_matrix(): fan jobs out over a thread pool and aggregate the results

Jobs are independent. A failing job never cancels or blocks its siblings;
every job's error is caught at the job boundary and recorded on its result.
Only a malformed matrix aborts a run, before any job starts.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from cross_release.builds.artifacts import (
    generate_manifest,
    package_artifact,
    remove_packaged,
    write_checksums,
    write_manifest,
)
from cross_release.builds.models import JobRecord
from cross_release.builds.runner import run_build, tail_lines
from cross_release.cache.keys import compute_cache_key
from cross_release.config import get_settings
from cross_release.db import get_session
from cross_release.errors import (
    BuildTimeoutError,
    CompileFailureError,
    ConfigurationError,
    CrossReleaseError,
    ProvisionError,
    StoreError,
)
from cross_release.matrix.schema import MatrixSchema, TargetSchema, find_duplicate_triples
from cross_release.toolchain.provisioner import ToolchainProvisioner
from cross_release.types import Artifact, JobResult, JobStatus, MatrixResult

if TYPE_CHECKING:
    from cross_release.cache.store import DependencyCache
    from cross_release.config import Settings

logger = logging.getLogger(__name__)

UploadHandler = Callable[[Artifact], None]

CHECKSUMS_FILENAME = "SHA256SUMS"
MANIFEST_FILENAME = "manifest.json"


@dataclass
class BuildJob:
    """One target's unit of work within a matrix run.

    Attributes:
        target: Target descriptor.
        manifest_path: Project manifest, shared read-only by all jobs.
        status: Current stage.
    """

    target: TargetSchema
    manifest_path: Path
    status: JobStatus = JobStatus.PENDING

    @property
    def triple(self) -> str:
        return self.target.triple

    def transition(self, status: JobStatus) -> None:
        """Move the job to a new stage."""
        logger.debug("[%s] %s -> %s", self.triple, self.status.value, status.value)
        self.status = status


def expand_matrix(
    matrix: MatrixSchema | Sequence[TargetSchema],
    manifest_path: Path,
) -> list[BuildJob]:
    """Expand a target matrix into build jobs, one per target, in order.

    Raises:
        ConfigurationError: If the matrix is empty or repeats a triple.
    """
    targets = list(matrix.targets if isinstance(matrix, MatrixSchema) else matrix)
    if not targets:
        raise ConfigurationError("Target matrix is empty")
    duplicates = find_duplicate_triples(targets)
    if duplicates:
        raise ConfigurationError(
            f"Target matrix repeats triple(s): {', '.join(duplicates)}"
        )
    return [BuildJob(target=t, manifest_path=manifest_path) for t in targets]


def _diagnostic(error: CrossReleaseError, settings: Settings) -> str:
    if isinstance(error, ProvisionError) and error.output:
        return f"{error}\n{tail_lines(error.output, settings.diagnostic_tail_lines)}"
    return str(error)


def _error_log_path(error: CrossReleaseError) -> Path | None:
    if isinstance(error, (CompileFailureError, BuildTimeoutError)) and error.log_path:
        return Path(error.log_path)
    return None


def run_job(
    job: BuildJob,
    provisioner: ToolchainProvisioner,
    cache: DependencyCache | None,
    settings: Settings,
    upload: UploadHandler | None = None,
) -> JobResult:
    """Run one job to a terminal state.

    Stages run strictly in order: host check and cache restore, toolchain
    provisioning, build, packaging, upload handoff, cache store. This
    function does not raise; failures are returned as a failed JobResult.
    """
    triple = job.triple
    started_at = datetime.now(timezone.utc)
    cache_hit = False
    log_path: Path | None = None

    try:
        job.transition(JobStatus.PROVISIONING)
        provisioner.check_host(triple, job.target.host_os)
        remove_packaged(settings.dist_dir, settings.tool_name, triple)

        cache_key = None
        cache_inputs = None
        if job.target.use_cache and cache is not None:
            try:
                cache_key, cache_inputs = compute_cache_key(triple, job.manifest_path)
            except OSError as e:
                logger.warning("[%s] Cannot fingerprint dependencies: %s", triple, e)
            if cache_key is not None:
                blob = cache.lookup(cache_key)
                if blob is not None:
                    try:
                        cache.restore(blob)
                        cache_hit = True
                    except StoreError as e:
                        logger.warning("[%s] Ignoring cache entry: %s", triple, e)

        provisioner.ensure(triple, job.target.host_os)

        job.transition(JobStatus.BUILDING)
        output = run_build(triple, job.manifest_path, provisioner, settings)
        log_path = output.log_path

        job.transition(JobStatus.PACKAGING)
        artifact = package_artifact(
            triple, output.output_dir, settings.dist_dir, settings.tool_name
        )
        if upload is not None:
            try:
                upload(artifact)
            except Exception as e:
                raise CrossReleaseError(
                    f"Upload of {artifact.name} failed: {e}", code="upload_failed"
                ) from e

        if cache is not None and cache_key is not None and not cache_hit:
            try:
                cache.store(cache_key, cache_inputs)
            except StoreError as e:
                logger.warning("[%s] Dependency cache not stored: %s", triple, e)

        job.transition(JobStatus.SUCCEEDED)
        return JobResult(
            triple=triple,
            status=JobStatus.SUCCEEDED,
            artifact=artifact,
            cache_hit=cache_hit,
            log_path=log_path,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    except CrossReleaseError as e:
        job.transition(JobStatus.FAILED)
        logger.error("[%s] %s: %s", triple, e.code, str(e).partition("\n")[0])
        return JobResult(
            triple=triple,
            status=JobStatus.FAILED,
            error_code=e.code,
            diagnostic=_diagnostic(e, settings),
            cache_hit=cache_hit,
            log_path=_error_log_path(e) or log_path,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
    except Exception as e:
        job.transition(JobStatus.FAILED)
        logger.exception("[%s] Unexpected error", triple)
        return JobResult(
            triple=triple,
            status=JobStatus.FAILED,
            error_code="internal_error",
            diagnostic=f"{type(e).__name__}: {e}",
            cache_hit=cache_hit,
            log_path=log_path,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )


def record_results(
    session_factory: sessionmaker[Session],
    result: MatrixResult,
) -> None:
    """Persist the job results of a run."""
    with get_session(session_factory) as session:
        for job_result in result.results.values():
            session.add(JobRecord.from_result(result.run_id, job_result))
    logger.debug("Recorded %d job result(s) for run %s", len(result.results), result.run_id)


def run_matrix(
    matrix: MatrixSchema | Sequence[TargetSchema],
    manifest_path: Path,
    settings: Settings | None = None,
    provisioner: ToolchainProvisioner | None = None,
    cache: DependencyCache | None = None,
    upload: UploadHandler | None = None,
    session_factory: sessionmaker[Session] | None = None,
    run_id: str | None = None,
) -> MatrixResult:
    """Build every target of a matrix.

    This is the main entry point for a release run. It:
    1. Validates the matrix and manifest (fatal on error, nothing runs)
    2. Dispatches one job per target onto a thread pool
    3. Waits for every job and aggregates the results in matrix order
    4. Writes SHA256SUMS and a manifest for the packaged artifacts
    5. Persists job records when a session factory is given

    Args:
        matrix: Target matrix.
        manifest_path: Project manifest forwarded to every build.
        settings: Application settings.
        provisioner: Host toolchain provisioner (created if not provided).
        cache: Dependency cache (created if not provided and any target
            uses caching).
        upload: Callable receiving each packaged artifact.
        session_factory: Session factory for job history.
        run_id: Run identifier (generated if not provided).

    Returns:
        MatrixResult with exactly one JobResult per target.

    Raises:
        ConfigurationError: If the matrix or manifest is invalid.
    """
    if settings is None:
        settings = get_settings()

    manifest_path = Path(manifest_path)
    jobs = expand_matrix(matrix, manifest_path)
    if not manifest_path.is_file():
        raise ConfigurationError(f"Manifest not found: {manifest_path}")

    if provisioner is None:
        provisioner = ToolchainProvisioner(settings)
    if cache is None and any(job.target.use_cache for job in jobs):
        from cross_release.cache.store import DependencyCache

        cache = DependencyCache(settings, session_factory=session_factory)

    run_id = run_id or uuid.uuid4().hex[:12]
    logger.info(
        "Run %s: building %s for %d target(s)",
        run_id,
        settings.tool_name,
        len(jobs),
    )

    results: dict[str, JobResult] = {}
    max_workers = min(settings.max_parallel_jobs, len(jobs))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(run_job, job, provisioner, cache, settings, upload): job
            for job in jobs
        }
        for future in as_completed(futures):
            job = futures[future]
            job_result = future.result()
            results[job.triple] = job_result
            if job_result.succeeded:
                logger.info("  [OK] %s", job.triple)
            else:
                logger.info("  [FAIL] %s (%s)", job.triple, job_result.error_code)

    matrix_result = MatrixResult(
        run_id=run_id,
        results={job.triple: results[job.triple] for job in jobs},
    )

    # Rewritten on every run, including runs with no artifacts
    artifacts = matrix_result.artifacts
    write_checksums(artifacts, settings.dist_dir / CHECKSUMS_FILENAME)
    write_manifest(
        generate_manifest(artifacts, run_id=run_id, tool_name=settings.tool_name),
        settings.dist_dir / MANIFEST_FILENAME,
    )

    if session_factory is not None:
        record_results(session_factory, matrix_result)

    logger.info(
        "Run %s finished: %d/%d target(s) succeeded",
        run_id,
        len(matrix_result.results) - len(matrix_result.failed),
        len(matrix_result.results),
    )
    return matrix_result


def list_job_records(
    session: Session,
    run_id: str | None = None,
    triple: str | None = None,
    status: JobStatus | None = None,
    limit: int = 100,
) -> list[JobRecord]:
    """List job records with optional filters, newest first."""
    stmt = select(JobRecord)

    if run_id is not None:
        stmt = stmt.where(JobRecord.run_id == run_id)
    if triple is not None:
        stmt = stmt.where(JobRecord.triple == triple)
    if status is not None:
        stmt = stmt.where(JobRecord.status == status.value)

    stmt = stmt.order_by(JobRecord.id.desc()).limit(limit)

    return list(session.execute(stmt).scalars().all())


__all__ = [
    "CHECKSUMS_FILENAME",
    "MANIFEST_FILENAME",
    "BuildJob",
    "UploadHandler",
    "expand_matrix",
    "list_job_records",
    "record_results",
    "run_job",
    "run_matrix",
]
