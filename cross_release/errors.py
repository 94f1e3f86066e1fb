"""Error types for cross_release.

Every error carries a stable ``code`` so job results and CLI output can be
handled programmatically. Only ConfigurationError is fatal to a matrix run;
the rest are caught at the job boundary and recorded on that job's result.
"""


class CrossReleaseError(Exception):
    """Base error for cross_release operations."""

    def __init__(self, message: str, code: str = "cross_release_error") -> None:
        super().__init__(message)
        self.code = code


class ConfigurationError(CrossReleaseError):
    """Raised for a malformed matrix or invalid invocation inputs."""

    def __init__(self, message: str, code: str = "configuration_error") -> None:
        super().__init__(message, code=code)


class HostMismatchError(CrossReleaseError):
    """Raised when a target cannot be built on the executing host."""

    def __init__(
        self,
        triple: str,
        required: str,
        actual: str,
        code: str = "host_mismatch",
    ) -> None:
        super().__init__(
            f"Target {triple} requires a {required} host, running on {actual}",
            code=code,
        )
        self.triple = triple
        self.required = required
        self.actual = actual


class ProvisionError(CrossReleaseError):
    """Raised when toolchain provisioning fails."""

    def __init__(
        self,
        message: str,
        output: str | None = None,
        code: str = "provision_failed",
    ) -> None:
        super().__init__(message, code=code)
        self.output = output


class BuildError(CrossReleaseError):
    """Base error for build execution failures."""

    def __init__(self, message: str, code: str = "build_error") -> None:
        super().__init__(message, code=code)


class ToolchainMissingError(BuildError):
    """Raised when a build is attempted before its toolchain is provisioned."""

    def __init__(self, message: str, code: str = "toolchain_missing") -> None:
        super().__init__(message, code=code)


class CompileFailureError(BuildError):
    """Raised when the compiler reports an error.

    The compiler output is kept verbatim in ``output``.
    """

    def __init__(
        self,
        message: str,
        exit_code: int,
        output: str = "",
        log_path: str | None = None,
        code: str = "compile_failure",
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code
        self.output = output
        self.log_path = log_path


class BuildTimeoutError(BuildError):
    """Raised when a build exceeds its wall-clock limit."""

    def __init__(
        self,
        message: str,
        timeout: float,
        log_path: str | None = None,
        code: str = "build_timeout",
    ) -> None:
        super().__init__(message, code=code)
        self.timeout = timeout
        self.log_path = log_path


class MissingArtifactError(CrossReleaseError):
    """Raised when a successful build produced no expected binary."""

    def __init__(self, message: str, code: str = "missing_artifact") -> None:
        super().__init__(message, code=code)


class StoreError(CrossReleaseError):
    """Raised when a dependency cache write fails."""

    def __init__(self, message: str, code: str = "store_error") -> None:
        super().__init__(message, code=code)


__all__ = [
    "BuildError",
    "BuildTimeoutError",
    "CompileFailureError",
    "ConfigurationError",
    "CrossReleaseError",
    "HostMismatchError",
    "MissingArtifactError",
    "ProvisionError",
    "StoreError",
    "ToolchainMissingError",
]
