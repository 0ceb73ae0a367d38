"""Error taxonomy shared by storage, generators and the processing pipeline."""

from __future__ import annotations


class AssetVaultError(Exception):
    """Base class for all assetvault errors."""


class NotFound(AssetVaultError):
    """Raised when a stored object does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"File not found: {key}")
        self.key = key


class NotSupported(AssetVaultError):
    """Raised when an operation is unavailable on the active backend."""

    def __init__(self, operation: str, backend: str = "local") -> None:
        super().__init__(f"{operation} is not supported by the {backend} storage backend")
        self.operation = operation
        self.backend = backend


class NoStreamFound(AssetVaultError):
    """Raised when probing finds no stream of the requested type."""

    def __init__(self, stream_type: str) -> None:
        super().__init__(f"No {stream_type} stream found")
        self.stream_type = stream_type


class GeneratorTimeout(AssetVaultError):
    """Raised when an external processing tool exceeds its time budget."""


class ProcessingFailed(AssetVaultError):
    """Raised when a mandatory job has exhausted its retry budget."""

    def __init__(self, asset_id: str, job_type: str, cause: BaseException | str | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{job_type} failed for asset {asset_id}{detail}")
        self.asset_id = asset_id
        self.job_type = job_type
        self.cause = cause


class PartialVariantFailure(AssetVaultError):
    """Non-fatal: some variant presets could not be produced.

    ``errors`` maps preset name to the error message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        names = ", ".join(sorted(errors))
        super().__init__(f"Variant presets failed: {names}")
        self.errors = errors


class AccessDenied(AssetVaultError):
    """Raised when a caller may not obtain a download URL."""


class ToolError(AssetVaultError):
    """Raised when an external processing tool exits unsuccessfully."""

    def __init__(self, tool: str, returncode: int, stderr: str = "") -> None:
        lines = stderr.strip().splitlines()
        message = lines[-1] if lines else "no output"
        super().__init__(f"{tool} exited with status {returncode}: {message}")
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr


class UploadRejected(AssetVaultError):
    """Raised when an upload fails size or type validation."""
