from assetvault.lib.exceptions import (
    AccessDenied,
    AssetVaultError,
    GeneratorTimeout,
    NoStreamFound,
    NotFound,
    NotSupported,
    PartialVariantFailure,
    ProcessingFailed,
    ToolError,
    UploadRejected,
)
from assetvault.lib.keys import checksum, generate_key

__all__ = [
    "AccessDenied",
    "AssetVaultError",
    "GeneratorTimeout",
    "NoStreamFound",
    "NotFound",
    "NotSupported",
    "PartialVariantFailure",
    "ProcessingFailed",
    "ToolError",
    "UploadRejected",
    "checksum",
    "generate_key",
]
