"""prompt-registry - Versioned prompt templates with remote sync."""

from .config import RegistryConfig, load_config
from .errors import (
    Err,
    ErrorKind,
    MissingVariablesError,
    Ok,
    PromptNotFoundError,
    RegistryError,
    SyncError,
    VersionNotFoundError,
)
from .merge import MergeResult, MergeStrategy, merge_registries
from .registry import PromptSummary, Registry, RegistryMetadata
from .storage import JsonFileStorage, MemoryStorage
from .sync import ErrorPolicy, SyncOptions, SyncResult
from .template import PromptVersion, RenderedPrompt
from .versioning import compare_versions

__version__ = "0.2.0"
__all__ = [
    "Err",
    "ErrorKind",
    "ErrorPolicy",
    "JsonFileStorage",
    "MemoryStorage",
    "MergeResult",
    "MergeStrategy",
    "MissingVariablesError",
    "Ok",
    "PromptNotFoundError",
    "PromptSummary",
    "PromptVersion",
    "Registry",
    "RegistryConfig",
    "RegistryError",
    "RegistryMetadata",
    "RenderedPrompt",
    "SyncError",
    "SyncOptions",
    "SyncResult",
    "VersionNotFoundError",
    "compare_versions",
    "load_config",
    "merge_registries",
]
