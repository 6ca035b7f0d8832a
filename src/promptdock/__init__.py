from ._version import __version__
from .client import FetchOutcome, FetchResult, PromptdockError, RegistryClient, UnsafePathError
from .config import Config, load_config
from .manifest import ModificationCheck, check_modification, read_manifest, write_manifest
from .models import Prompt, RegistryMeta, RegistryPayload, SkillManifest, SkillManifestEntry
from .registry import LoadedRegistry, RegistryLoader, RegistrySource, merge_prompts
from .skills import BatchResult, SkillInstaller

__all__ = [
    "__version__",
    "BatchResult",
    "Config",
    "FetchOutcome",
    "FetchResult",
    "LoadedRegistry",
    "ModificationCheck",
    "Prompt",
    "PromptdockError",
    "RegistryClient",
    "RegistryLoader",
    "RegistryMeta",
    "RegistryPayload",
    "RegistrySource",
    "SkillInstaller",
    "SkillManifest",
    "SkillManifestEntry",
    "UnsafePathError",
    "check_modification",
    "load_config",
    "merge_prompts",
    "read_manifest",
    "write_manifest",
]
