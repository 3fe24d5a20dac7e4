from .error import ToolchainError
from .error import MisconfiguredToolchainError
from .error import ResolutionError

from .model import BuildContext
from .model import ResolvedToolchain
from .model import ToolchainRequirement

from .registry import ToolchainRegistry
from .resolver import ToolchainResolver

from .version import __version__

__all__ = (
    "BuildContext",
    "MisconfiguredToolchainError",
    "ResolutionError",
    "ResolvedToolchain",
    "ToolchainError",
    "ToolchainRegistry",
    "ToolchainRequirement",
    "ToolchainResolver",
)
