"""
Configuration defaults and analysis options.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

# Source path prefixes treated as dependencies or test scaffolding
DEFAULT_IGNORE_PREFIXES: Tuple[str, ...] = (
    "node_modules",
    "test",
    "tests",
    "lib",
    "script",
    "scripts",
)
DEFAULT_OUT_DIR = "out"
BUILD_INFO_DIR = "build-info"
FOUNDRY_CONFIG = "foundry.toml"
DEFAULT_RESULTS_FILE = "slotscope.json"

SLOT_SIZE = 32

# Fixed arrays spanning more slots than this are logged when expanded
LARGE_ARRAY_SLOTS = 4096


@dataclass
class AnalysisOptions:
    """
    Options controlling one analysis run.

    Attributes:
        include_all: Also use pure/view functions as call-graph roots
        include_deps: Expand call targets that live under ignored prefixes
        no_static: Do not report calls to pure/view functions as high-level
        ignore_prefixes: Source path prefixes treated as dependencies
        workers: Number of threads used to analyze contracts of a batch
        include_low_level: Add raw call/send/transfer/delegatecall/staticcall
            sites to call trees as leaves
    """

    include_all: bool = False
    include_deps: bool = False
    no_static: bool = False
    ignore_prefixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_IGNORE_PREFIXES)
    )
    workers: int = 1
    include_low_level: bool = False

    def is_ignored(self, path: str) -> bool:
        """Check whether a source path starts with an ignored prefix."""
        return any(path.startswith(prefix) for prefix in self.ignore_prefixes)
