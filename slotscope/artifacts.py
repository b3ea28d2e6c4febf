"""
Loading of compiler artifacts.

Locates the Foundry output directory, picks the newest build-info file and
reads it into typed source units. Parsed ASTs are cached per artifact path
and invalidated when the file's modification time changes.
"""

import json
import os
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
import toml

from .config import BUILD_INFO_DIR, DEFAULT_OUT_DIR, FOUNDRY_CONFIG
from .core.nodes import SourceUnit
from .core.reader import ASTReader
from .errors import ArtifactError

logger = structlog.get_logger()


def find_output_directory(root: str) -> str:
    """
    Resolve the compiler output directory of a Foundry project.

    The ``out`` key of ``[profile.default]`` (or a top-level ``out``) in
    ``foundry.toml`` wins; it is taken relative to the config file.

    Args:
        root: Project root directory

    Returns:
        Absolute path of the output directory
    """
    config_path = os.path.join(root, FOUNDRY_CONFIG)
    out = None
    if os.path.isfile(config_path):
        try:
            config = toml.load(config_path)
        except (toml.TomlDecodeError, OSError) as e:
            logger.warning("Could not parse foundry config", path=config_path, error=str(e))
            config = {}
        profile = (config.get("profile") or {}).get("default") or {}
        out = profile.get("out") or config.get("out")
    return os.path.abspath(os.path.join(root, out or DEFAULT_OUT_DIR))


def find_latest_build_info(directory: str) -> Optional[str]:
    """
    Newest ``*.json`` file of a build-info directory.

    Returns:
        Path of the most recently modified file, or None if there is none
    """
    if not os.path.isdir(directory):
        return None
    candidates = [
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if name.endswith(".json")
    ]
    if not candidates:
        return None
    return max(candidates, key=os.path.getmtime)


def resolve_artifact_path(path: str) -> str:
    """
    Turn a CLI path argument into a build-info file.

    A file is used as is; a directory is treated as a project root whose
    latest build-info is selected.

    Raises:
        ArtifactError: If no build-info file can be found
    """
    if os.path.isfile(path):
        return path
    if not os.path.isdir(path):
        raise ArtifactError(f"Artifact path not found: {path}")

    build_info_dir = os.path.join(find_output_directory(path), BUILD_INFO_DIR)
    latest = find_latest_build_info(build_info_dir)
    if latest is None:
        raise ArtifactError(f"No build-info found in {build_info_dir}")
    logger.info("Using latest build-info", path=latest)
    return latest


def load_compiler_output(path: str) -> Dict[str, Any]:
    """
    Read a compiler JSON artifact.

    Raises:
        ArtifactError: If the file is missing or not valid JSON
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise ArtifactError(f"Artifact file not found: {path}")
    except json.JSONDecodeError as e:
        raise ArtifactError(f"Invalid JSON in {path}: {e}")


class AstCache:
    """
    Parsed source units keyed by artifact path.

    An entry is valid as long as the artifact's modification time equals the
    one recorded when it was read. A stale entry is re-read and replaced as a
    whole, so readers never see a partially updated compilation.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[float, List[SourceUnit]]] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> List[SourceUnit]:
        """
        Source units of an artifact, read from disk when not cached or stale.

        Raises:
            ArtifactError: If the artifact cannot be read
        """
        key = os.path.abspath(path)
        try:
            mtime = os.path.getmtime(key)
        except OSError:
            raise ArtifactError(f"Artifact file not found: {path}")

        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and entry[0] == mtime:
            logger.debug("AST cache hit", path=key)
            return entry[1]

        units = ASTReader().read(load_compiler_output(key))
        with self._lock:
            self._entries[key] = (mtime, units)
        logger.debug("AST cache stored", path=key, source_units=len(units))
        return units

    def invalidate(self, path: str) -> None:
        with self._lock:
            self._entries.pop(os.path.abspath(path), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, path: str) -> bool:
        return os.path.abspath(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def select_source_unit(
    units: Sequence[SourceUnit], file_path: str, root: Optional[str] = None
) -> SourceUnit:
    """
    Find the source unit of a user-supplied file path.

    Matches, in order: the unit's absolute path, the path relative to
    ``root``, and a trailing path component match.

    Raises:
        ArtifactError: If no source unit matches
    """
    candidates = [os.path.normpath(file_path)]
    if root is not None:
        candidates.append(os.path.normpath(os.path.relpath(os.path.abspath(file_path), root)))

    for candidate in candidates:
        for unit in units:
            if os.path.normpath(unit.absolute_path) == candidate:
                return unit

    suffix = os.path.normpath(file_path).lstrip("/")
    for unit in units:
        unit_path = os.path.normpath(unit.absolute_path)
        if unit_path.endswith("/" + suffix) or suffix.endswith("/" + unit_path):
            return unit
    raise ArtifactError(f"No source unit matches {file_path}")
