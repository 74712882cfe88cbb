"""
Config file discovery and loading for bookstack-sync.

Files are looked up by convention (env override, project directory, user
config directory), read with a YAML loader that understands ``!include``,
merged so that the most specific file wins per top-level section, and
finally have ``${VAR}`` references expanded from the environment.

Usage:
    from bookstack_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BOOKSTACK_SYNC_CONFIG"
PROJECT_DIR_NAME = ".bookstack_sync"
PROJECT_FILE_NAMES = ("config.yml", "config.yaml")

# ---------------------------------------------------------------------------
# ${VAR} expansion
# ---------------------------------------------------------------------------

_REFERENCE_RE = re.compile(
    r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<fallback>[^}]*))?\}"
)


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-fallback}`` in *value*.

    An unset or empty variable expands to its fallback, or to ``""`` when
    none is given.  Text that is not a complete reference is kept as is.
    """
    return _REFERENCE_RE.sub(
        lambda m: os.environ.get(m["name"]) or (m["fallback"] or ""), value
    )


def _interpolate_recursive(obj: Any) -> Any:
    match obj:
        case str():
            return interpolate_env_vars(obj)
        case dict():
            return {key: _interpolate_recursive(val) for key, val in obj.items()}
        case list():
            return [_interpolate_recursive(item) for item in obj]
        case _:
            return obj


# ---------------------------------------------------------------------------
# YAML loading with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` that resolves ``!include other.yml`` nodes.

    Relative includes are taken from the directory of the including file.
    ``chain`` holds the files currently being loaded, outermost first, and
    is used to reject include cycles.  ``yaml.SafeLoader`` itself is left
    without the tag.
    """

    def __init__(self, stream: Any, chain: tuple[Path, ...] = ()) -> None:
        super().__init__(stream)
        self.chain = chain

    def construct_include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = current.parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (included from {current})"
            )
        return _load_yaml_with_includes(target, _chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.construct_include)


def _load_yaml_with_includes(
    path: Path, *, _chain: tuple[Path, ...] = ()
) -> Any:
    """Parse one YAML file, following ``!include`` tags."""
    path = Path(path).resolve()
    text = path.read_text(encoding="utf-8")
    loader = ConfigLoader(text, chain=(*_chain, path))
    try:
        return loader.get_single_data()
    finally:
        loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _global_config_path() -> Path:
    return Path.home() / ".config" / "bookstack_sync" / "config.yml"


def discover_config_files() -> list[Path]:
    """Existing config files, most specific first.

    1. the file named by ``BOOKSTACK_SYNC_CONFIG``
    2. ``./.bookstack_sync/config.yml`` then ``config.yaml``
    3. ``~/.config/bookstack_sync/config.yml``
    """
    candidates: list[Path] = []
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        candidates.append(Path(override).expanduser().resolve())
    project_dir = Path.cwd() / PROJECT_DIR_NAME
    candidates.extend(project_dir / name for name in PROJECT_FILE_NAMES)
    candidates.append(_global_config_path())
    return [path for path in candidates if path.is_file()]


def load_hierarchical_config() -> dict[str, Any]:
    """Read every discovered file and merge them into one raw mapping.

    A more specific file replaces whole top-level sections of a less
    specific one; sections are not deep-merged.  Files whose root is not
    a mapping are skipped with a warning.  ``${VAR}`` references are
    expanded once, after the merge.

    Returns:
        The merged mapping, empty when no config file exists.

    Raises:
        yaml.YAMLError: A config file is not valid YAML.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Reading config %s", path)
        data = _load_yaml_with_includes(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring config %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)
    return _interpolate_recursive(merged)


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# bookstack-sync configuration
#
# Every setting is optional.  Connection settings may instead come from
# BOOKSTACK_URL, BOOKSTACK_TOKEN_ID and BOOKSTACK_TOKEN_SECRET (a .env file
# in the working directory is read).  ${VAR} and ${VAR:-default} are
# expanded; `!include secrets.yml` pulls in another file.
#
# bookstack:
#   url: https://wiki.example.com
#   token_id: ${BOOKSTACK_TOKEN_ID}
#   token_secret: ${BOOKSTACK_TOKEN_SECRET}
#   timeout: 30
#   verify_ssl: true
#   max_retries: 3
#   max_parallel_requests: 1
#
# sync:
#   direction: push
#   conflict_resolution: manual   # local | remote | newest | manual
#   auto_create_structure: true
#   default_book_id: 1
#
# markdown:
#   source_path: docs
#   convert_bookmarks: true
#   exclude_patterns:
#     - "vendor/**"
#     - "node_modules/**"
#
# cache:
#   enabled: true
#   path: .bookstack_sync/cache.sqlite
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """The file settings are read from first, or where one would be created."""
    found = discover_config_files()
    if found:
        return found[0]
    return Path.cwd() / PROJECT_DIR_NAME / PROJECT_FILE_NAMES[0]


def ensure_config(target: Path | None = None) -> Path:
    """Return *target* (or the active config file), creating a starter
    file there when it does not exist yet.

    An existing file is never overwritten.
    """
    path = target if target is not None else resolve_config_path()
    if path.exists():
        logger.debug("Config file already present: %s", path)
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config %s", path)
    return path
