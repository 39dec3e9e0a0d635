"""Read state lists and issue metadata from YAML documents.

A state document is either a sequence of states or a mapping with a
``states`` key holding that sequence. Each item is a state name or a mapping:

    - new
    - name: acknowledged
      condition: acked
      overrides: new
    - name: assigned
      condition: [assignee]
      extends: acknowledged
      counter: unassigned

An empty document has no states. Metadata documents are a mapping of
identifier to value for one issue, or (batch) a mapping of issue key to such
a mapping.
"""

import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from issue_states.errors import ConfigurationError, StateFileError
from issue_states.graph import StateDescriptor, StateGraph, build_graph, normalize_descriptor
from issue_states.metadata import Metadata

LOG = logging.getLogger("issue_states.loader")


def _load_yaml(text: str, source: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise StateFileError(f"Invalid YAML in {source}: {e}") from e


def _read(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise StateFileError(f"Failed to read {path}: {e}") from e


def parse_states(text: str, source: str = "<string>") -> list[StateDescriptor]:
    """Parse a YAML document into state descriptors.

    Raises StateFileError for documents of the wrong shape and
    ConfigurationError(INVALID_DESCRIPTOR) for malformed items.
    """
    data = _load_yaml(text, source)
    if data is None:
        return []
    if isinstance(data, dict):
        if set(data) != {"states"}:
            raise StateFileError(f"{source}: expected a sequence of issue states or a 'states' key")
        data = data["states"] or []
    if not isinstance(data, list):
        raise StateFileError(f"{source}: expected a sequence of issue states")

    descriptors = []
    for position, item in enumerate(data, 1):
        if not isinstance(item, (str, dict)):
            raise StateFileError(f"{source}: state #{position} must be a name or a mapping")
        try:
            descriptors.append(normalize_descriptor(item))
        except ConfigurationError as e:
            raise ConfigurationError(e.kind, f"{source}: state #{position}: {e.detail}") from e
    LOG.debug("Parsed %d states from %s", len(descriptors), source)
    return descriptors


def load_states(path: Path) -> list[StateDescriptor]:
    """Read state descriptors from a YAML file."""
    return parse_states(_read(path), str(path))


def load_graph(path: Path) -> StateGraph:
    """Read a YAML state list and build a validated StateGraph."""
    return build_graph(load_states(path))


def parse_metadata(
    text: str,
    schema: Mapping[str, Any] | None = None,
    source: str = "<string>",
) -> Metadata:
    """Parse one issue's metadata mapping from YAML."""
    data = _load_yaml(text, source)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise StateFileError(f"{source}: expected a mapping of metadata identifiers to values")
    return Metadata.from_raw(data, schema)


def load_metadata(path: Path, schema: Mapping[str, Any] | None = None) -> Metadata:
    """Read one issue's metadata from a YAML file."""
    return parse_metadata(_read(path), schema, str(path))


def load_metadata_batch(path: Path, schema: Mapping[str, Any] | None = None) -> dict[str, Metadata]:
    """Read metadata for many issues: a mapping of issue key to metadata mapping."""
    data = _load_yaml(_read(path), str(path)) or {}
    if not isinstance(data, dict):
        raise StateFileError(f"{path}: expected a mapping of issue keys to metadata")
    batch = {}
    for key, raw in data.items():
        if not isinstance(raw, dict):
            raise StateFileError(f"{path}: metadata of issue {key!r} must be a mapping")
        batch[str(key)] = Metadata.from_raw(raw, schema)
    return batch
