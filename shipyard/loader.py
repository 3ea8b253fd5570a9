"""Platform and project file loading.

Definitions live in ``<configdir>/platforms/<name>.yaml`` and
``<configdir>/projects/<name>.yaml`` (``.yml`` and ``.json`` are accepted
too) and are validated with the pydantic schemas.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from shipyard.errors import ConfigNotFoundError
from shipyard.platforms.schema import PlatformSchema
from shipyard.projects.project import Project
from shipyard.projects.schema import ProjectSchema

SUPPORTED_SUFFIXES = (".yaml", ".yml", ".json")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_document(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON definition, chosen by file extension."""
    if path.suffix.lower() == ".json":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data
    return load_yaml(path)


def find_definition(kind: str, name: str, search_dir: Path) -> Path:
    """Locate ``<search_dir>/<name>.<suffix>``.

    Raises:
        ConfigNotFoundError: If no definition file exists.
    """
    for suffix in SUPPORTED_SUFFIXES:
        candidate = search_dir / f"{name}{suffix}"
        if candidate.is_file():
            return candidate
    raise ConfigNotFoundError(kind, name, str(search_dir))


def load_platform(name: str, configdir: Path) -> PlatformSchema:
    """Load and validate a platform definition.

    A definition without a ``name`` takes the file's name.

    Raises:
        ConfigNotFoundError: If the platform file does not exist.
        pydantic.ValidationError: If data does not match schema.
    """
    path = find_definition("platform", name, configdir / "platforms")
    data = load_document(path)
    data.setdefault("name", name)
    return PlatformSchema.model_validate(data)


def load_project(
    name: str,
    configdir: Path,
    platform: PlatformSchema,
    output_dir: Path | None = None,
) -> Project:
    """Load and validate a project definition for ``platform``.

    Local component sources resolve relative to ``configdir``.

    Raises:
        ConfigNotFoundError: If the project file does not exist.
        pydantic.ValidationError: If data does not match schema.
    """
    path = find_definition("project", name, configdir / "projects")
    data = load_document(path)
    data.setdefault("name", name)
    schema = ProjectSchema.model_validate(data)
    return Project(schema, platform, base_path=configdir, output_dir=output_dir)


__all__ = [
    "find_definition",
    "load_document",
    "load_platform",
    "load_project",
    "load_yaml",
]
