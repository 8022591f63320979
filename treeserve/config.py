# python
"""
treeserve/config.py
Settings: defaults, the JSON settings file, and TREESERVE_* environment overrides.
"""
import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
from jsonschema.exceptions import best_match

from .env import load_env
from .errors import ConfigError
from .filetypes import DEFAULT_TYPES, TypeLookup
from .stat_walker import DEFAULT_MARKER
from .tree import TREE_NODE_SCHEMA, Node, build_tree, iter_roots

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {"host": "0.0.0.0", "port": 2323, "banner": "Welcome to treeserve"},
    "paths": {"logs_dir": "logs", "events_file": "logs/events.jsonl"},
    "limits": {"max_output_bytes": 16384},
    "tree": {},
    "types": DEFAULT_TYPES,
    "marker_file": DEFAULT_MARKER,
    "debug_level": 0,
    "hostname": "treeserve",
}

# sections merged key by key; everything else in a settings file replaces the default
MERGED_SECTIONS = ("server", "paths", "limits")

SETTINGS_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "definitions": {"tree_node": TREE_NODE_SCHEMA},
    "type": "object",
    "properties": {
        "server": {
            "type": "object",
            "properties": {
                "host": {"type": "string"},
                "port": {"type": "integer", "minimum": 0, "maximum": 65535},
                "banner": {"type": "string"},
            },
        },
        "paths": {
            "type": "object",
            "properties": {
                "logs_dir": {"type": "string"},
                "events_file": {"type": "string"},
            },
        },
        "limits": {
            "type": "object",
            "properties": {"max_output_bytes": {"type": "integer", "minimum": 1}},
        },
        "tree": {"$ref": "#/definitions/tree_node"},
        "types": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": {"type": "string"}},
        },
        "marker_file": {"type": "string", "minLength": 1},
        "debug_level": {"type": "integer", "minimum": -4, "maximum": 4},
        "hostname": {"type": "string"},
    },
}

ENV_OVERRIDES = {
    "TREESERVE_HOST": (("server", "host"), str),
    "TREESERVE_PORT": (("server", "port"), int),
    "TREESERVE_DEBUG_LEVEL": (("debug_level",), int),
    "TREESERVE_MARKER_FILE": (("marker_file",), str),
}


@dataclass
class AppConfig:
    tree: Node
    types: TypeLookup
    marker: str = DEFAULT_MARKER
    debug_level: int = 0
    settings: Dict[str, Any] = field(default_factory=dict, repr=False)


def _json_error_excerpt(text: str, err: json.JSONDecodeError) -> str:
    """
    Reproduce the settings text with a caret line under the offending column.
    """
    lines = text.split("\n")
    upto = lines[: err.lineno]
    caret = "-" * max(err.colno - 1, 0) + "^  " + err.msg
    return "\n".join(upto + [caret] + lines[err.lineno :])


def parse_settings_text(text: str, source: str = "") -> Any:
    text = text.replace("\t", "    ").replace("\r\n", "\n")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}",
            excerpt=_json_error_excerpt(text, exc),
            path=source,
        ) from exc


def validate_settings(settings: Any, source: str = "") -> None:
    validator = jsonschema.Draft7Validator(SETTINGS_SCHEMA)
    error = best_match(validator.iter_errors(settings))
    if error is not None:
        where = "/".join(str(p) for p in error.absolute_path) or "<root>"
        raise ConfigError(f"{where}: {error.message}", path=source)


def merge_settings(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if key in MERGED_SECTIONS and isinstance(value, dict):
            merged[key] = {**merged.get(key, {}), **value}
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _absolutize_tree(raw: Any, base_dir: Path) -> Any:
    if isinstance(raw, str):
        return os.path.normpath(os.path.join(base_dir, os.path.expanduser(raw)))
    if isinstance(raw, dict):
        return {name: _absolutize_tree(value, base_dir) for name, value in raw.items()}
    return raw


def load_settings(path: os.PathLike) -> Dict[str, Any]:
    """
    Read a settings file and merge it over DEFAULT_CONFIG. Relative tree roots
    are taken relative to the directory holding the settings file.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read settings: {exc.strerror or exc}", path=str(path)) from exc
    raw = parse_settings_text(text, str(path))
    validate_settings(raw, str(path))
    if "tree" in raw:
        raw["tree"] = _absolutize_tree(raw["tree"], path.resolve().parent)
    return merge_settings(DEFAULT_CONFIG, raw)


def apply_env_overrides(settings: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    for name, (keys, cast) in ENV_OVERRIDES.items():
        value = environ.get(name)
        if value is None or value == "":
            continue
        try:
            converted = cast(value)
        except ValueError as exc:
            raise ConfigError(f"{name}={value!r} is not a valid {cast.__name__}") from exc
        target = settings
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = converted
    return settings


def load_config(settings_path: Optional[os.PathLike] = None) -> Dict[str, Any]:
    """
    Settings file (argument, else TREESERVE_SETTINGS, else none) merged over
    the defaults, then environment overrides on top.
    """
    load_env()
    settings_path = settings_path or os.environ.get("TREESERVE_SETTINGS")
    if settings_path:
        settings = load_settings(settings_path)
    else:
        settings = copy.deepcopy(DEFAULT_CONFIG)
    return apply_env_overrides(settings)


def build_app_config(settings: Dict[str, Any]) -> AppConfig:
    """
    Build the runtime objects from settings. Raises ConfigurationConflict if
    two types claim the same extension.
    """
    tree = build_tree(settings.get("tree", {}))
    types = TypeLookup.from_config(settings.get("types", {}))
    for trail, root in iter_roots(tree):
        if not os.path.isdir(root.path):
            logger.warning("tree root /%s -> %s is not a directory", "/".join(trail), root.path)
    return AppConfig(
        tree=tree,
        types=types,
        marker=settings.get("marker_file") or DEFAULT_MARKER,
        debug_level=int(settings.get("debug_level", 0)),
        settings=settings,
    )

