"""
Configuration loading and merging for storepkgtool.

This module loads the tool's configuration file and layers it on top of
built-in defaults, so that a config file only needs to state what differs
from a stock submission.

Configuration Layers
--------------------
1. **Built-in defaults** (DEFAULT_CONFIG)
   - Sensible packaging parameters (PDP include pattern, excluded languages)
   - Empty app and in-app-product submission bases
   - Store API endpoint and polling settings

2. **Config file** (YAML, or JSON since JSON is a YAML subset)
   - packageParameters: where PDPs, media and packages live, output naming
   - appSubmission / iapSubmission: fields copied verbatim into payloads
   - store: API endpoint, polling and retention settings

Merge Behavior
--------------
The loader performs deep merging with "last wins" semantics:
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten (strings, numbers, booleans)

Path Resolution
---------------
Relative paths in packageParameters are resolved against the CONFIG FILE
location, so a config and its content tree can be moved together:
  - pdpRootPath, mediaRootPath, outPath
  - every entry of packagePaths

Templates
---------
build_config_template() produces a new config as a plain dict (defaults
plus caller prefill values) that write_config_template() serializes with
yaml.safe_dump. Templates are never produced by editing text in place.

Examples
--------
Basic usage:

    >>> from pathlib import Path
    >>> from storepkgtool.config import load_config
    >>> cfg = load_config(Path("store/config.yaml"))
    >>> cfg["packageParameters"]["pdpInclude"]
    ['*.xml']
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from storepkgtool.exceptions import ConfigError

# -------------------------------
# Defaults
# -------------------------------

DEFAULT_CONFIG: dict[str, Any] = {
    "packageParameters": {
        "pdpRootPath": None,
        "release": None,
        "pdpInclude": ["*.xml"],
        "pdpExclude": [],
        "languageExclude": ["default"],
        "mediaRootPath": None,
        "mediaFallbackLanguage": None,
        "packagePaths": [],
        "outPath": None,
        "outName": None,
        "autoFormatNames": False,
    },
    "appSubmission": {},
    "iapSubmission": {},
    "store": {
        "apiBaseUrl": "https://manage.devcenter.microsoft.com/v1.0/my/",
        "redundantPackagesToKeep": 1,
        "packageProcessing": {
            "pollIntervalSeconds": 60,
            "maxPollAttempts": 60,
        },
    },
}

# Template prefill keys -> location inside the generated config.
_TEMPLATE_FIELDS: dict[str, tuple[str, ...]] = {
    "app_id": ("store", "appId"),
    "pdp_root_path": ("packageParameters", "pdpRootPath"),
    "media_root_path": ("packageParameters", "mediaRootPath"),
    "release": ("packageParameters", "release"),
    "out_path": ("packageParameters", "outPath"),
    "out_name": ("packageParameters", "outName"),
    "package_paths": ("packageParameters", "packagePaths"),
    "media_fallback_language": ("packageParameters", "mediaFallbackLanguage"),
}

# Example submission fields included in a fresh template.
_TEMPLATE_APP_SUBMISSION: dict[str, Any] = {
    "applicationCategory": "NotSet",
    "pricing": {"trialPeriod": "NoFreeTrial", "priceId": "Free"},
    "visibility": "Public",
    "targetPublishMode": "Immediate",
    "targetPublishDate": None,
    "notesForCertification": "",
    "allowTargetFutureDeviceFamilies": {
        "Desktop": True,
        "Mobile": False,
        "Holographic": False,
        "Xbox": False,
    },
    "allowMicrosoftDecideAppAvailabilityToFutureDeviceFamilies": False,
    "enterpriseLicensing": "Online",
    "automaticBackupEnabled": False,
    "canInstallOnRemovableMedia": True,
    "isGameDvrEnabled": False,
    "hasExternalInAppProducts": False,
    "meetAccessibilityGuidelines": False,
}

_TEMPLATE_IAP_SUBMISSION: dict[str, Any] = {
    "contentType": "NotSet",
    "lifetime": "Forever",
    "pricing": {"priceId": "Free"},
    "targetPublishMode": "Immediate",
    "targetPublishDate": None,
    "visibility": "Public",
    "tag": "",
    "keywords": [],
}


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """Loads a YAML file and returns the parsed Python object.

    Raises:
        ConfigError: When the file does not exist, cannot be parsed, or is
            empty.
    """
    if not p.exists():
        raise ConfigError(f"config file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing config: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"config file is empty: {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = copy.deepcopy(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            # Replace lists and scalars entirely
            result[k] = copy.deepcopy(v)
    return result


# -------------------------------
# Path resolution
# -------------------------------


def _resolve_path(raw: Any, base_dir: Path) -> Any:
    if isinstance(raw, str) and raw:
        p = Path(raw).expanduser()
        if not p.is_absolute():
            return str((base_dir / p).resolve())
        return str(p)
    return raw


def _resolve_known_paths(cfg: dict[str, Any], config_dir: Path) -> None:
    """
    Resolve relative path fields inside the merged config.

    Currently handled (all under packageParameters):
      - pdpRootPath, mediaRootPath, outPath
      - packagePaths[*]

    Modifies cfg in place.
    """
    params = cfg.get("packageParameters")
    if not isinstance(params, dict):
        return
    for key in ("pdpRootPath", "mediaRootPath", "outPath"):
        params[key] = _resolve_path(params.get(key), config_dir)
    paths = params.get("packagePaths")
    if isinstance(paths, str):
        paths = [paths]
    if isinstance(paths, list):
        params["packagePaths"] = [_resolve_path(p, config_dir) for p in paths]


def _check_sections(cfg: dict[str, Any], config_path: Path) -> None:
    for section in ("packageParameters", "appSubmission", "iapSubmission", "store"):
        if not isinstance(cfg.get(section), dict):
            raise ConfigError(
                f"config section '{section}' must be a mapping: {config_path}"
            )


# -------------------------------
# Public API
# -------------------------------


def default_config() -> dict[str, Any]:
    """Return a fresh copy of the built-in defaults."""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(config_path: Path) -> dict[str, Any]:
    """Load the effective configuration from a config file.

    Steps
      1) Read the config file (YAML or JSON).
      2) Merge it over the built-in defaults.
      3) Resolve relative paths against the config file's directory.

    Args:
        config_path: Path to the config file.

    Returns:
        The merged configuration dict.

    Raises:
        ConfigError: If the file is missing, unparsable, empty, not a
            mapping, or has a section of the wrong type.
    """
    from storepkgtool.logging import get_global_logger

    logger = get_global_logger()

    config_path = Path(config_path).resolve()
    logger.verbose("CONFIG", f"Loading config: {config_path}")

    raw = _load_yaml_file(config_path)
    if not isinstance(raw, dict):
        raise ConfigError(f"top-level config must be a mapping: {config_path}")

    merged = _deep_merge_dicts(DEFAULT_CONFIG, raw)
    _check_sections(merged, config_path)
    _resolve_known_paths(merged, config_path.parent)

    logger.verbose(
        "CONFIG",
        f"Config has {len(merged)} top-level keys: {', '.join(merged.keys())}",
    )
    for line in yaml.safe_dump(merged, sort_keys=False).splitlines():
        logger.debug("CONFIG", line)

    return merged


def build_config_template(**prefill: Any) -> dict[str, Any]:
    """Build a new config document as a dict.

    Args:
        **prefill: Optional values to place into the template. Supported
            keys: app_id, pdp_root_path, media_root_path, release,
            out_path, out_name, package_paths, media_fallback_language.
            None values are ignored.

    Returns:
        A config dict ready to be serialized.

    Raises:
        ConfigError: If an unknown prefill key is given.
    """
    cfg = default_config()
    cfg["appSubmission"] = copy.deepcopy(_TEMPLATE_APP_SUBMISSION)
    cfg["iapSubmission"] = copy.deepcopy(_TEMPLATE_IAP_SUBMISSION)

    for key, value in prefill.items():
        if key not in _TEMPLATE_FIELDS:
            raise ConfigError(f"Unknown template field: {key}")
        if value is None:
            continue
        section, name = _TEMPLATE_FIELDS[key]
        cfg[section][name] = list(value) if key == "package_paths" else value
    return cfg


def write_config_template(
    output_path: Path, *, force: bool = False, **prefill: Any
) -> Path:
    """Write a new config template to disk.

    Args:
        output_path: Where to write the YAML document.
        force: Overwrite an existing file.
        **prefill: See build_config_template().

    Returns:
        The path written.

    Raises:
        ConfigError: If the file exists and force is False.
    """
    output_path = Path(output_path)
    if output_path.exists() and not force:
        raise ConfigError(
            f"outPath: {output_path} already exists (use force to overwrite)"
        )
    cfg = build_config_template(**prefill)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False, default_flow_style=False)
    return output_path
