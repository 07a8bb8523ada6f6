"""
storepkgtool - Store Package Tool

A Python-based CLI tool that builds Store submission payloads from
localized listing XML (PDP) files, localized media and app packages, and
publishes them through the Store submission API.

storepkgtool provides:
  - Schema-validated localized listings with media fallback languages
  - Metadata extraction from packages, bundles and upload containers
  - Canonical package file names
  - Reproducible .json/.zip submission payloads, and payload merging
  - Redundant package retention when updating submissions
  - Submission update, upload, processing wait and commit

Quick Start
-----------
Write a configuration file:

    $ storepkg init-config store/config.yaml --app-id 9NBLGGH4R315

Build a payload:

    $ storepkg package store/config.yaml

For full CLI documentation:

    $ storepkg --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    High-level orchestration functions.
config : package
    YAML configuration loading, merging and templates.
listing : package
    PDP parsing/validation and localized media resolution.
packages : package
    Package metadata, formatted names and retention.
submission : package
    Submission body assembly and payload archives.
store : package
    Store submission API client and publishing.

Public API
----------
The primary interface is the CLI, but key functions are exported for
programmatic use:

    from storepkgtool.core import new_submission_package
    from storepkgtool.packages import read_package_metadata
    from storepkgtool.listing import resolve_media
"""

__version__ = "0.1.0"
__description__ = "Store Package Tool - Store submission payloads and publishing"

# Re-export commonly used functions for convenience
from storepkgtool.core import (
    merge_submission_packages,
    new_submission_package,
    publish_payload,
)
from storepkgtool.packages import (
    compute_formatted_name,
    read_package_metadata,
    select_packages_to_keep,
)

__all__ = [
    "__version__",
    "new_submission_package",
    "merge_submission_packages",
    "publish_payload",
    "read_package_metadata",
    "compute_formatted_name",
    "select_packages_to_keep",
]
