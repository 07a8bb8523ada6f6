"""
Package inspection for storepkgtool.

This package reads metadata out of Store package containers, computes
canonical package file names, and decides which existing packages to keep
when a submission is updated.

Public API:

read_package_metadata : function
    Read metadata from a package, bundle or upload container.
compute_formatted_name : function
    Canonical "[families_]name_version_arch" base name for a package.
select_packages_to_keep : function
    Newest-N-per-group retention over existing submission packages.

Example:
    from pathlib import Path
    from storepkgtool.packages import compute_formatted_name, read_package_metadata

    meta = read_package_metadata(Path("build/MyApp_1.0.0.0_x64.msix"))
    print(compute_formatted_name(meta))
"""

from .metadata import (
    SUPPORTED_EXTENSIONS,
    ContainerKind,
    DeviceFamily,
    PackageMetadata,
    container_kind,
    read_package_metadata,
    supports_inspection,
)
from .naming import compute_formatted_name
from .retention import MAX_REDUNDANT_PACKAGES, select_packages_to_keep

__all__ = [
    "read_package_metadata",
    "compute_formatted_name",
    "select_packages_to_keep",
    "container_kind",
    "supports_inspection",
    "ContainerKind",
    "DeviceFamily",
    "PackageMetadata",
    "SUPPORTED_EXTENSIONS",
    "MAX_REDUNDANT_PACKAGES",
]
