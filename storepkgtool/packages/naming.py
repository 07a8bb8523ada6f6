# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Canonical package file names.

Packages produced by different build pipelines carry arbitrary file names.
When formatted names are requested, each package is renamed to::

    [<families>_]<name>_<version>_<architecture>

where ``<families>`` is the sorted, dot-joined list of target device family
names with the ``Windows.`` prefix stripped. For bundles the architecture
tag is the sorted, dot-joined list of inner package architectures and the
version is taken from the alphabetically first of those.
"""

from __future__ import annotations

from storepkgtool.exceptions import ContentError
from storepkgtool.packages.metadata import PackageMetadata

DEVICE_FAMILY_PREFIX = "Windows."


def _short_family(name: str) -> str:
    if name.startswith(DEVICE_FAMILY_PREFIX):
        return name[len(DEVICE_FAMILY_PREFIX) :]
    return name


def compute_formatted_name(metadata: PackageMetadata) -> str:
    """Compute the canonical base name (without extension) for a package.

    Args:
        metadata: Metadata read from the package.

    Returns:
        The formatted name, e.g. "Desktop_Maps_2.13.22002.0_x86".

    Raises:
        ContentError: If name, version or architecture is empty.

    Example:
        ```python
        meta = PackageMetadata(
            name="Maps",
            version="2.13.22002.0",
            architecture="x86",
            device_families=(DeviceFamily("Windows.Desktop", "10.0.0.0"),),
        )
        compute_formatted_name(meta)  # "Desktop_Maps_2.13.22002.0_x86"
        ```
    """
    missing = [
        label
        for label, value in (
            ("name", metadata.name),
            ("version", metadata.version),
            ("architecture", metadata.architecture),
        )
        if not value
    ]
    if missing:
        raise ContentError(
            f"Cannot format package name: missing {', '.join(missing)} "
            f"(name={metadata.name!r}, version={metadata.version!r})"
        )

    version = metadata.version
    architecture = metadata.architecture
    if metadata.inner_packages:
        architectures = sorted(metadata.inner_packages)
        architecture = ".".join(architectures)
        version = metadata.inner_packages[architectures[0]].version

    parts = [metadata.name, version, architecture]

    families = sorted({_short_family(f.name) for f in metadata.device_families if f.name})
    if families:
        parts.insert(0, ".".join(families))

    return "_".join(parts)
