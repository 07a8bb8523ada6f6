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

"""Redundant package retention.

When a submission is updated, older packages already attached to it can be
kept as fallbacks for customers on older OS versions. Packages are grouped
by target platform, minimum OS version and architecture, and within each
group only the newest N are kept. Everything else is a deletion candidate.

Input packages are the ``applicationPackages`` entries returned by the
Store API:

    {
        "id": "1152921504621243619",
        "version": "1.0.0.0",
        "architecture": "x64",
        "targetPlatforms": [{"name": "Windows.Universal", "minVersion": "10.0.10240.0"}],
        "bundleContents": [
            {"contentType": "Application", "version": "1.0.0.0", "architecture": "x64"}
        ]
    }
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from storepkgtool.exceptions import ConfigError, ContentError
from storepkgtool.logging import Logger, get_global_logger
from storepkgtool.versioning import version_key

MAX_REDUNDANT_PACKAGES = 25

APPLICATION_CONTENT_TYPE = "Application"


def _candidates(package: Mapping[str, Any]) -> list[tuple[str, str, str]]:
    """Return (group key, version, package id) for every group a package is in."""
    package_id = str(package.get("id"))
    version = package.get("version")
    architecture = package.get("architecture")
    platforms = package.get("targetPlatforms")

    if architecture is None or platforms is None:
        raise ContentError(
            f"Package version {version} has no "
            f"{'architecture' if architecture is None else 'target platforms'}; "
            f"cannot decide whether to keep it"
        )

    app_contents = [
        content
        for content in package.get("bundleContents") or []
        if content.get("contentType") == APPLICATION_CONTENT_TYPE
    ]

    result: list[tuple[str, str, str]] = []
    for platform in platforms:
        prefix = f"{platform.get('name')}_"
        if platform.get("minVersion"):
            prefix += f"{platform['minVersion']}_"

        if app_contents:
            for content in app_contents:
                result.append(
                    (prefix + str(content.get("architecture")), content.get("version"), package_id)
                )
        else:
            result.append((prefix + str(architecture), version, package_id))

    for _, candidate_version, _ in result:
        if not candidate_version:
            raise ContentError(
                f"Package {package_id} has no version (or bundle content without one); "
                f"cannot decide whether to keep it"
            )
    return result


def select_packages_to_keep(
    packages: Iterable[Mapping[str, Any]],
    redundant_packages_to_keep: int,
    logger: Logger | None = None,
) -> set[str]:
    """Select which existing packages should stay on a submission.

    Args:
        packages: Existing package entries from the submission.
        redundant_packages_to_keep: How many packages to keep per
            platform/min-version/architecture group. Values above 25 are
            clamped to 25.
        logger: Logger for warnings. Defaults to the global logger.

    Returns:
        The ids of all packages to keep. Any package whose id is not in the
        set can be marked for deletion.

    Raises:
        ConfigError: If redundant_packages_to_keep is less than 1.
        ContentError: If a package has no architecture, no target
            platforms, or a candidate without a version.

    Example:
        ```python
        keep = select_packages_to_keep(submission["applicationPackages"], 1)
        for pkg in submission["applicationPackages"]:
            if pkg["id"] not in keep:
                pkg["fileStatus"] = "PendingDelete"
        ```
    """
    if logger is None:
        logger = get_global_logger()

    if redundant_packages_to_keep < 1:
        raise ConfigError(
            f"redundantPackagesToKeep must be at least 1, got {redundant_packages_to_keep}"
        )
    if redundant_packages_to_keep > MAX_REDUNDANT_PACKAGES:
        logger.warning(
            "RETENTION",
            f"redundantPackagesToKeep={redundant_packages_to_keep} exceeds the "
            f"maximum; keeping {MAX_REDUNDANT_PACKAGES} per group",
        )
        redundant_packages_to_keep = MAX_REDUNDANT_PACKAGES

    groups: dict[str, list[tuple[str, str]]] = defaultdict(list)
    for package in packages:
        for key, version, package_id in _candidates(package):
            groups[key].append((version, package_id))

    keep: set[str] = set()
    for key, entries in groups.items():
        ranked = sorted(entries, key=lambda entry: version_key(entry[0]), reverse=True)
        kept = ranked[:redundant_packages_to_keep]
        logger.verbose(
            "RETENTION",
            f"{key}: keeping {', '.join(str(v) for v, _ in kept)} "
            f"({len(ranked) - len(kept)} older dropped)",
        )
        keep.update(package_id for _, package_id in kept)

    return keep
