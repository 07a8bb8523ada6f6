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

"""Submission body assembly.

This module turns configuration, a PDP tree, a media tree and a list of
package files into a submission body, staging every referenced file into
the build context's staging directory as it goes.

Assembly steps (application submissions):

1. Start from the config's ``appSubmission`` section
2. For each package path, in the order given: read its metadata (unless
   the format cannot be inspected), optionally rename it to its formatted
   name, copy it into the staging directory, and append a package entry
3. For each PDP under the listings root: parse and validate it, stage the
   media it references, and add its listing (keyed by lowercase language)
   and trailers
4. Strip deprecated fields and stamp the schema version (on serialization)

In-app product submissions follow the same listing steps with the smaller
title/description/icon field set and never carry packages.

Nothing is written outside the staging directory here. Writing the
``.json`` and ``.zip`` outputs is left to storepkgtool.submission.archive
once the body is complete.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import shutil
from pathlib import Path
from typing import Any

from storepkgtool.context import BuildContext
from storepkgtool.exceptions import ConfigError, PackagingError
from storepkgtool.listing.pdp import (
    IAP_PDP_NAMESPACE,
    PDP_NAMESPACE,
    extract_iap_listing,
    extract_listing,
    extract_trailers,
    find_pdp_files,
    read_pdp,
    resolve_listings_root,
)
from storepkgtool.packages.metadata import read_package_metadata, supports_inspection
from storepkgtool.packages.naming import compute_formatted_name
from storepkgtool.submission.models import AppSubmission, IapSubmission, package_entry


def _require_media_root(pdp_root: Path | None, media_root: Path | None) -> None:
    if pdp_root is not None and media_root is None:
        raise ConfigError("mediaRootPath: required when pdpRootPath is given")


def stage_package(
    package_path: Path, auto_format_names: bool, context: BuildContext
) -> dict[str, Any]:
    """Inspect a package, copy it into the staging directory, return its entry.

    Raises:
        PackagingError: If two packages end up with the same staged name.
    """
    package_path = Path(package_path)
    logger = context.logger

    metadata = None
    if supports_inspection(package_path):
        metadata = read_package_metadata(package_path, logger)
    else:
        logger.verbose(
            "PACKAGE", f"{package_path.name}: format not inspected, adding as-is"
        )

    file_name = package_path.name
    if auto_format_names:
        if metadata is None:
            logger.verbose(
                "PACKAGE", f"{package_path.name}: cannot format name without metadata"
            )
        else:
            file_name = compute_formatted_name(metadata) + package_path.suffix
            logger.verbose("PACKAGE", f"{package_path.name} -> {file_name}")

    destination = context.staging_dir / file_name
    if destination.exists():
        raise PackagingError(
            f"Package file name '{file_name}' is used by more than one package "
            f"(second: {package_path})"
        )
    context.staging_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(package_path, destination)

    return package_entry(file_name, metadata)


def _merge_trailers(
    collected: dict[str, dict[str, Any]],
    language: str,
    trailers: dict[str, dict[str, Any]],
) -> None:
    for video, asset in trailers.items():
        collected.setdefault(video, {})[language] = asset


def build_app_submission(
    config: dict[str, Any],
    context: BuildContext,
    *,
    pdp_root: Path | None = None,
    release: str | None = None,
    include: Iterable[str] = ("*.xml",),
    exclude: Iterable[str] = (),
    language_exclude: Iterable[str] = ("default",),
    media_root: Path | None = None,
    package_paths: Sequence[Path] = (),
    media_fallback_language: str | None = None,
    auto_format_names: bool = False,
) -> AppSubmission:
    """Assemble an application submission and stage everything it references.

    Args:
        config: Effective configuration. Its appSubmission section is the
            starting point for the body.
        context: Staging directory and logger for this run.
        pdp_root: Root of the PDP tree. Listings are skipped when None.
        release: Optional release subfolder under pdp_root.
        include: Filename globs selecting PDP files.
        exclude: Filename globs removing PDP files.
        language_exclude: Language folders to skip.
        media_root: Root of the media tree. Required with pdp_root.
        package_paths: Package files, processed in the order given.
        media_fallback_language: Language searched when a media file is
            missing for a listing's own language.
        auto_format_names: Rename packages to their formatted names.

    Returns:
        The assembled AppSubmission.

    Raises:
        ConfigError: If the listings root or release folder is missing, or
            pdp_root is given without media_root.
        ContentError: For invalid PDPs, media or packages.
        PackagingError: If two packages share a staged file name.
    """
    _require_media_root(pdp_root, media_root)
    logger = context.logger
    submission = AppSubmission(base=dict(config.get("appSubmission") or {}))

    for package_path in package_paths:
        submission.application_packages.append(
            stage_package(package_path, auto_format_names, context)
        )
    if package_paths:
        logger.verbose(
            "SUBMISSION", f"Staged {len(submission.application_packages)} package(s)"
        )

    if pdp_root is None:
        return submission

    listings_root = resolve_listings_root(pdp_root, release)
    trailers: dict[str, dict[str, Any]] = {}
    for xml_path in find_pdp_files(listings_root, include, exclude):
        doc = read_pdp(
            xml_path,
            listings_root,
            language_exclude,
            expected_namespace=PDP_NAMESPACE,
            logger=logger,
        )
        if doc is None:
            continue

        language = doc.language.lower()
        if language in submission.listings:
            logger.warning(
                "SUBMISSION",
                f"{xml_path}: replaces an earlier listing for '{language}'",
            )
        entry = extract_listing(doc, media_root, media_fallback_language, context)
        submission.listings[language] = entry.to_dict()
        _merge_trailers(
            trailers,
            language,
            extract_trailers(doc, media_root, media_fallback_language, context),
        )

    submission.trailers = [
        {
            "videoFileName": video,
            "trailerAssets": {lang: assets[lang] for lang in sorted(assets)},
        }
        for video, assets in trailers.items()
    ]
    logger.verbose(
        "SUBMISSION",
        f"Assembled {len(submission.listings)} listing(s), "
        f"{len(submission.trailers)} trailer(s)",
    )
    return submission


def build_iap_submission(
    config: dict[str, Any],
    context: BuildContext,
    *,
    pdp_root: Path,
    release: str | None = None,
    include: Iterable[str] = ("*.xml",),
    exclude: Iterable[str] = (),
    language_exclude: Iterable[str] = ("default",),
    media_root: Path | None = None,
    media_fallback_language: str | None = None,
) -> IapSubmission:
    """Assemble an in-app product submission from an in-app product PDP tree."""
    _require_media_root(pdp_root, media_root)
    logger = context.logger
    submission = IapSubmission(base=dict(config.get("iapSubmission") or {}))

    listings_root = resolve_listings_root(pdp_root, release)
    for xml_path in find_pdp_files(listings_root, include, exclude):
        doc = read_pdp(
            xml_path,
            listings_root,
            language_exclude,
            expected_namespace=IAP_PDP_NAMESPACE,
            logger=logger,
        )
        if doc is None:
            continue
        language = doc.language.lower()
        if language in submission.listings:
            logger.warning(
                "SUBMISSION",
                f"{xml_path}: replaces an earlier listing for '{language}'",
            )
        submission.listings[language] = extract_iap_listing(
            doc, media_root, media_fallback_language, context
        )

    logger.verbose(
        "SUBMISSION", f"Assembled {len(submission.listings)} in-app product listing(s)"
    )
    return submission
