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

"""Core orchestration for storepkgtool.

This module provides the high-level functions behind each CLI command. Each
one resolves its parameters (explicit arguments override the config's
``packageParameters`` section), validates them before doing any heavy
work, and delegates to the listing, packages, submission and store
packages.

Design Principles:

- Parameter problems are reported before any file is staged
- Every run stages into its own temporary directory, removed afterwards
- The .json/.zip outputs are only written once the whole body is built
- Functions return frozen dataclasses; the CLI formats them for display

Example:
    Programmatic usage:
        ```python
        from pathlib import Path
        from storepkgtool.core import new_submission_package

        result = new_submission_package(
            Path("store/config.yaml"),
            package_paths=[Path("build/MyApp_1.2.0.0_x64.msixupload")],
        )

        print(f"Payload: {result.json_path}")
        print(f"Listings: {result.language_count}")
        ```
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
import tempfile
from typing import Any

from storepkgtool.config.loader import default_config, load_config
from storepkgtool.context import BuildContext
from storepkgtool.exceptions import ConfigError
from storepkgtool.listing.pdp import (
    PdpValidationResult,
    resolve_listings_root,
    validate_pdps,
)
from storepkgtool.logging import get_global_logger
from storepkgtool.packages.metadata import container_kind
from storepkgtool.results import MergeResult, PackageToolResult, PublishResult
from storepkgtool.store.auth import TokenProvider
from storepkgtool.store.client import StoreClient
from storepkgtool.store.publish import PublishOptions, publish_submission
from storepkgtool.submission.archive import (
    check_outputs,
    merge_payloads,
    write_payload,
)
from storepkgtool.submission.assembler import build_app_submission, build_iap_submission
from storepkgtool.submission.models import SubmissionKind


@dataclass(frozen=True)
class PackageParameters:
    """Effective packaging parameters after overrides are applied."""

    pdp_root: Path | None
    release: str | None
    include: list[str]
    exclude: list[str]
    language_exclude: list[str]
    media_root: Path | None
    media_fallback_language: str | None
    package_paths: list[Path]
    out_path: Path | None
    out_name: str | None
    auto_format_names: bool


def _load(config_path: Path | None) -> dict[str, Any]:
    return load_config(config_path) if config_path is not None else default_config()


def _pick(override: Any, configured: Any) -> Any:
    return configured if override is None else override


def _optional_path(value: Any) -> Path | None:
    return Path(value) if value else None


def resolve_package_parameters(
    config: dict[str, Any], **overrides: Any
) -> PackageParameters:
    """Merge explicit arguments over the config's packageParameters.

    Keyword arguments use the PackageParameters field names; None means
    "not given" and falls back to the configured value.
    """
    params = config.get("packageParameters") or {}
    unknown = set(overrides) - set(PackageParameters.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown package parameter(s): {', '.join(sorted(unknown))}")

    package_paths = _pick(overrides.get("package_paths"), params.get("packagePaths")) or []
    return PackageParameters(
        pdp_root=_optional_path(_pick(overrides.get("pdp_root"), params.get("pdpRootPath"))),
        release=_pick(overrides.get("release"), params.get("release")) or None,
        include=list(_pick(overrides.get("include"), params.get("pdpInclude")) or ["*.xml"]),
        exclude=list(_pick(overrides.get("exclude"), params.get("pdpExclude")) or []),
        language_exclude=list(
            _pick(overrides.get("language_exclude"), params.get("languageExclude")) or []
        ),
        media_root=_optional_path(
            _pick(overrides.get("media_root"), params.get("mediaRootPath"))
        ),
        media_fallback_language=_pick(
            overrides.get("media_fallback_language"), params.get("mediaFallbackLanguage")
        )
        or None,
        package_paths=[Path(p) for p in package_paths],
        out_path=_optional_path(_pick(overrides.get("out_path"), params.get("outPath"))),
        out_name=_pick(overrides.get("out_name"), params.get("outName")) or None,
        auto_format_names=bool(
            _pick(overrides.get("auto_format_names"), params.get("autoFormatNames"))
        ),
    )


def validate_package_parameters(params: PackageParameters, kind: SubmissionKind) -> None:
    """Check parameters before any staging starts.

    Raises:
        ConfigError: Naming the first offending parameter.
    """
    if params.out_path is None:
        raise ConfigError("outPath: required")
    if not params.out_name:
        raise ConfigError("outName: required")
    if (params.pdp_root is None) != (params.media_root is None):
        raise ConfigError(
            "pdpRootPath and mediaRootPath must be given together or not at all"
        )
    if params.release and params.pdp_root is None:
        raise ConfigError("release: requires pdpRootPath")
    if params.media_root is not None and not params.media_root.is_dir():
        raise ConfigError(f"mediaRootPath: folder not found: {params.media_root}")
    if params.pdp_root is not None:
        resolve_listings_root(params.pdp_root, params.release)

    if kind is SubmissionKind.IAP:
        if params.pdp_root is None:
            raise ConfigError("pdpRootPath: required for in-app product submissions")
        if params.package_paths:
            raise ConfigError(
                "packagePaths: in-app product submissions cannot carry packages"
            )

    for package_path in params.package_paths:
        if not package_path.is_file():
            raise ConfigError(f"packagePaths: file not found: {package_path}")
        container_kind(package_path)


def new_submission_package(
    config_path: Path | None = None,
    *,
    kind: SubmissionKind = SubmissionKind.APP,
    force: bool = False,
    pdp_root: Path | None = None,
    release: str | None = None,
    include: Sequence[str] | None = None,
    exclude: Sequence[str] | None = None,
    language_exclude: Sequence[str] | None = None,
    media_root: Path | None = None,
    media_fallback_language: str | None = None,
    package_paths: Sequence[Path] | None = None,
    out_path: Path | None = None,
    out_name: str | None = None,
    auto_format_names: bool | None = None,
) -> PackageToolResult:
    """Build a submission payload (<outName>.json and <outName>.zip).

    This is the main entry point for the 'storepkg package' and
    'storepkg package-iap' commands.

    Args:
        config_path: YAML config. Built-in defaults are used when None.
        kind: SubmissionKind.APP or SubmissionKind.IAP.
        force: Overwrite existing outputs.
        pdp_root: Overrides packageParameters.pdpRootPath.
        release: Overrides packageParameters.release.
        include: Overrides packageParameters.pdpInclude.
        exclude: Overrides packageParameters.pdpExclude.
        language_exclude: Overrides packageParameters.languageExclude.
        media_root: Overrides packageParameters.mediaRootPath.
        media_fallback_language: Overrides
            packageParameters.mediaFallbackLanguage.
        package_paths: Overrides packageParameters.packagePaths.
        out_path: Overrides packageParameters.outPath.
        out_name: Overrides packageParameters.outName.
        auto_format_names: Overrides packageParameters.autoFormatNames.

    Returns:
        PackageToolResult describing the written payload.

    Raises:
        ConfigError: On invalid or conflicting parameters, or existing
            outputs without force.
        ContentError: On invalid PDPs, media or packages.
        PackagingError: On staging or archive failures.
    """
    logger = get_global_logger()
    config = _load(config_path)

    logger.step(1, 4, "Checking parameters...")
    params = resolve_package_parameters(
        config,
        pdp_root=pdp_root,
        release=release,
        include=include,
        exclude=exclude,
        language_exclude=language_exclude,
        media_root=media_root,
        media_fallback_language=media_fallback_language,
        package_paths=package_paths,
        out_path=out_path,
        out_name=out_name,
        auto_format_names=auto_format_names,
    )
    validate_package_parameters(params, kind)
    json_path, zip_path = check_outputs(params.out_path, params.out_name, force)

    with tempfile.TemporaryDirectory(prefix="storepkg-stage-") as tmp:
        context = BuildContext(staging_dir=Path(tmp), logger=logger)

        logger.step(2, 4, "Assembling submission...")
        if kind is SubmissionKind.IAP:
            submission = build_iap_submission(
                config,
                context,
                pdp_root=params.pdp_root,
                release=params.release,
                include=params.include,
                exclude=params.exclude,
                language_exclude=params.language_exclude,
                media_root=params.media_root,
                media_fallback_language=params.media_fallback_language,
            )
            package_count = 0
        else:
            submission = build_app_submission(
                config,
                context,
                pdp_root=params.pdp_root,
                release=params.release,
                include=params.include,
                exclude=params.exclude,
                language_exclude=params.language_exclude,
                media_root=params.media_root,
                package_paths=params.package_paths,
                media_fallback_language=params.media_fallback_language,
                auto_format_names=params.auto_format_names,
            )
            package_count = len(submission.application_packages)

        logger.step(3, 4, "Serializing submission...")
        body = submission.to_json_dict()

        logger.step(4, 4, "Writing payload...")
        write_payload(body, context.staging_dir, json_path, zip_path, logger)

    return PackageToolResult(
        json_path=json_path,
        zip_path=zip_path,
        submission_kind=kind.value,
        package_count=package_count,
        language_count=len(submission.listings),
    )


def merge_submission_packages(
    master_json: Path,
    master_zip: Path,
    additional_json: Path,
    additional_zip: Path,
    out_path: Path,
    out_name: str,
    *,
    force: bool = False,
) -> MergeResult:
    """Merge an additional payload's packages into a copy of a master payload.

    Raises:
        ConfigError: If an input is missing or an output exists without force.
        PackagingError: On package file name collisions or bad archives.
    """
    logger = get_global_logger()
    if not out_name:
        raise ConfigError("outName: required")
    json_path, zip_path = check_outputs(out_path, out_name, force)

    logger.step(1, 1, "Merging payloads...")
    added = merge_payloads(
        master_json,
        master_zip,
        additional_json,
        additional_zip,
        json_path,
        zip_path,
        logger,
    )
    return MergeResult(json_path=json_path, zip_path=zip_path, packages_added=added)


def validate_listings(
    config_path: Path | None = None,
    *,
    pdp_root: Path | None = None,
    release: str | None = None,
) -> PdpValidationResult:
    """Validate every PDP in the configured (or given) tree.

    Raises:
        ConfigError: If no PDP root is configured or it does not exist.
    """
    config = _load(config_path)
    params = resolve_package_parameters(config, pdp_root=pdp_root, release=release)
    if params.pdp_root is None:
        raise ConfigError("pdpRootPath: required")
    return validate_pdps(
        params.pdp_root,
        release=params.release,
        include=params.include,
        exclude=params.exclude,
        language_exclude=params.language_exclude,
    )


def make_store_client(config: dict[str, Any]) -> StoreClient:
    """Create a StoreClient from the config's store section."""
    store = config.get("store") or {}
    provider = TokenProvider(
        tenant_id=store.get("tenantId"),
        client_id=store.get("clientId"),
    )
    return StoreClient(store["apiBaseUrl"], provider)


def publish_payload(
    config_path: Path | None,
    json_path: Path,
    zip_path: Path,
    *,
    app_id: str | None = None,
    force: bool = False,
    replace_packages: bool = False,
    update_packages: bool = False,
    update_listings: bool = False,
    update_properties: bool = False,
    wait_for_processing: bool = False,
    commit: bool = False,
    client: StoreClient | None = None,
) -> PublishResult:
    """Publish a payload to the Store using the config's store section.

    Raises:
        ConfigError: If no application id is given or configured.
        NetworkError: On API or upload failures.
        PackagingError: If package processing fails or times out.
    """
    config = _load(config_path)
    store = config.get("store") or {}
    app_id = app_id or store.get("appId")
    if not app_id:
        raise ConfigError("appId: required (pass --app-id or set store.appId)")

    processing = store.get("packageProcessing") or {}
    options = PublishOptions(
        force=force,
        replace_packages=replace_packages,
        update_packages=update_packages,
        redundant_packages_to_keep=int(store.get("redundantPackagesToKeep", 1)),
        update_listings=update_listings,
        update_properties=update_properties,
        wait_for_processing=wait_for_processing,
        poll_interval=float(processing.get("pollIntervalSeconds", 60)),
        max_poll_attempts=int(processing.get("maxPollAttempts", 60)),
        commit=commit,
    )
    if client is None:
        client = make_store_client(config)
    return publish_submission(client, app_id, json_path, zip_path, options=options)
