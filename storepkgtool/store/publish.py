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

"""Updating and publishing application submissions from a payload.

Publish Workflow:

1. GET the application; an existing pending submission is deleted only
   when forced
2. POST to clone the last published submission
3. Apply package changes (replace, update with retention, or add) and,
   when requested, listing and property changes from the payload
4. PUT the updated submission
5. Upload the payload archive to the submission's fileUploadUrl
6. Optionally wait for package processing, then optionally commit

Package Lifecycle:
    PendingUpload -> Uploaded -> Processing -> Processed | ProcessFailed

The service never starts processing a package that is still PendingUpload,
so waiting on one would only time out.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import copy
from dataclasses import dataclass
from pathlib import Path
import re
import time
from typing import Any

from storepkgtool.exceptions import ConfigError, PackagingError
from storepkgtool.logging import Logger, get_global_logger
from storepkgtool.packages.retention import select_packages_to_keep
from storepkgtool.results import PublishResult
from storepkgtool.store.client import StoreClient
from storepkgtool.submission.archive import load_payload_body
from storepkgtool.submission.models import (
    APP_SUBMISSION_SCHEMA,
    PENDING_DELETE,
    PENDING_UPLOAD,
    SCHEMA_FIELD,
)

PROCESSED = "Processed"
PROCESS_FAILED = "ProcessFailed"

# Payload keys that are never copied onto a submission as properties.
_NON_PROPERTY_FIELDS = frozenset(
    {
        "id",
        "status",
        "statusDetails",
        "fileUploadUrl",
        "applicationPackages",
        "listings",
        "trailers",
        SCHEMA_FIELD,
    }
)

_DEVICE_FAMILY = re.compile(r"^(?P<name>\S+) min version (?P<min>\S+)$")


@dataclass(frozen=True)
class PublishOptions:
    """What publish_submission changes and how it finishes.

    Attributes:
        force: Delete an existing pending submission instead of failing.
        replace_packages: Mark every existing package for deletion.
        update_packages: Keep only the newest existing packages per group.
        redundant_packages_to_keep: Packages kept per group when updating.
        update_listings: Replace listings and trailers with the payload's.
        update_properties: Copy the payload's other top-level fields.
        wait_for_processing: Poll until uploaded packages are processed.
        poll_interval: Seconds between polls.
        max_poll_attempts: Polls before giving up.
        commit: Commit the submission after upload.
    """

    force: bool = False
    replace_packages: bool = False
    update_packages: bool = False
    redundant_packages_to_keep: int = 1
    update_listings: bool = False
    update_properties: bool = False
    wait_for_processing: bool = False
    poll_interval: float = 60
    max_poll_attempts: int = 60
    commit: bool = False


def _with_target_platforms(package: Mapping[str, Any]) -> dict[str, Any]:
    """Derive targetPlatforms from "X min version Y" strings when absent."""
    result = dict(package)
    if result.get("targetPlatforms") is None and result.get("targetDeviceFamilies"):
        platforms = []
        for family in result["targetDeviceFamilies"]:
            match = _DEVICE_FAMILY.match(family)
            if match:
                platforms.append({"name": match["name"], "minVersion": match["min"]})
            else:
                platforms.append({"name": family})
        result["targetPlatforms"] = platforms
    return result


def apply_package_changes(
    submission: dict[str, Any],
    new_packages: Iterable[Mapping[str, Any]],
    *,
    replace_packages: bool = False,
    update_packages: bool = False,
    redundant_packages_to_keep: int = 1,
    current_packages: Iterable[Mapping[str, Any]] | None = None,
    logger: Logger | None = None,
) -> dict[str, Any]:
    """Mark existing packages for deletion as requested and add new ones.

    Args:
        submission: Cloned submission; modified in place.
        new_packages: Package entries from the payload. Only PendingUpload
            entries are added.
        replace_packages: Mark every existing package PendingDelete.
        update_packages: Keep the newest redundant_packages_to_keep
            packages per group and mark the rest PendingDelete.
        redundant_packages_to_keep: See update_packages.
        current_packages: Existing packages with retention details.
            Defaults to the submission's own applicationPackages.
        logger: Logger for progress. Defaults to the global logger.

    Returns:
        The submission.

    Raises:
        ConfigError: If both replace_packages and update_packages are set.
        ContentError: If retention cannot classify an existing package.
    """
    if logger is None:
        logger = get_global_logger()
    if replace_packages and update_packages:
        raise ConfigError("replace_packages and update_packages are mutually exclusive")

    packages = submission.setdefault("applicationPackages", [])

    if replace_packages:
        for package in packages:
            package["fileStatus"] = PENDING_DELETE
        logger.verbose("SUBMISSION", f"Marked {len(packages)} package(s) for deletion")
    elif update_packages:
        source = packages if current_packages is None else current_packages
        keep = select_packages_to_keep(
            [_with_target_platforms(p) for p in source],
            redundant_packages_to_keep,
            logger,
        )
        removed = 0
        for package in packages:
            if str(package.get("id")) not in keep:
                package["fileStatus"] = PENDING_DELETE
                removed += 1
        logger.verbose(
            "SUBMISSION", f"Keeping {len(keep)} package(s), removing {removed}"
        )

    added = 0
    for package in new_packages:
        if package.get("fileStatus") == PENDING_UPLOAD:
            packages.append(copy.deepcopy(dict(package)))
            added += 1
    logger.verbose("SUBMISSION", f"Added {added} new package(s)")
    return submission


def apply_listing_changes(
    submission: dict[str, Any], payload: Mapping[str, Any]
) -> dict[str, Any]:
    """Replace the submission's listings and trailers with the payload's.

    Images already on a listing that the payload also localizes are kept
    on it marked PendingDelete so the service removes them. Listings for
    languages the payload does not carry are dropped.
    """
    new_listings = copy.deepcopy(dict(payload.get("listings") or {}))
    for language, old in (submission.get("listings") or {}).items():
        listing = new_listings.get(language)
        if listing is None:
            continue
        old_images = (old.get("baseListing") or {}).get("images") or []
        images = listing.setdefault("baseListing", {}).setdefault("images", [])
        for image in old_images:
            stale = dict(image)
            stale["fileStatus"] = PENDING_DELETE
            images.append(stale)

    submission["listings"] = new_listings
    submission["trailers"] = copy.deepcopy(list(payload.get("trailers") or []))
    return submission


def apply_property_changes(
    submission: dict[str, Any], payload: Mapping[str, Any]
) -> dict[str, Any]:
    """Copy the payload's remaining top-level fields onto the submission."""
    for key, value in payload.items():
        if key not in _NON_PROPERTY_FIELDS:
            submission[key] = copy.deepcopy(value)
    return submission


def wait_for_package_processing(
    client: StoreClient,
    app_id: str,
    submission_id: str,
    *,
    interval: float = 60,
    max_attempts: int = 60,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, str]:
    """Poll a submission until its packages finish processing.

    Args:
        client: Store API client.
        app_id: Application id.
        submission_id: Submission being processed.
        interval: Seconds between polls.
        max_attempts: Polls before giving up.
        sleep: Wait function, replaceable in tests.

    Returns:
        Package file name -> final status for every package not being
        deleted.

    Raises:
        PackagingError: If a package fails processing or max_attempts
            polls pass without every package reaching Processed.
    """
    logger = get_global_logger()
    path = f"applications/{app_id}/submissions/{submission_id}"
    warned_pending = False

    for attempt in range(1, max_attempts + 1):
        submission = client.invoke_api("GET", path) or {}
        states = {
            p.get("fileName", str(p.get("id"))): p.get("fileStatus", "")
            for p in submission.get("applicationPackages") or []
            if p.get("fileStatus") != PENDING_DELETE
        }

        failed = sorted(name for name, state in states.items() if state == PROCESS_FAILED)
        if failed:
            raise PackagingError(f"Package processing failed: {', '.join(failed)}")

        pending = sorted(name for name, state in states.items() if state == PENDING_UPLOAD)
        if pending and not warned_pending:
            logger.warning(
                "SUBMISSION",
                f"Still PendingUpload (processing will not start): {', '.join(pending)}",
            )
            warned_pending = True

        if all(state == PROCESSED for state in states.values()):
            logger.verbose("SUBMISSION", f"All packages processed after {attempt} poll(s)")
            return states

        logger.verbose(
            "SUBMISSION",
            f"Poll {attempt}/{max_attempts}: "
            + ", ".join(f"{name}={state}" for name, state in sorted(states.items())),
        )
        if attempt < max_attempts:
            sleep(interval)

    raise PackagingError(
        f"Packages were not processed after {max_attempts} poll(s) "
        f"of submission {submission_id}"
    )


def publish_submission(
    client: StoreClient,
    app_id: str,
    json_path: Path,
    zip_path: Path,
    *,
    options: PublishOptions | None = None,
) -> PublishResult:
    """Create a submission from a payload, upload it and optionally commit.

    Args:
        client: Store API client.
        app_id: Application id.
        json_path: Payload body written by the package command.
        zip_path: Payload archive written by the package command.
        options: What to change and how to finish. Defaults to adding the
            payload's packages and leaving the submission uncommitted.

    Returns:
        PublishResult with the submission id, whether it was committed and
        its last known status.

    Raises:
        ConfigError: If the payload is not an application payload, or a
            pending submission exists and options.force is not set.
        NetworkError: If any API call or the upload fails.
        PackagingError: If package processing fails or times out.
    """
    logger = get_global_logger()
    if options is None:
        options = PublishOptions()

    payload = load_payload_body(json_path)
    if payload.get(SCHEMA_FIELD) != APP_SUBMISSION_SCHEMA:
        raise ConfigError(
            f"{json_path} is not an application payload "
            f"({SCHEMA_FIELD}={payload.get(SCHEMA_FIELD)!r})"
        )
    if not Path(zip_path).is_file():
        raise ConfigError(f"Payload archive not found: {zip_path}")

    total = 5
    logger.step(1, total, "Checking application...")
    app = client.invoke_api("GET", f"applications/{app_id}") or {}
    pending = app.get("pendingApplicationSubmission")
    if pending:
        if not options.force:
            raise ConfigError(
                f"Application {app_id} already has pending submission "
                f"{pending.get('id')} (use --force to delete it)"
            )
        logger.verbose("SUBMISSION", f"Deleting pending submission {pending.get('id')}")
        client.invoke_api("DELETE", f"applications/{app_id}/submissions/{pending['id']}")

    logger.step(2, total, "Creating submission...")
    submission = client.invoke_api("POST", f"applications/{app_id}/submissions") or {}
    submission_id = str(submission.get("id"))
    upload_url = submission.get("fileUploadUrl")

    logger.step(3, total, "Updating submission...")
    apply_package_changes(
        submission,
        payload.get("applicationPackages") or [],
        replace_packages=options.replace_packages,
        update_packages=options.update_packages,
        redundant_packages_to_keep=options.redundant_packages_to_keep,
        logger=logger,
    )
    if options.update_listings:
        apply_listing_changes(submission, payload)
    if options.update_properties:
        apply_property_changes(submission, payload)
    client.invoke_api("PUT", f"applications/{app_id}/submissions/{submission_id}", submission)

    logger.step(4, total, "Uploading payload...")
    if not upload_url:
        raise PackagingError(f"Submission {submission_id} has no fileUploadUrl")
    client.upload_file(Path(zip_path), upload_url)

    if options.wait_for_processing:
        wait_for_package_processing(
            client,
            app_id,
            submission_id,
            interval=options.poll_interval,
            max_attempts=options.max_poll_attempts,
        )

    logger.step(5, total, "Finishing...")
    status = "PendingCommit"
    if options.commit:
        response = client.invoke_api(
            "POST", f"applications/{app_id}/submissions/{submission_id}/commit"
        ) or {}
        status = response.get("status", "CommitStarted")

    return PublishResult(
        submission_id=submission_id,
        committed=options.commit,
        status=status,
    )
