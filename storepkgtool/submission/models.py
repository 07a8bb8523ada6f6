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

"""Submission request body types.

There are two submission shapes, one per kind of product:

- AppSubmission: packages, localized listings and trailers on top of the
  user's base ``appSubmission`` fields
- IapSubmission: localized title/description/icon listings on top of the
  user's base ``iapSubmission`` fields

Both serialize with ``to_json_dict()``, which strips deprecated fields and
stamps the ``sbSchema`` version that tells consumers which shape they hold.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from storepkgtool.packages.metadata import PackageMetadata

SCHEMA_FIELD = "sbSchema"
APP_SUBMISSION_SCHEMA = 2
IAP_SUBMISSION_SCHEMA = 1

PENDING_UPLOAD = "PendingUpload"
PENDING_DELETE = "PendingDelete"

# Field -> why it is no longer sent.
DEPRECATED_APP_FIELDS: dict[str, str] = {
    "hardwarePreferences": (
        "replaced by the per-listing minimumHardware and recommendedHardware "
        "lists read from each PDP"
    ),
}
DEPRECATED_IAP_FIELDS: dict[str, str] = {}


class SubmissionKind(Enum):
    APP = "app"
    IAP = "iap"


def package_entry(file_name: str, metadata: PackageMetadata | None = None) -> dict[str, Any]:
    """Build an ``applicationPackages`` entry for a newly staged package.

    Packages that cannot be inspected (metadata is None) only carry the
    upload fields.
    """
    entry: dict[str, Any] = {
        "fileName": file_name,
        "fileStatus": PENDING_UPLOAD,
        "minimumDirectXVersion": "None",
        "minimumSystemRam": "None",
    }
    if metadata is not None:
        entry.update(metadata.to_dict())
    return entry


def _strip_deprecated(body: dict[str, Any], deprecated: dict[str, str]) -> None:
    for name in deprecated:
        body.pop(name, None)


@dataclass
class AppSubmission:
    """An application submission under construction.

    Attributes:
        base: Fields copied from the config's appSubmission section.
        application_packages: Package entries to append to any in base.
        listings: Lowercase language -> {"baseListing", "platformOverrides"}.
        trailers: [{"videoFileName", "trailerAssets": {language: asset}}].
    """

    schema_version: ClassVar[int] = APP_SUBMISSION_SCHEMA

    base: dict[str, Any] = field(default_factory=dict)
    application_packages: list[dict[str, Any]] = field(default_factory=list)
    listings: dict[str, dict[str, Any]] = field(default_factory=dict)
    trailers: list[dict[str, Any]] = field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        body = copy.deepcopy(self.base)
        _strip_deprecated(body, DEPRECATED_APP_FIELDS)

        packages = list(body.get("applicationPackages") or [])
        packages.extend(copy.deepcopy(self.application_packages))
        body["applicationPackages"] = packages

        listings = dict(body.get("listings") or {})
        listings.update(copy.deepcopy(self.listings))
        body["listings"] = listings

        trailers = list(body.get("trailers") or [])
        trailers.extend(copy.deepcopy(self.trailers))
        body["trailers"] = trailers

        body[SCHEMA_FIELD] = self.schema_version
        return body


@dataclass
class IapSubmission:
    """An in-app product submission under construction.

    Attributes:
        base: Fields copied from the config's iapSubmission section.
        listings: Lowercase language -> {"title", "description", "icon"?}.
    """

    schema_version: ClassVar[int] = IAP_SUBMISSION_SCHEMA

    base: dict[str, Any] = field(default_factory=dict)
    listings: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        body = copy.deepcopy(self.base)
        _strip_deprecated(body, DEPRECATED_IAP_FIELDS)

        listings = dict(body.get("listings") or {})
        listings.update(copy.deepcopy(self.listings))
        body["listings"] = listings

        body[SCHEMA_FIELD] = self.schema_version
        return body
