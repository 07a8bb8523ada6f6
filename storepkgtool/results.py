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

"""Public API return types for storepkgtool.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Using result types:
        ```python
        from pathlib import Path
        from storepkgtool.core import new_submission_package

        result = new_submission_package(Path("store/config.yaml"))
        print(result.zip_path)  # Attribute access, not dict access
        ```

Note:
    Only public API return types belong in this module. Domain types
    (like PackageMetadata) stay next to the code that produces them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PackageToolResult:
    """Result from building a submission payload.

    Attributes:
        json_path: Path to the written <outName>.json.
        zip_path: Path to the written <outName>.zip.
        submission_kind: "app" or "iap".
        package_count: Number of packages added to the payload.
        language_count: Number of localized listings in the payload.
    """

    json_path: Path
    zip_path: Path
    submission_kind: str
    package_count: int
    language_count: int


@dataclass(frozen=True)
class MergeResult:
    """Result from merging two payloads.

    Attributes:
        json_path: Path to the merged body.
        zip_path: Path to the merged archive.
        packages_added: Package entries appended from the additional payload.
    """

    json_path: Path
    zip_path: Path
    packages_added: int


@dataclass(frozen=True)
class PublishResult:
    """Result from publishing a payload to the Store.

    Attributes:
        submission_id: Id of the created submission.
        committed: Whether a commit was requested.
        status: Last known submission status.
    """

    submission_id: str
    committed: bool
    status: str
