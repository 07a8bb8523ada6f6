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

"""Exception hierarchy for storepkgtool.

This module defines a custom exception hierarchy that allows library users
to distinguish between different kinds of failure:

- ConfigError: Usage and configuration errors (missing or malformed
  parameters, conflicting paths, outputs that already exist)
- ContentError: Problems with the input content itself (invalid PDP XML,
  schema violations, missing or ambiguous media, malformed packages)
- PackagingError: Failures while staging, zipping or merging payloads
- NetworkError: Failures talking to the Store submission API

All exceptions inherit from StorePkgError, allowing users to catch every
storepkgtool error with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from storepkgtool.core import new_submission_package
        from storepkgtool.exceptions import ConfigError, ContentError

        try:
            result = new_submission_package(Path("config.yaml"))
        except ConfigError as e:
            print(f"Bad parameters: {e}")
        except ContentError as e:
            print(f"Bad content: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "StorePkgError",
    "ConfigError",
    "ContentError",
    "SchemaValidationError",
    "MediaNotFoundError",
    "AmbiguousMediaError",
    "UnsupportedPackageError",
    "PackagingError",
    "NetworkError",
]


class StorePkgError(Exception):
    """Base exception for all storepkgtool errors.

    All storepkgtool-specific exceptions inherit from this class, allowing
    users to catch every error with a single except clause if needed.
    """

    pass


class ConfigError(StorePkgError):
    """Raised for configuration and usage errors.

    This exception is raised before any I/O-heavy work when there are
    problems with:

    - Config file parsing (YAML syntax errors, non-mapping top level)
    - Missing required parameters (output path, output name)
    - Path pairs that must be given together (PDP root and media root)
    - Output files that already exist when overwriting was not requested
    - Unsupported package file extensions

    The message always names the offending parameter.
    """

    pass


class ContentError(StorePkgError):
    """Raised when input content is invalid.

    This exception is raised when there are problems with:

    - PDP files that are not well-formed XML or use an unknown namespace
    - Package containers that lack their manifest
    - Upload containers with the wrong number of inner packages
    - Packages missing data required for retention selection

    The message always names the file, path or package involved.
    """

    pass


class SchemaValidationError(ContentError):
    """Raised when a PDP file does not conform to its XSD.

    Every violation reported by the validator is collected; none are
    dropped in favor of the first one.

    Attributes:
        path: The file that failed validation.
        violations: One message per schema violation.
    """

    def __init__(self, path: str, violations: list[str]) -> None:
        self.path = path
        self.violations = list(violations)
        details = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(
            f"Validation failed for {path} "
            f"({len(self.violations)} error(s)):\n{details}"
        )


class MediaNotFoundError(ContentError):
    """Raised when a referenced media file exists in no searched folder."""

    pass


class AmbiguousMediaError(ContentError):
    """Raised when a media file name matches more than one file.

    Attributes:
        matches: Every path that matched the requested file name.
    """

    def __init__(self, message: str, matches: list[str]) -> None:
        self.matches = list(matches)
        super().__init__(message)


class UnsupportedPackageError(ContentError):
    """Raised when a package container does not have the expected shape."""

    pass


class PackagingError(StorePkgError):
    """Raised for staging, archive and merge failures.

    This exception is raised when there are problems with:

    - Creating or moving the output archive
    - Reading an existing payload archive during a merge
    - Package file name collisions while merging payloads
    - Package processing failures reported by the Store
    """

    pass


class NetworkError(StorePkgError):
    """Raised for Store API and upload failures.

    The originating requests exception is always chained.
    """

    pass
