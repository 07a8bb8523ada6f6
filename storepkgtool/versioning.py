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

"""Package version parsing and comparison.

Store packages carry four-part numeric versions ("Major.Minor.Build.Revision",
e.g. "2.13.22002.0"). This module is format-agnostic: it does NOT read
packages. It only parses and compares version strings consistently.

Example:
    >>> from storepkgtool.versioning import compare_versions, version_key
    >>> compare_versions("1.10.0.0", "1.9.0.0")
    1
    >>> version_key("1.2")
    (1, (1, 2, 0, 0))
"""

from __future__ import annotations

import re

# Package versions never have more than four parts.
_MAX_PARTS = 4

_NUM_SEP = re.compile(r"[._-]")


def _ints_from_text(text: str) -> tuple[int, ...]:
    """Parse numeric components only.
    Raises ValueError if any non-numeric token is encountered to avoid
    silently mapping "1.2a" -> (1,2,0).
    """
    parts = [p for p in _NUM_SEP.split(text.strip()) if p]
    nums: list[int] = []
    for p in parts:
        if not p.isdigit():
            raise ValueError(f"non-numeric version component {p!r} in {text!r}")
        nums.append(int(p))
    return tuple(nums) if nums else (0,)


def _pad(nums: tuple[int, ...]) -> tuple[int, ...]:
    """Pad (or clip) a version tuple to exactly four parts."""
    nums = nums[:_MAX_PARTS]
    return nums + (0,) * (_MAX_PARTS - len(nums))


def parse_package_version(text: str) -> tuple[int, int, int, int]:
    """Parse a package version into a four-part integer tuple.

    Args:
        text: Version string such as "1.2.3.4" or "1.2".

    Returns:
        A (major, minor, build, revision) tuple; missing parts are zero.

    Raises:
        ValueError: If the version contains non-numeric components.
    """
    return _pad(_ints_from_text(text))  # type: ignore[return-value]


def version_key(text: str | None) -> tuple:
    """Compute a sortable key for any version string.

    Numeric versions sort by their four-part tuple. Anything that fails
    numeric parsing sorts below every numeric version, ordered as text.
    """
    if text is None:
        return (0, "")
    try:
        return (1, parse_package_version(text))
    except ValueError:
        return (0, text)


def compare_versions(a: str, b: str) -> int:
    """Compare two versions.
    Returns -1 if a < b, 0 if equal, 1 if a > b.
    """
    ka = version_key(a)
    kb = version_key(b)
    return (ka > kb) - (ka < kb)
