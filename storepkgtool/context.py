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

"""Per-invocation build context.

A BuildContext carries the staging directory that media and packages are
copied into, plus the logger used while building. One context is created
per tool invocation and passed down explicitly; nothing below the top-level
orchestration reads ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from storepkgtool.logging import Logger, get_global_logger

# Staged media lives under this folder inside the payload archive.
ASSETS_FOLDER = "Assets"


@dataclass(frozen=True)
class BuildContext:
    """Shared state for one packaging run.

    Attributes:
        staging_dir: Directory whose contents become the payload zip.
        logger: Logger for progress and diagnostics.
    """

    staging_dir: Path
    logger: Logger = field(default_factory=get_global_logger)

    @property
    def assets_dir(self) -> Path:
        return self.staging_dir / ASSETS_FOLDER
