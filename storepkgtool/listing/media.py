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

"""Localized media resolution and staging.

Media referenced from a PDP lives in a per-language tree:

    <media_root>/<release>/<language>/**/<filename>

The resolver finds the file (searching recursively), optionally retries in
a fallback language's folder, copies it into the build context's staging
directory and returns the path the file will have inside the payload
archive:

    Assets/<language>/<filename>

Rules:
    - Exactly one file may match inside the searched language folder. Two
      matches (for example the same screenshot deposited twice by a
      localization pipeline) is an error, never a silent pick.
    - The fallback folder is only searched if it exists; a missing fallback
      folder is logged and the fallback is skipped.
    - Staging is idempotent: a file already staged is not copied again.

Example:
    ```python
    from storepkgtool.context import BuildContext
    from storepkgtool.listing.media import resolve_media

    ctx = BuildContext(staging_dir=Path("staging"))
    rel = resolve_media("shot1.png", Path("media"), "fr-fr", "1701", "en-us", ctx)
    # "Assets/en-us/shot1.png" if only the en-us folder has it
    ```
"""

from __future__ import annotations

import glob
from pathlib import Path
import shutil

from storepkgtool.context import ASSETS_FOLDER, BuildContext
from storepkgtool.exceptions import AmbiguousMediaError, MediaNotFoundError


def pick_fallback_language(*candidates: str | None) -> str | None:
    """Return the first non-empty fallback language.

    Callers pass candidates most-specific first: the asset's own attribute,
    then its group's attribute, then the document's, then the invocation
    default.
    """
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def _language_folder(media_root: Path, release: str | None, language: str) -> Path:
    if release:
        return media_root / release / language
    return media_root / language


def _find_matches(folder: Path, filename: str) -> list[Path]:
    if not folder.is_dir():
        return []
    return sorted(p for p in folder.rglob(glob.escape(filename)) if p.is_file())


def _stage(source: Path, language: str, filename: str, context: BuildContext) -> str:
    destination = context.assets_dir / language / filename
    if destination.exists():
        context.logger.debug("MEDIA", f"Already staged: {destination}")
    else:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        context.logger.verbose("MEDIA", f"Staged {source} -> {destination}")
    return f"{ASSETS_FOLDER}/{language}/{filename}"


def resolve_media(
    filename: str,
    media_root: Path,
    language: str,
    release: str | None,
    fallback_language: str | None,
    context: BuildContext,
) -> str:
    """Locate a localized media file and stage it for the payload.

    Args:
        filename: Bare file name referenced by the PDP.
        media_root: Root of the media tree.
        language: Language the PDP describes.
        release: Release folder named inside the PDP (None or empty when
            the media tree has no release level).
        fallback_language: Language whose media is used when the primary
            language folder lacks the file.
        context: Build context that receives the staged copy.

    Returns:
        The package-relative path, "Assets/<language>/<filename>".

    Raises:
        MediaNotFoundError: If neither folder contains the file.
        AmbiguousMediaError: If the chosen folder contains more than one
            file with this name.
    """
    media_root = Path(media_root)
    primary = _language_folder(media_root, release, language)
    searched = [primary]

    matches = _find_matches(primary, filename)
    chosen_language = language

    if not matches and fallback_language and fallback_language != language:
        fallback = _language_folder(media_root, release, fallback_language)
        if fallback.is_dir():
            searched.append(fallback)
            matches = _find_matches(fallback, filename)
            chosen_language = fallback_language
            if matches:
                context.logger.verbose(
                    "MEDIA",
                    f"{filename} not found for {language}, "
                    f"using {fallback_language} fallback",
                )
        else:
            context.logger.warning(
                "MEDIA",
                f"Fallback language folder does not exist: {fallback}. "
                "Fallback disabled for this file.",
            )

    if not matches:
        paths = " or ".join(str(p / "**" / filename) for p in searched)
        raise MediaNotFoundError(f"Media file not found: {paths}")

    if len(matches) > 1:
        listing = "\n".join(f"  - {m}" for m in matches)
        raise AmbiguousMediaError(
            f"Ambiguous media file '{filename}': {len(matches)} files match "
            f"under {searched[-1]}. Remove the duplicates:\n{listing}",
            [str(m) for m in matches],
        )

    return _stage(matches[0], chosen_language, filename, context)
