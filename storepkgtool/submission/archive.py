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

"""Payload output: the <outName>.json body and the <outName>.zip archive.

Payload Layout:
    <outName>.json    compact UTF-8 submission body
    <outName>.zip     uncompressed archive of the staging directory:
                        Assets/<lang>/...   staged media
                        <package files>     staged packages, at the root

The zip is first built inside a local temporary directory and then moved to
its destination, so slow or remote output folders only ever see a complete
file.

Merging combines two existing payloads: the master payload is copied and
the additional payload's packages (entries and files) are appended to it.
"""

from __future__ import annotations

import datetime
import json
from pathlib import Path
import shutil
import tempfile
from typing import Any
import zipfile

from storepkgtool.exceptions import ConfigError, PackagingError
from storepkgtool.logging import Logger, get_global_logger
from storepkgtool.submission.models import PENDING_UPLOAD


def output_paths(out_path: Path, out_name: str) -> tuple[Path, Path]:
    """Return the (json, zip) paths for an output name."""
    out_path = Path(out_path)
    return out_path / f"{out_name}.json", out_path / f"{out_name}.zip"


def check_outputs(out_path: Path, out_name: str, force: bool = False) -> tuple[Path, Path]:
    """Return the output paths, refusing to overwrite unless force is set.

    Raises:
        ConfigError: If an output exists and force is False.
    """
    json_path, zip_path = output_paths(out_path, out_name)
    if not force:
        for path in (json_path, zip_path):
            if path.exists():
                raise ConfigError(
                    f"outName: {path} already exists (use --force to overwrite)"
                )
    return json_path, zip_path


def _json_default(value: Any) -> Any:
    # YAML configs yield dates and datetimes for unquoted timestamps.
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat().replace("+00:00", "Z")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(body: dict[str, Any]) -> bytes:
    """Serialize a submission body to compact UTF-8 JSON.

    Raises:
        PackagingError: If a value cannot be represented in JSON.
    """
    try:
        text = json.dumps(
            body, separators=(",", ":"), ensure_ascii=False, default=_json_default
        )
    except (TypeError, ValueError) as err:
        raise PackagingError(f"Cannot serialize submission body: {err}") from err
    return text.encode("utf-8")


def _move_into_place(built: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.exists():
        destination.unlink()
    shutil.move(str(built), str(destination))


def write_payload(
    body: dict[str, Any],
    staging_dir: Path,
    json_path: Path,
    zip_path: Path,
    logger: Logger | None = None,
) -> None:
    """Zip the staging directory and write the JSON body.

    Both files are built in a temporary directory and only moved to
    json_path and zip_path once both are complete.

    Args:
        body: Serialized submission body.
        staging_dir: Directory whose contents become the archive.
        json_path: Where to write the body.
        zip_path: Where to place the archive.
        logger: Logger for progress. Defaults to the global logger.

    Raises:
        PackagingError: If the body cannot be serialized.
    """
    if logger is None:
        logger = get_global_logger()

    data = encode_body(body)
    staging_dir = Path(staging_dir)
    with tempfile.TemporaryDirectory(prefix="storepkg-zip-") as tmp:
        built = Path(tmp) / zip_path.name
        count = 0
        with zipfile.ZipFile(built, "w", compression=zipfile.ZIP_STORED) as zf:
            for path in sorted(staging_dir.rglob("*")):
                if path.is_file():
                    zf.write(path, path.relative_to(staging_dir).as_posix())
                    count += 1
        logger.verbose("ARCHIVE", f"Built archive with {count} file(s)")
        built_json = Path(tmp) / json_path.name
        built_json.write_bytes(data)
        _move_into_place(built, zip_path)
        _move_into_place(built_json, json_path)

    logger.verbose("ARCHIVE", f"Wrote {json_path} and {zip_path}")


def load_payload_body(json_path: Path) -> dict[str, Any]:
    """Read a submission body written by write_payload.

    Raises:
        ConfigError: If the file is missing.
        PackagingError: If it is not a JSON object.
    """
    json_path = Path(json_path)
    if not json_path.is_file():
        raise ConfigError(f"Payload not found: {json_path}")
    try:
        with open(json_path, encoding="utf-8") as f:
            body = json.load(f)
    except json.JSONDecodeError as err:
        raise PackagingError(f"{json_path} is not valid JSON: {err}") from err
    if not isinstance(body, dict):
        raise PackagingError(f"{json_path} must contain a JSON object")
    return body


def _pending_names(packages: list[dict[str, Any]]) -> list[str]:
    return [
        p["fileName"]
        for p in packages
        if p.get("fileStatus") == PENDING_UPLOAD and p.get("fileName")
    ]


def merge_payloads(
    master_json: Path,
    master_zip: Path,
    additional_json: Path,
    additional_zip: Path,
    json_path: Path,
    zip_path: Path,
    logger: Logger | None = None,
) -> int:
    """Append the additional payload's packages to a copy of the master.

    Args:
        master_json: Body of the payload that is copied.
        master_zip: Archive of the payload that is copied.
        additional_json: Body whose applicationPackages are appended.
        additional_zip: Archive holding the appended packages' files.
        json_path: Merged body destination.
        zip_path: Merged archive destination.
        logger: Logger for progress. Defaults to the global logger.

    Returns:
        Number of package entries appended.

    Raises:
        PackagingError: If a pending-upload file name appears in both
            payloads (or twice in one), or a package file is missing from
            the additional archive.
    """
    if logger is None:
        logger = get_global_logger()

    for path in (master_zip, additional_zip):
        if not Path(path).is_file():
            raise ConfigError(f"Payload archive not found: {path}")

    body = load_payload_body(master_json)
    additional = load_payload_body(additional_json)

    master_packages = list(body.get("applicationPackages") or [])
    added_packages = list(additional.get("applicationPackages") or [])

    seen: set[str] = set()
    for name in _pending_names(master_packages) + _pending_names(added_packages):
        if name.lower() in seen:
            raise PackagingError(
                f"Cannot merge: package file '{name}' would be uploaded twice"
            )
        seen.add(name.lower())

    body["applicationPackages"] = master_packages + added_packages
    data = encode_body(body)

    with tempfile.TemporaryDirectory(prefix="storepkg-merge-") as tmp:
        built = Path(tmp) / Path(zip_path).name
        shutil.copyfile(master_zip, built)
        try:
            with zipfile.ZipFile(additional_zip) as source, zipfile.ZipFile(
                built, "a", compression=zipfile.ZIP_STORED
            ) as target:
                names = set(source.namelist())
                for name in _pending_names(added_packages):
                    if name not in names:
                        raise PackagingError(
                            f"Cannot merge: '{name}' is listed in {additional_json} "
                            f"but missing from {additional_zip}"
                        )
                    target.writestr(source.getinfo(name), source.read(name))
                    logger.verbose("ARCHIVE", f"Merged package file: {name}")
        except zipfile.BadZipFile as err:
            raise PackagingError(f"Cannot merge: invalid archive: {err}") from err
        built_json = Path(tmp) / Path(json_path).name
        built_json.write_bytes(data)
        _move_into_place(built, Path(zip_path))
        _move_into_place(built_json, Path(json_path))

    logger.verbose(
        "ARCHIVE", f"Merged {len(added_packages)} package(s) into {json_path}"
    )
    return len(added_packages)
