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

"""Package metadata extraction.

Store packages are zip containers with a manifest at a fixed location.
Three container kinds are read, each by its own reader, selected through a
dispatch table keyed by lowercased file extension:

- PACKAGE (.appx, .msix): AppxManifest.xml at the root
- BUNDLE (.appxbundle, .msixbundle): AppxMetadata/AppxBundleManifest.xml,
  plus one inner package per architecture that is read recursively
- UPLOAD (.appxupload, .msixupload): exactly one package or exactly one
  bundle (plus symbols), delegated to the matching reader

A fourth kind, OPAQUE (.xap), is accepted for submission but never opened:
its contents may be encrypted.

Every container is extracted into its own temporary directory, which is
removed on every exit path.

Target Platform Detection:
    - Manifest namespace contains "windows10" -> "Windows10"
    - Otherwise Prerequisites/OSMinVersion: "6.3.*" -> <prefix>81,
      "6.2.*" -> <prefix>80, anything else -> None (with a warning)
    - <prefix> is "WindowsPhone" when a PhoneIdentity element is present,
      else "Windows"

Example:
    ```python
    from storepkgtool.packages.metadata import read_package_metadata

    meta = read_package_metadata(Path("out/MyApp_1.0.0.0_x64.msixbundle"))
    print(meta.architecture)           # "Neutral"
    print(sorted(meta.inner_packages)) # ["arm64", "x64"]
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import re
import tempfile
from typing import Any
import zipfile

from lxml import etree

from storepkgtool.exceptions import (
    ConfigError,
    ContentError,
    UnsupportedPackageError,
)
from storepkgtool.logging import Logger, get_global_logger

APPX_MANIFEST = "AppxManifest.xml"
BUNDLE_MANIFEST = "AppxMetadata/AppxBundleManifest.xml"

# Stripped from package identity names before they are reported.
PUBLISHER_NAME_PREFIX = "Microsoft."

DEFAULT_ARCHITECTURE = "neutral"
BUNDLE_ARCHITECTURE = "Neutral"

_WINDOWS10_NAMESPACE = re.compile(r"windows10", re.IGNORECASE)


class ContainerKind(Enum):
    """The kinds of package container the tool accepts."""

    PACKAGE = "package"
    BUNDLE = "bundle"
    UPLOAD = "upload"
    OPAQUE = "opaque"


EXTENSION_KINDS: dict[str, ContainerKind] = {
    ".appx": ContainerKind.PACKAGE,
    ".msix": ContainerKind.PACKAGE,
    ".appxbundle": ContainerKind.BUNDLE,
    ".msixbundle": ContainerKind.BUNDLE,
    ".appxupload": ContainerKind.UPLOAD,
    ".msixupload": ContainerKind.UPLOAD,
    ".xap": ContainerKind.OPAQUE,
}

SUPPORTED_EXTENSIONS: tuple[str, ...] = tuple(EXTENSION_KINDS)


# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True, order=True)
class DeviceFamily:
    """A target device family and the minimum OS version it requires."""

    name: str
    min_os_version: str

    def formatted(self) -> str:
        return f"{self.name} min version {self.min_os_version}"

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "minOSVersion": self.min_os_version}


@dataclass(frozen=True)
class PackageMetadata:
    """Metadata extracted from one package, bundle or upload container.

    Attributes:
        name: Identity name with PUBLISHER_NAME_PREFIX stripped.
        version: Identity version.
        architecture: Processor architecture ("Neutral" for bundles).
        target_platform: "Windows10", "Windows81", "WindowsPhone81", ...
            or None when it cannot be determined.
        languages: Sorted, unique, lowercase resource languages.
        capabilities: Sorted, unique capability names.
        device_families: Sorted, unique target device families.
        inner_packages: For bundles, architecture -> inner package metadata.
    """

    name: str
    version: str
    architecture: str
    target_platform: str | None = None
    languages: tuple[str, ...] = ()
    capabilities: tuple[str, ...] = ()
    device_families: tuple[DeviceFamily, ...] = ()
    inner_packages: dict[str, PackageMetadata] = field(default_factory=dict)

    @property
    def target_device_families(self) -> list[str]:
        return [family.formatted() for family in self.device_families]

    @property
    def target_device_families_ex(self) -> list[dict[str, str]]:
        return [family.to_dict() for family in self.device_families]

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the field names used in submission bodies."""
        data: dict[str, Any] = {
            "version": self.version,
            "architecture": self.architecture,
            "targetPlatform": self.target_platform,
            "languages": list(self.languages),
            "capabilities": list(self.capabilities),
            "targetDeviceFamilies": self.target_device_families,
            "targetDeviceFamiliesEx": self.target_device_families_ex,
            "name": self.name,
        }
        if self.inner_packages:
            data["innerPackages"] = {
                arch: meta.to_dict() for arch, meta in sorted(self.inner_packages.items())
            }
        return data


# -------------------------------
# Extension handling
# -------------------------------


def container_kind(path: Path) -> ContainerKind:
    """Return the container kind for a package path.

    Raises:
        ConfigError: If the extension is not supported.
    """
    kind = EXTENSION_KINDS.get(Path(path).suffix.lower())
    if kind is None:
        raise ConfigError(
            f"packagePaths: unsupported package type '{Path(path).suffix}' for "
            f"{path}. Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    return kind


def supports_inspection(path: Path) -> bool:
    """True if metadata can be read from this package's contents."""
    return container_kind(path) is not ContainerKind.OPAQUE


# -------------------------------
# Helpers
# -------------------------------


@contextmanager
def _extracted(archive: Path) -> Iterator[Path]:
    """Extract a zip container to a temporary directory for the with-block."""
    with tempfile.TemporaryDirectory(prefix="storepkg-") as tmp:
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(tmp)
        except zipfile.BadZipFile as err:
            raise UnsupportedPackageError(
                f"{archive} is not a valid package container: {err}"
            ) from err
        yield Path(tmp)


def _parse_manifest(path: Path, container: Path) -> Any:
    if not path.is_file():
        raise UnsupportedPackageError(
            f"Unsupported file: {container} has no {path.name} manifest"
        )
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        return etree.parse(str(path), parser).getroot()
    except etree.XMLSyntaxError as err:
        raise ContentError(f"{container}: manifest is not valid XML: {err}") from err


def _xpath(element: Any, *local_names: str) -> list[Any]:
    """Select descendants by a path of local names, ignoring namespaces."""
    path = "/".join(f"*[local-name()='{name}']" for name in local_names)
    return element.xpath(f".//{path}")


def _strip_publisher_prefix(name: str) -> str:
    if name.startswith(PUBLISHER_NAME_PREFIX):
        return name[len(PUBLISHER_NAME_PREFIX) :]
    return name


def _identity(root: Any, container: Path) -> Any:
    identities = root.xpath("./*[local-name()='Identity']")
    if not identities:
        raise UnsupportedPackageError(
            f"Unsupported file: {container} manifest has no Identity"
        )
    return identities[0]


def _detect_target_platform(root: Any, container: Path, logger: Logger) -> str | None:
    namespace = etree.QName(root).namespace or ""
    if _WINDOWS10_NAMESPACE.search(namespace):
        return "Windows10"

    prefix = "WindowsPhone" if _xpath(root, "PhoneIdentity") else "Windows"
    min_versions = _xpath(root, "Prerequisites", "OSMinVersion")
    min_version = (min_versions[0].text or "").strip() if min_versions else ""

    if min_version.startswith("6.3."):
        return f"{prefix}81"
    if min_version.startswith("6.2."):
        return f"{prefix}80"

    logger.warning(
        "PACKAGE",
        f"Could not determine target platform for {container} "
        f"(OSMinVersion={min_version or 'missing'})",
    )
    return None


def _languages(root: Any) -> set[str]:
    return {
        lang.lower()
        for res in _xpath(root, "Resources", "Resource")
        if (lang := res.get("Language"))
    }


def _capabilities(root: Any) -> set[str]:
    caps = root.xpath("./*[local-name()='Capabilities']/*")
    return {name for cap in caps if (name := cap.get("Name"))}


def _device_families(root: Any) -> set[DeviceFamily]:
    return {
        DeviceFamily(name=tdf.get("Name", ""), min_os_version=tdf.get("MinVersion", ""))
        for tdf in _xpath(root, "Dependencies", "TargetDeviceFamily")
    }


# -------------------------------
# Readers
# -------------------------------


def _read_package(path: Path, logger: Logger) -> PackageMetadata:
    logger.verbose("PACKAGE", f"Reading package: {path.name}")
    with _extracted(path) as extracted:
        root = _parse_manifest(extracted / APPX_MANIFEST, path)
        identity = _identity(root, path)

        return PackageMetadata(
            name=_strip_publisher_prefix(identity.get("Name", "")),
            version=identity.get("Version", ""),
            architecture=identity.get("ProcessorArchitecture") or DEFAULT_ARCHITECTURE,
            target_platform=_detect_target_platform(root, path, logger),
            languages=tuple(sorted(_languages(root))),
            capabilities=tuple(sorted(_capabilities(root))),
            device_families=tuple(sorted(_device_families(root))),
        )


def _read_bundle(path: Path, logger: Logger) -> PackageMetadata:
    logger.verbose("PACKAGE", f"Reading bundle: {path.name}")
    with _extracted(path) as extracted:
        root = _parse_manifest(extracted / BUNDLE_MANIFEST, path)
        identity = _identity(root, path)

        languages: set[str] = set()
        capabilities: set[str] = set()
        families: set[DeviceFamily] = set()
        inner: dict[str, PackageMetadata] = {}
        target_platform: str | None = None

        for entry in _xpath(root, "Packages", "Package"):
            languages |= _languages(entry)
            if (entry.get("Type") or "").lower() != "application":
                continue

            file_name = entry.get("FileName", "")
            inner_path = extracted / file_name
            if not file_name or not inner_path.is_file():
                raise UnsupportedPackageError(
                    f"Unsupported file: {path} references missing inner package "
                    f"'{file_name}'"
                )

            meta = _read_package(inner_path, logger)
            inner[meta.architecture] = meta
            languages |= set(meta.languages)
            capabilities |= set(meta.capabilities)
            families |= set(meta.device_families)
            # Last application package read decides the bundle's platform.
            target_platform = meta.target_platform

        return PackageMetadata(
            name=_strip_publisher_prefix(identity.get("Name", "")),
            version=identity.get("Version", ""),
            architecture=BUNDLE_ARCHITECTURE,
            target_platform=target_platform,
            languages=tuple(sorted(languages)),
            capabilities=tuple(sorted(capabilities)),
            device_families=tuple(sorted(families)),
            inner_packages=inner,
        )


def _read_upload(path: Path, logger: Logger) -> PackageMetadata:
    logger.verbose("PACKAGE", f"Reading upload container: {path.name}")
    with _extracted(path) as extracted:
        packages: list[Path] = []
        bundles: list[Path] = []
        for candidate in sorted(extracted.rglob("*")):
            kind = EXTENSION_KINDS.get(candidate.suffix.lower())
            if kind is ContainerKind.PACKAGE:
                packages.append(candidate)
            elif kind is ContainerKind.BUNDLE:
                bundles.append(candidate)

        if len(bundles) == 1 and not packages:
            return _read_bundle(bundles[0], logger)
        if len(packages) == 1 and not bundles:
            return _read_package(packages[0], logger)

        raise UnsupportedPackageError(
            f"{path} is not a proper upload container: expected exactly 1 "
            f"package or exactly 1 bundle, found {len(packages)} package(s) "
            f"and {len(bundles)} bundle(s)"
        )


_READERS: dict[ContainerKind, Callable[[Path, Logger], PackageMetadata]] = {
    ContainerKind.PACKAGE: _read_package,
    ContainerKind.BUNDLE: _read_bundle,
    ContainerKind.UPLOAD: _read_upload,
}


def read_package_metadata(path: Path, logger: Logger | None = None) -> PackageMetadata:
    """Read metadata from a package, bundle or upload container.

    Args:
        path: The package file.
        logger: Logger for progress and warnings. Defaults to the global
            logger.

    Returns:
        PackageMetadata for the container.

    Raises:
        ConfigError: If the extension is unsupported.
        UnsupportedPackageError: If the container cannot be inspected, lacks
            its manifest, or has the wrong number of inner packages.
        ContentError: If a manifest is not valid XML.
    """
    if logger is None:
        logger = get_global_logger()

    path = Path(path)
    kind = container_kind(path)
    reader = _READERS.get(kind)
    if reader is None:
        raise UnsupportedPackageError(
            f"{path}: {path.suffix} packages do not support metadata inspection"
        )
    return reader(path, logger)
