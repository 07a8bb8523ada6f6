"""
Pytest configuration and shared fixtures for storepkgtool tests.

This module provides reusable fixtures and test utilities used across
the test suite: factories for PDP files, media trees and fake package
containers, all written under tmp_path.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any
import zipfile

import pytest
import yaml

from storepkgtool.context import BuildContext
from storepkgtool.listing.pdp import IAP_PDP_NAMESPACE, PDP_NAMESPACE
from storepkgtool.logging import SilentLogger, set_global_logger

WINDOWS10_MANIFEST_NS = "http://schemas.microsoft.com/appx/manifest/foundation/windows10"
LEGACY_MANIFEST_NS = "http://schemas.microsoft.com/appx/2013/manifest"
PHONE_MANIFEST_NS = "http://schemas.microsoft.com/appx/2014/phone/manifest"
BUNDLE_NS = "http://schemas.microsoft.com/appx/2013/bundle"


@pytest.fixture(autouse=True)
def silent_logger():
    """Keep library output out of test logs."""
    set_global_logger(SilentLogger())
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def build_context(tmp_test_dir: Path) -> BuildContext:
    """Provide a BuildContext staging into a fresh directory."""
    staging = tmp_test_dir / "staging"
    staging.mkdir()
    return BuildContext(staging_dir=staging, logger=SilentLogger())


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("config.yaml", {"key": "value"})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def write_pdp():
    """
    Factory fixture for writing PDP files.

    Usage:
        path = write_pdp(pdp_root, "en-us", "<Description>Hi</Description>",
                         release="1701")

    The file lands at <pdp_root>/<language>/<filename>; the release is
    written as the document's Release attribute.
    """

    def _write(
        pdp_root: Path,
        language: str,
        body: str,
        *,
        release: str | None = None,
        fallback_language: str | None = None,
        filename: str = "listing.xml",
        iap: bool = False,
    ) -> Path:
        root_name = "InAppProductDescription" if iap else "ProductDescription"
        namespace = IAP_PDP_NAMESPACE if iap else PDP_NAMESPACE
        attrs = f' language="{language}"'
        if release:
            attrs += f' Release="{release}"'
        if fallback_language:
            attrs += f' FallbackLanguage="{fallback_language}"'
        path = pdp_root / language / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            '<?xml version="1.0" encoding="utf-8"?>\n'
            f'<{root_name} xmlns="{namespace}"{attrs}>\n{body}\n</{root_name}>\n',
            encoding="utf-8",
        )
        return path

    return _write


@pytest.fixture
def make_media():
    """
    Factory fixture for writing media files.

    Usage:
        make_media(media_root, "en-us", "shot1.png", release="1701")
        make_media(media_root, "en-us", "nested/shot1.png")
    """

    def _make(
        media_root: Path,
        language: str,
        relative: str,
        *,
        release: str | None = None,
        content: bytes = b"\x89PNG fake",
    ) -> Path:
        folder = media_root / release / language if release else media_root / language
        path = folder / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _make


def _appx_manifest(
    name: str,
    version: str,
    architecture: str | None,
    languages: Iterable[str],
    capabilities: Iterable[str],
    families: Iterable[tuple[str, str]],
    legacy_os_min: str | None,
    phone: bool,
) -> str:
    arch_attr = f' ProcessorArchitecture="{architecture}"' if architecture else ""
    resources = "".join(f'<Resource Language="{lang}"/>' for lang in languages)
    caps = "".join(f'<Capability Name="{cap}"/>' for cap in capabilities)

    if legacy_os_min is None:
        deps = "".join(
            f'<TargetDeviceFamily Name="{fam}" MinVersion="{minv}" MaxVersionTested="{minv}"/>'
            for fam, minv in families
        )
        return (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            f'<Package xmlns="{WINDOWS10_MANIFEST_NS}">'
            f'<Identity Name="{name}" Publisher="CN=Contoso" Version="{version}"{arch_attr}/>'
            "<Properties><DisplayName>Test</DisplayName></Properties>"
            f"<Dependencies>{deps}</Dependencies>"
            f"<Resources>{resources}</Resources>"
            f"<Capabilities>{caps}</Capabilities>"
            "</Package>"
        )

    phone_ns = f' xmlns:mp="{PHONE_MANIFEST_NS}"' if phone else ""
    phone_el = '<mp:PhoneIdentity PhoneProductId="1" PhonePublisherId="2"/>' if phone else ""
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<Package xmlns="{LEGACY_MANIFEST_NS}"{phone_ns}>'
        f'<Identity Name="{name}" Publisher="CN=Contoso" Version="{version}"{arch_attr}/>'
        f"{phone_el}"
        "<Properties><DisplayName>Test</DisplayName></Properties>"
        f"<Prerequisites><OSMinVersion>{legacy_os_min}</OSMinVersion>"
        f"<OSMaxVersionTested>{legacy_os_min}</OSMaxVersionTested></Prerequisites>"
        f"<Resources>{resources}</Resources>"
        f"<Capabilities>{caps}</Capabilities>"
        "</Package>"
    )


@pytest.fixture
def make_appx():
    """
    Factory fixture for fake single packages (.appx/.msix).

    Usage:
        path = make_appx(tmp / "App_x64.msix", arch="x64",
                         capabilities=("internetClient",))

    Pass legacy_os_min="6.3.0" for a pre-Windows 10 manifest.
    """

    def _make(
        path: Path,
        *,
        name: str = "Contoso.Maps",
        version: str = "1.0.0.0",
        arch: str | None = "x64",
        languages: Iterable[str] = ("en-US",),
        capabilities: Iterable[str] = ("internetClient",),
        families: Iterable[tuple[str, str]] = (("Windows.Desktop", "10.0.17763.0"),),
        legacy_os_min: str | None = None,
        phone: bool = False,
        manifest: bool = True,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            if manifest:
                zf.writestr(
                    "AppxManifest.xml",
                    _appx_manifest(
                        name, version, arch, languages, capabilities, families,
                        legacy_os_min, phone,
                    ),
                )
            zf.writestr("App.exe", b"MZ fake")
        return path

    return _make


@pytest.fixture
def make_bundle():
    """
    Factory fixture for fake bundles (.appxbundle/.msixbundle).

    Usage:
        bundle = make_bundle(tmp / "App.msixbundle", [x64_appx, arm_appx],
                             resource_languages=("fr-FR",))

    Inner packages are listed in the given order as application packages.
    """

    def _make(
        path: Path,
        inner: Iterable[Path],
        *,
        name: str = "Contoso.Maps",
        version: str = "1.0.0.0",
        resource_languages: Iterable[str] = (),
        manifest: bool = True,
    ) -> Path:
        inner = list(inner)
        entries = "".join(
            f'<Package Type="application" Version="{version}" FileName="{p.name}" '
            f'Offset="0" Size="{p.stat().st_size}"/>'
            for p in inner
        )
        for index, lang in enumerate(resource_languages):
            entries += (
                f'<Package Type="resource" Version="{version}" '
                f'FileName="resources{index}.appx" Offset="0" Size="1">'
                f'<Resources><Resource Language="{lang}"/></Resources></Package>'
            )
        xml = (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            f'<Bundle xmlns="{BUNDLE_NS}" SchemaVersion="2.0">'
            f'<Identity Name="{name}" Publisher="CN=Contoso" Version="{version}"/>'
            f"<Packages>{entries}</Packages>"
            "</Bundle>"
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            if manifest:
                zf.writestr("AppxMetadata/AppxBundleManifest.xml", xml)
            for p in inner:
                zf.write(p, p.name)
        return path

    return _make


@pytest.fixture
def make_upload():
    """
    Factory fixture for fake upload containers (.appxupload/.msixupload).

    Usage:
        upload = make_upload(tmp / "App.msixupload", [bundle_path])

    A symbols file is always added next to the given members.
    """

    def _make(path: Path, members: Iterable[Path]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for member in members:
                zf.write(member, member.name)
            zf.writestr("App.appxsym", b"symbols")
        return path

    return _make


@pytest.fixture
def screenshot_pdp_body():
    """A minimal valid listing body with one desktop screenshot."""
    return (
        "<AppStoreName>Contoso Maps</AppStoreName>"
        "<Description>Find your way.</Description>"
        '<ScreenshotCaptions><Caption DesktopImage="shot1.png">Main view</Caption>'
        "</ScreenshotCaptions>"
    )
