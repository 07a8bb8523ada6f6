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

"""Product description (PDP) parsing and validation.

A PDP is a localized XML document describing one language's store listing.
PDPs live in a per-language tree:

    <pdp_root>[/<release>]/<language>/.../*.xml

The language of a PDP is the first folder below the listings root. The
document declares its kind through its XML namespace, and is validated
against the XSD registered for that namespace before anything is read from
it:

    - ProductDescription: an application listing (text, arrays,
      screenshots, additional assets, trailers)
    - InAppProductDescription: an in-app product listing (title,
      description, icon)

Every media file a PDP references is resolved and staged through
storepkgtool.listing.media.

Example:
    ```python
    from storepkgtool.context import BuildContext
    from storepkgtool.listing.pdp import parse_listing

    ctx = BuildContext(staging_dir=Path("staging"))
    result = parse_listing(
        Path("pdps/en-us/PDP.xml"), Path("pdps"), [], Path("media"), None, ctx
    )
    if result is not None:
        language, listing = result
    ```
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from fnmatch import fnmatch
from functools import lru_cache
from pathlib import Path
from typing import Any

from lxml import etree

from storepkgtool.context import BuildContext
from storepkgtool.exceptions import ConfigError, ContentError, SchemaValidationError
from storepkgtool.listing.media import pick_fallback_language, resolve_media
from storepkgtool.logging import get_global_logger

PDP_NAMESPACE = "http://schemas.microsoft.com/appx/2012/ProductDescription"
IAP_PDP_NAMESPACE = "http://schemas.microsoft.com/appx/2012/InAppProductDescription"

_SCHEMA_DIR = Path(__file__).parent / "schemas"
_SCHEMA_FILES: dict[str, str] = {
    PDP_NAMESPACE: "ProductDescription.xsd",
    IAP_PDP_NAMESPACE: "InAppProductDescription.xsd",
}

PENDING_UPLOAD = "PendingUpload"

# Caption attribute -> image type emitted for that slot
SCREENSHOT_SLOTS: tuple[tuple[str, str], ...] = (
    ("DesktopImage", "Screenshot"),
    ("MobileImage", "MobileScreenshot"),
    ("XboxImage", "XboxScreenshot"),
    ("HoloLensImage", "HoloLensScreenshot"),
    ("SurfaceHubImage", "SurfaceHubScreenshot"),
)

# Listing key -> PDP element holding its text
_TEXT_FIELDS: dict[str, str] = {
    "copyrightAndTrademarkInfo": "CopyrightAndTrademark",
    "licenseTerms": "AdditionalLicenseTerms",
    "privacyPolicy": "PrivacyPolicyURL",
    "supportContact": "SupportContactInfo",
    "websiteUrl": "WebsiteURL",
    "description": "Description",
    "releaseNotes": "ReleaseNotes",
    "shortDescription": "ShortDescription",
    "shortTitle": "ShortTitle",
    "sortTitle": "SortTitle",
    "voiceTitle": "VoiceTitle",
    "devStudio": "DevStudio",
}

# Listing key -> (container element, item element)
_ARRAY_FIELDS: dict[str, tuple[str, str]] = {
    "keywords": ("Keywords", "Keyword"),
    "features": ("AppFeatures", "AppFeature"),
    "recommendedHardware": ("RecommendedHardware", "Recommendation"),
    "minimumHardware": ("MinimumHardware", "MinimumRequirement"),
}


# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class PdpDocument:
    """A parsed and schema-validated PDP.

    Attributes:
        path: The XML file.
        language: Language code taken from the file's folder.
        namespace: Declared XML namespace (selects the document kind).
        root: Root element of the parsed document.
    """

    path: Path
    language: str
    namespace: str
    root: Any

    @property
    def release(self) -> str | None:
        value = (self.root.get("Release") or "").strip()
        return value or None

    @property
    def fallback_language(self) -> str | None:
        return self.root.get("FallbackLanguage")

    def find(self, name: str) -> Any:
        return self.root.find(_qualify(self.namespace, name))


@dataclass(frozen=True)
class ImageListing:
    """One image attached to a listing."""

    file_name: str
    image_type: str
    description: str | None = None
    file_status: str = PENDING_UPLOAD

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "fileName": self.file_name,
            "fileStatus": self.file_status,
        }
        if self.description is not None:
            data["description"] = self.description
        data["imageType"] = self.image_type
        return data


@dataclass(frozen=True)
class ListingEntry:
    """A language's listing: base listing plus (empty) platform overrides."""

    language: str
    base_listing: dict[str, Any]
    platform_overrides: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseListing": self.base_listing,
            "platformOverrides": self.platform_overrides,
        }


@dataclass(frozen=True)
class PdpValidationResult:
    """Result from validating a tree of PDP files.

    Attributes:
        status: "valid" or "invalid".
        files_checked: Number of PDP files parsed.
        errors: File path -> error message for every file that failed.
        skipped: Files skipped because their language is excluded.
    """

    status: str
    files_checked: int
    errors: dict[str, str]
    skipped: list[str]


# -------------------------------
# XML helpers
# -------------------------------


def _qualify(namespace: str, name: str) -> str:
    return f"{{{namespace}}}{name}"


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True)


@lru_cache(maxsize=None)
def _load_schema(namespace: str) -> etree.XMLSchema:
    schema_doc = etree.parse(str(_SCHEMA_DIR / _SCHEMA_FILES[namespace]))
    return etree.XMLSchema(schema_doc)


def _inner_text(element: Any) -> str:
    """Concatenate the text of an element and its child elements.

    Comments and processing instructions contribute nothing, but the text
    that follows them (their tail) does.
    """
    parts = [element.text or ""]
    for child in element:
        if isinstance(child.tag, str):
            parts.append(_inner_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


def _text(element: Any) -> str:
    if element is None:
        return ""
    return _inner_text(element).strip()


def _attr(element: Any, name: str) -> str | None:
    if element is None:
        return None
    value = element.get(name)
    if value is None:
        return None
    return value.strip() or None


def _local_name(element: Any) -> str:
    return etree.QName(element).localname


# -------------------------------
# Discovery
# -------------------------------


def resolve_listings_root(pdp_root: Path, release: str | None) -> Path:
    """Return the folder that holds the per-language PDP folders.

    Raises:
        ConfigError: If the root (or root/release when a release is given)
            does not exist.
    """
    pdp_root = Path(pdp_root)
    if not pdp_root.is_dir():
        raise ConfigError(f"pdpRootPath: folder not found: {pdp_root}")
    if release:
        release_root = pdp_root / release
        if not release_root.is_dir():
            raise ConfigError(
                f"release: folder '{release}' not found under {pdp_root}"
            )
        return release_root
    return pdp_root


def find_pdp_files(
    listings_root: Path, include: Iterable[str], exclude: Iterable[str] = ()
) -> list[Path]:
    """List PDP files under listings_root whose names pass the filters.

    Files are returned in sorted path order so that repeated runs see the
    languages in the same order.
    """
    include = list(include) or ["*.xml"]
    exclude = list(exclude)
    found = []
    for path in sorted(Path(listings_root).rglob("*")):
        if not path.is_file():
            continue
        if not any(fnmatch(path.name, pattern) for pattern in include):
            continue
        if any(fnmatch(path.name, pattern) for pattern in exclude):
            continue
        found.append(path)
    return found


def language_from_path(xml_path: Path, pdp_root: Path) -> str:
    """Derive the language from the first folder below pdp_root.

    Raises:
        ContentError: If the file is not inside a language folder.
    """
    try:
        relative = Path(xml_path).resolve().relative_to(Path(pdp_root).resolve())
    except ValueError as err:
        raise ContentError(f"{xml_path} is not under {pdp_root}") from err
    if len(relative.parts) < 2:
        raise ContentError(
            f"{xml_path} must be inside a language folder under {pdp_root}"
        )
    return relative.parts[0]


# -------------------------------
# Parsing and validation
# -------------------------------


def load_and_validate(xml_path: Path) -> tuple[Any, str]:
    """Parse a PDP and validate it against the XSD for its namespace.

    Returns:
        A (root element, namespace) tuple.

    Raises:
        ContentError: If the file is not well-formed XML or declares a
            namespace with no registered schema.
        SchemaValidationError: If the document violates its schema. Every
            violation is listed.
    """
    try:
        tree = etree.parse(str(xml_path), _make_parser())
    except (etree.XMLSyntaxError, OSError) as err:
        raise ContentError(f"{xml_path} is not a valid XML document: {err}") from err

    root = tree.getroot()
    namespace = etree.QName(root).namespace or ""
    if namespace not in _SCHEMA_FILES:
        raise ContentError(
            f"{xml_path}: schema for namespace '{namespace}' not found. "
            f"Known namespaces: {', '.join(sorted(_SCHEMA_FILES))}"
        )

    schema = _load_schema(namespace)
    if not schema.validate(tree):
        violations = [f"line {e.line}: {e.message}" for e in schema.error_log]
        raise SchemaValidationError(str(xml_path), violations)

    return root, namespace


def read_pdp(
    xml_path: Path,
    pdp_root: Path,
    language_exclude: Iterable[str] = (),
    *,
    expected_namespace: str | None = None,
    logger=None,
) -> PdpDocument | None:
    """Read one PDP, or return None if its language is excluded.

    Args:
        xml_path: PDP file.
        pdp_root: Listings root the language folder sits under.
        language_exclude: Languages (case-insensitive) to skip.
        expected_namespace: If set, the document must declare it.
        logger: Logger for the skip message. Defaults to the global logger.

    Raises:
        ContentError: For malformed XML, unknown or unexpected namespace.
        SchemaValidationError: For schema violations.
    """
    if logger is None:
        logger = get_global_logger()

    language = language_from_path(xml_path, pdp_root)
    excluded = {lang.lower() for lang in language_exclude}
    if language.lower() in excluded:
        logger.verbose("PDP", f"Skipping {xml_path}: language '{language}' excluded")
        return None

    logger.verbose("PDP", f"Reading {xml_path} ({language})")
    root, namespace = load_and_validate(xml_path)

    if expected_namespace and namespace != expected_namespace:
        raise ContentError(
            f"{xml_path} declares namespace '{namespace}', "
            f"expected '{expected_namespace}'"
        )

    return PdpDocument(path=Path(xml_path), language=language, namespace=namespace, root=root)


# -------------------------------
# Listing extraction
# -------------------------------


def _array_field(doc: PdpDocument, container: str, item: str) -> list[str]:
    parent = doc.find(container)
    if parent is None:
        return []
    values = [_text(e) for e in parent.findall(_qualify(doc.namespace, item))]
    return [v for v in values if v]


def _screenshots(
    doc: PdpDocument,
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> list[ImageListing]:
    group = doc.find("ScreenshotCaptions")
    if group is None:
        return []

    images = []
    for caption in group.findall(_qualify(doc.namespace, "Caption")):
        fallback = pick_fallback_language(
            _attr(caption, "FallbackLanguage"),
            _attr(group, "FallbackLanguage"),
            doc.fallback_language,
            fallback_language,
        )
        description = _text(caption)
        for attribute, image_type in SCREENSHOT_SLOTS:
            filename = _attr(caption, attribute)
            if not filename:
                continue
            path = resolve_media(
                filename, media_root, doc.language, doc.release, fallback, context
            )
            images.append(
                ImageListing(
                    file_name=path, image_type=image_type, description=description
                )
            )
    return images


def _additional_assets(
    doc: PdpDocument,
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> list[ImageListing]:
    group = doc.find("AdditionalAssets")
    if group is None:
        return []

    images = []
    for asset in group:
        if not isinstance(asset.tag, str):
            continue
        filename = _attr(asset, "FileName")
        if not filename:
            continue
        fallback = pick_fallback_language(
            _attr(asset, "FallbackLanguage"),
            _attr(group, "FallbackLanguage"),
            doc.fallback_language,
            fallback_language,
        )
        path = resolve_media(
            filename, media_root, doc.language, doc.release, fallback, context
        )
        images.append(ImageListing(file_name=path, image_type=_local_name(asset)))
    return images


def extract_listing(
    doc: PdpDocument,
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> ListingEntry:
    """Convert an application PDP into a listing entry.

    Scalar text fields are trimmed; the title is None (not "") when the
    PDP has no title or a blank one. Referenced media is staged.
    """
    base: dict[str, Any] = {key: _text(doc.find(name)) for key, name in _TEXT_FIELDS.items()}
    for key, (container, item) in _ARRAY_FIELDS.items():
        base[key] = _array_field(doc, container, item)

    title = _text(doc.find("AppStoreName"))
    base["title"] = title or None

    images = _screenshots(doc, media_root, fallback_language, context)
    images += _additional_assets(doc, media_root, fallback_language, context)
    base["images"] = [image.to_dict() for image in images]

    context.logger.verbose(
        "PDP", f"{doc.language}: {len(images)} image(s), title={base['title']!r}"
    )
    return ListingEntry(language=doc.language, base_listing=base)


def extract_trailers(
    doc: PdpDocument,
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> dict[str, dict[str, Any]]:
    """Read a PDP's trailers.

    Returns:
        Trailer video package path -> this language's trailer asset
        ({"title": ..., "imageList": [{"fileName": ..., "description": ...}]}).
    """
    group = doc.find("Trailers")
    if group is None:
        return {}

    ns = doc.namespace
    trailers: dict[str, dict[str, Any]] = {}
    for trailer in group.findall(_qualify(ns, "Trailer")):
        trailer_fallback = pick_fallback_language(
            _attr(trailer, "FallbackLanguage"),
            _attr(group, "FallbackLanguage"),
            doc.fallback_language,
            fallback_language,
        )
        video_path = resolve_media(
            _attr(trailer, "FileName") or "",
            media_root,
            doc.language,
            doc.release,
            trailer_fallback,
            context,
        )

        image_list = []
        images = trailer.find(_qualify(ns, "Images"))
        if images is not None:
            for image in images.findall(_qualify(ns, "Image")):
                image_fallback = pick_fallback_language(
                    _attr(image, "FallbackLanguage"), trailer_fallback
                )
                image_path = resolve_media(
                    _attr(image, "FileName") or "",
                    media_root,
                    doc.language,
                    doc.release,
                    image_fallback,
                    context,
                )
                image_list.append({"fileName": image_path, "description": _text(image)})

        trailers[video_path] = {
            "title": _text(trailer.find(_qualify(ns, "Title"))),
            "imageList": image_list,
        }
    return trailers


def extract_iap_listing(
    doc: PdpDocument,
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> dict[str, Any]:
    """Convert an in-app product PDP into its listing."""
    title = _text(doc.find("Title"))
    listing: dict[str, Any] = {
        "description": _text(doc.find("Description")),
        "title": title or None,
    }

    icon = doc.find("Icon")
    filename = _attr(icon, "FileName")
    if filename:
        fallback = pick_fallback_language(
            _attr(icon, "FallbackLanguage"), doc.fallback_language, fallback_language
        )
        path = resolve_media(
            filename, media_root, doc.language, doc.release, fallback, context
        )
        listing["icon"] = {"fileName": path, "fileStatus": PENDING_UPLOAD}
    return listing


def parse_listing(
    xml_path: Path,
    pdp_root: Path,
    language_exclude: Iterable[str],
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> tuple[str, dict[str, Any]] | None:
    """Parse one application PDP into (language, listing), or None if skipped."""
    doc = read_pdp(
        xml_path,
        pdp_root,
        language_exclude,
        expected_namespace=PDP_NAMESPACE,
        logger=context.logger,
    )
    if doc is None:
        return None
    entry = extract_listing(doc, media_root, fallback_language, context)
    return entry.language, entry.to_dict()


def parse_trailers(
    xml_path: Path,
    pdp_root: Path,
    language_exclude: Iterable[str],
    media_root: Path,
    fallback_language: str | None,
    context: BuildContext,
) -> tuple[str, dict[str, dict[str, Any]]] | None:
    """Parse one application PDP's trailers into (language, trailers)."""
    doc = read_pdp(
        xml_path,
        pdp_root,
        language_exclude,
        expected_namespace=PDP_NAMESPACE,
        logger=context.logger,
    )
    if doc is None:
        return None
    return doc.language, extract_trailers(doc, media_root, fallback_language, context)


def validate_pdps(
    pdp_root: Path,
    *,
    release: str | None = None,
    include: Iterable[str] = ("*.xml",),
    exclude: Iterable[str] = (),
    language_exclude: Iterable[str] = (),
) -> PdpValidationResult:
    """Validate every PDP under a root without staging any media.

    Unlike packaging, which stops at the first bad file, this keeps going
    and reports every file that failed.
    """
    logger = get_global_logger()
    listings_root = resolve_listings_root(pdp_root, release)

    errors: dict[str, str] = {}
    skipped: list[str] = []
    checked = 0
    for xml_path in find_pdp_files(listings_root, include, exclude):
        try:
            doc = read_pdp(xml_path, listings_root, language_exclude, logger=logger)
        except ContentError as err:
            errors[str(xml_path)] = str(err)
            checked += 1
            continue
        if doc is None:
            skipped.append(str(xml_path))
            continue
        checked += 1

    return PdpValidationResult(
        status="valid" if not errors else "invalid",
        files_checked=checked,
        errors=errors,
        skipped=skipped,
    )
