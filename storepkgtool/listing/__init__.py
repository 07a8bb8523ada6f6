"""Localized listing support for storepkgtool.

This package turns a tree of localized product description (PDP) XML files
and their media into Store listing objects.

Modules:

media : module
    Resolve localized media with fallback languages and stage it.
pdp : module
    Parse and XSD-validate PDP files, extract listings and trailers.

Public API:

resolve_media : function
    Locate one media file and stage it into the payload.
parse_listing : function
    Parse one application PDP into (language, listing).
validate_pdps : function
    Validate a whole PDP tree and report every failing file.
"""

from .media import pick_fallback_language, resolve_media
from .pdp import (
    IAP_PDP_NAMESPACE,
    PDP_NAMESPACE,
    parse_listing,
    parse_trailers,
    validate_pdps,
)

__all__ = [
    "resolve_media",
    "pick_fallback_language",
    "parse_listing",
    "parse_trailers",
    "validate_pdps",
    "PDP_NAMESPACE",
    "IAP_PDP_NAMESPACE",
]
