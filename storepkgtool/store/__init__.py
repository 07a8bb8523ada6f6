"""
Store submission API support for storepkgtool.

Public API:

StoreClient : class
    Thin REST client (retrying session, bearer auth, paging, blob upload).
TokenProvider : class
    Cached client-credentials access tokens from STOREPKG_* variables.
publish_submission : function
    Create, update, upload and optionally commit a submission.
"""

from .auth import TokenProvider
from .client import StoreClient, make_session
from .publish import (
    PublishOptions,
    apply_listing_changes,
    apply_package_changes,
    publish_submission,
    wait_for_package_processing,
)

__all__ = [
    "StoreClient",
    "TokenProvider",
    "make_session",
    "PublishOptions",
    "publish_submission",
    "apply_package_changes",
    "apply_listing_changes",
    "wait_for_package_processing",
]
