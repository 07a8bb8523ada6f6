"""
Submission payload building for storepkgtool.

This package assembles submission bodies from configuration, PDPs, media
and packages, and writes (or merges) the resulting .json/.zip payloads.

Public API:

build_app_submission : function
    Assemble an application submission and stage its files.
build_iap_submission : function
    Assemble an in-app product submission and stage its files.
write_payload : function
    Write <outName>.json and the uncompressed <outName>.zip.
merge_payloads : function
    Append one payload's packages to a copy of another.
"""

from .archive import check_outputs, merge_payloads, output_paths, write_payload
from .assembler import build_app_submission, build_iap_submission
from .models import AppSubmission, IapSubmission, SubmissionKind

__all__ = [
    "build_app_submission",
    "build_iap_submission",
    "write_payload",
    "merge_payloads",
    "check_outputs",
    "output_paths",
    "AppSubmission",
    "IapSubmission",
    "SubmissionKind",
]
