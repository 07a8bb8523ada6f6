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

"""Command-line interface for storepkgtool.

This module provides the main CLI entry point for the storepkg tool,
offering commands for building, merging, validating and publishing Store
submission payloads.

Commands:

    package: Build an application submission payload (.json + .zip)
    package-iap: Build an in-app product submission payload
    merge: Append one payload's packages to a copy of another
    validate: Validate a PDP tree against its schemas
    init-config: Write a new configuration file
    publish: Create, upload and optionally commit a submission

Example:
    Build a payload from a config file:
        ```bash
        $ storepkg package store/config.yaml
        ```

    Override packages and formatting on the command line:
        ```bash
        $ storepkg package store/config.yaml \\
            --package build/MyApp_x64.msixupload --auto-format-names
        ```

    Publish and commit:
        ```bash
        $ storepkg publish store/config.yaml out/MyApp.json out/MyApp.zip --commit
        ```

Exit Codes:

- 0: Success
- 1: Error (configuration, content, packaging or network failure)

Note:
    Each command has its own handler function (cmd_<command>).
    Verbose mode shows full tracebacks on errors for debugging.
    Debug mode implies verbose mode and shows detailed configuration dumps.
"""

from __future__ import annotations

import argparse
from importlib.metadata import version
from pathlib import Path
import sys

from storepkgtool.config import write_config_template
from storepkgtool.core import (
    merge_submission_packages,
    new_submission_package,
    publish_payload,
    validate_listings,
)
from storepkgtool.exceptions import StorePkgError
from storepkgtool.logging import get_logger, set_global_logger
from storepkgtool.submission.models import SubmissionKind


def _configure_logger(args: argparse.Namespace) -> None:
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)


def _report_error(err: Exception, args: argparse.Namespace) -> int:
    print(f"Error: {err}")
    if args.verbose or args.debug:
        import traceback

        traceback.print_exc()
    return 1


def _optional_path(value: str | None) -> Path | None:
    return Path(value).resolve() if value else None


def _build_payload(args: argparse.Namespace, kind: SubmissionKind) -> int:
    _configure_logger(args)

    config_path = _optional_path(args.config)
    print(f"Building {kind.value} submission payload")
    if config_path:
        print(f"Config: {config_path}")
    print()

    package_paths = None
    if getattr(args, "package", None):
        package_paths = [Path(p).resolve() for p in args.package]

    try:
        result = new_submission_package(
            config_path,
            kind=kind,
            force=args.force,
            pdp_root=_optional_path(args.pdp_root),
            release=args.release,
            language_exclude=args.language_exclude,
            media_root=_optional_path(args.media_root),
            media_fallback_language=args.media_fallback_language,
            package_paths=package_paths,
            out_path=_optional_path(args.out_path),
            out_name=args.out_name,
            auto_format_names=True if getattr(args, "auto_format_names", False) else None,
        )
    except StorePkgError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("PAYLOAD RESULTS")
    print("=" * 70)
    print(f"Kind:         {result.submission_kind}")
    print(f"Packages:     {result.package_count}")
    print(f"Languages:    {result.language_count}")
    print(f"JSON:         {result.json_path}")
    print(f"Archive:      {result.zip_path}")
    print("=" * 70)
    print()
    print("[SUCCESS] Submission payload created successfully!")
    return 0


def cmd_package(args: argparse.Namespace) -> int:
    """Handler for 'storepkg package' command.

    Builds an application submission payload from the config's
    packageParameters, with command-line values taking precedence.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    return _build_payload(args, SubmissionKind.APP)


def cmd_package_iap(args: argparse.Namespace) -> int:
    """Handler for 'storepkg package-iap' command."""
    return _build_payload(args, SubmissionKind.IAP)


def cmd_merge(args: argparse.Namespace) -> int:
    """Handler for 'storepkg merge' command.

    Copies the master payload and appends the additional payload's packages
    (entries and files) to it.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    _configure_logger(args)

    try:
        result = merge_submission_packages(
            Path(args.master_json).resolve(),
            Path(args.master_zip).resolve(),
            Path(args.additional_json).resolve(),
            Path(args.additional_zip).resolve(),
            Path(args.out_path).resolve(),
            args.out_name,
            force=args.force,
        )
    except StorePkgError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("MERGE RESULTS")
    print("=" * 70)
    print(f"Packages Added:  {result.packages_added}")
    print(f"JSON:            {result.json_path}")
    print(f"Archive:         {result.zip_path}")
    print("=" * 70)
    print()
    print("[SUCCESS] Payloads merged successfully!")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Handler for 'storepkg validate' command.

    Validates every PDP under the configured (or given) root against its
    schema without staging media. All failing files are reported.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 if every PDP is valid, 1 otherwise).
    """
    _configure_logger(args)

    try:
        result = validate_listings(
            _optional_path(args.config),
            pdp_root=_optional_path(args.pdp_root),
            release=args.release,
        )
    except StorePkgError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("VALIDATION RESULTS")
    print("=" * 70)
    print(f"Status:         {result.status.upper()}")
    print(f"Files Checked:  {result.files_checked}")
    print(f"Skipped:        {len(result.skipped)}")
    print()

    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        for path, message in result.errors.items():
            print(f"  [X] {path}")
            for line in message.splitlines():
                print(f"      {line}")
        print()

    print("=" * 70)

    if result.status == "valid":
        print()
        print("[SUCCESS] All PDP files are valid!")
        return 0
    print()
    print(f"[FAILED] PDP validation failed with {len(result.errors)} error(s).")
    return 1


def cmd_init_config(args: argparse.Namespace) -> int:
    """Handler for 'storepkg init-config' command."""
    _configure_logger(args)

    try:
        path = write_config_template(
            Path(args.output).resolve(),
            force=args.force,
            app_id=args.app_id,
            pdp_root_path=args.pdp_root,
            media_root_path=args.media_root,
            release=args.release,
            out_path=args.out_path,
            out_name=args.out_name,
        )
    except StorePkgError as err:
        return _report_error(err, args)

    print(f"[SUCCESS] Configuration written to {path}")
    return 0


def cmd_publish(args: argparse.Namespace) -> int:
    """Handler for 'storepkg publish' command.

    Creates a submission from a payload, applies the requested package,
    listing and property changes, uploads the archive and optionally waits
    for processing and commits.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    _configure_logger(args)

    try:
        result = publish_payload(
            _optional_path(args.config),
            Path(args.json).resolve(),
            Path(args.zip).resolve(),
            app_id=args.app_id,
            force=args.force,
            replace_packages=args.replace_packages,
            update_packages=args.update_packages,
            update_listings=args.update_listings,
            update_properties=args.update_properties,
            wait_for_processing=args.wait,
            commit=args.commit,
        )
    except StorePkgError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("PUBLISH RESULTS")
    print("=" * 70)
    print(f"Submission ID:  {result.submission_id}")
    print(f"Committed:      {'yes' if result.committed else 'no'}")
    print(f"Status:         {result.status}")
    print("=" * 70)
    print()
    print("[SUCCESS] Submission updated successfully!")
    return 0


def _add_logging_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def _add_payload_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "config",
        nargs="?",
        default=None,
        help="Path to the configuration YAML file (optional)",
    )
    parser.add_argument("--pdp-root", help="Root folder of the localized PDP files")
    parser.add_argument("--release", help="Release subfolder under the PDP root")
    parser.add_argument("--media-root", help="Root folder of the localized media")
    parser.add_argument(
        "--media-fallback-language",
        help="Language searched when media is missing for a listing's language",
    )
    parser.add_argument(
        "--language-exclude",
        action="append",
        default=None,
        help="Language folder to skip (repeatable)",
    )
    parser.add_argument("--out-path", help="Folder for the .json and .zip outputs")
    parser.add_argument("--out-name", help="Base name of the .json and .zip outputs")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing outputs",
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the storepkg CLI.

    This function is registered as the 'storepkg' console script in
    pyproject.toml.
    """
    parser = argparse.ArgumentParser(
        prog="storepkg",
        description="storepkg - build and publish Store submission payloads",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"storepkg {version('storepkgtool')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'package' command
    parser_package = subparsers.add_parser(
        "package",
        help="Build an application submission payload",
        description="Read packages, PDPs and media and write <outName>.json and <outName>.zip.",
    )
    _add_payload_arguments(parser_package)
    parser_package.add_argument(
        "--package",
        action="append",
        default=None,
        help="Package file to include (repeatable; replaces configured packagePaths)",
    )
    parser_package.add_argument(
        "--auto-format-names",
        action="store_true",
        help="Rename packages to [families_]name_version_arch",
    )
    _add_logging_flags(parser_package)
    parser_package.set_defaults(func=cmd_package)

    # 'package-iap' command
    parser_iap = subparsers.add_parser(
        "package-iap",
        help="Build an in-app product submission payload",
        description="Read in-app product PDPs and media and write <outName>.json and <outName>.zip.",
    )
    _add_payload_arguments(parser_iap)
    _add_logging_flags(parser_iap)
    parser_iap.set_defaults(func=cmd_package_iap)

    # 'merge' command
    parser_merge = subparsers.add_parser(
        "merge",
        help="Append one payload's packages to a copy of another",
        description="Copy the master payload and add the additional payload's packages to it.",
    )
    parser_merge.add_argument("master_json", help="Master payload .json")
    parser_merge.add_argument("master_zip", help="Master payload .zip")
    parser_merge.add_argument("additional_json", help="Additional payload .json")
    parser_merge.add_argument("additional_zip", help="Additional payload .zip")
    parser_merge.add_argument("--out-path", required=True, help="Output folder")
    parser_merge.add_argument("--out-name", required=True, help="Output base name")
    parser_merge.add_argument("--force", action="store_true", help="Overwrite existing outputs")
    _add_logging_flags(parser_merge)
    parser_merge.set_defaults(func=cmd_merge)

    # 'validate' command
    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate PDP files against their schemas (no staging)",
        description="Check every PDP under the PDP root and report all failing files.",
    )
    parser_validate.add_argument(
        "config",
        nargs="?",
        default=None,
        help="Path to the configuration YAML file (optional)",
    )
    parser_validate.add_argument("--pdp-root", help="Root folder of the localized PDP files")
    parser_validate.add_argument("--release", help="Release subfolder under the PDP root")
    _add_logging_flags(parser_validate)
    parser_validate.set_defaults(func=cmd_validate)

    # 'init-config' command
    parser_init = subparsers.add_parser(
        "init-config",
        help="Write a new configuration file",
        description="Write a configuration template with the given values filled in.",
    )
    parser_init.add_argument(
        "output",
        nargs="?",
        default="storepkg.yaml",
        help="Where to write the configuration (default: storepkg.yaml)",
    )
    parser_init.add_argument("--app-id", help="Application id")
    parser_init.add_argument("--pdp-root", help="Root folder of the localized PDP files")
    parser_init.add_argument("--media-root", help="Root folder of the localized media")
    parser_init.add_argument("--release", help="Release subfolder under the PDP root")
    parser_init.add_argument("--out-path", help="Folder for the payload outputs")
    parser_init.add_argument("--out-name", help="Base name of the payload outputs")
    parser_init.add_argument("--force", action="store_true", help="Overwrite an existing file")
    _add_logging_flags(parser_init)
    parser_init.set_defaults(func=cmd_init_config)

    # 'publish' command
    parser_publish = subparsers.add_parser(
        "publish",
        help="Create, upload and optionally commit a submission",
        description="Clone the last submission, apply the payload, upload it and optionally commit.",
    )
    parser_publish.add_argument(
        "config",
        help="Path to the configuration YAML file (store section)",
    )
    parser_publish.add_argument("json", help="Payload .json")
    parser_publish.add_argument("zip", help="Payload .zip")
    parser_publish.add_argument("--app-id", help="Application id (default: store.appId)")
    parser_publish.add_argument(
        "--force",
        action="store_true",
        help="Delete an existing pending submission first",
    )
    packages_group = parser_publish.add_mutually_exclusive_group()
    packages_group.add_argument(
        "--replace-packages",
        action="store_true",
        help="Remove every existing package",
    )
    packages_group.add_argument(
        "--update-packages",
        action="store_true",
        help="Keep only the newest existing packages (store.redundantPackagesToKeep)",
    )
    parser_publish.add_argument(
        "--update-listings",
        action="store_true",
        help="Replace listings and trailers with the payload's",
    )
    parser_publish.add_argument(
        "--update-properties",
        action="store_true",
        help="Copy the payload's other submission fields",
    )
    parser_publish.add_argument(
        "--wait",
        action="store_true",
        help="Wait for package processing before finishing",
    )
    parser_publish.add_argument(
        "--commit",
        action="store_true",
        help="Commit the submission after upload",
    )
    _add_logging_flags(parser_publish)
    parser_publish.set_defaults(func=cmd_publish)

    # Parse and dispatch
    args = parser.parse_args(argv)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
