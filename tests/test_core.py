"""
Tests for storepkgtool.core module.

Tests the high-level workflows including:
- Building app and in-app product payloads end to end
- Parameter resolution and validation
- Merging payloads
- Validating listing trees
- Publishing with a configured store section
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch
import zipfile

import pytest

from storepkgtool.core import (
    merge_submission_packages,
    new_submission_package,
    publish_payload,
    resolve_package_parameters,
    validate_listings,
    validate_package_parameters,
)
from storepkgtool.exceptions import ConfigError
from storepkgtool.results import PublishResult
from storepkgtool.submission.models import SubmissionKind

pytestmark = pytest.mark.unit


@pytest.fixture
def content_tree(tmp_test_dir, write_pdp, make_media, make_appx, screenshot_pdp_body):
    """A PDP tree, media tree and one package."""
    pdp_root = tmp_test_dir / "pdps"
    media_root = tmp_test_dir / "media"
    for language in ("en-us", "fr-fr"):
        write_pdp(pdp_root, language, screenshot_pdp_body)
        make_media(media_root, language, "shot1.png")
    package = make_appx(tmp_test_dir / "build" / "Maps_x64.msix", name="Maps")
    return pdp_root, media_root, package


class TestNewSubmissionPackage:
    """Tests for new_submission_package."""

    def test_app_payload(self, tmp_test_dir, content_tree):
        """Test an app payload with listings and a package is written."""
        pdp_root, media_root, package = content_tree
        out = tmp_test_dir / "out"

        result = new_submission_package(
            pdp_root=pdp_root,
            media_root=media_root,
            package_paths=[package],
            out_path=out,
            out_name="Maps",
        )

        assert result.json_path == out / "Maps.json"
        assert result.submission_kind == "app"
        assert result.package_count == 1
        assert result.language_count == 2
        body = json.loads(result.json_path.read_text(encoding="utf-8"))
        assert body["sbSchema"] == 2
        assert body["applicationPackages"][0]["fileName"] == "Maps_x64.msix"
        with zipfile.ZipFile(result.zip_path) as zf:
            names = set(zf.namelist())
        assert names == {
            "Maps_x64.msix",
            "Assets/en-us/shot1.png",
            "Assets/fr-fr/shot1.png",
        }

    def test_from_config(self, tmp_test_dir, content_tree, create_yaml_file):
        """Test parameters and base fields come from the config file."""
        pdp_root, media_root, package = content_tree
        config = create_yaml_file(
            "config.yaml",
            {
                "packageParameters": {
                    "pdpRootPath": "pdps",
                    "mediaRootPath": "media",
                    "packagePaths": ["build/Maps_x64.msix"],
                    "outPath": "out",
                    "outName": "Maps",
                    "autoFormatNames": True,
                },
                "appSubmission": {"visibility": "Hidden"},
            },
        )

        result = new_submission_package(config)

        body = json.loads(result.json_path.read_text(encoding="utf-8"))
        assert result.json_path == tmp_test_dir.resolve() / "out" / "Maps.json"
        assert body["visibility"] == "Hidden"
        assert body["applicationPackages"][0]["fileName"] == (
            "Desktop_Maps_1.0.0.0_x64.msix"
        )

    def test_yaml_timestamp_in_base_fields(self, tmp_test_dir, content_tree):
        """Test an unquoted YAML timestamp is written as an ISO string."""
        _, _, package = content_tree
        config = tmp_test_dir / "config.yaml"
        config.write_text(
            "appSubmission:\n"
            "  targetPublishMode: SpecificDate\n"
            "  targetPublishDate: 2025-06-01T00:00:00Z\n",
            encoding="utf-8",
        )

        result = new_submission_package(
            config, package_paths=[package], out_path=tmp_test_dir / "out", out_name="Maps"
        )

        body = json.loads(result.json_path.read_text(encoding="utf-8"))
        assert body["targetPublishDate"] == "2025-06-01T00:00:00Z"
        assert result.zip_path.is_file()

    def test_packages_only(self, tmp_test_dir, content_tree):
        """Test a payload without listings."""
        _, _, package = content_tree

        result = new_submission_package(
            package_paths=[package], out_path=tmp_test_dir / "out", out_name="Maps"
        )

        body = json.loads(result.json_path.read_text(encoding="utf-8"))
        assert body["listings"] == {}
        assert result.language_count == 0

    def test_existing_output(self, tmp_test_dir, content_tree):
        """Test existing outputs need force."""
        _, _, package = content_tree
        out = tmp_test_dir / "out"
        kwargs = dict(package_paths=[package], out_path=out, out_name="Maps")
        new_submission_package(**kwargs)

        with pytest.raises(ConfigError, match="already exists"):
            new_submission_package(**kwargs)

        assert new_submission_package(force=True, **kwargs).package_count == 1

    def test_iap_payload(self, tmp_test_dir, write_pdp, make_media):
        """Test an in-app product payload."""
        pdp_root = tmp_test_dir / "pdps"
        media_root = tmp_test_dir / "media"
        write_pdp(pdp_root, "en-us", '<Title>Gems</Title><Icon FileName="gem.png"/>', iap=True)
        make_media(media_root, "en-us", "gem.png")

        result = new_submission_package(
            kind=SubmissionKind.IAP,
            pdp_root=pdp_root,
            media_root=media_root,
            out_path=tmp_test_dir / "out",
            out_name="Gems",
        )

        body = json.loads(result.json_path.read_text(encoding="utf-8"))
        assert result.submission_kind == "iap"
        assert body["sbSchema"] == 1
        assert body["listings"]["en-us"]["title"] == "Gems"
        with zipfile.ZipFile(result.zip_path) as zf:
            assert zf.namelist() == ["Assets/en-us/gem.png"]


class TestPackageParameters:
    """Tests for parameter resolution and validation."""

    def test_overrides_win(self):
        """Test explicit values override config values and None does not."""
        config = {"packageParameters": {"outName": "FromConfig", "release": "1701"}}

        params = resolve_package_parameters(config, out_name="Explicit", release=None)

        assert params.out_name == "Explicit"
        assert params.release == "1701"
        assert params.include == ["*.xml"]

    def test_unknown_override(self):
        """Test unknown parameter names are rejected."""
        with pytest.raises(ConfigError, match="bogus"):
            resolve_package_parameters({}, bogus=1)

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"out_name": "x"}, "outPath"),
            ({"out_path": "o"}, "outName"),
            ({"out_path": "o", "out_name": "x", "pdp_root": "p"}, "together"),
            ({"out_path": "o", "out_name": "x", "release": "1701"}, "release"),
            ({"out_path": "o", "out_name": "x", "package_paths": ["missing.msix"]}, "not found"),
        ],
    )
    def test_validation_errors(self, overrides, message):
        """Test each invalid combination names the offending parameter."""
        params = resolve_package_parameters({}, **overrides)

        with pytest.raises(ConfigError, match=message):
            validate_package_parameters(params, SubmissionKind.APP)

    def test_missing_pdp_root_before_packages(self, tmp_test_dir):
        """Test a missing PDP root is reported before any package is read."""
        broken = tmp_test_dir / "Broken.msix"
        broken.write_bytes(b"not a zip")
        media_root = tmp_test_dir / "media"
        media_root.mkdir()

        with pytest.raises(ConfigError, match="pdpRootPath: folder not found"):
            new_submission_package(
                pdp_root=tmp_test_dir / "nope",
                media_root=media_root,
                package_paths=[broken],
                out_path=tmp_test_dir / "out",
                out_name="Maps",
            )

        assert not (tmp_test_dir / "out" / "Maps.zip").exists()

    def test_missing_release_folder(self, tmp_test_dir, content_tree):
        """Test a release without its folder under the PDP root is rejected."""
        pdp_root, media_root, _ = content_tree
        params = resolve_package_parameters(
            {},
            out_path=tmp_test_dir,
            out_name="x",
            pdp_root=pdp_root,
            media_root=media_root,
            release="1701",
        )

        with pytest.raises(ConfigError, match="1701"):
            validate_package_parameters(params, SubmissionKind.APP)

    def test_unsupported_package_type(self, tmp_test_dir):
        """Test packages with unknown extensions are rejected up front."""
        path = tmp_test_dir / "setup.msi"
        path.write_bytes(b"")
        params = resolve_package_parameters(
            {}, out_path=tmp_test_dir, out_name="x", package_paths=[path]
        )

        with pytest.raises(ConfigError, match="unsupported"):
            validate_package_parameters(params, SubmissionKind.APP)

    def test_iap_rejects_packages(self, tmp_test_dir, content_tree):
        """Test in-app product payloads cannot carry packages."""
        pdp_root, media_root, package = content_tree
        params = resolve_package_parameters(
            {},
            out_path=tmp_test_dir,
            out_name="x",
            pdp_root=pdp_root,
            media_root=media_root,
            package_paths=[package],
        )

        with pytest.raises(ConfigError, match="packagePaths"):
            validate_package_parameters(params, SubmissionKind.IAP)

    def test_iap_requires_pdps(self, tmp_test_dir):
        """Test in-app product payloads need listings."""
        params = resolve_package_parameters({}, out_path=tmp_test_dir, out_name="x")

        with pytest.raises(ConfigError, match="pdpRootPath"):
            validate_package_parameters(params, SubmissionKind.IAP)


class TestMergeSubmissionPackages:
    """Tests for merge_submission_packages."""

    def test_merge_two_builds(self, tmp_test_dir, make_appx):
        """Test merging an x86 build into an x64 master."""
        x64 = make_appx(tmp_test_dir / "in" / "App_x64.msix", arch="x64")
        x86 = make_appx(tmp_test_dir / "in" / "App_x86.msix", arch="x86")
        master = new_submission_package(
            package_paths=[x64], out_path=tmp_test_dir / "a", out_name="Master"
        )
        extra = new_submission_package(
            package_paths=[x86], out_path=tmp_test_dir / "b", out_name="Extra"
        )

        result = merge_submission_packages(
            master.json_path,
            master.zip_path,
            extra.json_path,
            extra.zip_path,
            tmp_test_dir / "merged",
            "Merged",
        )

        body = json.loads(result.json_path.read_text(encoding="utf-8"))
        assert result.packages_added == 1
        assert [p["architecture"] for p in body["applicationPackages"]] == ["x64", "x86"]


class TestValidateListings:
    """Tests for validate_listings."""

    def test_reports_every_bad_file(self, tmp_test_dir, write_pdp):
        """Test invalid files are reported without stopping."""
        pdp_root = tmp_test_dir / "pdps"
        write_pdp(pdp_root, "en-us", "<Description>fine</Description>")
        bad = pdp_root / "fr-fr" / "listing.xml"
        bad.parent.mkdir(parents=True)
        bad.write_text("<ProductDescription>")

        result = validate_listings(pdp_root=pdp_root)

        assert result.status == "invalid"
        assert result.files_checked == 2
        assert list(result.errors) == [str(bad)]

    def test_requires_pdp_root(self):
        """Test a PDP root is required."""
        with pytest.raises(ConfigError, match="pdpRootPath"):
            validate_listings()


class TestPublishPayload:
    """Tests for publish_payload."""

    def test_options_from_config(self, tmp_test_dir, create_yaml_file):
        """Test the store section drives the app id and publish options."""
        config = create_yaml_file(
            "config.yaml",
            {
                "store": {
                    "appId": "APP",
                    "redundantPackagesToKeep": 3,
                    "packageProcessing": {"pollIntervalSeconds": 5},
                }
            },
        )
        expected = PublishResult(submission_id="1", committed=True, status="CommitStarted")
        client = MagicMock()

        with patch(
            "storepkgtool.core.publish_submission", return_value=expected
        ) as publish:
            result = publish_payload(
                config,
                Path("Maps.json"),
                Path("Maps.zip"),
                update_packages=True,
                commit=True,
                client=client,
            )

        assert result is expected
        args, kwargs = publish.call_args
        assert args == (client, "APP", Path("Maps.json"), Path("Maps.zip"))
        options = kwargs["options"]
        assert options.update_packages is True
        assert options.redundant_packages_to_keep == 3
        assert options.poll_interval == 5
        assert options.max_poll_attempts == 60
        assert options.commit is True

    def test_app_id_required(self):
        """Test a missing app id is a config error."""
        with pytest.raises(ConfigError, match="appId"):
            publish_payload(None, Path("a.json"), Path("a.zip"), client=MagicMock())
