"""
Tests for storepkgtool.submission.assembler and models modules.

Tests submission body assembly including:
- Listings from several languages
- Trailers merged across languages
- Package staging, formatted names and opaque packages
- Deprecated field removal and schema stamps
- In-app product submissions
"""

from __future__ import annotations

import pytest

from storepkgtool.exceptions import ConfigError, PackagingError
from storepkgtool.submission.assembler import build_app_submission, build_iap_submission
from storepkgtool.submission.models import (
    APP_SUBMISSION_SCHEMA,
    IAP_SUBMISSION_SCHEMA,
    SCHEMA_FIELD,
    AppSubmission,
    IapSubmission,
    package_entry,
)

pytestmark = pytest.mark.unit


class TestListings:
    """Tests for listing assembly."""

    def test_two_languages(
        self, tmp_test_dir, build_context, write_pdp, make_media, screenshot_pdp_body
    ):
        """Test en-us and fr-fr PDPs produce two listings with one image each."""
        pdp_root = tmp_test_dir / "pdps"
        media_root = tmp_test_dir / "media"
        for language in ("en-us", "fr-fr"):
            write_pdp(pdp_root, language, screenshot_pdp_body, release="1701")
            make_media(media_root, language, "shot1.png", release="1701")

        submission = build_app_submission(
            {}, build_context, pdp_root=pdp_root, media_root=media_root
        )
        body = submission.to_json_dict()

        assert sorted(body["listings"]) == ["en-us", "fr-fr"]
        for language, listing in body["listings"].items():
            images = listing["baseListing"]["images"]
            assert len(images) == 1
            assert images[0]["fileStatus"] == "PendingUpload"
            assert images[0]["fileName"] == f"Assets/{language}/shot1.png"
            assert (build_context.assets_dir / language / "shot1.png").is_file()

    def test_language_keys_lowercased(
        self, tmp_test_dir, build_context, write_pdp, make_media, screenshot_pdp_body
    ):
        """Test listing keys are lowercase even when folders are not."""
        pdp_root = tmp_test_dir / "pdps"
        media_root = tmp_test_dir / "media"
        write_pdp(pdp_root, "en-US", screenshot_pdp_body)
        make_media(media_root, "en-US", "shot1.png")

        submission = build_app_submission(
            {}, build_context, pdp_root=pdp_root, media_root=media_root
        )

        assert list(submission.listings) == ["en-us"]

    def test_default_language_excluded(self, tmp_test_dir, build_context, write_pdp):
        """Test the default language folder is skipped by default."""
        pdp_root = tmp_test_dir / "pdps"
        write_pdp(pdp_root, "default", "<Description>d</Description>")
        write_pdp(pdp_root, "en-us", "<Description>d</Description>")

        submission = build_app_submission(
            {}, build_context, pdp_root=pdp_root, media_root=tmp_test_dir / "media"
        )

        assert list(submission.listings) == ["en-us"]

    def test_pdp_root_requires_media_root(self, tmp_test_dir, build_context):
        """Test listings cannot be built without a media root."""
        with pytest.raises(ConfigError, match="mediaRootPath"):
            build_app_submission({}, build_context, pdp_root=tmp_test_dir)

    def test_trailers_merged(self, tmp_test_dir, build_context, write_pdp, make_media):
        """Test one trailer localized in two languages becomes one entry."""
        pdp_root = tmp_test_dir / "pdps"
        media_root = tmp_test_dir / "media"
        body = (
            "<Description>d</Description>"
            '<Trailers><Trailer FileName="intro.mp4"><Title>Intro</Title>'
            '<Images><Image FileName="thumb.png">t</Image></Images>'
            "</Trailer></Trailers>"
        )
        write_pdp(pdp_root, "fr-fr", body, fallback_language="en-us")
        write_pdp(pdp_root, "en-us", body)
        make_media(media_root, "en-us", "intro.mp4")
        make_media(media_root, "en-us", "thumb.png")
        (media_root / "fr-fr").mkdir()

        submission = build_app_submission(
            {}, build_context, pdp_root=pdp_root, media_root=media_root
        )

        assert len(submission.trailers) == 1
        trailer = submission.trailers[0]
        assert trailer["videoFileName"] == "Assets/en-us/intro.mp4"
        assert list(trailer["trailerAssets"]) == ["en-us", "fr-fr"]


class TestPackages:
    """Tests for package staging."""

    def test_package_entry_fields(self, tmp_test_dir, build_context, make_appx):
        """Test a package entry carries upload fields and metadata."""
        path = make_appx(tmp_test_dir / "in" / "App.msix", name="Maps", arch="x64")

        submission = build_app_submission({}, build_context, package_paths=[path])
        entry = submission.application_packages[0]

        assert entry["fileName"] == "App.msix"
        assert entry["fileStatus"] == "PendingUpload"
        assert entry["minimumDirectXVersion"] == "None"
        assert entry["minimumSystemRam"] == "None"
        assert entry["architecture"] == "x64"
        assert entry["name"] == "Maps"
        assert (build_context.staging_dir / "App.msix").is_file()

    def test_packages_keep_input_order(self, tmp_test_dir, build_context, make_appx):
        """Test packages are processed in the order supplied."""
        b = make_appx(tmp_test_dir / "in" / "b.appx")
        a = make_appx(tmp_test_dir / "in" / "a.appx")

        submission = build_app_submission({}, build_context, package_paths=[b, a])

        assert [p["fileName"] for p in submission.application_packages] == ["b.appx", "a.appx"]

    def test_auto_format_names(self, tmp_test_dir, build_context, make_appx):
        """Test packages are renamed to their formatted names."""
        path = make_appx(
            tmp_test_dir / "in" / "whatever.msix",
            name="Maps",
            version="2.13.22002.0",
            arch="x86",
            families=(("Windows.Desktop", "10.0.0.0"),),
        )

        submission = build_app_submission(
            {}, build_context, package_paths=[path], auto_format_names=True
        )

        name = "Desktop_Maps_2.13.22002.0_x86.msix"
        assert submission.application_packages[0]["fileName"] == name
        assert (build_context.staging_dir / name).is_file()

    def test_opaque_package_not_inspected(self, tmp_test_dir, build_context):
        """Test .xap packages are added without metadata."""
        path = tmp_test_dir / "in" / "Legacy.xap"
        path.parent.mkdir()
        path.write_bytes(b"encrypted")

        submission = build_app_submission(
            {}, build_context, package_paths=[path], auto_format_names=True
        )

        assert submission.application_packages == [package_entry("Legacy.xap")]

    def test_duplicate_staged_name(self, tmp_test_dir, build_context, make_appx):
        """Test two packages that format to the same name fail."""
        a = make_appx(tmp_test_dir / "in" / "a.msix")
        b = make_appx(tmp_test_dir / "in" / "b.msix")

        with pytest.raises(PackagingError):
            build_app_submission(
                {}, build_context, package_paths=[a, b], auto_format_names=True
            )


class TestSerialization:
    """Tests for to_json_dict."""

    def test_base_fields_and_schema(self):
        """Test base fields survive and deprecated ones are stripped."""
        submission = AppSubmission(
            base={
                "visibility": "Public",
                "hardwarePreferences": ["Touch"],
                "applicationPackages": [{"fileName": "old.appx", "fileStatus": "Uploaded"}],
            },
            application_packages=[package_entry("new.appx")],
        )

        body = submission.to_json_dict()

        assert body["visibility"] == "Public"
        assert "hardwarePreferences" not in body
        assert [p["fileName"] for p in body["applicationPackages"]] == ["old.appx", "new.appx"]
        assert body[SCHEMA_FIELD] == APP_SUBMISSION_SCHEMA
        assert body["listings"] == {}
        assert body["trailers"] == []

    def test_base_not_mutated(self):
        """Test serializing twice gives the same result."""
        submission = AppSubmission(base={"applicationPackages": []})
        submission.application_packages.append(package_entry("a.appx"))

        assert submission.to_json_dict() == submission.to_json_dict()
        assert submission.base == {"applicationPackages": []}

    def test_schema_versions(self):
        """Test each submission class stamps its own schema version."""
        assert AppSubmission.schema_version == APP_SUBMISSION_SCHEMA
        assert IapSubmission.schema_version == IAP_SUBMISSION_SCHEMA
        assert AppSubmission().to_json_dict()[SCHEMA_FIELD] == APP_SUBMISSION_SCHEMA

    def test_iap_schema(self):
        """Test in-app product bodies carry their own schema stamp."""
        body = IapSubmission(base={"lifetime": "Forever"}).to_json_dict()

        assert body[SCHEMA_FIELD] == IAP_SUBMISSION_SCHEMA
        assert body["lifetime"] == "Forever"
        assert "applicationPackages" not in body


class TestIapSubmission:
    """Tests for build_iap_submission."""

    def test_iap_listings(self, tmp_test_dir, build_context, write_pdp, make_media):
        """Test in-app product PDPs become title/description/icon listings."""
        pdp_root = tmp_test_dir / "pdps"
        media_root = tmp_test_dir / "media"
        write_pdp(pdp_root, "en-US", '<Title>Gems</Title><Icon FileName="gem.png"/>', iap=True)
        make_media(media_root, "en-US", "gem.png")

        submission = build_iap_submission(
            {"iapSubmission": {"lifetime": "Forever"}},
            build_context,
            pdp_root=pdp_root,
            media_root=media_root,
        )
        body = submission.to_json_dict()

        assert body["listings"] == {
            "en-us": {
                "description": "",
                "title": "Gems",
                "icon": {"fileName": "Assets/en-US/gem.png", "fileStatus": "PendingUpload"},
            }
        }
        assert body["lifetime"] == "Forever"
