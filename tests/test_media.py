"""
Tests for storepkgtool.listing.media module.

Tests localized media resolution including:
- Primary language lookup and staging
- Fallback language lookup
- Missing fallback folders
- Duplicate file detection
- Release levels in the media tree
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from storepkgtool.context import BuildContext
from storepkgtool.exceptions import AmbiguousMediaError, MediaNotFoundError
from storepkgtool.listing.media import pick_fallback_language, resolve_media

pytestmark = pytest.mark.unit


class TestResolveMedia:
    """Tests for resolve_media."""

    @pytest.mark.parametrize("release", [None, "1701"])
    @pytest.mark.parametrize("language", ["en-us", "fr-fr"])
    def test_primary_language(self, tmp_test_dir, build_context, make_media, release, language):
        """Test a file in the primary folder is staged under its language."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, language, "shot1.png", release=release)

        result = resolve_media("shot1.png", media_root, language, release, None, build_context)

        assert result == f"Assets/{language}/shot1.png"
        staged = list(build_context.assets_dir.rglob("*"))
        staged_files = [p for p in staged if p.is_file()]
        assert staged_files == [build_context.assets_dir / language / "shot1.png"]

    def test_nested_file_found(self, tmp_test_dir, build_context, make_media):
        """Test files in subfolders of the language folder are found."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "desktop/large/shot1.png")

        result = resolve_media("shot1.png", media_root, "en-us", None, None, build_context)

        assert result == "Assets/en-us/shot1.png"

    def test_fallback_language(self, tmp_test_dir, build_context, make_media):
        """Test the fallback folder is used when the primary lacks the file."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "shot1.png", release="1701")
        (media_root / "1701" / "fr-fr").mkdir(parents=True)

        result = resolve_media("shot1.png", media_root, "fr-fr", "1701", "en-us", build_context)

        assert result == "Assets/en-us/shot1.png"
        assert (build_context.assets_dir / "en-us" / "shot1.png").is_file()

    def test_primary_wins_over_fallback(self, tmp_test_dir, build_context, make_media):
        """Test the primary file is used even when the fallback has one too."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "shot1.png")
        make_media(media_root, "fr-fr", "shot1.png")

        result = resolve_media("shot1.png", media_root, "fr-fr", None, "en-us", build_context)

        assert result == "Assets/fr-fr/shot1.png"

    def test_missing_fallback_folder_warns(self, tmp_test_dir, make_media):
        """Test a missing fallback folder is logged and the lookup fails."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "fr-fr", "other.png")
        logger = MagicMock()
        context = BuildContext(staging_dir=tmp_test_dir / "staging", logger=logger)

        with pytest.raises(MediaNotFoundError):
            resolve_media("shot1.png", media_root, "fr-fr", None, "de-de", context)

        logger.warning.assert_called_once()
        assert "de-de" in logger.warning.call_args[0][1]

    def test_not_found_names_searched_paths(self, tmp_test_dir, build_context, make_media):
        """Test the error message names every searched folder."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "other.png")
        make_media(media_root, "fr-fr", "other.png")

        with pytest.raises(MediaNotFoundError) as exc_info:
            resolve_media("shot1.png", media_root, "fr-fr", None, "en-us", build_context)

        message = str(exc_info.value)
        assert "fr-fr" in message
        assert "en-us" in message

    def test_duplicate_files_fail(self, tmp_test_dir, build_context, make_media):
        """Test two matching files in one language folder is an error."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "a/shot1.png")
        make_media(media_root, "en-us", "b/shot1.png")

        with pytest.raises(AmbiguousMediaError) as exc_info:
            resolve_media("shot1.png", media_root, "en-us", None, None, build_context)

        assert len(exc_info.value.matches) == 2

    def test_staging_is_idempotent(self, tmp_test_dir, build_context, make_media):
        """Test resolving the same file twice stages one copy."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "shot1.png")

        first = resolve_media("shot1.png", media_root, "en-us", None, None, build_context)
        second = resolve_media("shot1.png", media_root, "en-us", None, None, build_context)

        assert first == second
        assert len(list((build_context.assets_dir / "en-us").iterdir())) == 1

    def test_glob_characters_are_literal(self, tmp_test_dir, build_context, make_media):
        """Test file names containing glob characters match literally."""
        media_root = tmp_test_dir / "media"
        make_media(media_root, "en-us", "shot[1].png")
        make_media(media_root, "en-us", "shot1.png")

        result = resolve_media("shot[1].png", media_root, "en-us", None, None, build_context)

        assert result == "Assets/en-us/shot[1].png"


class TestPickFallbackLanguage:
    """Tests for pick_fallback_language."""

    def test_first_non_empty_wins(self):
        """Test the most specific non-blank candidate is chosen."""
        assert pick_fallback_language(None, "  ", "de-de", "en-us") == "de-de"

    def test_all_empty(self):
        """Test None is returned when nothing is set."""
        assert pick_fallback_language(None, "") is None
