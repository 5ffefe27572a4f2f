"""
Unit tests for configuration module.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError


@pytest.mark.unit
class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_env(self, mock_settings):
        """Settings should load values from environment variables."""
        assert mock_settings.embedding_model == "text-embedding-3-small"
        assert mock_settings.embedding_dimension == 8
        assert mock_settings.min_chunk_chars == 50
        assert mock_settings.max_chunk_chars == 400
        assert mock_settings.collection_id == "test-node"
        assert mock_settings.enable_tracing is False

    def test_defaults(self):
        """Defaults should match the pipeline constants."""
        with patch.dict(os.environ, {}, clear=True):
            from vaultrag.config import Settings

            defaults = Settings(_env_file=None)

        assert defaults.openai_api_key is None
        assert defaults.embedding_dimension == 1536
        assert defaults.embedding_cache_size == 1000
        assert defaults.embedding_cache_key_chars == 500
        assert defaults.min_chunk_chars == 200
        assert defaults.max_chunk_chars == 4000
        assert defaults.search_limit == 5
        assert defaults.search_threshold == 0.7
        assert defaults.stats_top_directories == 10

    def test_max_chunk_chars_validation(self):
        """The max chunk size must leave room for two minimum-sized chunks."""
        with patch.dict(
            os.environ,
            {
                "MIN_CHUNK_CHARS": "300",
                "MAX_CHUNK_CHARS": "500",  # Invalid: < 2 * min
            },
            clear=True,
        ):
            from vaultrag.config import Settings

            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_search_threshold_bounds(self):
        with patch.dict(os.environ, {"SEARCH_THRESHOLD": "1.5"}, clear=True):
            from vaultrag.config import Settings

            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_api_key_is_secret(self, mock_settings):
        """API key should be stored as SecretStr."""
        assert "test-api-key" not in str(mock_settings.openai_api_key)
        assert mock_settings.openai_api_key_value == "test-api-key"

    def test_paths_are_resolved(self, mock_settings):
        """Path settings should be resolved to absolute paths."""
        assert mock_settings.vault_dir.is_absolute()
        assert mock_settings.index_path.is_absolute()

    def test_exclude_patterns_from_env(self):
        with patch.dict(os.environ, {"VAULT_EXCLUDE_PATTERNS": '["drafts/*", "*.tmp.md"]'}, clear=True):
            from vaultrag.config import Settings

            loaded = Settings(_env_file=None)

        assert loaded.vault_exclude_patterns == ["drafts/*", "*.tmp.md"]

    def test_get_settings_is_cached(self):
        """get_settings should return cached instance."""
        from vaultrag.config import get_settings

        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2
