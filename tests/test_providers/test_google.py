"""Tests for the Google Gemini provider."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

# Mock google.genai before importing the provider module
_mock_genai = MagicMock()
_mock_types = _mock_genai.types

# Set up the module hierarchy so `from google import genai` works
_mock_google = MagicMock()
_mock_google.genai = _mock_genai

_original_google = sys.modules.get("google")
_original_genai = sys.modules.get("google.genai")
_original_types = sys.modules.get("google.genai.types")

sys.modules["google"] = _mock_google
sys.modules["google.genai"] = _mock_genai
sys.modules["google.genai.types"] = _mock_types

from clawfix.core.providers.google import GoogleProvider  # noqa: E402

# Restore original modules (if any) after import
if _original_google is not None:
    sys.modules["google"] = _original_google
else:
    sys.modules.pop("google", None)
if _original_genai is not None:
    sys.modules["google.genai"] = _original_genai
else:
    sys.modules.pop("google.genai", None)
if _original_types is not None:
    sys.modules["google.genai.types"] = _original_types
else:
    sys.modules.pop("google.genai.types", None)


class TestGoogleProvider:
    @patch("clawfix.core.providers.google.genai")
    def test_complete_returns_text(self, mock_genai):
        mock_client = mock_genai.Client.return_value
        mock_client.models.generate_content.return_value.text = "## Summary\nok"

        provider = GoogleProvider("gemini-2.5-pro", api_key="k")
        assert provider.complete("sys", "msg") == "## Summary\nok"
        assert mock_genai.Client.call_args[1]["api_key"] == "k"

    @patch("clawfix.core.providers.google.types")
    @patch("clawfix.core.providers.google.genai")
    def test_timeout_in_milliseconds(self, mock_genai, mock_types):
        GoogleProvider("gemini-2.5-pro", timeout=2.5)
        mock_types.HttpOptions.assert_called_once_with(timeout=2500)

    @patch("clawfix.core.providers.google.genai")
    def test_raises_without_text(self, mock_genai):
        mock_genai.Client.return_value.models.generate_content.return_value.text = None

        provider = GoogleProvider("gemini-2.5-pro")
        with pytest.raises(ValueError, match="did not contain text"):
            provider.complete("sys", "msg")

    def test_check_api_key(self):
        with patch.dict("os.environ", {"GOOGLE_API_KEY": "k"}):
            assert GoogleProvider.check_api_key() == (True, "GOOGLE_API_KEY")
