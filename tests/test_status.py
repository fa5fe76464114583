"""Tests for online status evaluation."""

from sitewatcher.models import FetchResult, SpiderType
from sitewatcher.status import evaluate_status, extract_text


def _result(body: str, status_code: int = 200) -> FetchResult:
    return FetchResult(
        url="https://example.com",
        status_code=status_code,
        content=body.encode("utf-8"),
        body=body,
    )


class TestExtractText:
    """Tests for the extract_text function."""

    def test_html_text(self):
        """Test that visible text is extracted from HTML."""
        assert extract_text("<html><body><p>Hello</p></body></html>") == "Hello"

    def test_json_text(self):
        """Test that a JSON payload counts as text."""
        assert extract_text('{"items": [1, 2]}') != ""

    def test_empty_body(self):
        """Test that an empty body has no text."""
        assert extract_text("") == ""

    def test_whitespace_body(self):
        """Test that a whitespace-only body has no text."""
        assert extract_text("  \n\t ") == ""

    def test_markup_without_text(self):
        """Test that markup with no text content has no text."""
        assert extract_text("<html><body><div>  </div></body></html>") == ""


class TestEvaluateStatus:
    """Tests for the evaluate_status function."""

    def test_content_200_is_online(self):
        """Test that a content page answering 200 is online."""
        assert evaluate_status(_result("", 200), SpiderType.CONTENT) is True

    def test_content_non_200_is_offline(self):
        """Test that a content page answering an error is offline, whatever its body."""
        assert evaluate_status(_result("<p>Error page</p>", 500), SpiderType.CONTENT) is False

    def test_content_redirect_status_is_offline(self):
        """Test that only 200 counts for content pages."""
        assert evaluate_status(_result("<p>Moved</p>", 204), SpiderType.CONTENT) is False

    def test_api_with_payload_is_online(self):
        """Test that an API returning text is online."""
        assert evaluate_status(_result('{"ok": true}'), SpiderType.API) is True

    def test_api_empty_payload_is_offline(self):
        """Test that an API returning an empty body is offline even with 200."""
        assert evaluate_status(_result("", 200), SpiderType.API) is False

    def test_api_ignores_status_code(self):
        """Test that an API with text counts as online regardless of status."""
        assert evaluate_status(_result("Service data", 503), SpiderType.API) is True
