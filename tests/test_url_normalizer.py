"""Tests for normalize_review_url()."""

from urllib.parse import parse_qs, urlsplit

import pytest

from src.core.url_normalizer import normalize_review_url


class TestNormalizeReviewUrl:
    def test_bare_domain_is_placed_under_review_path(self):
        assert (
            normalize_review_url("acme.com")
            == "https://www.trustpilot.com/review/acme.com?languages=all"
        )

    def test_scheme_and_www_stripped_from_bare_domain(self):
        assert (
            normalize_review_url("http://www.acme.com")
            == "https://www.trustpilot.com/review/acme.com?languages=all"
        )

    def test_whitespace_trimmed(self):
        assert (
            normalize_review_url("  acme.com \n")
            == "https://www.trustpilot.com/review/acme.com?languages=all"
        )

    def test_review_url_gets_languages_param(self):
        url = normalize_review_url("https://www.trustpilot.com/review/acme.com")
        assert url == "https://www.trustpilot.com/review/acme.com?languages=all"

    def test_existing_languages_param_kept(self):
        url = normalize_review_url("https://www.trustpilot.com/review/acme.com?languages=en")
        assert parse_qs(urlsplit(url).query) == {"languages": ["en"]}

    def test_other_query_params_preserved(self):
        url = normalize_review_url("https://www.trustpilot.com/review/acme.com?page=2")
        assert parse_qs(urlsplit(url).query) == {"page": ["2"], "languages": ["all"]}

    def test_missing_scheme_defaults_to_https(self):
        url = normalize_review_url("trustpilot.com/review/acme.com")
        assert url == "https://trustpilot.com/review/acme.com?languages=all"

    def test_host_lowercased(self):
        url = normalize_review_url("https://WWW.TrustPilot.com/review/acme.com")
        assert urlsplit(url).netloc == "www.trustpilot.com"

    def test_spaces_in_path_are_encoded(self):
        url = normalize_review_url("acme shop.com")
        assert url == "https://www.trustpilot.com/review/acme%20shop.com?languages=all"

    @pytest.mark.parametrize("raw", ["", "   ", "\t\n", None])
    def test_empty_input_returns_none(self, raw):
        assert normalize_review_url(raw) is None

    @pytest.mark.parametrize(
        "raw",
        [
            "https://www.trustpilot.com:99999/review/acme.com",
            "https://www.trustpilot.com extra/review/acme.com",
            "https://user@www.trustpilot.com/review/acme.com",
        ],
    )
    def test_unparseable_input_returns_none(self, raw):
        assert normalize_review_url(raw) is None

    @pytest.mark.parametrize(
        "raw",
        ["acme.com", "https://www.trustpilot.com/review/x.io", "[::1", "%%%", "a b c", "???"],
    )
    def test_result_is_absolute_url_or_none(self, raw):
        url = normalize_review_url(raw)
        if url is not None:
            parts = urlsplit(url)
            assert parts.scheme in ("http", "https")
            assert parts.netloc

    def test_deterministic(self):
        assert normalize_review_url("acme.com") == normalize_review_url("acme.com")
