from __future__ import annotations

from src.services.icons import ALLOWED_STEP_ICONS, sanitize_icon
from src.services.ids import instagram_shortcode, is_http_url, is_social_post_url
from src.services.slugify import consistent_seed, slugify, title_keywords


class TestSlugify:
    def test_german_umlauts(self) -> None:
        assert slugify("Käsespätzle für Große") == "kaesespaetzle-fuer-grosse"

    def test_empty_falls_back(self) -> None:
        assert slugify("!!!") == "recipe"


class TestTitleKeywords:
    def test_drops_stopwords_and_short_words(self) -> None:
        assert title_keywords("Einfache Lasagne nach Omas Rezept") == "einfache lasagne omas"

    def test_limits_word_count(self) -> None:
        assert title_keywords("Rote Linsen Kokos Curry Suppe", max_keywords=2) == "rote linsen"

    def test_only_stopwords(self) -> None:
        assert title_keywords("Schnell und lecker") == ""


class TestConsistentSeed:
    def test_stable(self) -> None:
        assert consistent_seed("lasagne") == consistent_seed("lasagne")
        assert consistent_seed("lasagne") != consistent_seed("pizza")


class TestInstagramIds:
    def test_post_and_reel(self) -> None:
        assert instagram_shortcode("https://www.instagram.com/p/CxYz123_ab/") == "CxYz123_ab"
        assert instagram_shortcode("https://instagram.com/chef.anna/reel/ABCdef123/?igsh=1") == "ABCdef123"

    def test_profile_is_not_a_post(self) -> None:
        assert is_social_post_url("https://www.instagram.com/chef.anna/") is False


class TestIsHttpUrl:
    def test_accepts_http_and_https(self) -> None:
        assert is_http_url("https://example.com/rezept")
        assert is_http_url("http://example.com")

    def test_rejects_others(self) -> None:
        assert not is_http_url("example.com/rezept")
        assert not is_http_url("javascript:alert(1)")
        assert not is_http_url("")


class TestSanitizeIcon:
    def test_normalizes_case_and_separators(self) -> None:
        assert sanitize_icon("Local Fire-Department") == "local_fire_department"

    def test_unknown_or_non_string(self) -> None:
        assert sanitize_icon("rocket") is None
        assert sanitize_icon(None) is None
        assert sanitize_icon(42) is None

    def test_allowed_set_size(self) -> None:
        assert len(ALLOWED_STEP_ICONS) == 25
