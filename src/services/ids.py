# src/services/ids.py
import re
from typing import Optional
from urllib.parse import urlparse

# Instagram post or reel
_IG_POST_RE = re.compile(
    r"instagram\.com/(?:[A-Za-z0-9_.]+/)?(?:reel|p)/([A-Za-z0-9_-]{5,})"
)


def instagram_shortcode(url: str) -> Optional[str]:
    """Retorna o shortcode do post/reel, ou None se a URL nao for de um post."""
    m = _IG_POST_RE.search(url)
    return m.group(1) if m else None


def is_social_post_url(url: str) -> bool:
    return instagram_shortcode(url) is not None


def is_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
