"""Classify source links into provider, source type and item id."""
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from podfeed.errors import UnsupportedError
from podfeed.models import SourceType

VIMEO_HOSTS = {"vimeo.com", "www.vimeo.com"}

# Top-level vimeo.com paths that are not user profiles
RESERVED_PATHS = {"channels", "groups", "album", "showcase", "ondemand", "categories", "watch"}


@dataclass(frozen=True)
class LinkInfo:
    provider: str
    source_type: SourceType
    item_id: str


def parse_link(url: str) -> LinkInfo:
    """Parse a Vimeo URL.

    Supported forms:
    - https://vimeo.com/channels/staffpicks
    - https://vimeo.com/groups/motion
    - https://vimeo.com/awhitelabelproduct  (user)
    """
    url = url.strip()
    if "://" not in url:
        url = "https://" + url

    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host not in VIMEO_HOSTS:
        raise UnsupportedError(f"unsupported link {url!r}: unknown host {host!r}")

    parts = [p for p in parsed.path.split("/") if p]
    if not parts:
        raise UnsupportedError(f"unsupported link {url!r}: missing path")

    if parts[0] == "channels" and len(parts) >= 2:
        return LinkInfo("vimeo", SourceType.CHANNEL, parts[1])
    if parts[0] == "groups" and len(parts) >= 2:
        return LinkInfo("vimeo", SourceType.GROUP, parts[1])

    if parts[0] in RESERVED_PATHS or re.fullmatch(r"\d+", parts[0]):
        # Bare numeric paths are single videos, not feeds
        raise UnsupportedError(f"unsupported link {url!r}")

    return LinkInfo("vimeo", SourceType.USER, parts[0])
