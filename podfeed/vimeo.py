"""Vimeo API client used to query source metadata and video listings."""
import logging
from dataclasses import dataclass, field
from datetime import datetime

import requests

from podfeed.errors import NotFoundError, PodfeedError, TransientError
from podfeed.models import Quality, SourceType

logger = logging.getLogger(__name__)

API_URL = "https://api.vimeo.com"

# endpoint, description field, whether the source is its own author
SOURCE_ENDPOINTS = {
    SourceType.CHANNEL: ("/channels/{}", "description", False),
    SourceType.GROUP: ("/groups/{}", "description", False),
    SourceType.USER: ("/users/{}", "bio", True),
}


@dataclass
class Header:
    """Metadata of a channel, group or user."""

    title: str
    link: str
    description: str
    author: str
    created_time: datetime | None
    pictures: list[dict] = field(default_factory=list)


@dataclass
class Video:
    id: str
    title: str
    description: str
    link: str
    duration: int
    width: int
    height: int
    created_time: datetime | None
    pictures: list[dict] = field(default_factory=list)


def select_image(sizes: list[dict] | None, quality: Quality) -> str:
    """Pick a picture link from sizes ordered from lowest to highest resolution."""
    if not sizes:
        return ""
    if quality == Quality.LOW:
        return sizes[0].get("link", "")
    return sizes[-1].get("link", "")


def classify_error(exc: Exception, response: requests.Response | None) -> PodfeedError:
    """Map a failed request to NotFoundError (404) or TransientError."""
    if response is not None and response.status_code == 404:
        return NotFoundError(str(exc))
    if response is not None:
        return TransientError(f"error {response.status_code} {response.reason}: {exc}", status=response.status_code)
    return TransientError(str(exc))


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _sizes(obj: dict) -> list[dict]:
    pictures = obj.get("pictures") or {}
    return pictures.get("sizes") or []


class VimeoClient:
    """Thin wrapper over the Vimeo REST API.

    The session is shared between concurrent builds, requests.Session
    tolerates that for plain GETs.
    """

    def __init__(self, token: str, timeout: float = 30, session: requests.Session | None = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"bearer {token}",
            "Accept": "application/vnd.vimeo.*+json;version=3.4",
        })

    def _get(self, path: str, params: dict | None = None) -> dict:
        logger.debug(f"GET {path} {params or ''}")
        try:
            response = self.session.get(API_URL + path, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise classify_error(exc, exc.response) from exc

    def query_metadata(self, source_type: SourceType, item_id: str) -> Header:
        """Fetch header metadata of a channel, group or user."""
        endpoint, description_field, self_authored = SOURCE_ENDPOINTS[source_type]
        data = self._get(endpoint.format(item_id))

        if self_authored:
            author = data.get("name", "")
        else:
            author = (data.get("user") or {}).get("name", "")

        return Header(
            title=data.get("name", ""),
            link=data.get("link", ""),
            description=data.get(description_field) or "",
            author=author,
            created_time=_parse_time(data.get("created_time")),
            pictures=_sizes(data),
        )

    def list_videos(
        self, source_type: SourceType, item_id: str, page: int, per_page: int
    ) -> tuple[list[Video], str]:
        """Fetch one page of videos. Returns (videos, next page link or "")."""
        endpoint, _, _ = SOURCE_ENDPOINTS[source_type]
        data = self._get(
            endpoint.format(item_id) + "/videos",
            params={"page": page, "per_page": per_page},
        )

        videos = []
        for raw in data.get("data") or []:
            videos.append(Video(
                id=raw.get("uri", "").rsplit("/", 1)[-1],
                title=raw.get("name", ""),
                description=raw.get("description") or "",
                link=raw.get("link", ""),
                duration=int(raw.get("duration") or 0),
                width=int(raw.get("width") or 0),
                height=int(raw.get("height") or 0),
                created_time=_parse_time(raw.get("created_time")),
                pictures=_sizes(raw),
            ))

        next_page = (data.get("paging") or {}).get("next") or ""
        return videos, next_page
