"""Downgrade feeds of users whose pledge has lapsed."""
import logging
from datetime import datetime, timezone
from typing import Iterable

from podfeed.models import Quality
from podfeed.storage import Storage

logger = logging.getLogger(__name__)


def has_active_pledge(storage: Storage, user_id: str, pledge_id: int, now: datetime) -> bool:
    pledge = storage.get_pledge(pledge_id)
    return pledge is not None and pledge.user_id == user_id and pledge.is_active(now)


def downgrade_lapsed_feeds(
    storage: Storage,
    user_id: str,
    pledge_ids: Iterable[int] = (),
    now: datetime | None = None,
) -> list[str]:
    """Rewrite a user's high quality feeds as low quality when no pledge backs them.

    The user stays entitled while any of `pledge_ids` is active. Uses the
    user index to find the feeds. Returns the ids of the feeds that were
    downgraded; running it again downgrades nothing.
    """
    if not user_id:
        return []

    now = now or datetime.now(timezone.utc)
    if any(has_active_pledge(storage, user_id, pledge_id, now) for pledge_id in pledge_ids):
        logger.debug(f"User {user_id} has an active pledge, nothing to downgrade")
        return []

    downgraded = []
    for feed_id in storage.list_feeds_for_user(user_id):
        feed = storage.get_feed(feed_id)
        # Index may still list a feed removed by TTL
        if feed is None or feed.quality == Quality.LOW:
            continue
        feed.quality = Quality.LOW
        storage.put_feed(feed)
        downgraded.append(feed_id)

    if downgraded:
        logger.info(f"Downgraded {len(downgraded)} feeds of user {user_id}")
    return downgraded
