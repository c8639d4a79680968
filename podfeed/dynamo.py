"""DynamoDB storage engine."""
import json
import logging
import zlib

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from podfeed.models import Feed, Pledge
from podfeed.storage import Storage, feed_from_record, feed_to_record, from_epoch, to_epoch

logger = logging.getLogger(__name__)

FEEDS_PRIMARY_KEY = "FeedID"
PLEDGES_PRIMARY_KEY = "PledgeID"
FEED_DOWNGRADE_INDEX = "UserID-CreatedAt-Index"
TIME_TO_LIVE_FIELD = "ExpiresAt"
EPISODES_FIELD = "Episodes"

# Feed fields kept as plain attributes next to the keys
HEADER_FIELDS = (
    "item_id", "provider", "source_type", "title", "item_url", "description",
    "cover_art", "author", "pub_date", "updated_at", "quality", "page_size",
)


class DynamoStorage(Storage):
    """Feeds and pledges kept in two DynamoDB tables.

    Feeds carry a UserID/CreatedAt global secondary index (keys only) and
    a TTL attribute; DynamoDB removes expired items on its own schedule.
    """

    def __init__(
        self,
        feeds_table: str = "Feeds",
        pledges_table: str = "Pledges",
        region: str | None = None,
        endpoint_url: str | None = None,
        resource=None,
    ):
        self.dynamo = resource or boto3.resource("dynamodb", region_name=region, endpoint_url=endpoint_url)
        self.feeds_table_name = feeds_table
        self.pledges_table_name = pledges_table
        self.feeds = self.dynamo.Table(feeds_table)
        self.pledges = self.dynamo.Table(pledges_table)

    def put_feed(self, feed: Feed) -> None:
        record = feed_to_record(feed)
        episodes = record.pop("episodes")
        item = {name: record[name] for name in HEADER_FIELDS}
        item.update({
            FEEDS_PRIMARY_KEY: feed.id,
            "CreatedAt": feed.created_at,
            # Items are capped at 400 KB; episode lists compress well
            EPISODES_FIELD: zlib.compress(json.dumps(episodes).encode("utf-8")),
        })
        # Index key attributes may not be empty; feeds without a user stay out of the index
        if feed.user_id:
            item["UserID"] = feed.user_id
        if feed.expires_at is not None:
            item[TIME_TO_LIVE_FIELD] = to_epoch(feed.expires_at)
        self.feeds.put_item(Item=item)

    def get_feed(self, feed_id: str) -> Feed | None:
        response = self.feeds.get_item(Key={FEEDS_PRIMARY_KEY: feed_id})
        item = response.get("Item")
        if item is None:
            return None

        record = {name: item.get(name) for name in HEADER_FIELDS}
        record["page_size"] = int(record["page_size"])
        record["id"] = item[FEEDS_PRIMARY_KEY]
        record["user_id"] = item.get("UserID", "")
        record["created_at"] = int(item.get("CreatedAt", 0))
        record["expires_at"] = item.get(TIME_TO_LIVE_FIELD)

        # boto3 hands binary attributes back wrapped in Binary
        raw = item.get(EPISODES_FIELD)
        if raw is not None:
            raw = getattr(raw, "value", raw)
            record["episodes"] = json.loads(zlib.decompress(bytes(raw)).decode("utf-8"))
        return feed_from_record(record)

    def delete_feed(self, feed_id: str) -> None:
        self.feeds.delete_item(Key={FEEDS_PRIMARY_KEY: feed_id})

    def put_pledge(self, pledge: Pledge) -> None:
        item = {
            PLEDGES_PRIMARY_KEY: pledge.id,
            "UserID": pledge.user_id,
            "Tier": pledge.tier,
        }
        if pledge.expires_at is not None:
            item[TIME_TO_LIVE_FIELD] = to_epoch(pledge.expires_at)
        self.pledges.put_item(Item=item)

    def get_pledge(self, pledge_id: int) -> Pledge | None:
        response = self.pledges.get_item(Key={PLEDGES_PRIMARY_KEY: pledge_id})
        item = response.get("Item")
        if item is None:
            return None
        return Pledge(
            id=int(item[PLEDGES_PRIMARY_KEY]),
            user_id=item["UserID"],
            expires_at=from_epoch(item.get(TIME_TO_LIVE_FIELD)),
            tier=int(item.get("Tier", 0)),
        )

    def delete_pledge(self, pledge_id: int) -> None:
        self.pledges.delete_item(Key={PLEDGES_PRIMARY_KEY: pledge_id})

    def list_feeds_for_user(self, user_id: str) -> list[str]:
        if not user_id:
            return []
        params = {
            "IndexName": FEED_DOWNGRADE_INDEX,
            "KeyConditionExpression": Key("UserID").eq(user_id),
            "ScanIndexForward": True,
        }
        feed_ids = []
        while True:
            response = self.feeds.query(**params)
            feed_ids.extend(item[FEEDS_PRIMARY_KEY] for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return feed_ids
            params["ExclusiveStartKey"] = last_key

    # === Provisioning ===

    def bootstrap(self) -> None:
        """Create tables, index and TTL if missing. Safe to run repeatedly."""
        client = self.dynamo.meta.client

        self._create_table(client, {
            "TableName": self.pledges_table_name,
            "AttributeDefinitions": [
                {"AttributeName": PLEDGES_PRIMARY_KEY, "AttributeType": "N"},
            ],
            "KeySchema": [
                {"AttributeName": PLEDGES_PRIMARY_KEY, "KeyType": "HASH"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        })

        self._create_table(client, {
            "TableName": self.feeds_table_name,
            "AttributeDefinitions": [
                {"AttributeName": FEEDS_PRIMARY_KEY, "AttributeType": "S"},
                {"AttributeName": "UserID", "AttributeType": "S"},
                {"AttributeName": "CreatedAt", "AttributeType": "N"},
            ],
            "KeySchema": [
                {"AttributeName": FEEDS_PRIMARY_KEY, "KeyType": "HASH"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": FEED_DOWNGRADE_INDEX,
                    "KeySchema": [
                        {"AttributeName": "UserID", "KeyType": "HASH"},
                        {"AttributeName": "CreatedAt", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "KEYS_ONLY"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        })

        for table_name in (self.pledges_table_name, self.feeds_table_name):
            client.get_waiter("table_exists").wait(TableName=table_name)
            self._enable_ttl(client, table_name)

    def _create_table(self, client, definition: dict) -> None:
        try:
            client.create_table(**definition)
            logger.info(f"Created table {definition['TableName']}")
        except ClientError as e:
            if e.response["Error"]["Code"] != "ResourceInUseException":
                raise
            logger.debug(f"Table {definition['TableName']} already exists")

    def _enable_ttl(self, client, table_name: str) -> None:
        description = client.describe_time_to_live(TableName=table_name)
        status = description.get("TimeToLiveDescription", {}).get("TimeToLiveStatus")
        if status in ("ENABLED", "ENABLING"):
            return
        client.update_time_to_live(
            TableName=table_name,
            TimeToLiveSpecification={"Enabled": True, "AttributeName": TIME_TO_LIVE_FIELD},
        )
        logger.info(f"Enabled TTL on {table_name}.{TIME_TO_LIVE_FIELD}")
