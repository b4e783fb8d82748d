from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from src.core.config import settings

logger = logging.getLogger(__name__)


def status_channel(organization_id: str) -> str:
    return f"billing:organization_status:{organization_id}"


async def publish_billing_status(organization_id: str, subscription_status: str) -> bool:
    """Broadcast a committed status change. Delivery is best effort."""
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis_client.publish(status_channel(organization_id), subscription_status)
        return True
    except RedisError:
        logger.warning(
            "Billing status broadcast failed for organization=%s status=%s",
            organization_id,
            subscription_status,
            exc_info=True,
        )
        return False
    finally:
        await redis_client.aclose()
