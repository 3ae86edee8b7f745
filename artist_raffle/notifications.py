"""
Redis Publisher for Raffle Events
Publishes winner draws so the notification service can contact the winner
"""

import json
import logging
import os

import redis

from .config import RAFFLE_EVENTS_CHANNEL

logger = logging.getLogger(__name__)


class RaffleEventPublisher:
    """Fire-and-forget publisher; disabled when redis is not configured or reachable"""

    def __init__(self, redis_url=None, channel=RAFFLE_EVENTS_CHANNEL, client=None):
        self.channel = channel
        self.client = client
        self.enabled = client is not None

        if client is not None:
            return

        redis_url = redis_url if redis_url is not None else os.getenv('REDIS_URL', '')
        if not redis_url:
            logger.info("REDIS_URL not set, raffle events will not be published")
            return

        if '://' not in redis_url:
            redis_url = f'redis://{redis_url}'
        try:
            self.client = redis.from_url(redis_url, decode_responses=True)
            self.client.ping()
            self.enabled = True
            logger.info("✅ Raffle event publisher connected")
        except redis.RedisError as e:
            logger.warning(f"⚠️ Redis unavailable for raffle events: {e}")
            self.enabled = False

    def publish(self, action, data=None):
        """
        Publish an event to the raffle channel

        Returns:
            bool: True if the message was handed to redis
        """
        if not self.enabled:
            return False

        try:
            message = json.dumps({
                'action': action,
                'data': data or {}
            }, default=str)
            self.client.publish(self.channel, message)
            logger.info(f"📤 Published to {self.channel}: {action}")
            return True
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error(f"❌ Failed to publish to {self.channel}: {e}")
            return False

    def publish_winner_selected(self, raffle_id, artist_id, ticket_id, ticket_number,
                                participant_id, participant_name=None, selected_at=None):
        """Publish a completed winner draw"""
        return self.publish('winner_selected', {
            'raffle_id': raffle_id,
            'artist_id': artist_id,
            'ticket_id': ticket_id,
            'ticket_number': ticket_number,
            'participant_id': participant_id,
            'participant_name': participant_name,
            'selected_at': selected_at,
        })
