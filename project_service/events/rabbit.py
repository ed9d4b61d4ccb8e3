# project_service/events/rabbit.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import aio_pika
from aio_pika import ExchangeType, Message

from project_service.config import Settings

logger = logging.getLogger("project_service.events")

SERVICE = "project"


def rk(org: str, service: str, event: str, version: str = "v1") -> str:
    """
    Build the canonical versioned routing key:
        <org>.<service>.<event>.<version>
    """
    return f"{org}.{service}.{event}.{version}"


class RabbitBus:
    """
    Minimal async publisher using aio-pika.
    Usage:
        bus = await RabbitBus(settings).connect()
        await bus.publish(event="project.created", payload={...})
    """
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._conn: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._chan: Optional[aio_pika.abc.AbstractChannel] = None
        self._ex: Optional[aio_pika.abc.AbstractExchange] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> "RabbitBus":
        async with self._lock:
            if self._conn and not self._conn.is_closed:
                return self
            logger.info("Rabbit: connecting...")
            self._conn = await aio_pika.connect_robust(self._settings.rabbitmq_uri)
            self._chan = await self._conn.channel(publisher_confirms=False)
            self._ex = await self._chan.declare_exchange(
                self._settings.rabbitmq_exchange,
                ExchangeType.TOPIC,
                durable=True,
            )
            logger.info("Rabbit: connected and exchange declared (%s)", self._settings.rabbitmq_exchange)
        return self

    async def close(self) -> None:
        if self._conn and not self._conn.is_closed:
            await self._conn.close()
            logger.info("Rabbit: connection closed")

    async def publish(self, *, event: str, payload: dict, version: str = "v1", headers: Optional[dict] = None) -> None:
        """
        Events are notifications; a broker outage is logged and never fails the
        operation that produced the event.
        """
        try:
            if not self._ex:
                await self.connect()
            routing_key = rk(self._settings.events_org, SERVICE, event, version)
            body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")
            message = Message(
                body=body,
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                content_type="application/json",
                headers=headers or {},
            )
            await self._ex.publish(message, routing_key=routing_key)
            logger.info("Rabbit: published %s (%d bytes)", routing_key, len(body))
        except Exception as e:
            logger.warning("Rabbit: publish of %s failed: %s", event, e)
