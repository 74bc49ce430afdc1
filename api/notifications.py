"""
Notification routes: push data-feed events to subscribed WebSocket clients.

Each kind is delivered on its own topic:
- environmental_data -> environmental
- species_identification -> species
- prediction -> predictions
- vessel_update -> vessels
- alert -> alerts
- system_status -> system
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from websocket import FEED_TOPICS, MessageType

from .services import Services, get_services

router = APIRouter()


@router.post("/notifications/{kind}")
async def publish_notification(
    kind: str,
    payload: Dict[str, Any] = Body(...),
    services: Services = Depends(get_services),
):
    """Broadcast ``payload`` as a ``kind`` event on the topic for that kind."""
    try:
        message_type = MessageType(kind)
    except ValueError:
        message_type = None
    if message_type not in FEED_TOPICS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown notification kind: {kind}. Valid kinds: {[t.value for t in FEED_TOPICS]}",
        )

    delivered = await services.hub.publish(message_type, payload)
    return {
        "kind": kind,
        "channel": FEED_TOPICS[message_type],
        "delivered": delivered,
    }
