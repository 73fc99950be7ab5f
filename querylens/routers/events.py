"""Events API Router.

Ingestion endpoints for query events, plus the WebSocket stream of
updated query views.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, WebSocket
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from querylens.lib.dependencies import get_query_event_service, get_ws_services
from querylens.lib.metrics import record_event_rejected
from querylens.lib.notifications import AsyncQueueSubscriber
from querylens.lib.structured_logger import StructuredLogger
from querylens.models.query_event import QueryEvent
from querylens.models.trino_message import TrinoEventMessage
from querylens.services.query_event_service import QueryEventService

router = APIRouter()
ws_router = APIRouter()
logger = StructuredLogger(__name__)


class EventAcceptedResponse(BaseModel):
    """Ingestion acknowledgement."""
    accepted: bool = Field(..., description='False when the event had no query id and was dropped')
    query_id: str | None = Field(default=None, description='Query the event was correlated to')

    model_config = {'alias_generator': to_camel, 'populate_by_name': True}


def _ingest(event: QueryEvent, service: QueryEventService) -> EventAcceptedResponse:
    service.ingest(event)
    if not event.query_id:
        return EventAcceptedResponse(accepted=False)
    return EventAcceptedResponse(accepted=True, query_id=event.query_id)


@router.post('', response_model=EventAcceptedResponse, status_code=202)
def ingest_event(event: QueryEvent, service: QueryEventService = Depends(get_query_event_service)):
    """Ingest one decoded query event (camelCase JSON).

    Returns:
        202 with `accepted: false` when the event carries no query id
    """
    return _ingest(event, service)


@router.post('/trino', response_model=EventAcceptedResponse, status_code=202)
def ingest_trino_event(
    message: TrinoEventMessage,
    service: QueryEventService = Depends(get_query_event_service)
):
    """Ingest one raw Trino event-listener message.

    Returns:
        202 with `accepted: false` when the message has no metadata block
    """
    event = message.to_query_event()
    if event is None:
        record_event_rejected('missing_metadata')
        logger.warning('Dropping Trino message without metadata')
        return EventAcceptedResponse(accepted=False)
    return _ingest(event, service)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message['type'] == 'websocket.disconnect':
            return


@ws_router.websocket('/ws/query-updates')
async def query_updates(websocket: WebSocket):
    """Stream every updated query view to the client as JSON."""
    services = get_ws_services(websocket)
    subscriber = AsyncQueueSubscriber(asyncio.get_running_loop(), maxsize=services.settings.ws_queue_maxsize)
    services.publisher.subscribe(subscriber)
    await websocket.accept()
    logger.info('Query updates client connected', subscribers=services.publisher.subscriber_count())

    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while True:
            next_view = asyncio.create_task(subscriber.get())
            done, _ = await asyncio.wait({next_view, disconnected}, return_when=asyncio.FIRST_COMPLETED)
            if disconnected in done:
                next_view.cancel()
                break
            view: Any = next_view.result()
            await websocket.send_json(view.model_dump(by_alias=True, mode='json'))
    finally:
        disconnected.cancel()
        services.publisher.unsubscribe(subscriber)
        logger.info('Query updates client disconnected')
