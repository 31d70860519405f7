"""
Webhook Relay HTTP App

FastAPI app that receives signed events from the customer site:

    POST /api/giannicorp/inbox   (X-Giannicorp-Event, X-Giannicorp-Signature)
    GET  /health

Responses are always {"ok": bool, "error"?: str}.
"""

import json
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gcadmin.config import RelaySettings, get_settings
from gcadmin.relay.inbox import (
    InboxProcessor,
    InboxStore,
    InvalidPayloadError,
    UnknownEventError,
)
from gcadmin.relay.signature import verify_signature

logger = structlog.get_logger(__name__)

EVENT_HEADER = "X-Giannicorp-Event"
SIGNATURE_HEADER = "X-Giannicorp-Signature"

# Same limit the customer site enforces on its side
MAX_BODY_BYTES = 1024 * 1024


def _fail(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": error})


def create_app(
    settings: Optional[RelaySettings] = None,
    inbox: Optional[InboxStore] = None,
) -> FastAPI:
    """
    Build the relay app.

    Args:
        settings: Relay settings; defaults to the environment
        inbox: Inbox store; defaults to one at settings.db_path
    """
    settings = settings or get_settings().relay
    inbox = inbox or InboxStore(settings.db_path)
    processor = InboxProcessor(inbox)

    app = FastAPI(title="Giannicorp Admin Webhook Relay")
    app.state.inbox = inbox
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list or ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.post("/api/giannicorp/inbox")
    async def receive(request: Request) -> JSONResponse:
        body = await request.body()
        if len(body) > MAX_BODY_BYTES:
            return _fail(413, "payload_too_large")

        if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.webhook_secret):
            logger.warning("inbox_bad_signature", client=request.client.host if request.client else None)
            return _fail(401, "Bad signature")

        event = request.headers.get(EVENT_HEADER)
        try:
            document = json.loads(body) if body else {}
            await run_in_threadpool(processor.handle, event, document)
        except UnknownEventError as e:
            return _fail(400, str(e))
        except (InvalidPayloadError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.info("inbox_invalid_payload", event_kind=event, error=str(e))
            return _fail(400, "invalid_payload")
        except Exception:
            logger.exception("inbox_event_failed", event_kind=event)
            return _fail(500, "server_error")

        return JSONResponse(content={"ok": True})

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    return app


def main() -> None:
    """Serve the relay with uvicorn on the configured host and port."""
    settings = get_settings().relay
    logger.info("relay_starting", host=settings.host, port=settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
