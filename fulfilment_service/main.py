"""
main.py — FastAPI Entry Point for the Fulfilment Service

This module provides the webhook interface between the storefront and the
partner fulfilment API. It is the intake half of a two-stage pipeline:
requests are verified and enqueued here, while the queue worker builds and
submits the partner orders.

Responsibilities:
    • Accept signed order webhooks per client
    • Reject unknown clients, bad signatures and malformed bodies
    • Start the order queue consumer thread
    • Provide system health information
"""

import threading
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .config import Settings
from .errors import IntakeError
from .intake import receive_order_webhook
from .logging_config import get_logger, setup_logging
from .services import Services, build_services
from .worker import start_order_consumer

log = get_logger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        services (Optional[Services]): Pre-built collaborators. When omitted,
            they are built from the environment at start-up.
    """
    app = FastAPI(title="Order Fulfilment Bridge")
    app.state.services = services
    app.state.stop_event = threading.Event()

    @app.on_event("startup")
    def on_startup():
        """
        Builds collaborators from the environment when none were injected and
        launches the order consumer as a daemon thread.
        """
        if app.state.services is None:
            settings = Settings.from_env()
            setup_logging(settings.log_level, settings.log_file)
            app.state.services = build_services(settings)

        log.info("Fulfilment service starting...")
        if app.state.services.settings.run_worker:
            consumer_thread = threading.Thread(
                target=start_order_consumer,
                args=(app.state.services, app.state.stop_event),
                daemon=True,
            )
            consumer_thread.start()
            log.info("Order consumer thread started.")

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.stop_event.set()
        if app.state.services is not None:
            app.state.services.close()

    @app.post("/webhooks/shopify/{client_hook}")
    async def order_webhook(client_hook: str, request: Request):
        """
        Receives an order webhook for one client and enqueues it.

        The raw body is read unparsed, since the signature covers the exact bytes.
        Intake publishes through a blocking broker client, so it runs in the threadpool.

        Returns:
            JSONResponse: 200 {ok, enqueued, items} on success; 404 / 401 / 400
            with {ok: false, error} when rejected; 500 on unexpected failures.
        """
        services = request.app.state.services
        raw_body = await request.body()
        try:
            result = await run_in_threadpool(
                receive_order_webhook, services, client_hook, raw_body, request.headers
            )
        except IntakeError as e:
            return JSONResponse({"ok": False, "error": e.public_message}, status_code=e.status_code)
        except Exception as e:
            log.critical(f"Intake failed for hook '{client_hook}': {e}", exc_info=True)
            status_code = 200 if services.settings.ack_intake_errors else 500
            return JSONResponse({"ok": False}, status_code=status_code)

        return {"ok": True, "enqueued": True, "items": result.items}

    @app.get("/health")
    def health_check():
        """Simple health check endpoint for monitoring and container orchestrators."""
        return {"status": "ok"}

    return app


app = create_app()
