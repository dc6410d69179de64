"""
Dealership chat assistant - sales chat backend for the BYD Lindavista site.
Main FastAPI application entry point.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from dealerchat.agents.conductor import Conductor
from dealerchat.agents.objections import ObjectionHandler
from dealerchat.agents.sales_playbook import SalesPlaybook
from dealerchat.api.router import api_router
from dealerchat.config import Settings, get_settings
from dealerchat.database import dispose_engine, get_session_factory
from dealerchat.services.abuse_guard import AbuseGuard
from dealerchat.services.ai import AIService
from dealerchat.services.lead_store import NullLeadStore, SqlLeadStore
from dealerchat.services.notifications import LeadNotifier
from dealerchat.services.template_matcher import TemplateMatcher
from dealerchat.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)
from dealerchat.utils.templates import dealership_variables
from dealerchat.workers.memory_sweeper import run_memory_sweeper

logger = logging.getLogger("dealerchat")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


def build_conductor(settings: Settings, session_factory=None) -> Conductor:
    """Wire every pipeline layer. No database means the null lead store."""
    if session_factory is not None:
        store = SqlLeadStore(session_factory, placeholder_domain=settings.placeholder_email_domain)
    else:
        store = NullLeadStore()

    return Conductor(
        settings=settings,
        abuse_guard=AbuseGuard.from_settings(settings),
        template_matcher=TemplateMatcher(dealership_variables(settings)),
        objection_handler=ObjectionHandler(),
        playbook=SalesPlaybook(),
        store=store,
        ai=AIService(settings),
        notifier=LeadNotifier(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("Dealership chat starting up (env=%s)", settings.app_env)

    # Initialize Sentry if configured
    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    session_factory = get_session_factory()
    conductor = build_conductor(settings, session_factory)
    app.state.session_factory = session_factory
    app.state.conductor = conductor

    if not conductor.ai.is_configured:
        logger.warning("No AI provider key set - replies fall back to test mode")
    if not conductor.notifier.is_configured:
        logger.warning("SMS_API_KEY not set - lead alerts disabled")

    sweeper_task = asyncio.create_task(
        run_memory_sweeper(conductor.abuse_guard, settings.abuse_sweep_interval_seconds)
    )

    yield

    logger.info("Dealership chat shutting down")
    sweeper_task.cancel()
    await asyncio.gather(sweeper_task, return_exceptions=True)
    await conductor.drain_notifications()
    await dispose_engine()
    logger.info("Dealership chat shutdown complete")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level, json_output=settings.app_env != "development")

    application = FastAPI(
        title="Dealership Chat",
        description="Sales chat assistant for the BYD Lindavista site",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
