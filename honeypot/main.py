"""FastAPI entry point. Wires the engagement pipeline to HTTP.
Exposes GET / (health) and POST /honeypot (conversation endpoint)."""

import logging
import random

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from honeypot import __version__
from honeypot.auth import verify_api_key
from honeypot.callback import CallbackReporter
from honeypot.config import DEFAULT_CONFIG, load_settings
from honeypot.errors import InputError, TurnFailure
from honeypot.memory import InMemorySessionStore
from honeypot.models import HoneypotRequest, HoneypotResponse
from honeypot.pipeline import HoneypotPipeline

settings = load_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I didn't catch that. Can you please repeat?"


def build_pipeline() -> HoneypotPipeline:
    """Pipeline wired with the in-memory store and HTTP report delivery."""
    reporter = CallbackReporter(settings.callback_url, timeout=settings.callback_timeout)
    store = InMemorySessionStore(
        idle_seconds=settings.session_idle_seconds,
        recent_reply_limit=DEFAULT_CONFIG.strategy.recent_reply_limit,
    )
    pipeline = HoneypotPipeline(
        store,
        config=DEFAULT_CONFIG,
        reporter=reporter,
        rng=random.Random(settings.rng_seed),
    )
    store.on_expire = pipeline.report_expired
    return pipeline


pipeline = build_pipeline()

app = FastAPI(
    title="Scam Engagement Honeypot API",
    description="Scam detection, persona engagement and intelligence extraction",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error(f"422 VALIDATION ERROR | {request.url.path} | {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(), "message": "Invalid request payload."},
    )


@app.get("/")
async def health_check() -> dict:
    return {
        "status": "online",
        "service": "Scam Engagement Honeypot API",
        "version": __version__,
        "configVersion": pipeline.config.version,
    }


@app.post("/honeypot", response_model=HoneypotResponse)
def process_message(
    request: HoneypotRequest,
    api_key: str = Depends(verify_api_key),
) -> HoneypotResponse:
    """Run one counterpart message through the pipeline and return the persona's reply."""
    session_id = request.sessionId or ""
    metadata = request.metadata.model_dump(exclude_none=True) if request.metadata else None
    try:
        reply = pipeline.process(
            session_id=session_id,
            message=request.message,
            history=request.conversationHistory,
            metadata=metadata,
        )
    except InputError as exc:
        logger.warning(f"[{session_id[:8] or 'UNKNOWN'}] Rejected request: {exc}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except TurnFailure:
        # Counterpart only ever sees an in-character reply
        reply = FALLBACK_REPLY

    return HoneypotResponse(status="success", reply=reply)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
