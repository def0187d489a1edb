import asyncio
from fastapi import FastAPI, Request, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.api.chat import router as chat_router, limiter
from app.logging_config import app_logger as logger
from app.telegram_bot.bot import handle_telegram_update, initialize_bot, shutdown_bot

app = FastAPI(
    title="Passion API",
    description="Companion chat for Telegram bot and Mini App",
    version="0.1.0"
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Background webhook tasks (kept referenced until done)
_background_tasks: set[asyncio.Task] = set()


# Lifecycle events
@app.on_event("startup")
async def startup_event():
    """Initialize bot on startup."""
    print("[STARTUP] Initializing Telegram bot...")
    await initialize_bot()
    print("[STARTUP] Bot ready")


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown bot on application shutdown."""
    print("[SHUTDOWN] Shutting down Telegram bot...")
    await shutdown_bot()
    print("[SHUTDOWN] Bot stopped")

# CORS for Telegram Mini App
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Mini App can run from various domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log the real error, return a generic one."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": "0.1.0"
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Passion API",
        "docs": "/docs"
    }


# Telegram webhook endpoint
@app.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None)
):
    """
    Webhook endpoint for Telegram updates.

    Telegram sends updates here when messages arrive.
    """
    settings = get_settings()

    # Verify secret token if configured
    if settings.telegram_webhook_secret:
        if x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
            raise HTTPException(status_code=401, detail="Unauthorized")

    # Parse update data
    update_data = await request.json()

    # Handle update in background (fire-and-forget for fast 200 OK)
    task = asyncio.create_task(handle_telegram_update(update_data))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return {"ok": True}


# Include routers
app.include_router(chat_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
