"""Main FastAPI application."""
import logging
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tx_lifecycle.api import definitions_router, pending_router
from tx_lifecycle.config import Settings, get_settings
from tx_lifecycle.database import create_engine, create_session_maker, init_db
from tx_lifecycle.definitions import default_registry
from tx_lifecycle.services.backends import (
    InMemoryBackend,
    JsonFileBackend,
    KeyValueBackend,
    SqlAlchemyBackend,
)
from tx_lifecycle.services.chain_query import KoiosChainQuery
from tx_lifecycle.services.engine import TransactionEngine
from tx_lifecycle.services.pending_store import PendingTransactionStore

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def build_backend(settings: Settings, stack: AsyncExitStack) -> KeyValueBackend:
    """Durable backend selected by ``pending_store_backend``."""
    if settings.pending_store_backend == "memory":
        logger.warning("Using in-memory pending store; entries are lost on restart")
        return InMemoryBackend()
    if settings.pending_store_backend == "json":
        return JsonFileBackend(settings.pending_store_path)

    db_engine = create_engine(settings.database_url)
    stack.push_async_callback(db_engine.dispose)
    await init_db(db_engine)
    return SqlAlchemyBackend(create_session_maker(db_engine))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting transaction lifecycle service...")

    async with AsyncExitStack() as stack:
        backend = await build_backend(settings, stack)
        chain_query = await stack.enter_async_context(KoiosChainQuery(settings))

        engine = TransactionEngine(
            registry=default_registry(),
            store=PendingTransactionStore(backend),
            chain_query=chain_query,
            settings=settings,
        )
        await engine.load()
        app.state.engine = engine

        # Watcher resumes confirming / needsAttention entries left from a previous run
        if settings.watcher_enabled:
            await engine.start()
            logger.info("Confirmation watcher started")
        else:
            logger.info("Confirmation watcher disabled")

        yield

        logger.info("Shutting down...")
        await engine.stop()

    logger.info("Shutdown complete")


app = FastAPI(
    title="Transaction Lifecycle Service",
    description="""
## Declarative transaction side effects with confirmation tracking

### Features
- **Definition Registry**: Catalog of transaction types with build parameters and side effects
- **Side Effect Engine**: onSubmit / onConfirmation API calls with conditions and critical flags
- **Pending Store**: Durable registry of submitted-but-unconfirmed transactions
- **Confirmation Watcher**: Polls the chain and finalizes off-chain state idempotently
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "correlation_id": request.headers.get("X-Correlation-ID", "unknown"),
            "error": "Internal server error",
            "error_code": "INTERNAL_ERROR"
        }
    )


# Include routers
app.include_router(definitions_router)
app.include_router(pending_router)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    engine = getattr(request.app.state, "engine", None)
    return {
        "status": "healthy" if engine is not None else "starting",
        "environment": settings.environment,
        "watcher_running": engine is not None and engine.watcher.running,
        "pending": (
            {s.value: n for s, n in engine.store.count_by_status().items()}
            if engine is not None else {}
        ),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tx_lifecycle.main:app", host="0.0.0.0", port=8000, reload=True)
