"""API dependencies for dependency injection."""
from typing import Optional
from uuid import uuid4

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tx_lifecycle.services.engine import TransactionEngine
from tx_lifecycle.services.registry import TransactionRegistry

security = HTTPBearer(auto_error=False)


def get_correlation_id(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-ID")
) -> str:
    """Get or generate correlation ID for request tracing."""
    return x_correlation_id or str(uuid4())


def get_engine(request: Request) -> TransactionEngine:
    """Engine created in the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Transaction engine not initialized",
        )
    return engine


def get_registry(engine: TransactionEngine = Depends(get_engine)) -> TransactionRegistry:
    return engine.registry


def get_caller_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Caller's bearer token, forwarded to onSubmit side effects."""
    if credentials is None:
        return None
    return credentials.credentials
