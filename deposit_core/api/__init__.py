"""
Settlement Core API Application Factory
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .ledger import router as ledger_router
from .redemption import router as redemption_router
from .calculator import router as calculator_router
from .accounts import router as accounts_router
from .admin import router as admin_router
from .. import __version__
from ..errors import (
    DepositCoreError, InsufficientBalance, SameAccount, AccountNotActive,
    NoApplicableRate, InvalidAmount, InvalidRequest, NotFound,
    InvariantViolation, TransientError
)
from ..logging_config import get_logger, log_action


logger = get_logger("deposit_core.api")

# Most specific classes first
ERROR_STATUS = [
    (InvariantViolation, 500),
    (TransientError, 503),
    (NotFound, 404),
    (NoApplicableRate, 422),
    (InsufficientBalance, 409),
    (AccountNotActive, 409),
    (SameAccount, 400),
    (InvalidAmount, 400),
    (InvalidRequest, 400),
]


def status_for(error: DepositCoreError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 400


async def deposit_core_error_handler(request: Request, exc: DepositCoreError) -> JSONResponse:
    status_code = status_for(exc)
    level = "error" if status_code >= 500 else "info"
    log_action(logger, level, f"{request.method} {request.url.path} failed: {exc.message}",
               action=exc.code, resource=request.url.path)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Fixed Deposit Settlement Core API",
        description="Token ledger, interest accrual and redemption settlement for fixed deposits",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DepositCoreError, deposit_core_error_handler)

    app.include_router(ledger_router, prefix="/ledger", tags=["Ledger"])
    app.include_router(redemption_router, prefix="/redemptions", tags=["Redemptions"])
    app.include_router(calculator_router, prefix="/fd", tags=["FD Calculator"])
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "deposit_core_api",
            "version": __version__
        }

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8091, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "deposit_core.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
