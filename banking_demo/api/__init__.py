"""
Banking Demo API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .users import router as users_router
from .accounts import router as accounts_router
from .investments import router as investments_router
from .cards import router as cards_router
from .audit import router as audit_router
from ..config import get_config
from ..logging_config import correlation_context


REQUEST_ID_HEADER = "X-Request-ID"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    app = FastAPI(
        title="Banking Demo API",
        description="Accounts, transactions and investments with hash-chained auditing",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in config.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        """Tag every log record of a request with its X-Request-ID"""
        with correlation_context(request.headers.get(REQUEST_ID_HEADER)) as correlation_id:
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response

    app.include_router(users_router, prefix="/users", tags=["Users"])
    app.include_router(accounts_router, prefix="/account", tags=["Account"])
    app.include_router(investments_router, prefix="/investments", tags=["Investments"])
    app.include_router(cards_router, prefix="/cards", tags=["Cards"])
    app.include_router(audit_router, prefix="/audit", tags=["Audit"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "banking_demo_api",
            "version": "1.0.0"
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Banking Demo API",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "users": "/users",
                "account": "/account",
                "investments": "/investments",
                "cards": "/cards",
                "audit": "/audit",
            }
        }

    return app


app = create_app()
