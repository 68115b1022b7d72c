"""Main application entry point."""

import logging

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from condo_ledger.api.errors import ledger_error_handler
from condo_ledger.api.ledger import router as ledger_router
from condo_ledger.config import settings
from condo_ledger.errors import LedgerError
from condo_ledger.services.logging import setup_server_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the FastAPI application with the ledger router and error handler."""
    app = FastAPI(
        title=settings.api_title,
        description="Apartment ledger and bank reconciliation",
        version=settings.api_version,
    )
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.include_router(ledger_router)

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


def main(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Run the API server."""
    load_dotenv()
    setup_server_logging(settings.log_file, settings.log_level, settings.database_echo)
    logger.info(f"Starting ledger API on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
