import logging

from fastapi import FastAPI

from loandesk.db.session import engine
from loandesk.services.document_mirror import DocumentChange

logger = logging.getLogger(__name__)


async def log_document_change(change: DocumentChange) -> None:
    logger.info(
        "Loan documents changed kind=%s loan_id=%s item_id=%s count=%s",
        change.kind,
        change.loan_id,
        change.checklist_item_id,
        change.count,
    )


def register_event_handlers(app: FastAPI) -> None:
    app.state.document_listeners = [log_document_change]

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        await engine.dispose()
