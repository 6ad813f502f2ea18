import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finance_insights.api.routes import ai, budgets, categories, data, imports, rules, transactions
from finance_insights.classifiers.base import BatchClassifier
from finance_insights.classifiers.llm import LLMBatchClassifier
from finance_insights.core import settings
from finance_insights.domain.statements import ParseError
from finance_insights.integration.ai_service import AIServiceClient
from finance_insights.logger import get_logger, setup_logging
from finance_insights.services.batching import AIBatchCategorizer
from finance_insights.services.categorization import CategorizationPipeline
from finance_insights.services.importer import ImportService
from finance_insights.services.ledger import LedgerError, LedgerRepository
from finance_insights.storage.base import DuplicateKeyError, StorageError
from finance_insights.storage.json_store import JsonFileStore

logger = get_logger(__name__)

LEDGER_FILENAME = "ledger.json"


def build_pipeline_classifier(llm_classifier: BatchClassifier | None) -> BatchClassifier | None:
    """Remote service when AI_SERVICE_URL is set, otherwise the in-process model client."""
    service_url = os.getenv("AI_SERVICE_URL")
    if service_url:
        logger.info("[AI] Using categorization service at %s.", service_url)
        return AIServiceClient(base_url=service_url)
    if llm_classifier is not None:
        logger.info("[AI] Using in-process LLM classifier.")
        return llm_classifier
    logger.warning("[AI] No AI_SERVICE_URL or OPENAI_API_KEY; AI categorization disabled.")
    return None


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ParseError)
    async def parse_error_handler(_request: Request, exc: ParseError) -> JSONResponse:
        logger.warning("[IMPORT] %s", exc)
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(_request: Request, exc: LedgerError) -> JSONResponse:
        status_code = 404 if exc.not_found else 400
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(_request: Request, exc: DuplicateKeyError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(_request: Request, exc: StorageError) -> JSONResponse:
        logger.error("[STORE] %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Storage failure"})


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        store = JsonFileStore(os.path.join(settings.DATA_DIR, LEDGER_FILENAME))
        ledger = LedgerRepository(store)
        await ledger.init()

        llm_classifier: LLMBatchClassifier | None = None
        if os.getenv("OPENAI_API_KEY"):
            llm_classifier = LLMBatchClassifier(default_model=settings.import_ai_config().model_name)
        else:
            logger.info("OPENAI_API_KEY not set. /api/ai/categorize will answer 503.")

        classifier = build_pipeline_classifier(llm_classifier)
        categorizer = AIBatchCategorizer(classifier, batch_size=settings.get_batch_size())
        pipeline = CategorizationPipeline(categorizer)

        app.state.ledger = ledger
        app.state.llm_classifier = llm_classifier
        app.state.import_service = ImportService(ledger, pipeline)

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")
        if classifier is not None:
            await classifier.aclose()

    app = FastAPI(title="Finance Insights", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    register_exception_handlers(app)

    app.include_router(ai.router)
    app.include_router(imports.router)
    app.include_router(transactions.router)
    app.include_router(categories.router)
    app.include_router(rules.router)
    app.include_router(budgets.router)
    app.include_router(data.router)

    return app


app = create_app()
