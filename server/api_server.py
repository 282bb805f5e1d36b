"""FastAPI application entry point for the CV tracker."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.dependencies.errors import register_exception_handlers
from server.routers.CVRouter import router as cv_router
from server.routers.LLMRouter import router as llm_router
from server.routers.PromptRouter import router as prompt_router
from server.routers.TaxonomyRouter import router as taxonomy_router
from server.routers.TenderSearchRouter import router as tender_search_router
from services.cv_pipeline.CVService import CVService
from services.cv_pipeline.TaskSupervisor import TaskSupervisor
from services.cv_pipeline.UploadStorage import UploadStorage
from services.mnemonic_records.LLMConfigService import LLMConfigService
from services.mnemonic_records.PromptService import PromptService
from services.mnemonic_records.TenderSearchService import TenderSearchService
from services.taxonomy.TaxonomyService import TaxonomyService
from shared.clients.analyzer.AnalyzerClientManager import AnalyzerClientManager
from shared.clients.analyzer.TextAnalyzer import TextAnalyzer
from shared.clients.extractor.TextExtractor import TextExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.store.DocumentStore import DocumentStore

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = helper_config = HelperConfig(logger=logging)

    store = DocumentStore(helper_config=helper_config)
    analyzer = AnalyzerClientManager(helper_config=helper_config).get_client()
    supervisor = TaskSupervisor(helper_config=helper_config)
    upload_storage = UploadStorage(helper_config=helper_config, data_dir=str(store.get_base_dir()))

    await analyzer.boot()
    await check_analyzer(analyzer)

    app.state.store = store
    app.state.analyzer = analyzer
    app.state.supervisor = supervisor
    app.state.upload_storage = upload_storage
    app.state.cv_service = CVService(
        helper_config=helper_config,
        store=store,
        extractor=TextExtractor(helper_config=helper_config),
        analyzer=analyzer,
        supervisor=supervisor,
        uploads=upload_storage,
    )
    app.state.llm_service = LLMConfigService(helper_config=helper_config, store=store)
    app.state.tender_search_service = TenderSearchService(helper_config=helper_config, store=store)
    app.state.prompt_service = PromptService(helper_config=helper_config, store=store)
    app.state.taxonomy_service = TaxonomyService(helper_config=helper_config, store=store)

    # records left in processing by a previous crash go back to uploaded
    reset = await app.state.cv_service.reconcile_all_stale()
    logging.info("Data dir: %s. Reset %d stale CV record(s). Ready.", store.get_base_dir(), reset)

    # while the app is running...
    yield

    # when the app shuts down, let running CV jobs finish, then close the analyzer
    logging.info("Shutting down: draining background tasks...")
    await supervisor.shutdown()
    await analyzer.close()
    logging.info("Shutdown complete (%d task(s) completed, %d failed).", supervisor.completed, supervisor.failed)


async def check_analyzer(analyzer: TextAnalyzer) -> None:
    """Probe the analyzer backend on startup.

    Not fatal: CVs can still be uploaded, processing them will end in the error state.
    """
    if not await analyzer.is_available():
        logging.warning("CV analyzer '%s' is not reachable. Processing will fail until it is.", type(analyzer).__name__)


app = FastAPI(
    title="cv_tracker",
    description=(
        "CV ingestion and AI-assisted field extraction with per-user JSON storage, "
        "plus LLM configs, tender searches, prompts and a technology taxonomy."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(cv_router)
app.include_router(llm_router)
app.include_router(tender_search_router)
app.include_router(prompt_router)
app.include_router(taxonomy_router)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting cv_tracker API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
