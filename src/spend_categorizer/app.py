import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from spend_categorizer.api.routes import categorize, rules, transactions
from spend_categorizer.core import settings
from spend_categorizer.core.settings import CategorizerConfig
from spend_categorizer.logger import get_logger, setup_logging
from spend_categorizer.manager import CategorizerService
from spend_categorizer.services.categorization import CategorizationPipeline
from spend_categorizer.services.rule_mining import RuleMiner
from spend_categorizer.storage.base import Store
from spend_categorizer.storage.json_file import JsonFileStore

logger = get_logger(__name__)


def create_app(
    store: Store | None = None,
    config: CategorizerConfig | None = None,
) -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        app_store = store
        if app_store is None:
            app_store = JsonFileStore(data_path=os.path.join(settings.DATA_DIR, "store.json"))
        service = CategorizerService(store=app_store, config=config or CategorizerConfig.from_env())

        app.state.store = app_store
        app.state.service = service
        app.state.pipeline = CategorizationPipeline(service=service, store=app_store)
        app.state.miner = RuleMiner(store=app_store)

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")

    app = FastAPI(title="Spend Categorizer", lifespan=lifespan)

    app.include_router(categorize.router)
    app.include_router(rules.router)
    app.include_router(transactions.router)

    return app
