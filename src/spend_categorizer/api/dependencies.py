from fastapi import HTTPException, Request

from spend_categorizer.manager import CategorizerService
from spend_categorizer.services.categorization import CategorizationPipeline
from spend_categorizer.services.rule_mining import RuleMiner
from spend_categorizer.storage.base import Store


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Store not initialized")
    return store


def get_service(request: Request) -> CategorizerService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service


def get_pipeline(request: Request) -> CategorizationPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return pipeline


def get_miner(request: Request) -> RuleMiner:
    miner = getattr(request.app.state, "miner", None)
    if miner is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return miner
