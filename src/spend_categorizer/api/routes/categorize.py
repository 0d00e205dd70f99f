from typing import Annotated

from fastapi import APIRouter, Depends

from spend_categorizer.api.dependencies import get_pipeline, get_service, get_store
from spend_categorizer.api.schemas import CategoryCreateRequest
from spend_categorizer.manager import CategorizerService
from spend_categorizer.models import CategorizeRequest, CategorizeResponse, Category
from spend_categorizer.services.categorization import CategorizationPipeline
from spend_categorizer.storage.base import Store

router = APIRouter(prefix="/api")


@router.post("/categorize", response_model=CategorizeResponse)
async def categorize_batch(
    req: CategorizeRequest,
    pipeline: Annotated[CategorizationPipeline, Depends(get_pipeline)],
) -> CategorizeResponse:
    return await pipeline.run(req)


@router.get("/categorize/status")
async def categorize_status(
    service: Annotated[CategorizerService, Depends(get_service)],
) -> dict[str, object]:
    return service.status()


@router.get("/categories", response_model=list[Category])
async def list_categories(
    store: Annotated[Store, Depends(get_store)],
) -> list[Category]:
    return sorted(store.list_categories(), key=lambda c: c.name.lower())


@router.post("/categories", response_model=Category, status_code=201)
async def create_category(
    req: CategoryCreateRequest,
    store: Annotated[Store, Depends(get_store)],
) -> Category:
    return store.create_category(req.name.strip(), req.type)
