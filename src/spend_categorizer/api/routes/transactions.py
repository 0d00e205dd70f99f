import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from spend_categorizer.api.dependencies import get_service, get_store
from spend_categorizer.api.schemas import BulkCreateRequest, BulkCreateResponse
from spend_categorizer.logger import get_logger
from spend_categorizer.manager import CategorizerService
from spend_categorizer.models import Transaction
from spend_categorizer.storage.base import Store

logger = get_logger(__name__)

router = APIRouter(prefix="/api/transactions")


@router.get("", response_model=list[Transaction])
async def list_transactions(
    store: Annotated[Store, Depends(get_store)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[Transaction]:
    return store.list_transactions(limit=limit, offset=offset)


def _import_items(
    req: BulkCreateRequest,
    store: Store,
    service: CategorizerService,
) -> list[Transaction]:
    context, matcher = service.load_context()
    created: list[Transaction] = []
    for item in req.items:
        transaction = store.create_transaction(
            **item.model_dump(),
            category_source="user" if item.category_id else None,
        )
        created.append(service.auto_assign(transaction, context, matcher))
    return created


@router.post("/bulk", response_model=BulkCreateResponse, status_code=201)
async def bulk_create(
    req: BulkCreateRequest,
    store: Annotated[Store, Depends(get_store)],
    service: Annotated[CategorizerService, Depends(get_service)],
) -> BulkCreateResponse:
    created = await asyncio.to_thread(_import_items, req, store, service)
    auto = sum(1 for t in created if t.category_source in {"rule", "ml"})
    logger.info("[IMPORT] Created %d transaction(s), %d auto-categorized.", len(created), auto)
    return BulkCreateResponse(count=len(created), items=created)
