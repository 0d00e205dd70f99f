from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from spend_categorizer.api.dependencies import get_miner, get_store
from spend_categorizer.api.schemas import (
    AcceptCandidateRequest,
    RuleCreateRequest,
    RuleListResponse,
    RuleUpdateRequest,
)
from spend_categorizer.logger import get_logger
from spend_categorizer.models import Rule, RuleCandidate
from spend_categorizer.services.rule_mining import RuleMiner
from spend_categorizer.storage.base import RecordNotFoundError, Store

logger = get_logger(__name__)

router = APIRouter(prefix="/api/rules")


def _require_category(store: Store, category_id: str) -> None:
    if store.get_category(category_id) is None:
        raise HTTPException(status_code=400, detail=f"Unknown category '{category_id}'")


@router.get("", response_model=RuleListResponse)
async def list_rules(
    store: Annotated[Store, Depends(get_store)],
    q: str | None = None,
    category_id: Annotated[str | None, Query(alias="categoryId")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> RuleListResponse:
    rules = store.list_rules()
    if category_id:
        rules = [r for r in rules if r.category_id == category_id]
    needle = (q or "").strip().lower()
    if needle:
        rules = [r for r in rules if needle in r.pattern.lower()]
    return RuleListResponse(
        total=len(rules),
        items=rules[offset:offset + limit],
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=Rule, status_code=201)
async def create_rule(
    req: RuleCreateRequest,
    store: Annotated[Store, Depends(get_store)],
) -> Rule:
    _require_category(store, req.category_id)
    rule = store.create_rule(
        req.pattern,
        req.category_id,
        is_regex=req.is_regex,
        merchant_only=req.merchant_only,
        priority=req.priority,
    )
    logger.info("[RULES] Created rule '%s' -> %s (priority %s)", rule.pattern, rule.category_id, rule.priority)
    return rule


@router.get("/suggestions", response_model=list[RuleCandidate])
async def rule_suggestions(
    miner: Annotated[RuleMiner, Depends(get_miner)],
    take: int = 500,
    min_count: Annotated[int, Query(alias="minCount")] = 3,
    min_share: Annotated[float, Query(alias="minShare")] = 0.7,
) -> list[RuleCandidate]:
    return miner.suggest(take=take, min_count=min_count, min_share=min_share)


@router.post("/suggestions/accept", response_model=Rule, status_code=201)
async def accept_suggestion(
    req: AcceptCandidateRequest,
    miner: Annotated[RuleMiner, Depends(get_miner)],
) -> Rule:
    try:
        return miner.accept(req.candidate, priority=req.priority)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{rule_id}", response_model=Rule)
async def get_rule(
    rule_id: str,
    store: Annotated[Store, Depends(get_store)],
) -> Rule:
    rule = store.get_rule(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.put("/{rule_id}", response_model=Rule)
async def update_rule(
    rule_id: str,
    req: RuleUpdateRequest,
    store: Annotated[Store, Depends(get_store)],
) -> Rule:
    fields = req.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "category_id" in fields:
        _require_category(store, fields["category_id"])
    try:
        return store.update_rule(rule_id, **fields)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Rule not found") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid rule fields") from exc


@router.delete("/{rule_id}", response_model=Rule)
async def delete_rule(
    rule_id: str,
    store: Annotated[Store, Depends(get_store)],
) -> Rule:
    try:
        rule = store.delete_rule(rule_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Rule not found") from exc
    logger.info("[RULES] Deleted rule '%s'", rule.pattern)
    return rule
