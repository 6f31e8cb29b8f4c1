"""
SoundCheck Catalog API Routes
Read-only rating contexts, vote packages and production stages
"""

from typing import List

from fastapi import APIRouter

from ...core.catalogs import context_catalog, production_stage_catalog, vote_package_catalog
from ...database.schemas import (
    ContextResponse,
    DimensionResponse,
    ProductionStageResponse,
    VotePackageResponse,
)

router = APIRouter()


@router.get("/contexts", response_model=List[ContextResponse])
async def list_contexts():
    """Rating contexts with their four dimensions"""
    return [
        ContextResponse(
            id=context.id,
            name=context.name,
            description=context.description,
            dimensions=[DimensionResponse.model_validate(d) for d in context.dimensions]
        )
        for context in context_catalog.all()
    ]


@router.get("/packages", response_model=List[VotePackageResponse])
async def list_vote_packages():
    """Vote packages selectable by index at submission"""
    return [
        VotePackageResponse(
            index=index,
            votes=package.votes,
            credits=package.credits,
            label=package.label,
            description=package.description,
            is_free=package.is_free
        )
        for index, package in enumerate(vote_package_catalog.all())
    ]


@router.get("/stages", response_model=List[ProductionStageResponse])
async def list_production_stages():
    return [ProductionStageResponse.model_validate(s) for s in production_stage_catalog.all()]
