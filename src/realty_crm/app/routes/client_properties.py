"""Client/property link endpoints: list, manual link, feedback, archive/restore."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from realty_crm.domain.schemas import ClientPropertyResponse, FeedbackUpdate, ManualLinkRequest
from realty_crm.infra.database import get_db
from realty_crm.services import recommendation_service

router = APIRouter(prefix="/api/client-properties", tags=["client-properties"])
client_router = APIRouter(prefix="/api/clients", tags=["client-properties"])


@client_router.get("/{client_id}/properties", response_model=list[ClientPropertyResponse])
async def list_client_properties(
    client_id: str,
    include_archived: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
):
    """Active links only unless ``include_archived`` is set."""
    links = await recommendation_service.list_client_links(
        db, client_id, include_archived=include_archived
    )
    return [ClientPropertyResponse.model_validate(link) for link in links]


@client_router.post("/{client_id}/properties", response_model=ClientPropertyResponse)
async def link_client_property(
    client_id: str,
    body: ManualLinkRequest,
    db: AsyncSession = Depends(get_db),
):
    link, _created = await recommendation_service.link_property(
        db,
        client_id,
        body.property_id,
        relationship=body.relationship,
        interest_level=body.interest_level,
        is_favorite=body.is_favorite,
    )
    return ClientPropertyResponse.model_validate(link)


@router.patch("/{link_id}", response_model=ClientPropertyResponse)
async def update_client_property(
    link_id: str,
    body: FeedbackUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Only fields present in the body are changed; send null to clear one."""
    link = await recommendation_service.update_link_feedback(
        db, link_id, **body.model_dump(exclude_unset=True)
    )
    return ClientPropertyResponse.model_validate(link)


@router.post("/{link_id}/archive", response_model=ClientPropertyResponse)
async def archive_client_property(link_id: str, db: AsyncSession = Depends(get_db)):
    link = await recommendation_service.archive_link(db, link_id)
    return ClientPropertyResponse.model_validate(link)


@router.post("/{link_id}/restore", response_model=ClientPropertyResponse)
async def restore_client_property(link_id: str, db: AsyncSession = Depends(get_db)):
    link = await recommendation_service.restore_link(db, link_id)
    return ClientPropertyResponse.model_validate(link)
