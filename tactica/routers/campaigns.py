from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.database import get_db
from tactica.dependencies import get_current_user
from tactica.models.user import User
from tactica.schemas.campaign import (
    CampaignCreate,
    CampaignResponse,
    CharacterCreate,
    CharacterResponse,
    MemberAdd,
    MemberResponse,
)
from tactica.services.campaign_service import (
    add_member,
    assert_campaign_access,
    create_campaign,
    create_character,
    list_campaigns_for_user,
    list_characters,
    list_members,
)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign_endpoint(
    body: CampaignCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    campaign = await create_campaign(db, current_user, body.name)
    await db.commit()
    await db.refresh(campaign)
    return campaign


@router.get("", response_model=list[CampaignResponse])
async def list_campaigns_endpoint(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await list_campaigns_for_user(db, current_user.id)


@router.get("/{campaign_id}/members", response_model=list[MemberResponse])
async def list_members_endpoint(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await assert_campaign_access(db, campaign_id, current_user)
    return await list_members(db, campaign_id)


@router.post("/{campaign_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member_endpoint(
    campaign_id: int,
    body: MemberAdd,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    campaign = await assert_campaign_access(db, campaign_id, current_user)
    member = await add_member(db, campaign, current_user, body.user_id, body.is_dm)
    await db.commit()
    return member


@router.get("/{campaign_id}/characters", response_model=list[CharacterResponse])
async def list_characters_endpoint(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await assert_campaign_access(db, campaign_id, current_user)
    return await list_characters(db, campaign_id)


@router.post("/{campaign_id}/characters", response_model=CharacterResponse, status_code=status.HTTP_201_CREATED)
async def create_character_endpoint(
    campaign_id: int,
    body: CharacterCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await assert_campaign_access(db, campaign_id, current_user)
    character = await create_character(db, campaign_id, current_user.id, **body.model_dump())
    await db.commit()
    await db.refresh(character)
    return character
