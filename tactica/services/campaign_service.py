"""Campaigns, their members and characters.

assert_campaign_access() is the single membership gate every combat route
goes through: a missing campaign is not-found, a non-member is forbidden.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tactica.errors import AccessDeniedError, ConflictError, NotFoundError
from tactica.models.campaign import Campaign, CampaignMember
from tactica.models.character import Character
from tactica.models.user import User
from tactica.services.auth_service import get_user_by_id

logger = logging.getLogger(__name__)


async def create_campaign(db: AsyncSession, owner: User, name: str) -> Campaign:
    campaign = Campaign(name=name, owner_id=owner.id)
    db.add(campaign)
    await db.flush()
    db.add(CampaignMember(campaign_id=campaign.id, user_id=owner.id, is_dm=True))
    await db.flush()
    logger.info("Campaign %s created by user %s", campaign.id, owner.id)
    return campaign


async def get_campaign(db: AsyncSession, campaign_id: int) -> Campaign | None:
    result = await db.execute(select(Campaign).where(Campaign.id == campaign_id))
    return result.scalar_one_or_none()


async def list_campaigns_for_user(db: AsyncSession, user_id: int) -> list[Campaign]:
    result = await db.execute(
        select(Campaign)
        .join(CampaignMember, CampaignMember.campaign_id == Campaign.id)
        .where(CampaignMember.user_id == user_id)
        .order_by(Campaign.id)
    )
    return list(result.scalars().all())


async def get_membership(db: AsyncSession, campaign_id: int, user_id: int) -> CampaignMember | None:
    result = await db.execute(
        select(CampaignMember).where(
            CampaignMember.campaign_id == campaign_id,
            CampaignMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def assert_campaign_access(db: AsyncSession, campaign_id: int, user: User) -> Campaign:
    campaign = await get_campaign(db, campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign not found", code="campaign_not_found")
    if campaign.owner_id == user.id:
        return campaign
    if await get_membership(db, campaign_id, user.id) is None:
        raise AccessDeniedError("Not authorized for this campaign")
    return campaign


async def is_campaign_dm(db: AsyncSession, campaign: Campaign, user_id: int) -> bool:
    if campaign.owner_id == user_id:
        return True
    member = await get_membership(db, campaign.id, user_id)
    return member is not None and member.is_dm


async def list_members(db: AsyncSession, campaign_id: int) -> list[CampaignMember]:
    result = await db.execute(
        select(CampaignMember).where(CampaignMember.campaign_id == campaign_id).order_by(CampaignMember.id)
    )
    return list(result.scalars().all())


async def add_member(
    db: AsyncSession, campaign: Campaign, acting_user: User, user_id: int, is_dm: bool = False
) -> CampaignMember:
    if not await is_campaign_dm(db, campaign, acting_user.id):
        raise AccessDeniedError("Only the campaign owner or a DM can add members")
    if await get_user_by_id(db, user_id) is None:
        raise NotFoundError("User not found", code="user_not_found")
    if await get_membership(db, campaign.id, user_id) is not None:
        raise ConflictError("User is already a member", code="already_member")
    member = CampaignMember(campaign_id=campaign.id, user_id=user_id, is_dm=is_dm)
    db.add(member)
    await db.flush()
    return member


async def create_character(db: AsyncSession, campaign_id: int, player_id: int, **fields) -> Character:
    character = Character(campaign_id=campaign_id, player_id=player_id, **fields)
    db.add(character)
    await db.flush()
    return character


async def list_characters(db: AsyncSession, campaign_id: int) -> list[Character]:
    result = await db.execute(
        select(Character).where(Character.campaign_id == campaign_id).order_by(Character.id)
    )
    return list(result.scalars().all())


async def latest_characters_by_player(db: AsyncSession, campaign_id: int) -> list[Character]:
    """Each player's most recently created character, ordered by player id."""
    latest: dict[int, Character] = {}
    for character in await list_characters(db, campaign_id):
        latest[character.player_id] = character
    return [latest[pid] for pid in sorted(latest)]
