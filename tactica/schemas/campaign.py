from datetime import datetime

from pydantic import BaseModel, Field


class CampaignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class CampaignResponse(BaseModel):
    id: int
    name: str
    owner_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class MemberAdd(BaseModel):
    user_id: int
    is_dm: bool = False


class MemberResponse(BaseModel):
    id: int
    campaign_id: int
    user_id: int
    is_dm: bool

    model_config = {"from_attributes": True}


class CharacterCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    level: int = Field(default=1, ge=1, le=99)
    offense: int = Field(default=10, ge=0, le=100)
    defense: int = Field(default=10, ge=0, le=100)
    control: int = Field(default=10, ge=0, le=100)
    support: int = Field(default=10, ge=0, le=100)
    mobility: int = Field(default=10, ge=0, le=100)
    utility: int = Field(default=10, ge=0, le=100)


class CharacterResponse(BaseModel):
    id: int
    campaign_id: int
    player_id: int
    name: str
    level: int
    xp: int
    offense: int
    defense: int
    control: int
    support: int
    mobility: int
    utility: int

    model_config = {"from_attributes": True}
