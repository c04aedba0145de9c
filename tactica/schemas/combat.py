from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

from tactica.models.combat_session import CombatStatus, EntityType


class SelfTarget(BaseModel):
    kind: Literal["self"]


class CombatantTarget(BaseModel):
    kind: Literal["combatant"]
    combatant_id: int


class TileTarget(BaseModel):
    kind: Literal["tile"]
    x: int
    y: int


SkillTarget = Annotated[Union[SelfTarget, CombatantTarget, TileTarget], Field(discriminator="kind")]


class UseSkillRequest(BaseModel):
    actor_combatant_id: int
    skill_id: str = Field(min_length=1, max_length=64)
    target: SkillTarget

    @field_validator("skill_id")
    @classmethod
    def strip_skill_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("skill_id must not be blank")
        return v


class TickRequest(BaseModel):
    max_steps: int = Field(default=1, ge=1, le=10)


class StartCombatRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=255)
    seed: int | None = Field(default=None, ge=0, le=2_147_483_647)
    boss_template_id: int | None = None


class TickResponse(BaseModel):
    ok: bool = True
    ticks: int
    ended: bool
    requires_player_action: bool
    current_turn_index: int
    next_actor_combatant_id: int | None


class CombatantResponse(BaseModel):
    id: int
    entity_type: EntityType
    player_id: int | None
    character_id: int | None
    name: str
    level: int
    hp: int
    hp_max: int
    power: int
    power_max: int
    armor: int
    resist: int
    x: int
    y: int
    initiative: int
    is_alive: bool
    statuses: list[dict[str, Any]]

    model_config = {"from_attributes": True}


class CombatSessionResponse(BaseModel):
    id: int
    campaign_id: int
    seed: int
    status: CombatStatus
    current_turn_index: int
    turn_number: int
    reason: str | None
    outcome: dict | None
    created_at: datetime
    ended_at: datetime | None

    model_config = {"from_attributes": True}


class CombatStateResponse(BaseModel):
    session: CombatSessionResponse
    combatants: list[CombatantResponse]
    turn_order: list[int]
    current_actor_combatant_id: int | None
    grid: dict[str, int]
    blocked_tiles: list[dict[str, int]]


class ActionEventResponse(BaseModel):
    id: int
    sequence: int
    turn_index: int
    turn_number: int
    event_type: str
    actor_combatant_id: int | None
    payload: dict
    created_at: datetime

    model_config = {"from_attributes": True}
