import enum

from sqlalchemy import JSON, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class SkillKind(str, enum.Enum):
    passive = "passive"
    active = "active"
    ultimate = "ultimate"


class TargetingKind(str, enum.Enum):
    self = "self"
    single = "single"
    tile = "tile"
    area = "area"
    line = "line"
    cone = "cone"


class Skill(Base):
    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    character_id: Mapped[int] = mapped_column(ForeignKey("characters.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    kind: Mapped[SkillKind] = mapped_column(Enum(SkillKind), nullable=False, default=SkillKind.active)
    targeting: Mapped[TargetingKind] = mapped_column(
        Enum(TargetingKind), nullable=False, default=TargetingKind.single
    )
    # {shape, metric, radius, length, width, requires_los, blocks_on_walls, friendly_fire}
    targeting_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    range_tiles: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    cooldown_turns: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # {amount, resource_id}
    cost_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    effects_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
