from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tactica.models.base import Base


class BossTemplate(Base):
    __tablename__ = "boss_templates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    # [{phase, hp_below_pct, skill_pool: [skill keys]}]
    phases_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class BossInstance(Base):
    """Binds a combatant to a template.  current_phase only ever increases."""

    __tablename__ = "boss_instances"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    combat_session_id: Mapped[int] = mapped_column(
        ForeignKey("combat_sessions.id"), nullable=False, index=True
    )
    combatant_id: Mapped[int] = mapped_column(ForeignKey("combatants.id"), nullable=False, index=True)
    boss_template_id: Mapped[int] = mapped_column(ForeignKey("boss_templates.id"), nullable=False)
    current_phase: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
