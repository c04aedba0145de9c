"""Shared builders for combat tests."""

from httpx import AsyncClient

from tactica.models.combat_session import Combatant, EntityType


def make_combatant(
    cid: int,
    *,
    player_id: int | None = None,
    x: int = 0,
    y: int = 0,
    hp: int = 100,
    hp_max: int | None = None,
    armor: int = 0,
    resist: int = 0,
    power: int = 50,
    power_max: int = 50,
    level: int = 1,
    offense: int = 10,
    defense: int = 10,
    control: int = 10,
    support: int = 10,
    mobility: int = 10,
    utility: int = 10,
    is_alive: bool = True,
    statuses: list | None = None,
    entity_type: EntityType | None = None,
) -> Combatant:
    """Transient Combatant with every column filled in."""
    if entity_type is None:
        entity_type = EntityType.player if player_id is not None else EntityType.npc
    return Combatant(
        id=cid,
        combat_session_id=1,
        entity_type=entity_type,
        player_id=player_id,
        character_id=cid if player_id is not None else None,
        name=f"c{cid}",
        level=level,
        offense=offense,
        defense=defense,
        control=control,
        support=support,
        mobility=mobility,
        utility=utility,
        weapon_power=0,
        armor=armor,
        resist=resist,
        hp=hp,
        hp_max=hp_max if hp_max is not None else max(hp, 100),
        power=power,
        power_max=power_max,
        x=x,
        y=y,
        initiative=0,
        is_alive=is_alive,
        statuses=list(statuses or []),
    )


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------

async def register_and_login(client: AsyncClient, email: str, username: str, password: str = "secret123") -> str:
    await client.post("/auth/register", json={"email": email, "username": username, "password": password})
    resp = await client.post("/auth/login", json={"email": email, "password": password})
    return resp.json()["access_token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def create_campaign(client: AsyncClient, token: str, name: str = "Ashen Road") -> dict:
    resp = await client.post("/campaigns", json={"name": name}, headers=auth_headers(token))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_character(client: AsyncClient, token: str, campaign_id: int, name: str = "Vesk", **stats) -> dict:
    resp = await client.post(
        f"/campaigns/{campaign_id}/characters", json={"name": name, **stats}, headers=auth_headers(token)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
