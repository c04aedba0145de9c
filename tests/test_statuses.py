"""Status ledger: replacement, cleanse, cooldowns, crit bonus and turn passes."""

from tactica.combat import statuses as ledger


def _ids(raw):
    return [entry["id"] for entry in raw]


class TestLedger:
    def test_set_replaces_same_id(self):
        raw = ledger.set_status([], "burn", 3, {"damage_per_turn": 2})
        raw = ledger.set_status(raw, "burn", 5, {"damage_per_turn": 4})
        assert _ids(raw) == ["burn"]
        assert raw[0]["expires_turn"] == 5
        assert raw[0]["data"]["damage_per_turn"] == 4

    def test_malformed_entries_dropped(self):
        raw = [{"id": "ok"}, "junk", {"id": ""}, {"expires_turn": 2}]
        assert _ids(ledger.dump_statuses(ledger.load_statuses(raw))) == ["ok"]

    def test_remove_status(self):
        raw = ledger.set_status([], "slow", 2)
        assert ledger.remove_status(raw, "slow") == []


class TestCleanse:
    def _raw(self):
        raw = ledger.set_status([], "burn", 4)
        raw = ledger.set_status(raw, "slow", 4)
        return ledger.set_cooldown(raw, "fireball", 6)

    def test_cleanse_all_keeps_cooldowns(self):
        assert _ids(ledger.strip_statuses(self._raw(), None)) == ["cd:fireball"]
        assert _ids(ledger.strip_statuses(self._raw(), [])) == ["cd:fireball"]

    def test_cleanse_by_id_only_removes_listed(self):
        assert _ids(ledger.strip_statuses(self._raw(), ["burn"])) == ["slow", "cd:fireball"]

    def test_cleanse_by_id_can_remove_cooldown(self):
        assert _ids(ledger.strip_statuses(self._raw(), ["cd:fireball"])) == ["burn", "slow"]


class TestCooldowns:
    def test_remaining_counts_down(self):
        raw = ledger.set_cooldown([], "fireball", 5)
        assert ledger.cooldown_remaining(raw, "fireball", 3) == 2
        assert ledger.cooldown_remaining(raw, "fireball", 4) == 1
        assert ledger.cooldown_remaining(raw, "fireball", 5) == 0

    def test_unknown_skill_is_ready(self):
        assert ledger.cooldown_remaining([], "fireball", 1) == 0

    def test_permanent_cooldown(self):
        raw = ledger.set_status([], "cd:fireball", None)
        assert ledger.cooldown_remaining(raw, "fireball", 1) == ledger.UNKNOWN_COOLDOWN_REMAINING


class TestCritBonus:
    def test_effective_utility(self):
        raw = ledger.set_status([], ledger.CRIT_BONUS_ID, None, {"amount": 15})
        assert ledger.effective_utility(10, raw) == 25
        assert ledger.effective_utility(95, raw) == 100
        assert ledger.effective_utility(10, []) == 10


class TestStatusTick:
    def test_start_pass_applies_dot_and_hot_with_stacks(self):
        raw = ledger.set_status([], "burn", 10, {"damage_per_turn": 5}, stacks=2)
        raw = ledger.set_status(raw, "regen", 10, {"heal_per_turn": 3})
        result = ledger.resolve_status_tick(raw, hp=50, hp_max=100, turn_number=2, phase="start")
        assert result.damage == 10
        assert result.healing == 3
        assert result.hp == 43
        assert result.is_alive

    def test_end_pass_only_expires(self):
        raw = ledger.set_status([], "burn", 2, {"damage_per_turn": 5})
        result = ledger.resolve_status_tick(raw, hp=50, hp_max=100, turn_number=2, phase="end")
        assert result.hp == 50
        assert result.statuses == []
        assert result.expired == ["burn"]

    def test_expiry_is_inclusive(self):
        raw = ledger.set_status([], "slow", 3)
        assert ledger.resolve_status_tick(raw, 10, 10, 2).statuses != []
        assert ledger.resolve_status_tick(raw, 10, 10, 3).statuses == []

    def test_dot_can_kill(self):
        raw = ledger.set_status([], "poison", None, {"damage_per_turn": 20})
        result = ledger.resolve_status_tick(raw, hp=15, hp_max=100, turn_number=1)
        assert result.hp == 0
        assert not result.is_alive

    def test_heal_capped_at_max(self):
        raw = ledger.set_status([], "regen", None, {"heal_per_turn": 50})
        assert ledger.resolve_status_tick(raw, hp=90, hp_max=100, turn_number=1).hp == 100
