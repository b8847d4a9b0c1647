"""Tests for upgrade purchases."""

import pytest

from founder_engine.core import upgrades as upgrades_mod
from founder_engine.core.store import EntityStore


@pytest.fixture
def store():
    return EntityStore()


class TestPurchase:
    def test_purchase_deducts_funds(self, store):
        upgrade = upgrades_mod.purchase_upgrade(store, "better-ide")
        assert upgrade.purchased is True
        assert store.funds == 95_000
        assert store.stats.total_expenses == 5_000

    def test_purchase_unlocks_dependants(self, store):
        assert store.upgrades["testing-suite"].unlocked is False
        upgrades_mod.purchase_upgrade(store, "better-ide")
        upgrades_mod.purchase_upgrade(store, "ci-cd")
        assert store.upgrades["testing-suite"].unlocked is True

    def test_locked_upgrade(self, store):
        assert upgrades_mod.purchase_upgrade(store, "testing-suite") is None
        assert store.funds == 100_000
        assert store.notifications[-1].level == "warning"

    def test_already_purchased(self, store):
        upgrades_mod.purchase_upgrade(store, "free-snacks")
        assert upgrades_mod.purchase_upgrade(store, "free-snacks") is None
        assert store.funds == 98_000

    def test_insufficient_funds(self):
        store = EntityStore(funds=1_000)
        assert upgrades_mod.purchase_upgrade(store, "better-ide") is None
        assert store.funds == 1_000
        assert store.notifications[-1].level == "error"

    def test_unknown_upgrade(self, store):
        assert upgrades_mod.purchase_upgrade(store, "jetpack") is None

    def test_list_upgrades(self, store):
        upgrades_mod.purchase_upgrade(store, "free-snacks")
        assert [u.id for u in upgrades_mod.list_upgrades(store, purchased=True)] == ["free-snacks"]
        assert len(upgrades_mod.list_upgrades(store)) == len(upgrades_mod.default_upgrades())
