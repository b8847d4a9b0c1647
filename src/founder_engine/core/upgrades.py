"""Upgrade catalogue and purchases paid from the shared funds pool."""

import logging
from dataclasses import replace

from founder_engine.db.models import Upgrade

logger = logging.getLogger(__name__)


def default_upgrades() -> list[Upgrade]:
    return [
        Upgrade("better-ide", "Better IDE", "Faster engineering tooling", "engineering", 5000),
        Upgrade(
            "ci-cd", "CI/CD Pipeline", "Automated builds and deploys", "engineering", 10000,
            requires=["better-ide"],
        ),
        Upgrade("code-review", "Code Review Process", "Peer review on every change", "engineering", 8000),
        Upgrade(
            "testing-suite", "Automated Testing", "Test suite run on every commit", "engineering", 15000,
            unlocked=False, requires=["ci-cd"],
        ),
        Upgrade("free-snacks", "Free Snacks", "Keeps the office happy", "culture", 2000),
        Upgrade(
            "remote-work", "Remote Work", "Work from anywhere", "culture", 5000,
            requires=["free-snacks"],
        ),
    ]


def list_upgrades(store, purchased: bool | None = None) -> list[Upgrade]:
    upgrades = list(store.upgrades.values())
    if purchased is not None:
        upgrades = [u for u in upgrades if u.purchased == purchased]
    return upgrades


def purchase_upgrade(store, upgrade_id: str) -> Upgrade | None:
    """Buy an upgrade. Returns the purchased upgrade, or None if the purchase was rejected."""
    with store.transaction():
        upgrade = store.upgrades.get(upgrade_id)
        if not upgrade:
            return None
        if upgrade.purchased:
            store.notify(f"{upgrade.name} already purchased", "warning")
            return None
        if not upgrade.unlocked:
            store.notify(f"{upgrade.name} is not unlocked yet", "warning")
            return None
        if store.funds < upgrade.cost:
            store.notify(f"Not enough money for {upgrade.name}! Need ${upgrade.cost:,}", "error")
            return None

        store.funds -= upgrade.cost
        store.add_stats(total_expenses=upgrade.cost)
        purchased = replace(upgrade, purchased=True)
        store.upgrades[upgrade_id] = purchased

        for other in list(store.upgrades.values()):
            if other.unlocked or upgrade_id not in other.requires:
                continue
            if all(store.upgrades[r].purchased for r in other.requires if r in store.upgrades):
                store.upgrades[other.id] = replace(other, unlocked=True)
                logger.info("Upgrade %s unlocked by %s", other.id, upgrade_id)

        store.emit("upgrade", upgrade_id)
        store.notify(f"Purchased: {upgrade.name}!", "success")
        return purchased
