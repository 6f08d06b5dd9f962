"""Plan catalogue loaded from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ezfoia.billing.models import PlanDefinition, PlanPrice
from ezfoia.core.config import resolve_config_path
from ezfoia.core.types import BillingPeriod, CheckoutMode, PlanKey

_DEFAULT_PLANS_PATH = "config/plans.yml"


def _parse_plan(key: str, data: dict[str, Any]) -> PlanDefinition:
    prices = {
        BillingPeriod(period): PlanPrice(**price)
        for period, price in data.get("prices", {}).items()
    }
    return PlanDefinition(
        key=PlanKey(key),
        name=data.get("name", key),
        request_limit=int(data.get("request_limit", 0)),
        mode=CheckoutMode(data.get("mode", "subscription")),
        prices=prices,
        price_label=data.get("price_label", ""),
        period_label=data.get("period_label", ""),
    )


class PlanCatalog:
    """Maps billing product ids to plans.

    Product ids of every billing period map to the same plan.
    """

    def __init__(self, plans: list[PlanDefinition]) -> None:
        self._plans: dict[PlanKey, PlanDefinition] = {p.key: p for p in plans}
        self._by_product: dict[str, PlanDefinition] = {}
        for plan in plans:
            for product_id in plan.product_ids:
                self._by_product[product_id] = plan

    @classmethod
    def load(cls, path: str | Path | None = None) -> PlanCatalog:
        resolved = resolve_config_path(path or _DEFAULT_PLANS_PATH)
        with open(resolved) as fh:
            data = yaml.safe_load(fh) or {}
        plans = [_parse_plan(k, v) for k, v in data.get("plans", {}).items()]
        return cls(plans)

    @property
    def plans(self) -> list[PlanDefinition]:
        return list(self._plans.values())

    def get(self, key: PlanKey) -> PlanDefinition:
        plan = self._plans.get(key)
        if plan is None:
            raise KeyError(f"Unknown plan: {key!r}")
        return plan

    def plan_for_product(self, product_id: str | None) -> PlanDefinition | None:
        if not product_id:
            return None
        return self._by_product.get(product_id)
