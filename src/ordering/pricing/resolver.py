"""Line-item pricing resolver.

The effective unit price of a line item is its catalog base price plus the
surcharge of every price-changing property the customer selected. Order
totals are always recomputed from the resolved lines, never adjusted in place.
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from ordering.pricing.overrides import (
    DecodeFailure,
    OverrideDecodeError,
    PropertyOverride,
    decode_overrides,
    split_entries,
)

logger = structlog.get_logger(__name__)


def round_money(amount: float) -> float:
    return round(float(amount), 2)


@dataclass(frozen=True)
class PropertyValue:
    value: str
    change_price: bool = False
    new_price: float | None = None


@dataclass(frozen=True)
class PropertyDefinition:
    """One entry of a product's option menu, e.g. Color → Red/Blue."""

    label: str
    values: tuple[PropertyValue, ...] = ()

    def find(self, value: str) -> PropertyValue | None:
        wanted = value.strip().lower()
        return next((v for v in self.values if v.value.strip().lower() == wanted), None)


def _menu_price(raw) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def parse_catalog_menu(menu) -> dict[str, PropertyDefinition] | None:
    """Index a product's option menu by lowercase label.

    Returns ``None`` when there is no menu to check overrides against.
    """
    if menu is None or menu == "":
        return None
    if isinstance(menu, str):
        try:
            menu = json.loads(menu)
        except ValueError:
            logger.warning("Ignoring unreadable product property menu")
            return None
    if not isinstance(menu, list):
        return None

    indexed = {}
    for entry in menu:
        if not isinstance(entry, dict) or not entry.get("label"):
            continue
        values = tuple(
            PropertyValue(
                value=str(v.get("value", "")),
                change_price=bool(v.get("changePrice", v.get("change_price", False))),
                new_price=_menu_price(v.get("newPrice", v.get("new_price"))),
            )
            for v in entry.get("values") or []
            if isinstance(v, dict)
        )
        label = str(entry["label"])
        indexed[label.strip().lower()] = PropertyDefinition(label=label, values=values)
    return indexed


@dataclass(frozen=True)
class ResolvedLine:
    base_price: float
    unit_price: float
    surcharges: dict[str, float]
    selections: tuple[PropertyOverride, ...]
    dropped: tuple[str, ...] = ()
    failures: tuple[DecodeFailure, ...] = ()


def _surcharge_for(override: PropertyOverride, menu, line_ref) -> float | None:
    """Surcharge contributed by one override; ``None`` means drop it."""
    if menu is None:
        return (override.surcharge or 0.0) if override.changes_price else 0.0

    definition = menu.get(override.key)
    if definition is None:
        logger.warning("Dropping stale property override", reason="unknown property", key=override.key, **line_ref)
        return None
    menu_value = definition.find(override.value)
    if menu_value is None:
        logger.warning(
            "Dropping stale property override",
            reason="unknown value",
            key=override.key,
            value=override.value,
            **line_ref,
        )
        return None

    # The catalog owns the price of a listed value; an override only opts in
    if not override.changes_price:
        return 0.0
    if menu_value.change_price and menu_value.new_price is not None:
        return menu_value.new_price
    return 0.0


def resolve_line(base_price, selected_properties, product_properties=None, **line_ref) -> ResolvedLine:
    """Resolve the effective unit price of a single line item.

    Decode failures are logged and skipped; a line whose overrides all fail
    falls back to its base price.
    """
    base = round_money(base_price or 0.0)

    try:
        entries = split_entries(selected_properties)
    except OverrideDecodeError as exc:
        logger.warning("Unreadable selected properties", error=str(exc), **line_ref)
        failure = DecodeFailure(index=-1, raw=selected_properties, reason=str(exc))
        return ResolvedLine(base_price=base, unit_price=base, surcharges={}, selections=(), failures=(failure,))

    decoded = decode_overrides(entries)
    for failure in decoded.failures:
        logger.warning(
            "Skipping malformed property override",
            index=failure.index,
            reason=failure.reason,
            **line_ref,
        )

    menu = parse_catalog_menu(product_properties)
    surcharges = {}
    selections = []
    dropped = []
    for override in decoded:
        amount = _surcharge_for(override, menu, line_ref)
        if amount is None:
            dropped.append(override.key)
            continue
        selections.append(override)
        if amount:
            surcharges[override.key] = amount

    unit_price = round_money(base + sum(surcharges.values()))
    if unit_price < 0:
        logger.warning("Clamping negative unit price", unit_price=unit_price, base_price=base, **line_ref)
        unit_price = 0.0

    return ResolvedLine(
        base_price=base,
        unit_price=unit_price,
        surcharges=surcharges,
        selections=tuple(selections),
        dropped=tuple(dropped),
        failures=tuple(decoded.failures),
    )


def line_total(quantity: int, unit_price: float) -> float:
    return round_money(quantity * unit_price)


def order_total(lines: Iterable[tuple[int, float]]) -> float:
    """Σ quantity × unit price over ``(quantity, unit_price)`` pairs."""
    return round_money(sum(quantity * unit_price for quantity, unit_price in lines))
