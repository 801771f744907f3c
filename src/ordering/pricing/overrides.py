"""Property overrides — the customer's variant selections stored on a line item.

Each entry of a line item's ``selected_properties`` is a JSON object such as::

    {"key": "Color", "value": "Red", "changePrice": true, "price": 20}

Older checkout writers JSON-encoded the object and then encoded the resulting
string a second time, so stored entries come in two shapes:

    '{"key": "Color", ...}'             single-wrapped (canonical)
    '"{\\"key\\": \\"Color\\", ...}"'   double-wrapped (legacy)

Decoding unwraps once and, when the result is still a string, once more.
New writes always go through ``encode_override`` and produce the canonical
single-wrapped form.
"""

import json
import math
from dataclasses import dataclass, field

_PRICE_FIELDS = ("price",)
_NEW_PRICE_FIELDS = ("newPrice", "new_price")
_CHANGE_PRICE_FIELDS = ("changePrice", "change_price")
_RESERVED = {"key", "label", "value", *_PRICE_FIELDS, *_NEW_PRICE_FIELDS, *_CHANGE_PRICE_FIELDS}

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off", ""}


class OverrideDecodeError(ValueError):
    """A single stored override could not be decoded."""


@dataclass(frozen=True)
class PropertyOverride:
    """A decoded variant selection. ``key`` is always lowercase."""

    key: str
    value: str
    price: float | None = None
    change_price: bool | None = None
    new_price: float | None = None

    @property
    def changes_price(self) -> bool:
        return bool(self.change_price) or self.price is not None or self.new_price is not None

    @property
    def surcharge(self) -> float | None:
        """Amount carried by the override itself, if any."""
        if self.price is not None:
            return self.price
        return self.new_price


@dataclass(frozen=True)
class DecodeFailure:
    index: int
    raw: object
    reason: str


@dataclass
class DecodedOverrides:
    overrides: dict[str, PropertyOverride] = field(default_factory=dict)
    failures: list[DecodeFailure] = field(default_factory=list)

    def __iter__(self):
        return iter(self.overrides.values())

    def __len__(self):
        return len(self.overrides)


def _loads(text: str):
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise OverrideDecodeError(f"not valid JSON: {exc}") from exc


def unwrap(raw) -> dict:
    """Return the mapping inside a stored entry, unwrapping at most twice."""
    value = raw
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")

    if isinstance(value, str):
        value = _loads(value)
        if isinstance(value, str):
            # Legacy writers wrapped the encoded object once more
            value = _loads(value)

    if not isinstance(value, dict):
        raise OverrideDecodeError(f"expected an object, got {type(value).__name__}")
    return value


def _first(mapping: dict, names: tuple[str, ...]):
    for name in names:
        if name in mapping:
            return mapping[name]
    return None


def _to_price(raw, name: str) -> float | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise OverrideDecodeError(f"{name} must be a number")
    if isinstance(raw, (int, float)):
        amount = float(raw)
    elif isinstance(raw, str):
        try:
            amount = float(raw.strip())
        except ValueError as exc:
            raise OverrideDecodeError(f"{name} must be a number, got {raw!r}") from exc
    else:
        raise OverrideDecodeError(f"{name} must be a number")
    if not math.isfinite(amount):
        raise OverrideDecodeError(f"{name} must be finite")
    if amount < 0:
        raise OverrideDecodeError(f"{name} cannot be negative, got {amount}")
    return amount


def _to_flag(raw, name: str) -> bool | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise OverrideDecodeError(f"{name} must be a boolean, got {raw!r}")


def parse_override(mapping: dict) -> PropertyOverride:
    """Build an override from an unwrapped mapping.

    Accepts the structured form (``key``/``label`` + ``value``) and the bare
    single-pair form ``{"Color": "Red"}``.
    """
    key = mapping.get("key", mapping.get("label"))
    value = mapping.get("value")

    if key is None:
        pairs = [(k, v) for k, v in mapping.items() if k not in _RESERVED]
        if len(pairs) != 1:
            raise OverrideDecodeError("missing key")
        key, value = pairs[0]

    if not isinstance(key, str) or not key.strip():
        raise OverrideDecodeError("key must be a non-empty string")
    if isinstance(value, (dict, list)):
        raise OverrideDecodeError("value must be a scalar")

    return PropertyOverride(
        key=key.strip().lower(),
        value="" if value is None else str(value).strip(),
        price=_to_price(mapping.get("price"), "price"),
        change_price=_to_flag(_first(mapping, _CHANGE_PRICE_FIELDS), "changePrice"),
        new_price=_to_price(_first(mapping, _NEW_PRICE_FIELDS), "newPrice"),
    )


def decode_override(raw) -> PropertyOverride:
    return parse_override(unwrap(raw))


def split_entries(selected_properties) -> list:
    """Turn the stored ``selected_properties`` blob into a list of raw entries."""
    if selected_properties is None or selected_properties == "":
        return []
    if isinstance(selected_properties, (list, tuple)):
        return list(selected_properties)
    entries = _loads(selected_properties) if isinstance(selected_properties, str) else selected_properties
    if not isinstance(entries, list):
        raise OverrideDecodeError("selected properties must be a list")
    return entries


def decode_overrides(entries) -> DecodedOverrides:
    """Decode every entry, collapsing duplicate keys (the later entry wins).

    Malformed entries are collected in ``failures`` instead of raising.
    """
    result = DecodedOverrides()
    for index, raw in enumerate(entries):
        try:
            override = decode_override(raw)
        except OverrideDecodeError as exc:
            result.failures.append(DecodeFailure(index=index, raw=raw, reason=str(exc)))
            continue
        result.overrides.pop(override.key, None)
        result.overrides[override.key] = override
    return result


def encode_override(override) -> str:
    """Canonical single-wrapped encoding used by every new write."""
    if isinstance(override, PropertyOverride):
        payload = {
            "key": override.key,
            "value": override.value,
            "price": override.price,
            "changePrice": override.change_price,
            "newPrice": override.new_price,
        }
    else:
        parsed = parse_override(unwrap(override))
        return encode_override(parsed)
    return json.dumps({k: v for k, v in payload.items() if v is not None}, separators=(",", ":"))
