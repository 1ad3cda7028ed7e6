"""
Field schemas for the two ledgers. Benefits and deductions share one entry shape;
only the ordered list of money fields differs.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Optional, Tuple

from payadmin_api.services.ledger_errors import InvalidValueError, UnknownFieldError, ValidationError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_AMOUNT = Decimal("9999999999.99")  # NUMERIC(12,2)


@dataclass(frozen=True)
class FieldSpec:
    key: str
    label: str
    min_value: Decimal = ZERO
    max_value: Decimal = MAX_AMOUNT

    def parse(self, value) -> Decimal:
        """None/"" -> 0.00; otherwise a finite decimal within [min, max], rounded to cents."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return ZERO
        if isinstance(value, bool):
            raise InvalidValueError(f"{self.key} must be a number", payload={"field": self.key})
        try:
            d = Decimal(str(value).strip().replace(",", ""))
        except (InvalidOperation, ValueError):
            raise InvalidValueError(f"{self.key} must be a number", payload={"field": self.key})
        if not d.is_finite():
            raise InvalidValueError(f"{self.key} must be a finite number", payload={"field": self.key})
        if d < self.min_value:
            raise InvalidValueError(f"{self.key} must be >= {self.min_value}", payload={"field": self.key})
        d = d.quantize(CENTS, rounding=ROUND_HALF_UP) if d <= self.max_value else d
        if d > self.max_value:
            raise InvalidValueError(f"{self.key} must be <= {self.max_value}", payload={"field": self.key})
        return abs(d)  # -0.00 -> 0.00

    def as_dict(self) -> dict:
        return {"key": self.key, "label": self.label, "min": float(self.min_value)}


@dataclass(frozen=True)
class AdjustmentCategory:
    name: str       # stored tag
    plural: str     # url prefix / permission segment
    title: str
    fields: Tuple[FieldSpec, ...]

    @property
    def field_keys(self) -> Tuple[str, ...]:
        return tuple(f.key for f in self.fields)

    def field(self, key: str) -> FieldSpec:
        for f in self.fields:
            if f.key == key:
                return f
        raise UnknownFieldError(f"Invalid field specified: {key!r}", payload={"allowed": list(self.field_keys)})

    def zero_values(self) -> Dict[str, Decimal]:
        return {f.key: ZERO for f in self.fields}

    def clean_values(self, raw: Optional[dict]) -> Dict[str, Decimal]:
        """Full value map in schema order: missing keys -> 0.00, unknown keys rejected."""
        raw = raw or {}
        for k in raw:
            self.field(k)
        return {f.key: f.parse(raw.get(f.key)) for f in self.fields}


BENEFIT = AdjustmentCategory(
    name="benefit",
    plural="benefits",
    title="Benefits",
    fields=(
        FieldSpec("allowances", "Allowances"),
        FieldSpec("mf_shares", "MF Shares"),
        FieldSpec("mf_loan", "MF Loan"),
        FieldSpec("sss_loan", "SSS Loan"),
        FieldSpec("sss_prem", "SSS Premium"),
        FieldSpec("hmdf_loan", "HMDF Loan"),
        FieldSpec("hmdf_prem", "HMDF Premium"),
        FieldSpec("philhealth", "PhilHealth"),
    ),
)

DEDUCTION = AdjustmentCategory(
    name="deduction",
    plural="deductions",
    title="Deductions",
    fields=(
        FieldSpec("advance", "Advance"),
        FieldSpec("charge_store", "Charge Store"),
        FieldSpec("charge", "Charge"),
        FieldSpec("meals", "Meals"),
        FieldSpec("miscellaneous", "Miscellaneous"),
        FieldSpec("other_deductions", "Other Deductions"),
    ),
)

CATEGORIES: Dict[str, AdjustmentCategory] = {c.name: c for c in (BENEFIT, DEDUCTION)}


def get_category(name) -> AdjustmentCategory:
    if isinstance(name, AdjustmentCategory):
        return name
    key = str(name or "").strip().lower()
    for c in CATEGORIES.values():
        if key in (c.name, c.plural):
            return c
    raise ValidationError(f"unknown category {name!r}", payload={"allowed": list(CATEGORIES)})
