"""Salary computation engine — pure Decimal arithmetic, no I/O.

Two stages:

* ``decompose`` splits a monthly wage into the six earning components.
  Basic is a percentage of the wage; HRA, standard allowance, performance
  bonus and LTA are percentages of *basic*. Whatever is left of the wage
  becomes the fixed allowance (clamped at zero).
* ``compute_deductions`` derives PF (employee + employer), professional
  tax and net pay from basic and gross.

``build_breakdown`` composes both into a ``SalaryBreakdown``. Nothing is
rounded here; callers quantize with ``money()`` at presentation time.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

from dayflow.common.exceptions import ValidationException

HUNDRED = Decimal("100")
ZERO = Decimal("0")
CENT = Decimal("0.01")
MONTHS_PER_YEAR = 12

# Components computed as a percentage of basic, in presentation order.
BASIC_DERIVED = (
    "hra",
    "standard_allowance",
    "performance_bonus",
    "leave_travel_allowance",
)


# ── Value types ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ComponentPercentages:
    basic: Decimal
    hra: Decimal
    standard_allowance: Decimal
    performance_bonus: Decimal
    leave_travel_allowance: Decimal

    def of_basic(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in BASIC_DERIVED}


@dataclass(frozen=True)
class PFRates:
    employee: Decimal
    employer: Decimal


@dataclass(frozen=True)
class ComponentAmounts:
    basic_salary: Decimal
    hra: Decimal
    standard_allowance: Decimal
    performance_bonus: Decimal
    leave_travel_allowance: Decimal
    fixed_allowance: Decimal
    over_budget: bool = False

    @property
    def total(self) -> Decimal:
        return (
            self.basic_salary
            + self.hra
            + self.standard_allowance
            + self.performance_bonus
            + self.leave_travel_allowance
            + self.fixed_allowance
        )


@dataclass(frozen=True)
class Deductions:
    employee_pf: Decimal
    employer_pf: Decimal
    professional_tax: Decimal
    total_deductions: Decimal
    gross_salary: Decimal
    net_salary: Decimal


@dataclass(frozen=True)
class SalaryBreakdown:
    monthly_wage: Decimal
    yearly_wage: Decimal
    basic_salary: Decimal
    hra: Decimal
    standard_allowance: Decimal
    performance_bonus: Decimal
    leave_travel_allowance: Decimal
    fixed_allowance: Decimal
    employee_pf: Decimal
    employer_pf: Decimal
    professional_tax: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    over_budget: bool = False
    currency: str = field(default="INR")

    def rounded(self) -> dict[str, Any]:
        """Presentation form: every amount quantized to two places."""
        out: dict[str, Any] = {}
        for key, value in asdict(self).items():
            out[key] = money(value) if isinstance(value, Decimal) else value
        return out


# ── Helpers ─────────────────────────────────────────────────────────

def money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to paise."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, name: str) -> Decimal:
    """Coerce *value* to a finite Decimal or raise a validation error."""
    if isinstance(value, bool):
        raise ValidationException({name: ["Must be a number."]})
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationException({name: ["Must be a number."]})
    if not result.is_finite():
        raise ValidationException({name: ["Must be a finite number."]})
    return result


def _non_negative(value: Any, name: str) -> Decimal:
    result = to_decimal(value, name)
    if result < ZERO:
        raise ValidationException({name: ["Must not be negative."]})
    return result


def _percentage(value: Any, name: str) -> Decimal:
    result = _non_negative(value, name)
    if result > HUNDRED:
        raise ValidationException({name: ["Must be between 0 and 100."]})
    return result


# ── Stage 1: wage decomposition ─────────────────────────────────────

def decompose(monthly_wage: Any, percentages: ComponentPercentages) -> ComponentAmounts:
    """Split *monthly_wage* into its earning components.

    ``over_budget`` is set when basic plus the basic-derived components
    exceed the wage; the fixed allowance is then zero. Persisting such a
    configuration is the caller's decision to refuse.
    """
    wage = _non_negative(monthly_wage, "monthly_wage")
    basic_pct = _percentage(percentages.basic, "basic_pct")
    derived_pcts = {
        name: _percentage(pct, f"{name}_pct")
        for name, pct in percentages.of_basic().items()
    }

    basic = wage * basic_pct / HUNDRED
    derived = {name: basic * pct / HUNDRED for name, pct in derived_pcts.items()}

    allocated = basic + sum(derived.values(), ZERO)
    over_budget = allocated > wage
    fixed = max(ZERO, wage - allocated)

    return ComponentAmounts(
        basic_salary=basic,
        fixed_allowance=fixed,
        over_budget=over_budget,
        **derived,
    )


# ── Stage 2: deductions ─────────────────────────────────────────────

def compute_deductions(
    basic_salary: Any,
    pf_rates: PFRates,
    professional_tax: Any,
    gross_salary: Any,
) -> Deductions:
    """PF on basic, flat professional tax, net = gross - employee-side deductions.

    Employer PF is informational and does not reduce net pay.
    """
    basic = _non_negative(basic_salary, "basic_salary")
    gross = _non_negative(gross_salary, "gross_salary")
    pt = _non_negative(professional_tax, "professional_tax")
    employee_rate = _percentage(pf_rates.employee, "pf_employee_pct")
    employer_rate = _percentage(pf_rates.employer, "pf_employer_pct")

    employee_pf = basic * employee_rate / HUNDRED
    employer_pf = basic * employer_rate / HUNDRED
    total = employee_pf + pt

    return Deductions(
        employee_pf=employee_pf,
        employer_pf=employer_pf,
        professional_tax=pt,
        total_deductions=total,
        gross_salary=gross,
        net_salary=gross - total,
    )


# ── Composition ─────────────────────────────────────────────────────

def build_breakdown(
    monthly_wage: Any,
    percentages: ComponentPercentages,
    pf_rates: PFRates,
    professional_tax: Any,
    *,
    currency: str = "INR",
) -> SalaryBreakdown:
    """Full monthly breakdown for a wage. Gross always equals the wage."""
    components = decompose(monthly_wage, percentages)
    wage = to_decimal(monthly_wage, "monthly_wage")
    deductions = compute_deductions(
        components.basic_salary, pf_rates, professional_tax, wage,
    )
    return SalaryBreakdown(
        monthly_wage=wage,
        yearly_wage=wage * MONTHS_PER_YEAR,
        basic_salary=components.basic_salary,
        hra=components.hra,
        standard_allowance=components.standard_allowance,
        performance_bonus=components.performance_bonus,
        leave_travel_allowance=components.leave_travel_allowance,
        fixed_allowance=components.fixed_allowance,
        employee_pf=deductions.employee_pf,
        employer_pf=deductions.employer_pf,
        professional_tax=deductions.professional_tax,
        gross_salary=deductions.gross_salary,
        total_deductions=deductions.total_deductions,
        net_salary=deductions.net_salary,
        over_budget=components.over_budget,
        currency=currency,
    )


def breakdown_for(config: Any) -> SalaryBreakdown:
    """Breakdown for anything shaped like a ``SalaryConfiguration`` row."""
    return build_breakdown(
        config.monthly_wage,
        percentages_from(config),
        PFRates(
            employee=to_decimal(config.pf_employee_pct, "pf_employee_pct"),
            employer=to_decimal(config.pf_employer_pct, "pf_employer_pct"),
        ),
        config.professional_tax,
        currency=config.currency,
    )


def percentages_from(source: Any) -> ComponentPercentages:
    """Read ``*_pct`` attributes (or mapping keys) into ComponentPercentages."""
    get = source.get if isinstance(source, Mapping) else (
        lambda key: getattr(source, key)
    )
    return ComponentPercentages(
        basic=to_decimal(get("basic_pct"), "basic_pct"),
        hra=to_decimal(get("hra_pct"), "hra_pct"),
        standard_allowance=to_decimal(
            get("standard_allowance_pct"), "standard_allowance_pct",
        ),
        performance_bonus=to_decimal(
            get("performance_bonus_pct"), "performance_bonus_pct",
        ),
        leave_travel_allowance=to_decimal(get("lta_pct"), "lta_pct"),
    )
