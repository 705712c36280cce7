"""
Helpers monétaires: tout montant est un Decimal, arrondi au centime
(arrondi "half away from zero").
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() évite d'hériter de l'imprécision binaire des float
    return Decimal(str(value))


def round_money(value: Optional[Number]) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_measure(value: Optional[Number]) -> Optional[Decimal]:
    """Mesure (minutes, mètres, quantité) au centième, comme en base; None reste None."""
    if value is None:
        return None
    return round_money(value)


def sum_money(values: Iterable[Optional[Number]]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return round_money(total)


def format_amount(value: Optional[Number]) -> str:
    """Format d'affichage: séparateur décimal '.' et deux décimales (ex. 1250.50)."""
    return f"{round_money(value):.2f}"


def format_quantity(value: Optional[Number]) -> str:
    """Affiche une mesure sans zéros superflus (12.50 -> 12.5, 3.000 -> 3)."""
    normalized = to_decimal(value).normalize()
    # normalize() peut produire une notation exponentielle (1E+1)
    return format(normalized, "f")
