"""
Chiffrage des lignes de devis.

    CNC       minutes x prix/minute
    LASER     minutes x prix/minute + prix de la matière (si fournie et connue)
    CHAMPS    mètres x prix/mètre
    PANNEAUX  quantité x prix/unité

Aucune écriture: le calcul ne dépend que de l'entrée et des tables de prix,
et sert aussi bien à l'aperçu (POST /devis/calculate) qu'à l'ajout de ligne.
"""
from decimal import Decimal
from typing import Iterable, Optional
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.common.exceptions import ValidationError
from app.common.money import ZERO, round_money, round_measure, sum_money, format_amount, format_quantity
from app.modules.devis.schemas import CalculationInput, CalculationResult
from app.modules.machines.models import MachineType
from app.modules.machines.service import PriceTableReader

logger = logging.getLogger(__name__)

# Mesure exigée par type de machine
REQUIRED_MEASURE = {
    MachineType.CNC: "minutes",
    MachineType.LASER: "minutes",
    MachineType.CHAMPS: "meters",
    MachineType.PANNEAUX: "quantity",
}

MEASURE_ERRORS = {
    "minutes": "Les minutes doivent être renseignées et positives pour le calcul {machine}",
    "meters": "Les mètres doivent être renseignés et positifs pour le calcul {machine}",
    "quantity": "La quantité doit être renseignée et positive pour le calcul {machine}",
}


class PricingCalculator:
    def __init__(self, db: Session):
        self.prices = PriceTableReader(db)

    def calculate_line(self, data: CalculationInput) -> CalculationResult:
        machine_type = self._machine_type(data.machine_type)

        pricing = self.prices.get_machine_pricing(machine_type)
        if not pricing:
            raise ValidationError(
                f"Aucun tarif défini pour la machine {machine_type.value}",
                field="machine_type"
            )

        field = REQUIRED_MEASURE[machine_type]
        measure = self._positive_measure(getattr(data, field), field, machine_type)
        unit_price = round_money(pricing.price_per_unit)
        currency = settings.CURRENCY
        material_cost = ZERO

        if machine_type == MachineType.CNC:
            line_total = round_money(measure * unit_price)
            breakdown = (
                f"{format_quantity(measure)} min × {format_amount(unit_price)} {currency}/min"
                f" = {format_amount(line_total)} {currency}"
            )

        elif machine_type == MachineType.LASER:
            material_cost = self._material_cost(data.material_id)
            line_total = round_money(measure * unit_price + material_cost)
            breakdown = (
                f"({format_quantity(measure)} min × {format_amount(unit_price)} {currency}/min)"
                f" + {format_amount(material_cost)} {currency} matière"
                f" = {format_amount(line_total)} {currency}"
            )

        elif machine_type == MachineType.CHAMPS:
            line_total = round_money(measure * unit_price)
            breakdown = (
                f"{format_quantity(measure)} m × {format_amount(unit_price)} {currency}/m"
                f" = {format_amount(line_total)} {currency}"
            )

        else:
            line_total = round_money(measure * unit_price)
            breakdown = (
                f"{format_quantity(measure)} unités × {format_amount(unit_price)} {currency}/unité"
                f" = {format_amount(line_total)} {currency}"
            )

        return CalculationResult(
            machine_type=machine_type,
            unit_price=unit_price,
            material_cost=material_cost,
            line_total=line_total,
            breakdown=breakdown
        )

    def _material_cost(self, material_id) -> Decimal:
        # Matière inconnue: pas de coût matière
        if not material_id:
            return ZERO
        material = self.prices.get_material(material_id)
        if not material:
            logger.debug(f"Material {material_id} not found, no material cost")
            return ZERO
        return round_money(material.price_per_unit)

    @staticmethod
    def _machine_type(value) -> MachineType:
        try:
            return MachineType(value)
        except ValueError:
            raise ValidationError(f"Type de machine inconnu: {value}", field="machine_type")

    @staticmethod
    def _positive_measure(value, field: str, machine_type: MachineType) -> Decimal:
        # Mesure au centième, telle qu'elle est enregistrée sur la ligne
        measure = round_measure(value)
        if measure is None or measure <= 0:
            raise ValidationError(MEASURE_ERRORS[field].format(machine=machine_type.value), field=field)
        return measure


def compute_devis_total(line_totals: Iterable[Optional[Decimal]], service_prices: Iterable[Optional[Decimal]]) -> Decimal:
    """Total d'un devis: somme des lignes + somme des prestations, au centime"""
    return round_money(sum_money(line_totals) + sum_money(service_prices))
