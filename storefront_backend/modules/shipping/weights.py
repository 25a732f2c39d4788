"""
Volumetric and chargeable weight.

Partners bill the larger of the dead weight and the volumetric weight,
where volumetric kg = (L x W x H in cm) / 5000.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional

DEFAULT_VOLUMETRIC_DIVISOR = 5000


@dataclass(frozen=True)
class BoxDimension:
    """One box size in a shipment. box_count boxes share these dimensions."""
    length_cm: float
    width_cm: float
    height_cm: float
    box_count: int = 1

    def to_partner_format(self) -> dict:
        return {
            "length_cm": self.length_cm,
            "width_cm": self.width_cm,
            "height_cm": self.height_cm,
            "box_count": self.box_count,
        }


def calculate_volumetric_weight(
    length: float,
    width: float,
    height: float,
    divisor: int = DEFAULT_VOLUMETRIC_DIVISOR,
) -> float:
    """Volumetric weight in kg. Zero if any side is missing."""
    if length <= 0 or width <= 0 or height <= 0:
        return 0.0
    return (length * width * height) / divisor


def get_chargeable_weight(actual_weight: float, volumetric_weight: float) -> float:
    return max(actual_weight, volumetric_weight)


def total_volumetric_weight(
    dimensions: Optional[Iterable[BoxDimension]],
    divisor: int = DEFAULT_VOLUMETRIC_DIVISOR,
) -> float:
    """Sum of volumetric weight over every box in the shipment, in kg."""
    if not dimensions:
        return 0.0
    return sum(
        calculate_volumetric_weight(box.length_cm, box.width_cm, box.height_cm, divisor)
        * max(box.box_count, 0)
        for box in dimensions
    )


def get_chargeable_grams(
    weight_grams: float,
    dimensions: Optional[Iterable[BoxDimension]] = None,
    divisor: int = DEFAULT_VOLUMETRIC_DIVISOR,
) -> int:
    """Billable weight in whole grams, rounded up."""
    # round() first: 0.6 kg * 1000 must stay 600, not 600.0000000001
    volumetric_grams = math.ceil(round(total_volumetric_weight(dimensions, divisor) * 1000, 3))
    actual_grams = math.ceil(round(weight_grams, 3))
    return int(get_chargeable_weight(actual_grams, volumetric_grams))
