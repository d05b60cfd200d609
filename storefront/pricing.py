from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

_CENT = Decimal("0.01")

DEFAULT_COLORS = [
    "#FFFFFF", "#000000", "#FF0000", "#00FF00", "#0000FF", "#FFFF00",
    "#FF00FF", "#00FFFF", "#FFA500", "#800080", "#FFC0CB", "#A52A2A",
]

PRODUCT_CONFIGS = {
    "tshirt": {
        "name": "Custom T-Shirt",
        "default_colors": DEFAULT_COLORS,
        "sizes": [
            "Kids 2T", "Kids 3T", "Kids 4T",
            "Youth X-Small", "Youth Small", "Youth Medium", "Youth Large",
            "Adult Small", "Adult Medium", "Adult X-Large", "Adult 2XL",
            "Adult 3XL", "Adult 4XL", "Adult 5XL", "Adult 6XL",
        ],
        "print_types": ["DTF (Direct to Film)", "Sublimation"],
        "print_areas": [
            {"id": "front", "name": "Only Front Side", "price": 20.00},
            {"id": "back", "name": "Only Back Side", "price": 20.00},
            {"id": "front-back", "name": "Front & Back", "price": 35.00},
            {"id": "right-sleeve", "name": "Right Sleeve", "price": 5.00},
            {"id": "left-sleeve", "name": "Left Sleeve", "price": 5.00},
        ],
        "turnaround_options": [
            {"label": "Normal", "price": 0.00},
            {"label": "Same Day", "price": 15.00},
            {"label": "Rush (Less than 2 Hours)", "price": 25.00},
            {"label": "Express (Overnight)", "price": 35.00},
        ],
    },
    "hoodie": {
        "name": "Custom Hoodie",
        "default_colors": DEFAULT_COLORS,
        "sizes": ["Small", "Medium", "Large", "X-Large", "2XL", "3XL", "4XL"],
        "print_types": ["DTF (Direct to Film)", "Sublimation", "Embroidery"],
        "print_areas": [
            {"id": "front", "name": "Front Design", "price": 25.00},
            {"id": "back", "name": "Back Design", "price": 25.00},
            {"id": "front-back", "name": "Front & Back", "price": 45.00},
            {"id": "hood", "name": "Hood Design", "price": 15.00},
        ],
        "turnaround_options": [
            {"label": "Normal", "price": 0.00},
            {"label": "Same Day", "price": 20.00},
            {"label": "Rush (Less than 2 Hours)", "price": 30.00},
            {"label": "Express (Overnight)", "price": 40.00},
        ],
    },
    "mug": {
        "name": "Custom Mug",
        "default_colors": DEFAULT_COLORS,
        "sizes": ["11oz", "15oz", "20oz"],
        "print_types": ["Sublimation", "UV Printing"],
        "print_areas": [
            {"id": "front", "name": "Front Design", "price": 8.00},
            {"id": "back", "name": "Back Design", "price": 8.00},
            {"id": "front-back", "name": "Front & Back", "price": 12.00},
            {"id": "handle", "name": "Handle Design", "price": 5.00},
        ],
        "turnaround_options": [
            {"label": "Normal", "price": 0.00},
            {"label": "Same Day", "price": 10.00},
            {"label": "Rush (Less than 2 Hours)", "price": 15.00},
            {"label": "Express (Overnight)", "price": 20.00},
        ],
    },
    "hat": {
        "name": "Custom Hat",
        "default_colors": DEFAULT_COLORS,
        "sizes": ["S/M", "L/XL", "One Size"],
        "print_types": ["Embroidery", "DTF (Direct to Film)"],
        "print_areas": [
            {"id": "front", "name": "Front Logo", "price": 12.00},
            {"id": "back", "name": "Back Design", "price": 12.00},
            {"id": "side", "name": "Side Design", "price": 8.00},
        ],
        "turnaround_options": [
            {"label": "Normal", "price": 0.00},
            {"label": "Same Day", "price": 15.00},
            {"label": "Rush (Less than 2 Hours)", "price": 25.00},
            {"label": "Express (Overnight)", "price": 35.00},
        ],
    },
}

# Per-sheet prices for the color copies form
COLOR_COPY_OPTIONS = [
    {"value": "8.5x11-single", "label": "8.5x11 - Single side", "price": 0.49},
    {"value": "8.5x11-double", "label": "8.5x11 - Double Side", "price": 0.75},
    {"value": "8.5x11-glossy", "label": "8.5x11 - Glossy", "price": 0.98},
    {"value": "8.5x11-glossy-double", "label": "8.5x11 - Glossy Double Side", "price": 1.50},
    {"value": "11x14-single", "label": "11x14 - Single side", "price": 1.00},
    {"value": "11x14-double", "label": "11x14 - Double sided", "price": 1.49},
    {"value": "11x17-poster-single", "label": "11x17 - Poster Single Side", "price": 1.49},
    {"value": "11x17-poster-double", "label": "11x17 - Poster Double Side", "price": 2.50},
    {"value": "11x17-poster-glossy-single", "label": "11x17 Poster Glossy Single Side", "price": 5.00},
    {"value": "11x17-poster-glossy-double", "label": "11x17 - Poster Glossy Double Side", "price": 7.50},
]


def get_product_config(product_type: str) -> dict:
    return PRODUCT_CONFIGS.get(product_type, PRODUCT_CONFIGS["tshirt"])


@dataclass
class Pricing:
    base_price: float
    turnaround_price: float
    total_price: float


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def selected_areas(print_areas: Iterable[dict]) -> List[dict]:
    return [a for a in print_areas if a.get("selected")]


def calculate_pricing(print_areas: Iterable[dict], quantity: int, turnaround_price: float) -> Pricing:
    """base = quantity * sum(selected area prices); total = base + turnaround."""
    area_sum = sum((Decimal(str(a.get("price", 0))) for a in selected_areas(print_areas)), Decimal("0"))
    base = _money(area_sum * Decimal(quantity))
    turnaround = _money(Decimal(str(turnaround_price or 0)))
    total = _money(base + turnaround)
    return Pricing(base_price=float(base), turnaround_price=float(turnaround), total_price=float(total))
