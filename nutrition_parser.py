"""Parse the meal analyser's plain-text carbohydrate breakdown.

The image analyser replies with lines like::

    Burger:
    - Bun: 30 g carbs, 150 kcal, 60 g
    Total: 75 g carbs, 600 kcal

Only amounts explicitly tagged as carbs count; weights ("220 g") and
calories are ignored.
"""

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional

from data_models import FoodItem, MealBreakdown


logger = logging.getLogger(__name__)

CARB_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*(?:g|gram|grams)\s*(?:of\s*)?(?:carbs?|carbohydrates?)\b",
    re.IGNORECASE,
)
TOTAL_PATTERN = re.compile(r"^total$", re.IGNORECASE)


def parse_carbs(values: str) -> Optional[float]:
    """First carb amount in a ``values`` string, or None."""
    if not values:
        return None
    match = CARB_PATTERN.search(values)
    if not match:
        return None
    carbs = float(match.group(1))
    if not math.isfinite(carbs) or carbs < 0:
        return None
    return carbs


def parse_nutrition_text(text: Optional[str]) -> MealBreakdown:
    """
    Build a MealBreakdown from the analyser's reply.

    A "Total" line wins; without one the item carbs are summed. Lines
    starting with "-" are sub-ingredients and are reported as items too.
    """
    if not text or not text.strip():
        return MealBreakdown()

    items: List[FoodItem] = []
    total: Optional[float] = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("-"):
            line = line[1:].strip()

        name, sep, values = line.partition(":")
        name = name.strip()
        if not sep or not name:
            continue

        carbs = parse_carbs(values.strip())
        if TOTAL_PATTERN.match(name):
            if carbs is not None:
                total = carbs
            continue
        if carbs is not None:
            items.append(FoodItem(name=name, carbs=carbs))

    breakdown_items = tuple(items)
    if total is None:
        total = float(sum(item.carbs for item in breakdown_items))
        logger.debug("No total line; summed %d items to %.1f g", len(items), total)

    return MealBreakdown(items=breakdown_items, total_carbs=total)
