import re
from typing import Optional

# Material Symbols names the step list is allowed to render
ALLOWED_STEP_ICONS = frozenset({
    "circle",
    "restaurant",
    "timer",
    "water_drop",
    "local_fire_department",
    "outdoor_grill",
    "blender",
    "microwave",
    "oven_gen",
    "skillet",
    "grid_on",
    "cookie",
    "cake",
    "local_pizza",
    "set_meal",
    "soup_kitchen",
    "flatware",
    "egg",
    "breakfast_dining",
    "brunch_dining",
    "lunch_dining",
    "dinner_dining",
    "ramen_dining",
    "bakery_dining",
    "kitchen",
})

_SEPARATORS = re.compile(r"[\s-]+")


def sanitize_icon(icon: object) -> Optional[str]:
    """Normaliza o nome do icone; retorna None se nao estiver na lista."""
    if not isinstance(icon, str):
        return None
    normalized = _SEPARATORS.sub("_", icon.strip().lower())
    return normalized if normalized in ALLOWED_STEP_ICONS else None
