"""Data-driven classification of lines and stations.

Lines are classified from ResRobot product category codes (`catCode`),
stations from the product bitmask of a stop location. Free-text names are
only consulted when the code is missing or unknown, and lines classified
that way carry `classification_confident=False`.
"""

import logging

from commute_watch.models.resrobot import RawProduct
from commute_watch.models.transit import Line, StationCategory, TransportMode

logger = logging.getLogger(__name__)

# ResRobot catCode -> (mode, label)
CATEGORY_CODES: dict[str, tuple[TransportMode, str]] = {
    "1": (TransportMode.TRAIN, "Express train"),
    "2": (TransportMode.TRAIN, "Regional train"),
    "3": (TransportMode.BUS, "Express bus"),
    "4": (TransportMode.TRAIN, "Commuter train"),
    "5": (TransportMode.METRO, "Metro"),
    "6": (TransportMode.TRAM, "Tram"),
    "7": (TransportMode.BUS, "Bus"),
    "8": (TransportMode.FERRY, "Ferry"),
}

MODE_LABELS: dict[TransportMode, str] = {
    TransportMode.METRO: "Metro",
    TransportMode.BUS: "Bus",
    TransportMode.TRAIN: "Train",
    TransportMode.TRAM: "Tram",
    TransportMode.FERRY: "Ferry",
}

MODE_COLORS: dict[TransportMode, str] = {
    TransportMode.METRO: "#0089CA",
    TransportMode.BUS: "#D71D24",
    TransportMode.TRAIN: "#EC619F",
    TransportMode.TRAM: "#778DA7",
    TransportMode.FERRY: "#00A3D9",
}

# Metro line numbers -> colour of the line they belong to
METRO_LINE_COLORS: dict[str, str] = {
    "10": "#0089CA",  # blue
    "11": "#0089CA",
    "13": "#D71D24",  # red
    "14": "#D71D24",
    "17": "#4BA946",  # green
    "18": "#4BA946",
    "19": "#4BA946",
}

DEFAULT_COLOR = "#666666"

# Name-token fallback, checked in order; only used without a known catCode
NAME_MODE_TOKENS: list[tuple[str, TransportMode]] = [
    ("tunnelbana", TransportMode.METRO),
    ("metro", TransportMode.METRO),
    ("pendeltåg", TransportMode.TRAIN),
    ("tåg", TransportMode.TRAIN),
    ("train", TransportMode.TRAIN),
    ("spårväg", TransportMode.TRAM),
    ("tram", TransportMode.TRAM),
    ("färja", TransportMode.FERRY),
    ("båt", TransportMode.FERRY),
    ("ferry", TransportMode.FERRY),
    ("buss", TransportMode.BUS),
    ("bus", TransportMode.BUS),
]

# Product bitmask values (bit = catCode - 1)
RAIL_PRODUCTS = (1 << 0) | (1 << 1) | (1 << 3)
METRO_PRODUCTS = 1 << 4
TRAM_PRODUCTS = 1 << 5
BUS_PRODUCTS = (1 << 2) | (1 << 6)
FERRY_PRODUCTS = 1 << 7


def _mode_from_name(*names: str | None) -> TransportMode | None:
    """Guess a mode from free-text names. Returns None when nothing matches."""
    text = " ".join(n for n in names if n).lower()
    for token, mode in NAME_MODE_TOKENS:
        if token in text:
            return mode
    return None


def classify_line(product: RawProduct) -> Line:
    """Build a Line from provider product metadata.

    Args:
        product: The product (vehicle/line) record of a journey leg.

    Returns:
        Line with mode, display name and colour from the category table.
    """
    number = (product.display_number or product.num or product.line or "").strip()

    confident = True
    if product.cat_code in CATEGORY_CODES:
        mode, label = CATEGORY_CODES[product.cat_code]
    else:
        confident = False
        mode = _mode_from_name(product.cat_out, product.name) or TransportMode.BUS
        label = MODE_LABELS[mode]
        logger.debug(
            f"Unknown category code {product.cat_code!r} for {product.name!r}, "
            f"guessed {mode.value} from name"
        )

    if mode == TransportMode.METRO:
        color = METRO_LINE_COLORS.get(number, MODE_COLORS[mode])
    else:
        color = MODE_COLORS.get(mode, DEFAULT_COLOR)

    display_name = f"{label} {number}".strip()
    line_id = f"{mode.value}:{number or product.name or 'unknown'}"

    return Line(
        id=line_id,
        number=number,
        mode=mode,
        display_name=display_name,
        color=color,
        classification_confident=confident,
    )


def category_from_products(products: int) -> StationCategory:
    """Map a stop location's product bitmask to a station category.

    Rail wins over metro so that a name shared by a rail hub and a metro
    interchange ranks the rail hub first.
    """
    if products & RAIL_PRODUCTS:
        return StationCategory.RAIL
    if products & METRO_PRODUCTS:
        return StationCategory.METRO
    if products & TRAM_PRODUCTS:
        return StationCategory.TRAM
    if products & FERRY_PRODUCTS:
        return StationCategory.FERRY
    if products & BUS_PRODUCTS:
        return StationCategory.BUS_TERMINAL
    return StationCategory.OTHER
