"""
line_props.py — Design Bits Extraction from Line Item Properties

Turns the storefront's name/value property list of one order line into
normalized design bits. Text slots are resolved through per-client alias
lists; print job id and thumbnail come from a fixed set of metadata names.
Everything here is a pure function of its inputs.
"""

from typing import Dict, Iterable, List, Optional

from .models import DesignBits, KeyAliases, LineItemProperty

DEFAULT_TOP_KEY = "Top line"
DEFAULT_MIDDLE_KEY = "Middle line"
DEFAULT_BOTTOM_KEY = "Bottom line"

# Closed enumerations, matched by exact name in this order
PRINT_JOB_ID_KEYS = ("_printJobId", "_printjobid", "print_job_ref")
THUMBNAIL_KEYS = ("_thumb", "_thumbnail", "thumbnail")

PRIVATE_PREFIX = "_"


def extract_props(properties: Optional[Iterable[LineItemProperty]]) -> Dict[str, str]:
    """Name -> value map of a property list. A repeated name keeps its last value."""
    out = {}
    for prop in properties or []:
        out[prop.name] = prop.value
    return out


def find_first_key(props: Dict[str, str], candidates: List[str]) -> Optional[str]:
    """Value of the first candidate name present (case-insensitive) with a non-empty value."""
    if not candidates:
        return None
    lower_to_real = {name.lower(): name for name in props}
    for candidate in candidates:
        real = lower_to_real.get(candidate.lower())
        if real is not None and props[real]:
            return props[real]
    return None


def _first_present(props: Dict[str, str], names) -> Optional[str]:
    for name in names:
        value = props.get(name)
        if value:
            return value
    return None


def get_design_bits(props: Dict[str, str], aliases: Optional[KeyAliases] = None) -> DesignBits:
    """
    Resolves the design bits of one line.

    Args:
        props (Dict[str, str]): Output of `extract_props`.
        aliases (Optional[KeyAliases]): The client's configured slot aliases.

    Returns:
        DesignBits: Each text slot is the first configured alias that matches,
        else the value under the slot's default name.
    """
    aliases = aliases or KeyAliases()
    return DesignBits(
        top=_slot(props, aliases.top, DEFAULT_TOP_KEY),
        middle=_slot(props, aliases.middle, DEFAULT_MIDDLE_KEY),
        bottom=_slot(props, aliases.bottom, DEFAULT_BOTTOM_KEY),
        print_job_id=_first_present(props, PRINT_JOB_ID_KEYS),
        thumb=_first_present(props, THUMBNAIL_KEYS),
    )


def _slot(props: Dict[str, str], configured: List[str], default_key: str) -> Optional[str]:
    value = find_first_key(props, configured)
    if value is None:
        value = find_first_key(props, [default_key])
    return value
