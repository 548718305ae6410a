"""
Lookup criteria normalization.

Raw IP and MAC lists arrive as comma-separated strings. Entries that do not
have the expected shape are dropped without error; the survivors keep their
original order.
"""

import re
from typing import Any, List, Optional

from models import Criteria

SEPARATOR = re.compile(r",\s*")

# No 0-255 bounds check on the octets
IP_PATTERN = re.compile(r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")

# Loose shape check: any 1-2 non-whitespace characters per group, not hex
MAC_PATTERN = re.compile(r"\S{1,2}:\S{1,2}:\S{1,2}:\S{1,2}:\S{1,2}:\S{1,2}")


def _split(raw: Any) -> List[str]:
    if not isinstance(raw, str) or not raw:
        return []
    return SEPARATOR.split(raw)


def normalize_ips(raw: Optional[str]) -> List[str]:
    """Keep the dotted-quad entries of a comma-separated string."""
    return [entry for entry in _split(raw) if IP_PATTERN.fullmatch(entry)]


def normalize_macs(raw: Optional[str]) -> List[str]:
    """Keep the entries of a comma-separated string shaped like a MAC address."""
    return [entry for entry in _split(raw) if MAC_PATTERN.fullmatch(entry)]


def build_criteria(ips: Optional[str] = None, macs: Optional[str] = None) -> Criteria:
    return Criteria(ips=tuple(normalize_ips(ips)), macs=tuple(normalize_macs(macs)))
