# billable/vat/rates.py
from __future__ import annotations
import re
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

# Standard VAT rates of the EU member states, as fractions.
STANDARD_RATES: Dict[str, Decimal] = {
    "AT": Decimal("0.20"),
    "BE": Decimal("0.21"),
    "BG": Decimal("0.20"),
    "CY": Decimal("0.19"),
    "CZ": Decimal("0.21"),
    "DE": Decimal("0.19"),
    "DK": Decimal("0.25"),
    "EE": Decimal("0.24"),
    "ES": Decimal("0.21"),
    "FI": Decimal("0.255"),
    "FR": Decimal("0.20"),
    "GR": Decimal("0.24"),
    "HR": Decimal("0.25"),
    "HU": Decimal("0.27"),
    "IE": Decimal("0.23"),
    "IT": Decimal("0.22"),
    "LT": Decimal("0.21"),
    "LU": Decimal("0.17"),
    "LV": Decimal("0.21"),
    "MT": Decimal("0.18"),
    "NL": Decimal("0.21"),
    "PL": Decimal("0.23"),
    "PT": Decimal("0.23"),
    "RO": Decimal("0.21"),
    "SE": Decimal("0.25"),
    "SI": Decimal("0.22"),
    "SK": Decimal("0.23"),
}

# Territories whose postal codes put them in another VAT area than their
# country. The replacement code is either an EU member (its rate applies) or a
# pseudo-code outside STANDARD_RATES (no EU VAT is charged).
POSTAL_CODE_EXCEPTIONS: Dict[str, List[Tuple[re.Pattern, str]]] = {
    "AT": [
        (re.compile(r"^6691$"), "DE"),          # Jungholz
        (re.compile(r"^699[123]$"), "DE"),      # Mittelberg
    ],
    "DE": [
        (re.compile(r"^27498$"), "XH"),         # Heligoland
        (re.compile(r"^78266$"), "CH"),         # Büsingen am Hochrhein
    ],
    "ES": [
        (re.compile(r"^(35\d{3}|38\d{3})$"), "IC"),             # Canary Islands
        (re.compile(r"^(5100[1-5]|5107[01]|51081)$"), "XC"),    # Ceuta
        (re.compile(r"^(5200[0-6]|5207[01]|52081)$"), "XM"),    # Melilla
    ],
    "FR": [
        (re.compile(r"^97[1-46]\d{2}$"), "XF"),  # overseas departments
    ],
    "GR": [
        (re.compile(r"^6308[67]$"), "XA"),      # Mount Athos
    ],
    "IT": [
        (re.compile(r"^22061$"), "CH"),         # Campione d'Italia
        (re.compile(r"^23041$"), "XL"),         # Livigno
    ],
}


def vat_area_for(country_code: str, postal_code: Optional[str]) -> str:
    country_code = (country_code or "").upper()
    postal_code = (postal_code or "").replace(" ", "")
    for pattern, area in POSTAL_CODE_EXCEPTIONS.get(country_code, []):
        if postal_code and pattern.match(postal_code):
            return area
    return country_code


def standard_rate(country_code: str) -> Decimal:
    return STANDARD_RATES.get((country_code or "").upper(), Decimal("0"))
