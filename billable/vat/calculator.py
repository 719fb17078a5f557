from __future__ import annotations
import re
from decimal import Decimal
from typing import Optional, Protocol

import httpx
import structlog

from billable.vat.rates import standard_rate, vat_area_for

logger = structlog.get_logger(__name__)

# VIES error codes that mean "ask again later" rather than "invalid number"
_UNAVAILABLE_ERRORS = {
    "SERVICE_UNAVAILABLE",
    "MS_UNAVAILABLE",
    "TIMEOUT",
    "GLOBAL_MAX_CONCURRENT_REQ",
    "MS_MAX_CONCURRENT_REQ",
    "IP_BLOCKED",
    "VAT_BLOCKED",
}


class VatCheckUnavailableError(RuntimeError):
    """The VAT number could not be checked because the validation service is down."""


class VatCalculator(Protocol):
    async def is_valid_vat_number(self, vat_id: str) -> bool: ...

    def tax_rate_for_location(
        self, country_code: Optional[str], postal_code: Optional[str], is_company: bool
    ) -> Decimal: ...


def split_vat_number(vat_id: str) -> tuple[str, str]:
    cleaned = re.sub(r"[^A-Z0-9]", "", (vat_id or "").upper())
    return cleaned[:2], cleaned[2:]


class ViesVatCalculator:
    """
    VAT rules for a seller established in ``business_country_code``.

    Numbers are checked against the EU VIES REST service. Rates come from the
    bundled standard-rate table (see billable.vat.rates).
    """

    def __init__(
        self,
        business_country_code: str,
        *,
        vies_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.business_country_code = (business_country_code or "").upper()
        self.vies_url = vies_url
        self.timeout = timeout
        self._client = client

    async def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.vies_url, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.vies_url, json=payload)

    async def is_valid_vat_number(self, vat_id: str) -> bool:
        country, number = split_vat_number(vat_id)
        if len(country) != 2 or not number:
            return False

        try:
            response = await self._post({"countryCode": country, "vatNumber": number})
        except httpx.HTTPError as e:
            logger.warning("vies_unreachable", country=country, error=str(e))
            raise VatCheckUnavailableError(f"VIES unreachable: {e}") from e

        if response.status_code >= 500:
            raise VatCheckUnavailableError(f"VIES returned HTTP {response.status_code}")

        body = response.json() if response.content else {}
        errors = [w.get("error") for w in (body.get("errorWrappers") or []) if isinstance(w, dict)]
        if any(code in _UNAVAILABLE_ERRORS for code in errors):
            logger.warning("vies_unavailable", country=country, errors=errors)
            raise VatCheckUnavailableError(f"VIES unavailable: {', '.join(errors)}")
        if errors or response.status_code >= 400:
            # INVALID_INPUT and friends
            return False

        return bool(body.get("valid"))

    def tax_rate_for_location(
        self, country_code: Optional[str], postal_code: Optional[str], is_company: bool
    ) -> Decimal:
        # reverse charge: validated businesses in another country pay no VAT here
        if is_company and (country_code or "").upper() != self.business_country_code:
            return Decimal("0")
        return standard_rate(vat_area_for(country_code or "", postal_code))
