"""
ViesVatCalculator against a mocked VIES endpoint, and the location rate table.
"""

import json
from decimal import Decimal

import httpx
import pytest

from billable.vat.calculator import VatCheckUnavailableError, ViesVatCalculator, split_vat_number
from billable.vat.rates import vat_area_for

VIES_URL = "https://vies.test/check-vat-number"


def _calculator(handler, home="DE"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ViesVatCalculator(home, vies_url=VIES_URL, client=client)


@pytest.mark.unit
class TestVatNumberValidation:
    @pytest.mark.asyncio
    async def test_valid_number(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"valid": True, "countryCode": "FR"})

        assert await _calculator(handler).is_valid_vat_number("fr 40-303.265.045") is True
        assert seen == [{"countryCode": "FR", "vatNumber": "40303265045"}]

    @pytest.mark.asyncio
    async def test_invalid_number(self):
        calc = _calculator(lambda r: httpx.Response(200, json={"valid": False}))
        assert await calc.is_valid_vat_number("DE000000000") is False

    @pytest.mark.asyncio
    async def test_invalid_input_is_not_an_outage(self):
        body = {"actionSucceed": False, "errorWrappers": [{"error": "INVALID_INPUT"}]}
        calc = _calculator(lambda r: httpx.Response(400, json=body))
        assert await calc.is_valid_vat_number("DEXYZ") is False

    @pytest.mark.asyncio
    async def test_member_state_unavailable(self):
        body = {"actionSucceed": False, "errorWrappers": [{"error": "MS_UNAVAILABLE"}]}
        calc = _calculator(lambda r: httpx.Response(200, json=body))
        with pytest.raises(VatCheckUnavailableError):
            await calc.is_valid_vat_number("IT00743110157")

    @pytest.mark.asyncio
    async def test_server_error(self):
        calc = _calculator(lambda r: httpx.Response(503))
        with pytest.raises(VatCheckUnavailableError):
            await calc.is_valid_vat_number("IT00743110157")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(VatCheckUnavailableError):
            await _calculator(handler).is_valid_vat_number("IT00743110157")

    @pytest.mark.asyncio
    async def test_malformed_number_skips_request(self):
        def handler(request):
            raise AssertionError("VIES should not be called")

        assert await _calculator(handler).is_valid_vat_number("D") is False
        assert await _calculator(handler).is_valid_vat_number("") is False

    def test_split(self):
        assert split_vat_number(" el-123 456 789 ") == ("EL", "123456789")


@pytest.mark.unit
class TestTaxRateForLocation:
    calc = ViesVatCalculator("DE", vies_url=VIES_URL)

    @pytest.mark.parametrize(
        "country,zip_code,is_company,expected",
        [
            ("DE", "10115", False, Decimal("0.19")),
            ("DE", "10115", True, Decimal("0.19")),    # domestic business still pays
            ("FR", "75001", False, Decimal("0.20")),
            ("FR", "75001", True, Decimal("0")),       # reverse charge
            ("FI", "00100", False, Decimal("0.255")),
            ("US", "94105", False, Decimal("0")),
            ("ES", "35001", False, Decimal("0")),      # Canary Islands
            ("AT", "6691", False, Decimal("0.19")),    # Jungholz uses German VAT
            ("DE", "27498", False, Decimal("0")),      # Heligoland
            ("de", "10115", False, Decimal("0.19")),
            (None, None, False, Decimal("0")),
        ],
    )
    def test_rates(self, country, zip_code, is_company, expected):
        assert self.calc.tax_rate_for_location(country, zip_code, is_company) == expected

    def test_area_ignores_spaces_in_zip(self):
        assert vat_area_for("ES", "35 001") == "IC"
        assert vat_area_for("ES", "28001") == "ES"
