# tests/services/test_fund_extractors.py
"""
Tests for the fund-company extractors (NFFund, Bosera, EFunds).

Each vendor reports yields in its own units; every extractor must hand
back percentages.
"""

import json

import pytest

from market_sync.models import InstrumentType
from market_sync.services.exceptions import VendorFormatError
from market_sync.services.market_data.funds import (
    BoseraExtractor,
    EFundsExtractor,
    NFFundExtractor,
)
from market_sync.services.market_data.normalizer import normalize, validate

NFFUND_PATH = "/nfwebApi/fund/supermarket"
BOSERA_PATH = "/fund/index.html"
EFUNDS_PATH = "/lm/jjcp/"


def _page(variable: str, rows: list[dict]) -> str:
    return (
        "<html><head><script>\n"
        f"{variable} = {json.dumps(rows, ensure_ascii=False)};\n"
        "</script></head><body></body></html>"
    )


# =============================================================================
# NFFUND
# =============================================================================

class TestNFFundExtractor:
    """Tests for NFFundExtractor."""

    def test_maps_rows(self, vendor, transport):
        vendor.add_json(NFFUND_PATH, {
            "code": "ETS-5BP00000",
            "data": {"g_index_allrelist": [{
                "fundcode": "202301",
                "fundname": "南方收益",
                "nav": "1.0000",
                "fmqwsl": "0.6512",
                "fdate": "20260206",
                "status": "1",
                "webFirstCategorys": "173C6C94CE037c8c7b796c99203456b4",
                "recentOneYear": "2.41",
                "fundManagerName": "张三",
            }]},
        })

        records = NFFundExtractor(transport).fetch()

        fund = records[0]
        assert fund.symbol == "202301"
        assert fund.market == "NF_FUND"
        assert fund.type == InstrumentType.FUND
        assert fund.last_price == 1.0
        # Income per 10k units annualized into a percentage
        assert fund.yield_7d == pytest.approx(0.6512 * 365 / 100)
        assert fund.yield_1y == 2.41
        assert fund.fund_type == "债券型"
        assert fund.nav_date == "20260206"
        assert fund.is_active is True

    def test_uses_post(self, vendor, transport):
        vendor.add_json(NFFUND_PATH, {"code": "ETS-5BP00000", "data": {"g_index_allrelist": []}})

        NFFundExtractor(transport).fetch()

        assert vendor.calls(NFFUND_PATH)[0].method == "POST"

    def test_unknown_category_defaults_to_hybrid(self, vendor, transport):
        vendor.add_json(NFFUND_PATH, {"code": "ETS-5BP00000", "data": {"g_index_allrelist": [
            {"fundcode": "000001", "fundname": "x", "nav": "1", "status": "0",
             "webFirstCategorys": "unknown"},
        ]}})

        fund = NFFundExtractor(transport).fetch()[0]

        assert fund.fund_type == "混合型"
        assert fund.is_active is False
        assert fund.yield_7d is None

    def test_vendor_error_code(self, vendor, transport):
        vendor.add_json(NFFUND_PATH, {"code": "ETS-5BP99999", "message": "system busy"})

        with pytest.raises(VendorFormatError, match="NFFund API error: system busy"):
            NFFundExtractor(transport).fetch()

    def test_row_not_an_object(self, vendor, transport):
        vendor.add_json(NFFUND_PATH, {"code": "ETS-5BP00000", "data": {"g_index_allrelist": [
            ["202301", "南方收益"],
        ]}})

        with pytest.raises(VendorFormatError, match="expected an object"):
            NFFundExtractor(transport).fetch()


# =============================================================================
# BOSERA
# =============================================================================

class TestBoseraExtractor:
    """Tests for BoseraExtractor."""

    def test_maps_rows(self, vendor, transport):
        vendor.add_text(BOSERA_PATH, _page("window.fundListJson", [{
            "fundCode": "050001",
            "fundName": "博时价值增长混合",
            "netValue": "1.2345",
            "halfYearYield": ".0312",
            "thisYearYield": "0.015",
            "year": "5.6",
            "week": "0.12",
            "fundRisk": "R3",
            "netDate": "2026-02-06",
        }]))

        fund = BoseraExtractor(transport).fetch()[0]

        assert fund.symbol == "050001"
        assert fund.market == "BOSERA"
        assert fund.last_price == 1.2345
        # Decimal fractions become percentages
        assert fund.yield_6m == pytest.approx(3.12)
        assert fund.yield_ytd == pytest.approx(1.5)
        # Short-name fields are already percentages
        assert fund.yield_1y == 5.6
        assert fund.yield_1w == 0.12
        assert fund.risk_level == "R3"
        assert fund.is_active is True

    def test_half_year_falls_back_to_one_year(self, vendor, transport):
        vendor.add_text(BOSERA_PATH, _page("window.fundListJson", [{
            "fundCode": "050002", "fundName": "博时裕富", "netValue": "1.0", "year": "4.2",
        }]))

        fund = BoseraExtractor(transport).fetch()[0]

        assert fund.yield_6m == 4.2

    def test_unpriced_fund_is_inactive(self, vendor, transport):
        vendor.add_text(BOSERA_PATH, _page("window.fundListJson", [{
            "fundCode": "050003", "fundName": "博时新基金", "netValue": "--",
        }]))

        fund = BoseraExtractor(transport).fetch()[0]

        assert fund.is_active is False
        assert fund.last_price is None

    def test_missing_data_block(self, vendor, transport):
        vendor.add_text(BOSERA_PATH, "<html><body>maintenance</body></html>")

        with pytest.raises(VendorFormatError, match="not found"):
            BoseraExtractor(transport).fetch()

    def test_invalid_embedded_json(self, vendor, transport):
        vendor.add_text(BOSERA_PATH, "<script>window.fundListJson = [{'bad': }];</script>")

        with pytest.raises(VendorFormatError, match="not valid JSON"):
            BoseraExtractor(transport).fetch()


# =============================================================================
# EFUNDS
# =============================================================================

class TestEFundsExtractor:
    """Tests for EFundsExtractor."""

    def test_maps_rows(self, vendor, transport):
        vendor.add_text(EFUNDS_PATH, _page("var __FUND_SUPER_MARKET_DATA__", [{
            "fundcode": "110022",
            "fundname": "易方达消费行业",
            "netvalue": "3.4560",
            "qrnh": "1.85",
            "tdate": "2026-02-06",
            "setupdate": "2010-08-20",
            "state": "0",
            "properties": {"riskLevel": "R4"},
        }]))

        fund = EFundsExtractor(transport).fetch()[0]

        assert fund.symbol == "110022"
        assert fund.market == "EFUNDS"
        assert fund.yield_7d == 1.85
        assert fund.risk_level == "R4"
        assert fund.setup_date == "2010-08-20"
        assert fund.is_active is True

        record = normalize(fund)
        assert validate(record) == []
        assert record.setup_date.year == 2010

    def test_closed_fund_is_inactive(self, vendor, transport):
        vendor.add_text(EFUNDS_PATH, _page("var __FUND_SUPER_MARKET_DATA__", [{
            "fundcode": "110023", "fundname": "x", "netvalue": "1.0", "state": "1",
        }]))

        assert EFundsExtractor(transport).fetch()[0].is_active is False

    def test_error_status(self, vendor, transport):
        vendor.add_text(EFUNDS_PATH, "error", status_code=500)

        with pytest.raises(VendorFormatError, match="500"):
            EFundsExtractor(transport).fetch()

    def test_row_not_an_object(self, vendor, transport):
        vendor.add_text(EFUNDS_PATH, _page("var __FUND_SUPER_MARKET_DATA__", ["110022"]))

        with pytest.raises(VendorFormatError, match="expected an object"):
            EFundsExtractor(transport).fetch()
