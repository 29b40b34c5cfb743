# backend/market_sync/services/constants.py
"""
Centralized constants for the sync pipeline and API.

Usage:
    from market_sync.services.constants import US_EXCHANGES, FUND_MARKETS
"""


# =============================================================================
# MARKET / SOURCE CODES
# =============================================================================

# US exchanges served by the Nasdaq screener
US_EXCHANGES: tuple[str, ...] = ("NASDAQ", "NYSE", "AMEX")

US_ETF_MARKET = "US_ETF"

# Shanghai Stock Exchange sub-feeds
SSE_STOCK_MARKET = "SSE_STOCK"
SSE_FUND_MARKET = "SSE_FUND"
SSE_BOND_MARKET = "SSE_BOND"

# Fund-company vendors (market code = vendor code)
NF_FUND_MARKET = "NF_FUND"
BOSERA_MARKET = "BOSERA"
EFUNDS_MARKET = "EFUNDS"
FUND_MARKETS: tuple[str, ...] = (NF_FUND_MARKET, BOSERA_MARKET, EFUNDS_MARKET)

BINANCE_MARKET = "BINANCE"

# Names accepted by sync_source() that map onto registered sources
SOURCE_ALIASES: dict[str, str] = {
    "SSE": SSE_STOCK_MARKET,
}


# =============================================================================
# CRYPTO
# =============================================================================

CRYPTO_QUOTE_ASSET = "USDT"

# Display names for common base assets; unknown assets use the ticker
CRYPTO_NAMES: dict[str, str] = {
    "BTC": "Bitcoin",
    "ETH": "Ethereum",
    "BNB": "Binance Coin",
    "XRP": "Ripple",
    "ADA": "Cardano",
    "SOL": "Solana",
    "DOGE": "Dogecoin",
    "DOT": "Polkadot",
    "MATIC": "Polygon",
    "LTC": "Litecoin",
    "AVAX": "Avalanche",
    "LINK": "Chainlink",
    "ATOM": "Cosmos",
    "UNI": "Uniswap",
    "TRX": "TRON",
    "XLM": "Stellar",
    "ALGO": "Algorand",
    "VET": "VeChain",
    "FIL": "Filecoin",
    "ETC": "Ethereum Classic",
    "XMR": "Monero",
    "THETA": "Theta",
    "ICP": "Internet Computer",
    "FTM": "Fantom",
    "NEAR": "NEAR Protocol",
    "APE": "ApeCoin",
    "SAND": "The Sandbox",
    "MANA": "Decentraland",
    "AXS": "Axie Infinity",
    "SHIB": "Shiba Inu",
}


# =============================================================================
# FX
# =============================================================================

FX_DOMESTIC_CURRENCY = "CNY"
FX_SOURCE = "CHINAMONEY"

# Currencies quoted by the CCPR sheet
SUPPORTED_CURRENCIES: tuple[str, ...] = (
    "USD", "EUR", "JPY", "HKD", "GBP", "AUD", "NZD", "SGD", "CHF", "CAD",
    "MOP", "MYR", "RUB", "ZAR", "KRW", "AED", "SAR", "HUF", "PLN", "DKK",
    "SEK", "NOK", "TRY", "MXN", "THB",
)


# =============================================================================
# QUERY DEFAULTS
# =============================================================================

SEARCH_DEFAULT_LIMIT: int = 50
SEARCH_MAX_LIMIT: int = 200
SYNC_TASKS_DEFAULT_LIMIT: int = 20
CRYPTO_STATS_TOP_LIMIT: int = 20


# =============================================================================
# RATE LIMITING
# =============================================================================

RATE_LIMIT_DEFAULT: str = "100/minute"
RATE_LIMIT_SYNC: str = "5/minute"
RATE_LIMIT_HEALTH: str = "60/minute"
