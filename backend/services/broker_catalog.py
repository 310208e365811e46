"""Static catalog of asset types, link options and supported brokers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AssetType:
    id: str
    name: str
    linkable: bool = False  # Can be imported from a linked account
    manual_form: str = "investments"  # Entry form used for manual entry


@dataclass(frozen=True)
class LinkOption:
    id: str
    name: str
    description: str


@dataclass(frozen=True)
class BrokerCategory:
    id: str
    name: str
    noun: str  # What one entry of the category is called ("Broker", "Exchange", ...)


@dataclass(frozen=True)
class Broker:
    id: str
    name: str
    country: str


ASSET_TYPES: list[AssetType] = [
    AssetType("stocks", "Stocks", linkable=True, manual_form="stock-search"),
    AssetType("crypto", "Crypto", linkable=True, manual_form="crypto-search"),
    AssetType("homes", "Homes", manual_form="real-estate"),
    AssetType("cars", "Cars", manual_form="car-search"),
    AssetType("metals", "Precious Metals", manual_form="metals"),
    AssetType("domains", "Domains"),
    AssetType("cash", "Cash", manual_form="cash"),
    AssetType("manually", "Manually"),
]

LINK_OPTIONS: list[LinkOption] = [
    LinkOption("link", "Securely Link Accounts", "Connect your investment accounts via SnapTrade"),
    LinkOption("manual", "Enter Manually", "Add holdings by entering information manually"),
]

BROKER_CATEGORIES: list[BrokerCategory] = [
    BrokerCategory("traditional", "Traditional Brokers", "Broker"),
    BrokerCategory("crypto", "Crypto Exchanges", "Exchange"),
    BrokerCategory("other", "Other Platforms", "Platform"),
]

BROKERS_BY_CATEGORY: dict[str, list[Broker]] = {
    "traditional": [
        Broker("ajbell", "AJ Bell", "UK"),
        Broker("bux", "BUX", "Netherlands"),
        Broker("commsec", "CommSec", "Australia"),
        Broker("alpaca", "Alpaca", "US"),
        Broker("chase", "Chase", "US"),
        Broker("etrade", "E*TRADE", "US"),
        Broker("fidelity", "Fidelity", "US"),
        Broker("ibkr", "Interactive Brokers", "US"),
        Broker("questrade", "Questrade", "Canada"),
        Broker("robinhood", "Robinhood", "US"),
        Broker("schwab", "Schwab", "US"),
        Broker("tradestation", "TradeStation", "US"),
        Broker("trading212", "Trading 212", "Netherlands"),
        Broker("vanguard", "Vanguard", "US"),
        Broker("wellsfargo", "Wells Fargo", "US"),
        Broker("wealthsimple", "Wealthsimple", "Canada"),
    ],
    "crypto": [
        Broker("binance", "Binance", "Global"),
        Broker("coinbase", "Coinbase", "US"),
        Broker("kraken", "Kraken", "US"),
        Broker("unocoin", "Unocoin", "India"),
    ],
    "other": [
        Broker("public", "Public", "US"),
        Broker("upstox", "Upstox", "India"),
        Broker("zerodha", "Zerodha", "India"),
    ],
}


def get_asset_type(asset_type_id: str) -> AssetType | None:
    return next((t for t in ASSET_TYPES if t.id == asset_type_id), None)


def get_category(category_id: str) -> BrokerCategory | None:
    return next((c for c in BROKER_CATEGORIES if c.id == category_id), None)


def get_brokers(category_id: str) -> list[Broker]:
    """Brokers in a category (empty for unknown categories)."""
    return list(BROKERS_BY_CATEGORY.get(category_id, []))


def find_broker(category_id: str, broker_id: str) -> Broker | None:
    return next((b for b in get_brokers(category_id) if b.id == broker_id), None)
