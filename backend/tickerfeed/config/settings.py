from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tickerfeed.schemas.relay import RelayDescriptor


class FetchSettings(BaseModel):
    attempt_timeout_seconds: float = 4.5
    symbol_concurrency: int = 4
    race_relays: bool = True
    user_agent: str = "Mozilla/5.0 (compatible; tickerfeed/0.1)"


class CacheSettings(BaseModel):
    storage_key: str = "tickerfeed_live_cache_v1"
    max_age_days: float = 7.0
    backend: Literal["file", "redis", "memory"] = "file"
    directory: str = ".tickerfeed-cache"


class RefreshSettings(BaseModel):
    interval_seconds: float = 60.0
    live_window_seconds: float = 180.0
    display_timezone: str = "Europe/Zurich"


class ProviderSettings(BaseModel):
    chart_base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    spot_price_url: str = "https://api.coingecko.com/api/v3/simple/price"


def _default_relays() -> List[RelayDescriptor]:
    return [
        RelayDescriptor(name="allorigins-raw", kind="raw", base_url="https://api.allorigins.win/raw?url="),
        RelayDescriptor(name="jina", kind="path", base_url="https://r.jina.ai/"),
        RelayDescriptor(name="allorigins-get", kind="wrapped", base_url="https://api.allorigins.win/get?url="),
        RelayDescriptor(name="corsproxy", kind="raw", base_url="https://corsproxy.io/?"),
        RelayDescriptor(name="cors-anywhere", kind="path", base_url="https://cors-anywhere.herokuapp.com/"),
    ]


class CatalogSettings(BaseModel):
    # CoinGecko asset id -> ticker shown on the card
    crypto: Dict[str, str] = Field(
        default_factory=lambda: {
            "bitcoin": "BTC",
            "ethereum": "ETH",
            "solana": "SOL",
            "ripple": "XRP",
            "binancecoin": "BNB",
            "dogecoin": "DOGE",
            "toncoin": "TON",
            "tron": "TRX",
            "avalanche-2": "AVAX",
            "chainlink": "LINK",
        }
    )
    equities: List[str] = Field(
        default_factory=lambda: [
            "AAPL", "MSFT", "NVDA", "TSLA", "META", "GOOGL",
            "NFLX", "AMZN", "NKE", "KO", "MCD", "DIS",
            "JPM", "JNJ", "V", "UNH", "BRK-B", "PFE",
        ]
    )
    indices: Dict[str, str] = Field(
        default_factory=lambda: {
            "^GSPC": "S&P 500",
            "^IXIC": "US 100 (Nasdaq)",
            "^DJI": "Dow Jones",
            "^GDAXI": "DAX",
            "^FTSE": "FTSE 100",
            "^N225": "Nikkei 225",
            "^STOXX50E": "Euro Stoxx 50",
            "^SSMI": "SMI",
            "^HSI": "Hang Seng",
        }
    )
    commodities: Dict[str, str] = Field(
        default_factory=lambda: {
            "GC=F": "Gold",
            "SI=F": "Silber",
            "PL=F": "Platin",
            "PA=F": "Palladium",
            "CL=F": "WTI Crude Oil",
            "BZ=F": "Brent Crude Oil",
            "NG=F": "Natural Gas",
            "RB=F": "Gasoline",
            "ZW=F": "Weizen",
            "ZS=F": "Sojabohnen",
            "KC=F": "Kaffee",
            "SB=F": "Zucker",
            "LE=F": "Lebendvieh",
            "HG=F": "Kupfer",
        }
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TICKERFEED_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "TICKERFEED_REDIS_URL"),
    )

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    relays: List[RelayDescriptor] = Field(default_factory=_default_relays)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)


settings = Settings()
