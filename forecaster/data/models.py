from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional

class PricePoint(BaseModel):
    timestamp: datetime
    price: float
    volume: float = 0.0

class CoinInfo(BaseModel):
    name: str = "Bitcoin"
    ticker: str = "BTC"
    rank: int = 1

class MarketSnapshot(BaseModel):
    """Everything fetched upstream before a synthesis run starts."""
    coin_id: str
    series: List[PricePoint]
    market_cap: float = 1e9
    info: CoinInfo = CoinInfo()

    @property
    def prices(self) -> List[float]:
        return [p.price for p in self.series]

    @property
    def volumes(self) -> List[float]:
        return [p.volume or 0.0 for p in self.series]

    @property
    def current_price(self) -> Optional[float]:
        return self.series[-1].price if self.series else None

class ApiModel(BaseModel):
    """Snake-case attributes, camelCase JSON (the public payload shape)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
