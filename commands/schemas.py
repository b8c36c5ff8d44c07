from pydantic import BaseModel, Field, field_validator

from tracking.database import Direction

# keeps "portfolio;INDEX;SYMBOL;PERIOD" under Telegram's 64-byte callback_data limit
MAX_SYMBOL_LENGTH = 20


def normalize_symbol(v: str) -> str:
    v = v.strip().upper()
    if not v:
        raise ValueError("symbol must not be empty")
    if len(v) > MAX_SYMBOL_LENGTH:
        raise ValueError(f"symbol must be at most {MAX_SYMBOL_LENGTH} characters")
    return v


class WatchRequest(BaseModel):
    """
    Arguments of /watch add and /watch update.
    """
    symbol: str = Field(..., description="Stock symbol (e.g., AAPL)")
    price_target: float = Field(..., gt=0, description="Price that triggers the alert")
    direction: Direction = Field(Direction.ABOVE, description="Side of the target to watch")

    @field_validator('symbol')
    @classmethod
    def symbol_must_be_upper(cls, v: str) -> str:
        return normalize_symbol(v)

    @field_validator('direction', mode='before')
    @classmethod
    def direction_must_be_lower(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class PortfolioRequest(BaseModel):
    """
    Arguments of /portfolio add and /portfolio update.
    """
    symbol: str = Field(..., description="Stock symbol (e.g., AAPL)")
    shares: float = Field(..., gt=0, description="Number of shares held")

    @field_validator('symbol')
    @classmethod
    def symbol_must_be_upper(cls, v: str) -> str:
        return normalize_symbol(v)
