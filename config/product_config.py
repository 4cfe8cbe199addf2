"""
Stripe product configuration with an explicit time-to-live.

The value is held by the caller (the FastAPI app keeps it on ``app.state``)
and rebuilt from settings once it goes stale.
"""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from pydantic import BaseModel

from config.settings import PRODUCT_CONFIG_TTL_SECONDS, Settings, settings


class ProductPrice(BaseModel):
    product_id: Optional[str] = None
    price_id: Optional[str] = None


class ProductConfig(BaseModel):
    limited_time: ProductPrice
    pro: ProductPrice
    loaded_at: datetime
    ttl_seconds: int = PRODUCT_CONFIG_TTL_SECONDS

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return now - self.loaded_at >= timedelta(seconds=self.ttl_seconds)

    def price_ids(self) -> set[str]:
        """Configured price IDs, skipping unset ones"""
        return {p.price_id for p in (self.limited_time, self.pro) if p.price_id}

    def public_dict(self) -> dict:
        return {
            "limited_time": self.limited_time.model_dump(),
            "pro": self.pro.model_dump(),
        }


def load_product_config(source: Settings, now: Optional[datetime] = None) -> ProductConfig:
    """Build a fresh ProductConfig from settings"""
    return ProductConfig(
        limited_time=ProductPrice(
            product_id=source.stripe_limited_time_product_id,
            price_id=source.stripe_limited_time_price_id,
        ),
        pro=ProductPrice(
            product_id=source.stripe_pro_product_id,
            price_id=source.stripe_pro_price_id,
        ),
        loaded_at=now or datetime.utcnow(),
    )


def refresh_if_stale(current: Optional[ProductConfig], source: Settings, now: Optional[datetime] = None) -> ProductConfig:
    if current is None or current.is_stale(now):
        return load_product_config(source, now)
    return current


async def current_product_config(request: Request) -> ProductConfig:
    """FastAPI dependency: return the app's product config, reloading it on expiry"""
    app_state = request.app.state
    config = refresh_if_stale(getattr(app_state, "product_config", None), settings)
    app_state.product_config = config
    return config
