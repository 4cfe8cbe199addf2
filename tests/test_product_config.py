"""
Tests for the product configuration time-to-live
"""
from datetime import datetime, timedelta

from config.product_config import load_product_config, refresh_if_stale
from config.settings import Settings, PRODUCT_CONFIG_TTL_SECONDS

LOADED = datetime(2030, 1, 1, 0, 0, 0)


def _settings(**overrides):
    values = {
        "STRIPE_LIMITED_TIME_PRODUCT_ID": "prod_limited",
        "STRIPE_LIMITED_TIME_PRICE_ID": "price_limited",
        "STRIPE_PRO_PRODUCT_ID": "prod_pro",
        "STRIPE_PRO_PRICE_ID": "price_pro",
    }
    values.update(overrides)
    return Settings(**values)


def test_load_reads_settings():
    config = load_product_config(_settings(), now=LOADED)

    assert config.pro.price_id == "price_pro"
    assert config.limited_time.product_id == "prod_limited"
    assert config.price_ids() == {"price_pro", "price_limited"}
    assert config.ttl_seconds == PRODUCT_CONFIG_TTL_SECONDS == 300


def test_unset_prices_are_skipped():
    config = load_product_config(_settings(STRIPE_LIMITED_TIME_PRICE_ID=None), now=LOADED)

    assert config.price_ids() == {"price_pro"}


def test_fresh_config_is_reused():
    current = load_product_config(_settings(), now=LOADED)

    refreshed = refresh_if_stale(current, _settings(STRIPE_PRO_PRICE_ID="price_new"), now=LOADED + timedelta(minutes=4))

    assert refreshed is current


def test_stale_config_is_reloaded():
    current = load_product_config(_settings(), now=LOADED)
    later = LOADED + timedelta(minutes=5)

    refreshed = refresh_if_stale(current, _settings(STRIPE_PRO_PRICE_ID="price_new"), now=later)

    assert refreshed.pro.price_id == "price_new"
    assert refreshed.loaded_at == later


def test_missing_config_is_loaded():
    assert refresh_if_stale(None, _settings(), now=LOADED).loaded_at == LOADED


def test_public_dict_hides_timestamps():
    data = load_product_config(_settings(), now=LOADED).public_dict()

    assert data == {
        "limited_time": {"product_id": "prod_limited", "price_id": "price_limited"},
        "pro": {"product_id": "prod_pro", "price_id": "price_pro"},
    }
