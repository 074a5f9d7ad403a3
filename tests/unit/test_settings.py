import pytest

from cfpdesk.application.services.coupon import COUPON_PREFIX, build_coupon, generate_coupon_code
from cfpdesk.config.settings import CfpSettings, CouponPolicy


def test_defaults_without_env(monkeypatch):
    for name in ("CFPDESK_DB_URL", "CFPDESK_DISPATCH_INTERVAL_SECONDS", "CFPDESK_TALKS_TOTAL"):
        monkeypatch.delenv(name, raising=False)

    settings = CfpSettings.from_env()

    assert settings.db_url is None
    assert settings.dispatch_interval_seconds == 30
    assert settings.coupon == CouponPolicy()
    assert settings.lock_reviews_after_decision is False
    assert settings.talks_total == 0


def test_from_env_reads_overrides(monkeypatch):
    monkeypatch.setenv("CFPDESK_DB_URL", "sqlite:///tmp/x.db")
    monkeypatch.setenv("CFPDESK_COUPON_MAX_PERCENT", "50")
    monkeypatch.setenv("CFPDESK_DISPATCH_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("CFPDESK_LOCK_REVIEWS_AFTER_DECISION", "yes")
    monkeypatch.setenv("CFPDESK_PUBLIC_BASE_URL", "https://example.org/")
    monkeypatch.setenv("CFPDESK_TALKS_FROM_CFP", "12")

    settings = CfpSettings.from_env()

    assert settings.db_url == "sqlite:///tmp/x.db"
    assert settings.coupon.max_discount_percent == 50
    assert settings.dispatch_interval_seconds == 15
    assert settings.lock_reviews_after_decision is True
    assert settings.public_base_url == "https://example.org"
    assert settings.talks_from_cfp == 12


@pytest.mark.parametrize("value", ["7", "0", "abc"])
def test_dispatch_interval_must_divide_a_minute(monkeypatch, value):
    monkeypatch.setenv("CFPDESK_DISPATCH_INTERVAL_SECONDS", value)
    with pytest.raises(ValueError):
        CfpSettings.from_env()


def test_inverted_coupon_bounds_rejected(monkeypatch):
    monkeypatch.setenv("CFPDESK_COUPON_MIN_PERCENT", "60")
    monkeypatch.setenv("CFPDESK_COUPON_MAX_PERCENT", "40")
    with pytest.raises(ValueError):
        CfpSettings.from_env()


def test_coupon_policy_clamps():
    policy = CouponPolicy()
    assert policy.clamp_discount(None) == 20
    assert policy.clamp_discount(1) == 5
    assert policy.clamp_discount(99) == 80
    assert policy.clamp_validity(None) == 30
    assert policy.clamp_validity(3) == 7
    assert policy.clamp_validity(365) == 90


def test_generate_coupon_code_shape():
    code = generate_coupon_code()
    assert code.startswith(COUPON_PREFIX)
    assert len(code) == len(COUPON_PREFIX) + 6
    assert code[len(COUPON_PREFIX):].isalnum()
    assert code.upper() == code


def test_build_coupon_only_with_discount(clock):
    policy = CouponPolicy()
    assert build_coupon(policy, now=clock.now(), discount_percent=None) is None
    assert build_coupon(policy, now=clock.now(), discount_percent=0) is None

    coupon = build_coupon(policy, now=clock.now(), discount_percent=25, validity_days=10)
    assert coupon.discount_percent == 25
    assert coupon.validity_days == 10


def test_claim_ttl_must_outlast_transport_timeout(monkeypatch):
    monkeypatch.setenv("CFPDESK_CLAIM_TTL_MINUTES", "1")
    monkeypatch.setenv("CFPDESK_TRANSPORT_TIMEOUT_SECONDS", "60")
    with pytest.raises(ValueError):
        CfpSettings.from_env()

    monkeypatch.setenv("CFPDESK_TRANSPORT_TIMEOUT_SECONDS", "59")
    settings = CfpSettings.from_env()
    assert settings.claim_ttl_minutes == 1
    assert settings.transport_timeout_seconds == 59
