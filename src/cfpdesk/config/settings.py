"""
Runtime configuration for cfpdesk.

All values come from environment variables (``CFPDESK_*``); entry points load a local
``.env`` first via python-dotenv.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


@dataclass(frozen=True)
class CouponPolicy:
    """Bounds for the thank-you coupon attached to rejection emails."""

    default_discount_percent: int = 20
    min_discount_percent: int = 5
    max_discount_percent: int = 80
    default_validity_days: int = 30
    min_validity_days: int = 7
    max_validity_days: int = 90

    def clamp_discount(self, percent: Optional[int]) -> int:
        if not percent:
            return self.default_discount_percent
        return max(self.min_discount_percent, min(self.max_discount_percent, int(percent)))

    def clamp_validity(self, days: Optional[int]) -> int:
        value = int(days) if days else self.default_validity_days
        return max(self.min_validity_days, min(self.max_validity_days, value))


@dataclass(frozen=True)
class CfpSettings:
    db_url: Optional[str] = None
    coupon: CouponPolicy = CouponPolicy()
    transport_timeout_seconds: int = 15
    dispatch_interval_seconds: int = 30
    dispatch_batch_size: int = 100
    claim_ttl_minutes: int = 10
    lock_reviews_after_decision: bool = False
    conference_name: str = "ZurichJS Conference 2026"
    conference_date: str = "September 27, 2026"
    public_base_url: str = "https://conf.zurichjs.com"
    # Selection context quoted in rejection emails; 0 leaves a line out.
    talks_total: int = 0
    talks_from_cfp: int = 0
    workshop_slots_min: int = 0
    workshop_slots_max: int = 0

    @classmethod
    def from_env(cls) -> "CfpSettings":
        coupon = CouponPolicy(
            default_discount_percent=_env_int("CFPDESK_COUPON_DEFAULT_PERCENT", 20),
            min_discount_percent=_env_int("CFPDESK_COUPON_MIN_PERCENT", 5),
            max_discount_percent=_env_int("CFPDESK_COUPON_MAX_PERCENT", 80),
            default_validity_days=_env_int("CFPDESK_COUPON_DEFAULT_DAYS", 30),
            min_validity_days=_env_int("CFPDESK_COUPON_MIN_DAYS", 7),
            max_validity_days=_env_int("CFPDESK_COUPON_MAX_DAYS", 90),
        )
        if coupon.min_discount_percent > coupon.max_discount_percent:
            raise ValueError("CFPDESK_COUPON_MIN_PERCENT must not exceed CFPDESK_COUPON_MAX_PERCENT")
        if coupon.min_validity_days > coupon.max_validity_days:
            raise ValueError("CFPDESK_COUPON_MIN_DAYS must not exceed CFPDESK_COUPON_MAX_DAYS")

        interval = _env_int("CFPDESK_DISPATCH_INTERVAL_SECONDS", 30)
        if interval <= 0 or 60 % interval != 0:
            raise ValueError("CFPDESK_DISPATCH_INTERVAL_SECONDS must be a divisor of 60")

        timeout = max(1, _env_int("CFPDESK_TRANSPORT_TIMEOUT_SECONDS", 15))
        claim_ttl = max(1, _env_int("CFPDESK_CLAIM_TTL_MINUTES", 10))
        if claim_ttl * 60 <= timeout:
            raise ValueError(
                "CFPDESK_CLAIM_TTL_MINUTES must outlast CFPDESK_TRANSPORT_TIMEOUT_SECONDS"
            )

        return cls(
            db_url=os.getenv("CFPDESK_DB_URL") or None,
            coupon=coupon,
            transport_timeout_seconds=timeout,
            dispatch_interval_seconds=interval,
            dispatch_batch_size=max(1, _env_int("CFPDESK_DISPATCH_BATCH_SIZE", 100)),
            claim_ttl_minutes=claim_ttl,
            lock_reviews_after_decision=_env_bool("CFPDESK_LOCK_REVIEWS_AFTER_DECISION"),
            conference_name=os.getenv("CFPDESK_CONFERENCE_NAME", "ZurichJS Conference 2026"),
            conference_date=os.getenv("CFPDESK_CONFERENCE_DATE", "September 27, 2026"),
            public_base_url=os.getenv(
                "CFPDESK_PUBLIC_BASE_URL", "https://conf.zurichjs.com"
            ).rstrip("/"),
            talks_total=max(0, _env_int("CFPDESK_TALKS_TOTAL", 0)),
            talks_from_cfp=max(0, _env_int("CFPDESK_TALKS_FROM_CFP", 0)),
            workshop_slots_min=max(0, _env_int("CFPDESK_WORKSHOP_SLOTS_MIN", 0)),
            workshop_slots_max=max(0, _env_int("CFPDESK_WORKSHOP_SLOTS_MAX", 0)),
        )
