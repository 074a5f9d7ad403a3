"""Thank-you coupons attached to rejection emails."""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from cfpdesk.config.settings import CouponPolicy
from cfpdesk.domain.scheduled_email import Coupon

COUPON_PREFIX = "CFPTHX"
_ALPHABET = string.ascii_uppercase + string.digits


def generate_coupon_code(length: int = 6) -> str:
    return COUPON_PREFIX + "".join(secrets.choice(_ALPHABET) for _ in range(length))


def build_coupon(
    policy: CouponPolicy,
    *,
    now: datetime,
    discount_percent: Optional[int],
    validity_days: Optional[int] = None,
) -> Optional[Coupon]:
    """
    Build a coupon if a discount was requested.

    Discount and validity are clamped to the policy bounds; a missing validity falls
    back to the policy default before clamping.
    """
    if not discount_percent:
        return None
    days = policy.clamp_validity(validity_days)
    return Coupon(
        code=generate_coupon_code(),
        discount_percent=policy.clamp_discount(discount_percent),
        validity_days=days,
        expires_at=now + timedelta(days=days),
    )
