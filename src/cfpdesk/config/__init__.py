from .settings import CfpSettings, CouponPolicy

__all__ = ["CfpSettings", "CouponPolicy"]
