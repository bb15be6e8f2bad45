"""
HTTP routers over the tenancy core
"""

from schoolhub.api import onboarding, tenants, theme

__all__ = [
    "onboarding",
    "tenants",
    "theme",
]
