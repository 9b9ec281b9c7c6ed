"""
DineIn Django HTTP adapter.
Thin framework glue over DineInApi.
"""

from adapters.django_api.wiring import get_api, reset_api

__all__ = [
    "get_api",
    "reset_api",
]
