"""
DineIn Core Primitives
========================
Engine-agnostic building blocks shared by every DineIn engine.

Primitives are:
- Pure Python (no Django dependency)
- Deterministic (same input → same output)

Primitives:
    money: Decimal money arithmetic, percent and inclusive-rate helpers
"""

from core.primitives.money import (
    ZERO,
    MoneyLike,
    money_str,
    money_sum,
    quantize,
    to_money,
)

__all__ = ["ZERO", "MoneyLike", "money_str", "money_sum", "quantize", "to_money"]
