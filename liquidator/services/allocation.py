"""Pro-rata allocation of a liquidation target across selected holdings.

Pure functions only: no I/O, no hidden state.
"""
from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from ..models import AllocatedToken, TokenHolding

T = TypeVar("T", TokenHolding, AllocatedToken)


def allocate(
    selected: Sequence[TokenHolding],
    total_selected_value: float,
    liquidation_fraction: float,
    output_mint: str | None = None,
) -> list[AllocatedToken]:
    """Split ``total_selected_value * liquidation_fraction`` by value share.

    When ``output_mint`` is among the selected holdings it is dropped (an
    asset cannot be swapped into itself) and the total is recomputed over
    the remaining holdings.
    """
    if not 0.0 <= liquidation_fraction <= 1.0:
        raise ValueError(
            f"liquidation_fraction must be within [0, 1], got {liquidation_fraction}"
        )

    base = list(selected)
    if output_mint is not None and any(h.mint == output_mint for h in base):
        base = [h for h in base if h.mint != output_mint]
        total_selected_value = sum(h.value for h in base)

    target = total_selected_value * liquidation_fraction

    allocations: list[AllocatedToken] = []
    for holding in base:
        share = holding.value / total_selected_value if total_selected_value > 0 else 0.0
        token_value = target * share
        swap_amount = token_value / holding.price if holding.price > 0 else 0.0
        swap_amount = max(0.0, min(swap_amount, holding.ui_amount))

        allocations.append(
            AllocatedToken(
                mint=holding.mint,
                symbol=holding.symbol,
                name=holding.name,
                decimals=holding.decimals,
                price=holding.price,
                value=holding.value,
                swap_amount=swap_amount,
                percentage=share * 100,
                liquidation_value=token_value,
                original_amount=holding.ui_amount,
                source_wallet=holding.source_wallet,
            )
        )
    return allocations


def fraction_for_usd_amount(amount: float, total_selected_value: float) -> float:
    """Fixed-dollar mode: the fraction that liquidates ``amount`` USD, capped at 1."""
    if total_selected_value <= 0 or amount <= 0:
        return 0.0
    return min(amount, total_selected_value) / total_selected_value


def executable(
    allocations: Iterable[AllocatedToken],
    min_amount: float = 0.000001,
    min_value: float = 0.01,
) -> list[AllocatedToken]:
    """Drop dust allocations that are not worth a transaction."""
    return [
        a for a in allocations
        if a.swap_amount > min_amount and a.liquidation_value > min_value
    ]


def sort_by_value(items: Iterable[T]) -> list[T]:
    """Descending by USD value."""
    return sorted(items, key=lambda item: item.value, reverse=True)
