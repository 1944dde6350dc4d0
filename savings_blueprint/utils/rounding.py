# PURPOSE: Money rounding helpers for monthly dollar allocations.
# CONTEXT: Used so a set of vehicle amounts sums to the budget to the cent after rounding.

from decimal import Decimal, ROUND_HALF_UP, getcontext

# Enough digits for budgets well into the millions with cents.
getcontext().prec = 28

CENT = Decimal("0.01")


def round_money(x, places=2):
    """
    Round a dollar amount half-up to a fixed number of decimal places.

    parameters:
    - x: float – amount in dollars.
    - places: int – decimal places (default = 2, i.e. cents).

    returns:
    - float – rounded amount.
    """
    q = Decimal(1).scaleb(-places)
    return float(Decimal(str(x)).quantize(q, ROUND_HALF_UP))


def round_allocation(amounts, total, residual_key):
    """
    Round each vehicle amount to cents, then push the rounding residual into one key.

    parameters:
    - amounts: dict – vehicle name -> dollars (unrounded).
    - total: float – the sum the rounded amounts must reach.
    - residual_key: str – vehicle that absorbs the residual (usually the overflow vehicle).

    returns:
    - dict – rounded amounts that sum exactly to round_money(total).

    notes:
    - If the residual key would go negative the residual is taken from the largest amount instead.
    """
    rounded = {k: Decimal(str(v)).quantize(CENT, ROUND_HALF_UP) for k, v in amounts.items()}
    target = Decimal(str(total)).quantize(CENT, ROUND_HALF_UP)
    diff = target - sum(rounded.values(), Decimal(0))
    if diff != 0:
        key = residual_key
        if key not in rounded or rounded[key] + diff < 0:
            key = max(rounded, key=lambda k: rounded[k]) if rounded else None
        if key is not None:
            rounded[key] += diff
    return {k: float(v) for k, v in rounded.items()}
