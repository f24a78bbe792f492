"""Pure parsing functions for Aave position data: no I/O.

Every source scales raw fixed-point integers the same way,
``display = raw / 10**decimals``. On-chain totals are in the market's base
currency (USD with 8 decimals on v3); subgraph totals and prices are in ETH
(wei, 18 decimals).
Malformed input raises ``ValueError``/``TypeError``/``KeyError``; adapters turn
those into ``DataFormatError``.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Context, Decimal
from typing import Any, Sequence

from ...models import (
    HEALTH_FACTOR_UNAVAILABLE,
    BorrowedAsset,
    LiquidationRisk,
    Position,
    PositionQuery,
    SourceType,
)

WAD_DECIMALS = 18
BPS_DECIMALS = 4
ETH_DECIMALS = 18
LTV_PLACES = Decimal("0.00000001")
MAX_UINT256 = 2**256 - 1

# uint256 has 78 digits; keep every one of them.
_CTX = Context(prec=100)


@dataclass(frozen=True)
class AccountSnapshot:
    """Source-independent view of one account before it becomes a Position."""

    collateral: str | None
    debt: str | None
    health_factor: str
    liquidation_risk: LiquidationRisk | None = None
    borrowed_assets: tuple[BorrowedAsset, ...] = ()


def to_int(value: Any) -> int:
    """Parse a raw on-chain integer given as int or decimal string."""
    if isinstance(value, bool):
        raise TypeError("boolean is not an amount")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip(), 10)
    raise TypeError(f"expected integer amount, got {type(value).__name__}")


def format_decimal(value: Decimal) -> str:
    """Plain decimal string: no exponent, no trailing zeros."""
    if value == 0:
        return "0"
    return format(value.normalize(_CTX), "f")


def scale_units(raw: int, decimals: int) -> str:
    """Convert a fixed-point integer to a display string.

    Examples:
        scale_units(1500000, 6) → "1.5"
        scale_units(10**18, 18) → "1"
    """
    if decimals < 0:
        raise ValueError("decimals must not be negative")
    return format_decimal(Decimal(raw).scaleb(-decimals, _CTX))


def format_health_factor(raw: int) -> str:
    """WAD health factor; uint256 max (no debt) has no meaningful value."""
    if raw >= MAX_UINT256:
        return HEALTH_FACTOR_UNAVAILABLE
    return scale_units(raw, WAD_DECIMALS)


def compute_ltv(collateral_raw: int, debt_raw: int) -> str:
    """Current loan-to-value as a fraction, e.g. "0.5"."""
    if debt_raw == 0:
        return "0"
    if collateral_raw == 0:
        return "N/A"
    ratio = (Decimal(debt_raw) / Decimal(collateral_raw)).quantize(LTV_PLACES, context=_CTX)
    return format_decimal(ratio)


def has_position(collateral_raw: int, debt_raw: int) -> bool:
    return collateral_raw > 0 or debt_raw > 0


def build_borrowed_asset(
    symbol: str,
    debt_raw: int,
    decimals: int,
    price_raw: int,
    base_decimals: int,
) -> BorrowedAsset:
    """Borrowed reserve valued in the market's base currency.

    value_raw = debt_raw * price_raw / 10^decimals  (base currency units)
    """
    value_raw = debt_raw * price_raw // (10**decimals)
    return BorrowedAsset(
        symbol=symbol,
        amount=scale_units(debt_raw, decimals),
        value_in_base_currency=scale_units(value_raw, base_decimals),
    )


# ---------------------------------------------------------------------------
# On-chain payloads
# ---------------------------------------------------------------------------


def parse_account_data(account: Sequence[Any], base_decimals: int) -> AccountSnapshot | None:
    """Parse ``Pool.getUserAccountData`` output.

    Returns ``None`` when the account holds neither collateral nor debt.
    """
    if len(account) != 6:
        raise ValueError(f"expected 6 account fields, got {len(account)}")
    collateral_raw, debt_raw, _, threshold_raw, _, health_raw = (to_int(v) for v in account)

    if not has_position(collateral_raw, debt_raw):
        return None

    return AccountSnapshot(
        collateral=scale_units(collateral_raw, base_decimals),
        debt=scale_units(debt_raw, base_decimals),
        health_factor=format_health_factor(health_raw),
        liquidation_risk=LiquidationRisk(
            threshold=scale_units(threshold_raw, BPS_DECIMALS),
            current_ltv=compute_ltv(collateral_raw, debt_raw),
        ),
    )


def reserve_debt(reserve_data: Sequence[Any]) -> int:
    """Stable + variable debt from ``getUserReserveData`` output."""
    return to_int(reserve_data[1]) + to_int(reserve_data[2])


# ---------------------------------------------------------------------------
# Subgraph payloads
# ---------------------------------------------------------------------------


def parse_subgraph_reserve(entry: dict[str, Any]) -> BorrowedAsset | None:
    """Borrowed asset from one ``userReserves`` entry valued in ETH, ``None`` if no debt."""
    debt_raw = to_int(entry.get("currentStableDebt", 0)) + to_int(
        entry.get("currentVariableDebt", 0)
    )
    if debt_raw == 0:
        return None

    reserve = entry["reserve"]
    decimals = to_int(reserve["decimals"])
    price_raw = to_int((reserve.get("price") or {}).get("priceInEth", 0))
    return build_borrowed_asset(
        reserve.get("symbol", "UNKNOWN"), debt_raw, decimals, price_raw, ETH_DECIMALS
    )


def parse_subgraph_positions(data: dict[str, Any]) -> AccountSnapshot | None:
    """Parse a ``GetUserPositions`` response.

    Without a ``user`` entity the account totals are unknown, so collateral
    and debt stay ``None`` while per-reserve debt is still reported. Returns
    ``None`` when there is nothing at all to report.
    """
    user = data.get("user")
    reserves = data.get("userReserves") or []
    if not isinstance(reserves, list):
        raise TypeError("userReserves must be a list")

    borrowed = tuple(
        asset
        for asset in (parse_subgraph_reserve(r) for r in reserves)
        if asset is not None
    )

    if user is None:
        has_supply = any(to_int(r.get("currentATokenBalance", 0)) > 0 for r in reserves)
        if not borrowed and not has_supply:
            return None
        return AccountSnapshot(
            collateral=None,
            debt=None,
            health_factor=HEALTH_FACTOR_UNAVAILABLE,
            borrowed_assets=borrowed,
        )

    collateral_raw = to_int(user["totalCollateralETH"])
    debt_raw = to_int(user["totalDebtETH"])
    if not has_position(collateral_raw, debt_raw):
        return None

    health_raw = user.get("healthFactor")
    health_factor = (
        format_health_factor(to_int(health_raw))
        if health_raw is not None
        else HEALTH_FACTOR_UNAVAILABLE
    )
    return AccountSnapshot(
        collateral=scale_units(collateral_raw, ETH_DECIMALS),
        debt=scale_units(debt_raw, ETH_DECIMALS),
        health_factor=health_factor,
        borrowed_assets=borrowed,
    )


def to_position(
    snapshot: AccountSnapshot,
    query: PositionQuery,
    source: SourceType,
    timestamp: int,
) -> Position:
    return Position(
        protocol=query.protocol,
        network=query.network,
        user_address=query.user_address.lower(),
        collateral=snapshot.collateral,
        debt=snapshot.debt,
        health_factor=snapshot.health_factor,
        timestamp=timestamp,
        liquidation_risk=snapshot.liquidation_risk,
        borrowed_assets=snapshot.borrowed_assets,
        period_start=query.from_timestamp,
        period_end=query.to_timestamp,
        source=source,
    )
