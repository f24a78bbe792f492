"""GraphQL documents for the Aave subgraph."""

# Amounts are raw integers: balances in token units, prices and totals in the
# market's base currency units, health factor in WAD.
GET_USER_POSITIONS = """
query GetUserPositions($userAddress: String!) {
  userReserves(where: { user: $userAddress }) {
    currentATokenBalance
    currentStableDebt
    currentVariableDebt
    reserve {
      symbol
      decimals
      price {
        priceInEth
      }
    }
  }
  user(id: $userAddress) {
    healthFactor
    totalCollateralETH
    totalDebtETH
  }
}
"""
