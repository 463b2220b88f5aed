"""Fixed-point scales and well-known addresses."""

# 18-decimal fixed point used by Aave for the health factor.
WAD = 10**18

# Basis points denominator (10000 = 100%).
BPS = 10_000

# Health measures at or above this raw value do not fit numeric(38,18) and are
# treated as undefined, as is type(uint256).max returned for debt-free accounts.
HEALTH_MEASURE_LIMIT = 10**38

# Multicall3 is deployed at the same address on every supported chain.
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

DEFAULT_CHAIN_ID = 42161
