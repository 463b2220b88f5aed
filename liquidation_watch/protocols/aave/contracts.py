"""Aave V3 contract function descriptors used by the watcher."""
from ...chains.evm.abi import AbiFunction

# Pool
GET_USER_ACCOUNT_DATA = AbiFunction(
    "getUserAccountData",
    inputs=("address",),
    outputs=("uint256",) * 6,
)
GET_RESERVES_LIST = AbiFunction("getReservesList", outputs=("address[]",))
GET_CONFIGURATION = AbiFunction(
    "getConfiguration", inputs=("address",), outputs=("(uint256)",)
)
GET_USER_CONFIGURATION = AbiFunction(
    "getUserConfiguration", inputs=("address",), outputs=("(uint256)",)
)

# PoolDataProvider
GET_USER_RESERVE_DATA = AbiFunction(
    "getUserReserveData",
    inputs=("address", "address"),
    outputs=(
        "uint256",  # currentATokenBalance
        "uint256",  # currentStableDebt
        "uint256",  # currentVariableDebt
        "uint256",  # principalStableDebt
        "uint256",  # scaledVariableDebt
        "uint256",  # stableBorrowRate
        "uint256",  # liquidityRate
        "uint40",  # stableRateLastUpdated
        "bool",  # usageAsCollateralEnabled
    ),
)

# AaveOracle
GET_ASSETS_PRICES = AbiFunction(
    "getAssetsPrices", inputs=("address[]",), outputs=("uint256[]",)
)
BASE_CURRENCY_UNIT = AbiFunction("BASE_CURRENCY_UNIT", outputs=("uint256",))

# ERC-20 metadata
ERC20_SYMBOL = AbiFunction("symbol", outputs=("string",))
