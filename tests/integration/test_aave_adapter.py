"""Integration tests for the Aave V3 adapter against an in-memory chain."""
from __future__ import annotations

from typing import Callable

import pytest
from eth_abi import decode, encode

from liquidation_watch.chains.evm.multicall import MulticallBatcher
from liquidation_watch.config import ContractsConfig
from liquidation_watch.protocols.aave import AaveV3Adapter
from liquidation_watch.protocols.aave import contracts as c

from conftest import DATA_PROVIDER, MULTICALL, ORACLE, POOL, USDC, USER, USER_2, WBTC, WETH

Handler = Callable[[tuple], bytes | None]


def _config_word(threshold: int, bonus: int, decimals: int) -> int:
    return 8000 | threshold << 16 | bonus << 32 | decimals << 48 | 1 << 56


class FakeChain:
    """Answers eth_call by (target, selector); Multicall3 is emulated."""

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, bytes], tuple[c.AbiFunction, Handler]] = {}
        self.direct_calls = 0
        self.multicalls = 0

    def on(self, target: str, fn, handler: Handler) -> None:
        self._handlers[(target.lower(), fn.selector)] = (fn, handler)

    def _dispatch(self, to: str, data: bytes) -> bytes | None:
        fn, handler = self._handlers[(to.lower(), data[:4])]
        args = decode(list(fn.inputs), data[4:]) if fn.inputs else ()
        return handler(tuple(args))

    async def eth_call(self, to: str, data: bytes) -> bytes:
        if to.lower() == MULTICALL:
            self.multicalls += 1
            (calls,) = decode(["(address,bool,bytes)[]"], data[4:])
            results = []
            for target, _allow_failure, call_data in calls:
                ret = self._dispatch(target, call_data)
                results.append((ret is not None, ret or b""))
            return encode(["(bool,bytes)[]"], [results])
        self.direct_calls += 1
        ret = self._dispatch(to, data)
        assert ret is not None
        return ret


@pytest.fixture()
def chain() -> FakeChain:
    chain = FakeChain()
    reserves = [WETH, USDC, WBTC]
    configs = {
        WETH: _config_word(8250, 10500, 18),
        USDC: _config_word(8600, 10450, 6),
        WBTC: _config_word(7800, 10650, 8),
    }
    prices = {WETH: 2000 * 10**8, USDC: 10**8, WBTC: 40_000 * 10**8}
    user_reserves = {
        (WETH, USER): (3 * 10**18, 0, 0, True),
        (USDC, USER): (0, 100, 4_000 * 10**6, False),
    }

    chain.on(POOL, c.GET_RESERVES_LIST, lambda args: encode(["address[]"], [reserves]))
    chain.on(
        POOL,
        c.GET_CONFIGURATION,
        lambda args: encode(["(uint256)"], [(configs[args[0].lower()],)]),
    )
    # USER: WETH collateral, USDC borrowed, WBTC collateral flag set
    bitmaps = {USER: (1 << 1) | (1 << 2) | (1 << 5), USER_2: 0}
    chain.on(
        POOL,
        c.GET_USER_CONFIGURATION,
        lambda args: encode(["(uint256)"], [(bitmaps[args[0].lower()],)]),
    )

    def user_reserve(args: tuple) -> bytes | None:
        key = (args[0].lower(), args[1].lower())
        if key not in user_reserves:
            return None  # revert
        a_balance, stable, variable, usage = user_reserves[key]
        return encode(
            ["uint256"] * 7 + ["uint40", "bool"],
            [a_balance, stable, variable, 0, 0, 0, 0, 0, usage],
        )

    chain.on(DATA_PROVIDER, c.GET_USER_RESERVE_DATA, user_reserve)

    def account_data(args: tuple) -> bytes | None:
        user = args[0].lower()
        if user == USER:
            return encode(["uint256"] * 6, [6000 * 10**8, 4000 * 10**8, 0, 8250, 8000, 980_000_000_000_000_000])
        if user == USER_2:
            return encode(["uint256"] * 6, [100, 0, 80, 8250, 8000, 2**256 - 1])
        return None

    chain.on(POOL, c.GET_USER_ACCOUNT_DATA, account_data)
    chain.on(
        ORACLE,
        c.GET_ASSETS_PRICES,
        lambda args: encode(["uint256[]"], [[prices[a.lower()] for a in args[0]]]),
    )
    chain.on(ORACLE, c.BASE_CURRENCY_UNIT, lambda args: encode(["uint256"], [10**8]))
    symbols = {WETH: "WETH", USDC: "USDC"}
    chain.on(WETH, c.ERC20_SYMBOL, lambda args: encode(["string"], [symbols[WETH]]))
    chain.on(USDC, c.ERC20_SYMBOL, lambda args: encode(["string"], [symbols[USDC]]))
    chain.on(WBTC, c.ERC20_SYMBOL, lambda args: None)
    return chain


@pytest.fixture()
def adapter(chain: FakeChain) -> AaveV3Adapter:
    contracts = ContractsConfig(
        pool=POOL, pool_data_provider=DATA_PROVIDER, oracle=ORACLE, multicall3=MULTICALL
    )
    return AaveV3Adapter(chain, MulticallBatcher(chain, MULTICALL), contracts)


class TestAccountSnapshots:
    @pytest.mark.asyncio
    async def test_batch_keeps_order_and_nulls_failures(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        unknown = "0x" + "cc" * 20
        snaps = await adapter.get_account_snapshots([USER, unknown, USER_2])

        assert chain.multicalls == 1
        assert snaps[0].health_measure == 980_000_000_000_000_000
        assert snaps[0].total_debt_base == 4000 * 10**8
        assert snaps[1] is None
        assert snaps[2].health_measure is None


class TestReserves:
    @pytest.mark.asyncio
    async def test_reserve_list_is_cached(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        assert await adapter.get_reserves() == (WETH, USDC, WBTC)
        await adapter.get_reserves()
        assert chain.direct_calls == 1

    @pytest.mark.asyncio
    async def test_reserve_config_decoded_and_cached(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        cfg = await adapter.get_reserve_config(USDC)
        assert cfg.liquidation_bonus_bps == 10450
        assert cfg.decimals == 6
        await adapter.get_reserve_config(USDC.upper().replace("0X", "0x"))
        assert chain.direct_calls == 1

    @pytest.mark.asyncio
    async def test_reserve_configs_batch(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        configs = await adapter.get_reserve_configs([WETH, USDC, WBTC])
        assert {a: cfg.decimals for a, cfg in configs.items()} == {WETH: 18, USDC: 6, WBTC: 8}
        assert chain.multicalls == 1

        await adapter.get_reserve_config(WBTC)
        assert chain.direct_calls == 0


class TestUserPositions:
    @pytest.mark.asyncio
    async def test_non_zero_positions_only(self, adapter: AaveV3Adapter) -> None:
        positions = await adapter.get_user_positions(USER)

        assert [r.asset for r in positions.collaterals] == [WETH]
        assert positions.collaterals[0].collateral_balance == 3 * 10**18
        assert [r.asset for r in positions.debts] == [USDC]
        assert positions.debts[0].debt_amount == 4_000 * 10**6 + 100
        assert positions.assets == (WETH, USDC)

    @pytest.mark.asyncio
    async def test_no_flags_means_no_reads(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        positions = await adapter.get_user_positions(USER_2)
        assert positions.collaterals == ()
        assert positions.debts == ()
        assert chain.multicalls == 0


class TestOracle:
    @pytest.mark.asyncio
    async def test_prices_keyed_by_lowercase(self, adapter: AaveV3Adapter) -> None:
        prices = await adapter.get_prices([WETH, USDC])
        assert prices == {WETH: 2000 * 10**8, USDC: 10**8}

    @pytest.mark.asyncio
    async def test_empty_price_request(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        assert await adapter.get_prices([]) == {}
        assert chain.direct_calls == 0

    @pytest.mark.asyncio
    async def test_base_unit_cached(self, adapter: AaveV3Adapter, chain: FakeChain) -> None:
        assert await adapter.get_base_unit() == 10**8
        assert await adapter.get_base_unit() == 10**8
        assert chain.direct_calls == 1


class TestSymbols:
    @pytest.mark.asyncio
    async def test_best_effort(self, adapter: AaveV3Adapter) -> None:
        symbols = await adapter.get_symbols([WETH, USDC, WBTC])
        assert symbols == {WETH: "WETH", USDC: "USDC", WBTC: None}
