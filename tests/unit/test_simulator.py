"""Unit tests for the loop simulator and yield projection."""
from __future__ import annotations

import math

import pytest

from loopvault.dex import PriceQuoter
from loopvault.errors import LoopInputError
from loopvault.models import LoopConfig, Rates
from loopvault.strategy.simulator import project_yield, simulate, validate_loop_config

ONE_BTC = 100_000_000
PRICE = 100_000.0


class TestSimulate:
    def test_reference_scenario(self) -> None:
        """1 BTC at $100k, 70% LTV, 3 loops, 5% supply / 3% borrow."""
        result = simulate(
            ONE_BTC,
            PRICE,
            LoopConfig(max_iterations=3, target_ltv_bps=7000),
            rates=Rates(supply_apy_base=5.0, borrow_apy=3.0),
        )

        assert len(result.iterations) == 3
        assert result.iterations[0].deposit == ONE_BTC
        assert result.iterations[0].borrow == 70_000_000_000
        assert 2.5 <= result.leverage <= 2.7
        assert result.projection.net_apy > 0
        assert result.projection.estimated_apy == pytest.approx(
            result.projection.net_apy * 0.9
        )

    def test_zero_iterations_is_unlevered(self) -> None:
        result = simulate(ONE_BTC, PRICE, LoopConfig(max_iterations=0))
        assert result.iterations == ()
        assert result.leverage == 1
        assert result.total_deposited == ONE_BTC
        assert result.total_borrowed == 0

    def test_rounds_chain_swap_output_into_next_deposit(self) -> None:
        result = simulate(ONE_BTC, PRICE)
        for prev, nxt in zip(result.iterations, result.iterations[1:]):
            assert nxt.deposit == prev.swap_receive
        assert [it.index for it in result.iterations] == [1, 2, 3]

    def test_totals(self) -> None:
        result = simulate(ONE_BTC, PRICE)
        assert result.total_deposited == ONE_BTC + sum(
            it.swap_receive for it in result.iterations
        )
        assert result.total_borrowed == sum(it.borrow for it in result.iterations)

    def test_deposited_non_decreasing_in_iterations(self) -> None:
        totals = [
            simulate(ONE_BTC, PRICE, LoopConfig(max_iterations=n)).total_deposited
            for n in range(0, 6)
        ]
        assert all(t >= ONE_BTC for t in totals)
        assert totals == sorted(totals)

    def test_higher_ltv_never_lowers_leverage(self) -> None:
        leverages = [
            simulate(ONE_BTC, PRICE, LoopConfig(target_ltv_bps=ltv)).leverage
            for ltv in (0, 3000, 5000, 6000, 7000, 7900)
        ]
        assert leverages == sorted(leverages)

    def test_early_stop_below_min_loop_amount(self) -> None:
        result = simulate(
            20_000,
            PRICE,
            LoopConfig(max_iterations=5, target_ltv_bps=5000, min_loop_amount=10_000),
        )
        # 20,000 -> ~9,950 after one round, below the minimum.
        assert len(result.iterations) == 1
        assert result.iterations[0].swap_receive < 10_000

    def test_small_deposit_truncates_before_max_iterations(self) -> None:
        result = simulate(
            10_000, PRICE, LoopConfig(max_iterations=3, target_ltv_bps=7000)
        )
        assert len(result.iterations) == 1
        assert result.iterations[0].deposit == 10_000
        assert result.iterations[0].swap_receive < 10_000

    def test_initial_deposit_below_minimum_runs_no_rounds(self) -> None:
        result = simulate(5_000, PRICE)
        assert result.iterations == ()
        assert result.leverage == 1

    def test_uses_quoter_when_given(self) -> None:
        quoter = PriceQuoter(slippage_bps=100)
        with_quote = simulate(ONE_BTC, PRICE, quoter=quoter)
        haircut = simulate(ONE_BTC, PRICE)
        first = with_quote.iterations[0]
        assert first.swap_receive == quoter.quote(first.borrow, PRICE).expected_out
        assert with_quote.total_deposited > haircut.total_deposited

    @pytest.mark.parametrize(
        "amount, price",
        [(0, PRICE), (-1, PRICE), (ONE_BTC, 0.0), (ONE_BTC, math.nan), (ONE_BTC, math.inf)],
    )
    def test_rejects_invalid_inputs(self, amount: int, price: float) -> None:
        with pytest.raises(LoopInputError):
            simulate(amount, price)

    def test_rejects_ltv_at_liquidation_threshold(self) -> None:
        with pytest.raises(LoopInputError, match="liquidation threshold"):
            simulate(ONE_BTC, PRICE, LoopConfig(target_ltv_bps=8000))


class TestValidateLoopConfig:
    def test_negative_iterations(self) -> None:
        with pytest.raises(LoopInputError):
            validate_loop_config(LoopConfig(max_iterations=-1))

    def test_slippage_out_of_range(self) -> None:
        with pytest.raises(LoopInputError):
            validate_loop_config(LoopConfig(slippage_bps=10_001))

    def test_non_positive_min_loop_amount(self) -> None:
        with pytest.raises(LoopInputError):
            validate_loop_config(LoopConfig(min_loop_amount=0))


class TestProjectYield:
    def test_unlevered_is_supply_minus_fee(self) -> None:
        p = project_yield(1.0, Rates(supply_apy_base=5.0, borrow_apy=8.0), 1000)
        assert p.gross_apy == 5.0
        assert p.borrow_cost == 0.0
        assert p.estimated_apy == pytest.approx(4.5)

    def test_net_floored_at_zero(self) -> None:
        p = project_yield(3.0, Rates(supply_apy_base=2.0, borrow_apy=10.0))
        assert p.gross_apy - p.borrow_cost < 0
        assert p.net_apy == 0.0
        assert p.estimated_apy == 0.0

    def test_levered_formula(self) -> None:
        p = project_yield(2.5, Rates(supply_apy_base=5.0, borrow_apy=3.0), 0)
        assert p.gross_apy == pytest.approx(12.5)
        assert p.borrow_cost == pytest.approx(4.5)
        assert p.net_apy == pytest.approx(8.0)
        assert p.estimated_apy == pytest.approx(8.0)
