from unittest.mock import AsyncMock

import pytest

from conftest import WALLET
from models import LookupResult, PortfolioEntry, TokenAccount
from portfolio import MAX_DUST_TOKENS, PortfolioValuator


@pytest.fixture
def valuator(config, chain_reader, market):
    return PortfolioValuator(config, chain_reader, market)


def account(mint, amount, decimals=6, address=None):
    return TokenAccount(address=address or f"acct-{mint}", mint=mint, amount=amount,
                        decimals=decimals, ui_amount=amount / 10 ** decimals)


class TestGetPortfolio:
    @pytest.mark.asyncio
    async def test_one_price_failure_leaves_one_entry(self, valuator, chain_reader, market):
        chain_reader.get_token_accounts = AsyncMock(return_value=[
            account("good", 2_500_000),
            account("broken", 1_000_000),
        ])

        async def price(mint):
            if mint == "broken":
                raise RuntimeError("price feed down")
            return LookupResult.success(2.0)

        market.fetch_token_price = AsyncMock(side_effect=price)

        entries = await valuator.get_portfolio(WALLET)

        assert len(entries) == 1
        assert entries[0].mint == "good"
        assert entries[0].ui_amount == pytest.approx(2.5)
        assert entries[0].value == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_failed_lookup_result_is_dropped(self, valuator, chain_reader, market):
        chain_reader.get_token_accounts = AsyncMock(return_value=[account("a", 1_000_000), account("b", 1_000_000)])
        market.fetch_token_price = AsyncMock(side_effect=lambda mint: LookupResult.failure("404")
                                             if mint == "b" else LookupResult.success(1.0))

        entries = await valuator.get_portfolio(WALLET)

        assert [e.mint for e in entries] == ["a"]

    @pytest.mark.asyncio
    async def test_zero_balances_are_skipped(self, valuator, chain_reader, market):
        chain_reader.get_token_accounts = AsyncMock(return_value=[account("empty", 0), account("held", 10)])
        market.fetch_token_price = AsyncMock(return_value=LookupResult.success(1.0))

        entries = await valuator.get_portfolio(WALLET)

        assert [e.mint for e in entries] == ["held"]
        market.fetch_token_price.assert_awaited_once_with("held")

    @pytest.mark.asyncio
    async def test_price_fetched_once_per_mint(self, valuator, chain_reader, market):
        chain_reader.get_token_accounts = AsyncMock(return_value=[
            account("dup", 1_000_000, address="x"),
            account("dup", 3_000_000, address="y"),
        ])
        market.fetch_token_price = AsyncMock(return_value=LookupResult.success(0.5))

        entries = await valuator.get_portfolio(WALLET)

        assert len(entries) == 2
        assert market.fetch_token_price.await_count == 1

    @pytest.mark.asyncio
    async def test_no_accounts(self, valuator, market):
        assert await valuator.get_portfolio(WALLET) == []
        market.fetch_token_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_portfolio_value(self, valuator, chain_reader, market):
        chain_reader.get_token_accounts = AsyncMock(return_value=[account("a", 1_000_000), account("b", 2_000_000)])
        market.fetch_token_price = AsyncMock(return_value=LookupResult.success(3.0))

        assert await valuator.get_portfolio_value(WALLET) == pytest.approx(9.0)


class TestDust:
    @staticmethod
    def entry(mint, value, ui_amount=1.0):
        return PortfolioEntry(mint=mint, balance=1, decimals=0, ui_amount=ui_amount,
                              price=value / ui_amount if ui_amount else 0, value=value)

    def test_below_threshold_sorted_ascending(self, valuator):
        entries = [self.entry("a", 0.5), self.entry("b", 5.0), self.entry("c", 0.1)]

        assert [e.mint for e in valuator.find_dust_tokens(entries)] == ["c", "a"]

    def test_custom_threshold(self, valuator):
        entries = [self.entry("a", 0.5), self.entry("b", 5.0)]

        assert [e.mint for e in valuator.find_dust_tokens(entries, threshold=10)] == ["a", "b"]

    def test_capped(self, valuator):
        entries = [self.entry(str(i), i / 100) for i in range(1, 40)]

        assert len(valuator.find_dust_tokens(entries)) == MAX_DUST_TOKENS
