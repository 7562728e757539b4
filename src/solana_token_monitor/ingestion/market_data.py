"""Interface to the upstream market-data fetcher and snapshot merging."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Protocol, Sequence

from ..datalake.schemas import Token


class MarketDataFetcher(Protocol):
    """Supplies fresh metric snapshots for tracked tokens and new launches."""

    def refresh_tokens(self, addresses: Sequence[str], existing: Sequence[Token]) -> List[Token]:
        """Return updated records for ``addresses``, appending to each token's history."""
        ...

    def fetch_new_pools(self) -> List[Token]:
        """Return tokens for newly created pools."""
        ...


def carry_over_user_state(refreshed: Token, previous: Token) -> Token:
    """Keep fields the fetcher does not own: ownership, entry, and overrides."""

    return replace(
        refreshed,
        is_owned=previous.is_owned,
        entry_price=previous.entry_price,
        entry_time=previous.entry_time,
        strategy_override=previous.strategy_override,
    )


def merge_refreshed_tokens(
    current: Sequence[Token],
    refreshed: Iterable[Token],
    new_pools: Iterable[Token],
) -> List[Token]:
    """Combine refreshed records with new launches, keyed by token id.

    Tracked tokens missing from ``refreshed`` drop out. New pools never
    replace a token that is already tracked.
    """

    previous = {token.id: token for token in current}
    merged: Dict[str, Token] = {}
    for token in refreshed:
        original = previous.get(token.id)
        merged[token.id] = carry_over_user_state(token, original) if original else token
    for token in new_pools:
        merged.setdefault(token.id, token)
    return list(merged.values())


__all__ = ["MarketDataFetcher", "carry_over_user_state", "merge_refreshed_tokens"]
