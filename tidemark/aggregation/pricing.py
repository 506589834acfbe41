"""Per-provider token prices used to derive cost rates."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@dc.dataclass(frozen=True, slots=True)
class TokenPrice:
    """Price per thousand tokens for one provider."""

    prompt_per_1k: float = 0.0
    complete_per_1k: float = 0.0

    def cost(self, prompt_tokens: float, complete_tokens: float) -> float:
        """Return the cost of the given token volumes."""
        return (prompt_tokens / 1000) * self.prompt_per_1k + (
            complete_tokens / 1000
        ) * self.complete_per_1k


_FREE = TokenPrice()


class PriceTable:
    """Look up :class:`TokenPrice` by source name.

    Unknown sources are free, so missing configuration yields zero cost
    rather than an error.

    >>> table = PriceTable({"openai": (0.03, 0.06)})
    >>> table.price_for("openai").complete_per_1k
    0.06
    >>> table.price_for("watsonx").prompt_per_1k
    0.0

    """

    def __init__(
        self,
        prices: cabc.Mapping[str, TokenPrice | tuple[float, float]] | None = None,
    ) -> None:
        """Build the table from ``{source: price}`` pairs."""
        self._prices: dict[str, TokenPrice] = {}
        for source, price in (prices or {}).items():
            self._prices[source] = (
                price if isinstance(price, TokenPrice) else TokenPrice(*price)
            )

    def price_for(self, source: str) -> TokenPrice:
        """Return the price for ``source``, free when unset."""
        return self._prices.get(source, _FREE)

    def __len__(self) -> int:
        """Return the number of priced sources."""
        return len(self._prices)
