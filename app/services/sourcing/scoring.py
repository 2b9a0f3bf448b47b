"""
Benchmark scoring for competing quotes.

Every criterion is normalized to 0-100 and combined into one weighted
benchmark score per quote. Pure functions only: callers load quotes and
persist results.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from app.core.errors import InsufficientDataError, ValidationError

Number = Union[int, float, Decimal]

# Attribute value used when a quote leaves quality/compliance/ESG unset
NEUTRAL_SCORE = 50.0

# Delivery: 0 days = 100, each day costs 2 points, 50+ days = 0
DEFAULT_DELIVERY_DAYS = 30
DELIVERY_POINTS_PER_DAY = 2.0

MIN_QUOTES = 2


@dataclass(frozen=True)
class CriteriaWeights:
    """Integer evaluation weights. Normalized by their sum, which need not be 100."""
    price: int
    quality: int
    delivery: int
    compliance: int

    @property
    def total(self) -> int:
        return self.price + self.quality + self.delivery + self.compliance

    def validate(self) -> None:
        for name in ("price", "quality", "delivery", "compliance"):
            value = getattr(self, name)
            if value is None or value < 0:
                raise ValidationError(
                    f"{name} weight must be a non-negative integer",
                    {"weight": name, "value": value},
                )
        if self.total == 0:
            raise ValidationError(
                "Evaluation weights sum to zero; at least one criterion must carry weight",
                {"weights": self.as_dict()},
            )

    def as_dict(self) -> dict:
        return {
            "price": self.price,
            "quality": self.quality,
            "delivery": self.delivery,
            "compliance": self.compliance,
        }


@dataclass(frozen=True)
class QuoteAttributes:
    """The subset of a quote the scoring engine looks at."""
    quote_id: int
    total_price: Number
    quality_score: Optional[Number] = None
    delivery_days: Optional[int] = None
    compliance_score: Optional[Number] = None
    esg_score: Optional[Number] = None


@dataclass(frozen=True)
class QuoteScore:
    quote_id: int
    price_score: float
    quality_score: float
    delivery_score: float
    compliance_score: float
    benchmark_score: float  # full precision, used for ranking

    @property
    def rounded_benchmark(self) -> Decimal:
        """Two-decimal value for persistence and display."""
        return Decimal(str(round(self.benchmark_score, 2))).quantize(Decimal("0.01"))


def _as_float(value: Optional[Number], default: float) -> float:
    return default if value is None else float(value)


def price_scores(prices: Sequence[Number]) -> List[float]:
    """
    Min-max normalize prices so the cheapest scores 100 and the dearest 0.

    When every price is identical all quotes are equally cheap and score 100.
    """
    values = [float(p) for p in prices]
    min_price = min(values)
    max_price = max(values)
    if max_price == min_price:
        return [100.0 for _ in values]
    spread = max_price - min_price
    return [(max_price - p) / spread * 100.0 for p in values]


def quality_score(quote: QuoteAttributes) -> float:
    return _as_float(quote.quality_score, NEUTRAL_SCORE)


def delivery_score(delivery_days: Optional[int]) -> float:
    days = DEFAULT_DELIVERY_DAYS if delivery_days is None else delivery_days
    return max(0.0, 100.0 - days * DELIVERY_POINTS_PER_DAY)


def compliance_score(quote: QuoteAttributes) -> float:
    """Mean of the compliance and ESG ratings."""
    compliance = _as_float(quote.compliance_score, NEUTRAL_SCORE)
    esg = _as_float(quote.esg_score, NEUTRAL_SCORE)
    return (compliance + esg) / 2.0


def weighted_benchmark(
    price: float,
    quality: float,
    delivery: float,
    compliance: float,
    weights: CriteriaWeights,
) -> float:
    return (
        price * weights.price
        + quality * weights.quality
        + delivery * weights.delivery
        + compliance * weights.compliance
    ) / weights.total


def score_quotes(
    quotes: Sequence[QuoteAttributes],
    weights: CriteriaWeights,
    min_quotes: int = MIN_QUOTES,
) -> List[QuoteScore]:
    """
    Score a full quote set for one RFQ.

    Raises:
        InsufficientDataError: fewer than ``min_quotes`` quotes
        ValidationError: negative weights or a zero weight sum
    """
    if len(quotes) < min_quotes:
        raise InsufficientDataError(
            f"At least {min_quotes} quotes are required to benchmark, got {len(quotes)}",
            {"quote_count": len(quotes), "required": min_quotes},
        )
    weights.validate()

    for quote in quotes:
        if quote.total_price is None or float(quote.total_price) <= 0:
            raise ValidationError(
                f"Quote {quote.quote_id} has no positive total price",
                {"quote_id": quote.quote_id},
            )

    prices = price_scores([q.total_price for q in quotes])

    scores = []
    for quote, price in zip(quotes, prices):
        quality = quality_score(quote)
        delivery = delivery_score(quote.delivery_days)
        compliance = compliance_score(quote)
        scores.append(QuoteScore(
            quote_id=quote.quote_id,
            price_score=price,
            quality_score=quality,
            delivery_score=delivery,
            compliance_score=compliance,
            benchmark_score=weighted_benchmark(price, quality, delivery, compliance, weights),
        ))
    return scores
