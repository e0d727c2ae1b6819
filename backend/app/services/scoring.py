"""Candidate scoring — how well a labour team fits a job, on a 0–100 scale.

Four independently weighted factors (weights are policy, see Settings):

    rate          team's rate vs the market benchmark for the activity;
                  cheaper scores higher
    availability  an ``available`` interval covers the requested date;
                  absence is a flag, not an exclusion
    reliability   win rate + completed jobs, flat above the ceiling
    crew          labourers vs workers needed; shortfall is penalised,
                  surplus earns nothing extra

Each factor contributes ``weight × factor`` where factor ∈ [0, 1].
Helpful factors are reported as ``reasons``, harmful ones as ``flags``.
A team without a rate for the job's activity is not scorable at all.

The farmer's offered price is never read here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from statistics import median

from app.config import settings
from app.services.availability import is_available


@dataclass
class ScoringWeights:
    rate: float = 30.0
    availability: float = 30.0
    reliability: float = 25.0
    crew: float = 15.0
    reliability_ceiling: int = 10

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        return cls(
            rate=settings.score_weight_rate,
            availability=settings.score_weight_availability,
            reliability=settings.score_weight_reliability,
            crew=settings.score_weight_crew,
            reliability_ceiling=settings.reliability_ceiling,
        )


@dataclass
class TeamHistory:
    """Derived performance counters for one team."""
    total_notified: int = 0
    total_interested: int = 0
    won: int = 0
    completed: int = 0
    avg_bid_price: float | None = None

    @property
    def win_rate(self) -> float:
        return self.won / self.total_notified if self.total_notified else 0.0


@dataclass
class CandidateScore:
    team_id: str
    team_name: str
    score: float
    is_available: bool
    rate_per_acre: float
    benchmark_rate: float | None
    cost_estimate: dict
    reasons: list[str] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    already_notified: bool = False


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def benchmark_rate(comparable_rates: list[float]) -> float | None:
    """Median of recent comparable rates for the activity."""
    rates = [r for r in comparable_rates if r and r > 0]
    return float(median(rates)) if rates else None


def _rate_factor(rate: float, benchmark: float | None) -> float:
    # ratio 0.5 or lower → 1.0, ratio 1.0 → 0.5, ratio 1.5 or higher → 0.0
    if not benchmark:
        return 0.5
    return _clamp(1.5 - rate / benchmark)


def _reliability_factor(history: TeamHistory, ceiling: int) -> float:
    completed = min(history.completed, ceiling) / ceiling if ceiling > 0 else 0.0
    return _clamp(0.5 * history.win_rate + 0.5 * completed)


def _crew_factor(labourers: int, needed: int) -> float:
    if needed <= 0:
        return 1.0
    return _clamp(labourers / needed)


def score_candidate(
    job,
    team,
    rate_per_acre: float | None,
    intervals,
    history: TeamHistory,
    comparable_rates: list[float],
    weights: ScoringWeights | None = None,
) -> CandidateScore | None:
    """Score ``team`` for ``job``.  Returns None when the team has no rate."""
    if rate_per_acre is None or rate_per_acre <= 0:
        return None
    w = weights or ScoringWeights.from_settings()
    reasons: list[str] = []
    flags: list[str] = []

    # Rate competitiveness
    benchmark = benchmark_rate(comparable_rates)
    rate_part = w.rate * _rate_factor(rate_per_acre, benchmark)
    if benchmark:
        ratio = rate_per_acre / benchmark
        if ratio <= 0.95:
            reasons.append(f"Rate {rate_per_acre:,.0f}/acre below market {benchmark:,.0f}")
        elif ratio >= 1.10:
            flags.append(f"Rate {rate_per_acre:,.0f}/acre above market {benchmark:,.0f}")
        else:
            reasons.append("Rate in line with market")
    if job.your_price_per_acre and rate_per_acre > job.your_price_per_acre:
        flags.append("Rate exceeds your price per acre (negative margin)")

    # Availability
    available = False
    if job.requested_date is None:
        flags.append("No requested date to check availability")
    else:
        available = is_available(intervals, job.requested_date)
        if available:
            reasons.append("Available on requested date")
        else:
            flags.append("Not available on requested date")
    availability_part = w.availability if available else 0.0

    # Historical reliability
    reliability_part = w.reliability * _reliability_factor(history, w.reliability_ceiling)
    if history.total_notified == 0:
        flags.append("No bidding history")
    else:
        if history.won and history.win_rate >= 0.3:
            reasons.append(f"Wins {history.win_rate:.0%} of bids")
        if history.completed:
            reasons.append(f"{history.completed} completed job(s)")
        else:
            flags.append("No completed jobs yet")

    # Crew-size adequacy
    labourers = team.number_of_labourers or 0
    needed = job.workers_needed or 0
    crew_part = w.crew * _crew_factor(labourers, needed)
    if needed > 0:
        if labourers >= needed:
            reasons.append(f"Crew of {labourers} covers {needed} needed")
        else:
            flags.append(f"Crew shortfall: {labourers} of {needed} workers")

    total = rate_part + availability_part + reliability_part + crew_part
    score = round(_clamp(total, 0.0, 100.0), 1)

    acres = job.farm_size_acres or 0
    cost_estimate = {
        "rate_per_acre": rate_per_acre,
        "total_cost": round(rate_per_acre * acres, 2) if acres else None,
        "your_margin": (
            round((job.your_price_per_acre - rate_per_acre) * acres, 2)
            if job.your_price_per_acre and acres else None
        ),
    }

    return CandidateScore(
        team_id=team.id,
        team_name=team.name,
        score=score,
        is_available=available,
        rate_per_acre=rate_per_acre,
        benchmark_rate=benchmark,
        cost_estimate=cost_estimate,
        reasons=reasons,
        flags=flags,
    )
