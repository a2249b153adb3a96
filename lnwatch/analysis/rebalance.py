"""Pair channels with excess outbound liquidity against ones that lack it"""

import logging
from fractions import Fraction
from typing import List, Sequence

from ..models.channel import Channel
from ..models.reports import RebalanceCandidate, RebalancePlan, RebalanceSuggestion
from ..utils.parsing import round_half_away

logger = logging.getLogger(__name__)


def ideal_local_balance(capacity_sat: int, target_ratio_pct: int) -> int:
    return round_half_away(Fraction(capacity_sat * target_ratio_pct, 100))


def pair_rebalances(sources: Sequence[RebalanceCandidate],
                    sinks: Sequence[RebalanceCandidate]) -> List[RebalanceSuggestion]:
    """Pair the i-th source with the i-th sink.

    Greedy and positional; magnitudes are not matched. Each move is capped
    by whichever side needs less.
    """
    return [
        RebalanceSuggestion(
            from_channel=source.chan_id,
            from_pubkey=source.remote_pubkey,
            from_local_ratio_pct=source.local_ratio_pct,
            to_channel=sink.chan_id,
            to_pubkey=sink.remote_pubkey,
            to_local_ratio_pct=sink.local_ratio_pct,
            suggested_amount_sat=min(source.amount_to_move_sat, sink.amount_to_move_sat),
        )
        for source, sink in zip(sources, sinks)
    ]


def plan_rebalances(channels: Sequence[Channel],
                    target_ratio_pct: int,
                    min_deviation_pct: int) -> RebalancePlan:
    """Suggest source -> sink moves for active channels far from the target ratio"""
    sources: List[RebalanceCandidate] = []
    sinks: List[RebalanceCandidate] = []

    for c in channels:
        if not c.active:
            continue
        ratio = c.local_ratio_pct
        deviation = abs(ratio - target_ratio_pct)
        if deviation < min_deviation_pct:
            continue

        diff = c.local_balance - ideal_local_balance(c.capacity, target_ratio_pct)
        candidate = RebalanceCandidate(
            chan_id=c.chan_id,
            channel_point=c.channel_point,
            remote_pubkey=c.remote_pubkey,
            capacity_sat=c.capacity,
            local_balance_sat=c.local_balance,
            local_ratio_pct=ratio,
            target_ratio_pct=target_ratio_pct,
            deviation_pct=deviation,
            amount_to_move_sat=abs(diff),
        )
        (sources if diff > 0 else sinks).append(candidate)

    suggestions = pair_rebalances(sources, sinks)
    unpaired = len(sources) + len(sinks) - 2 * len(suggestions)
    logger.info(f"Rebalance plan: {len(sources)} sources, {len(sinks)} sinks, "
                f"{len(suggestions)} pairs, {unpaired} unpaired")

    return RebalancePlan(
        target_ratio_pct=target_ratio_pct,
        min_deviation_pct=min_deviation_pct,
        channels_need_outflow=len(sources),
        channels_need_inflow=len(sinks),
        suggested_rebalances=suggestions,
        sources=sources,
        sinks=sinks,
    )
