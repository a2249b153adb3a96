"""Rank remote peers by what their channels earn and how reliably they stay up"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Sequence

from ..models.channel import Channel, ChannelId, ForwardingEvent
from ..models.reports import PeerScore, PeerScoreReport
from ..utils.parsing import msat_to_sat, round_half_away

logger = logging.getLogger(__name__)

REVENUE_WEIGHT = Fraction(1, 2)
UPTIME_WEIGHT = Fraction(3, 10)
FORWARDS_WEIGHT = Fraction(1, 5)
FORWARDS_CAP = 1000


@dataclass
class ChannelActivity:
    """Fee revenue (outbound role) and forward count (either role) per channel"""
    revenue_msat: Dict[ChannelId, int] = field(default_factory=dict)
    forwards: Dict[ChannelId, int] = field(default_factory=dict)


def channel_activity(events: Sequence[ForwardingEvent]) -> ChannelActivity:
    activity = ChannelActivity()
    for e in events:
        activity.revenue_msat[e.chan_id_out] = activity.revenue_msat.get(e.chan_id_out, 0) + e.fee_msat
        activity.forwards[e.chan_id_out] = activity.forwards.get(e.chan_id_out, 0) + 1
        activity.forwards[e.chan_id_in] = activity.forwards.get(e.chan_id_in, 0) + 1
    return activity


@dataclass
class PeerAccumulator:
    pubkey: str
    channels: List[ChannelId] = field(default_factory=list)
    capacity_sat: int = 0
    local_balance_sat: int = 0
    revenue_msat: int = 0
    forwards: int = 0
    uptime_pct_sum: int = 0

    def add(self, channel: Channel, activity: ChannelActivity):
        self.channels.append(channel.chan_id)
        self.capacity_sat += channel.capacity
        self.local_balance_sat += channel.local_balance
        self.revenue_msat += activity.revenue_msat.get(channel.chan_id, 0)
        self.forwards += activity.forwards.get(channel.chan_id, 0)
        self.uptime_pct_sum += channel.uptime_pct


def peer_score(revenue_per_million_capacity: int, avg_uptime_pct: int, total_forwards: int) -> int:
    return round_half_away(
        revenue_per_million_capacity * REVENUE_WEIGHT
        + avg_uptime_pct * UPTIME_WEIGHT
        + min(total_forwards, FORWARDS_CAP) * FORWARDS_WEIGHT
    )


def _finalize(acc: PeerAccumulator) -> PeerScore:
    num_channels = len(acc.channels)
    avg_uptime = round_half_away(Fraction(acc.uptime_pct_sum, num_channels)) if num_channels else 0
    rev_per_million = (
        round_half_away(Fraction(acc.revenue_msat * 1000, acc.capacity_sat)) if acc.capacity_sat else 0
    )
    return PeerScore(
        pubkey=acc.pubkey,
        channels=acc.channels,
        num_channels=num_channels,
        total_capacity_sat=acc.capacity_sat,
        total_local_balance_sat=acc.local_balance_sat,
        total_revenue_msat=acc.revenue_msat,
        total_revenue_sat=msat_to_sat(acc.revenue_msat),
        total_forwards=acc.forwards,
        avg_uptime_pct=avg_uptime,
        revenue_per_million_capacity=rev_per_million,
        score=peer_score(rev_per_million, avg_uptime, acc.forwards),
    )


def score_peers(channels: Sequence[Channel],
                events: Sequence[ForwardingEvent],
                period_days: int = 30) -> PeerScoreReport:
    """
    Score each peer from its channels and the forwards in the scoring period.

    score = revenue per million capacity * 0.5 + mean channel uptime % * 0.3
            + min(forwards, 1000) * 0.2

    Uptime is a plain mean over the peer's channels, not capacity weighted.
    """
    activity = channel_activity(events)

    peers: Dict[str, PeerAccumulator] = {}
    for c in channels:
        if c.remote_pubkey not in peers:
            peers[c.remote_pubkey] = PeerAccumulator(pubkey=c.remote_pubkey)
        peers[c.remote_pubkey].add(c, activity)

    scores = sorted((_finalize(p) for p in peers.values()), key=lambda p: p.score, reverse=True)
    logger.info(f"Scored {len(scores)} peers over {len(channels)} channels and {len(events)} forwards")

    return PeerScoreReport(
        total_peers_scored=len(scores),
        period_days=period_days,
        peer_scores=scores,
    )
