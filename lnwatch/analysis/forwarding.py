"""Forwarding revenue and volume aggregation"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

from ..models.channel import ChannelId, ForwardingEvent
from ..models.reports import ChannelForwardingSummary, ForwardingHistory, ForwardingSummary
from ..utils.parsing import msat_to_sat
from .timewindow import TimeWindow

logger = logging.getLogger(__name__)


@dataclass
class ChannelForwardingStats:
    """Running totals for one channel across both forwarding roles"""
    chan_id: ChannelId
    forwards_in: int = 0
    forwards_out: int = 0
    fee_earned_msat: int = 0
    amount_routed_in_msat: int = 0
    amount_routed_out_msat: int = 0

    @property
    def total_forwards(self) -> int:
        return self.forwards_in + self.forwards_out

    def to_summary(self) -> ChannelForwardingSummary:
        return ChannelForwardingSummary(
            chan_id=self.chan_id,
            forwards_in=self.forwards_in,
            forwards_out=self.forwards_out,
            fee_earned_msat=self.fee_earned_msat,
            amount_routed_in_msat=self.amount_routed_in_msat,
            amount_routed_out_msat=self.amount_routed_out_msat,
            fee_earned_sat=msat_to_sat(self.fee_earned_msat),
            total_forwards=self.total_forwards,
        )


@dataclass(frozen=True)
class ForwardingTotals:
    count: int = 0
    fee_msat: int = 0
    amount_in_msat: int = 0
    amount_out_msat: int = 0


def forwarding_totals(events: Sequence[ForwardingEvent]) -> ForwardingTotals:
    return ForwardingTotals(
        count=len(events),
        fee_msat=sum(e.fee_msat for e in events),
        amount_in_msat=sum(e.amt_in_msat for e in events),
        amount_out_msat=sum(e.amt_out_msat for e in events),
    )


def aggregate_by_channel(events: Sequence[ForwardingEvent]) -> Dict[ChannelId, ChannelForwardingStats]:
    """
    Fold events into per-channel stats.

    The inbound leg counts a forward in and the amount received; the
    outbound leg counts a forward out, the amount sent and the fee, since
    the fee is earned on the channel that carried the payment onward.
    Entries appear in the order channels are first encountered.
    """
    stats: Dict[ChannelId, ChannelForwardingStats] = {}

    for e in events:
        for chan_id in (e.chan_id_in, e.chan_id_out):
            if chan_id not in stats:
                stats[chan_id] = ChannelForwardingStats(chan_id=chan_id)

        inbound = stats[e.chan_id_in]
        inbound.forwards_in += 1
        inbound.amount_routed_in_msat += e.amt_in_msat

        outbound = stats[e.chan_id_out]
        outbound.forwards_out += 1
        outbound.fee_earned_msat += e.fee_msat
        outbound.amount_routed_out_msat += e.amt_out_msat

    return stats


def summarize_forwarding_history(events: Sequence[ForwardingEvent], window: TimeWindow) -> ForwardingHistory:
    """Grand totals over the window, with the raw events attached"""
    totals = forwarding_totals(events)
    return ForwardingHistory(
        count=totals.count,
        total_fee_earned_msat=totals.fee_msat,
        total_fee_earned_sat=msat_to_sat(totals.fee_msat),
        total_amount_in_msat=totals.amount_in_msat,
        total_amount_out_msat=totals.amount_out_msat,
        start_time=window.start_time,
        end_time=window.end_time,
        forwarding_events=list(events),
    )


def summarize_forwarding(events: Sequence[ForwardingEvent], window: TimeWindow) -> ForwardingSummary:
    """Per-channel breakdown ranked by fee earned"""
    stats = aggregate_by_channel(events)
    # sorted() is stable, so equal earners keep their encounter order
    ranked: List[ChannelForwardingSummary] = [
        s.to_summary() for s in sorted(stats.values(), key=lambda s: s.fee_earned_msat, reverse=True)
    ]
    totals = forwarding_totals(events)

    logger.info(f"Aggregated {totals.count} forwards across {len(ranked)} channels, "
                f"{msat_to_sat(totals.fee_msat)} sats earned")

    return ForwardingSummary(
        total_events=totals.count,
        total_fee_earned_msat=totals.fee_msat,
        total_fee_earned_sat=msat_to_sat(totals.fee_msat),
        total_amount_in_msat=totals.amount_in_msat,
        total_amount_out_msat=totals.amount_out_msat,
        unique_channels=len(ranked),
        start_time=window.start_time,
        end_time=window.end_time,
        channel_summary=ranked,
    )
