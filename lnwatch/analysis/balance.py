"""Channel liquidity and pending-HTLC risk analysis"""

import logging
from typing import List, Sequence

from ..models.channel import Channel, PendingHTLC
from ..models.reports import (
    BalanceReport,
    BalanceStatus,
    ChannelBalanceStatus,
    ChannelHtlcRisk,
    ChannelListing,
    ChannelView,
    HtlcDetail,
    HtlcRiskLevel,
    HtlcRiskReport,
)
from ..utils.parsing import ratio_pct

logger = logging.getLogger(__name__)

# BOLT #2 caps the HTLCs one side may offer on a channel
MAX_HTLC_PER_CHANNEL = 483
CRITICAL_UTILIZATION = 0.9
DUST_MAJORITY = 0.5
DUST_ATTACK_MIN_HTLCS = 10


def list_channels(channels: Sequence[Channel]) -> ChannelListing:
    """Per-channel view with node-wide totals"""
    return ChannelListing(
        total_channels=len(channels),
        total_capacity_sat=sum(c.capacity for c in channels),
        total_local_balance_sat=sum(c.local_balance for c in channels),
        total_remote_balance_sat=sum(c.remote_balance for c in channels),
        channels=[
            ChannelView(
                chan_id=c.chan_id,
                channel_point=c.channel_point,
                remote_pubkey=c.remote_pubkey,
                capacity_sat=c.capacity,
                local_balance_sat=c.local_balance,
                remote_balance_sat=c.remote_balance,
                local_ratio_pct=c.local_ratio_pct,
                active=c.active,
                private=c.private,
                initiator=c.initiator,
                uptime=c.uptime,
                lifetime=c.lifetime,
                uptime_pct=c.uptime_pct,
                total_satoshis_sent=c.total_satoshis_sent,
                total_satoshis_received=c.total_satoshis_received,
                num_updates=c.num_updates,
            )
            for c in channels
        ],
    )


def classify_balance(local_ratio_pct: int, threshold_pct: int) -> BalanceStatus:
    """Strict comparisons: a ratio exactly at the threshold is balanced"""
    if local_ratio_pct < threshold_pct:
        return BalanceStatus.DEPLETED_LOCAL
    if local_ratio_pct > 100 - threshold_pct:
        return BalanceStatus.DEPLETED_REMOTE
    return BalanceStatus.BALANCED


def analyze_balances(channels: Sequence[Channel], threshold_pct: int) -> BalanceReport:
    """Flag channels whose local share of capacity sits outside the threshold band"""
    analyzed: List[ChannelBalanceStatus] = []
    for c in channels:
        ratio = c.local_ratio_pct
        status = classify_balance(ratio, threshold_pct)
        analyzed.append(ChannelBalanceStatus(
            chan_id=c.chan_id,
            channel_point=c.channel_point,
            remote_pubkey=c.remote_pubkey,
            capacity_sat=c.capacity,
            local_balance_sat=c.local_balance,
            remote_balance_sat=c.remote_balance,
            local_ratio_pct=ratio,
            uptime_pct=c.uptime_pct,
            status=status,
            active=c.active,
            needs_rebalance=status is not BalanceStatus.BALANCED,
        ))

    alerts = [c for c in analyzed if c.needs_rebalance]
    if alerts:
        logger.info(f"{len(alerts)}/{len(analyzed)} channels outside the {threshold_pct}% balance band")

    return BalanceReport(
        total_channels=len(analyzed),
        balanced_channels=len(analyzed) - len(alerts),
        imbalanced_channels=len(alerts),
        threshold_pct=threshold_pct,
        channels=analyzed,
        alerts=alerts,
    )


def classify_htlc_risk(pending_count: int, dust_count: int, warning_threshold: int) -> HtlcRiskLevel:
    """First match wins: critical, warning, dust attack, normal.

    A channel close to the HTLC ceiling reports critical even when most of
    its HTLCs are dust.
    """
    if pending_count >= MAX_HTLC_PER_CHANNEL * CRITICAL_UTILIZATION:
        return HtlcRiskLevel.CRITICAL
    if pending_count >= warning_threshold:
        return HtlcRiskLevel.WARNING
    if dust_count > pending_count * DUST_MAJORITY and pending_count > DUST_ATTACK_MIN_HTLCS:
        return HtlcRiskLevel.DUST_ATTACK_SUSPECTED
    return HtlcRiskLevel.NORMAL


def _htlc_detail(htlc: PendingHTLC, dust_threshold_sat: int) -> HtlcDetail:
    return HtlcDetail(
        incoming=htlc.incoming,
        amount_sat=htlc.amount,
        hash_lock=htlc.hash_lock,
        expiration_height=htlc.expiration_height,
        is_dust=htlc.amount <= dust_threshold_sat,
    )


def analyze_htlc_risk(channels: Sequence[Channel],
                      warning_threshold: int,
                      dust_threshold_sat: int) -> HtlcRiskReport:
    """Assess how close each channel is to HTLC slot exhaustion"""
    analyzed: List[ChannelHtlcRisk] = []
    total_pending = 0
    total_dust = 0

    for c in channels:
        details = [_htlc_detail(h, dust_threshold_sat) for h in c.pending_htlcs]
        dust = [d for d in details if d.is_dust]
        pending_count = len(details)
        total_pending += pending_count
        total_dust += len(dust)

        analyzed.append(ChannelHtlcRisk(
            chan_id=c.chan_id,
            channel_point=c.channel_point,
            remote_pubkey=c.remote_pubkey,
            capacity_sat=c.capacity,
            pending_htlc_count=pending_count,
            max_htlc_per_channel=MAX_HTLC_PER_CHANNEL,
            htlc_utilization_pct=ratio_pct(pending_count, MAX_HTLC_PER_CHANNEL),
            dust_htlc_count=len(dust),
            dust_htlc_pct=ratio_pct(len(dust), pending_count),
            dust_amount_locked_sat=sum(d.amount_sat for d in dust),
            risk_level=classify_htlc_risk(pending_count, len(dust), warning_threshold),
            active=c.active,
            pending_htlcs=details,
        ))

    at_risk = [c for c in analyzed if c.risk_level is not HtlcRiskLevel.NORMAL]
    dust_attacks = [c for c in at_risk if c.risk_level is HtlcRiskLevel.DUST_ATTACK_SUSPECTED]

    if dust_attacks:
        alert = f"DUST ATTACK SUSPECTED on {len(dust_attacks)} channel(s)!"
        logger.warning(alert)
    elif at_risk:
        alert = f"{len(at_risk)} channel(s) have high HTLC count"
        logger.info(alert)
    else:
        alert = "All channels healthy"

    return HtlcRiskReport(
        total_channels=len(analyzed),
        total_pending_htlcs=total_pending,
        total_dust_htlcs=total_dust,
        dust_threshold_sat=dust_threshold_sat,
        htlc_warning_threshold=warning_threshold,
        channels_at_risk=len(at_risk),
        dust_attack_suspected=len(dust_attacks),
        alert=alert,
        channels=analyzed,
        alerts=at_risk,
    )
