"""Dust attack detection over forwarding history and the on-chain wallet"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from ..api.client import LNDTransportError
from ..models.channel import UTXO, ChannelId, ForwardingEvent, Outpoint, RouteKey, route_key
from ..models.reports import (
    DustAnalysisReport,
    DustRecommendation,
    DustRoute,
    DustUtxo,
    FreezeResult,
    InboundDustSource,
    UtxoDustReport,
    UtxoListing,
)
from ..utils.parsing import msat_to_sat, ratio_pct, round_half_away
from .timewindow import TimeWindow

logger = logging.getLogger(__name__)

SATS_PER_BTC = 100_000_000
SECONDS_PER_DAY = 86400

# freeze(outpoint, duration_seconds) -> lease expiration (Unix seconds)
FreezeFn = Callable[[Outpoint, int], Awaitable[int]]


@dataclass
class RouteDustStats:
    """Dust forwards seen on one inbound -> outbound pair"""
    chan_id_in: ChannelId
    chan_id_out: ChannelId
    count: int = 0
    amount_msat: int = 0
    fee_msat: int = 0
    min_amount_sat: Optional[int] = None
    max_amount_sat: int = 0

    def add(self, event: ForwardingEvent):
        self.count += 1
        self.amount_msat += event.amt_out_msat
        self.fee_msat += event.fee_msat
        amount_sat = event.amt_out_sat
        if self.min_amount_sat is None or amount_sat < self.min_amount_sat:
            self.min_amount_sat = amount_sat
        if amount_sat > self.max_amount_sat:
            self.max_amount_sat = amount_sat

    def to_route(self, suspicious: bool) -> DustRoute:
        return DustRoute(
            route=route_key(self.chan_id_in, self.chan_id_out),
            chan_id_in=self.chan_id_in,
            chan_id_out=self.chan_id_out,
            dust_forward_count=self.count,
            total_dust_amount_msat=self.amount_msat,
            total_dust_fee_msat=self.fee_msat,
            total_dust_amount_sat=msat_to_sat(self.amount_msat),
            total_dust_fee_sat=msat_to_sat(self.fee_msat),
            min_amount_sat=self.min_amount_sat or 0,
            max_amount_sat=self.max_amount_sat,
            avg_amount_sat=msat_to_sat(self.amount_msat // self.count) if self.count else 0,
            suspicious=suspicious,
        )


@dataclass
class ForwardPartition:
    dust: List[ForwardingEvent] = field(default_factory=list)
    normal: List[ForwardingEvent] = field(default_factory=list)


def partition_forwards(events: Sequence[ForwardingEvent], threshold_sat: int) -> ForwardPartition:
    """Split forwards by outbound amount; every event lands in exactly one side"""
    partition = ForwardPartition()
    for e in events:
        (partition.dust if e.is_dust(threshold_sat) else partition.normal).append(e)
    return partition


def aggregate_dust_routes(dust_events: Sequence[ForwardingEvent]) -> Dict[RouteKey, RouteDustStats]:
    routes: Dict[RouteKey, RouteDustStats] = {}
    for e in dust_events:
        key = route_key(e.chan_id_in, e.chan_id_out)
        if key not in routes:
            routes[key] = RouteDustStats(chan_id_in=e.chan_id_in, chan_id_out=e.chan_id_out)
        routes[key].add(e)
    return routes


def count_dust_by_inbound(dust_events: Sequence[ForwardingEvent]) -> Dict[ChannelId, int]:
    """Dust count per inbound channel, wherever the dust went next"""
    counts: Dict[ChannelId, int] = {}
    for e in dust_events:
        counts[e.chan_id_in] = counts.get(e.chan_id_in, 0) + 1
    return counts


def fee_efficiency_warning(dust_fee_msat: int, normal_fee_msat: int) -> Optional[str]:
    if dust_fee_msat <= 0 or normal_fee_msat <= 0:
        return None
    share = ratio_pct(dust_fee_msat, dust_fee_msat + normal_fee_msat)
    return (f"Dust forwards represent {share}% of fee revenue "
            f"but may cost more in force-close risk")


def analyze_forwarding_dust(events: Sequence[ForwardingEvent],
                            window: TimeWindow,
                            threshold_sat: int,
                            suspicious_rate_threshold: int,
                            period: str = "custom") -> DustAnalysisReport:
    """
    Look for dust being pushed through the node.

    A route (inbound, outbound pair) or an inbound channel is suspicious once
    it carried at least ``suspicious_rate_threshold`` dust forwards. Each
    suspicious inbound channel gets a recommendation to raise its minimum
    HTLC to the dust threshold.
    """
    partition = partition_forwards(events, threshold_sat)

    routes = aggregate_dust_routes(partition.dust)
    suspicious_routes = sorted(
        (r.to_route(suspicious=True) for r in routes.values() if r.count >= suspicious_rate_threshold),
        key=lambda r: r.dust_forward_count,
        reverse=True,
    )

    inbound_counts = count_dust_by_inbound(partition.dust)
    suspicious_inbound = sorted(
        (InboundDustSource(chan_id_in=chan_id, dust_count=count)
         for chan_id, count in inbound_counts.items() if count >= suspicious_rate_threshold),
        key=lambda s: s.dust_count,
        reverse=True,
    )

    dust_fee = sum(e.fee_msat for e in partition.dust)
    normal_fee = sum(e.fee_msat for e in partition.normal)

    recommendations = [
        DustRecommendation(
            chan_id=s.chan_id_in,
            reason=f"{s.dust_count} dust forwards received via this channel",
            suggested_min_htlc_msat=threshold_sat * 1000,
        )
        for s in suspicious_inbound
    ]

    if suspicious_routes:
        alert = (f"DUST ATTACK WARNING: {len(suspicious_routes)} route(s) with "
                 f"{suspicious_rate_threshold}+ dust forwards detected")
        logger.warning(alert)
    else:
        alert = "No suspicious dust patterns detected"

    logger.info(f"Dust analysis: {len(partition.dust)}/{len(events)} forwards at or below "
                f"{threshold_sat} sats")

    return DustAnalysisReport(
        period=period,
        start_time=window.start_time,
        end_time=window.end_time,
        dust_threshold_sat=threshold_sat,
        suspicious_rate_threshold=suspicious_rate_threshold,
        total_forwards=len(events),
        total_dust_forwards=len(partition.dust),
        total_normal_forwards=len(partition.normal),
        dust_percentage=ratio_pct(len(partition.dust), len(events)),
        total_dust_fee_earned_msat=dust_fee,
        total_dust_fee_earned_sat=msat_to_sat(dust_fee),
        total_normal_fee_earned_msat=normal_fee,
        total_normal_fee_earned_sat=msat_to_sat(normal_fee),
        fee_efficiency_warning=fee_efficiency_warning(dust_fee, normal_fee),
        suspicious_routes_count=len(suspicious_routes),
        suspicious_inbound_channels=len(suspicious_inbound),
        alert=alert,
        recommendations=recommendations,
        suspicious_routes=suspicious_routes,
        suspicious_inbound_details=suspicious_inbound,
    )


def list_utxos(utxos: Sequence[UTXO]) -> UtxoListing:
    total = sum(u.amount_sat for u in utxos)
    return UtxoListing(
        total_utxos=len(utxos),
        total_balance_sat=total,
        total_balance_btc=f"{total / SATS_PER_BTC:.8f}",
        utxos=list(utxos),
    )


def partition_utxos(utxos: Sequence[UTXO], threshold_sat: int) -> Tuple[List[UTXO], List[UTXO]]:
    """(dust, normal) by amount alone"""
    dust = [u for u in utxos if u.amount_sat <= threshold_sat]
    normal = [u for u in utxos if u.amount_sat > threshold_sat]
    return dust, normal


def lease_days(duration_seconds: int) -> int:
    return round_half_away(Fraction(duration_seconds, SECONDS_PER_DAY))


async def freeze_utxos(dust: Sequence[UTXO], freeze: FreezeFn, duration_seconds: int) -> List[FreezeResult]:
    """Lease every UTXO, recording each outcome without stopping at a failure"""
    results: List[FreezeResult] = []
    for utxo in dust:
        try:
            expiration = await freeze(utxo.outpoint, duration_seconds)
        except (LNDTransportError, ValueError) as e:
            logger.warning(f"Failed to freeze dust UTXO {utxo.outpoint}: {e}")
            results.append(FreezeResult(outpoint=utxo.outpoint, status="freeze_failed", error=str(e)))
            continue

        results.append(FreezeResult(
            outpoint=utxo.outpoint,
            status="frozen",
            lease_duration_seconds=duration_seconds,
            lease_duration_days=lease_days(duration_seconds),
            expiration=expiration,
        ))
    return results


async def detect_dust_utxos(utxos: Sequence[UTXO],
                            threshold_sat: int,
                            freeze: Optional[FreezeFn] = None,
                            freeze_duration_seconds: int = 2_592_000) -> UtxoDustReport:
    """
    Find wallet outputs small enough to be dust-attack deposits.

    When ``freeze`` is given, each dust output is leased so the wallet will
    not spend it (spending would link it to the rest of the wallet).
    """
    dust, normal = partition_utxos(utxos, threshold_sat)
    dust_total = sum(u.amount_sat for u in dust)

    frozen_results = None
    if freeze is not None and dust:
        frozen_results = await freeze_utxos(dust, freeze, freeze_duration_seconds)
        failed = sum(1 for r in frozen_results if r.status == "freeze_failed")
        logger.info(f"Froze {len(frozen_results) - failed}/{len(frozen_results)} dust UTXOs")

    if dust:
        alert = f"{len(dust)} dust UTXO(s) detected ({dust_total} sats) - potential dust attack"
        logger.warning(alert)
    else:
        alert = "No dust UTXOs detected"

    return UtxoDustReport(
        dust_threshold_sat=threshold_sat,
        total_utxos=len(utxos),
        dust_utxos_count=len(dust),
        normal_utxos_count=len(normal),
        dust_total_sat=dust_total,
        normal_total_sat=sum(u.amount_sat for u in normal),
        alert=alert,
        auto_freeze_enabled=freeze is not None,
        frozen_results=frozen_results,
        dust_utxos=[
            DustUtxo(
                txid=u.txid,
                output_index=u.output_index,
                outpoint=u.outpoint,
                amount_sat=u.amount_sat,
                address=u.address,
                confirmations=u.confirmations,
            )
            for u in dust
        ],
    )
