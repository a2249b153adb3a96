"""Balance-driven fee suggestions and fee policy updates"""

import logging
import math
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..api.client import LNDTransportError
from ..models.channel import Channel
from ..models.reports import FeeApplyResult, FeePolicyUpdate, FeeSuggestion, FeeSuggestionSet, FeeTier, MinHtlcUpdate

logger = logging.getLogger(__name__)

LOW_BALANCE_RATIO = 30
HIGH_BALANCE_RATIO = 70

DEFAULT_BASE_FEE_MSAT = 1000
DEFAULT_FEE_RATE_PPM = 100
DEFAULT_TIME_LOCK_DELTA = 40

TIER_REASONS = {
    FeeTier.LOW_BALANCE: "Low local balance - high fee to discourage drain",
    FeeTier.HIGH_BALANCE: "High local balance - low fee to encourage outflow",
    FeeTier.BALANCED: "Well balanced - standard fee",
}


class FeePolicyClient(Protocol):
    """What fee updates need from the node"""
    async def update_channel_policy(self,
                                    chan_point: Optional[str],
                                    base_fee_msat: int,
                                    fee_rate_ppm: int,
                                    time_lock_delta: int,
                                    min_htlc_msat: Optional[int] = None) -> Dict[str, Any]:
        ...

    async def get_fee_report(self) -> List[Dict[str, Any]]:
        ...


def fee_tier(local_ratio_pct: int) -> FeeTier:
    if local_ratio_pct < LOW_BALANCE_RATIO:
        return FeeTier.LOW_BALANCE
    if local_ratio_pct > HIGH_BALANCE_RATIO:
        return FeeTier.HIGH_BALANCE
    return FeeTier.BALANCED


def suggest_fees(channels: Sequence[Channel],
                 low_balance_fee_ppm: int,
                 balanced_fee_ppm: int,
                 high_balance_fee_ppm: int,
                 base_fee_msat: int) -> List[FeeSuggestion]:
    """Map each channel's local ratio to a fee tier"""
    rates = {
        FeeTier.LOW_BALANCE: low_balance_fee_ppm,
        FeeTier.BALANCED: balanced_fee_ppm,
        FeeTier.HIGH_BALANCE: high_balance_fee_ppm,
    }
    suggestions = []
    for c in channels:
        ratio = c.local_ratio_pct
        tier = fee_tier(ratio)
        suggestions.append(FeeSuggestion(
            chan_id=c.chan_id,
            channel_point=c.channel_point,
            remote_pubkey=c.remote_pubkey,
            capacity_sat=c.capacity,
            local_balance_sat=c.local_balance,
            local_ratio_pct=ratio,
            tier=tier,
            suggested_fee_rate_ppm=rates[tier],
            suggested_base_fee_msat=base_fee_msat,
            reason=TIER_REASONS[tier],
        ))
    return suggestions


async def apply_fee_suggestions(suggestions: Sequence[FeeSuggestion],
                                client: FeePolicyClient,
                                time_lock_delta: int = DEFAULT_TIME_LOCK_DELTA) -> List[FeeApplyResult]:
    """
    Push suggestions to the node one channel at a time.

    A failed update is recorded and the batch moves on. Nothing is rolled
    back, so earlier successful updates stay applied.
    """
    results = []
    for s in suggestions:
        try:
            await client.update_channel_policy(
                chan_point=s.channel_point,
                base_fee_msat=s.suggested_base_fee_msat,
                fee_rate_ppm=s.suggested_fee_rate_ppm,
                time_lock_delta=time_lock_delta,
            )
        except (LNDTransportError, ValueError) as e:
            logger.warning(f"Failed to apply fee suggestion to {s.channel_point}: {e}")
            results.append(FeeApplyResult(channel_point=s.channel_point, status="apply_failed", error=str(e)))
            continue
        results.append(FeeApplyResult(channel_point=s.channel_point, status="applied"))
    return results


async def auto_fee_suggestion(channels: Sequence[Channel],
                              low_balance_fee_ppm: int,
                              balanced_fee_ppm: int,
                              high_balance_fee_ppm: int,
                              base_fee_msat: int,
                              client: Optional[FeePolicyClient] = None,
                              time_lock_delta: int = DEFAULT_TIME_LOCK_DELTA) -> FeeSuggestionSet:
    """Suggest tiered fees, and apply them when a client is given"""
    suggestions = suggest_fees(channels, low_balance_fee_ppm, balanced_fee_ppm,
                               high_balance_fee_ppm, base_fee_msat)

    apply_results = None
    if client is not None:
        apply_results = await apply_fee_suggestions(suggestions, client, time_lock_delta)
        failed = sum(1 for r in apply_results if r.status == "apply_failed")
        logger.info(f"Applied {len(apply_results) - failed}/{len(apply_results)} fee suggestions")

    return FeeSuggestionSet(
        total_channels=len(suggestions),
        applied=client is not None,
        suggestions=suggestions,
        apply_results=apply_results,
    )


async def update_fee(client: FeePolicyClient,
                     channel_point: Optional[str],
                     base_fee_msat: int,
                     fee_rate_ppm: int,
                     time_lock_delta: int = DEFAULT_TIME_LOCK_DELTA) -> FeePolicyUpdate:
    """Set one channel's policy, or every channel's when no channel point is given"""
    chan_point = channel_point.strip() if channel_point else None
    await client.update_channel_policy(
        chan_point=chan_point or None,
        base_fee_msat=base_fee_msat,
        fee_rate_ppm=fee_rate_ppm,
        time_lock_delta=time_lock_delta,
    )
    return FeePolicyUpdate(
        channel_point=chan_point or None,
        scope="channel" if chan_point else "global",
        base_fee_msat=base_fee_msat,
        fee_rate_ppm=fee_rate_ppm,
        time_lock_delta=time_lock_delta,
    )


def _current_policy(fee_report: List[Dict[str, Any]], channel_point: str) -> Optional[Dict[str, Any]]:
    for policy in fee_report:
        if policy.get('channel_point') == channel_point:
            return policy
    return None


async def update_min_htlc(client: FeePolicyClient,
                          channel_point: Optional[str],
                          min_htlc_msat: int,
                          time_lock_delta: int = DEFAULT_TIME_LOCK_DELTA) -> MinHtlcUpdate:
    """
    Raise the minimum HTLC size, the remedy for channels that feed dust.

    LND's policy update always sets base fee and fee rate too. For a single
    channel the current values are read back and preserved; a global update
    resets them to the defaults and says so in the result.
    """
    chan_point = channel_point.strip() if channel_point else ""
    min_htlc_sat = math.ceil(min_htlc_msat / 1000)

    if chan_point:
        policy = _current_policy(await client.get_fee_report(), chan_point)
        if policy is None:
            logger.warning(f"No current fee policy found for {chan_point}, using defaults")
            base_fee, fee_rate = DEFAULT_BASE_FEE_MSAT, DEFAULT_FEE_RATE_PPM
        else:
            base_fee = policy['base_fee_msat']
            fee_rate = policy['fee_per_mil']

        await client.update_channel_policy(
            chan_point=chan_point,
            base_fee_msat=base_fee,
            fee_rate_ppm=fee_rate,
            time_lock_delta=time_lock_delta,
            min_htlc_msat=min_htlc_msat,
        )
        return MinHtlcUpdate(
            updated=1,
            channel_point=chan_point,
            min_htlc_msat=min_htlc_msat,
            min_htlc_sat=min_htlc_sat,
            preserved_base_fee_msat=base_fee,
            preserved_fee_rate_ppm=fee_rate,
        )

    await client.update_channel_policy(
        chan_point=None,
        base_fee_msat=DEFAULT_BASE_FEE_MSAT,
        fee_rate_ppm=DEFAULT_FEE_RATE_PPM,
        time_lock_delta=time_lock_delta,
        min_htlc_msat=min_htlc_msat,
    )
    return MinHtlcUpdate(
        updated="all_channels",
        min_htlc_msat=min_htlc_msat,
        min_htlc_sat=min_htlc_sat,
        warning=(f"Global update applied. base_fee and fee_rate reset to defaults "
                 f"({DEFAULT_BASE_FEE_MSAT} msat / {DEFAULT_FEE_RATE_PPM} ppm). "
                 f"Use update-fee to adjust individually."),
    )
