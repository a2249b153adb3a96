"""Operations the tool can run against a node, and their dispatch"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Type, Union, get_args

from pydantic import BaseModel

from .analysis import balance, dust, fees, forwarding, peers, rebalance
from .analysis.collector import DEFAULT_PAGE_SIZE, collect_forwarding_events
from .analysis.timewindow import last_days, resolve_time_window
from .api.client import LNDRestClient
from .models.channel import make_outpoint, split_outpoint
from .models.reports import LeaseResult
from .utils.config import AnalysisConfig

logger = logging.getLogger(__name__)


class Resource(Enum):
    CHANNEL = "channel"
    ROUTING = "routing"
    FEES = "fees"
    PEER = "peer"
    REBALANCE = "rebalance"
    WALLET = "wallet"


@dataclass(frozen=True)
class ListChannels:
    resource = Resource.CHANNEL


@dataclass(frozen=True)
class MonitorBalances:
    threshold_pct: int = 20
    resource = Resource.CHANNEL


@dataclass(frozen=True)
class MonitorHtlcs:
    warning_threshold: int = 200
    dust_threshold_sat: int = 546
    resource = Resource.CHANNEL


@dataclass(frozen=True)
class UpdateMinHtlc:
    min_htlc_msat: int
    channel_point: Optional[str] = None
    time_lock_delta: int = 40
    resource = Resource.CHANNEL


@dataclass(frozen=True)
class GetForwardingHistory:
    period: str = "24h"
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    page_size: int = DEFAULT_PAGE_SIZE
    resource = Resource.ROUTING


@dataclass(frozen=True)
class SummarizeForwarding:
    period: str = "24h"
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    page_size: int = DEFAULT_PAGE_SIZE
    resource = Resource.ROUTING


@dataclass(frozen=True)
class AnalyzeDust:
    period: str = "24h"
    threshold_sat: int = 100
    suspicious_rate_threshold: int = 50
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    page_size: int = DEFAULT_PAGE_SIZE
    resource = Resource.ROUTING


@dataclass(frozen=True)
class SuggestFees:
    low_balance_fee_ppm: int = 500
    balanced_fee_ppm: int = 100
    high_balance_fee_ppm: int = 10
    base_fee_msat: int = 1000
    apply: bool = False
    time_lock_delta: int = 40
    resource = Resource.FEES


@dataclass(frozen=True)
class UpdateFee:
    base_fee_msat: int
    fee_rate_ppm: int
    channel_point: Optional[str] = None
    time_lock_delta: int = 40
    resource = Resource.FEES


@dataclass(frozen=True)
class ScorePeers:
    period_days: int = 30
    page_size: int = DEFAULT_PAGE_SIZE
    resource = Resource.PEER


@dataclass(frozen=True)
class SuggestRebalances:
    target_ratio_pct: int = 50
    min_deviation_pct: int = 20
    resource = Resource.REBALANCE


@dataclass(frozen=True)
class ListUtxos:
    resource = Resource.WALLET


@dataclass(frozen=True)
class DetectDustUtxos:
    threshold_sat: int = 1000
    auto_freeze: bool = False
    freeze_duration_seconds: int = 2_592_000
    resource = Resource.WALLET


@dataclass(frozen=True)
class LeaseOutput:
    outpoint: str
    duration_seconds: int = 2_592_000
    resource = Resource.WALLET


@dataclass(frozen=True)
class ReleaseOutput:
    outpoint: str
    resource = Resource.WALLET


Operation = Union[
    ListChannels, MonitorBalances, MonitorHtlcs, UpdateMinHtlc,
    GetForwardingHistory, SummarizeForwarding, AnalyzeDust,
    SuggestFees, UpdateFee,
    ScorePeers,
    SuggestRebalances,
    ListUtxos, DetectDustUtxos, LeaseOutput, ReleaseOutput,
]


async def _list_channels(op: ListChannels, client: LNDRestClient):
    return balance.list_channels(await client.list_channels())


async def _monitor_balances(op: MonitorBalances, client: LNDRestClient):
    return balance.analyze_balances(await client.list_channels(), op.threshold_pct)


async def _monitor_htlcs(op: MonitorHtlcs, client: LNDRestClient):
    return balance.analyze_htlc_risk(await client.list_channels(), op.warning_threshold, op.dust_threshold_sat)


async def _update_min_htlc(op: UpdateMinHtlc, client: LNDRestClient):
    return await fees.update_min_htlc(client, op.channel_point, op.min_htlc_msat, op.time_lock_delta)


async def _forwarding_history(op: GetForwardingHistory, client: LNDRestClient):
    window = resolve_time_window(op.period, op.start_time, op.end_time)
    events = await collect_forwarding_events(client.get_forwarding_page, window, op.page_size)
    return forwarding.summarize_forwarding_history(events, window)


async def _forwarding_summary(op: SummarizeForwarding, client: LNDRestClient):
    window = resolve_time_window(op.period, op.start_time, op.end_time)
    events = await collect_forwarding_events(client.get_forwarding_page, window, op.page_size)
    return forwarding.summarize_forwarding(events, window)


async def _analyze_dust(op: AnalyzeDust, client: LNDRestClient):
    window = resolve_time_window(op.period, op.start_time, op.end_time)
    events = await collect_forwarding_events(client.get_forwarding_page, window, op.page_size)
    return dust.analyze_forwarding_dust(events, window, op.threshold_sat,
                                        op.suspicious_rate_threshold, period=op.period)


async def _suggest_fees(op: SuggestFees, client: LNDRestClient):
    return await fees.auto_fee_suggestion(
        await client.list_channels(),
        op.low_balance_fee_ppm,
        op.balanced_fee_ppm,
        op.high_balance_fee_ppm,
        op.base_fee_msat,
        client=client if op.apply else None,
        time_lock_delta=op.time_lock_delta,
    )


async def _update_fee(op: UpdateFee, client: LNDRestClient):
    return await fees.update_fee(client, op.channel_point, op.base_fee_msat,
                                 op.fee_rate_ppm, op.time_lock_delta)


async def _score_peers(op: ScorePeers, client: LNDRestClient):
    channels = await client.list_channels()
    events = await collect_forwarding_events(client.get_forwarding_page, last_days(op.period_days), op.page_size)
    return peers.score_peers(channels, events, op.period_days)


async def _suggest_rebalances(op: SuggestRebalances, client: LNDRestClient):
    return rebalance.plan_rebalances(await client.list_channels(), op.target_ratio_pct, op.min_deviation_pct)


async def _list_utxos(op: ListUtxos, client: LNDRestClient):
    return dust.list_utxos(await client.list_utxos())


async def _detect_dust_utxos(op: DetectDustUtxos, client: LNDRestClient):
    return await dust.detect_dust_utxos(
        await client.list_utxos(),
        op.threshold_sat,
        freeze=client.lease_output if op.auto_freeze else None,
        freeze_duration_seconds=op.freeze_duration_seconds,
    )


async def _lease_output(op: LeaseOutput, client: LNDRestClient):
    outpoint = make_outpoint(*split_outpoint(op.outpoint))
    expiration = await client.lease_output(outpoint, op.duration_seconds)
    return LeaseResult(
        outpoint=outpoint,
        status="frozen",
        lease_duration_seconds=op.duration_seconds,
        lease_duration_days=dust.lease_days(op.duration_seconds),
        expiration=expiration or "unknown",
    )


async def _release_output(op: ReleaseOutput, client: LNDRestClient):
    outpoint = make_outpoint(*split_outpoint(op.outpoint))
    await client.release_output(outpoint)
    return LeaseResult(outpoint=outpoint, status="unfrozen")


Handler = Callable[[Any, LNDRestClient], Awaitable[BaseModel]]

HANDLERS: Dict[Type, Handler] = {
    ListChannels: _list_channels,
    MonitorBalances: _monitor_balances,
    MonitorHtlcs: _monitor_htlcs,
    UpdateMinHtlc: _update_min_htlc,
    GetForwardingHistory: _forwarding_history,
    SummarizeForwarding: _forwarding_summary,
    AnalyzeDust: _analyze_dust,
    SuggestFees: _suggest_fees,
    UpdateFee: _update_fee,
    ScorePeers: _score_peers,
    SuggestRebalances: _suggest_rebalances,
    ListUtxos: _list_utxos,
    DetectDustUtxos: _detect_dust_utxos,
    LeaseOutput: _lease_output,
    ReleaseOutput: _release_output,
}

_missing = set(get_args(Operation)) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"Operations without a handler: {sorted(t.__name__ for t in _missing)}")


async def execute(operation: Operation, client: LNDRestClient) -> BaseModel:
    """Run one operation against an open client and return its report"""
    handler = HANDLERS.get(type(operation))
    if handler is None:
        raise TypeError(f"Unsupported operation: {operation!r}")
    logger.info(f"Running {operation.resource.value}/{type(operation).__name__}")
    return await handler(operation, client)


def defaults_from_config(cls: Type, config: AnalysisConfig, **overrides) -> Operation:
    """Build an operation with thresholds taken from configuration"""
    defaults: Dict[Type, Dict[str, Any]] = {
        MonitorBalances: {'threshold_pct': config.imbalance_threshold},
        MonitorHtlcs: {
            'warning_threshold': config.htlc_warning_threshold,
            'dust_threshold_sat': config.htlc_dust_threshold_sat,
        },
        UpdateMinHtlc: {'time_lock_delta': config.time_lock_delta},
        GetForwardingHistory: {'period': config.default_period, 'page_size': config.forwarding_page_size},
        SummarizeForwarding: {'period': config.default_period, 'page_size': config.forwarding_page_size},
        AnalyzeDust: {
            'period': config.default_period,
            'threshold_sat': config.dust_analysis_threshold_sat,
            'suspicious_rate_threshold': config.suspicious_rate_threshold,
            'page_size': config.forwarding_page_size,
        },
        SuggestFees: {
            'low_balance_fee_ppm': config.low_balance_fee_ppm,
            'balanced_fee_ppm': config.balanced_fee_ppm,
            'high_balance_fee_ppm': config.high_balance_fee_ppm,
            'base_fee_msat': config.auto_base_fee_msat,
            'time_lock_delta': config.time_lock_delta,
        },
        UpdateFee: {'time_lock_delta': config.time_lock_delta},
        ScorePeers: {'period_days': config.peer_scoring_days, 'page_size': config.forwarding_page_size},
        SuggestRebalances: {
            'target_ratio_pct': config.target_ratio,
            'min_deviation_pct': config.min_deviation,
        },
        DetectDustUtxos: {
            'threshold_sat': config.utxo_dust_threshold_sat,
            'freeze_duration_seconds': config.freeze_duration_seconds,
        },
        LeaseOutput: {'duration_seconds': config.freeze_duration_seconds},
    }
    kwargs = dict(defaults.get(cls, {}))
    kwargs.update({k: v for k, v in overrides.items() if v is not None})
    return cls(**kwargs)
