"""Result structures produced by the analyses"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from .channel import ChannelId, ForwardingEvent, Outpoint, RouteKey, UTXO


class BalanceStatus(str, Enum):
    BALANCED = "balanced"
    DEPLETED_LOCAL = "depleted_local"
    DEPLETED_REMOTE = "depleted_remote"


class HtlcRiskLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    DUST_ATTACK_SUSPECTED = "dust_attack_suspected"


class FeeTier(str, Enum):
    LOW_BALANCE = "low_balance"
    BALANCED = "balanced"
    HIGH_BALANCE = "high_balance"


# Channel listing

class ChannelView(BaseModel):
    chan_id: ChannelId
    channel_point: str
    remote_pubkey: str
    capacity_sat: int
    local_balance_sat: int
    remote_balance_sat: int
    local_ratio_pct: int
    active: bool
    private: bool
    initiator: bool
    uptime: int
    lifetime: int
    uptime_pct: int
    total_satoshis_sent: int
    total_satoshis_received: int
    num_updates: int


class ChannelListing(BaseModel):
    total_channels: int = 0
    total_capacity_sat: int = 0
    total_local_balance_sat: int = 0
    total_remote_balance_sat: int = 0
    channels: List[ChannelView] = Field(default_factory=list)


# Balance monitor

class ChannelBalanceStatus(BaseModel):
    chan_id: ChannelId
    channel_point: str
    remote_pubkey: str
    capacity_sat: int
    local_balance_sat: int
    remote_balance_sat: int
    local_ratio_pct: int
    uptime_pct: int
    status: BalanceStatus
    active: bool
    needs_rebalance: bool


class BalanceReport(BaseModel):
    total_channels: int = 0
    balanced_channels: int = 0
    imbalanced_channels: int = 0
    threshold_pct: int
    channels: List[ChannelBalanceStatus] = Field(default_factory=list)
    alerts: List[ChannelBalanceStatus] = Field(default_factory=list)


# HTLC monitor

class HtlcDetail(BaseModel):
    incoming: bool
    amount_sat: int
    hash_lock: str
    expiration_height: int
    is_dust: bool


class ChannelHtlcRisk(BaseModel):
    chan_id: ChannelId
    channel_point: str
    remote_pubkey: str
    capacity_sat: int
    pending_htlc_count: int
    max_htlc_per_channel: int
    htlc_utilization_pct: int
    dust_htlc_count: int
    dust_htlc_pct: int
    dust_amount_locked_sat: int
    risk_level: HtlcRiskLevel
    active: bool
    pending_htlcs: List[HtlcDetail] = Field(default_factory=list)


class HtlcRiskReport(BaseModel):
    total_channels: int = 0
    total_pending_htlcs: int = 0
    total_dust_htlcs: int = 0
    dust_threshold_sat: int
    htlc_warning_threshold: int
    channels_at_risk: int = 0
    dust_attack_suspected: int = 0
    alert: str
    channels: List[ChannelHtlcRisk] = Field(default_factory=list)
    alerts: List[ChannelHtlcRisk] = Field(default_factory=list)


# Forwarding

class ForwardingHistory(BaseModel):
    count: int = 0
    total_fee_earned_msat: int = 0
    total_fee_earned_sat: int = 0
    total_amount_in_msat: int = 0
    total_amount_out_msat: int = 0
    start_time: int
    end_time: int
    forwarding_events: List[ForwardingEvent] = Field(default_factory=list)


class ChannelForwardingSummary(BaseModel):
    chan_id: ChannelId
    forwards_in: int = 0
    forwards_out: int = 0
    fee_earned_msat: int = 0
    amount_routed_in_msat: int = 0
    amount_routed_out_msat: int = 0
    fee_earned_sat: int = 0
    total_forwards: int = 0


class ForwardingSummary(BaseModel):
    total_events: int = 0
    total_fee_earned_msat: int = 0
    total_fee_earned_sat: int = 0
    total_amount_in_msat: int = 0
    total_amount_out_msat: int = 0
    unique_channels: int = 0
    start_time: int
    end_time: int
    channel_summary: List[ChannelForwardingSummary] = Field(default_factory=list)


# Dust analysis of forwards

class DustRoute(BaseModel):
    route: RouteKey
    chan_id_in: ChannelId
    chan_id_out: ChannelId
    dust_forward_count: int = 0
    total_dust_amount_msat: int = 0
    total_dust_fee_msat: int = 0
    total_dust_amount_sat: int = 0
    total_dust_fee_sat: int = 0
    min_amount_sat: int = 0
    max_amount_sat: int = 0
    avg_amount_sat: int = 0
    suspicious: bool = False


class InboundDustSource(BaseModel):
    chan_id_in: ChannelId
    dust_count: int


class DustRecommendation(BaseModel):
    action: str = "increase_min_htlc"
    chan_id: ChannelId
    reason: str
    suggested_min_htlc_msat: int


class DustAnalysisReport(BaseModel):
    period: str
    start_time: int
    end_time: int
    dust_threshold_sat: int
    suspicious_rate_threshold: int
    total_forwards: int = 0
    total_dust_forwards: int = 0
    total_normal_forwards: int = 0
    dust_percentage: int = 0
    total_dust_fee_earned_msat: int = 0
    total_dust_fee_earned_sat: int = 0
    total_normal_fee_earned_msat: int = 0
    total_normal_fee_earned_sat: int = 0
    fee_efficiency_warning: Optional[str] = None
    suspicious_routes_count: int = 0
    suspicious_inbound_channels: int = 0
    alert: str
    recommendations: List[DustRecommendation] = Field(default_factory=list)
    suspicious_routes: List[DustRoute] = Field(default_factory=list)
    suspicious_inbound_details: List[InboundDustSource] = Field(default_factory=list)


# Wallet

class UtxoListing(BaseModel):
    total_utxos: int = 0
    total_balance_sat: int = 0
    total_balance_btc: str = "0.00000000"
    utxos: List[UTXO] = Field(default_factory=list)


class DustUtxo(BaseModel):
    txid: str
    output_index: int
    outpoint: Outpoint
    amount_sat: int
    address: str
    confirmations: int
    risk: str = "dust_attack_likely"
    recommendation: str = "Do NOT spend - freeze this UTXO"


class FreezeResult(BaseModel):
    outpoint: Outpoint
    status: str  # frozen | freeze_failed
    lease_duration_seconds: Optional[int] = None
    lease_duration_days: Optional[int] = None
    expiration: Optional[int] = None
    error: Optional[str] = None


class UtxoDustReport(BaseModel):
    dust_threshold_sat: int
    total_utxos: int = 0
    dust_utxos_count: int = 0
    normal_utxos_count: int = 0
    dust_total_sat: int = 0
    normal_total_sat: int = 0
    alert: str
    auto_freeze_enabled: bool = False
    frozen_results: Optional[List[FreezeResult]] = None
    dust_utxos: List[DustUtxo] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.frozen_results or [] if r.status == "freeze_failed")


class LeaseResult(BaseModel):
    outpoint: Outpoint
    status: str  # frozen | unfrozen
    lease_duration_seconds: Optional[int] = None
    lease_duration_days: Optional[int] = None
    expiration: Optional[Union[int, str]] = None


# Peers

class PeerScore(BaseModel):
    pubkey: str
    channels: List[ChannelId] = Field(default_factory=list)
    num_channels: int = 0
    total_capacity_sat: int = 0
    total_local_balance_sat: int = 0
    total_revenue_msat: int = 0
    total_revenue_sat: int = 0
    total_forwards: int = 0
    avg_uptime_pct: int = 0
    revenue_per_million_capacity: int = 0
    score: int = 0


class PeerScoreReport(BaseModel):
    total_peers_scored: int = 0
    period_days: int
    peer_scores: List[PeerScore] = Field(default_factory=list)


# Rebalancing

class RebalanceCandidate(BaseModel):
    chan_id: ChannelId
    channel_point: str
    remote_pubkey: str
    capacity_sat: int
    local_balance_sat: int
    local_ratio_pct: int
    target_ratio_pct: int
    deviation_pct: int
    amount_to_move_sat: int


class RebalanceSuggestion(BaseModel):
    from_channel: ChannelId
    from_pubkey: str
    from_local_ratio_pct: int
    to_channel: ChannelId
    to_pubkey: str
    to_local_ratio_pct: int
    suggested_amount_sat: int


class RebalancePlan(BaseModel):
    target_ratio_pct: int
    min_deviation_pct: int
    channels_need_outflow: int = 0
    channels_need_inflow: int = 0
    suggested_rebalances: List[RebalanceSuggestion] = Field(default_factory=list)
    sources: List[RebalanceCandidate] = Field(default_factory=list)
    sinks: List[RebalanceCandidate] = Field(default_factory=list)


# Fees

class FeeSuggestion(BaseModel):
    chan_id: ChannelId
    channel_point: str
    remote_pubkey: str
    capacity_sat: int
    local_balance_sat: int
    local_ratio_pct: int
    tier: FeeTier
    suggested_fee_rate_ppm: int
    suggested_base_fee_msat: int
    reason: str


class FeeApplyResult(BaseModel):
    channel_point: str
    status: str  # applied | apply_failed
    error: Optional[str] = None


class FeeSuggestionSet(BaseModel):
    total_channels: int = 0
    applied: bool = False
    suggestions: List[FeeSuggestion] = Field(default_factory=list)
    apply_results: Optional[List[FeeApplyResult]] = None

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.apply_results or [] if r.status == "apply_failed")


class FeePolicyUpdate(BaseModel):
    channel_point: Optional[str] = None
    scope: str  # channel | global
    base_fee_msat: int
    fee_rate_ppm: int
    time_lock_delta: int


class MinHtlcUpdate(BaseModel):
    updated: Union[int, str]
    channel_point: Optional[str] = None
    min_htlc_msat: int
    min_htlc_sat: int
    preserved_base_fee_msat: Optional[int] = None
    preserved_fee_rate_ppm: Optional[int] = None
    warning: Optional[str] = None
