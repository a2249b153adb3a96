"""Channel, forwarding and wallet models based on the LND REST API structure"""

from typing import Any, List, NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.parsing import msat_to_sat, ratio_pct, to_int

ChannelId = NewType('ChannelId', str)
RouteKey = NewType('RouteKey', str)
Outpoint = NewType('Outpoint', str)

UNKNOWN_CHANNEL = ChannelId("unknown")


def route_key(chan_in: ChannelId, chan_out: ChannelId) -> RouteKey:
    return RouteKey(f"{chan_in}->{chan_out}")


def make_outpoint(txid: str, output_index: int) -> Outpoint:
    return Outpoint(f"{txid}:{output_index}")


def split_outpoint(outpoint: str) -> tuple:
    """Split ``txid:index`` (outpoints and channel points share the format)"""
    txid, sep, index = outpoint.partition(':')
    if not sep or not txid:
        raise ValueError(f"Expected txid:output_index, got {outpoint!r}")
    return txid, to_int(index)


class LNDModel(BaseModel):
    """Base for models parsed from LND JSON"""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)


class PendingHTLC(LNDModel):
    """An HTLC in flight on a channel"""
    incoming: bool = False
    amount: int = 0  # sat
    hash_lock: str = ""
    expiration_height: int = 0

    @field_validator('amount', 'expiration_height', mode='before')
    @classmethod
    def coerce_ints(cls, v: Any) -> int:
        return to_int(v)

    @field_validator('incoming', mode='before')
    @classmethod
    def none_is_false(cls, v: Any) -> bool:
        return bool(v)


class Channel(LNDModel):
    """An open channel as reported by ``GET /v1/channels``"""
    chan_id: ChannelId = ChannelId("")
    channel_point: str = ""
    remote_pubkey: str = ""
    capacity: int = 0
    local_balance: int = 0
    remote_balance: int = 0
    active: bool = False
    private: bool = False
    initiator: bool = False
    uptime: int = 0
    lifetime: int = 0
    total_satoshis_sent: int = 0
    total_satoshis_received: int = 0
    num_updates: int = 0
    pending_htlcs: List[PendingHTLC] = Field(default_factory=list)

    @field_validator(
        'capacity', 'local_balance', 'remote_balance', 'uptime', 'lifetime',
        'total_satoshis_sent', 'total_satoshis_received', 'num_updates',
        mode='before',
    )
    @classmethod
    def coerce_ints(cls, v: Any) -> int:
        return to_int(v)

    @field_validator('chan_id', 'channel_point', 'remote_pubkey', mode='before')
    @classmethod
    def str_or_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator('active', 'private', 'initiator', mode='before')
    @classmethod
    def coerce_flags(cls, v: Any) -> bool:
        return bool(v)

    @field_validator('pending_htlcs', mode='before')
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return v or []

    @property
    def local_ratio_pct(self) -> int:
        return ratio_pct(self.local_balance, self.capacity)

    @property
    def uptime_pct(self) -> int:
        return ratio_pct(self.uptime, self.lifetime)


class ForwardingEvent(LNDModel):
    """One settled forward from ``POST /v1/switch``. Amounts in msat."""
    chan_id_in: ChannelId = UNKNOWN_CHANNEL
    chan_id_out: ChannelId = UNKNOWN_CHANNEL
    amt_in_msat: int = 0
    amt_out_msat: int = 0
    fee_msat: int = 0
    timestamp: int = 0

    @field_validator('amt_in_msat', 'amt_out_msat', 'fee_msat', 'timestamp', mode='before')
    @classmethod
    def coerce_ints(cls, v: Any) -> int:
        return to_int(v)

    @field_validator('chan_id_in', 'chan_id_out', mode='before')
    @classmethod
    def channel_or_unknown(cls, v: Any) -> str:
        if v is None or v == "":
            return UNKNOWN_CHANNEL
        return str(v)

    @property
    def amt_out_sat(self) -> int:
        return msat_to_sat(self.amt_out_msat)

    def is_dust(self, threshold_sat: int) -> bool:
        return self.amt_out_sat <= threshold_sat


class UTXO(LNDModel):
    """A wallet output from ``POST /v2/wallet/utxos``"""
    txid: str = ""
    output_index: int = 0
    amount_sat: int = 0
    address: str = ""
    address_type: str = ""
    confirmations: int = 0
    pk_script: str = ""

    @field_validator('output_index', 'amount_sat', 'confirmations', mode='before')
    @classmethod
    def coerce_ints(cls, v: Any) -> int:
        return to_int(v)

    @model_validator(mode='before')
    @classmethod
    def flatten_outpoint(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get('outpoint'), dict):
            data = dict(data)
            op = data.pop('outpoint')
            data.setdefault('txid', op.get('txid_str') or "")
            data.setdefault('output_index', op.get('output_index'))
        return data

    @field_validator('txid', 'address', 'address_type', 'pk_script', mode='before')
    @classmethod
    def str_or_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def outpoint(self) -> Outpoint:
        return make_outpoint(self.txid, self.output_index)
