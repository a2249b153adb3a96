"""
Pytest fixtures for lnwatch tests.

Factories build domain objects from LND-shaped JSON, so parsing is
exercised the same way it is against a real node.
"""

import pytest

from lnwatch.api.client import LNDTransportError
from lnwatch.models.channel import UTXO, Channel, ForwardingEvent

TXID = "a" * 64


def htlc_json(amount, incoming=False, expiration_height=800_000):
    return {
        "incoming": incoming,
        "amount": str(amount),
        "hash_lock": "aGFzaA==",
        "expiration_height": expiration_height,
    }


def channel_json(chan_id="100", capacity=1_000_000, local=500_000, remote=None,
                 pubkey="02" + "a" * 64, active=True, uptime=3600, lifetime=3600,
                 htlc_amounts=(), channel_point=None):
    if remote is None:
        remote = capacity - local
    return {
        "chan_id": chan_id,
        "channel_point": channel_point or f"{TXID}:{chan_id[-1]}",
        "remote_pubkey": pubkey,
        "capacity": str(capacity),
        "local_balance": str(local),
        "remote_balance": str(remote),
        "active": active,
        "private": False,
        "initiator": True,
        "uptime": str(uptime),
        "lifetime": str(lifetime),
        "total_satoshis_sent": "0",
        "total_satoshis_received": "0",
        "num_updates": "7",
        "pending_htlcs": [htlc_json(a) for a in htlc_amounts],
    }


def make_channel(**kwargs) -> Channel:
    return Channel.model_validate(channel_json(**kwargs))


def make_event(chan_in="100", chan_out="200", amt_out_msat=1_000_000, fee_msat=1000,
               amt_in_msat=None, timestamp=1_700_000_000) -> ForwardingEvent:
    if amt_in_msat is None:
        amt_in_msat = amt_out_msat + fee_msat
    return ForwardingEvent.model_validate({
        "chan_id_in": chan_in,
        "chan_id_out": chan_out,
        "amt_in_msat": str(amt_in_msat),
        "amt_out_msat": str(amt_out_msat),
        "fee_msat": str(fee_msat),
        "timestamp": str(timestamp),
    })


def make_utxo(amount_sat, output_index=0, txid=TXID, confirmations=6) -> UTXO:
    return UTXO.model_validate({
        "address_type": "TAPROOT_PUBKEY",
        "address": "bc1p" + "q" * 58,
        "amount_sat": str(amount_sat),
        "pk_script": "5120" + "00" * 32,
        "outpoint": {"txid_str": txid, "output_index": output_index},
        "confirmations": str(confirmations),
    })


@pytest.fixture
def channel_factory():
    return make_channel


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def utxo_factory():
    return make_utxo


class FakeNode:
    """In-memory stand-in for LNDRestClient"""

    def __init__(self, channels=(), events=(), utxos=(), fee_report=(), fail_points=()):
        self.channels = list(channels)
        self.events = list(events)
        self.utxos = list(utxos)
        self.fee_report = list(fee_report)
        self.fail_points = set(fail_points)
        self.policy_updates = []
        self.leases = []
        self.released = []

    async def list_channels(self):
        return self.channels

    async def get_forwarding_page(self, start_time, end_time, limit, offset):
        page = self.events[offset:offset + limit]
        return page, offset + len(page)

    async def list_utxos(self):
        return self.utxos

    async def lease_output(self, outpoint, duration_seconds):
        if outpoint in self.fail_points:
            raise LNDTransportError("LND API error (500): output not found", status_code=500)
        self.leases.append((outpoint, duration_seconds))
        return 1_700_000_000 + duration_seconds

    async def release_output(self, outpoint):
        self.released.append(outpoint)

    async def get_fee_report(self):
        return self.fee_report

    async def update_channel_policy(self, chan_point, base_fee_msat, fee_rate_ppm,
                                    time_lock_delta=40, min_htlc_msat=None):
        if chan_point in self.fail_points:
            raise LNDTransportError("LND API error (500): unable to find channel", status_code=500)
        self.policy_updates.append({
            'chan_point': chan_point,
            'base_fee_msat': base_fee_msat,
            'fee_rate_ppm': fee_rate_ppm,
            'time_lock_delta': time_lock_delta,
            'min_htlc_msat': min_htlc_msat,
        })
        return {}


@pytest.fixture
def fake_node():
    return FakeNode
