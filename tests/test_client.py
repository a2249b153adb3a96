import asyncio
import base64
import json

import httpx
import pytest

from lnwatch.api.client import LEASE_ID, LNDRestClient, LNDTransportError

from conftest import channel_json

MACAROON = "0201036c6e64"


class Recorder:
    """MockTransport handler that answers from a route table and keeps every request"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[(request.method, request.url.path)]
        return handler(request) if callable(handler) else httpx.Response(200, json=handler)

    def body(self, index=-1):
        return json.loads(self.requests[index].content)


def run(routes, call):
    recorder = Recorder(routes)

    async def go():
        client = LNDRestClient("https://node:8080", macaroon_hex=MACAROON,
                               transport=httpx.MockTransport(recorder))
        async with client:
            return await call(client)

    return asyncio.run(go()), recorder


def test_list_channels_sends_macaroon_and_parses_strings():
    routes = {('GET', '/v1/channels'): {'channels': [channel_json(chan_id="7", capacity=2_000_000)]}}
    channels, recorder = run(routes, lambda c: c.list_channels())

    assert recorder.requests[0].headers['Grpc-Metadata-macaroon'] == MACAROON
    assert channels[0].chan_id == "7"
    assert channels[0].capacity == 2_000_000


def test_missing_channel_list_is_empty():
    channels, _ = run({('GET', '/v1/channels'): {}}, lambda c: c.list_channels())
    assert channels == []


def test_forwarding_page_request_and_cursor():
    routes = {('POST', '/v1/switch'): {
        'forwarding_events': [{'chan_id_in': "1", 'chan_id_out': "2", 'amt_out_msat': "5000", 'fee_msat': "1"}],
        'last_offset_index': "42",
    }}
    (events, cursor), recorder = run(routes, lambda c: c.get_forwarding_page(100, 200, 10, 30))

    assert recorder.body() == {'start_time': "100", 'end_time': "200", 'num_max_events': 10, 'index_offset': 30}
    assert cursor == 42
    assert events[0].amt_out_msat == 5000


def test_list_utxos_flattens_outpoint():
    txid = "ab" * 32
    routes = {('POST', '/v2/wallet/utxos'): {'utxos': [
        {'amount_sat': "546", 'outpoint': {'txid_str': txid, 'output_index': 3}, 'confirmations': "2"},
    ]}}
    utxos, recorder = run(routes, lambda c: c.list_utxos())

    assert recorder.body() == {'min_confs': 0, 'max_confs': 2147483647}
    assert utxos[0].outpoint == f"{txid}:3"
    assert utxos[0].amount_sat == 546


def test_lease_output_body():
    txid = "00" * 31 + "01"
    routes = {('POST', '/v2/wallet/utxos/lease'): {'expiration': "1702592000"}}
    expiration, recorder = run(routes, lambda c: c.lease_output(f"{txid}:1", 2_592_000))

    body = recorder.body()
    assert base64.b64decode(body['id']) == LEASE_ID
    assert len(LEASE_ID) == 32
    assert base64.b64decode(body['outpoint']['txid_bytes']) == bytes.fromhex(txid)[::-1]
    assert body['outpoint']['output_index'] == 1
    assert body['expiration_seconds'] == "2592000"
    assert expiration == 1702592000


def test_lease_rejects_bad_outpoint():
    with pytest.raises(ValueError):
        run({}, lambda c: c.lease_output("not-an-outpoint", 60))


def test_channel_policy_for_one_channel_with_min_htlc():
    txid = "cd" * 32
    routes = {('POST', '/v1/chanpolicy'): {}}
    _, recorder = run(routes, lambda c: c.update_channel_policy(f"{txid}:0", 1000, 250, 40, min_htlc_msat=546_000))

    assert recorder.body() == {
        'base_fee_msat': "1000",
        'fee_rate_ppm': "250",
        'time_lock_delta': 40,
        'min_htlc_msat': "546000",
        'min_htlc_msat_specified': True,
        'chan_point': {'funding_txid_str': txid, 'output_index': 0},
    }


def test_global_channel_policy():
    _, recorder = run({('POST', '/v1/chanpolicy'): {}}, lambda c: c.update_channel_policy(None, 1000, 1))
    body = recorder.body()
    assert body['global'] is True
    assert 'chan_point' not in body
    assert 'min_htlc_msat' not in body


def test_fee_report_defaults():
    routes = {('GET', '/v1/fees'): {'channel_fees': [{'chan_id': "5", 'channel_point': "aa:0"}]}}
    report, _ = run(routes, lambda c: c.get_fee_report())
    assert report == [{'chan_id': "5", 'channel_point': "aa:0", 'base_fee_msat': 1000, 'fee_per_mil': 100}]


def test_api_error_raises_transport_error():
    routes = {('GET', '/v1/channels'): lambda r: httpx.Response(500, json={'error': "permission denied"})}
    with pytest.raises(LNDTransportError) as exc:
        run(routes, lambda c: c.list_channels())
    assert exc.value.status_code == 500
    assert "permission denied" in str(exc.value)


def test_unparseable_response_raises_transport_error():
    routes = {('GET', '/v1/channels'): lambda r: httpx.Response(200, text="<html>proxy</html>")}
    with pytest.raises(LNDTransportError, match="Error parsing response"):
        run(routes, lambda c: c.list_channels())


def test_connection_error_raises_transport_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LNDTransportError, match="Connection error"):
        run({('GET', '/v1/channels'): refuse}, lambda c: c.list_channels())


def test_request_outside_context_manager():
    client = LNDRestClient("https://node:8080", macaroon_hex=MACAROON)
    with pytest.raises(RuntimeError):
        asyncio.run(client.list_channels())


def test_macaroon_file_is_hex_encoded(tmp_path):
    path = tmp_path / "admin.macaroon"
    path.write_bytes(b"\x02\x01\x03")
    client = LNDRestClient("https://node:8080", macaroon_path=str(path))
    assert client.macaroon_hex == "020103"
