import asyncio

from lnwatch.analysis.dust import analyze_forwarding_dust, detect_dust_utxos, lease_days, list_utxos, partition_forwards
from lnwatch.analysis.timewindow import TimeWindow
from lnwatch.models.channel import UTXO

from conftest import TXID, FakeNode, make_event, make_utxo

WINDOW = TimeWindow(1000, 2000)


def attack_events():
    dust = [make_event(chan_in="1", chan_out="2", amt_out_msat=50_000, fee_msat=1) for _ in range(300)]
    normal = [make_event(chan_in="1", chan_out="3", amt_out_msat=1_000_000, fee_msat=1000) for _ in range(200)]
    return dust + normal


def test_dust_threshold_uses_floored_sats():
    events = [make_event(amt_out_msat=100_999), make_event(amt_out_msat=101_000)]
    partition = partition_forwards(events, threshold_sat=100)
    assert len(partition.dust) == 1
    assert len(partition.normal) == 1
    assert partition.dust[0].amt_out_msat == 100_999


def test_partitions_are_disjoint_and_complete():
    events = attack_events()
    partition = partition_forwards(events, threshold_sat=100)
    assert len(partition.dust) + len(partition.normal) == len(events)
    assert not set(map(id, partition.dust)) & set(map(id, partition.normal))


def test_suspicious_route_detected():
    report = analyze_forwarding_dust(attack_events(), WINDOW, threshold_sat=100,
                                     suspicious_rate_threshold=50, period="24h")

    assert report.total_forwards == 500
    assert report.total_dust_forwards == 300
    assert report.total_normal_forwards == 200
    assert report.dust_percentage == 60
    assert report.suspicious_routes_count == 1
    assert report.alert == "DUST ATTACK WARNING: 1 route(s) with 50+ dust forwards detected"

    route = report.suspicious_routes[0]
    assert route.route == "1->2"
    assert route.dust_forward_count == 300
    assert route.min_amount_sat == 50
    assert route.max_amount_sat == 50
    assert route.avg_amount_sat == 50
    assert route.total_dust_amount_sat == 15_000

    assert report.suspicious_inbound_channels == 1
    assert report.suspicious_inbound_details[0].dust_count == 300
    recommendation = report.recommendations[0]
    assert recommendation.action == "increase_min_htlc"
    assert recommendation.chan_id == "1"
    assert recommendation.suggested_min_htlc_msat == 100_000


def test_dust_fees_and_efficiency_warning():
    report = analyze_forwarding_dust(attack_events(), WINDOW, 100, 50)
    assert report.total_dust_fee_earned_msat == 300
    assert report.total_dust_fee_earned_sat == 0
    assert report.total_normal_fee_earned_msat == 200_000
    assert report.fee_efficiency_warning.startswith("Dust forwards represent 0% of fee revenue")


def test_no_efficiency_warning_without_both_fee_kinds():
    events = [make_event(amt_out_msat=50_000, fee_msat=0), make_event(amt_out_msat=1_000_000, fee_msat=1000)]
    report = analyze_forwarding_dust(events, WINDOW, 100, 50)
    assert report.fee_efficiency_warning is None


def test_routes_below_rate_threshold_are_not_reported():
    events = [make_event(chan_in="1", chan_out="2", amt_out_msat=50_000) for _ in range(49)]
    report = analyze_forwarding_dust(events, WINDOW, 100, 50)
    assert report.suspicious_routes == []
    assert report.recommendations == []
    assert report.alert == "No suspicious dust patterns detected"


def test_inbound_channel_counted_across_routes():
    events = [make_event(chan_in="9", chan_out=str(o), amt_out_msat=10_000) for o in range(60)]
    report = analyze_forwarding_dust(events, WINDOW, 100, 50)
    assert report.suspicious_routes_count == 0
    assert report.suspicious_inbound_channels == 1
    assert report.recommendations[0].chan_id == "9"


def test_empty_history():
    report = analyze_forwarding_dust([], WINDOW, 100, 50)
    assert report.total_forwards == 0
    assert report.dust_percentage == 0


def wallet():
    return [
        make_utxo(500, output_index=0),
        make_utxo(1000, output_index=1),
        make_utxo(1001, output_index=2),
        make_utxo(50_000, output_index=3),
    ]


def test_dust_utxos_detected():
    report = asyncio.run(detect_dust_utxos(wallet(), threshold_sat=1000))
    assert report.dust_utxos_count == 2
    assert report.normal_utxos_count == 2
    assert report.dust_total_sat == 1500
    assert report.normal_total_sat == 51_001
    assert report.alert == "2 dust UTXO(s) detected (1500 sats) - potential dust attack"
    assert report.auto_freeze_enabled is False
    assert report.frozen_results is None
    assert [u.outpoint for u in report.dust_utxos] == [f"{TXID}:0", f"{TXID}:1"]


def test_no_utxos():
    report = asyncio.run(detect_dust_utxos([], threshold_sat=1000))
    assert report.total_utxos == 0
    assert report.dust_utxos_count == 0
    assert report.alert == "No dust UTXOs detected"


def test_freeze_records_failures_and_continues():
    node = FakeNode(fail_points={f"{TXID}:0"})
    report = asyncio.run(detect_dust_utxos(wallet(), 1000, freeze=node.lease_output,
                                           freeze_duration_seconds=2_592_000))

    assert report.auto_freeze_enabled is True
    statuses = [(r.outpoint, r.status) for r in report.frozen_results]
    assert statuses == [(f"{TXID}:0", "freeze_failed"), (f"{TXID}:1", "frozen")]
    assert report.failed_count == 1
    assert "output not found" in report.frozen_results[0].error
    assert report.frozen_results[1].lease_duration_days == 30
    assert node.leases == [(f"{TXID}:1", 2_592_000)]


def test_lease_days_rounds_half_up():
    assert lease_days(43_200) == 1
    assert lease_days(86_400 * 7) == 7


def test_list_utxos():
    listing = list_utxos(wallet())
    assert listing.total_utxos == 4
    assert listing.total_balance_sat == 52_501
    assert listing.total_balance_btc == "0.00052501"


def test_utxo_without_address_is_still_analyzed():
    utxo = UTXO.model_validate({'amount_sat': "300", 'address': None,
                                'outpoint': {'txid_str': TXID, 'output_index': 4}})
    report = asyncio.run(detect_dust_utxos([utxo, make_utxo(5000)], threshold_sat=1000))
    assert report.dust_utxos_count == 1
    assert report.dust_utxos[0].address == ""
