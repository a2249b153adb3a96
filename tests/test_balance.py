import pytest

from lnwatch.analysis.balance import analyze_balances, analyze_htlc_risk, classify_htlc_risk, list_channels
from lnwatch.models.reports import BalanceStatus, HtlcRiskLevel

from conftest import make_channel


@pytest.mark.parametrize("local,status", [
    (190_000, BalanceStatus.DEPLETED_LOCAL),
    (200_000, BalanceStatus.BALANCED),
    (500_000, BalanceStatus.BALANCED),
    (800_000, BalanceStatus.BALANCED),
    (810_000, BalanceStatus.DEPLETED_REMOTE),
])
def test_balance_status_boundaries(local, status):
    report = analyze_balances([make_channel(local=local)], threshold_pct=20)
    assert report.channels[0].status is status
    assert report.channels[0].needs_rebalance == (status is not BalanceStatus.BALANCED)


def test_zero_capacity_channel_reports_zero_ratio():
    report = analyze_balances([make_channel(capacity=0, local=0)], threshold_pct=20)
    assert report.channels[0].local_ratio_pct == 0
    assert report.channels[0].status is BalanceStatus.DEPLETED_LOCAL


def test_balance_report_counts_and_alerts():
    channels = [
        make_channel(chan_id="101", local=100_000),
        make_channel(chan_id="102", local=500_000),
        make_channel(chan_id="103", local=950_000),
    ]
    report = analyze_balances(channels, threshold_pct=20)
    assert report.total_channels == 3
    assert report.balanced_channels == 1
    assert report.imbalanced_channels == 2
    assert [a.chan_id for a in report.alerts] == ["101", "103"]


def test_list_channels_totals():
    channels = [make_channel(chan_id="101", local=300_000), make_channel(chan_id="102", capacity=2_000_000)]
    listing = list_channels(channels)
    assert listing.total_channels == 2
    assert listing.total_capacity_sat == 3_000_000
    assert listing.total_local_balance_sat == 800_000
    assert listing.total_remote_balance_sat == 2_200_000
    assert listing.channels[0].local_ratio_pct == 30


@pytest.mark.parametrize("pending,dust,warn,level", [
    (435, 0, 200, HtlcRiskLevel.CRITICAL),
    (434, 0, 200, HtlcRiskLevel.WARNING),
    (200, 0, 200, HtlcRiskLevel.WARNING),
    (199, 0, 200, HtlcRiskLevel.NORMAL),
    (12, 7, 200, HtlcRiskLevel.DUST_ATTACK_SUSPECTED),
    (12, 6, 200, HtlcRiskLevel.NORMAL),
    (10, 10, 200, HtlcRiskLevel.NORMAL),
    (11, 11, 200, HtlcRiskLevel.DUST_ATTACK_SUSPECTED),
])
def test_classify_htlc_risk(pending, dust, warn, level):
    assert classify_htlc_risk(pending, dust, warn) is level


def test_critical_and_warning_take_precedence_over_dust():
    assert classify_htlc_risk(450, 450, 200) is HtlcRiskLevel.CRITICAL
    assert classify_htlc_risk(300, 300, 200) is HtlcRiskLevel.WARNING


def test_htlc_report_dust_attack():
    attacked = make_channel(chan_id="101", htlc_amounts=[100] * 12 + [10_000] * 3)
    healthy = make_channel(chan_id="102", htlc_amounts=[50_000, 60_000])
    report = analyze_htlc_risk([attacked, healthy], warning_threshold=200, dust_threshold_sat=546)

    assert report.total_pending_htlcs == 17
    assert report.total_dust_htlcs == 12
    assert report.dust_attack_suspected == 1
    assert report.channels_at_risk == 1
    assert report.alert == "DUST ATTACK SUSPECTED on 1 channel(s)!"

    risk = report.channels[0]
    assert risk.risk_level is HtlcRiskLevel.DUST_ATTACK_SUSPECTED
    assert risk.dust_htlc_count == 12
    assert risk.dust_amount_locked_sat == 1200
    assert risk.dust_htlc_pct == 80
    assert risk.htlc_utilization_pct == 3
    assert risk.max_htlc_per_channel == 483


def test_htlc_dust_threshold_is_inclusive():
    report = analyze_htlc_risk([make_channel(htlc_amounts=[546, 547])], 200, 546)
    assert [h.is_dust for h in report.channels[0].pending_htlcs] == [True, False]


def test_htlc_report_warning_alert():
    busy = make_channel(chan_id="101", htlc_amounts=[50_000] * 5)
    report = analyze_htlc_risk([busy], warning_threshold=5, dust_threshold_sat=546)
    assert report.channels[0].risk_level is HtlcRiskLevel.WARNING
    assert report.alert == "1 channel(s) have high HTLC count"


def test_htlc_report_all_healthy():
    report = analyze_htlc_risk([make_channel()], 200, 546)
    assert report.channels[0].pending_htlc_count == 0
    assert report.channels[0].dust_htlc_pct == 0
    assert report.alert == "All channels healthy"
    assert report.alerts == []
