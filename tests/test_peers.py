from lnwatch.analysis.peers import channel_activity, peer_score, score_peers

from conftest import make_channel, make_event

P = "02" + "1" * 64
Q = "03" + "2" * 64


def network():
    channels = [
        make_channel(chan_id="101", pubkey=P, capacity=1_000_000, uptime=3600, lifetime=3600),
        make_channel(chan_id="102", pubkey=P, capacity=3_000_000, uptime=1800, lifetime=3600),
        make_channel(chan_id="201", pubkey=Q, capacity=1_000_000, uptime=3600, lifetime=3600),
    ]
    events = [make_event(chan_in="101", chan_out="201", fee_msat=1000) for _ in range(10)]
    return channels, events


def test_channel_activity_roles():
    _, events = network()
    activity = channel_activity(events)
    assert activity.revenue_msat == {"201": 10_000}
    assert activity.forwards == {"201": 10, "101": 10}


def test_peer_scores():
    channels, events = network()
    report = score_peers(channels, events, period_days=30)

    assert report.total_peers_scored == 2
    assert report.period_days == 30
    q, p = report.peer_scores

    assert q.pubkey == Q
    assert q.revenue_per_million_capacity == 10
    assert q.total_forwards == 10
    assert q.score == 37  # 10 * 0.5 + 100 * 0.3 + 10 * 0.2

    assert p.pubkey == P
    assert p.channels == ["101", "102"]
    assert p.total_capacity_sat == 4_000_000
    assert p.avg_uptime_pct == 75  # plain mean, not capacity weighted
    assert p.total_revenue_msat == 0
    assert p.score == 25  # 22.5 + 2, halves round up


def test_forward_contribution_is_capped():
    assert peer_score(0, 0, 1000) == 200
    assert peer_score(0, 0, 5000) == 200


def test_zero_capacity_peer():
    channel = make_channel(chan_id="301", capacity=0, local=0, uptime=0, lifetime=0)
    events = [make_event(chan_in="999", chan_out="301", fee_msat=5000)]
    score = score_peers([channel], events).peer_scores[0]
    assert score.revenue_per_million_capacity == 0
    assert score.avg_uptime_pct == 0
    assert score.total_revenue_msat == 5000


def test_no_channels():
    report = score_peers([], [])
    assert report.total_peers_scored == 0
    assert report.peer_scores == []
