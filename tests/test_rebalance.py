from lnwatch.analysis.rebalance import ideal_local_balance, plan_rebalances

from conftest import make_channel


def test_sources_and_sinks_pair_positionally():
    channels = [
        make_channel(chan_id="1", local=900_000),
        make_channel(chan_id="2", local=800_000),
        make_channel(chan_id="3", local=100_000),
        make_channel(chan_id="4", local=450_000),
        make_channel(chan_id="5", local=0, active=False),
    ]
    plan = plan_rebalances(channels, target_ratio_pct=50, min_deviation_pct=20)

    assert [s.chan_id for s in plan.sources] == ["1", "2"]
    assert [s.chan_id for s in plan.sinks] == ["3"]
    assert plan.channels_need_outflow == 2
    assert plan.channels_need_inflow == 1

    assert len(plan.suggested_rebalances) == 1
    move = plan.suggested_rebalances[0]
    assert (move.from_channel, move.to_channel) == ("1", "3")
    assert move.suggested_amount_sat == 400_000


def test_amount_is_capped_by_smaller_side():
    channels = [make_channel(chan_id="1", local=900_000), make_channel(chan_id="2", local=300_000)]
    plan = plan_rebalances(channels, 50, 20)
    move = plan.suggested_rebalances[0]
    assert move.suggested_amount_sat == 200_000
    assert move.suggested_amount_sat <= plan.sources[0].amount_to_move_sat
    assert move.suggested_amount_sat <= plan.sinks[0].amount_to_move_sat


def test_deviation_at_minimum_is_included():
    plan = plan_rebalances([make_channel(local=700_000)], 50, 20)
    assert plan.sources[0].deviation_pct == 20


def test_nothing_to_pair():
    plan = plan_rebalances([make_channel(local=900_000)], 50, 20)
    assert plan.suggested_rebalances == []
    assert plan.channels_need_outflow == 1


def test_ideal_local_balance_rounds():
    assert ideal_local_balance(1_000_001, 50) == 500_001
    assert ideal_local_balance(0, 50) == 0
