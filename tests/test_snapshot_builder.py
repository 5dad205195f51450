import asyncio
import random

from subnet_state.chain.gateway import ChainQueryError
from subnet_state.chain.schemas import AxonInfo
from subnet_state.core.snapshot import SnapshotBuilder


def _build(gateway, *, min_stake: int = 500, subnet_id: int = 52, **kwargs):
    return asyncio.run(SnapshotBuilder(gateway, subnet_id, min_stake, **kwargs).build())


def test_high_stake_hotkey_is_validator(fake_gateway, axon):
    gw = fake_gateway([axon(5, "H1")], stakes={"H1": 1000})

    result = _build(gw)

    assert result.subnet_state.active_validator_hotkeys == {5: "H1"}
    assert "H1" not in result.subnet_state.active_miner_hotkeys.values()


def test_low_stake_hotkey_is_miner(fake_gateway, axon):
    gw = fake_gateway([axon(7, "H2")], stakes={"H2": 10})

    result = _build(gw)

    assert result.subnet_state.active_miner_hotkeys == {7: "H2"}
    assert result.subnet_state.active_validator_hotkeys == {}


def test_stake_equal_to_threshold_is_miner(fake_gateway, axon):
    gw = fake_gateway([axon(3, "H0")], stakes={"H0": 500})

    result = _build(gw)

    assert result.subnet_state.active_miner_hotkeys == {3: "H0"}


def test_unregistered_hotkey_absent_everywhere(fake_gateway, axon):
    gw = fake_gateway(
        [axon(5, "H1"), axon(9, "H3")],
        stakes={"H1": 1000, "H3": 99999},
        registered={"H3": False},
    )

    result = _build(gw)
    state = result.subnet_state

    assert 9 not in state.active_validator_hotkeys
    assert 9 not in state.active_miner_hotkeys
    assert [a.hotkey for a in state.active_axon_infos] == ["H1"]
    assert result.report.unregistered_hotkeys == ("H3",)
    assert "H3" not in result.global_state.hotkey_stakes


def test_maps_disjoint_and_sorted_regardless_of_completion_order(fake_gateway):
    rng = random.Random(7)
    uids = list(range(40))
    rng.shuffle(uids)
    axons = [AxonInfo(uid=u, hotkey=f"hk{u}") for u in uids]
    stakes = {f"hk{u}": float(rng.choice([0, 100, 500, 501, 5000])) for u in uids}
    delays = {f"hk{u}": rng.random() / 100 for u in uids}
    gw = fake_gateway(axons, stakes=stakes, delays=delays)

    state = _build(gw).subnet_state

    validator_uids = list(state.active_validator_hotkeys)
    miner_uids = list(state.active_miner_hotkeys)
    assert validator_uids == sorted(validator_uids)
    assert miner_uids == sorted(miner_uids)
    assert set(validator_uids).isdisjoint(miner_uids)
    assert set(state.active_validator_hotkeys.values()).isdisjoint(state.active_miner_hotkeys.values())
    assert len(validator_uids) + len(miner_uids) == 40
    for uid, hk in state.active_validator_hotkeys.items():
        assert stakes[hk] > 500


def test_empty_listing_yields_empty_state(fake_gateway):
    result = _build(fake_gateway([]))

    assert result.subnet_state.subnet_id == 52
    assert result.subnet_state.active_validator_hotkeys == {}
    assert result.subnet_state.active_miner_hotkeys == {}
    assert result.subnet_state.active_axon_infos == []
    assert not result.report.listing_failed
    assert not result.report.degraded


def test_listing_error_yields_empty_state_without_raising(fake_gateway, axon):
    gw = fake_gateway([axon(1, "H1")], list_error=ChainQueryError("node down"))

    result = _build(gw)

    assert result.subnet_state.active_axon_infos == []
    assert result.report.listing_failed
    assert result.report.degraded
    assert gw.stake_calls == []


def test_failed_query_leaves_hotkey_unclassified(fake_gateway, axon):
    gw = fake_gateway(
        [axon(1, "A"), axon(2, "B"), axon(3, "C")],
        stakes={"A": 1000, "B": 1000, "C": 1},
        stake_errors={"B"},
        registration_errors={"C"},
    )

    result = _build(gw)
    state = result.subnet_state

    assert state.active_validator_hotkeys == {1: "A"}
    assert state.active_miner_hotkeys == {}
    # Unknown hotkeys stay listed; only unregistered ones are pruned.
    assert [a.uid for a in state.active_axon_infos] == [1, 2, 3]
    assert result.report.failed_queries == 2
    assert result.report.degraded
    assert set(result.global_state.hotkey_stakes) == {"A"}


def test_slow_query_times_out_and_is_unknown(fake_gateway, axon):
    gw = fake_gateway(
        [axon(1, "fast"), axon(2, "slow")],
        stakes={"fast": 1000, "slow": 1000},
        delays={"slow": 1.0},
    )

    result = _build(gw, call_timeout_s=0.05)

    assert result.subnet_state.active_validator_hotkeys == {1: "fast"}
    assert result.report.failed_queries == 1


def test_axons_without_hotkey_are_not_queried(fake_gateway, axon):
    gw = fake_gateway([axon(0, ""), axon(1, "H1")], stakes={"H1": 1})

    result = _build(gw)

    assert gw.stake_calls == ["H1"]
    assert result.subnet_state.active_miner_hotkeys == {1: "H1"}
    assert len(result.subnet_state.active_axon_infos) == 2
    assert result.report.hotkeys_queried == 1


def test_fan_out_respects_max_concurrency(fake_gateway):
    axons = [AxonInfo(uid=u, hotkey=f"hk{u}") for u in range(20)]
    gw = fake_gateway(axons, delays={f"hk{u}": 0.01 for u in range(20)})

    _build(gw, max_concurrency=3)

    assert len(gw.stake_calls) == 20
    assert gw.max_in_flight <= 3


def test_global_state_carries_fetched_stakes(fake_gateway, axon):
    gw = fake_gateway([axon(5, "H1"), axon(7, "H2")], stakes={"H1": 1000, "H2": 10})

    gs = _build(gw).global_state

    assert gs.stake_of("H1") == (1000.0, True)
    assert gs.stake_of("H2") == (10.0, True)
    assert gs.stake_of("nope") == (0.0, False)


def test_hotkey_listed_at_two_uids_is_queried_once_and_kept_in_one_map(fake_gateway, axon):
    gw = fake_gateway(
        [axon(4, "dup"), axon(2, "dup"), axon(6, "solo")],
        stakes={"dup": 1000, "solo": 10},
    )

    state = _build(gw).subnet_state

    assert gw.stake_calls.count("dup") == 1
    assert state.active_validator_hotkeys == {2: "dup", 4: "dup"}
    assert list(state.active_validator_hotkeys) == [2, 4]
    assert "dup" not in state.active_miner_hotkeys.values()
    assert state.active_miner_hotkeys == {6: "solo"}
