import logging

import pytest

from conftest import (
    CNCT_NAME,
    CNCT_POLICY,
    CNCT_UNIT,
    OPERATOR_PKH,
    POOL_ADDRESS,
    PROXY_ADDRESS,
    STAKE_KEY_POLICY,
    USER_PKH,
    make_pool_datum,
    make_request_datum,
)
from stake_actions import (
    ActionError,
    SpendPlan,
    cancel_stake,
    create_pool_output,
    stake_pool_datum,
    stake_request_datum,
    stake_request_output,
    unlock_pool,
    unlock_stake,
    wallet_destination,
)
from stake_contract_config import CIP68_REFERENCE_LABEL, CIP68_USER_LABEL
from stake_datum_types import (
    LockDatum,
    Rational,
    StakePoolDatum,
    StakePoolProxyDatum,
    TimeLockDatum,
    decode_as,
    encode_datum,
)
from stake_settlement import NoEligiblePair, UtxoRecord, compute_settlement, pool_candidates, request_candidates

NOW = 1_706_000_000_000
HOUR = 1000 * 60 * 60
STAKE_NFT_NAME = bytes.fromhex("6921e91f6af4b4eef9d1a9b55ed75c4e09243b3c67edd1f013230d75")
USER_UNIT = (STAKE_KEY_POLICY + CIP68_USER_LABEL + STAKE_NFT_NAME).hex()
REFERENCE_UNIT = (STAKE_KEY_POLICY + CIP68_REFERENCE_LABEL + STAKE_NFT_NAME).hex()

TIERS = [(1000 * 60 * 5, Rational(5, 100)), (1000 * 60 * 10, Rational(10, 100))]


def time_lock_utxo(tx_hash, lock_until, key=STAKE_KEY_POLICY + CIP68_USER_LABEL + STAKE_NFT_NAME):
    datum = TimeLockDatum({b"name": b"Stake NFT 1K CNCT - 240123"}, 1, LockDatum(lock_until, key))
    return UtxoRecord(tx_hash, 1, {CNCT_UNIT: 1100, REFERENCE_UNIT: 1, "lovelace": 3_000_000}, encode_datum(datum))


# =============================================================================
# DATUM BUILDERS
# =============================================================================

def test_wallet_destination():
    with_stake = wallet_destination(USER_PKH, USER_PKH)
    assert with_stake == make_request_datum().destination_info()
    assert wallet_destination(USER_PKH).address.stake_credential is None


def test_stake_pool_datum():
    assert stake_pool_datum(OPERATOR_PKH, CNCT_POLICY, CNCT_NAME, TIERS) == make_pool_datum()


@pytest.mark.parametrize("owner, tiers", [
    (OPERATOR_PKH[:27], TIERS),
    (OPERATOR_PKH, []),
])
def test_stake_pool_datum_rejects(owner, tiers):
    with pytest.raises(ActionError):
        stake_pool_datum(owner, CNCT_POLICY, CNCT_NAME, tiers)


def test_stake_request_datum_copies_tier():
    datum = stake_request_datum(
        USER_PKH, wallet_destination(USER_PKH, USER_PKH), make_pool_datum(),
        reward_index=1, asset_amount=1000, stake_key_policy_id=STAKE_KEY_POLICY,
    )
    assert datum == make_request_datum()


@pytest.mark.parametrize("reward_index, amount", [(2, 1000), (-1, 1000), (0, 0)])
def test_stake_request_datum_rejects(reward_index, amount):
    with pytest.raises(ActionError):
        stake_request_datum(
            USER_PKH, wallet_destination(USER_PKH), make_pool_datum(),
            reward_index=reward_index, asset_amount=amount, stake_key_policy_id=STAKE_KEY_POLICY,
        )


def test_stake_request_datum_checks_destination():
    with pytest.raises(ActionError):
        stake_request_datum(
            USER_PKH, wallet_destination(USER_PKH[:20]), make_pool_datum(),
            reward_index=0, asset_amount=1000, stake_key_policy_id=STAKE_KEY_POLICY,
        )


# =============================================================================
# OUTPUTS
# =============================================================================

def test_create_pool_output(context):
    output = create_pool_output(context, make_pool_datum(), 100_000_000)
    assert output.address == POOL_ADDRESS
    assert output.assets == {CNCT_UNIT: 100_000_000}
    assert decode_as(output.datum, StakePoolDatum) == make_pool_datum()
    with pytest.raises(ActionError):
        create_pool_output(context, make_pool_datum(), 0)


def test_stake_request_output(context):
    output = stake_request_output(context, make_request_datum())
    assert output.address == PROXY_ADDRESS
    assert output.assets == {CNCT_UNIT: 1000, "lovelace": 6_500_000}
    assert decode_as(output.datum, StakePoolProxyDatum) == make_request_datum()


def test_stake_request_deposit_must_cover_outputs(context):
    assert stake_request_output(context, make_request_datum(), deposit=4_500_000)
    with pytest.raises(ActionError):
        stake_request_output(context, make_request_datum(), deposit=4_499_999)


def test_placed_request_is_settled(context, pool_utxo, certificate_utxo):
    output = stake_request_output(context, make_request_datum())
    placed = UtxoRecord("aa" * 32, 1, output.assets, output.datum)
    plan = compute_settlement(
        pool_candidates([pool_utxo], OPERATOR_PKH),
        request_candidates([placed]),
        context,
        certificate=certificate_utxo,
        current_time_ms=NOW,
    )
    assert plan.reward_index == 1
    assert plan.reward_total == 1100


# =============================================================================
# CANCEL AND WITHDRAW
# =============================================================================

def test_cancel_stake(request_utxo):
    other = UtxoRecord("01" * 32, 0, {}, encode_datum(make_request_datum(owner=OPERATOR_PKH)))
    plan = cancel_stake([other, request_utxo], USER_PKH)
    assert isinstance(plan, SpendPlan)
    assert plan.spend_input == request_utxo
    assert plan.redeemer.hex() == "d87980"
    assert plan.required_signer == USER_PKH
    assert plan.mint == {}


def test_cancel_stake_needs_own_request(request_utxo):
    assert isinstance(cancel_stake([request_utxo], OPERATOR_PKH), NoEligiblePair)


def test_unlock_pool(pool_utxo):
    plan = unlock_pool([pool_utxo], OPERATOR_PKH)
    assert plan.spend_input == pool_utxo
    assert plan.redeemer.hex() == "d87a9fd8799f00ffff"
    assert plan.required_signer == OPERATOR_PKH


def test_unlock_pool_needs_own_pool(pool_utxo):
    assert isinstance(unlock_pool([pool_utxo], USER_PKH), NoEligiblePair)


# =============================================================================
# UNLOCK STAKE
# =============================================================================

def test_unlock_stake():
    lock = time_lock_utxo("ee" * 32, NOW - 1000)
    plan = unlock_stake([lock], STAKE_KEY_POLICY, NOW)
    assert plan.spend_input == lock
    assert plan.redeemer.hex() == "d87980"
    assert plan.valid_from == NOW - 1000
    assert plan.valid_to == NOW + HOUR
    assert plan.mint == {USER_UNIT: -1, REFERENCE_UNIT: -1}
    assert plan.mint_redeemer.hex() == "d8799f0000d87980ff"
    assert plan.required_signer is None


def test_unlock_stake_inside_window():
    lock = time_lock_utxo("ee" * 32, NOW + HOUR - 1)
    plan = unlock_stake([lock], STAKE_KEY_POLICY, NOW)
    assert plan.valid_from == NOW + HOUR - 1


def test_unlock_stake_skips_unusable_locks(caplog):
    still_locked = time_lock_utxo("01" * 32, NOW + HOUR)
    other_policy = time_lock_utxo("02" * 32, 0, key=bytes.fromhex("ef" * 28) + CIP68_USER_LABEL + STAKE_NFT_NAME)
    garbage = UtxoRecord("03" * 32, 0, {}, b"\x00")
    no_datum = UtxoRecord("04" * 32, 0, {})
    matured = time_lock_utxo("05" * 32, NOW)

    with caplog.at_level(logging.DEBUG, logger="stake_actions"):
        plan = unlock_stake([still_locked, other_policy, garbage, no_datum, matured], STAKE_KEY_POLICY, NOW)
    assert plan.spend_input == matured
    assert "locked until" in caplog.text


def test_unlock_stake_nothing_matured():
    result = unlock_stake([time_lock_utxo("01" * 32, NOW + 2 * HOUR)], STAKE_KEY_POLICY, NOW)
    assert isinstance(result, NoEligiblePair)


def test_unlock_stake_only_held_keys():
    lock = time_lock_utxo("ee" * 32, NOW)
    assert isinstance(unlock_stake([lock], STAKE_KEY_POLICY, NOW, held_units=set()), NoEligiblePair)
    assert unlock_stake([lock], STAKE_KEY_POLICY, NOW, held_units={USER_UNIT}).spend_input == lock
