"""Shared fixtures: a stake pool, a stake request and the batching certificate."""

import pytest

from stake_contract_config import CatcherContext
from stake_datum_types import (
    Address,
    Credential,
    Destination,
    NoDatum,
    Rational,
    RewardSetting,
    Signature,
    StakeCredential,
    StakePoolDatum,
    StakePoolProxyDatum,
    encode_datum,
)
from stake_settlement import UtxoRecord, asset_unit

OPERATOR_PKH = bytes.fromhex("0c61f135f652bc17994a5411d0a256de478ea24dbc19759d2ba14f03")
USER_PKH = bytes.fromhex("cb84310092f8c3dae1ebf0ac456114e487297d3fe684d3236588d5b3")
CNCT_POLICY = bytes.fromhex("c27600f3aff3d94043464a33786429b78e6ab9df5e1d23b774acb34c")
CNCT_NAME = b"CNCT"
STAKE_KEY_POLICY = bytes.fromhex("ab" * 28)
CERTIFICATE_UNIT = "dd" * 28 + b"CNCT_CERTIFICATE".hex()
CNCT_UNIT = asset_unit(CNCT_POLICY, CNCT_NAME)

POOL_ADDRESS = "addr_test1_pool"
PROXY_ADDRESS = "addr_test1_proxy"
TIME_LOCK_ADDRESS = "addr_test1_timelock"
WALLET_ADDRESS = "addr_test1_batcher"


def make_pool_datum(owner: bytes = OPERATOR_PKH) -> StakePoolDatum:
    return StakePoolDatum(
        reward_settings=[
            RewardSetting(ms_locked=1000 * 60 * 5, reward_multiplier=Rational(5, 100).to_data()),
            RewardSetting(ms_locked=1000 * 60 * 10, reward_multiplier=Rational(10, 100).to_data()),
        ],
        policy_id=CNCT_POLICY,
        asset_name=CNCT_NAME,
        owner=Signature(owner).to_data(),
        open_time=0,
    )


def make_request_datum(owner: bytes = USER_PKH, ms_locked: int = 1000 * 60 * 10,
                       multiplier: Rational = Rational(10, 100)) -> StakePoolProxyDatum:
    return StakePoolProxyDatum(
        owner=Signature(owner).to_data(),
        destination=Destination(
            address=Address(Credential(USER_PKH), StakeCredential(Credential(USER_PKH))),
            datum=NoDatum(),
        ).to_data(),
        ms_locked=ms_locked,
        reward_multiplier=multiplier.to_data(),
        policy_id=CNCT_POLICY,
        asset_name=CNCT_NAME,
        asset_amount=1000,
        lovelace_amount=3_000_000,
        nft_policy_id=STAKE_KEY_POLICY,
    )


@pytest.fixture
def context():
    return CatcherContext(
        stake_pool_address=POOL_ADDRESS,
        stake_proxy_address=PROXY_ADDRESS,
        time_lock_address=TIME_LOCK_ADDRESS,
        wallet_address=WALLET_ADDRESS,
        operator_key_hash=OPERATOR_PKH,
        stake_key_policy_id=STAKE_KEY_POLICY,
        certificate_unit=CERTIFICATE_UNIT,
    )


@pytest.fixture
def pool_utxo():
    return UtxoRecord(
        tx_hash="bb" * 32,
        output_index=0,
        assets={CNCT_UNIT: 100_000_000, "lovelace": 2_000_000},
        datum=encode_datum(make_pool_datum()),
    )


@pytest.fixture
def request_utxo():
    return UtxoRecord(
        tx_hash="aa" * 32,
        output_index=1,
        assets={CNCT_UNIT: 1000, "lovelace": 6_500_000},
        datum=encode_datum(make_request_datum()),
    )


@pytest.fixture
def certificate_utxo():
    return UtxoRecord(
        tx_hash="cc" * 32,
        output_index=0,
        assets={CERTIFICATE_UNIT: 1, "lovelace": 1_200_000},
    )
