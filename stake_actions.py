"""
Stake Actions - Wallet side transactions around the batcher.

The batcher only executes stake requests. Everything else is run by a pool
owner or a staker from their own wallet:

- create a stake pool (owner)
- place a stake request at the stake proxy (staker)
- cancel a pending stake request (staker)
- unlock a matured time lock, burning the stake key pair (stake key holder)
- withdraw a stake pool (owner)

Like the settlement engine these functions do no I/O. They return plans the
caller turns into a signed transaction.
"""
import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, Optional, Sequence, Tuple, Union

from plutus_data import FormatError
from stake_contract_config import (
    CIP68_USER_LABEL,
    DESTINATION_LOVELACE,
    LOVELACE,
    STAKE_REQUEST_DEPOSIT_LOVELACE,
    STAKE_REQUEST_LOVELACE,
    UNLOCK_WINDOW_MS,
    CatcherContext,
)
from stake_datum_types import (
    Address,
    Credential,
    Destination,
    NoDatum,
    PoolSpendRedeemer,
    Rational,
    RewardSetting,
    Signature,
    StakeCredential,
    StakeKeyMintRedeemer,
    StakePoolDatum,
    StakePoolProxyDatum,
    StakePoolRedeemer,
    TimeLockDatum,
    VoidRedeemer,
    decode_as,
    encode_datum,
)
from stake_settlement import (
    NoEligiblePair,
    UtxoRecord,
    asset_unit,
    make_reference_name,
    out_ref_key,
    pool_candidates,
    request_candidates,
)

logger = logging.getLogger(__name__)

# Reward index carried by the owner's withdraw redeemer
WITHDRAW_REWARD_INDEX = 0


class ActionError(RuntimeError):
    """A wallet action cannot be built from the given inputs."""


# =============================================================================
# PLANS
# =============================================================================

@dataclass(frozen=True)
class OutputPlan:
    """Output paid to a script address with an inline datum."""
    address: str
    assets: Dict[str, int]
    datum: bytes


@dataclass
class SpendPlan:
    """
    One script input to spend, plus whatever the spend requires.

    Fields:
        spend_input: Script UTxO to collect
        redeemer: Spend redeemer CBOR
        required_signer: Key hash that must sign, if any
        valid_from: Lower validity bound (POSIX ms), if any
        valid_to: Upper validity bound (POSIX ms), if any
        mint: Unit -> quantity to mint (negative burns)
        mint_redeemer: Mint policy redeemer CBOR when `mint` is not empty
    """
    spend_input: UtxoRecord
    redeemer: bytes
    required_signer: Optional[bytes] = None
    valid_from: Optional[int] = None
    valid_to: Optional[int] = None
    mint: Dict[str, int] = field(default_factory=dict)
    mint_redeemer: Optional[bytes] = None


# =============================================================================
# DATUM BUILDERS
# =============================================================================

def wallet_destination(payment_key_hash: bytes, stake_key_hash: Optional[bytes] = None) -> Destination:
    """Destination paying the stake key NFT back to a key wallet."""
    stake = StakeCredential(Credential(stake_key_hash)) if stake_key_hash is not None else None
    return Destination(Address(Credential(payment_key_hash), stake), NoDatum())


def stake_pool_datum(
    owner_key_hash: bytes,
    policy_id: bytes,
    asset_name: bytes,
    tiers: Sequence[Tuple[int, Rational]],
    open_time: int = 0,
) -> StakePoolDatum:
    """
    Pool datum owned by a single key.

    `tiers` is a list of (ms_locked, multiplier). The datum is read back with
    the same checks applied to pools found on chain.
    """
    if not tiers:
        raise ActionError("A stake pool needs at least one reward tier")
    datum = StakePoolDatum(
        reward_settings=[RewardSetting(ms, multiplier.to_data()) for ms, multiplier in tiers],
        policy_id=policy_id,
        asset_name=asset_name,
        owner=Signature(owner_key_hash).to_data(),
        open_time=open_time,
    )
    try:
        decoded = decode_as(encode_datum(datum), StakePoolDatum)
        decoded.owner_key_hash()
    except FormatError as exc:
        raise ActionError(f"Invalid stake pool datum: {exc}") from exc
    return decoded


def stake_request_datum(
    owner_key_hash: bytes,
    destination: Destination,
    pool: StakePoolDatum,
    reward_index: int,
    asset_amount: int,
    stake_key_policy_id: bytes,
    lovelace_amount: int = STAKE_REQUEST_LOVELACE,
) -> StakePoolProxyDatum:
    """Request for one of the pool's reward tiers, copied from the pool datum."""
    if not 0 <= reward_index < len(pool.reward_settings):
        raise ActionError(f"Pool has no reward tier {reward_index}")
    if asset_amount <= 0:
        raise ActionError(f"Stake amount must be positive, got {asset_amount}")
    tier = pool.reward_settings[reward_index]
    datum = StakePoolProxyDatum(
        owner=Signature(owner_key_hash).to_data(),
        destination=destination.to_data(),
        ms_locked=tier.ms_locked,
        reward_multiplier=tier.reward_multiplier,
        policy_id=pool.policy_id,
        asset_name=pool.asset_name,
        asset_amount=asset_amount,
        lovelace_amount=lovelace_amount,
        nft_policy_id=stake_key_policy_id,
    )
    try:
        decoded = decode_as(encode_datum(datum), StakePoolProxyDatum)
        decoded.owner_key_hash()
        decoded.destination_info()
    except FormatError as exc:
        raise ActionError(f"Invalid stake request datum: {exc}") from exc
    return decoded


# =============================================================================
# OUTPUTS
# =============================================================================

def create_pool_output(context: CatcherContext, datum: StakePoolDatum, amount: int) -> OutputPlan:
    """Pool output funded with `amount` of the pooled asset."""
    if amount <= 0:
        raise ActionError(f"Pool must be funded, got {amount}")
    unit = asset_unit(datum.policy_id, datum.asset_name)
    logger.info("Creating stake pool with %d of %s", amount, unit)
    return OutputPlan(context.stake_pool_address, {unit: amount}, encode_datum(datum))


def stake_request_output(
    context: CatcherContext,
    datum: StakePoolProxyDatum,
    deposit: int = STAKE_REQUEST_DEPOSIT_LOVELACE,
) -> OutputPlan:
    """
    Stake request output at the stake proxy.

    The deposit pays the lovelace carried to the time lock and the min ADA of
    the stake key NFT sent to the destination.
    """
    if deposit < datum.lovelace_amount + DESTINATION_LOVELACE:
        raise ActionError(
            f"Deposit {deposit} cannot cover {datum.lovelace_amount} locked plus {DESTINATION_LOVELACE} for the stake key"
        )
    unit = asset_unit(datum.policy_id, datum.asset_name)
    logger.info("Staking %d of %s for %d ms", datum.asset_amount, unit, datum.ms_locked)
    return OutputPlan(
        context.stake_proxy_address,
        {unit: datum.asset_amount, LOVELACE: deposit},
        encode_datum(datum),
    )


# =============================================================================
# SPENDS
# =============================================================================

def cancel_stake(records: Iterable[UtxoRecord], owner_key_hash: bytes) -> Union[SpendPlan, NoEligiblePair]:
    """Reclaim the first pending stake request owned by `owner_key_hash`."""
    candidates = request_candidates(records, owner_key_hash)
    if not candidates:
        return NoEligiblePair("no stake request owned by the wallet")
    request = candidates[0].utxo
    logger.info("Cancelling stake request %s", out_ref_key(request))
    return SpendPlan(request, encode_datum(VoidRedeemer()), required_signer=owner_key_hash)


def unlock_pool(records: Iterable[UtxoRecord], owner_key_hash: bytes) -> Union[SpendPlan, NoEligiblePair]:
    """Withdraw the first stake pool owned by `owner_key_hash`."""
    candidates = pool_candidates(records, owner_key_hash)
    if not candidates:
        return NoEligiblePair("no stake pool owned by the wallet")
    pool = candidates[0].utxo
    redeemer = PoolSpendRedeemer(StakePoolRedeemer(reward_index=WITHDRAW_REWARD_INDEX))
    logger.info("Withdrawing stake pool %s", out_ref_key(pool))
    return SpendPlan(pool, encode_datum(redeemer), required_signer=owner_key_hash)


def unlock_stake(
    records: Iterable[UtxoRecord],
    stake_key_policy_id: bytes,
    current_time_ms: int,
    held_units: Optional[Collection[str]] = None,
) -> Union[SpendPlan, NoEligiblePair]:
    """
    Spend the first matured time lock and burn its stake key pair.

    The transaction is valid from `lock_until` to one hour after
    `current_time_ms`, so a lock qualifies once `lock_until` falls inside that
    window. With `held_units`, only locks whose user token is held qualify.
    """
    user_prefix = stake_key_policy_id + CIP68_USER_LABEL
    valid_to = current_time_ms + UNLOCK_WINDOW_MS
    for record in records:
        if record.datum is None:
            continue
        try:
            lock = decode_as(record.datum, TimeLockDatum).extra
        except FormatError as exc:
            logger.debug("Skipping %s: %s", out_ref_key(record), exc)
            continue
        if not lock.time_lock_key.startswith(user_prefix):
            logger.debug("Skipping %s: key of another policy", out_ref_key(record))
            continue
        user_unit = lock.time_lock_key.hex()
        if held_units is not None and user_unit not in held_units:
            continue
        if lock.lock_until >= valid_to:
            logger.debug("Skipping %s: locked until %d", out_ref_key(record), lock.lock_until)
            continue

        stake_nft_name = lock.time_lock_key[len(user_prefix):]
        reference_unit = asset_unit(stake_key_policy_id, make_reference_name(stake_nft_name))
        logger.info("Unlocking %s, locked until %d", out_ref_key(record), lock.lock_until)
        return SpendPlan(
            spend_input=record,
            redeemer=encode_datum(VoidRedeemer()),
            valid_from=lock.lock_until,
            valid_to=valid_to,
            mint={user_unit: -1, reference_unit: -1},
            mint_redeemer=encode_datum(StakeKeyMintRedeemer(stake_pool_index=0, time_lock_index=0, mint=False)),
        )
    return NoEligiblePair("no matured time lock")
