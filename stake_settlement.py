"""
Stake Settlement - Pairs a stake pool UTxO with a stake request UTxO.

Produces everything the transaction builder needs to execute a stake request:
new pool datum, time lock datum, stake key NFT names, redeemers, output
values and validity bounds. No I/O happens here.

Determinism requirements (checked by the validators):
- Stake key NFT name = blake2b-256(OutputReference of pool input)[:28]
- stake_pool_index = position of the pool input among the lexicographically
  sorted input references (tx_hash + output_index)
- Reward = floor(stake * (1 + multiplier)) on unreduced fractions
"""
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from pycardano import Address as ChainAddress
from pycardano import Network, VerificationKeyHash

from plutus_data import FormatError
from stake_contract_config import (
    CIP68_REFERENCE_LABEL,
    CIP68_USER_LABEL,
    DESTINATION_LOVELACE,
    LOVELACE,
    STAKE_NFT_NAME_LENGTH,
    TIME_LOCK_OUTPUT_INDEX,
    TIME_LOCK_VERSION,
    VALIDITY_MARGIN_MS,
    CatcherContext,
)
from stake_datum_types import (
    Destination,
    LockDatum,
    OutputReference,
    PoolSpendRedeemer,
    StakeKeyMintRedeemer,
    StakePoolDatum,
    StakePoolProxyDatum,
    StakePoolRedeemer,
    TimeLockDatum,
    TransactionId,
    VoidRedeemer,
    decode_as,
    encode_datum,
)
from stake_rewards import abbreviated_amount, apply_reward, floor_to_second, time_to_datestring

logger = logging.getLogger(__name__)


class SettlementError(RuntimeError):
    """A selected pool/request pair cannot be settled."""


# =============================================================================
# CHAIN RECORDS
# =============================================================================

@dataclass(frozen=True)
class UtxoRecord:
    """
    Unspent output as returned by the chain query collaborator.

    Fields:
        tx_hash: Hex id of the producing transaction
        output_index: Index of the output in that transaction
        assets: Unit ("lovelace" or policy hex + asset name hex) -> quantity
        datum: Inline datum CBOR, if any
    """
    tx_hash: str
    output_index: int
    assets: Mapping[str, int] = field(default_factory=dict)
    datum: Optional[bytes] = None

    def amount_of(self, unit: str) -> int:
        return self.assets.get(unit, 0)


def asset_unit(policy_id: bytes, asset_name: bytes) -> str:
    """Unit string of a native asset: policy hex followed by name hex."""
    return (policy_id + asset_name).hex()


def out_ref_key(utxo: UtxoRecord) -> str:
    """Sort key of an input: tx hash hex immediately followed by the index."""
    return f"{utxo.tx_hash}{utxo.output_index}"


def sorted_input_index(keys: Iterable[str], key: str) -> int:
    """Position of `key` once the input references are sorted ascending."""
    return sorted(keys).index(key)


def stake_nft_asset_name(tx_hash: str, output_index: int) -> bytes:
    """Unique stake key NFT name derived from the pool input's out ref."""
    reference = OutputReference(
        transaction_id=TransactionId(tx_hash=bytes.fromhex(tx_hash)),
        output_index=output_index,
    )
    digest = hashlib.blake2b(encode_datum(reference), digest_size=32).digest()
    return digest[:STAKE_NFT_NAME_LENGTH]


def destination_address(destination: Destination, network: Network) -> str:
    """Bech32 address of a destination whose credentials are key hashes."""
    address = destination.address
    staking_part = None
    if address.stake_credential is not None:
        staking_part = VerificationKeyHash(address.stake_credential.credential.credential_hash)
    return ChainAddress(
        payment_part=VerificationKeyHash(address.payment_credential.credential_hash),
        staking_part=staking_part,
        network=network,
    ).encode()


def make_reference_name(stake_nft_name: bytes) -> bytes:
    """CIP-68 reference NFT name (label 100)."""
    return CIP68_REFERENCE_LABEL + stake_nft_name


def make_user_name(stake_nft_name: bytes) -> bytes:
    """CIP-68 user NFT name (label 222)."""
    return CIP68_USER_LABEL + stake_nft_name


# =============================================================================
# CANDIDATES
# =============================================================================

@dataclass(frozen=True)
class PoolCandidate:
    utxo: UtxoRecord
    datum: StakePoolDatum


@dataclass(frozen=True)
class RequestCandidate:
    utxo: UtxoRecord
    datum: StakePoolProxyDatum


def _owned(records: Iterable[UtxoRecord], datum_type, key_hash: Optional[bytes]) -> Iterator[Tuple[UtxoRecord, object]]:
    for record in records:
        if record.datum is None:
            continue
        try:
            datum = decode_as(record.datum, datum_type)
            owner = datum.owner_key_hash()
        except FormatError as exc:
            logger.debug("Skipping %s: %s", out_ref_key(record), exc)
            continue
        if key_hash is not None and owner != key_hash:
            logger.debug("Skipping %s: owned by %s", out_ref_key(record), owner.hex())
            continue
        yield record, datum


def pool_candidates(records: Iterable[UtxoRecord], operator_key_hash: bytes) -> List[PoolCandidate]:
    """Pool UTxOs with a decodable datum owned by the operator's key."""
    return [PoolCandidate(r, d) for r, d in _owned(records, StakePoolDatum, operator_key_hash)]


def request_candidates(records: Iterable[UtxoRecord], owner_key_hash: Optional[bytes] = None) -> List[RequestCandidate]:
    """Stake requests with a decodable datum and a Signature owner."""
    return [RequestCandidate(r, d) for r, d in _owned(records, StakePoolProxyDatum, owner_key_hash)]


# =============================================================================
# SETTLEMENT
# =============================================================================

@dataclass(frozen=True)
class NoEligiblePair:
    """No pool/request pair this round. Not an error."""
    reason: str


@dataclass
class SettlementPlan:
    """Inputs, outputs, datums and redeemers of one execute-stake transaction."""
    pool_input: UtxoRecord
    request_input: UtxoRecord
    certificate_input: UtxoRecord

    stake_unit: str
    stake_amount: int
    pool_amount: int
    reward_total: int
    new_pool_amount: int
    reward_index: int

    stake_nft_name: bytes
    user_unit: str
    reference_unit: str
    stake_pool_index: int

    valid_from: int             # POSIX ms
    valid_to: int               # POSIX ms
    lock_until: int             # POSIX ms
    metadata: Dict[bytes, bytes]

    pool_datum: bytes
    time_lock_datum: bytes
    mint_redeemer: bytes
    pool_redeemer: bytes
    request_redeemer: bytes

    destination: Destination
    destination_address: str    # bech32
    pool_output: Dict[str, int]
    time_lock_output: Dict[str, int]
    destination_output: Dict[str, int]
    certificate_output: Dict[str, int]
    mint: Dict[str, int]


def reward_tier_index(pool: StakePoolDatum, request: StakePoolProxyDatum) -> int:
    """Index of the pool tier offering the request's lock time and multiplier."""
    for index, setting in enumerate(pool.reward_settings):
        if setting.ms_locked == request.ms_locked and setting.reward_multiplier == request.reward_multiplier:
            return index
    raise SettlementError(f"Pool offers no reward tier for {request.ms_locked} ms at the requested multiplier")


def settlement_metadata(pool: StakePoolDatum, reward_total: int, lock_until: int, decimals: int) -> Dict[bytes, bytes]:
    """Display metadata of the time lock, e.g. name 'Stake NFT 1K CNCT - 240123'."""
    asset_text = pool.asset_name.decode("utf-8", errors="replace")
    name = f"Stake NFT {abbreviated_amount(reward_total, decimals)} {asset_text} - {time_to_datestring(lock_until)}"
    locked_assets = f"[({pool.policy_id.hex()},{pool.asset_name.hex()},{reward_total})]"
    return {
        b"locked_assets": locked_assets.encode("utf-8"),
        b"name": name.encode("utf-8"),
    }


def compute_settlement(
    pools: Sequence[PoolCandidate],
    requests: Sequence[RequestCandidate],
    context: CatcherContext,
    *,
    certificate: UtxoRecord,
    current_time_ms: int,
) -> Union[SettlementPlan, NoEligiblePair]:
    """
    Settle the first request against the first pool.

    `current_time_ms` is the lower validity bound estimate; the upper bound is
    seven minutes later and the stake matures `ms_locked` after that.
    """
    if not pools:
        return NoEligiblePair("no stake pool owned by the operator")
    if not requests:
        return NoEligiblePair("no stake request")

    pool = pools[0]
    request = requests[0]
    pool_datum = pool.datum
    order = request.datum

    if (order.policy_id, order.asset_name) != (pool_datum.policy_id, pool_datum.asset_name):
        raise SettlementError(f"Request {out_ref_key(request.utxo)} stakes a different asset than the pool")
    if order.nft_policy_id != context.stake_key_policy_id:
        raise SettlementError(f"Request {out_ref_key(request.utxo)} expects stake key policy {order.nft_policy_id.hex()}")

    try:
        multiplier = order.multiplier()
        destination = order.destination_info()
    except FormatError as exc:
        raise SettlementError(f"Malformed request {out_ref_key(request.utxo)}: {exc}") from exc
    reward_index = reward_tier_index(pool_datum, order)

    stake_unit = asset_unit(pool_datum.policy_id, pool_datum.asset_name)
    stake_amount = request.utxo.amount_of(stake_unit)
    pool_amount = pool.utxo.amount_of(stake_unit)
    reward_total = apply_reward(stake_amount, multiplier)
    new_pool_amount = pool_amount - (reward_total - stake_amount)
    if new_pool_amount < 0:
        raise SettlementError(f"Pool {out_ref_key(pool.utxo)} holds {pool_amount}, cannot pay {reward_total - stake_amount}")

    stake_nft_name = stake_nft_asset_name(pool.utxo.tx_hash, pool.utxo.output_index)
    user_name = make_user_name(stake_nft_name)
    user_unit = asset_unit(context.stake_key_policy_id, user_name)
    reference_unit = asset_unit(context.stake_key_policy_id, make_reference_name(stake_nft_name))

    valid_from = floor_to_second(current_time_ms)
    valid_to = floor_to_second(valid_from + VALIDITY_MARGIN_MS)
    lock_until = valid_to + order.ms_locked
    metadata = settlement_metadata(pool_datum, reward_total, lock_until, context.asset_decimals)

    time_lock = TimeLockDatum(
        metadata=metadata,
        version=TIME_LOCK_VERSION,
        extra=LockDatum(lock_until=lock_until, time_lock_key=context.stake_key_policy_id + user_name),
    )

    pool_key = out_ref_key(pool.utxo)
    input_keys = [out_ref_key(certificate), out_ref_key(request.utxo), pool_key]
    stake_pool_index = sorted_input_index(input_keys, pool_key)

    plan = SettlementPlan(
        pool_input=pool.utxo,
        request_input=request.utxo,
        certificate_input=certificate,
        stake_unit=stake_unit,
        stake_amount=stake_amount,
        pool_amount=pool_amount,
        reward_total=reward_total,
        new_pool_amount=new_pool_amount,
        reward_index=reward_index,
        stake_nft_name=stake_nft_name,
        user_unit=user_unit,
        reference_unit=reference_unit,
        stake_pool_index=stake_pool_index,
        valid_from=valid_from,
        valid_to=valid_to,
        lock_until=lock_until,
        metadata=metadata,
        pool_datum=encode_datum(pool_datum),
        time_lock_datum=encode_datum(time_lock),
        mint_redeemer=encode_datum(StakeKeyMintRedeemer(
            stake_pool_index=stake_pool_index,
            time_lock_index=TIME_LOCK_OUTPUT_INDEX,
            mint=True,
        )),
        pool_redeemer=encode_datum(PoolSpendRedeemer(StakePoolRedeemer(reward_index=reward_index))),
        request_redeemer=encode_datum(VoidRedeemer()),
        destination=destination,
        destination_address=destination_address(destination, context.network),
        pool_output={stake_unit: new_pool_amount},
        time_lock_output={
            stake_unit: reward_total,
            reference_unit: 1,
            LOVELACE: order.lovelace_amount,
        },
        destination_output={LOVELACE: DESTINATION_LOVELACE, user_unit: 1},
        certificate_output=dict(certificate.assets),
        mint={user_unit: 1, reference_unit: 1},
    )

    logger.info(
        "Settling request %s against pool %s: stake %d, reward total %d, pool %d -> %d, lock until %d",
        out_ref_key(request.utxo), pool_key, stake_amount, reward_total, pool_amount, new_pool_amount, lock_until,
    )
    return plan
