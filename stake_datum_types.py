"""
Stake Datum Types - Shared Data Structures for the Staking Contracts

This file contains the canonical datum and redeemer definitions used by the
off-chain batcher. Every record maps to a fixed constructor shape; the
constructor index and the field order are the wire contract with the
compiled validators.

CRITICAL: Any change to these structures breaks compatibility with the
deployed stake pool, stake proxy, time lock and stake key mint scripts.

Opaque fields (owner, destination, reward_multiplier) are stored as raw data
nodes and decoded on demand through typed accessors, the same way the
validators receive them as `Data`.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union

from plutus_data import (
    Constr,
    DataBytes,
    DataInt,
    DataList,
    DataMap,
    DataNode,
    FormatError,
    NODE_TYPES,
    UnknownVariant,
    decode,
    decode_hex,
    encode,
)

T = TypeVar("T")

HASH_28 = 28                    # key, script and policy hashes
HASH_32 = 32                    # transaction and datum hashes
ASSET_NAME_MAX_LENGTH = 32

# Raw data kept undecoded inside an outer record
Anything = DataNode


class ArithmeticPrecondition(ArithmeticError):
    """Rational used with a zero denominator."""


# =============================================================================
# FIELD HELPERS
# =============================================================================

def expect_constr(node: DataNode, type_name: str, index: int, arity: int) -> Tuple[DataNode, ...]:
    """Return the fields of a constructor with the given index and arity."""
    if not isinstance(node, Constr):
        raise FormatError(f"Invalid data format for {type_name}: expected Constr, got {type(node).__name__}")
    if node.index != index:
        raise FormatError(f"Invalid data format for {type_name}: expected constructor {index}, got {node.index}")
    if len(node.fields) != arity:
        raise FormatError(f"Invalid data format for {type_name}: expected {arity} fields, got {len(node.fields)}")
    return node.fields


def expect_int(node: DataNode, type_name: str) -> int:
    if not isinstance(node, DataInt):
        raise FormatError(f"Invalid data format for {type_name}: expected Int, got {type(node).__name__}")
    return node.value


def expect_bytes(node: DataNode, type_name: str) -> bytes:
    if not isinstance(node, DataBytes):
        raise FormatError(f"Invalid data format for {type_name}: expected Bytes, got {type(node).__name__}")
    return node.value


def expect_hash(node: DataNode, type_name: str, *sizes: int) -> bytes:
    """Byte string whose length must be one of `sizes`."""
    value = expect_bytes(node, type_name)
    if len(value) not in sizes:
        raise FormatError(f"Invalid data format for {type_name}: {len(value)} byte hash")
    return value


def expect_asset_name(node: DataNode, type_name: str) -> bytes:
    value = expect_bytes(node, type_name)
    if len(value) > ASSET_NAME_MAX_LENGTH:
        raise FormatError(f"Invalid data format for {type_name}: asset name longer than {ASSET_NAME_MAX_LENGTH} bytes")
    return value


def expect_list(node: DataNode, type_name: str) -> Tuple[DataNode, ...]:
    if not isinstance(node, DataList):
        raise FormatError(f"Invalid data format for {type_name}: expected List, got {type(node).__name__}")
    return node.items


def bool_to_data(value: bool) -> Constr:
    """Booleans are False = Constr(0, []) and True = Constr(1, [])."""
    return Constr(1 if value else 0, ())


def bool_from_data(node: DataNode, type_name: str) -> bool:
    if not isinstance(node, Constr) or node.fields or node.index not in (0, 1):
        raise FormatError(f"Invalid data format for {type_name}: expected Bool")
    return node.index == 1


# =============================================================================
# MULTISIG SCRIPT (owner of pools and stake requests)
# =============================================================================

@dataclass
class Signature:
    """Owner is a single payment key hash."""
    CONSTR_ID = 0
    key_hash: bytes             # 28 bytes

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataBytes(self.key_hash),))

    @classmethod
    def from_data(cls, node: DataNode) -> "Signature":
        fields = expect_constr(node, "Signature", cls.CONSTR_ID, 1)
        return cls(key_hash=expect_hash(fields[0], "Signature", HASH_28))


@dataclass
class AllOf:
    CONSTR_ID = 1
    scripts: List["MultisigScript"]

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataList(s.to_data() for s in self.scripts),))

    @classmethod
    def from_data(cls, node: DataNode) -> "AllOf":
        fields = expect_constr(node, "AllOf", cls.CONSTR_ID, 1)
        return cls(scripts=[multisig_from_data(s) for s in expect_list(fields[0], "AllOf")])


@dataclass
class AnyOf:
    CONSTR_ID = 2
    scripts: List["MultisigScript"]

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataList(s.to_data() for s in self.scripts),))

    @classmethod
    def from_data(cls, node: DataNode) -> "AnyOf":
        fields = expect_constr(node, "AnyOf", cls.CONSTR_ID, 1)
        return cls(scripts=[multisig_from_data(s) for s in expect_list(fields[0], "AnyOf")])


@dataclass
class AtLeast:
    """At least `required` of `scripts` must be satisfied."""
    CONSTR_ID = 3
    required: int
    scripts: List["MultisigScript"]

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (
            DataInt(self.required),
            DataList(s.to_data() for s in self.scripts),
        ))

    @classmethod
    def from_data(cls, node: DataNode) -> "AtLeast":
        fields = expect_constr(node, "AtLeast", cls.CONSTR_ID, 2)
        return cls(
            required=expect_int(fields[0], "AtLeast"),
            scripts=[multisig_from_data(s) for s in expect_list(fields[1], "AtLeast")],
        )


@dataclass
class Before:
    CONSTR_ID = 4
    time: int                   # POSIX ms

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataInt(self.time),))

    @classmethod
    def from_data(cls, node: DataNode) -> "Before":
        fields = expect_constr(node, "Before", cls.CONSTR_ID, 1)
        return cls(time=expect_int(fields[0], "Before"))


@dataclass
class After:
    CONSTR_ID = 5
    time: int                   # POSIX ms

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataInt(self.time),))

    @classmethod
    def from_data(cls, node: DataNode) -> "After":
        fields = expect_constr(node, "After", cls.CONSTR_ID, 1)
        return cls(time=expect_int(fields[0], "After"))


@dataclass
class Script:
    CONSTR_ID = 6
    script_hash: bytes          # 28 bytes

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataBytes(self.script_hash),))

    @classmethod
    def from_data(cls, node: DataNode) -> "Script":
        fields = expect_constr(node, "Script", cls.CONSTR_ID, 1)
        return cls(script_hash=expect_hash(fields[0], "Script", HASH_28))


MultisigScript = Union[Signature, AllOf, AnyOf, AtLeast, Before, After, Script]

_MULTISIG_VARIANTS: Dict[int, Type] = {
    v.CONSTR_ID: v for v in (Signature, AllOf, AnyOf, AtLeast, Before, After, Script)
}


def multisig_from_data(node: DataNode) -> MultisigScript:
    """Dispatch on the constructor index to the matching variant."""
    if not isinstance(node, Constr):
        raise FormatError(f"Invalid data format for MultisigScript: expected Constr, got {type(node).__name__}")
    variant = _MULTISIG_VARIANTS.get(node.index)
    if variant is None:
        raise UnknownVariant(f"Unknown MultisigScript variant: {node.index}")
    return variant.from_data(node)


def match_multisig(
    value: MultisigScript,
    *,
    signature: Callable[[bytes], T],
    all_of: Callable[[List[MultisigScript]], T],
    any_of: Callable[[List[MultisigScript]], T],
    at_least: Callable[[int, List[MultisigScript]], T],
    before: Callable[[int], T],
    after: Callable[[int], T],
    script: Callable[[bytes], T],
) -> T:
    """Exhaustive match over the owner script variants."""
    if isinstance(value, Signature):
        return signature(value.key_hash)
    if isinstance(value, AllOf):
        return all_of(value.scripts)
    if isinstance(value, AnyOf):
        return any_of(value.scripts)
    if isinstance(value, AtLeast):
        return at_least(value.required, value.scripts)
    if isinstance(value, Before):
        return before(value.time)
    if isinstance(value, After):
        return after(value.time)
    if isinstance(value, Script):
        return script(value.script_hash)
    raise TypeError(f"Not a MultisigScript: {type(value).__name__}")


def signature_key_hash(node: DataNode) -> bytes:
    """Key hash of an owner that must be a plain Signature."""
    return Signature.from_data(node).key_hash


# =============================================================================
# RATIONAL
# =============================================================================

@dataclass
class Rational:
    """
    Exact fraction used for reward multipliers.

    Fractions are never reduced: the validator adds and multiplies without
    normalising, and the off-chain result must match it exactly.
    """
    CONSTR_ID = 0
    numerator: int
    denominator: int

    @classmethod
    def from_int(cls, value: int) -> "Rational":
        return cls(value, 1)

    def _check(self) -> None:
        if self.denominator == 0:
            raise ArithmeticPrecondition(f"Zero denominator in {self.numerator}/0")

    def add(self, other: "Rational") -> "Rational":
        self._check()
        other._check()
        if self.denominator == other.denominator:
            return Rational(self.numerator + other.numerator, self.denominator)
        return Rational(
            self.numerator * other.denominator + other.numerator * self.denominator,
            self.denominator * other.denominator,
        )

    def mul(self, other: "Rational") -> "Rational":
        self._check()
        other._check()
        return Rational(self.numerator * other.numerator, self.denominator * other.denominator)

    def floor(self) -> int:
        self._check()
        return self.numerator // self.denominator

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataInt(self.numerator), DataInt(self.denominator)))

    @classmethod
    def from_data(cls, node: DataNode) -> "Rational":
        fields = expect_constr(node, "Rational", cls.CONSTR_ID, 2)
        numerator = expect_int(fields[0], "Rational")
        denominator = expect_int(fields[1], "Rational")
        if denominator == 0:
            raise FormatError("Invalid data format for Rational: zero denominator")
        return cls(numerator, denominator)


# =============================================================================
# ADDRESS
# =============================================================================

@dataclass
class Credential:
    CONSTR_ID = 0
    credential_hash: bytes      # 28 bytes

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataBytes(self.credential_hash),))

    @classmethod
    def from_data(cls, node: DataNode) -> "Credential":
        fields = expect_constr(node, "Credential", cls.CONSTR_ID, 1)
        return cls(credential_hash=expect_hash(fields[0], "Credential", HASH_28))


@dataclass
class StakeCredential:
    CONSTR_ID = 0
    credential: Credential

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (self.credential.to_data(),))

    @classmethod
    def from_data(cls, node: DataNode) -> "StakeCredential":
        fields = expect_constr(node, "StakeCredential", cls.CONSTR_ID, 1)
        return cls(credential=Credential.from_data(fields[0]))


# Optional stake part: Some = Constr(0, [StakeCredential]), None = Constr(1, [])
SOME_STAKE = 0
NO_STAKE = 1


@dataclass
class Address:
    """
    Payment credential plus an optional stake credential.

    Fields:
        payment_credential: Credential of the payment part
        stake_credential: StakeCredential or None
    """
    CONSTR_ID = 0
    payment_credential: Credential
    stake_credential: Optional[StakeCredential] = None

    def to_data(self) -> Constr:
        if self.stake_credential is not None:
            stake = Constr(SOME_STAKE, (self.stake_credential.to_data(),))
        else:
            stake = Constr(NO_STAKE, ())
        return Constr(self.CONSTR_ID, (self.payment_credential.to_data(), stake))

    @classmethod
    def from_data(cls, node: DataNode) -> "Address":
        if not isinstance(node, Constr) or node.index != cls.CONSTR_ID:
            raise FormatError("Invalid data format for Address")
        if len(node.fields) == 1:
            return cls(payment_credential=Credential.from_data(node.fields[0]))
        if len(node.fields) != 2:
            raise FormatError(f"Invalid data format for Address: {len(node.fields)} fields")
        payment = Credential.from_data(node.fields[0])
        stake = node.fields[1]
        if isinstance(stake, Constr) and stake.index == NO_STAKE and not stake.fields:
            return cls(payment_credential=payment)
        stake_fields = expect_constr(stake, "Address", SOME_STAKE, 1)
        return cls(payment_credential=payment, stake_credential=StakeCredential.from_data(stake_fields[0]))


# =============================================================================
# DATUM (attached to the destination output)
# =============================================================================

@dataclass
class NoDatum:
    CONSTR_ID = 0

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, ())

    @classmethod
    def from_data(cls, node: DataNode) -> "NoDatum":
        expect_constr(node, "NoDatum", cls.CONSTR_ID, 0)
        return cls()


@dataclass
class DatumHash:
    CONSTR_ID = 1
    datum_hash: bytes           # 32 bytes

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataBytes(self.datum_hash),))

    @classmethod
    def from_data(cls, node: DataNode) -> "DatumHash":
        fields = expect_constr(node, "DatumHash", cls.CONSTR_ID, 1)
        return cls(datum_hash=expect_hash(fields[0], "DatumHash", HASH_32))


@dataclass
class InlineDatum:
    CONSTR_ID = 2
    datum: Anything

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (self.datum,))

    @classmethod
    def from_data(cls, node: DataNode) -> "InlineDatum":
        fields = expect_constr(node, "InlineDatum", cls.CONSTR_ID, 1)
        return cls(datum=fields[0])


Datum = Union[NoDatum, DatumHash, InlineDatum]

_DATUM_VARIANTS: Dict[int, Type] = {v.CONSTR_ID: v for v in (NoDatum, DatumHash, InlineDatum)}


def datum_from_data(node: DataNode) -> Datum:
    if not isinstance(node, Constr):
        raise FormatError(f"Invalid data format for Datum: expected Constr, got {type(node).__name__}")
    variant = _DATUM_VARIANTS.get(node.index)
    if variant is None:
        raise UnknownVariant(f"Unknown Datum type: {node.index}")
    return variant.from_data(node)


@dataclass
class Destination:
    """Where the stake key NFT is sent once the request is executed."""
    CONSTR_ID = 0
    address: Address
    datum: Datum

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (self.address.to_data(), self.datum.to_data()))

    @classmethod
    def from_data(cls, node: DataNode) -> "Destination":
        fields = expect_constr(node, "Destination", cls.CONSTR_ID, 2)
        return cls(address=Address.from_data(fields[0]), datum=datum_from_data(fields[1]))


# =============================================================================
# STAKE POOL DATUM (stake pool validator)
# =============================================================================

@dataclass
class RewardSetting:
    """One reward tier: lock duration and the multiplier paid for it."""
    CONSTR_ID = 0
    ms_locked: int
    reward_multiplier: Anything     # Rational

    def multiplier(self) -> Rational:
        return Rational.from_data(self.reward_multiplier)

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataInt(self.ms_locked), self.reward_multiplier))

    @classmethod
    def from_data(cls, node: DataNode) -> "RewardSetting":
        fields = expect_constr(node, "RewardSetting", cls.CONSTR_ID, 2)
        return cls(ms_locked=expect_int(fields[0], "RewardSetting"), reward_multiplier=fields[1])


@dataclass
class StakePoolDatum:
    """
    Stake pool configuration - stored with the pool's reward tokens.

    Fields:
        reward_settings: Reward tiers enabled by the pool owner
        policy_id: Policy ID of the pooled asset (28 bytes)
        asset_name: Asset name of the pooled asset
        owner: MultisigScript allowed to change settings or withdraw
        open_time: Earliest time the pool distributes rewards (POSIX ms)
    """
    CONSTR_ID = 0
    reward_settings: List[RewardSetting]
    policy_id: bytes            # 28 bytes, empty for ada
    asset_name: bytes
    owner: Anything             # MultisigScript
    open_time: int              # POSIX ms

    def owner_script(self) -> MultisigScript:
        return multisig_from_data(self.owner)

    def owner_key_hash(self) -> bytes:
        return signature_key_hash(self.owner)

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (
            DataList(s.to_data() for s in self.reward_settings),
            DataBytes(self.policy_id),
            DataBytes(self.asset_name),
            self.owner,
            DataInt(self.open_time),
        ))

    @classmethod
    def from_data(cls, node: DataNode) -> "StakePoolDatum":
        fields = expect_constr(node, "StakePoolDatum", cls.CONSTR_ID, 5)
        return cls(
            reward_settings=[RewardSetting.from_data(s) for s in expect_list(fields[0], "StakePoolDatum")],
            policy_id=expect_hash(fields[1], "StakePoolDatum", 0, HASH_28),
            asset_name=expect_asset_name(fields[2], "StakePoolDatum"),
            owner=fields[3],
            open_time=expect_int(fields[4], "StakePoolDatum"),
        )


# =============================================================================
# STAKE POOL PROXY DATUM (stake request waiting for the batcher)
# =============================================================================

@dataclass
class StakePoolProxyDatum:
    """
    Stake request - stored at the stake proxy validator.

    Fields:
        owner: MultisigScript allowed to cancel the request
        destination: Destination receiving the stake key NFT
        ms_locked: Requested lock duration (ms)
        reward_multiplier: Requested Rational multiplier
        policy_id: Policy ID of the staked asset (28 bytes)
        asset_name: Asset name of the staked asset
        asset_amount: Amount of the staked asset
        lovelace_amount: Lovelace carried over to the time lock output
        nft_policy_id: Policy of the stake key NFT minted on execution
    """
    CONSTR_ID = 0
    owner: Anything             # MultisigScript
    destination: Anything       # Destination
    ms_locked: int
    reward_multiplier: Anything     # Rational
    policy_id: bytes            # 28 bytes, empty for ada
    asset_name: bytes
    asset_amount: int
    lovelace_amount: int
    nft_policy_id: bytes        # 28 bytes

    def owner_script(self) -> MultisigScript:
        return multisig_from_data(self.owner)

    def owner_key_hash(self) -> bytes:
        return signature_key_hash(self.owner)

    def destination_info(self) -> Destination:
        return Destination.from_data(self.destination)

    def multiplier(self) -> Rational:
        return Rational.from_data(self.reward_multiplier)

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (
            self.owner,
            self.destination,
            DataInt(self.ms_locked),
            self.reward_multiplier,
            DataBytes(self.policy_id),
            DataBytes(self.asset_name),
            DataInt(self.asset_amount),
            DataInt(self.lovelace_amount),
            DataBytes(self.nft_policy_id),
        ))

    @classmethod
    def from_data(cls, node: DataNode) -> "StakePoolProxyDatum":
        name = "StakePoolProxyDatum"
        fields = expect_constr(node, name, cls.CONSTR_ID, 9)
        return cls(
            owner=fields[0],
            destination=fields[1],
            ms_locked=expect_int(fields[2], name),
            reward_multiplier=fields[3],
            policy_id=expect_hash(fields[4], name, 0, HASH_28),
            asset_name=expect_asset_name(fields[5], name),
            asset_amount=expect_int(fields[6], name),
            lovelace_amount=expect_int(fields[7], name),
            nft_policy_id=expect_hash(fields[8], name, HASH_28),
        )


# =============================================================================
# TIME LOCK DATUM (time lock validator)
# =============================================================================

@dataclass
class LockDatum:
    CONSTR_ID = 0
    lock_until: int             # POSIX ms
    time_lock_key: bytes        # policy + user label + asset name

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataInt(self.lock_until), DataBytes(self.time_lock_key)))

    @classmethod
    def from_data(cls, node: DataNode) -> "LockDatum":
        fields = expect_constr(node, "LockDatum", cls.CONSTR_ID, 2)
        return cls(
            lock_until=expect_int(fields[0], "LockDatum"),
            time_lock_key=expect_bytes(fields[1], "LockDatum"),
        )


@dataclass
class TimeLockDatum:
    """
    Time locked reward - spendable by the stake key holder after lock_until.

    Fields:
        metadata: Display metadata (name, locked assets), no on-chain effect
        version: Metadata version
        extra: LockDatum with maturity and the stake key unit
    """
    CONSTR_ID = 0
    metadata: Dict[bytes, bytes]
    version: int
    extra: LockDatum

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (
            DataMap(tuple((DataBytes(k), DataBytes(v)) for k, v in self.metadata.items())),
            DataInt(self.version),
            self.extra.to_data(),
        ))

    @classmethod
    def from_data(cls, node: DataNode) -> "TimeLockDatum":
        fields = expect_constr(node, "TimeLockDatum", cls.CONSTR_ID, 3)
        if not isinstance(fields[0], DataMap):
            raise FormatError("Invalid data format for TimeLockDatum: expected Map")
        metadata = {
            expect_bytes(k, "TimeLockDatum"): expect_bytes(v, "TimeLockDatum")
            for k, v in fields[0].entries
        }
        return cls(
            metadata=metadata,
            version=expect_int(fields[1], "TimeLockDatum"),
            extra=LockDatum.from_data(fields[2]),
        )


# =============================================================================
# OUTPUT REFERENCE (hashed into the stake key NFT name)
# =============================================================================

@dataclass
class TransactionId:
    CONSTR_ID = 0
    tx_hash: bytes              # 32 bytes

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataBytes(self.tx_hash),))

    @classmethod
    def from_data(cls, node: DataNode) -> "TransactionId":
        fields = expect_constr(node, "TransactionId", cls.CONSTR_ID, 1)
        return cls(tx_hash=expect_hash(fields[0], "TransactionId", HASH_32))


@dataclass
class OutputReference:
    CONSTR_ID = 0
    transaction_id: TransactionId
    output_index: int

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (self.transaction_id.to_data(), DataInt(self.output_index)))

    @classmethod
    def from_data(cls, node: DataNode) -> "OutputReference":
        fields = expect_constr(node, "OutputReference", cls.CONSTR_ID, 2)
        return cls(
            transaction_id=TransactionId.from_data(fields[0]),
            output_index=expect_int(fields[1], "OutputReference"),
        )


# =============================================================================
# REDEEMERS
# =============================================================================

@dataclass
class VoidRedeemer:
    """Unit redeemer, used to spend the stake request."""
    CONSTR_ID = 0

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, ())

    @classmethod
    def from_data(cls, node: DataNode) -> "VoidRedeemer":
        expect_constr(node, "VoidRedeemer", cls.CONSTR_ID, 0)
        return cls()


@dataclass
class StakePoolRedeemer:
    """Index of the pool reward tier the request is executed against."""
    CONSTR_ID = 0
    reward_index: int

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (DataInt(self.reward_index),))

    @classmethod
    def from_data(cls, node: DataNode) -> "StakePoolRedeemer":
        fields = expect_constr(node, "StakePoolRedeemer", cls.CONSTR_ID, 1)
        return cls(reward_index=expect_int(fields[0], "StakePoolRedeemer"))


@dataclass
class PoolSpendRedeemer:
    """Spend action of the stake pool validator wrapping StakePoolRedeemer."""
    CONSTR_ID = 1
    redeemer: StakePoolRedeemer

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (self.redeemer.to_data(),))

    @classmethod
    def from_data(cls, node: DataNode) -> "PoolSpendRedeemer":
        fields = expect_constr(node, "PoolSpendRedeemer", cls.CONSTR_ID, 1)
        return cls(redeemer=StakePoolRedeemer.from_data(fields[0]))


@dataclass
class StakeKeyMintRedeemer:
    """
    Stake key mint policy redeemer.

    Fields:
        stake_pool_index: Position of the pool input among the sorted inputs
        time_lock_index: Output index of the time lock output
        mint: True to mint the stake key pair, False to burn it
    """
    CONSTR_ID = 0
    stake_pool_index: int
    time_lock_index: int
    mint: bool

    def to_data(self) -> Constr:
        return Constr(self.CONSTR_ID, (
            DataInt(self.stake_pool_index),
            DataInt(self.time_lock_index),
            bool_to_data(self.mint),
        ))

    @classmethod
    def from_data(cls, node: DataNode) -> "StakeKeyMintRedeemer":
        name = "StakeKeyMintRedeemer"
        fields = expect_constr(node, name, cls.CONSTR_ID, 3)
        return cls(
            stake_pool_index=expect_int(fields[0], name),
            time_lock_index=expect_int(fields[1], name),
            mint=bool_from_data(fields[2], name),
        )


# =============================================================================
# ENTRY POINTS
# =============================================================================

_SUM_DECODERS = {
    MultisigScript: multisig_from_data,
    Datum: datum_from_data,
}


def as_node(raw: Union[DataNode, bytes, str]) -> DataNode:
    """Accept a data node, CBOR bytes or CBOR hex."""
    if isinstance(raw, NODE_TYPES):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        return decode(bytes(raw))
    if isinstance(raw, str):
        return decode_hex(raw)
    raise FormatError(f"Cannot decode {type(raw).__name__}")


def decode_as(raw: Union[DataNode, bytes, str], target: Any) -> Any:
    """Interpret raw datum data as the given record class or sum type."""
    node = as_node(raw)
    decoder = _SUM_DECODERS.get(target)
    if decoder is not None:
        return decoder(node)
    return target.from_data(node)


def encode_datum(value: Any) -> bytes:
    """CBOR bytes of a record or data node."""
    if isinstance(value, NODE_TYPES):
        return encode(value)
    return encode(value.to_data())
