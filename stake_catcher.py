"""
Stake Catcher - Polling loop that executes pending stake requests.

Each cycle:
1. Query stake requests and stake pools
2. Keep pools owned by the operator and requests with a Signature owner
3. Find the batching certificate in the batcher wallet
4. Compute the settlement plan and hand it to the submitter

States:
- IDLE: no eligible pair (or the cycle failed), back off and poll again
- SETTLING: a plan was handed off, cool down until the chain catches up

Already executed requests disappear from the chain query once their
transaction is accepted, so no processed-record bookkeeping is kept here.
"""
import enum
import logging
import time
from typing import Callable, List, Optional, Protocol

from plutus_data import FormatError
from stake_contract_config import (
    IDLE_BACKOFF_SECONDS,
    SETTLE_COOLDOWN_SECONDS,
    SLOT_LAG_MS,
    CatcherContext,
)
from stake_settlement import (
    NoEligiblePair,
    SettlementError,
    SettlementPlan,
    UtxoRecord,
    compute_settlement,
    out_ref_key,
    pool_candidates,
    request_candidates,
)

logger = logging.getLogger(__name__)


class ChainQuery(Protocol):
    def utxos_at(self, address: str) -> List[UtxoRecord]:
        ...


class SettlementSubmitter(Protocol):
    def submit(self, plan: SettlementPlan) -> str:
        """Build, sign and submit the plan; return the transaction hash."""
        ...


class CatcherState(enum.Enum):
    IDLE = "idle"
    SETTLING = "settling"


class StakeCatcher:
    """Single-threaded scheduler around compute_settlement."""

    def __init__(
        self,
        context: CatcherContext,
        chain: ChainQuery,
        submitter: SettlementSubmitter,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.context = context
        self.chain = chain
        self.submitter = submitter
        self.clock = clock
        self.sleep = sleep
        self.last_plan: Optional[SettlementPlan] = None
        self.last_tx_hash: Optional[str] = None

    def find_certificate(self) -> Optional[UtxoRecord]:
        """Batching certificate UTxO in the batcher wallet."""
        for utxo in self.chain.utxos_at(self.context.wallet_address):
            if utxo.amount_of(self.context.certificate_unit) >= 1:
                return utxo
        return None

    def current_time_ms(self) -> int:
        """Lower validity bound estimate, lagging the wall clock."""
        return int(self.clock() * 1000) - SLOT_LAG_MS

    def poll_once(self) -> CatcherState:
        ctx = self.context
        requests = request_candidates(self.chain.utxos_at(ctx.stake_proxy_address), ctx.request_owner_key_hash)
        pools = pool_candidates(self.chain.utxos_at(ctx.stake_pool_address), ctx.operator_key_hash)
        logger.info("Valid stake requests: %d, valid stake pools: %d", len(requests), len(pools))
        if not pools or not requests:
            logger.info("No valid stake pool or stake request found")
            return CatcherState.IDLE

        certificate = self.find_certificate()
        if certificate is None:
            logger.warning("No batching certificate %s at %s", ctx.certificate_unit, ctx.wallet_address)
            return CatcherState.IDLE

        try:
            result = compute_settlement(
                pools,
                requests,
                ctx,
                certificate=certificate,
                current_time_ms=self.current_time_ms(),
            )
        except (SettlementError, FormatError, ArithmeticError):
            logger.exception("Settlement failed for request %s", out_ref_key(requests[0].utxo))
            return CatcherState.IDLE
        if isinstance(result, NoEligiblePair):
            logger.info("No eligible pair: %s", result.reason)
            return CatcherState.IDLE

        self.last_plan = result
        self.last_tx_hash = None
        try:
            self.last_tx_hash = self.submitter.submit(result)
        except Exception:
            logger.exception("Execute stake submission failed for request %s", out_ref_key(result.request_input))
        else:
            logger.info("Execute stake submitted: %s", self.last_tx_hash)
        return CatcherState.SETTLING

    def run(self, max_cycles: Optional[int] = None) -> None:
        """Poll until stopped (or for max_cycles cycles)."""
        logger.info("Stake catcher started for wallet %s", self.context.wallet_address)
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            try:
                state = self.poll_once()
            except Exception:
                logger.exception("Polling cycle failed")
                state = CatcherState.IDLE
            cycles += 1
            if state is CatcherState.IDLE:
                logger.info("Waiting %s seconds", IDLE_BACKOFF_SECONDS)
                self.sleep(IDLE_BACKOFF_SECONDS)
            else:
                logger.info("Cooling down %s seconds", SETTLE_COOLDOWN_SECONDS)
                self.sleep(SETTLE_COOLDOWN_SECONDS)
