"""
Collab Royalty - Revenue Ledger & Payment Intake

Accepts payments for a work, moves the funds into the platform pool through
the external transfer primitive, deducts the platform fee and credits the
remainder to the work's pending distribution.

For a payment of ``amount``:
    fee = floor(amount * fee_bps / 10000)
    net = amount - fee
    ledger.total_received       += amount
    ledger.total_fees           += fee
    ledger.pending_distribution += net
    work.total_revenue          += amount

Payments are not idempotent; submitting the same payment twice records it
twice.
"""

from block_clock import BlockClock
from monitoring import get_logger, metrics
from royalty_errors import (
    InsufficientFundsError,
    InvalidAmountError,
    UnauthorizedError,
    WorkLockedError,
)
from royalty_math import DEFAULT_PLATFORM_FEE_BPS, MAX_AMOUNT, net_amount, validate_bps
from scaling import LockManager, work_lock_name
from settlement import ValueTransfer
from work_registry import WorkRegistry, WorkStatus

logger = get_logger(__name__)

DEFAULT_POOL_ACCOUNT = "platform-pool"


class RevenueService:
    """Payment intake for registered works."""

    def __init__(
        self,
        registry: WorkRegistry,
        transfers: ValueTransfer,
        lock_manager: LockManager,
        clock: BlockClock,
        fee_bps: int = DEFAULT_PLATFORM_FEE_BPS,
        pool_account: str = DEFAULT_POOL_ACCOUNT,
    ):
        self.registry = registry
        self.transfers = transfers
        self.lock_manager = lock_manager
        self.clock = clock
        self.fee_bps = validate_bps(fee_bps)
        self.pool_account = pool_account

    def get_platform_fee(self) -> int:
        """Platform fee rate in basis points."""
        return self.fee_bps

    def receive_payment(self, work_id: int, payer: str, amount: int) -> int:
        """
        Record a payment for a work.

        Args:
            work_id: Work being paid
            payer: Account the funds are drawn from
            amount: Gross amount in minimal units (> 0)

        Returns:
            Net amount credited to pending distribution

        Raises:
            WorkNotFoundError: Unknown work
            WorkLockedError: Work is not active
            InvalidAmountError: Amount is not a positive integer
            UnauthorizedError: The payer is the platform pool itself
            InsufficientFundsError: The transfer from the payer failed
        """
        with self.lock_manager.lock(work_lock_name(work_id)):
            work = self.registry.require_work(work_id, action="receive_payment")
            ledger = self.registry.require_ledger(work_id, action="receive_payment")

            if work.status != WorkStatus.ACTIVE:
                raise WorkLockedError(
                    f"Work {work_id} is {work.status.value} and not accepting payments",
                    component="revenue_ledger",
                    action="receive_payment",
                    details={"work_id": work_id, "status": work.status.value},
                )
            self._validate_amount(amount)
            if payer == self.pool_account:
                raise UnauthorizedError(
                    "The platform pool cannot pay into a work",
                    component="revenue_ledger",
                    action="receive_payment",
                    details={"work_id": work_id, "payer": payer},
                )

            net = net_amount(amount, self.fee_bps)
            fee = amount - net

            if not self.transfers.transfer(amount, payer, self.pool_account):
                raise InsufficientFundsError(
                    f"Transfer of {amount} from {payer} failed",
                    component="revenue_ledger",
                    action="receive_payment",
                    details={"work_id": work_id, "payer": payer, "amount": amount},
                )

            ledger.total_received += amount
            ledger.total_fees += fee
            ledger.pending_distribution += net
            work.total_revenue += amount

        self.registry.audit.emit(
            "payment_received",
            self.clock.now(),
            work_id=work_id,
            payer=payer,
            amount=amount,
            fee=fee,
            net=net,
        )
        metrics.increment("royalty_payments_total")
        metrics.increment("royalty_payment_volume", amount)
        logger.info(
            "Payment received",
            extra={"work_id": work_id, "payer": payer, "amount": amount, "fee": fee, "net": net},
        )
        return net

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidAmountError(
                "Amount must be an integer number of minimal units",
                component="revenue_ledger",
                action="receive_payment",
                details={"amount": repr(amount)},
            )
        if amount <= 0 or amount > MAX_AMOUNT:
            raise InvalidAmountError(
                "Amount must be positive and within the 128-bit range",
                component="revenue_ledger",
                action="receive_payment",
                details={"amount": amount},
            )

    def total_fees_collected(self) -> int:
        """Platform fees retained across all works."""
        return sum(ledger.total_fees for ledger in self.registry.ledgers.values())
