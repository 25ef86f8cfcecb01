"""
Investment Operations Module

Business rules for creating, updating, deleting, funding and redeeming
investments. Every public method returns an OperationResult; domain errors
are raised internally and converted at the method boundary.

Money moving operations (transfer and redeem) write the investment and the
matching ledger entry inside one storage transaction. Concurrent operations
on the same investment are not serialized: each computes the new value from
its own read, so the last write wins.
"""

import math
import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .accounts import AccountManager
from .ledger import AccountLedger, LedgerEntry, INVESTMENT_TRANSFER, INVESTMENT_REDEMPTION
from .investments import (
    Investment, InvestmentFilters, InvestmentRepository, PortfolioAggregate
)
from .taxonomy import (
    InvestmentType, InvestmentCategory, RiskLevel, is_valid_subtype, parse_enum
)
from .errors import (
    AccessDeniedError, BankingDemoError, InvestmentNotFoundError, OperationResult,
    ValidationError
)
from .query import parse_timestamp
from .logging_config import get_logger, log_action


T = TypeVar("T")

TWO_PLACES = Decimal("0.01")
SECONDS_PER_DAY = 24 * 60 * 60

IMMUTABLE_FIELDS = {
    "initial_value": "Initial value cannot be changed",
    "purchase_date": "Purchase date cannot be changed",
    "account_id": "Investment owner cannot be changed",
}
UPDATABLE_FIELDS = {"name", "subtype", "value", "current_yield", "risk_level", "maturity_date"}

REDEEM_PARTIAL = "partial"
REDEEM_TOTAL = "total"
REDEEM_TYPES = {REDEEM_PARTIAL, REDEEM_TOTAL}

PENSION_WARNING = "Deleting a private pension investment may have tax consequences"
NEAR_MATURITY_WARNING = "Investment is close to its maturity date"


def investment_label(investment: Investment) -> str:
    """Counterparty label used on ledger entries"""
    return f"Investment: {investment.name}"


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100 rounded to 2 places, 0 when whole is 0"""
    if not whole:
        return Decimal("0.00")
    return (part / whole * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up"""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


@dataclass
class InvestmentMetrics:
    """Derived values, never stored"""
    profit: Decimal
    profit_percentage: Decimal
    is_matured: bool
    days_to_maturity: Optional[int] = None
    investment_days: Optional[int] = None


def calculate_metrics(investment: Investment, now: Optional[datetime] = None,
                      include_durations: bool = False) -> InvestmentMetrics:
    now = now or datetime.now(timezone.utc)
    profit = investment.value - investment.initial_value
    metrics = InvestmentMetrics(
        profit=profit,
        profit_percentage=percentage(profit, investment.initial_value),
        is_matured=investment.is_matured(now)
    )
    if include_durations:
        if investment.maturity_date:
            metrics.days_to_maturity = days_between(now, investment.maturity_date)
        metrics.investment_days = days_between(investment.purchase_date, now)
    return metrics


@dataclass
class InvestmentDetails:
    investment: Investment
    metrics: InvestmentMetrics


@dataclass
class TransferOutcome:
    investment: InvestmentDetails
    ledger_entry: LedgerEntry
    transferred_amount: Decimal
    new_investment_value: Decimal


@dataclass
class RedemptionOutcome:
    """
    Result of a redemption. For a total redemption ``investment`` is None and
    the completion markers are set.
    """
    ledger_entry: LedgerEntry
    redeemed_amount: Decimal
    redeem_type: str
    investment: Optional[InvestmentDetails] = None
    investment_completely_redeemed: bool = False
    original_investment_value: Optional[Decimal] = None


@dataclass
class DeletionOutcome:
    id: str
    name: str
    value: Decimal
    warning: Optional[str] = None


@dataclass
class CategorySummary:
    category: str
    total_value: Decimal
    total_initial_value: Decimal
    count: int
    average_yield: Decimal
    profit: Decimal
    profit_percentage: Decimal


@dataclass
class PortfolioSummary:
    total_value: Decimal
    total_initial_value: Decimal
    total_profit: Decimal
    total_profit_percentage: Decimal
    count: int
    by_category: List[CategorySummary] = field(default_factory=list)

    @classmethod
    def from_aggregate(cls, aggregate: PortfolioAggregate) -> 'PortfolioSummary':
        total_profit = aggregate.total_value - aggregate.total_initial_value
        return cls(
            total_value=aggregate.total_value,
            total_initial_value=aggregate.total_initial_value,
            total_profit=total_profit,
            total_profit_percentage=percentage(total_profit, aggregate.total_initial_value),
            count=aggregate.count,
            by_category=[
                CategorySummary(
                    category=c.category,
                    total_value=c.total_value,
                    total_initial_value=c.total_initial_value,
                    count=c.count,
                    average_yield=c.average_yield,
                    profit=c.total_value - c.total_initial_value,
                    profit_percentage=percentage(c.total_value - c.total_initial_value,
                                                 c.total_initial_value)
                )
                for c in aggregate.by_category
            ]
        )


@dataclass
class PortfolioListing:
    investments: List[InvestmentDetails]
    summary: PortfolioSummary
    count: int


def _parse_decimal(value: Any, label: str) -> Decimal:
    if value is None or value == "":
        raise ValidationError(f"{label} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{label} must be a number")
    if not parsed.is_finite():
        raise ValidationError(f"{label} must be a number")
    return parsed


def _parse_datetime(value: Any, label: str) -> datetime:
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a valid date")


class InvestmentOperations:
    """
    Investment use cases for one authenticated account at a time
    """

    def __init__(
        self,
        storage: StorageInterface,
        repository: InvestmentRepository,
        ledger: AccountLedger,
        accounts: AccountManager,
        audit_trail: AuditTrail,
        max_transfer: Decimal = Decimal("1000000.00"),
        max_description_length: int = 255,
        maturity_warning_days: int = 30
    ):
        self.storage = storage
        self.repository = repository
        self.ledger = ledger
        self.accounts = accounts
        self.audit_trail = audit_trail
        self.max_transfer = Decimal(max_transfer)
        self.max_description_length = max_description_length
        self.maturity_warning_days = maturity_warning_days
        self.logger = get_logger("banking_demo.investments")

    # Guard

    def guard_investment(self, investment_id: str, account_id: str) -> Investment:
        """
        Load an investment and check that the caller owns it.

        Raises:
            InvestmentNotFoundError: no investment with that id
            AccessDeniedError: the investment belongs to another account
        """
        investment = self.repository.find_by_id(investment_id)
        if not investment:
            raise InvestmentNotFoundError()
        if investment.account_id != account_id:
            raise AccessDeniedError()
        return investment

    def _execute(self, action: str, account_id: str, operation: Callable[[], T],
                 resource: Optional[str] = None) -> OperationResult[T]:
        """Run an operation and convert domain errors into a failed result"""
        try:
            return operation()
        except AccessDeniedError as e:
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCESS_DENIED,
                entity_type="investment",
                entity_id=resource or "",
                account_id=account_id,
                metadata={"action": action}
            )
            log_action(
                self.logger, "warning", "Access denied",
                account_id=account_id, action=action, resource=resource
            )
            return OperationResult.fail(e)
        except BankingDemoError as e:
            log_action(
                self.logger, "warning", e.message,
                account_id=account_id, action=action, resource=resource,
                extra={"error_code": e.code}
            )
            return OperationResult.fail(e)

    def _apply_ledger_mutation(
        self,
        mutate: Callable[[], T],
        account_id: str,
        entry_type: str,
        amount: Decimal,
        from_label: str,
        to_label: str,
        description: Optional[str],
        audit_event: AuditEventType,
        audit_entity_id: str,
        audit_metadata: Dict[str, Any]
    ) -> Tuple[T, LedgerEntry]:
        """
        Apply an investment change and append its ledger entry as one unit.
        A failure in either write leaves both collections untouched.
        """
        with self.storage.atomic():
            mutated = mutate()
            entry = self.ledger.record(
                account_id=account_id,
                entry_type=entry_type,
                amount=amount,
                from_label=from_label,
                to_label=to_label,
                description=description
            )
            self.audit_trail.log_event(
                event_type=audit_event,
                entity_type="investment",
                entity_id=audit_entity_id,
                account_id=account_id,
                metadata=dict(audit_metadata, ledger_entry_id=entry.id)
            )
        return mutated, entry

    # Validation helpers

    def _validate_description(self, description: Optional[str]) -> None:
        if description and len(description) > self.max_description_length:
            raise ValidationError(
                f"Description must be at most {self.max_description_length} characters"
            )

    def _require_positive_amount(self, amount: Any) -> Decimal:
        parsed = _parse_decimal(amount, "Amount")
        if parsed <= 0:
            raise ValidationError("Amount must be greater than zero")
        return parsed

    def _details(self, investment: Investment, include_durations: bool = False) -> InvestmentDetails:
        return InvestmentDetails(
            investment=investment,
            metrics=calculate_metrics(investment, include_durations=include_durations)
        )

    # Create

    def create_investment(
        self,
        account_id: str,
        investment_type: Any,
        category: Any,
        subtype: Optional[str],
        name: Optional[str],
        initial_value: Any,
        risk_level: Any,
        current_yield: Any = None,
        maturity_date: Any = None
    ) -> OperationResult[InvestmentDetails]:
        """
        Create an investment worth its initial value. No ledger entry is
        written; funding happens out of band.
        """
        def operation():
            parsed_type = parse_enum(InvestmentType, investment_type)
            if not parsed_type:
                raise ValidationError("Invalid investment type")
            parsed_category = parse_enum(InvestmentCategory, category)
            if not parsed_category:
                raise ValidationError("Invalid investment category")
            if not subtype or not subtype.strip():
                raise ValidationError("Subtype is required")
            if not is_valid_subtype(parsed_type, parsed_category, subtype):
                raise ValidationError(
                    f"Subtype '{subtype}' is not allowed for "
                    f"{parsed_type.value}/{parsed_category.value}"
                )
            value = _parse_decimal(initial_value, "Initial value")
            if value <= 0:
                raise ValidationError("Initial value must be greater than zero")
            if not name or not name.strip():
                raise ValidationError("Name is required")
            parsed_risk = parse_enum(RiskLevel, risk_level)
            if not parsed_risk:
                raise ValidationError("Invalid risk level")

            yield_rate = Decimal("0")
            if current_yield is not None:
                yield_rate = _parse_decimal(current_yield, "Current yield")
                if yield_rate < -100:
                    raise ValidationError("Current yield cannot be below -100%")

            now = datetime.now(timezone.utc)
            maturity = None
            if maturity_date is not None:
                maturity = _parse_datetime(maturity_date, "Maturity date")
                if parsed_type == InvestmentType.FIXED_INCOME and maturity <= now:
                    raise ValidationError("Maturity date must be in the future")
                # purchase_date is set to now below
                if maturity <= now:
                    raise ValidationError("Maturity date must be after the purchase date")

            investment = Investment(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                account_id=account_id,
                type=parsed_type,
                category=parsed_category,
                subtype=subtype,
                name=name.strip(),
                value=value,
                initial_value=value,
                risk_level=parsed_risk,
                purchase_date=now,
                current_yield=yield_rate,
                maturity_date=maturity
            )

            with self.storage.atomic():
                self.repository.save(investment)
                self.audit_trail.log_event(
                    event_type=AuditEventType.INVESTMENT_CREATED,
                    entity_type="investment",
                    entity_id=investment.id,
                    account_id=account_id,
                    metadata={
                        "type": parsed_type,
                        "category": parsed_category,
                        "subtype": subtype,
                        "initial_value": value
                    }
                )

            log_action(
                self.logger, "info", "Investment created",
                account_id=account_id, action="create_investment", resource=investment.id
            )
            return OperationResult.ok(self._details(investment), "Investment created successfully")

        return self._execute("create_investment", account_id, operation)

    # Update

    def update_investment(self, investment_id: str, account_id: str,
                          changes: Dict[str, Any]) -> OperationResult[InvestmentDetails]:
        """Apply a partial update. Initial value, purchase date and owner are immutable."""
        def operation():
            investment = self.guard_investment(investment_id, account_id)

            for key, message in IMMUTABLE_FIELDS.items():
                if key in changes:
                    raise ValidationError(message)
            unknown = set(changes) - UPDATABLE_FIELDS
            if unknown:
                raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
            if not changes:
                raise ValidationError("No fields to update")

            patch: Dict[str, Any] = {}
            if "name" in changes:
                name = changes["name"]
                if not name or not str(name).strip():
                    raise ValidationError("Name is required")
                patch["name"] = str(name).strip()
            if "subtype" in changes:
                subtype = changes["subtype"]
                if not subtype or not is_valid_subtype(investment.type, investment.category, subtype):
                    raise ValidationError(
                        f"Subtype '{subtype}' is not allowed for "
                        f"{investment.type.value}/{investment.category.value}"
                    )
                patch["subtype"] = subtype
            if "value" in changes:
                value = _parse_decimal(changes["value"], "Value")
                if value < 0:
                    raise ValidationError("Value cannot be negative")
                patch["value"] = value
            if "current_yield" in changes:
                yield_rate = _parse_decimal(changes["current_yield"], "Current yield")
                if yield_rate < -100:
                    raise ValidationError("Current yield cannot be below -100%")
                patch["current_yield"] = yield_rate
            if "risk_level" in changes:
                risk = parse_enum(RiskLevel, changes["risk_level"])
                if not risk:
                    raise ValidationError("Invalid risk level")
                patch["risk_level"] = risk
            if "maturity_date" in changes:
                maturity = changes["maturity_date"]
                if maturity is not None:
                    maturity = _parse_datetime(maturity, "Maturity date")
                    if maturity <= investment.purchase_date:
                        raise ValidationError("Maturity date must be after the purchase date")
                patch["maturity_date"] = maturity

            with self.storage.atomic():
                updated = self.repository.update(investment_id, patch)
                if not updated:
                    raise InvestmentNotFoundError()
                self.audit_trail.log_event(
                    event_type=AuditEventType.INVESTMENT_UPDATED,
                    entity_type="investment",
                    entity_id=investment_id,
                    account_id=account_id,
                    metadata={"changes": patch}
                )

            log_action(
                self.logger, "info", "Investment updated",
                account_id=account_id, action="update_investment", resource=investment_id,
                extra={"fields": sorted(patch)}
            )
            return OperationResult.ok(self._details(updated), "Investment updated successfully")

        return self._execute("update_investment", account_id, operation, investment_id)

    # Delete

    def check_deletion(self, investment: Investment, now: Optional[datetime] = None) -> Optional[str]:
        """Advisory warning for a deletion. Deletion is never blocked."""
        if investment.category == InvestmentCategory.PRIVATE_PENSION:
            return PENSION_WARNING
        if investment.maturity_date:
            remaining = days_between(now or datetime.now(timezone.utc), investment.maturity_date)
            if 0 < remaining <= self.maturity_warning_days:
                return NEAR_MATURITY_WARNING
        return None

    def delete_investment(self, investment_id: str, account_id: str) -> OperationResult[DeletionOutcome]:
        def operation():
            investment = self.guard_investment(investment_id, account_id)
            warning = self.check_deletion(investment)

            with self.storage.atomic():
                deleted = self.repository.delete(investment_id)
                if not deleted:
                    raise InvestmentNotFoundError()
                self.audit_trail.log_event(
                    event_type=AuditEventType.INVESTMENT_DELETED,
                    entity_type="investment",
                    entity_id=investment_id,
                    account_id=account_id,
                    metadata={"name": deleted.name, "value": deleted.value, "warning": warning}
                )

            log_action(
                self.logger, "info", "Investment deleted",
                account_id=account_id, action="delete_investment", resource=investment_id
            )
            outcome = DeletionOutcome(
                id=deleted.id, name=deleted.name, value=deleted.value, warning=warning
            )
            return OperationResult.ok(
                outcome, "Investment deleted successfully", warnings=[warning] if warning else None
            )

        return self._execute("delete_investment", account_id, operation, investment_id)

    # Transfer

    def transfer_to_investment(self, account_id: str, investment_id: Optional[str], amount: Any,
                               description: Optional[str] = None) -> OperationResult[TransferOutcome]:
        """Move money from the account into an investment"""
        def operation():
            if not investment_id:
                raise ValidationError("Investment id is required")
            investment = self.guard_investment(investment_id, account_id)

            transfer_amount = self._require_positive_amount(amount)
            if transfer_amount > self.max_transfer:
                raise ValidationError(f"Amount cannot exceed {self.max_transfer}")
            self._validate_description(description)

            account = self.accounts.require_account(account_id)
            new_value = investment.value + transfer_amount

            def mutate():
                updated = self.repository.update(investment_id, {"value": new_value})
                if not updated:
                    raise InvestmentNotFoundError()
                return updated

            updated, entry = self._apply_ledger_mutation(
                mutate,
                account_id=account_id,
                entry_type=INVESTMENT_TRANSFER,
                amount=-transfer_amount,
                from_label=account.account_number,
                to_label=investment_label(investment),
                description=description,
                audit_event=AuditEventType.INVESTMENT_TRANSFER,
                audit_entity_id=investment_id,
                audit_metadata={"amount": transfer_amount, "new_value": new_value}
            )

            log_action(
                self.logger, "info", "Transfer to investment completed",
                account_id=account_id, action="transfer_to_investment", resource=investment_id,
                extra={"amount": str(transfer_amount)}
            )
            outcome = TransferOutcome(
                investment=self._details(updated),
                ledger_entry=entry,
                transferred_amount=transfer_amount,
                new_investment_value=updated.value
            )
            return OperationResult.ok(outcome, "Transfer completed successfully")

        return self._execute("transfer_to_investment", account_id, operation, investment_id)

    # Redeem

    def redeem_investment(self, account_id: str, investment_id: Optional[str], amount: Any,
                          description: Optional[str] = None,
                          redeem_type: Optional[str] = None) -> OperationResult[RedemptionOutcome]:
        """
        Move money from an investment back into the account. Redeeming the
        whole value, or asking for a total redemption, deletes the investment.
        """
        def operation():
            if not investment_id:
                raise ValidationError("Investment id is required")
            investment = self.guard_investment(investment_id, account_id)

            redeem_amount = self._require_positive_amount(amount)
            requested_type = redeem_type or REDEEM_PARTIAL
            if requested_type not in REDEEM_TYPES:
                raise ValidationError("Redeem type must be 'partial' or 'total'")
            self._validate_description(description)

            account = self.accounts.require_account(account_id)
            if redeem_amount > investment.value:
                raise ValidationError("Redeem amount exceeds available value")

            is_total = requested_type == REDEEM_TOTAL or redeem_amount == investment.value
            new_value = investment.value - redeem_amount

            def mutate():
                if is_total:
                    removed = self.repository.delete(investment_id)
                    if not removed:
                        raise InvestmentNotFoundError()
                    return None
                updated = self.repository.update(investment_id, {"value": new_value})
                if not updated:
                    raise InvestmentNotFoundError()
                return updated

            updated, entry = self._apply_ledger_mutation(
                mutate,
                account_id=account_id,
                entry_type=INVESTMENT_REDEMPTION,
                amount=redeem_amount,
                from_label=investment_label(investment),
                to_label=account.account_number,
                description=description,
                audit_event=AuditEventType.INVESTMENT_REDEEMED,
                audit_entity_id=investment_id,
                audit_metadata={
                    "amount": redeem_amount,
                    "redeem_type": REDEEM_TOTAL if is_total else REDEEM_PARTIAL,
                    "previous_value": investment.value
                }
            )

            log_action(
                self.logger, "info", "Investment redeemed",
                account_id=account_id, action="redeem_investment", resource=investment_id,
                extra={"amount": str(redeem_amount), "total": is_total}
            )

            if is_total:
                outcome = RedemptionOutcome(
                    ledger_entry=entry,
                    redeemed_amount=redeem_amount,
                    redeem_type=REDEEM_TOTAL,
                    investment_completely_redeemed=True,
                    original_investment_value=investment.value
                )
            else:
                outcome = RedemptionOutcome(
                    ledger_entry=entry,
                    redeemed_amount=redeem_amount,
                    redeem_type=REDEEM_PARTIAL,
                    investment=self._details(updated)
                )
            return OperationResult.ok(outcome, "Redemption completed successfully")

        return self._execute("redeem_investment", account_id, operation, investment_id)

    # Reads

    def list_investments(self, account_id: str,
                         filters: Optional[InvestmentFilters] = None) -> OperationResult[PortfolioListing]:
        """Filtered investments of the account plus a portfolio summary"""
        def operation():
            investments = self.repository.find_by_account(account_id, filters)
            aggregate = self.repository.aggregate(account_id, filters)
            listing = PortfolioListing(
                investments=[self._details(i) for i in investments],
                summary=PortfolioSummary.from_aggregate(aggregate),
                count=len(investments)
            )
            return OperationResult.ok(listing)

        return self._execute("list_investments", account_id, operation)

    def get_investment(self, investment_id: str, account_id: str) -> OperationResult[InvestmentDetails]:
        def operation():
            investment = self.guard_investment(investment_id, account_id)
            return OperationResult.ok(self._details(investment, include_durations=True))

        return self._execute("get_investment", account_id, operation, investment_id)
