"""
Module: cashbook_service
Purpose: Branch cashbook - recording movements, approval workflow, summaries, ledgers and vouchers
Author: Portal Development Team
Date: 2024
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.constants import (
    VerificationStatus, NotificationType, EmailCategory,
    VOUCHER_PREFIXES, VOUCHER_NUMBER_WIDTH
)
from portal.core.exceptions import (
    PortalException, SystemException, ValidationException, InvalidFormatException,
    InvalidStateTransitionException, InsufficientPermissionsException,
    ResourceConflictException, RequiredFieldMissingException, require_fields
)
from portal.db.models import CashTransaction, BranchOpeningBalance, EmailOutboxMessage
from portal.repositories.cashbook_repository import CashTransactionRepository, OpeningBalanceRepository
from portal.repositories.user_repository import StaffRepository, AdminRepository
from portal.schemas.auth import RequestContext
from portal.schemas.cashbook import CashTransactionCreate, CashTransactionUpdate
from portal.services import email_templates
from portal.services.ledger import (
    opening_balance_of, resolve_previous_balance, compute_new_balance,
    crosses_low_balance_threshold, fold_ledger
)
from portal.services.mailer import EmailTransport
from portal.services.notification_service import NotificationService
from portal.services.outbox_service import EmailOutboxService
from portal.utils.formatting import format_inr, to_decimal
from portal.utils.logger import get_logger

TRANSACTIONS_TABLE = CashTransaction.__tablename__
_VOUCHER_SUFFIX = re.compile(r"(\d+)$")


class CashbookService:
    """
    Cashbook service.

    Every balance-affecting write locks the branch's opening-balance row
    before reading the latest approved balance, so writers of one branch are
    serialized for the rest of the database transaction. Notifications and
    outbox rows are written in that same transaction; email delivery is
    attempted only after commit.
    """

    def __init__(self, db: Session, transport: Optional[EmailTransport] = None):
        self.db = db
        self.transaction_repo = CashTransactionRepository(db)
        self.opening_repo = OpeningBalanceRepository(db)
        self.staff_repo = StaffRepository(db)
        self.admin_repo = AdminRepository(db)
        self.notifications = NotificationService(db)
        self.outbox = EmailOutboxService(db, transport)
        self.logger = get_logger(self.__class__.__name__)

        self.low_balance_threshold = to_decimal(settings.LOW_BALANCE_THRESHOLD)

    # ==================== RECORDING ====================

    def create_transaction(self, context: RequestContext, data: CashTransactionCreate) -> CashTransaction:
        """
        Record a cash movement for a branch.

        With auto-approve the movement is posted immediately: the new running
        balance is stored and the creator becomes the verifier. Otherwise the
        row is stored pending with the current balance as a placeholder.

        Args:
            context: Submitting staff member or admin
            data: Movement details

        Returns:
            CashTransaction: Stored transaction

        Raises:
            RequiredFieldMissingException: If no branch can be determined
        """
        branch = data.branch or context.branch
        if not branch:
            raise RequiredFieldMissingException(["branch"])

        queued: List[Optional[EmailOutboxMessage]] = []
        try:
            opening = self.opening_repo.get_by_branch(branch, for_update=True)
            auto_approve = self.is_auto_approve_enabled(opening)

            previous = resolve_previous_balance(self.transaction_repo.get_latest_approved(branch), opening)
            new_balance = compute_new_balance(previous, data.cash_in, data.cash_out)

            voucher_no = data.voucher_no or self._allocate_voucher(
                branch,
                "cash_in" if data.cash_in > 0 else "cash_out",
                data.transaction_date.year
            )

            values: Dict[str, Any] = dict(
                branch=opening.branch if opening else branch,
                staff_id=context.user_id,
                transaction_date=data.transaction_date,
                voucher_no=voucher_no,
                primary_list=data.primary_list,
                nature_of_expense=data.nature_of_expense,
                bill_status=data.bill_status.value if data.bill_status else None,
                cash_in=data.cash_in,
                cash_out=data.cash_out,
                attachment_urls=list(data.attachment_urls),
                notes=data.notes,
            )
            if auto_approve:
                values.update(
                    balance=new_balance,
                    verification_status=VerificationStatus.APPROVED.value,
                    verified_by=context.user_id,
                    verified_at=datetime.utcnow(),
                )
            else:
                values.update(
                    balance=previous,
                    verification_status=VerificationStatus.PENDING.value,
                )

            transaction = self.transaction_repo.create(**values)

            if auto_approve:
                self._notify_auto_approved(transaction, context.name)
                if crosses_low_balance_threshold(previous, new_balance, self.low_balance_threshold):
                    queued.append(self._queue_low_balance_alert(transaction.branch, new_balance))
            else:
                queued.append(self._notify_pending(transaction, context.name))

            self.db.commit()

            self.logger.log_transaction(
                transaction_id=transaction.id,
                branch=transaction.branch,
                cash_in=transaction.cash_in,
                cash_out=transaction.cash_out,
                balance=transaction.balance,
                staff_id=context.user_id,
                status=transaction.verification_status,
                previous_balance=previous,
            )

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error recording transaction for {branch}: {str(e)}")
            raise SystemException(str(e))

        self.outbox.deliver_many(queued)
        return transaction

    def update_transaction(
        self,
        context: RequestContext,
        transaction_id: str,
        data: CashTransactionUpdate
    ) -> CashTransaction:
        """
        Edit the content of a transaction.

        Stored balances (of this row and of later rows) are left unchanged;
        the ledger view shows the recomputed figures.
        """
        try:
            transaction = self.transaction_repo.get_by_id_or_raise(transaction_id)
            self._check_can_modify(context, transaction)

            changes = data.model_dump(exclude_unset=True)
            if "bill_status" in changes and changes["bill_status"] is not None:
                changes["bill_status"] = changes["bill_status"].value

            cash_in = changes.get("cash_in", transaction.cash_in)
            cash_out = changes.get("cash_out", transaction.cash_out)
            if (cash_in or 0) > 0 and (cash_out or 0) > 0:
                raise ValidationException("A transaction is either cash in or cash out, not both")
            if not (cash_in or 0) and not (cash_out or 0):
                raise ValidationException("Either cash_in or cash_out must be greater than zero")

            self.transaction_repo.update(transaction, **changes)
            self.db.commit()

            if transaction.is_approved and ("cash_in" in changes or "cash_out" in changes):
                self.logger.warning(
                    "Amount of an approved transaction edited; stored balances are not recomputed",
                    transaction_id=transaction.id,
                    branch=transaction.branch
                )
            self.logger.log_user_activity(
                user_id=context.user_id,
                action="update_cash_transaction",
                transaction_id=transaction.id,
                fields=sorted(changes)
            )
            return transaction

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error updating transaction {transaction_id}: {str(e)}")
            raise SystemException(str(e))

    def delete_transaction(self, context: RequestContext, transaction_id: str) -> None:
        """Hard delete. Balances stored on other rows are not recomputed."""
        try:
            transaction = self.transaction_repo.get_by_id_or_raise(transaction_id)
            self._check_can_modify(context, transaction)

            was_approved = transaction.is_approved
            branch = transaction.branch
            self.transaction_repo.delete(transaction)
            self.db.commit()

            if was_approved:
                self.logger.warning(
                    "Approved transaction deleted; later stored balances are not recomputed",
                    transaction_id=transaction_id,
                    branch=branch
                )
            self.logger.log_user_activity(
                user_id=context.user_id,
                action="delete_cash_transaction",
                transaction_id=transaction_id
            )

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error deleting transaction {transaction_id}: {str(e)}")
            raise SystemException(str(e))

    # ==================== APPROVAL WORKFLOW ====================

    def approve_transaction(
        self,
        transaction_id: str,
        verifier_id: str,
        note: Optional[str] = None
    ) -> CashTransaction:
        """
        Approve a pending transaction and post it to the running balance.

        Args:
            transaction_id: Transaction to approve
            verifier_id: Approving accountant or admin
            note: Optional verifier note

        Returns:
            CashTransaction: Approved transaction

        Raises:
            ResourceNotFoundException: If the transaction does not exist
            InvalidStateTransitionException: If it is not pending
        """
        queued: List[Optional[EmailOutboxMessage]] = []
        try:
            transaction, opening = self._load_for_verification(transaction_id, VerificationStatus.APPROVED)

            previous = resolve_previous_balance(self.transaction_repo.get_latest_approved(transaction.branch), opening)
            new_balance = compute_new_balance(previous, transaction.cash_in, transaction.cash_out)
            transaction.mark_approved(new_balance, verifier_id, note)
            self.db.flush()

            staff = self.staff_repo.get_by_id(transaction.staff_id) if transaction.staff_id else None
            admins = self.admin_repo.list_all()
            amount = format_inr(transaction.amount)
            proof_note = " Proof reviewed." if transaction.has_proof else ""

            if staff:
                self.notifications.notify(
                    [staff.id],
                    NotificationType.CASHBOOK_TRANSACTION_APPROVED.value,
                    "Cash transaction approved",
                    f"Your {transaction.transaction_type} ({amount}) for {transaction.branch} has been approved.",
                    reference_id=transaction.id,
                    reference_table=TRANSACTIONS_TABLE,
                    metadata={
                        "branch": transaction.branch,
                        "amount": float(transaction.amount),
                        "transaction_type": transaction.transaction_type,
                        "verification_notes": note,
                    },
                )

            self.notifications.notify(
                [admin.id for admin in admins],
                NotificationType.CASHBOOK_ENTRY.value,
                "Cashbook entry approved",
                f"{transaction.primary_list or 'Cash entry'} ({amount}) has been approved "
                f"for {transaction.branch}.{proof_note}",
                reference_id=transaction.id,
                reference_table=TRANSACTIONS_TABLE,
                metadata={
                    "branch": transaction.branch,
                    "amount": float(transaction.amount),
                    "transaction_type": transaction.transaction_type,
                    "verification_notes": note,
                    "has_proof": transaction.has_proof,
                },
            )

            subject, html = email_templates.render_cashbook_approved(
                transaction, staff.name if staff else None, note
            )
            queued.append(self.outbox.enqueue(
                [staff.email if staff else None] + [admin.email for admin in admins],
                subject,
                html,
                EmailCategory.CASHBOOK_APPROVED.value,
                per_recipient=True,
            ))

            self.db.commit()

            self.logger.log_transaction(
                transaction_id=transaction.id,
                branch=transaction.branch,
                cash_in=transaction.cash_in,
                cash_out=transaction.cash_out,
                balance=new_balance,
                staff_id=transaction.staff_id,
                status=transaction.verification_status,
                verified_by=verifier_id,
                previous_balance=previous,
            )

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error approving transaction {transaction_id}: {str(e)}")
            raise SystemException(str(e))

        self.outbox.deliver_many(queued)
        return transaction

    def reject_transaction(
        self,
        transaction_id: str,
        verifier_id: str,
        note: Optional[str] = None
    ) -> CashTransaction:
        """
        Reject a pending transaction. The stored balance is not touched.

        Raises:
            ResourceNotFoundException: If the transaction does not exist
            InvalidStateTransitionException: If it is not pending
        """
        queued: List[Optional[EmailOutboxMessage]] = []
        try:
            transaction, _ = self._load_for_verification(transaction_id, VerificationStatus.REJECTED)
            transaction.mark_rejected(verifier_id, note)
            self.db.flush()

            staff = self.staff_repo.get_by_id(transaction.staff_id) if transaction.staff_id else None
            admins = self.admin_repo.list_all()
            amount = format_inr(transaction.amount)
            metadata = {
                "branch": transaction.branch,
                "amount": float(transaction.amount),
                "transaction_type": transaction.transaction_type,
                "verification_notes": note,
                "has_proof": transaction.has_proof,
            }

            if staff:
                self.notifications.notify(
                    [staff.id],
                    NotificationType.CASHBOOK_TRANSACTION_REJECTED.value,
                    "Cash transaction rejected",
                    f"Your {transaction.transaction_type} ({amount}) for {transaction.branch} was rejected.",
                    reference_id=transaction.id,
                    reference_table=TRANSACTIONS_TABLE,
                    metadata=metadata,
                )

            proof_note = " Proof available for review." if transaction.has_proof else ""
            self.notifications.notify(
                [admin.id for admin in admins],
                NotificationType.CASHBOOK_TRANSACTION_REJECTED.value,
                "Cash transaction rejected",
                f"{transaction.primary_list or 'Cash entry'} ({amount}) for {transaction.branch} "
                f"was rejected.{proof_note}",
                reference_id=transaction.id,
                reference_table=TRANSACTIONS_TABLE,
                metadata=metadata,
            )

            if staff and staff.email:
                subject, html = email_templates.render_cashbook_rejected(transaction, note)
                queued.append(self.outbox.enqueue(
                    [staff.email], subject, html, EmailCategory.CASHBOOK_REJECTED.value
                ))
            else:
                self.logger.warning(
                    "Submitter has no email address; rejection email not sent",
                    transaction_id=transaction.id,
                    staff_id=transaction.staff_id
                )

            self.db.commit()

            self.logger.log_transaction(
                transaction_id=transaction.id,
                branch=transaction.branch,
                cash_in=transaction.cash_in,
                cash_out=transaction.cash_out,
                balance=transaction.balance,
                staff_id=transaction.staff_id,
                status=transaction.verification_status,
                verified_by=verifier_id,
            )

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error rejecting transaction {transaction_id}: {str(e)}")
            raise SystemException(str(e))

        self.outbox.deliver_many(queued)
        return transaction

    # ==================== QUERIES ====================

    def list_transactions(
        self,
        branch: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_pending: bool = False,
        include_rejected: Optional[bool] = None,
        staff_id: Optional[str] = None
    ) -> List[CashTransaction]:
        return self.transaction_repo.list_transactions(
            branch=branch,
            start_date=start_date,
            end_date=end_date,
            include_pending=include_pending,
            include_rejected=include_rejected,
            staff_id=staff_id,
        )

    def get_summary(
        self,
        branch: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Opening balance, totals and closing balance of a branch.
        Only approved movements are counted.
        """
        if not branch:
            raise RequiredFieldMissingException(["branch"])

        opening = opening_balance_of(self.opening_repo.get_by_branch(branch))
        totals = self.transaction_repo.get_approved_totals(branch, start_date, end_date)
        closing = opening + totals["total_cash_in"] - totals["total_cash_out"]

        return {
            "branch": branch,
            "start_date": start_date,
            "end_date": end_date,
            "opening_balance": float(opening),
            "total_cash_in": float(totals["total_cash_in"]),
            "total_cash_out": float(totals["total_cash_out"]),
            "closing_balance": float(closing),
            "transaction_count": totals["transaction_count"],
        }

    def get_ledger(
        self,
        branch: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Approved movements in ledger order, each with its running balance
        folded from the opening balance. Nothing is written back.

        The fold always starts at the first approved movement; the date
        range only limits which lines are returned.
        """
        if not branch:
            raise RequiredFieldMissingException(["branch"])

        opening = opening_balance_of(self.opening_repo.get_by_branch(branch))
        approved = self.transaction_repo.list_approved_in_ledger_order(branch)

        entries = []
        closing = opening
        for transaction, running in fold_ledger(opening, approved):
            closing = running
            if start_date and transaction.transaction_date < start_date:
                continue
            if end_date and transaction.transaction_date > end_date:
                continue
            entry = transaction.to_dict()
            entry["calculated_balance"] = float(running)
            entries.append(entry)

        return {
            "branch": branch,
            "opening_balance": float(opening),
            "closing_balance": float(closing),
            "entries": entries,
        }

    # ==================== VOUCHERS ====================

    def next_voucher_number(self, branch: Optional[str], voucher_type: Optional[str]) -> Dict[str, str]:
        """
        Next free voucher number of a branch for the current year.

        Raises:
            RequiredFieldMissingException: If branch or type is missing
            InvalidFormatException: If type is not cash_in or cash_out
            ResourceConflictException: If no free number was found
        """
        require_fields({"branch": branch, "type": voucher_type}, ["branch", "type"])
        if voucher_type not in VOUCHER_PREFIXES:
            raise InvalidFormatException("type", "cash_in or cash_out")

        voucher_no = self._allocate_voucher(branch, voucher_type, date.today().year)
        return {"voucher_no": voucher_no, "type": voucher_type}

    def _allocate_voucher(self, branch: str, voucher_type: str, year: int) -> str:
        prefix = VOUCHER_PREFIXES[voucher_type]
        highest = 0
        for voucher_no in self.transaction_repo.get_voucher_numbers(branch, prefix, year):
            match = _VOUCHER_SUFFIX.search(voucher_no)
            if match:
                highest = max(highest, int(match.group(1)))

        for attempt in range(settings.VOUCHER_MAX_ATTEMPTS):
            candidate = f"{prefix}{str(highest + 1 + attempt).zfill(VOUCHER_NUMBER_WIDTH)}"
            if not self.transaction_repo.voucher_exists(candidate):
                return candidate

        self.logger.warning(f"Voucher numbers exhausted for {branch}", prefix=prefix, highest=highest)
        raise ResourceConflictException("Voucher", "Unable to generate unique voucher number")

    # ==================== LOW BALANCE ====================

    def send_low_balance_alert(
        self,
        branch: Optional[str],
        balance: Optional[Decimal],
        admin_emails: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Queue and deliver a low-balance alert on request.

        Raises:
            ValidationException: If branch or balance is missing, or nobody can be emailed
        """
        if not branch or balance is None:
            raise ValidationException(
                "Missing required fields: branch and balance",
                details={"missing_fields": [n for n, v in (("branch", branch), ("balance", balance)) if v in (None, "")]}
            )

        try:
            recipients = [e for e in (admin_emails or []) if e] or self.admin_repo.list_emails()
            if not recipients:
                raise ValidationException("No admin emails found")

            message = self._queue_low_balance_alert(branch, balance, recipients)
            self.db.commit()

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error queuing low balance alert for {branch}: {str(e)}")
            raise SystemException(str(e))

        self.outbox.deliver_many([message])
        return {
            "success": True,
            "message": "Low balance alert sent successfully",
            "details": {
                "branch": branch,
                "balance": float(to_decimal(balance)),
                "recipients": message.recipient_list if message else [],
            },
        }

    # ==================== HELPERS ====================

    def is_auto_approve_enabled(self, opening: Optional[BranchOpeningBalance]) -> bool:
        if opening is not None and opening.auto_approve is not None:
            return bool(opening.auto_approve)
        return settings.CASHBOOK_AUTO_APPROVE_DEFAULT

    def _load_for_verification(
        self,
        transaction_id: str,
        target: VerificationStatus
    ) -> Tuple[CashTransaction, Optional[BranchOpeningBalance]]:
        """Load a transaction, take the branch lock and check it is still pending."""
        transaction = self.transaction_repo.get_by_id_or_raise(transaction_id)
        opening = self.opening_repo.get_by_branch(transaction.branch, for_update=True)
        self.db.refresh(transaction, with_for_update=True)

        if not transaction.can_transition_to(target):
            raise InvalidStateTransitionException(
                "Transaction", transaction.verification_status, target.value
            )
        return transaction, opening

    def _check_can_modify(self, context: RequestContext, transaction: CashTransaction) -> None:
        """Only the submitter or an admin may edit or delete an entry."""
        if context.is_admin or transaction.staff_id == context.user_id:
            return
        raise InsufficientPermissionsException("modify_cash_transaction")

    def _notify_pending(self, transaction: CashTransaction, staff_name: Optional[str]) -> Optional[EmailOutboxMessage]:
        accountants = self.staff_repo.get_active_accountants()
        admins = self.admin_repo.list_all()
        amount = format_inr(transaction.amount)
        proof = " • proof attached" if transaction.has_proof else ""

        self.notifications.notify(
            [a.id for a in accountants] + [a.id for a in admins],
            NotificationType.CASHBOOK_ENTRY.value,
            "Cash transaction pending approval",
            f"{staff_name or 'A staff member'} submitted an {transaction.transaction_type} entry "
            f"({amount}) for {transaction.branch}{proof}.",
            reference_id=transaction.id,
            reference_table=TRANSACTIONS_TABLE,
            metadata={
                "branch": transaction.branch,
                "amount": float(transaction.amount),
                "transaction_type": transaction.transaction_type,
                "requested_by": staff_name,
                "has_proof": transaction.has_proof,
                "requires_approval": True,
            },
        )

        subject, html = email_templates.render_cashbook_pending(transaction, staff_name)
        return self.outbox.enqueue(
            [a.email for a in accountants] + [a.email for a in admins],
            subject,
            html,
            EmailCategory.CASHBOOK_PENDING.value,
        )

    def _notify_auto_approved(self, transaction: CashTransaction, staff_name: Optional[str]) -> None:
        admins = self.admin_repo.list_all()
        proof = " • proof attached" if transaction.has_proof else ""

        self.notifications.notify(
            [admin.id for admin in admins],
            NotificationType.CASHBOOK_ENTRY.value,
            "New cashbook entry",
            f"New {transaction.transaction_type} from {staff_name or 'staff'}: "
            f"{transaction.nature_of_expense or 'Cash entry'} ({format_inr(transaction.amount)}){proof}.",
            reference_id=transaction.id,
            reference_table=TRANSACTIONS_TABLE,
            metadata={
                "branch": transaction.branch,
                "amount": float(transaction.amount),
                "transaction_type": transaction.transaction_type,
                "nature_of_expense": transaction.nature_of_expense,
                "requested_by": staff_name,
                "has_proof": transaction.has_proof,
                "requires_approval": False,
            },
        )

    def _queue_low_balance_alert(
        self,
        branch: str,
        balance: Any,
        recipients: Optional[List[str]] = None
    ) -> Optional[EmailOutboxMessage]:
        self.logger.warning(f"Low balance for {branch}: {format_inr(balance)}", branch=branch)
        subject, html = email_templates.render_low_balance_alert(branch, balance)
        return self.outbox.enqueue(
            recipients if recipients is not None else self.admin_repo.list_emails(),
            subject,
            html,
            EmailCategory.LOW_BALANCE.value,
        )
