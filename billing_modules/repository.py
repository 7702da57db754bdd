"""
BillingRepository (``billing_modules.repository``).

Responsibility
--------------
The only persistence surface the billing services depend on.  Typed
fetch-by-id, filtered listing and save operations over contracts, partners,
billing entities, scheduled billings and their runs, invoices and their
lines, email and follow-up logs, templates, notifications, audit entries
and settings.  Everything crosses this boundary as frozen dataclasses.

Architecture position
---------------------
**Modules layer** -- persistence port.  ``BillingRepository`` is a Protocol;
``SqlAlchemyBillingRepository`` is the implementation over a SQLAlchemy
Session.  It calls ``flush()`` and never ``commit()``: transaction
boundaries belong to the caller.

Invariants enforced
-------------------
* The invoice counter is read with ``peek_next_invoice_no`` (row lock on
  PostgreSQL) and only moved by ``advance_invoice_no`` after the invoice
  row is flushed.
* Runs, notifications and audit entries are append-only: there is no
  update or delete for them.
* A second live invoice for the same scheduled billing and period fails
  the ``uq_invoices_period_lock`` constraint and surfaces as
  DuplicatePeriodInvoiceError.

Failure modes
-------------
* DuplicatePeriodInvoiceError from ``add_invoice`` / ``update_invoice``.
* LookupError from ``advance_invoice_no`` / update methods when the row
  does not exist.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.exceptions import DuplicatePeriodInvoiceError
from billing_kernel.logging_config import get_logger
from billing_modules.follow_up.models import EmailTemplate, FollowUpLog, TemplateType
from billing_modules.follow_up.orm import EmailTemplateModel, FollowUpLogModel
from billing_modules.invoicing.models import (
    NON_BLOCKING_STATUSES,
    BillingEntity,
    Contract,
    ContractStatus,
    EmailLog,
    Invoice,
    InvoiceStatus,
    Partner,
)
from billing_modules.invoicing.orm import (
    BillingEntityModel,
    ContractModel,
    EmailLogModel,
    InvoiceModel,
    PartnerModel,
)
from billing_modules.notifications.models import (
    AuditAction,
    AuditEntry,
    Notification,
    NotificationType,
)
from billing_modules.notifications.orm import AuditLogModel, NotificationModel
from billing_modules.recurring.models import (
    RunStatus,
    ScheduledBilling,
    ScheduledBillingRun,
    ScheduleStatus,
)
from billing_modules.recurring.orm import ScheduledBillingModel, ScheduledBillingRunModel
from billing_modules.settings.orm import SettingModel

logger = get_logger("modules.repository")


class BillingRepository(Protocol):
    """Persistence operations used by the billing services."""

    def savepoint(self) -> AbstractContextManager[Any]: ...

    # Billing entities
    def get_billing_entity(self, entity_id: UUID) -> BillingEntity | None: ...
    def add_billing_entity(self, entity: BillingEntity, actor_id: UUID) -> BillingEntity: ...
    def peek_next_invoice_no(self, entity_id: UUID) -> int: ...
    def advance_invoice_no(self, entity_id: UUID, used_no: int, actor_id: UUID) -> None: ...

    # Partners and contracts
    def get_partner(self, partner_id: UUID) -> Partner | None: ...
    def add_partner(self, partner: Partner, actor_id: UUID) -> Partner: ...
    def get_contract(self, contract_id: UUID) -> Contract | None: ...
    def add_contract(self, contract: Contract, actor_id: UUID) -> Contract: ...
    def update_contract_next_due_date(
        self, contract_id: UUID, next_due_date: datetime, actor_id: UUID
    ) -> Contract: ...
    def list_contracts_due(self, day_of_month: int, include_later_days: bool) -> list[Contract]: ...

    # Scheduled billings and runs
    def get_scheduled_billing(self, schedule_id: UUID) -> ScheduledBilling | None: ...
    def add_scheduled_billing(self, schedule: ScheduledBilling, actor_id: UUID) -> ScheduledBilling: ...
    def update_scheduled_billing(self, schedule: ScheduledBilling, actor_id: UUID) -> ScheduledBilling: ...
    def list_scheduled_billings(self, status: ScheduleStatus | None = None) -> list[ScheduledBilling]: ...
    def list_due_schedules(
        self, as_of: datetime, day_of_month: int, include_later_days: bool
    ) -> list[ScheduledBilling]: ...
    def add_run(self, run: ScheduledBillingRun, actor_id: UUID) -> ScheduledBillingRun: ...
    def list_runs(
        self,
        schedule_id: UUID,
        status: RunStatus | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[ScheduledBillingRun]: ...

    # Invoices
    def get_invoice(self, invoice_id: UUID) -> Invoice | None: ...
    def add_invoice(self, invoice: Invoice, actor_id: UUID) -> Invoice: ...
    def update_invoice(self, invoice: Invoice, actor_id: UUID) -> Invoice: ...
    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        contract_id: UUID | None = None,
        scheduled_billing_id: UUID | None = None,
    ) -> list[Invoice]: ...
    def has_live_contract_invoice(self, contract_id: UUID, since: datetime, until: datetime) -> bool: ...

    # Email and follow-up logs
    def add_email_log(self, log: EmailLog, actor_id: UUID) -> EmailLog: ...
    def update_email_log(self, log: EmailLog, actor_id: UUID) -> EmailLog: ...
    def list_email_logs(self, invoice_id: UUID) -> list[EmailLog]: ...
    def add_follow_up_log(self, log: FollowUpLog, actor_id: UUID) -> FollowUpLog: ...
    def update_follow_up_log(self, log: FollowUpLog, actor_id: UUID) -> FollowUpLog: ...
    def list_follow_up_logs(self, invoice_id: UUID) -> list[FollowUpLog]: ...

    # Templates, notifications, audit, settings
    def add_email_template(self, template: EmailTemplate, actor_id: UUID) -> EmailTemplate: ...
    def find_email_template(
        self, template_type: TemplateType, level: int | None, billing_entity_id: UUID | None
    ) -> EmailTemplate | None: ...
    def add_notification(self, notification: Notification) -> Notification: ...
    def list_notifications(
        self, type: NotificationType | None = None, entity_id: UUID | None = None
    ) -> list[Notification]: ...
    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry: ...
    def list_audit_entries(
        self, entity_id: UUID | None = None, action: AuditAction | None = None
    ) -> list[AuditEntry]: ...
    def list_settings(self) -> dict[str, Any]: ...
    def upsert_setting(self, key: str, value: Any, actor_id: UUID) -> None: ...


class SqlAlchemyBillingRepository:
    """BillingRepository over a SQLAlchemy Session."""

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def savepoint(self):
        """SAVEPOINT scope; rolled back on exception, released otherwise."""
        return self._session.begin_nested()

    # -------------------------------------------------------------------------
    # Billing entities
    # -------------------------------------------------------------------------

    def get_billing_entity(self, entity_id: UUID) -> BillingEntity | None:
        model = self._session.get(BillingEntityModel, entity_id)
        return model.to_dto() if model else None

    def add_billing_entity(self, entity: BillingEntity, actor_id: UUID) -> BillingEntity:
        model = BillingEntityModel.from_dto(entity, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def peek_next_invoice_no(self, entity_id: UUID) -> int:
        model = self._session.execute(
            select(BillingEntityModel)
            .where(BillingEntityModel.id == entity_id)
            .with_for_update()
        ).scalar_one_or_none()
        if model is None:
            raise LookupError(f"Billing entity {entity_id} not found")
        return model.next_invoice_no

    def advance_invoice_no(self, entity_id: UUID, used_no: int, actor_id: UUID) -> None:
        model = self._require(BillingEntityModel, entity_id)
        model.next_invoice_no = used_no + 1
        model.updated_by_id = actor_id
        self._session.flush()

    # -------------------------------------------------------------------------
    # Partners and contracts
    # -------------------------------------------------------------------------

    def get_partner(self, partner_id: UUID) -> Partner | None:
        model = self._session.get(PartnerModel, partner_id)
        return model.to_dto() if model else None

    def add_partner(self, partner: Partner, actor_id: UUID) -> Partner:
        model = PartnerModel.from_dto(partner, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def get_contract(self, contract_id: UUID) -> Contract | None:
        model = self._session.get(ContractModel, contract_id)
        return model.to_dto() if model else None

    def add_contract(self, contract: Contract, actor_id: UUID) -> Contract:
        model = ContractModel.from_dto(contract, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def update_contract_next_due_date(
        self, contract_id: UUID, next_due_date: datetime, actor_id: UUID
    ) -> Contract:
        model = self._require(ContractModel, contract_id)
        model.next_due_date = next_due_date
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def list_contracts_due(self, day_of_month: int, include_later_days: bool) -> list[Contract]:
        day_filter = (
            ContractModel.billing_day_of_month >= day_of_month
            if include_later_days
            else ContractModel.billing_day_of_month == day_of_month
        )
        rows = self._session.execute(
            select(ContractModel)
            .where(
                ContractModel.status == ContractStatus.ACTIVE.value,
                day_filter,
            )
            .order_by(ContractModel.company_name)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    # -------------------------------------------------------------------------
    # Scheduled billings and runs
    # -------------------------------------------------------------------------

    def get_scheduled_billing(self, schedule_id: UUID) -> ScheduledBilling | None:
        model = self._session.get(ScheduledBillingModel, schedule_id)
        return model.to_dto() if model else None

    def add_scheduled_billing(self, schedule: ScheduledBilling, actor_id: UUID) -> ScheduledBilling:
        model = ScheduledBillingModel.from_dto(schedule, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def update_scheduled_billing(self, schedule: ScheduledBilling, actor_id: UUID) -> ScheduledBilling:
        model = self._require(ScheduledBillingModel, schedule.id)
        model.apply_dto(schedule)
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def list_scheduled_billings(self, status: ScheduleStatus | None = None) -> list[ScheduledBilling]:
        stmt = select(ScheduledBillingModel)
        if status is not None:
            stmt = stmt.where(ScheduledBillingModel.status == status.value)
        rows = self._session.execute(stmt.order_by(ScheduledBillingModel.created_at)).scalars().all()
        return [row.to_dto() for row in rows]

    def list_due_schedules(
        self, as_of: datetime, day_of_month: int, include_later_days: bool
    ) -> list[ScheduledBilling]:
        """ACTIVE schedules anchored on ``day_of_month`` whose window contains ``as_of``.

        ``include_later_days`` is set on the last day of a month so that
        anchors past the month's length (31 in April) still bill.
        """
        # Month end: a 29-31 anchor clamps to today, so it matches alongside the exact day.
        day_filter = (
            ScheduledBillingModel.billing_day_of_month >= day_of_month
            if include_later_days
            else ScheduledBillingModel.billing_day_of_month == day_of_month
        )
        rows = self._session.execute(
            select(ScheduledBillingModel)
            .where(
                ScheduledBillingModel.status == ScheduleStatus.ACTIVE.value,
                day_filter,
                ScheduledBillingModel.start_date <= as_of,
                or_(
                    ScheduledBillingModel.end_date.is_(None),
                    ScheduledBillingModel.end_date > as_of,
                ),
            )
            .order_by(ScheduledBillingModel.created_at, ScheduledBillingModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def add_run(self, run: ScheduledBillingRun, actor_id: UUID) -> ScheduledBillingRun:
        model = ScheduledBillingRunModel.from_dto(run, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list_runs(
        self,
        schedule_id: UUID,
        status: RunStatus | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[ScheduledBillingRun]:
        conditions = [ScheduledBillingRunModel.scheduled_billing_id == schedule_id]
        if status is not None:
            conditions.append(ScheduledBillingRunModel.status == status.value)
        if since is not None:
            conditions.append(ScheduledBillingRunModel.run_date >= since)
        if until is not None:
            conditions.append(ScheduledBillingRunModel.run_date < until)
        rows = self._session.execute(
            select(ScheduledBillingRunModel)
            .where(and_(*conditions))
            .order_by(ScheduledBillingRunModel.run_date)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        model = self._session.get(InvoiceModel, invoice_id)
        return model.to_dto() if model else None

    def add_invoice(self, invoice: Invoice, actor_id: UUID) -> Invoice:
        model = InvoiceModel.from_dto(invoice, actor_id)
        try:
            with self._session.begin_nested():
                self._session.add(model)
                self._session.flush()
        except IntegrityError as exc:
            self._raise_if_period_conflict(exc, invoice)
            raise
        return model.to_dto()

    def update_invoice(self, invoice: Invoice, actor_id: UUID) -> Invoice:
        model = self._require(InvoiceModel, invoice.id)
        try:
            with self._session.begin_nested():
                model.apply_dto(invoice)
                model.updated_by_id = actor_id
                self._session.flush()
        except IntegrityError as exc:
            self._raise_if_period_conflict(exc, invoice)
            raise
        return model.to_dto()

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        contract_id: UUID | None = None,
        scheduled_billing_id: UUID | None = None,
    ) -> list[Invoice]:
        stmt = select(InvoiceModel)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == status.value)
        if contract_id is not None:
            stmt = stmt.where(InvoiceModel.contract_id == contract_id)
        if scheduled_billing_id is not None:
            stmt = stmt.where(InvoiceModel.scheduled_billing_id == scheduled_billing_id)
        rows = self._session.execute(stmt.order_by(InvoiceModel.billing_no)).scalars().all()
        return [row.to_dto() for row in rows]

    def has_live_contract_invoice(self, contract_id: UUID, since: datetime, until: datetime) -> bool:
        row = self._session.execute(
            select(InvoiceModel.id)
            .where(
                InvoiceModel.contract_id == contract_id,
                InvoiceModel.statement_date >= since,
                InvoiceModel.statement_date < until,
                InvoiceModel.status.not_in([s.value for s in NON_BLOCKING_STATUSES]),
            )
            .limit(1)
        ).first()
        return row is not None

    # -------------------------------------------------------------------------
    # Email and follow-up logs
    # -------------------------------------------------------------------------

    def add_email_log(self, log: EmailLog, actor_id: UUID) -> EmailLog:
        model = EmailLogModel.from_dto(log, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def update_email_log(self, log: EmailLog, actor_id: UUID) -> EmailLog:
        model = self._require(EmailLogModel, log.id)
        model.status = log.status.value
        model.message_id = log.message_id
        model.error = log.error
        model.sent_at = log.sent_at
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def list_email_logs(self, invoice_id: UUID) -> list[EmailLog]:
        rows = self._session.execute(
            select(EmailLogModel)
            .where(EmailLogModel.invoice_id == invoice_id)
            .order_by(EmailLogModel.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def add_follow_up_log(self, log: FollowUpLog, actor_id: UUID) -> FollowUpLog:
        model = FollowUpLogModel.from_dto(log, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def update_follow_up_log(self, log: FollowUpLog, actor_id: UUID) -> FollowUpLog:
        model = self._require(FollowUpLogModel, log.id)
        model.apply_dto(log)
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def list_follow_up_logs(self, invoice_id: UUID) -> list[FollowUpLog]:
        rows = self._session.execute(
            select(FollowUpLogModel)
            .where(FollowUpLogModel.invoice_id == invoice_id)
            .order_by(FollowUpLogModel.level, FollowUpLogModel.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    # -------------------------------------------------------------------------
    # Templates, notifications, audit, settings
    # -------------------------------------------------------------------------

    def add_email_template(self, template: EmailTemplate, actor_id: UUID) -> EmailTemplate:
        model = EmailTemplateModel.from_dto(template, actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def find_email_template(
        self, template_type: TemplateType, level: int | None, billing_entity_id: UUID | None
    ) -> EmailTemplate | None:
        stmt = select(EmailTemplateModel).where(
            EmailTemplateModel.template_type == template_type.value,
            EmailTemplateModel.is_active.is_(True),
        )
        if level is None:
            stmt = stmt.where(EmailTemplateModel.follow_up_level.is_(None))
        else:
            stmt = stmt.where(EmailTemplateModel.follow_up_level == level)
        if billing_entity_id is None:
            stmt = stmt.where(EmailTemplateModel.billing_entity_id.is_(None))
        else:
            stmt = stmt.where(EmailTemplateModel.billing_entity_id == billing_entity_id)
        model = self._session.execute(
            stmt.order_by(EmailTemplateModel.created_at).limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def add_notification(self, notification: Notification) -> Notification:
        model = NotificationModel.from_dto(notification)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list_notifications(
        self, type: NotificationType | None = None, entity_id: UUID | None = None
    ) -> list[Notification]:
        stmt = select(NotificationModel)
        if type is not None:
            stmt = stmt.where(NotificationModel.type == type.value)
        if entity_id is not None:
            stmt = stmt.where(NotificationModel.entity_id == entity_id)
        rows = self._session.execute(stmt.order_by(NotificationModel.created_at)).scalars().all()
        return [row.to_dto() for row in rows]

    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        model = AuditLogModel.from_dto(entry)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list_audit_entries(
        self, entity_id: UUID | None = None, action: AuditAction | None = None
    ) -> list[AuditEntry]:
        stmt = select(AuditLogModel)
        if entity_id is not None:
            stmt = stmt.where(AuditLogModel.entity_id == entity_id)
        if action is not None:
            stmt = stmt.where(AuditLogModel.action == action.value)
        rows = self._session.execute(stmt.order_by(AuditLogModel.occurred_at)).scalars().all()
        return [row.to_dto() for row in rows]

    def list_settings(self) -> dict[str, Any]:
        rows = self._session.execute(select(SettingModel)).scalars().all()
        return {row.key: row.value for row in rows}

    def upsert_setting(self, key: str, value: Any, actor_id: UUID) -> None:
        model = self._session.execute(
            select(SettingModel).where(SettingModel.key == key)
        ).scalar_one_or_none()
        if model is None:
            self._session.add(SettingModel(key=key, value=value, created_by_id=actor_id))
        else:
            model.value = value
            model.updated_by_id = actor_id
        self._session.flush()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _require(self, model_cls, row_id: UUID):
        model = self._session.get(model_cls, row_id)
        if model is None:
            raise LookupError(f"{model_cls.__tablename__} row {row_id} not found")
        return model

    @staticmethod
    def _raise_if_period_conflict(exc: IntegrityError, invoice: Invoice) -> None:
        if "period_lock" in str(exc.orig) and invoice.scheduled_billing_id is not None:
            logger.warning(
                "duplicate_period_invoice_blocked",
                extra={
                    "scheduled_billing_id": str(invoice.scheduled_billing_id),
                    "period_key": invoice.period_key,
                },
            )
            raise DuplicatePeriodInvoiceError(
                str(invoice.scheduled_billing_id), invoice.period_key or ""
            ) from exc
