"""Tests for command authorization and routing."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

import pytest

from auction_settlement.domain import lifecycle
from auction_settlement.domain.commands import (
    COMMAND_PERMISSIONS,
    ApproveFees,
    ConfirmDelivery,
    MarkShipped,
    SaveFeeDraft,
    SubmitFeesForApproval,
    authorize,
    commands_for,
)
from auction_settlement.domain.enums import ActorRole, CommandType, FeesStatus
from auction_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    PermissionDeniedError,
)
from auction_settlement.domain.invoice import Invoice


class TestPermissions:
    def test_every_command_has_one_owner(self) -> None:
        assert set(COMMAND_PERMISSIONS) == set(CommandType)
        assert all(len(roles) == 1 for roles in COMMAND_PERMISSIONS.values())

    def test_buyer_commands(self) -> None:
        assert set(commands_for(ActorRole.BUYER)) == {
            CommandType.APPROVE_FEES,
            CommandType.REJECT_FEES,
            CommandType.CONFIRM_DELIVERY,
            CommandType.ATTACH_SHIPPING_DOCUMENTS,
        }

    def test_seller_cannot_approve(self, pending_fees_invoice: Invoice) -> None:
        with pytest.raises(PermissionDeniedError) as exc_info:
            authorize(pending_fees_invoice, ApproveFees(), "seller-1", ActorRole.SELLER)
        assert exc_info.value.code == "PERMISSION_DENIED"

    def test_buyer_cannot_ship(self, paid_invoice: Invoice) -> None:
        with pytest.raises(PermissionDeniedError):
            authorize(paid_invoice, MarkShipped(carrier="XPO"), "buyer-1", ActorRole.BUYER)

    def test_stranger_with_right_role(self, pending_fees_invoice: Invoice) -> None:
        with pytest.raises(PermissionDeniedError, match="not the buyer"):
            authorize(pending_fees_invoice, ApproveFees(), "buyer-2", ActorRole.BUYER)


class TestExecute:
    def test_routes_and_recomputes(self, invoice: Invoice, now: datetime) -> None:
        events = lifecycle.execute(
            invoice,
            SaveFeeDraft(packaging_amount=Decimal("200"), shipping_amount=Decimal("800")),
            "seller-1",
            ActorRole.SELLER,
            now,
        )
        assert len(events) == 1
        assert invoice.total_amount == Decimal("11500.00")

    def test_denied_command_changes_nothing(self, pending_fees_invoice: Invoice, now: datetime) -> None:
        before = copy.deepcopy(pending_fees_invoice)
        with pytest.raises(PermissionDeniedError):
            lifecycle.execute(pending_fees_invoice, ApproveFees(), "seller-1", ActorRole.SELLER, now)
        assert pending_fees_invoice == before

    def test_unknown_command_type(self, invoice: Invoice, now: datetime) -> None:
        @dataclass(frozen=True)
        class Refund:
            command_type: ClassVar[CommandType] = CommandType.APPROVE_FEES

        with pytest.raises(TypeError, match="Unsupported command"):
            lifecycle.execute(invoice, Refund(), "buyer-1", ActorRole.BUYER, now)


class TestAvailableCommands:
    def test_fresh_invoice(self, invoice: Invoice) -> None:
        assert lifecycle.available_commands(invoice, ActorRole.SELLER) == [
            CommandType.SAVE_FEE_DRAFT
        ]
        assert lifecycle.available_commands(invoice, ActorRole.BUYER) == []

    def test_draft_can_be_submitted(self, invoice: Invoice, now: datetime) -> None:
        lifecycle.execute(
            invoice, SaveFeeDraft(shipping_amount=Decimal("5")), "seller-1", ActorRole.SELLER, now
        )
        assert CommandType.SUBMIT_FEES_FOR_APPROVAL in lifecycle.available_commands(
            invoice, ActorRole.SELLER
        )

    def test_pending_fees(self, pending_fees_invoice: Invoice) -> None:
        assert set(lifecycle.available_commands(pending_fees_invoice, ActorRole.BUYER)) == {
            CommandType.APPROVE_FEES,
            CommandType.REJECT_FEES,
        }
        assert lifecycle.available_commands(pending_fees_invoice, ActorRole.SELLER) == [
            CommandType.SAVE_FEE_DRAFT
        ]

    def test_paid(self, paid_invoice: Invoice) -> None:
        assert lifecycle.available_commands(paid_invoice, ActorRole.SELLER) == [
            CommandType.MARK_SHIPPED
        ]

    def test_shipped(self, shipped_invoice: Invoice) -> None:
        assert set(lifecycle.available_commands(shipped_invoice, ActorRole.SELLER)) == {
            CommandType.UPDATE_FREIGHT_DETAILS,
            CommandType.MARK_DELIVERED,
        }
        assert set(lifecycle.available_commands(shipped_invoice, ActorRole.BUYER)) == {
            CommandType.CONFIRM_DELIVERY,
            CommandType.ATTACH_SHIPPING_DOCUMENTS,
        }

    def test_confirmed(self, shipped_invoice: Invoice, now: datetime) -> None:
        lifecycle.execute(shipped_invoice, ConfirmDelivery(), "buyer-1", ActorRole.BUYER, now)
        assert lifecycle.available_commands(shipped_invoice, ActorRole.BUYER) == [
            CommandType.ATTACH_SHIPPING_DOCUMENTS
        ]
        assert lifecycle.available_commands(shipped_invoice, ActorRole.SELLER) == []

    def test_approved_fees_cannot_be_resubmitted(
        self, pending_fees_invoice: Invoice, now: datetime
    ) -> None:
        lifecycle.execute(pending_fees_invoice, ApproveFees(), "buyer-1", ActorRole.BUYER, now)
        assert pending_fees_invoice.fees_status is FeesStatus.APPROVED
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.execute(
                pending_fees_invoice, SubmitFeesForApproval(), "seller-1", ActorRole.SELLER, now
            )
