"""Unit tests for order entity transitions (tagged union)."""

from datetime import datetime, timedelta, timezone

import pytest

from taxidispatch.domain.entities import (
    DriverSnapshot,
    InProgressOrder,
    PendingOrder,
    TerminalOrder,
    archive_path,
    pick_push_token,
    unit_is_active,
)
from taxidispatch.domain.enums import ORDER_TRANSITIONS, TERMINAL_STATUSES, OrderStatus
from taxidispatch.domain.exceptions import InvalidStateTransition

LOCAL = timezone(timedelta(hours=-5))
AT = datetime(2026, 10, 19, 23, 50, tzinfo=LOCAL)
DRIVER = DriverSnapshot(unit="12", name="Carlos", plate="PBA-1234")


def _pending(**overrides) -> PendingOrder:
    data = dict(id="ord1", client_phone="0991234567", address="Av. Quito 100")
    data.update(overrides)
    return PendingOrder(**data)


class TestOrderStateMachine:
    def test_pending_status(self):
        assert _pending().status == OrderStatus.PENDING

    # ── Valid transitions ─────────────────────────────────────────

    def test_pending_to_in_progress_carries_driver(self):
        order = _pending().assign(DRIVER, 7, AT)
        assert isinstance(order, InProgressOrder)
        assert order.status == OrderStatus.IN_PROGRESS
        assert order.driver == DRIVER
        assert order.eta_minutes == 7
        assert order.id == "ord1"
        assert order.address == "Av. Quito 100"

    @pytest.mark.parametrize(
        "kind", [OrderStatus.CANCELLED_UNASSIGNED, OrderStatus.NO_UNIT_AVAILABLE]
    )
    def test_pending_to_terminal(self, kind):
        terminal = _pending().terminate(kind, reason="r", closed_by="op", at=AT)
        assert terminal.status == kind
        assert terminal.driver is None

    @pytest.mark.parametrize(
        "kind",
        [
            OrderStatus.CANCELLED_BY_CLIENT,
            OrderStatus.CANCELLED_BY_UNIT,
            OrderStatus.FINALIZED_PLAIN,
            OrderStatus.FINALIZED_VOUCHER,
        ],
    )
    def test_in_progress_to_terminal(self, kind):
        order = _pending().assign(DRIVER, 5, AT)
        terminal = order.terminate(kind, reason="", closed_by="op", at=AT)
        assert terminal.kind == kind
        assert terminal.driver == DRIVER

    # ── Invalid transitions ───────────────────────────────────────

    def test_pending_cannot_finalize(self):
        with pytest.raises(InvalidStateTransition):
            _pending().terminate(
                OrderStatus.FINALIZED_PLAIN, reason="", closed_by="op", at=AT
            )

    def test_in_progress_cannot_be_cancelled_unassigned(self):
        order = _pending().assign(DRIVER, 5, AT)
        with pytest.raises(InvalidStateTransition):
            order.terminate(
                OrderStatus.CANCELLED_UNASSIGNED, reason="", closed_by="op", at=AT
            )

    def test_terminal_kind_must_be_terminal(self):
        with pytest.raises(InvalidStateTransition):
            TerminalOrder(id="x", kind=OrderStatus.PENDING, closed_at=AT)

    def test_terminal_states_have_no_outgoing_transitions(self):
        for status in TERMINAL_STATUSES:
            assert ORDER_TRANSITIONS[status] == set()

    def test_every_status_has_a_transition_entry(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)


class TestTerminalOrder:
    def test_archive_partition_uses_local_date(self):
        terminal = _pending().terminate(
            OrderStatus.NO_UNIT_AVAILABLE, reason="", closed_by="op", at=AT
        )
        # 23:50 local is already the next day in UTC
        assert terminal.archive_date == "19-10-2026"
        assert terminal.archive_path == "archive/19-10-2026/orders/ord1"

    @pytest.mark.parametrize(
        "kind, color",
        [
            (OrderStatus.FINALIZED_PLAIN, "#10b981"),
            (OrderStatus.FINALIZED_VOUCHER, "#3b82f6"),
            (OrderStatus.CANCELLED_BY_CLIENT, "#ef4444"),
            (OrderStatus.CANCELLED_BY_UNIT, "#f97316"),
            (OrderStatus.CANCELLED_UNASSIGNED, "#6b7280"),
            (OrderStatus.NO_UNIT_AVAILABLE, "#eab308"),
        ],
    )
    def test_colors(self, kind, color):
        terminal = TerminalOrder(id="x", kind=kind, closed_at=AT)
        assert terminal.color == color

    def test_record_is_json_friendly(self):
        terminal = (
            _pending(empresa="Corporación Andina", authorization_number=201)
            .assign(DRIVER, 5, AT)
            .terminate(OrderStatus.FINALIZED_PLAIN, reason="ok", closed_by="op", at=AT)
        )
        record = terminal.to_record()
        assert record["status"] == "FINALIZED_PLAIN"
        assert record["kind"] == "FINALIZED_PLAIN"
        assert record["color"] == "#10b981"
        assert record["closed_at"] == AT.isoformat()
        assert record["driver"]["unit"] == "12"
        assert record["authorization_number"] == 201

    def test_archive_path_helper(self):
        assert archive_path("01-02-2026", "abc") == "archive/01-02-2026/orders/abc"


class TestCorporate:
    def test_cash_is_not_corporate(self):
        assert not _pending().is_corporate

    def test_named_empresa_is_corporate(self):
        assert _pending(empresa="Clínica Kennedy").is_corporate

    def test_blank_empresa_is_not_corporate(self):
        assert not _pending(empresa="").is_corporate


class TestDriverHelpers:
    @pytest.mark.parametrize("value", [True, "true", "1", "activo", 1])
    def test_active_values(self, value):
        assert unit_is_active(value)

    @pytest.mark.parametrize("value", [False, None, "", "false", "0", "No", 0])
    def test_inactive_values(self, value):
        assert not unit_is_active(value)

    def test_short_tokens_are_skipped(self):
        assert pick_push_token(["abc", "x" * 100, "y" * 150], 100) == "x" * 100

    def test_no_valid_token(self):
        assert pick_push_token([None, "", "short"], 100) is None
