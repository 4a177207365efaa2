# =======================================================================================
# campus_access/services/equipment_custody.py - Equipment Custody State Machine
# =======================================================================================
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection

from ..models.enums import OPEN_ISSUE_STATUSES, IssueStatus
from ..models.schemas import (
    DeskDecision,
    HistoryIssue,
    HistoryItem,
    InventoryItem,
    IssuedItem,
    IssueLine,
    IssueResult,
    MissingEquipmentItem,
    OutstandingItem,
    ReturnedItem,
    ReturnLine,
    ReturnResult,
    StudentHistoryResponse,
    StudentInfo,
)
from ..models.tables import (
    equipment,
    equipment_issue_items,
    equipment_issues,
    facility_equipment,
    students,
)
from ..utils.exceptions import (
    AlreadyClosedError,
    EquipmentNotFoundError,
    InsufficientStockError,
    IssueNotFoundError,
    ItemNotFoundError,
    LoanAlreadyOpenError,
    ReturnExceedsIssuedError,
    StudentNotFoundError,
)
from ..utils.validators import QuantityValidator
from .identity_service import IdentityResolver

logger = logging.getLogger(__name__)


def item_status(issued_qty: int, returned_qty: int) -> str:
    """Status of one line item, derived from its quantities."""
    if returned_qty >= issued_qty:
        return IssueStatus.RETURNED.value
    if returned_qty > 0:
        return IssueStatus.PARTIAL_RETURN.value
    return IssueStatus.ISSUED.value


def issue_status(items: Sequence[Dict[str, int]]) -> str:
    """Status of an issue after a return: RETURNED only when every line is fully back."""
    if all(i["returned_qty"] >= i["issued_qty"] for i in items):
        return IssueStatus.RETURNED.value
    return IssueStatus.PARTIAL_RETURN.value


class EquipmentCustodyStateMachine:
    """
    Issue / partial return / return at the equipment desk.

    Sole writer of equipment_issues, equipment_issue_items and facility_equipment.
    Failures are raised as CustodyError subclasses from inside the caller's
    transaction so that nothing written before the failure survives.
    Lock order: student row, issue row, issue items, inventory rows by equipment_id.
    """

    def __init__(self, desk_facility_id: str):
        self.desk_facility_id = desk_facility_id
        self.identity = IdentityResolver()

    # ----------------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------------
    @staticmethod
    def open_issue(conn: Connection, student_id: str, lock: bool = False) -> Optional[Dict[str, Any]]:
        query = (
            select(equipment_issues)
            .where(
                equipment_issues.c.student_id == student_id,
                equipment_issues.c.status.in_(OPEN_ISSUE_STATUSES),
            )
            .order_by(equipment_issues.c.issued_at.desc())
            .limit(1)
        )
        if lock:
            query = query.with_for_update()
        row = conn.execute(query).mappings().first()
        return dict(row) if row else None

    @staticmethod
    def issue_items(conn: Connection, issue_id: str, lock: bool = False) -> List[Dict[str, Any]]:
        query = (
            select(equipment_issue_items)
            .where(equipment_issue_items.c.issue_id == issue_id)
            .order_by(equipment_issue_items.c.equipment_type, equipment_issue_items.c.item_id)
        )
        if lock:
            query = query.with_for_update()
        return [dict(r) for r in conn.execute(query).mappings().all()]

    def available_equipment(self, conn: Connection, in_stock_only: bool = False) -> List[InventoryItem]:
        """Desk inventory with display names."""
        query = (
            select(
                facility_equipment.c.equipment_id,
                equipment.c.name,
                equipment.c.category,
                facility_equipment.c.available_quantity,
                facility_equipment.c.total_quantity,
            )
            .select_from(
                facility_equipment.join(
                    equipment, facility_equipment.c.equipment_id == equipment.c.equipment_id
                )
            )
            .where(facility_equipment.c.facility_id == self.desk_facility_id)
            .order_by(facility_equipment.c.equipment_id)
        )
        if in_stock_only:
            query = query.where(facility_equipment.c.available_quantity > 0)

        return [
            InventoryItem(
                equipment_id=r["equipment_id"],
                equipment_name=r["name"],
                equipment_type=r["category"] or r["name"],
                available_quantity=r["available_quantity"],
                total_quantity=r["total_quantity"],
            )
            for r in conn.execute(query).mappings().all()
        ]

    def _lock_inventory(self, conn: Connection, equipment_ids: Sequence[int]) -> Dict[int, Dict[str, Any]]:
        """Lock desk inventory rows in equipment_id order and return them keyed by id."""
        if not equipment_ids:
            return {}
        rows = conn.execute(
            select(facility_equipment)
            .where(
                facility_equipment.c.facility_id == self.desk_facility_id,
                facility_equipment.c.equipment_id.in_(sorted(set(equipment_ids))),
            )
            .order_by(facility_equipment.c.equipment_id)
            .with_for_update()
        ).mappings().all()
        return {r["equipment_id"]: dict(r) for r in rows}

    # ----------------------------------------------------------------------
    # Desk scan (advisory, no writes)
    # ----------------------------------------------------------------------
    def scan_at_desk(self, conn: Connection, student: StudentInfo) -> DeskDecision:
        """Tell the operator which flow comes next for this student."""
        pending = self.open_issue(conn, student.student_id)
        if pending:
            items = [
                OutstandingItem(
                    item_id=i["item_id"],
                    equipment_id=i["equipment_id"],
                    equipment_type=i["equipment_type"],
                    issued_qty=i["issued_qty"],
                    returned_qty=i["returned_qty"] or 0,
                    pending_qty=i["issued_qty"] - (i["returned_qty"] or 0),
                    status=i["status"],
                )
                for i in self.issue_items(conn, pending["issue_id"])
            ]
            return DeskDecision(
                mode="RETURN",
                student=student,
                facility=self.desk_facility_id,
                issue_id=pending["issue_id"],
                issued_at=pending["issued_at"],
                items=items,
            )

        return DeskDecision(
            mode="ISSUE",
            student=student,
            facility=self.desk_facility_id,
            available_equipment=self.available_equipment(conn, in_stock_only=True),
        )

    # ----------------------------------------------------------------------
    # Issue
    # ----------------------------------------------------------------------
    def issue(
        self,
        conn: Connection,
        student_id: str,
        assistant_id: str,
        items: Sequence[IssueLine],
        now: datetime,
    ) -> IssueResult:
        """Open a loan: create the issue and its lines and take the units out of stock."""
        lines = QuantityValidator.merge_issue_lines(items)
        student = self.identity.get_student(conn, student_id)

        self.identity.lock_student(conn, student.student_id)
        existing = self.open_issue(conn, student.student_id, lock=True)
        if existing:
            raise LoanAlreadyOpenError(existing["issue_id"])

        stock = self._lock_inventory(conn, [l["equipment_id"] for l in lines])
        names = {
            r["equipment_id"]: r
            for r in conn.execute(
                select(equipment).where(equipment.c.equipment_id.in_(list(stock)))
            ).mappings().all()
        }

        for line in lines:
            row = stock.get(line["equipment_id"])
            if row is None:
                raise EquipmentNotFoundError(line["equipment_id"])
            if row["available_quantity"] < line["qty"]:
                raise InsufficientStockError(
                    names[line["equipment_id"]]["name"], row["available_quantity"], line["qty"]
                )

        issue_id = str(uuid.uuid4())
        conn.execute(
            insert(equipment_issues).values(
                issue_id=issue_id,
                uid=student.uid,
                student_id=student.student_id,
                student_name=student.student_name,
                status=IssueStatus.ISSUED.value,
                issued_at=now,
                assistant_id=str(assistant_id),
            )
        )

        issued: List[IssuedItem] = []
        for line in lines:
            eq = names[line["equipment_id"]]
            # label is resolved once here; returns go by equipment_id
            label = eq["category"] or eq["name"]
            item_id = str(uuid.uuid4())
            conn.execute(
                insert(equipment_issue_items).values(
                    item_id=item_id,
                    issue_id=issue_id,
                    equipment_id=line["equipment_id"],
                    equipment_type=label,
                    issued_qty=line["qty"],
                    returned_qty=0,
                    status=IssueStatus.ISSUED.value,
                )
            )
            conn.execute(
                update(facility_equipment)
                .where(
                    facility_equipment.c.facility_id == self.desk_facility_id,
                    facility_equipment.c.equipment_id == line["equipment_id"],
                )
                .values(available_quantity=facility_equipment.c.available_quantity - line["qty"])
            )
            issued.append(
                IssuedItem(
                    item_id=item_id,
                    equipment_id=line["equipment_id"],
                    equipment_name=eq["name"],
                    equipment_type=label,
                    qty=line["qty"],
                )
            )

        logger.info(
            "Issued %s line(s) to %s (issue %s, assistant %s)",
            len(issued), student.student_id, issue_id, assistant_id,
        )
        return IssueResult(
            action="ISSUED",
            issue_id=issue_id,
            student=student,
            assistant_id=str(assistant_id),
            items=issued,
        )

    # ----------------------------------------------------------------------
    # Return (partial or full)
    # ----------------------------------------------------------------------
    @staticmethod
    def _match_item(
        line: ReturnLine,
        by_id: Dict[str, Dict[str, Any]],
        by_type: Dict[str, List[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        if line.item_id:
            item = by_id.get(line.item_id)
        else:
            candidates = by_type.get(line.equipment_type, [])
            # several lines can share a label; prefer one that still has units out
            item = next(
                (c for c in candidates if c["issued_qty"] > c["returned_qty"]),
                candidates[0] if candidates else None,
            )
        if item is None:
            raise ItemNotFoundError(line.item_id or line.equipment_type)
        return item

    def return_items(
        self,
        conn: Connection,
        issue_id: str,
        assistant_id: str,
        returns: Sequence[ReturnLine],
        now: datetime,
    ) -> ReturnResult:
        """Take units back on an open issue; closes the issue when every line is complete."""
        for line in returns:
            QuantityValidator.check_return_line(line)

        issue = conn.execute(
            select(equipment_issues.c.student_id).where(equipment_issues.c.issue_id == issue_id)
        ).mappings().first()
        if not issue:
            raise IssueNotFoundError()

        self.identity.lock_student(conn, issue["student_id"])
        issue = dict(
            conn.execute(
                select(equipment_issues)
                .where(equipment_issues.c.issue_id == issue_id)
                .with_for_update()
            ).mappings().one()
        )
        if issue["status"] == IssueStatus.RETURNED.value:
            raise AlreadyClosedError()

        items = self.issue_items(conn, issue_id, lock=True)
        by_id = {i["item_id"]: i for i in items}
        by_type: Dict[str, List[Dict[str, Any]]] = {}
        for i in items:
            by_type.setdefault(i["equipment_type"], []).append(i)

        returned_now: Dict[str, int] = {}
        for line in returns:
            item = self._match_item(line, by_id, by_type)
            pending = item["issued_qty"] - item["returned_qty"]
            if line.qty > pending:
                raise ReturnExceedsIssuedError(item["equipment_type"], line.qty, pending)
            if line.qty == 0:
                continue
            item["returned_qty"] += line.qty
            returned_now[item["item_id"]] = returned_now.get(item["item_id"], 0) + line.qty

        restock: Dict[int, int] = {}
        for item_id, qty in returned_now.items():
            item = by_id[item_id]
            conn.execute(
                update(equipment_issue_items)
                .where(equipment_issue_items.c.item_id == item_id)
                .values(
                    returned_qty=item["returned_qty"],
                    status=item_status(item["issued_qty"], item["returned_qty"]),
                )
            )
            restock[item["equipment_id"]] = restock.get(item["equipment_id"], 0) + qty

        stock = self._lock_inventory(conn, list(restock))
        for equipment_id in sorted(restock):
            row = stock.get(equipment_id)
            if row is None:
                logger.warning(
                    "Equipment %s no longer stocked at %s; %s unit(s) not restocked",
                    equipment_id, self.desk_facility_id, restock[equipment_id],
                )
                continue
            new_available = row["available_quantity"] + restock[equipment_id]
            if new_available > row["total_quantity"]:
                logger.warning(
                    "Restock of equipment %s capped at total %s", equipment_id, row["total_quantity"]
                )
                new_available = row["total_quantity"]
            conn.execute(
                update(facility_equipment)
                .where(
                    facility_equipment.c.facility_id == self.desk_facility_id,
                    facility_equipment.c.equipment_id == equipment_id,
                )
                .values(available_quantity=new_available)
            )

        status = issue_status(items)
        returned_at = now if status == IssueStatus.RETURNED.value else None
        conn.execute(
            update(equipment_issues)
            .where(equipment_issues.c.issue_id == issue_id)
            .values(status=status, returned_at=returned_at, returned_by=str(assistant_id))
        )

        logger.info("Return on issue %s by %s -> %s", issue_id, assistant_id, status)
        return ReturnResult(
            action=status,
            issue_id=issue_id,
            student_id=issue["student_id"],
            assistant_id=str(assistant_id),
            fully_returned=status == IssueStatus.RETURNED.value,
            returned_at=returned_at,
            items=[
                ReturnedItem(
                    item_id=item_id,
                    equipment_type=by_id[item_id]["equipment_type"],
                    returned_qty=qty,
                    total_returned=by_id[item_id]["returned_qty"],
                    issued_qty=by_id[item_id]["issued_qty"],
                    missing_qty=by_id[item_id]["issued_qty"] - by_id[item_id]["returned_qty"],
                    status=item_status(by_id[item_id]["issued_qty"], by_id[item_id]["returned_qty"]),
                )
                for item_id, qty in returned_now.items()
            ],
        )

    # ----------------------------------------------------------------------
    # Reports
    # ----------------------------------------------------------------------
    def missing_report(self, conn: Connection) -> List[MissingEquipmentItem]:
        """Every unit still out on an open issue, oldest issue first."""
        rows = conn.execute(
            select(
                equipment_issues.c.student_id,
                equipment_issues.c.student_name,
                equipment_issues.c.issue_id,
                equipment_issues.c.issued_at,
                equipment_issue_items.c.equipment_type,
                equipment_issue_items.c.issued_qty,
                equipment_issue_items.c.returned_qty,
            )
            .select_from(
                equipment_issues.join(
                    equipment_issue_items,
                    equipment_issues.c.issue_id == equipment_issue_items.c.issue_id,
                )
            )
            .where(equipment_issues.c.status.in_(OPEN_ISSUE_STATUSES))
            .order_by(equipment_issues.c.issued_at, equipment_issue_items.c.equipment_type)
        ).mappings().all()

        report = []
        for r in rows:
            missing = r["issued_qty"] - (r["returned_qty"] or 0)
            if missing > 0:
                report.append(
                    MissingEquipmentItem(
                        returned_qty=r["returned_qty"] or 0, missing_qty=missing,
                        **{k: r[k] for k in (
                            "student_id", "student_name", "issue_id", "issued_at",
                            "equipment_type", "issued_qty",
                        )},
                    )
                )
        return report

    def student_history(self, conn: Connection, student_id: str) -> StudentHistoryResponse:
        """All of a student's loans, split into pending and returned."""
        student = conn.execute(
            select(students.c.student_id, students.c.student_name)
            .where(students.c.student_id == student_id)
        ).mappings().first()
        if not student:
            raise StudentNotFoundError()

        issues = conn.execute(
            select(equipment_issues)
            .where(equipment_issues.c.student_id == student_id)
            .order_by(equipment_issues.c.issued_at.desc())
        ).mappings().all()

        pending, returned = [], []
        for issue in issues:
            entry = HistoryIssue(
                issue_id=issue["issue_id"],
                status=issue["status"],
                issued_at=issue["issued_at"],
                returned_at=issue["returned_at"],
                assistant_id=issue["assistant_id"],
                items=[
                    HistoryItem(
                        equipment_type=i["equipment_type"],
                        issued_qty=i["issued_qty"],
                        returned_qty=i["returned_qty"],
                        missing=i["issued_qty"] - i["returned_qty"],
                    )
                    for i in self.issue_items(conn, issue["issue_id"])
                ],
            )
            (returned if issue["status"] == IssueStatus.RETURNED.value else pending).append(entry)

        return StudentHistoryResponse(
            student_id=student["student_id"],
            student_name=student["student_name"],
            pending=pending,
            returned=returned,
        )
