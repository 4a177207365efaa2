# =======================================================================================
# campus_access/utils/validators.py - Validation Helpers
# =======================================================================================
from typing import Any, Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.engine import Connection

from .exceptions import InvalidQuantityError, UnknownFacilityError
from ..models.tables import facility_config


class FacilityValidator:
    """Validates facility codes against the static facility configuration."""

    @staticmethod
    def normalize(facility_id: str) -> str:
        """Readers and clients send facility codes in any case."""
        return (facility_id or "").strip().upper()

    @staticmethod
    def get_facility(conn: Connection, facility_id: str) -> Dict[str, Any]:
        """Get and validate facility configuration."""
        row = conn.execute(
            select(facility_config).where(facility_config.c.facility_id == facility_id)
        ).mappings().first()

        if not row:
            raise UnknownFacilityError(f"Unknown facility: {facility_id}")

        return dict(row)


class QuantityValidator:
    """Validates issue and return lines before any row is touched."""

    @staticmethod
    def merge_issue_lines(lines: Iterable[Any]) -> List[Dict[str, int]]:
        """
        Collapse repeated equipment ids into a single line and reject qty <= 0.
        Lines are returned sorted by equipment_id, which is also the lock order.
        """
        merged: Dict[int, int] = {}
        for line in lines:
            qty = line.qty
            if not isinstance(qty, int) or qty <= 0:
                raise InvalidQuantityError("Each item must have equipment_id and qty > 0")
            merged[line.equipment_id] = merged.get(line.equipment_id, 0) + qty

        if not merged:
            raise InvalidQuantityError("At least one item is required")

        return [{"equipment_id": eid, "qty": merged[eid]} for eid in sorted(merged)]

    @staticmethod
    def check_return_line(line: Any) -> None:
        if not isinstance(line.qty, int) or line.qty < 0:
            raise InvalidQuantityError("Return quantity cannot be negative")
        if not line.item_id and not line.equipment_type:
            raise InvalidQuantityError("Each return must have item_id or equipment_type")
