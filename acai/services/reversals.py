from __future__ import annotations

from dataclasses import dataclass, field

from acai.db import transaction, x
from acai.logs import get_logger
from acai.services.containers import credit, find_container
from acai.services.sales import get_sale

_log = get_logger(__name__)


@dataclass
class ReversalResult:
    sale_id: int
    per_container_ml: float
    restored_container_ids: list[int] = field(default_factory=list)
    skipped_container_ids: list[int] = field(default_factory=list)


def reverse_sale(conn, sale_id: int) -> ReversalResult:
    """
    Delete a sale and give its volume back to the potes it drew from.

    The per-pote share is recomputed from what the sale recorded
    (ml_consumed / number of potes), never from current pote state. Potes that
    were deleted since the sale are skipped so the sale stays deletable.
    """
    sale = get_sale(conn, sale_id)
    per_container_ml = sale.per_container_ml
    result = ReversalResult(sale_id=sale.id, per_container_ml=per_container_ml)

    with transaction(conn):
        for cid in sale.container_ids:
            if find_container(conn, cid) is None:
                _log.warning("Sale #%s: pote #%s no longer exists, skipping restore", sale.id, cid)
                result.skipped_container_ids.append(cid)
                continue
            credit(conn, cid, per_container_ml, commit=False)
            result.restored_container_ids.append(cid)

        # sale_containers rows go with it (ON DELETE CASCADE)
        x(conn, "DELETE FROM sales WHERE id=?", (sale.id,), commit=False)

    _log.info(
        "Reversed sale #%s: restored %.2f ml to %s pote(s), skipped %s",
        sale.id,
        per_container_ml,
        len(result.restored_container_ids),
        len(result.skipped_container_ids),
    )
    return result
