"""
Edição vinda da tela de detalhes e mudança de status pelo quadro.
Só atualiza linhas existentes (por id); nunca cria linhas novas.
"""
import logging
from typing import Dict, List, Optional, Tuple

from taskboard.errors import WorkflowResult, WriteFailure
from taskboard.models import (
    VEHICLE_FIELDS,
    Customer,
    CustomerVehicle,
    RepairOrder,
    RepairOrderDetail,
    RepairOrderRead,
)
from taskboard.projector import TaskItem, find_task, move_task
from taskboard.status import LOCAL_STATUSES, normalize_status, to_persisted
from taskboard.store import PlannedWrite, WorkshopStore
from taskboard.writer import WriteSaga

logger = logging.getLogger(__name__)

DETAIL_FIELDS = ("labour", "parts", "notes", "cost", "mileage", "task_priority", "description")


def _row_id(edited_row, stored_row) -> Optional[str]:
    # Parte ausente na edição não gera update
    if edited_row is None:
        return None
    return stored_row.id if stored_row is not None else None


def plan_detail_edit(edited: RepairOrderRead, stored: Optional[RepairOrderRead] = None) -> List[PlannedWrite]:
    """
    Updates da edição, na ordem: ordem, detalhe, cliente, veículo.
    Com `stored` (a ordem já carregada e filtrada pela oficina) os ids das
    linhas aninhadas vêm dele e a edição só fornece os valores. Status
    ausente mantém o que está gravado.
    """
    status = edited.status or (stored.status if stored is not None else None)
    writes = [PlannedWrite.update(RepairOrder, edited.id, {"status": normalize_status(status)})]

    detail = edited.first_detail
    detail_id = _row_id(detail, stored.first_detail) if stored is not None else (detail.id if detail else None)
    if detail_id:
        writes.append(
            PlannedWrite.update(RepairOrderDetail, detail_id, {f: getattr(detail, f) for f in DETAIL_FIELDS})
        )

    customer = edited.customers
    customer_id = _row_id(customer, stored.customers) if stored is not None else (customer.id if customer else None)
    if customer_id:
        writes.append(PlannedWrite.update(Customer, customer_id, {"customer_name": customer.customer_name}))

    vehicle = edited.first_vehicle
    vehicle_id = _row_id(vehicle, stored.first_vehicle) if stored is not None else (vehicle.id if vehicle else None)
    if vehicle_id:
        writes.append(
            PlannedWrite.update(CustomerVehicle, vehicle_id, {f: getattr(vehicle, f) for f in VEHICLE_FIELDS})
        )
    return writes


def apply_detail_edit(
    store: WorkshopStore,
    edited: RepairOrderRead,
    stored: Optional[RepairOrderRead] = None,
) -> WorkflowResult:
    saga = WriteSaga(plan_detail_edit(edited, stored))
    try:
        completed = saga.run(store)
    except WriteFailure as e:
        logger.error("Error saving task changes for %s: %s", edited.id, e)
        return WorkflowResult.from_error(e)
    return WorkflowResult.success(value={"id": edited.id}, completed=[w.label for w in completed])


def update_status(store: WorkshopStore, order_id: str, local_status: str) -> WorkflowResult:
    write = PlannedWrite.update(RepairOrder, order_id, {"status": to_persisted(local_status)})
    try:
        store.apply(write)
    except WriteFailure as e:
        logger.error("Error updating task status for %s: %s", order_id, e)
        return WorkflowResult.from_error(e)
    return WorkflowResult.success(value={"id": order_id, "status": write.values["status"]}, completed=[write.label])


def change_status(
    store: WorkshopStore,
    board: Dict[str, List[TaskItem]],
    task_id: str,
    to_column: str,
) -> Tuple[Dict[str, List[TaskItem]], Optional[WorkflowResult]]:
    """
    Move a tarefa no quadro antes de gravar. Se a gravação falhar o quadro
    continua com a tarefa movida; a falha fica no log e no resultado.
    """
    item = find_task(board, task_id)
    moved = move_task(board, task_id, to_column)
    if item is None or to_column not in LOCAL_STATUSES or item.local_status == to_column:
        return moved, None
    return moved, update_status(store, task_id, to_column)
