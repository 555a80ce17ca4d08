"""
Criação de Ordem de Serviço.

Sequência (sempre nesta ordem): cliente -> vínculo com a oficina -> veículo
-> ordem -> detalhe. Cada passo é gravado separadamente; se um passo falha,
os anteriores continuam no banco. O hook `compensate` do WriteSaga é o
ponto para desfazer passos no futuro; hoje só registra no log.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from taskboard.errors import ValidationFailure, WorkflowResult, WriteFailure
from taskboard.models import RepairOrder, RepairOrderDetail, RepairOrderStatus, WorkOrderSubmission, utc_now
from taskboard.resolver import Resolution, resolve_entities
from taskboard.store import PlannedWrite, WorkshopStore

logger = logging.getLogger(__name__)

Compensation = Callable[[List[PlannedWrite], WriteFailure], None]


def log_only(completed: List[PlannedWrite], error: WriteFailure) -> None:
    logger.error(
        "%s; %d earlier write(s) left in place: %s",
        error, len(completed), ", ".join(w.label for w in completed) or "none",
    )


class WriteSaga:
    """Executa escritas planejadas em ordem estrita, parando na primeira falha."""

    def __init__(self, writes: List[PlannedWrite], compensate: Optional[Compensation] = None):
        self.writes = list(writes)
        self.compensate = compensate or log_only
        self.completed: List[PlannedWrite] = []

    def run(self, store: WorkshopStore) -> List[PlannedWrite]:
        for write in self.writes:
            try:
                store.apply(write)
            except WriteFailure as e:
                error = WriteFailure(write.label, e.cause, [w.label for w in self.completed])
                self.compensate(list(self.completed), error)
                raise error from e
            self.completed.append(write)
        return self.completed


def plan_work_order(
    resolution: Resolution,
    shop_id: str,
    submission: WorkOrderSubmission,
    now: Optional[datetime] = None,
) -> List[PlannedWrite]:
    """Inserções da ordem (status "Pending") e da sua linha de detalhe."""
    now = now or utc_now()
    order = RepairOrder(
        shop_id=shop_id,
        customer_id=resolution.customer_id,
        vehicle_id=resolution.vehicle_id,
        status=RepairOrderStatus.PENDING.value,
        created_at=now,
    )
    detail = RepairOrderDetail(
        repair_order_id=order.id,
        description=submission.task_name,
        labour=submission.labour,
        parts=submission.parts,
        notes=submission.notes,
        cost=submission.total_amount,
        mileage=submission.mileage,
        task_priority=submission.priority,
        mechanic_id=submission.assigned_to or None,
        created_at=now,
    )
    return [PlannedWrite.insert(order), PlannedWrite.insert(detail)]


def create_work_order(
    store: WorkshopStore,
    shop_id: str,
    submission: WorkOrderSubmission,
    compensate: Optional[Compensation] = None,
) -> WorkflowResult:
    """Fluxo completo de criação. Nunca levanta exceção para falhas esperadas."""
    try:
        customer = first_vehicle = None
        if not submission.is_new_customer:
            customer = store.shop_customer(shop_id, submission.customer_id)
            if customer is not None:
                first_vehicle = store.first_vehicle(customer.id)
        resolution = resolve_entities(submission, shop_id, first_vehicle, customer)
        writes = resolution.writes + plan_work_order(resolution, shop_id, submission)
        saga = WriteSaga(writes, compensate)
        completed = saga.run(store)
    except ValidationFailure as e:
        logger.info("Work order rejected (%s): %s", e.code, e.message)
        return WorkflowResult.from_error(e)
    except WriteFailure as e:
        logger.error("Error creating work order: %s", e)
        return WorkflowResult.from_error(e)

    order_id = writes[-2].row_id
    logger.info("Work order %s created for customer %s", order_id, resolution.customer_id)
    return WorkflowResult.success(
        value={"id": order_id, "customer_id": resolution.customer_id, "vehicle_id": resolution.vehicle_id},
        message="Work Order successfully created!",
        completed=[w.label for w in completed],
    )
