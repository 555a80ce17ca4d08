"""
Transforma as ordens (consulta aninhada) nos três formatos de tela:
quadro por status, calendário por dia e lista.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

from taskboard.models import RepairOrderRead, utc_now
from taskboard.status import DONE, IN_PROGRESS, LOCAL_STATUSES, TODO, status_color, to_display, to_persisted

UNTITLED = "Untitled"
UNKNOWN_VEHICLE = "Unknown vehicle"
UNASSIGNED = "Unassigned"


@dataclass(frozen=True)
class TaskItem:
    id: str
    title: str
    vehicle: str
    status: str
    local_status: str
    color: str
    hex: str
    created_at: datetime
    description: str = ""
    assignee: str = UNASSIGNED
    priority: str = ""
    comments: str = ""

    @property
    def date_key(self) -> str:
        return _local_date(self.created_at)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "vehicle": self.vehicle,
            "status": self.status,
            "localStatus": self.local_status,
            "color": self.color,
            "hex": self.hex,
            "date": self.created_at.isoformat(),
            "description": self.description,
            "assignee": self.assignee,
            "priority": self.priority,
            "comments": self.comments,
        }


@dataclass
class Listing:
    board: Dict[str, List[TaskItem]] = field(default_factory=lambda: {s: [] for s in LOCAL_STATUSES})
    calendar: Dict[str, List[TaskItem]] = field(default_factory=dict)
    items: List[TaskItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "board": {k: [t.to_dict() for t in v] for k, v in self.board.items()},
            "calendar": {k: [t.to_dict() for t in v] for k, v in self.calendar.items()},
            "items": [t.to_dict() for t in self.items],
            "stats": task_stats(self.items),
        }


def _local_date(moment: datetime) -> str:
    # datas com fuso são convertidas para o fuso local antes de cortar o dia
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date().isoformat()


def vehicle_label(year: Optional[str], make: Optional[str], model: Optional[str]) -> str:
    label = f"{year or ''} {make or ''} {model or ''}".strip()
    return label or UNKNOWN_VEHICLE


def to_task_item(order: RepairOrderRead) -> TaskItem:
    detail = order.first_detail
    vehicle = order.first_vehicle
    display = to_display(order.status)
    staff = detail.shop_staff if detail else None
    return TaskItem(
        id=order.id,
        title=(detail.description if detail else None) or UNTITLED,
        vehicle=vehicle_label(vehicle.year, vehicle.make, vehicle.model) if vehicle else UNKNOWN_VEHICLE,
        status=to_persisted(display.local),
        local_status=display.local,
        color=display.color,
        hex=display.hex,
        created_at=order.created_at or utc_now(),
        description=(detail.description if detail else None) or "",
        assignee=(staff.staff_name if staff else None) or UNASSIGNED,
        priority=(detail.task_priority if detail else None) or "",
        comments=(detail.notes if detail else None) or "",
    )


def project_listing(orders: List[RepairOrderRead]) -> Listing:
    listing = Listing()
    for order in orders:
        item = to_task_item(order)
        listing.board[item.local_status].append(item)
        listing.calendar.setdefault(item.date_key, []).append(item)
        listing.items.append(item)
    return listing


def task_stats(items: List[TaskItem]) -> Dict[str, int]:
    return {
        "total": len(items),
        "pending": sum(1 for t in items if t.local_status == TODO),
        "in_progress": sum(1 for t in items if t.local_status == IN_PROGRESS),
        "completed": sum(1 for t in items if t.local_status == DONE),
    }


def find_task(board: Dict[str, List[TaskItem]], task_id: str) -> Optional[TaskItem]:
    for column in board.values():
        for item in column:
            if item.id == task_id:
                return item
    return None


def move_task(board: Dict[str, List[TaskItem]], task_id: str, to_column: str) -> Dict[str, List[TaskItem]]:
    """
    Devolve um novo quadro com a tarefa no fim da coluna de destino.
    O quadro recebido não é alterado. Coluna inválida, tarefa inexistente
    ou mesma coluna devolvem uma cópia sem mudanças.
    """
    moved = {column: list(items) for column, items in board.items()}
    item = find_task(board, task_id)
    if item is None or to_column not in LOCAL_STATUSES or item.local_status == to_column:
        return moved

    display = status_color(to_column)
    moved[item.local_status] = [t for t in moved[item.local_status] if t.id != task_id]
    moved.setdefault(to_column, []).append(
        replace(item, local_status=to_column, status=to_persisted(to_column), color=display.color, hex=display.hex)
    )
    return moved
