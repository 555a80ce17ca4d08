"""
Tradução entre o vocabulário de status gravado no banco
("Pending", "In Progress", "Completed") e o vocabulário do quadro
("todo", "inProgress", "done") com sua cor.

Todas as funções são totais: qualquer valor desconhecido vira "todo"/"Pending".
"""
from typing import NamedTuple, Optional

from taskboard.models import RepairOrderStatus

TODO = "todo"
IN_PROGRESS = "inProgress"
DONE = "done"

LOCAL_STATUSES = (TODO, IN_PROGRESS, DONE)


class DisplayStatus(NamedTuple):
    local: str
    color: str
    hex: str


_PERSISTED_TO_LOCAL = {
    RepairOrderStatus.PENDING.value.lower(): TODO,
    RepairOrderStatus.IN_PROGRESS.value.lower(): IN_PROGRESS,
    RepairOrderStatus.COMPLETED.value.lower(): DONE,
}

_LOCAL_TO_PERSISTED = {
    TODO: RepairOrderStatus.PENDING.value,
    IN_PROGRESS: RepairOrderStatus.IN_PROGRESS.value,
    DONE: RepairOrderStatus.COMPLETED.value,
}

_COLORS = {
    TODO: ("red", "#e23232"),
    IN_PROGRESS: ("yellow", "#d6cd24"),
    DONE: ("green", "#1eb386"),
}

# Nomes usados pela tela de detalhes da OS
_ALIASES = {
    "not-started": TODO,
    "in-progress": IN_PROGRESS,
    "completed": DONE,
    "inprogress": IN_PROGRESS,
}


def to_local(persisted: Optional[str]) -> str:
    if not persisted:
        return TODO
    return _PERSISTED_TO_LOCAL.get(persisted.strip().lower(), TODO)


def status_color(local: Optional[str]) -> DisplayStatus:
    local = local if local in _COLORS else TODO
    color, hex_value = _COLORS[local]
    return DisplayStatus(local, color, hex_value)


def to_display(persisted: Optional[str]) -> DisplayStatus:
    return status_color(to_local(persisted))


def to_persisted(local: Optional[str]) -> str:
    return _LOCAL_TO_PERSISTED.get(local, RepairOrderStatus.PENDING.value)


def normalize_status(value: Optional[str]) -> str:
    """Aceita qualquer vocabulário da interface e devolve o status gravável."""
    if not value:
        return RepairOrderStatus.PENDING.value
    if value in _LOCAL_TO_PERSISTED:
        return _LOCAL_TO_PERSISTED[value]
    key = value.strip().lower()
    if key in _ALIASES:
        return _LOCAL_TO_PERSISTED[_ALIASES[key]]
    return to_persisted(to_local(value))
