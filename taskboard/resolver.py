"""
Decide quem é o cliente e qual veículo a nova OS vai referenciar.

A função é pura: recebe o cliente já vinculado à oficina e o primeiro
veículo cadastrado (quando o cliente existe) e devolve o par
(customer_id, vehicle_id) junto com as inserções que precisam acontecer
antes da OS. Nada é gravado aqui.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from taskboard.errors import ValidationFailure
from taskboard.models import Customer, CustomerVehicle, ShopCustomer, WorkOrderSubmission
from taskboard.store import PlannedWrite

MISSING_VEHICLE_DATA = "missing_vehicle_data"
NO_VEHICLE_ON_FILE = "no_vehicle_on_file"
UNKNOWN_CUSTOMER = "unknown_customer"


@dataclass
class Resolution:
    customer_id: str
    vehicle_id: str
    writes: List[PlannedWrite] = field(default_factory=list)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _new_vehicle(customer_id: str, submission: WorkOrderSubmission) -> CustomerVehicle:
    return CustomerVehicle(
        customer_id=customer_id,
        year=_blank_to_none(submission.year),
        make=_blank_to_none(submission.make),
        model=_blank_to_none(submission.model),
        engine_type=_blank_to_none(submission.engine_type),
        vin=_blank_to_none(submission.vin),
    )


def resolve_entities(
    submission: WorkOrderSubmission,
    shop_id: str,
    first_vehicle: Optional[CustomerVehicle] = None,
    customer: Optional[Customer] = None,
) -> Resolution:
    if submission.is_new_customer:
        # Sem veículo não dá para gravar a OS (vehicle_id é NOT NULL)
        if not submission.has_vehicle_data:
            raise ValidationFailure(
                MISSING_VEHICLE_DATA,
                "No vehicle info provided for new customer, can't create a valid vehicle_id.",
            )
        # Email nulo evita conflito com a restrição de unicidade
        customer = Customer(customer_name=_blank_to_none(submission.customer_name), customer_email=None)
        link = ShopCustomer(shop_id=shop_id, customer_id=customer.id)
        vehicle = _new_vehicle(customer.id, submission)
        return Resolution(
            customer_id=customer.id,
            vehicle_id=vehicle.id,
            writes=[PlannedWrite.insert(customer), PlannedWrite.insert(link), PlannedWrite.insert(vehicle)],
        )

    customer_id = submission.customer_id
    # Cliente inexistente ou de outra oficina
    if customer is None or customer.id != customer_id:
        raise ValidationFailure(UNKNOWN_CUSTOMER, f"Customer {customer_id} not found for this shop.")

    if first_vehicle is not None:
        # Veículo existente é reaproveitado sem alteração
        return Resolution(customer_id=customer_id, vehicle_id=first_vehicle.id)

    if not submission.has_vehicle_data:
        raise ValidationFailure(
            NO_VEHICLE_ON_FILE,
            "Existing customer has no vehicle on file and no new vehicle info given.",
        )
    vehicle = _new_vehicle(customer_id, submission)
    return Resolution(customer_id=customer_id, vehicle_id=vehicle.id, writes=[PlannedWrite.insert(vehicle)])
