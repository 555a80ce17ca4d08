from typing import List, Optional
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4


def new_id() -> str:
    """Ids são gerados pela aplicação, então um plano de escrita já nasce com as chaves."""
    return str(uuid4())


def utc_now() -> datetime:
    """Datas gravadas sempre com fuso (UTC)."""
    return datetime.now(timezone.utc)


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    # SQLite devolve a data sem fuso; o que gravamos é sempre UTC
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# --- Enums ---
class RepairOrderStatus(str, Enum):
    """Status gravados no banco para uma Ordem de Reparo."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


# --- Modelos de Dados (Tabelas) ---

class User(SQLModel, table=True):
    """Usuário autenticado; só interessa aqui para descobrir a oficina (shop_id)."""
    __tablename__ = "users"
    id: str = Field(default_factory=new_id, primary_key=True)
    shop_id: Optional[str] = Field(default=None, index=True)


class ShopStaff(SQLModel, table=True):
    """Mecânico/funcionário da oficina. Somente leitura neste serviço."""
    __tablename__ = "shop_staff"
    id: str = Field(default_factory=new_id, primary_key=True)
    shop_id: str = Field(index=True)
    staff_name: str


class Customer(SQLModel, table=True):
    __tablename__ = "customers"
    id: str = Field(default_factory=new_id, primary_key=True)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None


class ShopCustomer(SQLModel, table=True):
    """Vínculo entre cliente e oficina, criado uma vez por cliente novo."""
    __tablename__ = "shop_customers"
    id: str = Field(default_factory=new_id, primary_key=True)
    shop_id: str = Field(index=True)
    customer_id: str = Field(foreign_key="customers.id")
    created_at: datetime = Field(default_factory=utc_now)


class CustomerVehicle(SQLModel, table=True):
    __tablename__ = "customer_vehicles"
    id: str = Field(default_factory=new_id, primary_key=True)
    customer_id: str = Field(foreign_key="customers.id", index=True)
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    engine_type: Optional[str] = None
    vin: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class RepairOrder(SQLModel, table=True):
    """
    Ordem de Reparo (work order).
    vehicle_id é obrigatório: nenhuma ordem é gravada sem um veículo válido.
    """
    __tablename__ = "repair_orders"
    id: str = Field(default_factory=new_id, primary_key=True)
    shop_id: str = Field(index=True)
    customer_id: str = Field(foreign_key="customers.id")
    vehicle_id: str = Field(foreign_key="customer_vehicles.id", nullable=False)
    # Texto livre no banco; valores fora do vocabulário são exibidos como "Pending"
    status: str = Field(default=RepairOrderStatus.PENDING.value)
    created_at: datetime = Field(default_factory=utc_now, description="Data de abertura")


class RepairOrderDetail(SQLModel, table=True):
    """Linha de detalhe (mão de obra, peças, custo). Só a primeira é usada."""
    __tablename__ = "repair_order_details"
    id: str = Field(default_factory=new_id, primary_key=True)
    repair_order_id: str = Field(foreign_key="repair_orders.id", index=True)
    description: Optional[str] = None
    labour: Optional[str] = None
    parts: Optional[str] = None
    notes: Optional[str] = None
    cost: Optional[str] = None
    mileage: Optional[str] = None
    task_priority: Optional[str] = None
    mechanic_id: Optional[str] = Field(default=None, foreign_key="shop_staff.id")
    created_at: datetime = Field(default_factory=utc_now)


# --- Formatos de leitura (consulta aninhada) ---

class StaffRead(SQLModel):
    id: str
    staff_name: Optional[str] = None


class RepairOrderDetailRead(SQLModel):
    id: Optional[str] = None
    description: Optional[str] = None
    labour: Optional[str] = None
    parts: Optional[str] = None
    notes: Optional[str] = None
    cost: Optional[str] = None
    mileage: Optional[str] = None
    task_priority: Optional[str] = None
    mechanic_id: Optional[str] = None
    shop_staff: Optional[StaffRead] = None


class CustomerVehicleRead(SQLModel):
    id: Optional[str] = None
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    engine_type: Optional[str] = None
    vin: Optional[str] = None


class CustomerRead(SQLModel):
    id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_vehicles: List[CustomerVehicleRead] = Field(default_factory=list)

    @property
    def first_vehicle(self) -> Optional[CustomerVehicleRead]:
        return self.customer_vehicles[0] if self.customer_vehicles else None


class RepairOrderRead(SQLModel):
    """
    Ordem com a primeira linha de detalhe, o cliente e os veículos do cliente.
    É o mesmo formato usado pela tela de detalhes para devolver uma edição.
    """
    id: str
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    shop_id: Optional[str] = None
    customer_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    repair_order_details: List[RepairOrderDetailRead] = Field(default_factory=list)
    customers: Optional[CustomerRead] = None

    @property
    def first_detail(self) -> Optional[RepairOrderDetailRead]:
        return self.repair_order_details[0] if self.repair_order_details else None

    @property
    def first_vehicle(self) -> Optional[CustomerVehicleRead]:
        return self.customers.first_vehicle if self.customers else None


# --- Entrada do formulário de nova OS ---

VEHICLE_FIELDS = ("year", "make", "model", "engine_type", "vin")

NEW_CUSTOMER = "new"


class WorkOrderSubmission(SQLModel):
    """Campos crus (strings) do formulário de Ordem de Serviço."""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    engine_type: Optional[str] = None
    vin: Optional[str] = None
    task_name: Optional[str] = None
    labour: Optional[str] = None
    parts: Optional[str] = None
    notes: Optional[str] = None
    total_amount: Optional[str] = None
    mileage: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[str] = None

    @property
    def is_new_customer(self) -> bool:
        return not self.customer_id or self.customer_id == NEW_CUSTOMER

    @property
    def has_vehicle_data(self) -> bool:
        return any((getattr(self, name) or "").strip() for name in VEHICLE_FIELDS)
