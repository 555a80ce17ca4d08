"""
Acesso ao banco por tabela: select / insert / update com filtros de igualdade
e uma consulta aninhada (ordem + detalhes + mecânico + cliente + veículos).

Cada escrita faz o seu próprio commit. Não existe transação envolvendo
vários passos; quem orquestra a sequência é o WriteSaga (writer.py).
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from taskboard.errors import WriteFailure
from taskboard.models import (
    Customer,
    CustomerRead,
    CustomerVehicle,
    CustomerVehicleRead,
    RepairOrder,
    RepairOrderDetail,
    RepairOrderDetailRead,
    RepairOrderRead,
    ShopCustomer,
    ShopStaff,
    StaffRead,
    User,
    as_utc,
)

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"


@dataclass
class PlannedWrite:
    """Uma escrita ainda não executada. Para insert, `values` já traz o id."""
    action: str
    table: Type[SQLModel]
    values: Dict = field(default_factory=dict)
    row_id: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.action} {self.table.__tablename__}"

    @classmethod
    def insert(cls, row: SQLModel) -> "PlannedWrite":
        return cls(INSERT, type(row), row.model_dump(), row.id)

    @classmethod
    def update(cls, table: Type[SQLModel], row_id: str, values: Dict) -> "PlannedWrite":
        return cls(UPDATE, table, dict(values), row_id)


class WorkshopStore:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, label: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.warning("%s failed, session rolled back: %s", label, e)
            raise WriteFailure(label, e) from e

    # --- Escritas ---

    def insert(self, row: SQLModel) -> SQLModel:
        label = f"{INSERT} {type(row).__tablename__}"
        with self._guard(label):
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def update(self, table: Type[SQLModel], row_id: str, values: Dict) -> SQLModel:
        label = f"{UPDATE} {table.__tablename__}"
        with self._guard(label):
            row = self.session.get(table, row_id)
            if row is None:
                # update que não casa com nenhuma linha não cria nada
                raise WriteFailure(label, LookupError(f"no row with id {row_id}"))
            for key, value in values.items():
                setattr(row, key, value)
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        return row

    def apply(self, write: PlannedWrite) -> SQLModel:
        if write.action == INSERT:
            return self.insert(write.table(**write.values))
        if write.action == UPDATE:
            return self.update(write.table, write.row_id, write.values)
        raise ValueError(f"unknown write action: {write.action}")

    # --- Leituras ---

    def shop_id_for_user(self, user_id: str) -> Optional[str]:
        user = self.session.get(User, user_id)
        return user.shop_id if user else None

    def shop_customer(self, shop_id: str, customer_id: str) -> Optional[Customer]:
        """Cliente só é visível para a oficina à qual está vinculado."""
        with self._guard("select customers"):
            return self.session.exec(
                select(Customer)
                .join(ShopCustomer, ShopCustomer.customer_id == Customer.id)
                .where(Customer.id == customer_id, ShopCustomer.shop_id == shop_id)
                .limit(1)
            ).first()

    def first_vehicle(self, customer_id: str) -> Optional[CustomerVehicle]:
        """Primeiro veículo do cliente por ordem de inserção."""
        with self._guard("select customer_vehicles"):
            return self.session.exec(
                select(CustomerVehicle)
                .where(CustomerVehicle.customer_id == customer_id)
                .order_by(CustomerVehicle.created_at, CustomerVehicle.id)
                .limit(1)
            ).first()

    def fetch_orders(self, shop_id: str) -> List[RepairOrderRead]:
        """Ordens da oficina, mais recentes primeiro, já com as relações aninhadas."""
        orders = self.session.exec(
            select(RepairOrder)
            .where(RepairOrder.shop_id == shop_id)
            .order_by(RepairOrder.created_at.desc(), RepairOrder.id)
        ).all()
        return self._nest(orders)

    def fetch_order(self, order_id: str, shop_id: Optional[str] = None) -> Optional[RepairOrderRead]:
        query = select(RepairOrder).where(RepairOrder.id == order_id)
        if shop_id is not None:
            query = query.where(RepairOrder.shop_id == shop_id)
        order = self.session.exec(query).first()
        if order is None:
            return None
        return self._nest([order])[0]

    def list_staff(self, shop_id: str) -> List[StaffRead]:
        staff = self.session.exec(
            select(ShopStaff).where(ShopStaff.shop_id == shop_id).order_by(ShopStaff.staff_name)
        ).all()
        return [StaffRead(id=s.id, staff_name=s.staff_name) for s in staff]

    def list_customers(self, shop_id: str) -> List[CustomerRead]:
        """Clientes vinculados à oficina, com seus veículos (opções do formulário)."""
        links = self.session.exec(
            select(ShopCustomer).where(ShopCustomer.shop_id == shop_id).order_by(ShopCustomer.created_at)
        ).all()
        customer_ids = [link.customer_id for link in links]
        customers = self._customers_by_id(customer_ids)
        return [customers[cid] for cid in customer_ids if cid in customers]

    # --- Montagem da consulta aninhada ---

    def _customers_by_id(self, customer_ids: List[str]) -> Dict[str, CustomerRead]:
        if not customer_ids:
            return {}
        customers = self.session.exec(select(Customer).where(Customer.id.in_(customer_ids))).all()
        vehicles = self.session.exec(
            select(CustomerVehicle)
            .where(CustomerVehicle.customer_id.in_(customer_ids))
            .order_by(CustomerVehicle.created_at, CustomerVehicle.id)
        ).all()

        vehicles_by_customer: Dict[str, List[CustomerVehicleRead]] = {}
        for v in vehicles:
            vehicles_by_customer.setdefault(v.customer_id, []).append(CustomerVehicleRead(**v.model_dump()))

        return {
            c.id: CustomerRead(**c.model_dump(), customer_vehicles=vehicles_by_customer.get(c.id, []))
            for c in customers
        }

    def _nest(self, orders) -> List[RepairOrderRead]:
        if not orders:
            return []
        order_ids = [o.id for o in orders]
        details = self.session.exec(
            select(RepairOrderDetail)
            .where(RepairOrderDetail.repair_order_id.in_(order_ids))
            .order_by(RepairOrderDetail.created_at, RepairOrderDetail.id)
        ).all()

        mechanic_ids = {d.mechanic_id for d in details if d.mechanic_id}
        staff = {}
        if mechanic_ids:
            rows = self.session.exec(select(ShopStaff).where(ShopStaff.id.in_(list(mechanic_ids)))).all()
            staff = {s.id: StaffRead(id=s.id, staff_name=s.staff_name) for s in rows}

        details_by_order: Dict[str, List[RepairOrderDetailRead]] = {}
        for d in details:
            details_by_order.setdefault(d.repair_order_id, []).append(
                RepairOrderDetailRead(**d.model_dump(), shop_staff=staff.get(d.mechanic_id))
            )

        customers = self._customers_by_id(list({o.customer_id for o in orders}))

        return [
            RepairOrderRead(
                **{**o.model_dump(), "created_at": as_utc(o.created_at)},
                repair_order_details=details_by_order.get(o.id, []),
                customers=customers.get(o.customer_id),
            )
            for o in orders
        ]
