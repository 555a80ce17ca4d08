from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from taskboard.database import get_session
from taskboard.errors import WriteFailure
from taskboard.main import app
from taskboard.models import (
    Customer,
    CustomerVehicle,
    RepairOrder,
    RepairOrderDetail,
    ShopCustomer,
    ShopStaff,
    User,
)
from taskboard.store import WorkshopStore

SHOP_ID = "shop-1"
USER_ID = "user-1"


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        session.add(User(id=USER_ID, shop_id=SHOP_ID))
        session.add(User(id="user-without-shop", shop_id=None))
        session.add(ShopStaff(id="staff-1", shop_id=SHOP_ID, staff_name="John Gay"))
        session.commit()
        yield session


@pytest.fixture(name="store")
def store_fixture(session):
    return WorkshopStore(session)


@pytest.fixture(name="client")
def client_fixture(session):
    app.dependency_overrides[get_session] = lambda: session
    client = TestClient(app, headers={"X-User-Id": USER_ID})
    yield client
    app.dependency_overrides.clear()


class FailingStore(WorkshopStore):
    """Store que falha ao escrever numa tabela específica."""

    def __init__(self, session, fail_on):
        super().__init__(session)
        self.fail_on = fail_on
        self.applied = []

    def apply(self, write):
        if write.table.__tablename__ == self.fail_on:
            raise WriteFailure(write.label, RuntimeError("store rejected the write"))
        row = super().apply(write)
        self.applied.append(write.label)
        return row


def add_customer(session, name="Jane Doe", vehicles=(), shop_id=SHOP_ID):
    customer = Customer(customer_name=name)
    session.add(customer)
    session.add(ShopCustomer(shop_id=shop_id, customer_id=customer.id))
    for i, (year, make, model) in enumerate(vehicles):
        session.add(
            CustomerVehicle(
                customer_id=customer.id, year=year, make=make, model=model,
                created_at=datetime(2024, 1, 1, 8, i, tzinfo=timezone.utc),
            )
        )
    session.commit()
    return customer


def add_order(session, customer, status="Pending", created_at=None, description="Oil change",
              mechanic_id=None, shop_id=SHOP_ID):
    vehicle = CustomerVehicle(customer_id=customer.id, year="2018", make="Ford", model="F-150")
    session.add(vehicle)
    order = RepairOrder(
        shop_id=shop_id, customer_id=customer.id, vehicle_id=vehicle.id,
        status=status, created_at=created_at or datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
    )
    session.add(order)
    detail = RepairOrderDetail(
        repair_order_id=order.id, description=description, labour="2h", parts="filter",
        notes="check brakes", cost="120", mileage="45000", task_priority="high",
        mechanic_id=mechanic_id,
    )
    session.add(detail)
    session.commit()
    return order
