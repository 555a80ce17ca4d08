from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from taskboard.errors import VALIDATION_ERROR, WRITE_ERROR, WriteFailure
from taskboard.models import (
    Customer,
    CustomerVehicle,
    RepairOrder,
    RepairOrderDetail,
    ShopCustomer,
    WorkOrderSubmission,
)
from taskboard.resolver import UNKNOWN_CUSTOMER, Resolution
from taskboard.store import PlannedWrite
from taskboard.writer import WriteSaga, create_work_order, plan_work_order

from conftest import SHOP_ID, FailingStore, add_customer


def count(session, table):
    return len(session.exec(select(table)).all())


def test_plan_starts_order_as_pending_and_links_detail():
    resolution = Resolution(customer_id="cust-1", vehicle_id="veh-1")
    submission = WorkOrderSubmission(task_name="Brake pads", total_amount="250", priority="high", assigned_to="")
    order, detail = plan_work_order(resolution, SHOP_ID, submission, now=datetime(2024, 3, 2, 10, 0, tzinfo=timezone.utc))

    assert order.table is RepairOrder
    assert order.values["status"] == "Pending"
    assert order.values["vehicle_id"] == "veh-1"
    assert order.values["customer_id"] == "cust-1"
    assert detail.table is RepairOrderDetail
    assert detail.values["repair_order_id"] == order.row_id
    assert detail.values["description"] == "Brake pads"
    assert detail.values["cost"] == "250"
    assert detail.values["mechanic_id"] is None


def test_new_customer_scenario_creates_every_record(session, store):
    submission = WorkOrderSubmission(
        customer_id="new", customer_name="Jane Doe", year="2020", make="Toyota", model="Camry",
        task_name="Timing belt", assigned_to="staff-1",
    )
    result = create_work_order(store, SHOP_ID, submission)

    assert result.ok, result.message
    customers = session.exec(select(Customer)).all()
    vehicles = session.exec(select(CustomerVehicle)).all()
    orders = session.exec(select(RepairOrder)).all()
    details = session.exec(select(RepairOrderDetail)).all()
    links = session.exec(select(ShopCustomer)).all()

    assert [c.customer_name for c in customers] == ["Jane Doe"]
    assert len(links) == 1 and links[0].customer_id == customers[0].id
    assert [(v.year, v.make, v.model) for v in vehicles] == [("2020", "Toyota", "Camry")]
    assert len(orders) == 1
    assert orders[0].status == "Pending"
    assert orders[0].customer_id == customers[0].id
    assert orders[0].vehicle_id == vehicles[0].id
    assert len(details) == 1
    assert details[0].repair_order_id == orders[0].id
    assert details[0].mechanic_id == "staff-1"
    assert result.value["id"] == orders[0].id
    assert result.completed == [
        "insert customers", "insert shop_customers", "insert customer_vehicles",
        "insert repair_orders", "insert repair_order_details",
    ]


def test_new_customer_without_vehicle_writes_nothing(session, store):
    result = create_work_order(store, SHOP_ID, WorkOrderSubmission(customer_id="new", customer_name="Jane"))

    assert not result.ok
    assert result.kind == VALIDATION_ERROR
    for table in (Customer, ShopCustomer, CustomerVehicle, RepairOrder, RepairOrderDetail):
        assert count(session, table) == 0


def test_existing_customer_with_vehicle_creates_no_vehicle(session, store):
    customer = add_customer(session, vehicles=[("2015", "Honda", "Civic"), ("2019", "Mazda", "3")])
    first = session.exec(select(CustomerVehicle).where(CustomerVehicle.make == "Honda")).one()

    submission = WorkOrderSubmission(customer_id=customer.id, year="2022", make="Kia", model="Rio")
    result = create_work_order(store, SHOP_ID, submission)

    assert result.ok
    assert count(session, CustomerVehicle) == 2
    assert result.value["vehicle_id"] == first.id
    assert session.exec(select(RepairOrder)).one().vehicle_id == first.id


def test_unknown_customer_id_writes_nothing(session, store):
    result = create_work_order(store, SHOP_ID, WorkOrderSubmission(customer_id="no-such-customer", make="Kia"))

    assert result.kind == VALIDATION_ERROR
    assert result.value == UNKNOWN_CUSTOMER
    assert count(session, CustomerVehicle) == 0
    assert count(session, RepairOrder) == 0


def test_customer_of_another_shop_is_not_reused(session, store):
    outsider = add_customer(session, name="Other Shop Client", vehicles=[("2010", "BMW", "X5")], shop_id="other-shop")

    result = create_work_order(store, SHOP_ID, WorkOrderSubmission(customer_id=outsider.id, task_name="Brakes"))

    assert result.kind == VALIDATION_ERROR
    assert count(session, RepairOrder) == 0
    assert count(session, CustomerVehicle) == 1


def test_created_order_keeps_utc_timestamp(session, store):
    submission = WorkOrderSubmission(customer_id="new", customer_name="Jane", make="Toyota")
    result = create_work_order(store, SHOP_ID, submission)

    saved = store.fetch_order(result.value["id"], SHOP_ID)
    assert saved.created_at.tzinfo is not None
    assert saved.created_at.utcoffset() == timedelta(0)


def test_existing_customer_without_vehicle_gets_exactly_one(session, store):
    customer = add_customer(session)
    result = create_work_order(store, SHOP_ID, WorkOrderSubmission(customer_id=customer.id, model="Corolla"))

    assert result.ok
    vehicle = session.exec(select(CustomerVehicle)).one()
    assert vehicle.customer_id == customer.id
    assert result.value["vehicle_id"] == vehicle.id


def test_detail_failure_leaves_order_in_place(session):
    store = FailingStore(session, fail_on="repair_order_details")
    submission = WorkOrderSubmission(customer_id="new", customer_name="Jane", make="Toyota")

    result = create_work_order(store, SHOP_ID, submission)

    assert not result.ok
    assert result.kind == WRITE_ERROR
    assert result.value == "insert repair_order_details"
    assert "insert repair_orders" in result.completed
    # sem rollback: a ordem já gravada continua lá
    assert count(session, RepairOrder) == 1
    assert count(session, RepairOrderDetail) == 0


def test_order_is_never_written_when_vehicle_insert_fails(session):
    store = FailingStore(session, fail_on="customer_vehicles")
    result = create_work_order(store, SHOP_ID, WorkOrderSubmission(customer_id="new", vin="X"))

    assert result.kind == WRITE_ERROR
    assert count(session, Customer) == 1
    assert count(session, RepairOrder) == 0


def test_saga_calls_compensation_hook_with_completed_steps(session):
    store = FailingStore(session, fail_on="shop_customers")
    calls = []
    customer = Customer(customer_name="Jane")
    link = ShopCustomer(shop_id=SHOP_ID, customer_id=customer.id)
    saga = WriteSaga(
        [PlannedWrite.insert(customer), PlannedWrite.insert(link)],
        compensate=lambda completed, error: calls.append(([w.label for w in completed], error.step)),
    )

    with pytest.raises(WriteFailure) as exc:
        saga.run(store)

    assert exc.value.completed == ["insert customers"]

    assert calls == [(["insert customers"], "insert shop_customers")]
