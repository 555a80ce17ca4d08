import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Optional

from fastapi import FastAPI, Request, Form, Depends, Header, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel import SQLModel

from taskboard.config import configure_logging
from taskboard.database import create_db_and_tables, get_store
from taskboard.editor import apply_detail_edit, change_status
from taskboard.errors import VALIDATION_ERROR
from taskboard.models import RepairOrderRead, WorkOrderSubmission
from taskboard.projector import project_listing, task_stats
from taskboard.status import LOCAL_STATUSES
from taskboard.store import WorkshopStore
from taskboard.writer import create_work_order

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield


app = FastAPI(title="Motorminds Task Board", lifespan=lifespan)
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

VIEWS = ("board", "calendar", "list")


class StatusChange(SQLModel):
    column: str


# --- Autenticação (quem é o usuário e de qual oficina) ---

def get_shop_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
    store: WorkshopStore = Depends(get_store),
) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    shop_id = store.shop_id_for_user(x_user_id)
    if not shop_id:
        logger.warning("No shop_id found for user %s", x_user_id)
        raise HTTPException(status_code=403, detail="No shop_id found")
    return shop_id


def get_order_or_404(store: WorkshopStore, order_id: str, shop_id: str) -> RepairOrderRead:
    order = store.fetch_order(order_id, shop_id)
    if not order:
        raise HTTPException(status_code=404, detail="Repair order not found")
    return order


# --- Quadro ---

@app.get("/", response_class=HTMLResponse)
async def read_root(
    request: Request,
    view: str = "board",
    store: WorkshopStore = Depends(get_store),
    shop_id: str = Depends(get_shop_id),
):
    listing = project_listing(store.fetch_orders(shop_id))
    context = {
        "view": view if view in VIEWS else "board",
        "listing": listing,
        "stats": task_stats(listing.items),
        "calendar_days": sorted(listing.calendar.items(), reverse=True),
    }

    if request.headers.get("HX-Request"):
        return templates.TemplateResponse(request, "partials/listing.html", context)

    context["customers"] = store.list_customers(shop_id)
    context["staff"] = store.list_staff(shop_id)
    return templates.TemplateResponse(request, "index.html", context)


@app.get("/api/orders")
async def list_orders(store: WorkshopStore = Depends(get_store), shop_id: str = Depends(get_shop_id)):
    return project_listing(store.fetch_orders(shop_id)).to_dict()


@app.get("/api/orders/{order_id}", response_model=RepairOrderRead)
async def read_order(order_id: str, store: WorkshopStore = Depends(get_store), shop_id: str = Depends(get_shop_id)):
    return get_order_or_404(store, order_id, shop_id)


# --- Criação de OS ---

@app.post("/orders/add")
async def add_order(
    customer_id: Annotated[str, Form()] = "new",
    customer_name: Annotated[str, Form()] = "",
    year: Annotated[str, Form()] = "",
    make: Annotated[str, Form()] = "",
    model: Annotated[str, Form()] = "",
    engine_type: Annotated[str, Form()] = "",
    vin: Annotated[str, Form()] = "",
    task_name: Annotated[str, Form()] = "",
    labour: Annotated[str, Form()] = "",
    parts: Annotated[str, Form()] = "",
    notes: Annotated[str, Form()] = "",
    total_amount: Annotated[str, Form()] = "",
    mileage: Annotated[str, Form()] = "",
    priority: Annotated[str, Form()] = "medium",
    assigned_to: Annotated[str, Form()] = "",
    store: WorkshopStore = Depends(get_store),
    shop_id: str = Depends(get_shop_id),
):
    submission = WorkOrderSubmission(
        customer_id=customer_id, customer_name=customer_name,
        year=year, make=make, model=model, engine_type=engine_type, vin=vin,
        task_name=task_name, labour=labour, parts=parts, notes=notes,
        total_amount=total_amount, mileage=mileage, priority=priority, assigned_to=assigned_to,
    )
    result = create_work_order(store, shop_id, submission)

    if not result.ok:
        # Alerta simples para o usuário sem quebrar a página
        prefix = "" if result.kind == VALIDATION_ERROR else "Error creating work order: "
        return HTMLResponse(
            f"""<script>
                alert({json.dumps(prefix + result.message)});
                window.history.back();
            </script>"""
        )
    return RedirectResponse(url="/", status_code=303)


@app.post("/api/orders")
async def create_order(
    submission: WorkOrderSubmission,
    store: WorkshopStore = Depends(get_store),
    shop_id: str = Depends(get_shop_id),
):
    result = create_work_order(store, shop_id, submission)
    if result.ok:
        status_code = 201
    elif result.kind == VALIDATION_ERROR:
        status_code = 400
    else:
        status_code = 500
    return JSONResponse(result.to_dict(), status_code=status_code)


# --- Edição e mudança de status ---

@app.put("/api/orders/{order_id}")
async def update_order(
    order_id: str,
    edited: RepairOrderRead,
    store: WorkshopStore = Depends(get_store),
    shop_id: str = Depends(get_shop_id),
):
    stored = get_order_or_404(store, order_id, shop_id)
    edited.id = order_id
    return apply_detail_edit(store, edited, stored).to_dict()


@app.patch("/api/orders/{order_id}/status")
async def move_order(
    order_id: str,
    change: StatusChange,
    store: WorkshopStore = Depends(get_store),
    shop_id: str = Depends(get_shop_id),
):
    if change.column not in LOCAL_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown column: {change.column}")
    get_order_or_404(store, order_id, shop_id)

    board = project_listing(store.fetch_orders(shop_id)).board
    moved, result = change_status(store, board, order_id, change.column)
    return {
        "board": {column: [t.to_dict() for t in items] for column, items in moved.items()},
        "result": result.to_dict() if result else None,
    }


# --- Opções do formulário ---

@app.get("/api/customers")
async def list_customers(store: WorkshopStore = Depends(get_store), shop_id: str = Depends(get_shop_id)):
    return [
        {
            "id": c.id,
            "name": c.customer_name,
            "vehicle": c.first_vehicle.model_dump() if c.first_vehicle else {},
        }
        for c in store.list_customers(shop_id)
    ]


@app.get("/api/staff")
async def list_staff(store: WorkshopStore = Depends(get_store), shop_id: str = Depends(get_shop_id)):
    return [s.model_dump() for s in store.list_staff(shop_id)]
