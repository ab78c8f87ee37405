import logging
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from auth import bearer_token, issue_identity_token, verify_identity_token
from config import get_settings
from database import get_db
from errors import (
    AuthenticationError,
    InvalidArgumentError,
    InvalidPeriodError,
    NotFoundError,
    StorageError,
)
from models import PaymentMethod
from money import MAX_AMOUNT, to_cents
from periods import DEFAULT_PERIOD, resolve_period
from schemas import (
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    DashboardChartsOut,
    DashboardInsightsOut,
    DashboardSummaryOut,
    DefaultCategoryOut,
    ExpenseIn,
    ExpenseOut,
    ExpensePageOut,
    ExpenseUpdate,
    MonthSummaryOut,
    PaginationOut,
    RegisteredUserOut,
    UserIn,
    UserOut,
    UserUpdate,
)
from services import (
    CategoryService,
    DashboardService,
    ExpenseFilters,
    ExpenseService,
    UserService,
    category_out,
    default_categories,
    expense_out,
    local_now,
    user_out,
)
from stores import SqlCategoryStore

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Expense Dashboard")


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidArgumentError)
@app.exception_handler(InvalidPeriodError)
async def invalid_argument_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.exception(f"storage_error: path={request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


def current_owner_id(authorization: Optional[str] = Header(default=None)) -> int:
    return verify_identity_token(bearer_token(authorization))


@app.post("/api/users", status_code=201, response_model=RegisteredUserOut)
def register_user(data: UserIn, db: Session = Depends(get_db)):
    try:
        user = UserService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return RegisteredUserOut(
        **user_out(user).model_dump(), token=issue_identity_token(user.id)
    )


@app.get("/api/users/me", response_model=UserOut)
def read_current_user(
    owner_id: int = Depends(current_owner_id), db: Session = Depends(get_db)
):
    return user_out(UserService(db).get(owner_id))


@app.put("/api/users/me", response_model=UserOut)
def update_current_user(
    data: UserUpdate,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        user = UserService(db).update(owner_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return user_out(user)


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(
    owner_id: int = Depends(current_owner_id), db: Session = Depends(get_db)
):
    return [category_out(c) for c in SqlCategoryStore(db).find(owner_id)]


@app.get("/api/categories/default/list", response_model=list[DefaultCategoryOut])
def list_default_categories(owner_id: int = Depends(current_owner_id)):
    return default_categories()


@app.post("/api/categories", status_code=201, response_model=CategoryOut)
def create_category(
    data: CategoryIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, owner_id).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return category_out(category)


@app.post(
    "/api/categories/import-defaults",
    status_code=201,
    response_model=list[CategoryOut],
)
def import_default_categories(
    owner_id: int = Depends(current_owner_id), db: Session = Depends(get_db)
):
    try:
        categories = CategoryService(db, owner_id).import_defaults()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [category_out(c) for c in categories]


@app.get("/api/categories/{category_id}", response_model=CategoryOut)
def read_category(
    category_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    return category_out(CategoryService(db, owner_id).get(category_id))


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    data: CategoryUpdate,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, owner_id).update(category_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return category_out(category)


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    CategoryService(db, owner_id).deactivate(category_id)
    return {"message": "Category deleted successfully"}


@app.get("/api/expenses", response_model=ExpensePageOut)
def list_expenses(
    period: Optional[str] = None,
    category_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    min_amount: Optional[Decimal] = Query(default=None, ge=0, le=MAX_AMOUNT),
    max_amount: Optional[Decimal] = Query(default=None, ge=0, le=MAX_AMOUNT),
    payment_method: Optional[PaymentMethod] = None,
    sort_by: Literal["date", "amount", "title"] = "date",
    sort_order: Literal["asc", "desc"] = "desc",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    filters = ExpenseFilters(
        category_id=category_id,
        start=start_date,
        end=end_date,
        min_amount_cents=to_cents(min_amount) if min_amount is not None else None,
        max_amount_cents=to_cents(max_amount) if max_amount is not None else None,
        payment_method=payment_method,
    )
    if period:
        # Explicit dates win over the named period.
        window = resolve_period(period, local_now())
        filters.start = filters.start or window.start
        filters.end = filters.end or window.end
    records, total = ExpenseService(db, owner_id).list(
        filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return ExpensePageOut(
        expenses=[expense_out(r) for r in records],
        pagination=PaginationOut(
            current_page=page,
            total_pages=-(-total // limit),
            total_items=total,
            items_per_page=limit,
        ),
    )


@app.post("/api/expenses", status_code=201, response_model=ExpenseOut)
def create_expense(
    data: ExpenseIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        record = ExpenseService(db, owner_id).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return expense_out(record)


@app.get("/api/expenses/summary/current-month", response_model=MonthSummaryOut)
def current_month_expense_summary(
    owner_id: int = Depends(current_owner_id), db: Session = Depends(get_db)
):
    return DashboardService.for_session(db).month_summary(owner_id)


@app.get("/api/expenses/{expense_id}", response_model=ExpenseOut)
def read_expense(
    expense_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    return expense_out(ExpenseService(db, owner_id).get(expense_id))


@app.put("/api/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    data: ExpenseUpdate,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        record = ExpenseService(db, owner_id).update(expense_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return expense_out(record)


@app.delete("/api/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    ExpenseService(db, owner_id).delete(expense_id)
    return {"message": "Expense deleted successfully"}


@app.get("/api/dashboard/summary", response_model=DashboardSummaryOut)
def dashboard_summary(
    period: str = DEFAULT_PERIOD,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    return DashboardService.for_session(db).summary(owner_id, period)


@app.get("/api/dashboard/charts", response_model=DashboardChartsOut)
def dashboard_charts(
    period: str = DEFAULT_PERIOD,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    return DashboardService.for_session(db).charts(owner_id, period)


@app.get("/api/dashboard/insights", response_model=DashboardInsightsOut)
def dashboard_insights(
    owner_id: int = Depends(current_owner_id), db: Session = Depends(get_db)
):
    return DashboardService.for_session(db).insights(owner_id)
