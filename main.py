import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from auth import get_current_user_id
from budgets import ForCategory, Overall
from config import get_settings
from database import SessionLocal
from errors import NotFound, StorageUnavailable
from models import Budget, Category, Transaction
from money import format_amount
from periods import Period, as_utc, to_utc_naive
from scheduler import SchedulerManager
from schemas import BudgetIn, BudgetLimitIn, CategoryIn, TransactionIn
from services import (
    BudgetService,
    BudgetSummary,
    CategoryService,
    TransactionService,
)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()

app = FastAPI(title="Pennywise", version=APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(NotFound)
async def not_found_handler(_request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(_request: Request, exc: StorageUnavailable):
    logging.error(f"request_failed: storage_unavailable operation={exc.operation}")
    return JSONResponse(
        status_code=503, content={"detail": "Storage temporarily unavailable"}
    )


@app.exception_handler(ValueError)
async def value_error_handler(_request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def category_payload(category: Category) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
    }


def transaction_payload(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "user_id": txn.user_id,
        "category_id": txn.category_id,
        "amount": format_amount(txn.amount_cents),
        "amount_cents": txn.amount_cents,
        "description": txn.description,
        "transaction_date": as_utc(txn.transaction_date).isoformat(),
        "created_at": as_utc(txn.created_at).isoformat(),
        "updated_at": as_utc(txn.updated_at).isoformat(),
    }


def budget_payload(budget: Budget) -> dict[str, object]:
    return {
        "id": budget.id,
        "user_id": budget.user_id,
        "category_id": budget.category_id,
        "budget_month": budget.budget_month,
        "budget_year": budget.budget_year,
        "limit_amount": format_amount(budget.limit_amount_cents),
        "limit_amount_cents": budget.limit_amount_cents,
    }


def summary_payload(summary: BudgetSummary) -> dict[str, object]:
    payload = budget_payload(summary.budget)
    payload.update(
        {
            "category_name": summary.budget.category.name
            if summary.budget.category
            else None,
            "spent_amount": format_amount(summary.spent_cents),
            "remaining_amount": format_amount(summary.remaining_cents),
        }
    )
    return payload


@app.get("/api/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/api/categories")
def list_categories(
    user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    return [category_payload(c) for c in CategoryService(db, user_id).list_all()]


@app.post("/api/categories", status_code=201)
def create_category(
    data: CategoryIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return category_payload(CategoryService(db, user_id).create(data))


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: int,
    data: CategoryIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return category_payload(CategoryService(db, user_id).update(category_id, data))


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    CategoryService(db, user_id).delete(category_id)
    return Response(status_code=204)


@app.post("/api/transactions", status_code=201)
def create_transaction(
    data: TransactionIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return transaction_payload(TransactionService(db, user_id).create(data))


@app.get("/api/transactions")
def list_transactions(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    period = None
    if start is not None or end is not None:
        if start is None or end is None:
            raise HTTPException(
                status_code=400, detail="Both start and end are required"
            )
        period = Period(to_utc_naive(start), to_utc_naive(end))
    items = TransactionService(db, user_id).list_for_user(period)
    return [transaction_payload(txn) for txn in items]


@app.get("/api/transactions/weekly")
def weekly_spending(
    user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)
):
    return [week.as_dict() for week in TransactionService(db, user_id).weekly_spending()]


@app.get("/api/transactions/category/{category_id}")
def list_transactions_by_category(
    category_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items = TransactionService(db, user_id).list_by_category(category_id)
    return [transaction_payload(txn) for txn in items]


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return transaction_payload(TransactionService(db, user_id).get(transaction_id))


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    data: TransactionIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, user_id).update(transaction_id, data)
    return transaction_payload(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    TransactionService(db, user_id).delete(transaction_id)
    return Response(status_code=204)


@app.get("/api/budgets")
def list_budgets(
    month: Optional[str] = None,
    year: Optional[int] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    summaries = BudgetService(db, user_id).summaries_for_month(month, year)
    return [summary_payload(s) for s in summaries]


@app.get("/api/budgets/overall")
def overall_budget(
    month: Optional[str] = None,
    year: Optional[int] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    summary = BudgetService(db, user_id).summary(Overall(), month, year)
    return summary_payload(summary)


@app.get("/api/budgets/category/{category_id}")
def category_budget(
    category_id: int,
    month: Optional[str] = None,
    year: Optional[int] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    summary = BudgetService(db, user_id).summary(ForCategory(category_id), month, year)
    return summary_payload(summary)


@app.post("/api/budgets", status_code=201)
def set_budget(
    data: BudgetIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return budget_payload(BudgetService(db, user_id).set_budget(data))


@app.put("/api/budgets/{budget_id}")
def update_budget(
    budget_id: int,
    data: BudgetLimitIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return budget_payload(BudgetService(db, user_id).update_limit(budget_id, data))


@app.delete("/api/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    BudgetService(db, user_id).delete(budget_id)
    return Response(status_code=204)
