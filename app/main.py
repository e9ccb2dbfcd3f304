"""
HTTP API for Expense Tracker

This is the surface the browser client talks to. It stays thin:
every route calls one store operation and wraps the outcome in the
{success, message, data/result, error} envelope the client expects.

Status codes:
- 404 when an identifier does not resolve to a row
- 409 when a savings goal identifier is already taken
- 422 when the request body fails validation, or a savings update would
  store an invalid value
- 500 for everything else (credentials, Sheets API, unexpected errors)
"""

from functools import lru_cache

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from expense_tracker import __version__
from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.logging_setup import configure_logging
from expense_tracker.models import (
    SavingsGoalCreate,
    SavingsGoalPatch,
    TransactionCreate,
)
from expense_tracker.services.storage import (
    DuplicateError,
    InvalidRecordError,
    NotFoundError,
    SavingsStorageInterface,
    StoreError,
    TransactionStorageInterface,
    create_storage,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


@lru_cache()
def get_storage() -> tuple[TransactionStorageInterface, SavingsStorageInterface]:
    """Build the stores once per process (cached)."""
    try:
        return create_storage()
    except ValidationError as e:
        raise StoreError(f"Storage is not configured: {e}") from e


def get_transaction_storage() -> TransactionStorageInterface:
    return get_storage()[0]


def get_savings_storage() -> SavingsStorageInterface:
    return get_storage()[1]


def _status_for(error: Exception) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, DuplicateError):
        return 409
    if isinstance(error, InvalidRecordError):
        return 422
    return 500


def _failure(message: str, error: Exception) -> JSONResponse:
    status_code = _status_for(error)
    if status_code >= 500:
        logger.error("request_failed", message=message, error=str(error), error_type=type(error).__name__)
    else:
        logger.warning("request_rejected", message=message, error=str(error), status=status_code)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": str(error)},
    )


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Expense Tracker API is running"


@router.get("/status")
async def status():
    """Which configuration groups load. Errors are logged, never returned."""
    results = validate_all_settings()
    groups = {name: ok for name, ok in results.items() if not name.endswith("_error")}
    for name, ok in groups.items():
        if not ok:
            logger.warning("settings_invalid", group=name, error=results[f"{name}_error"])
    return {"success": all(groups.values()), "data": groups}


# Expenses

@router.get("/expenses")
async def list_expenses(
    storage: TransactionStorageInterface = Depends(get_transaction_storage),
):
    try:
        expenses = await storage.list_transactions()
    except StoreError as e:
        return _failure("Failed to fetch expenses", e)
    return {
        "success": True,
        "data": [expense.model_dump(mode="json", by_alias=True) for expense in expenses],
    }


@router.post("/expenses")
async def add_expense(
    payload: TransactionCreate,
    storage: TransactionStorageInterface = Depends(get_transaction_storage),
):
    try:
        transaction = await storage.create_transaction(payload)
    except StoreError as e:
        return _failure("Failed to add expense", e)
    return {
        "success": True,
        "message": "Expense added successfully",
        "result": transaction.model_dump(mode="json", by_alias=True),
    }


@router.delete("/expenses/{expense_id}")
async def delete_expense(
    expense_id: str,
    storage: TransactionStorageInterface = Depends(get_transaction_storage),
):
    try:
        await storage.delete_transaction(expense_id)
    except NotFoundError as e:
        return _failure("Expense not found", e)
    except StoreError as e:
        return _failure("Failed to delete expense", e)
    return {"success": True, "message": "Expense deleted successfully"}


# Savings

@router.get("/savings")
async def list_savings(
    storage: SavingsStorageInterface = Depends(get_savings_storage),
):
    try:
        goals = await storage.list_goals()
    except StoreError as e:
        return _failure("Failed to fetch savings", e)
    return {
        "success": True,
        "data": [goal.model_dump(mode="json", by_alias=True) for goal in goals],
    }


@router.post("/savings")
async def add_saving(
    payload: SavingsGoalCreate,
    storage: SavingsStorageInterface = Depends(get_savings_storage),
):
    try:
        await storage.create_goal(payload)
    except DuplicateError as e:
        return _failure("Saving goal already exists", e)
    except StoreError as e:
        return _failure("Failed to add saving goal", e)
    return {"success": True, "message": "Saving goal added successfully"}


@router.put("/savings/{goal_id}")
async def update_saving(
    goal_id: str,
    payload: SavingsGoalPatch,
    storage: SavingsStorageInterface = Depends(get_savings_storage),
):
    try:
        await storage.update_goal(goal_id, payload)
    except NotFoundError as e:
        return _failure("Saving goal not found", e)
    except InvalidRecordError as e:
        return _failure("Invalid request", e)
    except StoreError as e:
        return _failure("Failed to update saving goal", e)
    return {"success": True, "message": "Saving goal updated successfully"}


@router.delete("/savings/{goal_id}")
async def delete_saving(
    goal_id: str,
    storage: SavingsStorageInterface = Depends(get_savings_storage),
):
    try:
        await storage.delete_goal(goal_id)
    except NotFoundError as e:
        return _failure("Saving goal not found", e)
    except StoreError as e:
        return _failure("Failed to delete saving goal", e)
    return {"success": True, "message": "Saving goal deleted successfully"}


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning("request_invalid", path=request.url.path, error=problems)
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Invalid request", "error": problems},
    )


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    # Raised outside a route body, e.g. while building the stores
    return _failure("Storage unavailable", exc)


def create_app() -> FastAPI:
    """Application factory."""
    app_settings = get_settings().app
    configure_logging(app_settings.log_level, app_settings.log_json)

    app = FastAPI(
        title="Expense Tracker API",
        description="Transactions and savings goals stored in Google Sheets",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StoreError, _store_error_handler)

    app.include_router(router, prefix="/api")
    if app_settings.legacy_api_prefix:
        app.include_router(router, prefix=app_settings.legacy_api_prefix.rstrip("/"))

    logger.info(
        "app_created",
        environment=app_settings.environment,
        legacy_prefix=app_settings.legacy_api_prefix or None,
    )
    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings().app
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug_mode,
    )
