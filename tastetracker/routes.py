import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .errors import StoreUnavailableError, ValidationError
from .schemas import ErrorResponse, SaveRequest, SaveResponse
from .service import PassportService

logger = logging.getLogger("tastetracker.http")
logger.setLevel(logging.INFO)

router = APIRouter(tags=["passport"])

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}


def get_passport_service(request: Request) -> PassportService:
    return request.app.state.passport_service


def require_ready_service(service: PassportService = Depends(get_passport_service)) -> PassportService:
    if not service.store.is_connected:
        raise StoreUnavailableError("Storage is not ready")
    return service


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _clean(value: object) -> str:
    return str(value).strip() if value is not None else ""


@router.get("/apps/alfie-tracker/passport-data", responses=ERROR_RESPONSES)
def get_passport_data(
    customer_id: Optional[str] = None,
    service: PassportService = Depends(get_passport_service),
):
    try:
        customer_id = _clean(customer_id)
        if not customer_id:
            raise ValidationError("Missing customer_id")
        return service.get_passport(customer_id)
    except ValidationError as exc:
        return error_response(400, str(exc))
    except Exception as exc:
        logger.exception("Error in /apps/alfie-tracker/passport-data")
        return error_response(500, str(exc) or "Server error")


@router.post("/save", response_model=SaveResponse, response_model_exclude_none=True, responses=ERROR_RESPONSES)
def save_entry(
    payload: SaveRequest,
    service: PassportService = Depends(require_ready_service),
):
    try:
        customer_id = _clean(payload.customer_id)
        roast_handle = _clean(payload.roast_handle)
        if not customer_id or not roast_handle:
            raise ValidationError("Missing customer_id or roast_handle")

        entry_id = _clean(payload.entry_id) or None
        result = service.apply_entry_action(
            customer_id,
            roast_handle,
            entry_id=entry_id,
            action=payload.action,
            fields=payload.entry_fields(),
        )
        return result.to_response()
    except ValidationError as exc:
        return error_response(400, str(exc))
    except Exception as exc:
        logger.exception("Error in /save")
        return error_response(500, str(exc) or "Server error")


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
def health(service: PassportService = Depends(get_passport_service)):
    if not service.store.is_connected:
        return PlainTextResponse("Alfie Taste Tracker storage is not connected.", status_code=503)
    return PlainTextResponse("Alfie Taste Tracker app is running.")
