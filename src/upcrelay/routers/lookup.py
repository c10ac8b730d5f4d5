"""Barcode lookup endpoint."""

import logging

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from upcrelay.models import ErrorResponse, LookupResponse
from upcrelay.services.lookup import LookupPipeline, ValidationError
from upcrelay.services.token import AuthError

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.get(
    "/lookup",
    response_model=LookupResponse,
    response_model_exclude_unset=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def lookup(
    request: Request,
    code: str | None = Query(None, description="UPC/EAN or other scanned product code"),
):
    """Look up eBay listings for a scanned product code.

    Returns 200 with ``found=false`` when nothing matches, 400 for a missing
    or unusable code and 500 for any other failure.
    """
    pipeline: LookupPipeline = request.app.state.pipeline
    try:
        return await pipeline.search(code)
    except ValidationError as e:
        return _error(400, ErrorResponse(error=str(e)))
    except AuthError as e:
        logger.error("Lookup error: %s: %s", e, e.payload)
    except Exception:
        logger.exception("Lookup error")
    return _error(500, ErrorResponse(found=False, error="Lookup error"))
