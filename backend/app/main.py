from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.v1.router import router as v1_router
from backend.app.core.logging import configure_logging
from backend.services.errors import (
    ConflictError,
    InsufficientQuantityError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

configure_logging()

app = FastAPI(title="PROCURA REQUIREMENTS", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


# ---------- Erreurs métier -> HTTP ----------
@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
def _validation(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "details": exc.details})


@app.exception_handler(InsufficientQuantityError)
def _insufficient(request: Request, exc: InsufficientQuantityError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "product_id": exc.product_id,
            "pending": exc.pending,
            "requested": exc.requested,
        },
    )


@app.exception_handler(InvalidStateError)
def _invalid_state(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
def _conflict(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc), "retry": True})
