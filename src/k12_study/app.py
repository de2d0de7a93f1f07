from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from .api import router
from .db import init_db
from .errors import EngineError

LOG_LEVEL = os.environ.get("K12_STUDY_LOG_LEVEL", "INFO")

# Ensure the database schema exists even when lifespan hooks are not triggered (e.g. in tests).
init_db()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="K12 Study", lifespan=lifespan)
app.include_router(router)


@app.exception_handler(EngineError)
async def engine_error_handler(_: Request, exc: EngineError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("loc")})
    message = f"invalid fields: {', '.join(fields)}" if fields else "invalid request"
    return JSONResponse({"error": message}, status_code=status.HTTP_400_BAD_REQUEST)


def main() -> None:
    import uvicorn

    logger.remove()
    logger.add(sys.stderr, level=LOG_LEVEL)
    uvicorn.run("k12_study.app:app", host="127.0.0.1", port=8000, reload=True)


if __name__ == "__main__":
    main()
