import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import categories
import database
import orders
import products
import users
from access_gate import AccessGateMiddleware
from config import API_PREFIX, LOG_LEVEL, PORT, UPLOAD_DIR, UPLOAD_URL_PATH

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("eshop")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
    yield


app = FastAPI(title="E‑Shop API", lifespan=lifespan)

# last added runs first: CORS, then access log, then the gate
app.add_middleware(AccessGateMiddleware)


@app.middleware("http")
async def access_log(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %s %.1fms",
        request.method, request.url.path, response.status_code, (time.perf_counter() - start) * 1000,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Errors always come back as {"success": false, "message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg', 'invalid request')}" if where else first.get("msg", "invalid request")
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(PyMongoError)
async def store_error(request: Request, exc: PyMongoError):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Database error"})


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


os.makedirs(UPLOAD_DIR, exist_ok=True)
app.mount(UPLOAD_URL_PATH, StaticFiles(directory=UPLOAD_DIR), name="uploads")

app.include_router(categories.router, prefix=f"{API_PREFIX}/categories")
app.include_router(products.router, prefix=f"{API_PREFIX}/products")
app.include_router(users.router, prefix=f"{API_PREFIX}/users")
app.include_router(orders.router, prefix=f"{API_PREFIX}/orders")


@app.get("/")
def read_root():
    return {"message": "E‑Shop backend is running", "api": API_PREFIX}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
