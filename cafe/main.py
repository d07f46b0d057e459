import logging
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import kitchen, orders, session, websocket
from .api.deps import kitchen_view_for
from .config import settings
from .core.errors import OrderError
from .services.redis import redis_client

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Café Orders API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add response time header"""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code}
    )


@app.get("/")
async def root():
    return {"message": "Café Orders API"}


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.on_event("startup")
async def startup_event():
    """Check Redis and start the live kitchen board"""
    try:
        redis_client.ping()
        logger.info("Redis connected successfully")
    except Exception as e:
        logger.warning("Redis connection failed: %s", e)

    view = kitchen_view_for(app)
    view.add_listener(websocket.broadcast_board)
    await view.refresh()
    view.start()


@app.on_event("shutdown")
async def shutdown_event():
    view = getattr(app.state, "kitchen_view", None)
    if view is not None:
        await view.stop()
    try:
        redis_client.close()
        logger.info("Redis connection closed")
    except Exception as e:
        logger.warning("Error closing Redis connection: %s", e)


app.include_router(session.router)
app.include_router(orders.router)
app.include_router(kitchen.router)
app.include_router(websocket.router)
