import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dues.core.config import settings
from dues.database import Base, engine
from dues.database_init import ensure_database, ensure_bootstrap_operator
from dues.errors import MatchingError
from dues.models import activity_log, application, deposit, match, operator, outbox  # noqa: F401  (register tables)
from dues.routes import auth, payments, webhooks

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# --- ensure database exists ---
ensure_database()

app = FastAPI(title="Dues Matcher API")

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Create tables ---
Base.metadata.create_all(bind=engine)
ensure_bootstrap_operator()


# --- Engine errors -> HTTP ---
@app.exception_handler(MatchingError)
async def matching_error_handler(request: Request, exc: MatchingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# --- Include routes ---
app.include_router(webhooks.router)
app.include_router(payments.router)
app.include_router(auth.router)


# --- Root route ---
@app.get("/")
def root():
    return {"message": "Dues Matcher API is running"}
