import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_settings
from database import Base, engine
from mailer import CallableError, OtpEmailService
from routers import admin, auth, functions, notifications, reservations, spots, users

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="RaknaGo API")

app.include_router(auth.auth_router)
app.include_router(users.user_router)
app.include_router(spots.router)
app.include_router(reservations.router)
app.include_router(notifications.router)
app.include_router(admin.router)
app.include_router(functions.router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)


@app.exception_handler(CallableError)
async def callable_error_handler(request: Request, exc: CallableError):
    return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})


# Check the mail relay once on startup; a failure is logged, not fatal
@app.on_event("startup")
def on_startup():
    OtpEmailService.from_settings(get_settings()).verify_relay()


@app.get("/")
def read_root():
    return {"message": "RaknaGo API is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
