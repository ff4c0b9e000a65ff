import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import psycopg2
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from src.portal.auth_utils import hash_password, normalize_email, verify_password
from src.portal.config import Settings, load_settings
from src.portal.db import Database, DatabaseError, DuplicateRecordError
from src.portal.logging_setup import configure_logging
from src.portal.schemas import (
    AlumniRegistrationCreate,
    APIError,
    APIMessage,
    CreatedResponse,
    LoginRequest,
    LoginResponse,
    PaymentCreate,
    SignupRequest,
)
from src.portal.uploads import UploadStore

logger = logging.getLogger("alumni_portal.main")

PAGES_DIR = Path(__file__).resolve().parent / "pages"

INVALID_CREDENTIALS = "Invalid email or password"

_ALUMNI_COLUMNS = (
    "name",
    "permanent_address",
    "present_address",
    "gender",
    "country_permanent",
    "country_present",
    "standard",
    "state_permanent",
    "state_present",
    "passout_year",
    "district_permanent",
    "district_present",
    "date_of_birth",
    "city_permanent",
    "city_present",
    "current_designation",
    "photo_path",
    "mobile_number",
    "email",
)

_INSERT_ALUMNI = (
    f"INSERT INTO alumni_registration ({', '.join(_ALUMNI_COLUMNS)}) "
    f"VALUES ({', '.join(['%s'] * len(_ALUMNI_COLUMNS))}) RETURNING id"
)

openapi_tags = [
    {"name": "Pages", "description": "Static portal pages."},
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Signup and login."},
    {"name": "Alumni", "description": "Alumni registration with optional photo."},
    {"name": "Payments", "description": "Fee payment capture."},
]


class PortalError(Exception):
    """Error rendered as a JSON body with an ``error`` key."""

    def __init__(self, status_code: int, error: str, details: Optional[str] = None) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_response(self) -> JSONResponse:
        body: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return JSONResponse(status_code=self.status_code, content=body)


def _reference_id() -> str:
    return uuid.uuid4().hex[:12]


def _server_error(error: str, *, with_reference: bool) -> PortalError:
    """Log the active exception under a fresh reference id and build the 500 error."""
    ref = _reference_id()
    logger.exception("%s [ref=%s]", error, ref)
    details = f"Reference ID {ref}" if with_reference else None
    return PortalError(status.HTTP_500_INTERNAL_SERVER_ERROR, error, details)


# PUBLIC_INTERFACE
def get_database(request: Request) -> Database:
    """Dependency returning the gateway attached to the application."""
    return request.app.state.database


# PUBLIC_INTERFACE
def get_upload_store(request: Request) -> UploadStore:
    """Dependency returning the upload store attached to the application."""
    return request.app.state.upload_store


def alumni_form(
    name: Optional[str] = Form(None),
    permanent_address: Optional[str] = Form(None),
    present_address: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    country_permanent: Optional[str] = Form(None),
    country_present: Optional[str] = Form(None),
    standard: Optional[str] = Form(None),
    state_permanent: Optional[str] = Form(None),
    state_present: Optional[str] = Form(None),
    passout_year: Optional[str] = Form(None),
    district_permanent: Optional[str] = Form(None),
    district_present: Optional[str] = Form(None),
    date_of_birth: Optional[str] = Form(None),
    city_permanent: Optional[str] = Form(None),
    city_present: Optional[str] = Form(None),
    current_designation: Optional[str] = Form(None),
    mobile_number: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
) -> AlumniRegistrationCreate:
    return AlumniRegistrationCreate(
        name=name,
        permanent_address=permanent_address,
        present_address=present_address,
        gender=gender,
        country_permanent=country_permanent,
        country_present=country_present,
        standard=standard,
        state_permanent=state_permanent,
        state_present=state_present,
        passout_year=passout_year,
        district_permanent=district_permanent,
        district_present=district_present,
        date_of_birth=date_of_birth,
        city_permanent=city_permanent,
        city_present=city_present,
        current_designation=current_designation,
        mobile_number=mobile_number,
        email=email,
    )


def _page(filename: str) -> FileResponse:
    return FileResponse(PAGES_DIR / filename, media_type="text/html")


def _register_routes(app: FastAPI) -> None:
    @app.get("/", tags=["Pages"], include_in_schema=False)
    def index_page() -> FileResponse:
        return _page("index.html")

    @app.get("/signup", tags=["Pages"], include_in_schema=False)
    def signup_page() -> FileResponse:
        return _page("signup.html")

    @app.get("/homepage", tags=["Pages"], include_in_schema=False)
    def homepage() -> FileResponse:
        return _page("homepage.html")

    @app.get("/alumni-registration", tags=["Pages"], include_in_schema=False)
    def alumni_registration_page() -> FileResponse:
        return _page("alumni-registration.html")

    @app.get("/health", tags=["Health"], summary="Health check")
    def health_check(database: Database = Depends(get_database)) -> JSONResponse:
        """Report whether the database answers a trivial query."""
        if database.ping():
            return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ok"})
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "unavailable"})

    # =========================
    # Auth
    # =========================

    @app.post(
        "/signup",
        status_code=status.HTTP_201_CREATED,
        response_model=APIMessage,
        responses={409: {"model": APIError}, 500: {"model": APIError}},
        tags=["Auth"],
        summary="Sign up",
    )
    def signup(payload: SignupRequest, database: Database = Depends(get_database)) -> APIMessage:
        """Create a new user with a bcrypt-hashed password."""
        email = normalize_email(payload.email)
        try:
            existing = database.fetch_one("SELECT id FROM users WHERE email=%s", [email])
            if existing:
                raise PortalError(status.HTTP_409_CONFLICT, "Email already registered")
            database.execute_returning_one(
                "INSERT INTO users (first_name, last_name, email, password) VALUES (%s, %s, %s, %s) RETURNING id",
                [payload.first_name, payload.last_name, email, hash_password(payload.password)],
            )
        except DuplicateRecordError:
            raise PortalError(status.HTTP_409_CONFLICT, "Email already registered")
        except (DatabaseError, psycopg2.Error, ValueError):
            raise _server_error("Error creating user", with_reference=False)

        logger.info("Created user %s", email)
        return APIMessage(message="User created successfully")

    @app.post(
        "/login",
        response_model=LoginResponse,
        response_model_by_alias=True,
        responses={401: {"model": APIError}, 500: {"model": APIError}},
        tags=["Auth"],
        summary="Login",
    )
    def login(payload: LoginRequest, database: Database = Depends(get_database)) -> LoginResponse:
        """Check credentials and return the display name. No session is issued."""
        try:
            user = database.fetch_one(
                "SELECT id, first_name, last_name, password FROM users WHERE email=%s ORDER BY id LIMIT 1",
                [normalize_email(payload.email)],
            )
        except (DatabaseError, psycopg2.Error):
            raise _server_error("Error during login", with_reference=False)

        if not user:
            raise PortalError(status.HTTP_401_UNAUTHORIZED, INVALID_CREDENTIALS)
        try:
            matched = verify_password(payload.password, user["password"])
        except ValueError:
            logger.warning("Stored password hash for user %s is malformed", user["id"])
            matched = False
        if not matched:
            raise PortalError(status.HTTP_401_UNAUTHORIZED, INVALID_CREDENTIALS)

        return LoginResponse(
            message="Login successful",
            user_name=f"{user['first_name']} {user['last_name']}",
            redirect_url="/homepage",
        )

    # =========================
    # Alumni
    # =========================

    @app.post(
        "/alumni-registration",
        status_code=status.HTTP_201_CREATED,
        response_model=CreatedResponse,
        responses={500: {"model": APIError}},
        tags=["Alumni"],
        summary="Register an alumnus",
    )
    def register_alumni(
        form: AlumniRegistrationCreate = Depends(alumni_form),
        photo: Optional[UploadFile] = File(None),
        database: Database = Depends(get_database),
        uploads: UploadStore = Depends(get_upload_store),
    ) -> CreatedResponse:
        """Store an alumni registration; the optional photo is saved to the upload directory."""
        photo_path: Optional[str] = None
        try:
            photo_path = uploads.save(photo)
            values = form.model_dump()
            values["photo_path"] = photo_path
            row = database.execute_returning_one(_INSERT_ALUMNI, [values[c] for c in _ALUMNI_COLUMNS])
        except (OSError, DatabaseError, psycopg2.Error):
            uploads.discard(photo_path)
            raise _server_error("Error registering alumni", with_reference=True)

        logger.info("Alumni registered with id %s", row["id"])
        return CreatedResponse(message="Alumni registered successfully", id=row["id"])

    # =========================
    # Payments
    # =========================

    @app.post(
        "/save-payment",
        status_code=status.HTTP_201_CREATED,
        response_model=CreatedResponse,
        responses={500: {"model": APIError}},
        tags=["Payments"],
        summary="Save a fee payment",
    )
    def save_payment(payload: PaymentCreate, database: Database = Depends(get_database)) -> CreatedResponse:
        """Record a payment. The card number is masked and the CVV is dropped before storage."""
        try:
            row = database.execute_returning_one(
                """
                INSERT INTO payments
                    (full_name, email, standard, fees, card_name, card_number, exp_month, exp_year)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                [
                    payload.full_name,
                    payload.email,
                    payload.standard,
                    payload.fees,
                    payload.card_name,
                    payload.masked_card_number(),
                    payload.exp_month,
                    payload.exp_year,
                ],
            )
        except (DatabaseError, psycopg2.Error):
            raise _server_error("Error saving payment", with_reference=True)

        logger.info("Payment saved with id %s", row["id"])
        return CreatedResponse(message="Payment saved successfully", id=row["id"])


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    upload_store: Optional[UploadStore] = None,
) -> FastAPI:
    """Build the portal application.

    When no database is passed, one is created from settings and connected on
    startup; a database that stays unreachable after the configured retries
    aborts startup.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Alumni Portal API",
        description="Signup/login, alumni registration with photo upload, and fee payment capture.",
        version="1.0.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.upload_store = upload_store or UploadStore(settings.upload_dir)

    if database is None:
        database = Database.from_settings(settings)

        @app.on_event("startup")
        def _startup() -> None:
            database.connect(
                attempts=settings.db_connect_attempts,
                delay=settings.db_connect_delay,
            )

        @app.on_event("shutdown")
        def _shutdown() -> None:
            database.close()

    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    @app.exception_handler(PortalError)
    async def _portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
        return exc.to_response()

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        ref = _reference_id()
        logger.error("Unhandled error on %s %s [ref=%s]", request.method, request.url.path, ref, exc_info=exc)
        return PortalError(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", f"Reference ID {ref}"
        ).to_response()

    _register_routes(app)
    return app
