from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Generic, TypeVar, Any, List, AsyncIterator
from fastapi import HTTPException, status, Header, Depends
from passlib.context import CryptContext
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from jose import JWTError, jwt
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
import logging
import math
import uuid

logger = logging.getLogger("storefront.store")

# --- Configuration ---
class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"
    SQL_ECHO: bool = False
    SECRET_KEY: str = "secret"
    REFRESH_SECRET_KEY: str = "refresh_secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    CART_TOKEN_EXPIRE_DAYS: int = 30
    CART_COOKIE_NAME: str = "cart"
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("50.00")
    FLAT_SHIPPING_COST: Decimal = Decimal("9.99")
    TAX_RATE: Decimal = Decimal("0.08")
    LOW_STOCK_THRESHOLD: int = 10
    RATE_LIMIT_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- Database ---
def create_engine_from_settings(config: Settings = settings) -> AsyncEngine:
    return create_async_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)

@asynccontextmanager
async def unit_of_work(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """
    One session and one transaction per service call.

    Commits on clean exit, rolls back on any error, and always closes the
    session. Driver-level connectivity failures surface as TransientStoreError.
    """
    session = session_factory()
    try:
        async with session.begin():
            yield session
    except (OperationalError, InterfaceError, DisconnectionError) as e:
        logger.error("Store failure, transaction rolled back", exc_info=True)
        raise TransientStoreError("Data store unavailable, please retry") from e
    finally:
        await session.close()


# --- Authentication ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    if "jti" not in to_encode:
        to_encode.update({"jti": str(uuid.uuid4())})

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = utcnow() + expires_delta
    else:
        expire = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    if "jti" not in to_encode:
        to_encode.update({"jti": str(uuid.uuid4())})

    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)

def verify_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Could not validate credentials")

def verify_refresh_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.REFRESH_SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Could not validate refresh token")
    if payload.get("type") != "refresh":
        raise UnauthorizedException("Could not validate refresh token")
    return payload


# --- Response Models ---
T = TypeVar("T")

class SuccessResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[Any] = None

class HealthResponse(BaseModel):
    service: str
    status: str
    timestamp: datetime
    version: str
    database: Optional[str] = None
    dependencies: Optional[dict] = None

class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
    pages: int

    @classmethod
    def build(cls, items: List[Any], total: int, page: int, page_size: int) -> "Page":
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=math.ceil(total / page_size) if page_size else 0,
        )


# --- Exceptions ---
class AppException(HTTPException):
    def __init__(
        self,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        detail: str = "An error occurred",
        headers: Optional[dict] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.context = context

class ValidationError(AppException):
    def __init__(self, detail: str = "Invalid input", context: Optional[dict] = None):
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, detail, context=context)

class EmptyCartError(ValidationError):
    def __init__(self, detail: str = "Cart is empty"):
        super().__init__(detail)

class NotFoundError(AppException):
    def __init__(self, detail: str = "Resource not found", context: Optional[dict] = None):
        super().__init__(status.HTTP_404_NOT_FOUND, detail, context=context)

class ConflictError(AppException):
    def __init__(self, detail: str = "Resource already exists", context: Optional[dict] = None):
        super().__init__(status.HTTP_409_CONFLICT, detail, context=context)

class SlugGenerationExhausted(ConflictError):
    def __init__(self, base_slug: str, attempts: int):
        super().__init__(
            f"Could not find a free slug for '{base_slug}' after {attempts} attempts",
            context={"slug": base_slug, "attempts": attempts},
        )

class StateError(AppException):
    def __init__(self, detail: str = "Operation not allowed in the current state", context: Optional[dict] = None):
        super().__init__(status.HTTP_409_CONFLICT, detail, context=context)

class UnavailableError(AppException):
    def __init__(self, detail: str = "Product unavailable", context: Optional[dict] = None):
        super().__init__(status.HTTP_409_CONFLICT, detail, context=context)

class ProductUnavailableError(UnavailableError):
    def __init__(self, unavailable: List[dict]):
        names = ", ".join(str(u.get("name") or u["product_id"]) for u in unavailable)
        super().__init__(
            f"Unavailable or insufficient stock: {names}",
            context={"products": unavailable},
        )
        self.unavailable = unavailable

class TransientStoreError(AppException):
    def __init__(self, detail: str = "Data store unavailable"):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, detail)

class UnauthorizedException(AppException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )

class ForbiddenException(AppException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# --- Dependencies ---
async def require_auth(authorization: str = Header(...)) -> dict:
    scheme, _, param = authorization.partition(" ")
    if not authorization or scheme.lower() != "bearer":
        raise UnauthorizedException(detail="Invalid authentication credentials")
    return verify_token(param)

async def require_admin(payload: dict = Depends(require_auth)) -> dict:
    if payload.get("role") != "admin":
        raise ForbiddenException("Admin role required")
    return payload
