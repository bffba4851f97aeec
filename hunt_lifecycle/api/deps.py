# hunt_lifecycle/api/deps.py
import logging
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer, OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from hunt_lifecycle.core.config import settings
from hunt_lifecycle.db.session import SessionLocal
from hunt_lifecycle.schemas.token import TokenPayload
from hunt_lifecycle.services.hunt_participation import (
    HuntService,
    NullParticipationCounter,
    ParticipationCounter,
    ParticipationService,
    PaymentCapabilityChecker,
)
from hunt_lifecycle.services.hunt_participation.payment_capability import (
    StripePaymentCapabilityChecker,
)
from hunt_lifecycle.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


def get_db() -> Generator:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# This tells FastAPI where to look for the token.
# The `tokenUrl` doesn't have to be a real endpoint in this service,
# it's just for the OpenAPI documentation.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        # Decode the token using the secret key
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        # Validate the payload against our schema
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise credentials_exception

    return token_data


cron_scheme = HTTPBearer(auto_error=False)


def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(cron_scheme),
) -> None:
    """Only the scheduler host may trigger the cleanup endpoint."""
    if credentials is None or credentials.credentials != settings.CRON_SECRET:
        logger.warning("Rejected cleanup trigger with missing or invalid cron secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ==================== Service wiring ====================

def get_clock() -> Clock:
    return utcnow


def get_participation_counter() -> ParticipationCounter:
    return NullParticipationCounter()


def get_payment_capability_checker() -> PaymentCapabilityChecker:
    return StripePaymentCapabilityChecker()


def get_participation_service(
    db: Session = Depends(get_db),
    counter: ParticipationCounter = Depends(get_participation_counter),
    clock: Clock = Depends(get_clock),
) -> ParticipationService:
    return ParticipationService(db, counter=counter, clock=clock)


def get_hunt_service(
    db: Session = Depends(get_db),
    counter: ParticipationCounter = Depends(get_participation_counter),
    clock: Clock = Depends(get_clock),
) -> HuntService:
    return HuntService(db, counter=counter, clock=clock)
