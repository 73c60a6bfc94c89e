import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from datetime import datetime, timedelta, timezone
from uuid import uuid4
import jwt
import redis.asyncio as redis
from pydantic import ValidationError

from .schemas.user import Token, TokenData, LoginRequest, UserResponse, LoginResponse
from ..models.domain_models import Teacher
from ..models.redis_models import UserSessionRedis
from ..db.redis_client import RedisClient
from ..db.supabase_client import SupabaseGateway
from ..modules.errors import InvalidCredentials, NoActiveSession
from ..config.config import settings
from .dependencies import get_redis_pool, get_supabase_gateway
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def create_access_token(data: dict, expires_delta: timedelta):
    """Creates a signed JWT carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def resolve_active_session(token: str, redis_client: RedisClient) -> UserSessionRedis:
    """
    Decodes the token and returns the teacher's live Redis session.
    Raises NoActiveSession when the token is invalid or the session is gone.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        raise NoActiveSession(f"Token validation error: {e}") from e

    if token_data.teacher_id is None:
        raise NoActiveSession("Token is missing 'teacher_id'.")

    user_session = await redis_client.get_user_session(token_data.teacher_id)
    if user_session is None:
        raise NoActiveSession(f"Teacher '{token_data.teacher_id}' has a valid token but no active session.")
    return user_session


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool)
) -> Teacher:
    """Dependency for protected routes: the teacher behind a token with a live session."""
    try:
        user_session = await resolve_active_session(token, RedisClient(pool=redis_pool))
    except NoActiveSession as e:
        logger.warning(str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_session.user_data


async def _perform_login(email: str, password: str, remember_me: bool,
                         gateway: SupabaseGateway, redis_client: RedisClient) -> LoginResponse:
    """Signs the teacher in against Supabase Auth and opens a Redis session for them."""
    logger.info(f"Login attempt for '{email}', remember session: {remember_me}.")
    try:
        auth_user_id, auth_email = await gateway.verify_credentials(email, password)
        teacher = await gateway.get_teacher_profile(auth_user_id, auth_email)
        if teacher is None:
            logger.warning(f"'{email}' signed in but has no teacher profile.")
            raise HTTPException(status_code=403, detail="No teacher profile is linked to this account.")

        ttl = settings.REMEMBER_ME_SESSION_TTL_SECONDS if remember_me else settings.TEACHER_SESSION_TTL_SECONDS
        now = datetime.now(timezone.utc)
        redis_session = UserSessionRedis(
            user_data=teacher,
            session_id=uuid4(),
            session_start_time=now,
            session_end_time=now + timedelta(seconds=ttl),
            remember_me=remember_me,
        )
        await redis_client.save_user_session(redis_session, ttl=ttl)
        logger.info(f"Redis session created for teacher '{teacher.teacher_id}' with a TTL of {ttl} seconds.")

        access_token = create_access_token(data={"teacher_id": teacher.teacher_id}, expires_delta=timedelta(seconds=ttl))
        return LoginResponse(
            token=Token(access_token=access_token, token_type="bearer"),
            user=UserResponse.model_validate(teacher),
            remember_me=remember_me,
        )

    except InvalidCredentials:
        raise HTTPException(status_code=401, detail="Invalid email or password.")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected server error occurred during login.")


@router.post("/token", response_model=Token)
@limiter.limit("30/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    gateway: SupabaseGateway = Depends(get_supabase_gateway),
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool)
):
    """Standard OAuth2 endpoint for Swagger UI; the username is the teacher's email."""
    login_response = await _perform_login(form_data.username, form_data.password, False, gateway, RedisClient(pool=redis_pool))
    return login_response.token


@router.post("/login", response_model=LoginResponse)
@limiter.limit("30/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    gateway: SupabaseGateway = Depends(get_supabase_gateway),
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool)
):
    """Login endpoint for the mobile client."""
    return await _perform_login(login_request.email, login_request.password, login_request.remember_me,
                                gateway, RedisClient(pool=redis_pool))


@router.get("/me", response_model=UserResponse)
@limiter.limit("60/minute")
async def me(request: Request, current_user: Teacher = Depends(get_current_user)):
    return current_user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    redis_pool: redis.ConnectionPool = Depends(get_redis_pool),
    current_user: Teacher = Depends(get_current_user)
):
    """Deletes the teacher's session from Redis. An in-progress marking draft is kept."""
    logger.info(f"Teacher '{current_user.teacher_id}' logging out.")
    try:
        await RedisClient(pool=redis_pool).delete_user_session(current_user.teacher_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        logger.error(f"Error during logout for teacher '{current_user.teacher_id}'.", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred during logout.")
