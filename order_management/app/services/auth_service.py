from typing import Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import Conflict, Forbidden, InvalidLogin, UpstreamFailure
from ..core.password_security import SecurityUtils
from ..models.user import Role, User
from ..repository.user_repository import UserRepository
from ..schemas.user import UserLoginRequest, UserRegistrationRequest
from ..utils.jwt_handler import JWTHandler
from ..utils.logging import get_order_logger

logger = get_order_logger("order_management.auth_service")


class AuthService:
    """Registration and login; both hand out a signed session credential."""

    def __init__(self, session: AsyncSession, jwt_handler: JWTHandler):
        self.session = session
        self.jwt_handler = jwt_handler
        self.user_repository = UserRepository(session)

    def issue_token(self, user: User) -> str:
        return self.jwt_handler.encode_token({"user_id": user.id, "email": user.email})

    async def register_user(self, data: UserRegistrationRequest) -> Tuple[User, str]:
        """Create a regular user and return it with a fresh credential."""

        try:
            existing_user = await self.user_repository.query_email(data.email)
            if existing_user:
                logger.warning(
                    "Registration failed, email already exists",
                    extra={"existing_user_id": existing_user.id},
                )
                raise Conflict("Email already exists")

            user = await self.user_repository.create(
                User(
                    name=data.name,
                    email=data.email.lower(),
                    password_hash=SecurityUtils.hash_password(data.password),
                    phone=data.phone,
                    role=Role.USER.value,
                )
            )
        except IntegrityError:
            await self.session.rollback()
            raise Conflict("Email already exists")
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise UpstreamFailure("Error creating user", error=e)

        logger.info("User registered", extra={"user_id": user.id})
        return user, self.issue_token(user)

    async def authenticate_user(self, data: UserLoginRequest) -> Tuple[User, str]:
        """Check email/password; blocked accounts may not log in."""

        try:
            user = await self.user_repository.query_email(data.email)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Error logging in", error=e)

        if not user or not SecurityUtils.verify_password(
            data.password, user.password_hash
        ):
            logger.warning("Login failed: invalid credentials")
            raise InvalidLogin()

        if user.blocked:
            logger.warning("Login rejected: user is blocked", extra={"user_id": user.id})
            raise Forbidden("User is blocked")

        logger.info("User logged in", extra={"user_id": user.id})
        return user, self.issue_token(user)
