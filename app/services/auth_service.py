from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio.session import AsyncSession

from .. import exceptions
from ..core.logger import setup_logger
from ..enums import UserRole
from ..models import User
from ..models.base import utcnow
from ..schemas import CreateUser, LoginResponse, UserResponse
from ..utils.auth import create_access_token, hash_password, verify_password


logger = setup_logger(__name__)


class AuthService:
    """
    Service class for handling user authentication and account management.
    """

    def __init__(self, db: AsyncSession):
        self.db = db


    async def get_user_by_email(self, email: str):
        stmt = select(User).where(User.email == email.lower())
        return (await self.db.execute(stmt)).scalars().first()


    async def get_user_by_id(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)

        if not user:
            raise exceptions.UserNotFoundException()

        return user


    def build_login_response(self, user: User) -> LoginResponse:
        """ Issues a token for the user and wraps it with the user summary. """

        token, expires_in = create_access_token(user.id, user.email, user.role.value)
        return LoginResponse(
            access_token=token,
            token_type="Bearer",
            expires_in=expires_in,
            user=UserResponse.model_validate(user),
        )


    async def create_user_account(self, data: CreateUser, role: UserRole = UserRole.USER) -> User:
        """ Creates a new user account. """

        if await self.get_user_by_email(data.email):
            raise exceptions.UserAlreadyExistsException()

        user_data = data.model_dump(exclude={"password"})
        user_data["email"] = user_data["email"].lower()

        db_user = User(
            **user_data,
            hashed_password=hash_password(data.password),
            role=role,
            is_active=True,
        )

        try:
            self.db.add(db_user)
            await self.db.commit()
            await self.db.refresh(db_user)
        except IntegrityError:
            await self.db.rollback()
            raise exceptions.UserAlreadyExistsException()

        logger.info(f"Created {role.value} account {db_user.email} (id={db_user.id})")
        return db_user


    async def register(self, data: CreateUser) -> LoginResponse:
        user = await self.create_user_account(data)
        return self.build_login_response(user)


    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_user_by_email(email)

        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise exceptions.InvalidUserCredentialsException()

        if not user.is_active:
            logger.warning(f"Inactive account {email} tried to log in")
            raise exceptions.InactiveUserException()

        return user


    async def login(self, email: str, password: str) -> LoginResponse:
        user = await self.authenticate(email, password)

        user.last_login_at = utcnow()
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"User {user.email} logged in")
        return self.build_login_response(user)


    async def create_initial_admin(self, data: CreateUser) -> User:
        """
        Creates the first admin account. Refused once any admin exists.
        """
        admin_count = await self.db.scalar(
            select(func.count()).select_from(User).where(User.role == UserRole.ADMIN)
        )

        if admin_count:
            raise exceptions.PermissionRequiredException("Admin already exists. This endpoint is for initial setup only.")

        return await self.create_user_account(data, role=UserRole.ADMIN)
