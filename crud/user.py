"""
UserRepository for database operations on User model
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from database_models import User, StripeCustomer, StripeSubscription, UserTrial, AxieStudioAccount


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                - hashed_password: str
                Optional:
                - is_active: bool (defaults to True)

        Returns:
            Created User object
        """
        user = User(
            email=user_data["email"].lower(),
            hashed_password=user_data["hashed_password"],
            is_active=user_data.get("is_active", True),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)
        return user

    async def delete_user(self, user: User) -> None:
        """
        Delete a user and every row owned by it.

        Rows are removed explicitly because SQLite does not enforce
        ON DELETE CASCADE unless the foreign_keys pragma is on.
        """
        customer_ids = (
            await self.db.execute(
                select(StripeCustomer.customer_id).where(StripeCustomer.user_id == user.id)
            )
        ).scalars().all()
        if customer_ids:
            await self.db.execute(
                delete(StripeSubscription).where(StripeSubscription.customer_id.in_(customer_ids))
            )
        for model in (StripeCustomer, UserTrial, AxieStudioAccount):
            await self.db.execute(delete(model).where(model.user_id == user.id))
        await self.db.delete(user)
        await self.db.flush()
