from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from seance_backend.db.models import User


class UserAlreadyExistsError(ValueError):
    pass


class UsersRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return self.session.scalars(stmt).first()

    def create(self, *, email: str, password_hash: Optional[str] = None) -> User:
        normalized = email.strip().lower()
        if self.get_by_email(normalized):
            raise UserAlreadyExistsError("User already exists")
        user = User(email=normalized, password_hash=password_hash)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise UserAlreadyExistsError("User already exists") from exc
        self.session.refresh(user)
        return user

    def set_stripe_ids(
        self,
        user: User,
        *,
        customer_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> User:
        if customer_id is not None:
            user.stripe_customer_id = customer_id
        if subscription_id is not None:
            user.stripe_subscription_id = subscription_id
        self.session.commit()
        self.session.refresh(user)
        return user
