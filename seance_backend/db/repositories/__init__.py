from seance_backend.db.repositories.subscriptions import SubscriptionsRepository
from seance_backend.db.repositories.users import UserAlreadyExistsError, UsersRepository

__all__ = [
    "SubscriptionsRepository",
    "UserAlreadyExistsError",
    "UsersRepository",
]
