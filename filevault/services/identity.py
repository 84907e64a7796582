import logging
import uuid
from abc import ABC, abstractmethod

from werkzeug.security import check_password_hash, generate_password_hash

from filevault.core.errors import DuplicateError, UserNotFound, ValidationError, WrongPassword
from filevault.models.database import utcnow
from filevault.models.user import User
from filevault.services.metadata import MetadataStore

logger = logging.getLogger(__name__)


class CredentialVerifier(ABC):
    """Turns a raw secret into a stored credential and checks it later."""

    @abstractmethod
    def make_credential(self, secret: str) -> str: ...

    @abstractmethod
    def verify(self, user: User, secret: str) -> bool: ...


class PasswordVerifier(CredentialVerifier):
    def __init__(self, method: str = "scrypt"):
        self.method = method

    def make_credential(self, secret: str) -> str:
        return generate_password_hash(secret, method=self.method)

    def verify(self, user: User, secret: str) -> bool:
        return check_password_hash(user.password_hash, secret)


class IdentityManager:
    def __init__(self, store: MetadataStore, verifier: CredentialVerifier | None = None):
        self.store = store
        self.verifier = verifier or PasswordVerifier()

    def register(self, email: str, display_name: str, raw_password: str) -> User:
        if not email or not raw_password:
            raise ValidationError("Email and password are required", token="missing-credentials")

        # Hash outside the lock, it is deliberately slow
        password_hash = self.verifier.make_credential(raw_password)
        with self.store.mutate("users") as users:
            if any(u.email == email for u in users):
                raise DuplicateError(f"User {email} already exists", token="user-exists")
            user = User(
                id=str(uuid.uuid4()),
                email=email,
                display_name=display_name or email,
                password_hash=password_hash,
                created_at=utcnow(),
            )
            users.append(user)
        logger.info("Registered user %s", user.id)
        return user

    def authenticate(self, email: str, raw_password: str) -> User:
        user = self._find_by_email(email)
        if user is None:
            raise UserNotFound("User not found")
        if not self.verifier.verify(user, raw_password):
            raise WrongPassword("Wrong password")
        return user

    def get_user(self, user_id: str) -> User | None:
        return next((u for u in self.store.load_collection("users") if u.id == user_id), None)

    def _find_by_email(self, email: str) -> User | None:
        return next((u for u in self.store.load_collection("users") if u.email == email), None)
