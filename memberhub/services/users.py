"""Account moderation: admin approve/lock/unlock/delete and self-service deletion."""

from sqlalchemy.orm import Session

from memberhub.errors import ForbiddenError, InvalidCredentials, NotFoundError, ValidationError
from memberhub.models.user import User
from memberhub.services.auth import verify_password
from memberhub.services.otp import LoginAttemptLedger, get_login_attempt_ledger
from memberhub.services.sessions import SessionRegistry, get_session_registry


class UserService:
    """Status transitions that are not part of the login flow."""

    def __init__(self, sessions: SessionRegistry | None = None, attempts: LoginAttemptLedger | None = None) -> None:
        self.sessions = sessions or get_session_registry()
        self.attempts = attempts or get_login_attempt_ledger()

    def get_user(self, db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if not user or user.account_status == "deleted":
            raise NotFoundError("User not found")
        return user

    def list_users(self, db: Session, status: str | None = None) -> list[User]:
        query = db.query(User).filter(User.account_status != "deleted")
        if status:
            query = query.filter(User.account_status == status)
        return query.order_by(User.id).all()

    def approve(self, db: Session, user_id: int) -> User:
        """Mark verification documents accepted: inactive -> active."""
        user = self.get_user(db, user_id)
        if user.account_status != "inactive":
            raise ValidationError(f"Cannot approve an account that is {user.account_status}")
        user.account_status = "active"
        db.commit()
        return user

    def lock(self, db: Session, user_id: int, acting_user_id: int | None = None) -> User:
        user = self.get_user(db, user_id)
        if user.id == acting_user_id:
            raise ForbiddenError("Administrators cannot lock their own account")
        user.account_status = "locked"
        db.commit()
        self.sessions.revoke_all_for_user(db, user.id)
        return user

    def unlock(self, db: Session, user_id: int) -> User:
        user = self.get_user(db, user_id)
        if user.account_status != "locked":
            raise ValidationError("Account is not locked")
        user.account_status = "active"
        db.commit()
        self.attempts.record_unlock(db, user.email)
        return user

    def soft_delete(self, db: Session, user_id: int, acting_user_id: int | None = None) -> User:
        user = self.get_user(db, user_id)
        if user.id == acting_user_id:
            raise ForbiddenError("Use account deletion to remove your own account")
        return self._delete(db, user)

    def delete_own_account(self, db: Session, user_id: int, password: str) -> User:
        """Self-service deletion, confirmed with the current password."""
        user = self.get_user(db, user_id)
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials("Incorrect password")
        return self._delete(db, user)

    def _delete(self, db: Session, user: User) -> User:
        user.account_status = "deleted"
        user.committee_role = None
        db.commit()
        self.sessions.revoke_all_for_user(db, user.id)
        return user


_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get singleton user service instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
