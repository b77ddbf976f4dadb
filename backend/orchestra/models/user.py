"""User and authority models."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)

from orchestra.core.database import Base
from orchestra.utils.datetime_utils import utc_now_lambda


class User(Base):
    """Local user record.

    ``email`` is the natural key: logins from any provider carrying the same
    email resolve to the same row.

    ``version`` is the optimistic-concurrency counter. The application sets the
    next value explicitly (``version_id_generator=False``); SQLAlchemy then
    emits ``UPDATE ... WHERE id = ? AND version = <value last read>`` and
    raises ``StaleDataError`` when no row matches.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    email_confirmed = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, default=0, nullable=False)
    password_hash = Column(String(255), nullable=True)  # NULL for OAuth2-only users
    enabled = Column(Boolean, default=False, nullable=False)
    full_name = Column(String(255))
    image_url = Column(String(2000))
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    # Not a column: populated from user_authorities by the CRUD layer
    authorities = frozenset()

    def __repr__(self):
        return f"<User {self.email}>"


class UserAuthorityRelation(Base):
    """Authority (role) granted to a user."""

    __tablename__ = "user_authorities"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    authority = Column(String(50), primary_key=True)

    def __repr__(self):
        return f"<UserAuthorityRelation user_id={self.user_id} authority={self.authority!r}>"


class _EmptyUser:
    """Result of an OAuth2 login whose provider returned no email.

    Every attribute reads as absent, assignments are ignored, and the instance
    is only ever equal to itself. It is never persisted.
    """

    __slots__ = ()

    id = None
    email = None
    email_confirmed = False
    version = 0
    password_hash = None
    enabled = False
    full_name = None
    image_url = None
    created_at = None
    authorities = frozenset()

    def __setattr__(self, name, value):
        pass

    def __eq__(self, other):
        return other is self

    def __hash__(self):
        return 1

    def __repr__(self):
        return "<User EMPTY>"


EMPTY_USER = _EmptyUser()
