"""
Provides the User model for the application's database schema.

Users are issued by the external identity provider (Clerk) and mirrored
locally on first authenticated request. Presence is tracked live by the
realtime hub; ``is_online`` and ``last_active_at`` persist the last known
transition so REST readers can show it.

Attributes
----------
clerk_user_id : sqlalchemy.Column
    Unique identifier for the user from the external Clerk system.
email : sqlalchemy.Column
    The email address of the user, which must also be unique.
username : sqlalchemy.Column
    The optional username chosen by the user.
is_active : sqlalchemy.Column
    A boolean indicating if the user is active. Defaults to `True`.
is_online : sqlalchemy.Column
    Last persisted presence state.
last_active_at : sqlalchemy.Column
    Time of the last presence transition.

Relationships
-------------
profile : sqlalchemy.orm.relationship
    One-to-one relationship with the `Profile` model holding avatar and bio.
"""

from sqlalchemy import Boolean, Column, DateTime, String, inspect
from sqlalchemy.orm import relationship

from .base import BaseModel


class User(BaseModel):
    """
    Represents a user entity in the application.

    :ivar clerk_user_id: Unique identifier for the user provided by Clerk.
    :type clerk_user_id: str
    :ivar email: Email address of the user. It must be unique.
    :type email: str
    :ivar username: Username of the user. This is optional.
    :type username: str
    :ivar is_active: Indicates whether the user account is active.
    :type is_active: bool
    :ivar is_online: Last persisted presence state.
    :type is_online: bool
    """

    __tablename__ = "users"

    clerk_user_id = Column(String(255), unique=True, nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(100))
    is_active = Column(Boolean, default=True)
    is_online = Column(Boolean, default=False, nullable=False)
    last_active_at = Column(DateTime, nullable=True)

    # Relationships
    profile = relationship(
        "Profile", back_populates="user", cascade="all, delete-orphan", uselist=False, lazy="selectin"
    )

    @property
    def loaded_profile(self):
        """The profile if it is already loaded; never triggers a lazy load."""
        if "profile" in inspect(self).unloaded:
            return None
        return self.profile
