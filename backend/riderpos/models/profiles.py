from __future__ import annotations

from ..extensions import db
from riderpos.time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_RIDER = "rider"


class Profile(db.Model):
    """
    A person using the dashboard: either an admin or a rider.

    Role may be NULL for freshly registered users; those are treated as
    riders until an admin assigns a role.
    """
    __tablename__ = "profiles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    full_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_rider(self) -> bool:
        return self.role is None or self.role == ROLE_RIDER

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
