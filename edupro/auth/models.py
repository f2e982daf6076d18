import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from edupro.db.session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class UserProfile(Base):
    """Admin, student or parent account within one tenant."""

    __tablename__ = "users"
    __table_args__ = (
        # Login handle (email or <digits>@<login_domain>) is unique per tenant
        UniqueConstraint("tenant_id", "login_handle", name="uq_user_tenant_login_handle"),
    )

    id = Column(String(64), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # ADMIN | STUDENT | PARENT
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(32), nullable=True, index=True)  # digits only
    grade = Column(String(50), nullable=True)  # required for STUDENT
    linked_student_phone = Column(String(32), nullable=True)  # digits only; required for PARENT
    status = Column(String(20), nullable=False, default="PENDING")
    # Origin: SELF (sign-up) or ADMIN (provisioned by the institute)
    source = Column(String(20), nullable=False, default="SELF")

    login_handle = Column(String(255), nullable=False)
    secret_hash = Column(Text, nullable=False)
    # Admin-provisioned secrets must be replaced by the user after first login
    must_rotate_secret = Column(Boolean, nullable=False, default=False)

    device_id = Column(String(255), nullable=True)
    device_binding_state = Column(String(20), nullable=False, default="UNBOUND")

    push_token = Column(String(255), nullable=True)
    push_token_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")
    refresh_tokens = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan"
    )
    device_events = relationship(
        "DeviceBindingEvent",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="DeviceBindingEvent.user_id",
        order_by="DeviceBindingEvent.created_at",
    )


class RefreshToken(Base):
    """Stored refresh tokens. Deleting a user's rows signs every session out."""

    __tablename__ = "refresh_tokens"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(512), nullable=False, unique=True)
    device_id = Column(String(255), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("UserProfile", back_populates="refresh_tokens")


class DeviceBindingEvent(Base):
    """Append-only audit trail of device binding transitions."""

    __tablename__ = "device_binding_events"

    id = Column(String(64), primary_key=True, default=_uuid)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    from_state = Column(String(20), nullable=False)
    to_state = Column(String(20), nullable=False)
    fingerprint = Column(String(255), nullable=True)
    # BIND | REBIND | RESET | REJECTED_LOGIN
    reason = Column(String(32), nullable=False)
    actor_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    user = relationship("UserProfile", back_populates="device_events", foreign_keys=[user_id])
