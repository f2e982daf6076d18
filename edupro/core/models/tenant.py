import secrets
import string
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from edupro.db.session import Base

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_tenant_id() -> str:
    """Internal tenant id, e.g. inst_m2mf4. Never shown as the login code once renamed."""
    return "inst_" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


class Tenant(Base):
    """
    Institute in the multi-tenant platform.

    - id: internal, immutable key used by every tenant-scoped row.
    - display_code: public institute code typed at login. Mutable, globally
      unique (enforced by the unique index, so concurrent renames cannot both win).
    """

    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True, default=generate_tenant_id)
    display_code = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Institute configuration lists shown during sign-up and content authoring
    grade_list = Column(JSON, nullable=False, default=list)
    subject_list = Column(JSON, nullable=False, default=list)
    topic_list = Column(JSON, nullable=False, default=list)
    admin_user_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    users = relationship("UserProfile", back_populates="tenant", cascade="all, delete-orphan")
