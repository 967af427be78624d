from sqlalchemy import Column, String, Boolean, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship

from academia.core.database import Base, TimestampMixin, generate_uuid


class Department(TimestampMixin, Base):
    """
    Academic department.

    `hod_id` and the HOD user's `department_id` form a two-way link; the
    department service updates both sides together.
    """
    __tablename__ = "departments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    code = Column(String(10), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    hod_id = Column(String(36), ForeignKey("users.id", use_alter=True, name="fk_departments_hod_id"),
                    nullable=True, unique=True)
    is_active = Column(Boolean, default=True, nullable=False)
    established_year = Column(Integer, nullable=True)
    total_semesters = Column(Integer, default=8, nullable=False)

    # Relationships
    members = relationship("User", foreign_keys="User.department_id", back_populates="department")
    subjects = relationship("Subject", back_populates="department")

    def __repr__(self):
        return f"<Department {self.code}>"
