from sqlalchemy import Column, String, Enum
from sqlalchemy.orm import relationship
import enum
from .base import BaseModel


class UserRole(enum.Enum):
    APPLICANT = "applicant"
    ADMIN = "admin"


class User(BaseModel):
    __tablename__ = 'users'

    # Basic Info
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.APPLICANT)

    # Relationships
    applicants = relationship("Applicant", back_populates="user", lazy='dynamic')

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"
