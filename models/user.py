from models.base_model import Base, BaseModel
from sqlalchemy import Column, String, Text

ROLES = ("student", "visitor", "admin")


class User(BaseModel, Base):
    __tablename__ = "users"
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="visitor")
    refresh_token = Column(Text, nullable=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User {self.email} role={self.role}>"
