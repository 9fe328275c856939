from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from workscore.database import Base


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    role = Column(String, nullable=False, default="employee")  # admin, manager, employee
    is_active = Column(Boolean, nullable=False, default=True)
