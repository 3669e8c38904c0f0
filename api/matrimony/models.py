from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Index, String, func

from .database import Base


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String(64), primary_key=True)
    gender = Column(String, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    is_visible = Column(Boolean, nullable=False, default=True)
    is_profile_approved = Column(Boolean, nullable=False, default=False)
    last_active_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_user_account_pool", "gender", "is_active", "is_visible", "is_profile_approved"),)


class UserPersonal(Base):
    __tablename__ = "user_personal"

    user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    marital_status = Column(String, nullable=True)
    religion = Column(String, nullable=True)
    community = Column(String, nullable=True)
    country = Column(String, nullable=True)
    state = Column(String, nullable=True)


class UserHealth(Base):
    __tablename__ = "user_health"

    user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    diet = Column(String, nullable=True)
    alcohol = Column(String, nullable=True)
    tobacco = Column(String, nullable=True)


class UserEducation(Base):
    __tablename__ = "user_education"

    user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    highest_education = Column(String, nullable=True)


class UserProfession(Base):
    __tablename__ = "user_profession"

    user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    occupation = Column(String, nullable=True)
    income_bracket = Column(String, nullable=True)


class UserExpectations(Base):
    __tablename__ = "user_expectations"

    user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    expectations = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserBlock(Base):
    __tablename__ = "user_block"

    user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)
    blocked_user_id = Column(String(64), ForeignKey("user_account.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (Index("idx_user_block_blocked", "blocked_user_id"),)
