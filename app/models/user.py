from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from sqlalchemy import func, CheckConstraint
from app.extensions import db, login_manager

# Keep simple text+CHECK for evolvable roles (no DB enum migration pain)
ROLE_USER = "user"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
ROLE_CHOICES = (ROLE_USER, ROLE_MANAGER, ROLE_ADMIN)

class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)  # stored lower-cased
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(50), nullable=False, server_default="")
    last_name = db.Column(db.String(50), nullable=False, server_default="")
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER, server_default=ROLE_USER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # never hard-deleted
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    projects = db.relationship("Project", back_populates="owner", lazy="dynamic")

    __table_args__ = (
        CheckConstraint("role IN ('user','manager','admin')", name="ck_users_role_valid"),
    )

    # helpers
    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def get_id(self) -> str:
        return str(self.id)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (ROLE_MANAGER, ROLE_ADMIN)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return dict(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            role=self.role,
            is_active=self.is_active,
            created_at=self.created_at.isoformat() if self.created_at else None,
            updated_at=self.updated_at.isoformat() if self.updated_at else None,
        )

    def to_public_dict(self) -> dict:
        return dict(id=self.id, first_name=self.first_name, last_name=self.last_name, email=self.email)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"

@login_manager.user_loader
def load_user(user_id: str):
    try:
        user = db.session.get(User, int(user_id))
    except Exception:
        return None
    if user is None or not user.is_active or user.is_deleted:
        return None
    return user
