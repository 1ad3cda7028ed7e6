from datetime import datetime
from payadmin_api.extensions import db

class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="RESTRICT"), nullable=True)
    user_id       = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    idno = db.Column(db.String(32), unique=True, nullable=False)   # employee number
    first_name  = db.Column(db.String(80), nullable=False)
    middle_name = db.Column(db.String(80), nullable=True)
    last_name   = db.Column(db.String(80), nullable=False)
    suffix      = db.Column(db.String(16), nullable=True)

    status = db.Column(db.String(16), default="active", nullable=False)  # active/inactive

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_dept_id", "department_id"),
        db.Index("ix_emp_status_name", "status", "last_name", "first_name"),
    )

    department = db.relationship("Department", lazy="joined")

    @property
    def full_name(self) -> str:
        parts = [self.last_name + ",", self.first_name]
        if self.middle_name:
            parts.append(self.middle_name)
        if self.suffix:
            parts.append(self.suffix)
        return " ".join(parts)
