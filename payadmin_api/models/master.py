from datetime import datetime

from payadmin_api.extensions import db


class Department(db.Model):
    """Department taxonomy; owned by the HR directory, read-only to the ledger."""

    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
