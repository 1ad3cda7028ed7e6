from datetime import datetime
from payadmin_api.extensions import db

CATEGORY_ENUM = db.Enum("benefit", "deduction", name="adjustment_category_enum")
CUTOFF_ENUM = db.Enum("1st", "2nd", name="cutoff_label_enum")


class AdjustmentEntry(db.Model):
    """One employee's benefit or deduction line items for one half-month cutoff."""

    __tablename__ = "adjustment_entries"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False)
    category = db.Column(CATEGORY_ENUM, nullable=False)
    cutoff = db.Column(CUTOFF_ENUM, nullable=False)
    period_date = db.Column(db.Date, nullable=False)  # anchor: 15th or last day of month

    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_posted = db.Column(db.Boolean, nullable=False, default=False)
    posted_at = db.Column(db.DateTime, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    posted_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "category", "cutoff", "period_date", name="uq_adj_entry_emp_cat_period"),
        db.Index("ix_adj_entry_period", "category", "cutoff", "period_date", "is_posted"),
    )

    lines = db.relationship(
        "AdjustmentEntryLine",
        back_populates="entry",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="AdjustmentEntryLine.id",
    )

    def values(self) -> dict:
        return {ln.field_key: ln.amount for ln in self.lines}


class AdjustmentEntryLine(db.Model):
    """A single field value of an entry. Patches touch exactly one of these rows."""

    __tablename__ = "adjustment_entry_lines"

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("adjustment_entries.id", ondelete="CASCADE"), nullable=False)
    field_key = db.Column(db.String(40), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint("entry_id", "field_key", name="uq_adj_line_entry_field"),
    )

    entry = db.relationship("AdjustmentEntry", back_populates="lines")


class DefaultTemplate(db.Model):
    """Saved field values used to seed new entries for an (employee, category) pair."""

    __tablename__ = "default_templates"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    category = db.Column(CATEGORY_ENUM, nullable=False)
    values_json = db.Column(db.JSON, nullable=False, default=dict)  # {"allowances": "500.00", ...}

    source_entry_id = db.Column(db.Integer, db.ForeignKey("adjustment_entries.id", ondelete="SET NULL"), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "category", name="uq_default_template_emp_cat"),
    )
