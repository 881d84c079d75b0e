from backoffice_api.extensions import db, utcnow


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    institution_id = db.Column(db.Integer, nullable=True, index=True)
    actor_id = db.Column(db.Integer, nullable=True)
    module = db.Column(db.String(60), nullable=False)
    action = db.Column(db.String(40), nullable=False)
    entity = db.Column(db.String(60), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)
    before_json = db.Column(db.JSON)
    after_json = db.Column(db.JSON)
    note = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
