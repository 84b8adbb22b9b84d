from datetime import datetime

from app.extensions import db


class SystemLog(db.Model):
    """Trilha de auditoria; linhas só são inseridas, nunca alteradas."""

    __tablename__ = "system_logs"

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    user_name = db.Column(db.String(100), nullable=False, default="Sistema")
    user_id = db.Column(db.Integer)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.now)
    previous_status = db.Column(db.String(50))

    def to_dict(self):
        return {
            "id": self.id,
            "action": self.action,
            "description": self.description,
            "user_name": self.user_name,
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "previous_status": self.previous_status,
        }

    def __repr__(self):
        return f"<SystemLog {self.id} {self.action}>"
