from poker import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Action(db.Model):
    """One audited user action. Timestamps are stored as naive UTC."""
    __tablename__ = 'action'
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    user_name = db.Column(db.String(128), nullable=True, index=True)
    room_id = db.Column(db.String(32), nullable=True, index=True)
    details = db.Column(db.Text, nullable=True)  # JSON-encoded dict
    ip = db.Column(db.String(64), nullable=False, default='unknown')
    user_agent = db.Column(db.String(512), nullable=False, default='unknown')
    timestamp = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)

    def to_dict(self):
        try:
            details = json.loads(self.details) if self.details else None
        except ValueError:
            details = None
        return {
            'id': self.id,
            'action': self.action,
            'userName': self.user_name,
            'roomId': self.room_id,
            'details': details,
            'ip': self.ip,
            'userAgent': self.user_agent,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }


class AdminUser(UserMixin):
    """The single admin account, configured through the environment."""

    def __init__(self, username):
        self.id = username
        self.username = username

    @staticmethod
    def check_password(password_hash, password):
        if not password_hash or not password:
            return False
        try:
            return bcrypt.check_password_hash(password_hash, password)
        except ValueError:
            # Malformed hash in configuration
            return False

    def to_dict(self):
        return {
            'username': self.username,
        }
