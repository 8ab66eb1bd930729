"""Audit log of user actions.

Writes are best-effort: ``log_action`` never raises into the caller and, by
default, hands the insert to a Socket.IO background task so a slow or broken
database cannot stall a room event.
"""

import functools
import json
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from poker import db
from poker.models import Action

logger = logging.getLogger(__name__)


def _best_effort(default):
    """Turn a database error in an admin query into an empty result."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.error("[audit-query-failed] query=%s error=%s", fn.__name__, exc)
                return default()
        return wrapper
    return decorator


class AuditLogger:
    def __init__(self, app=None, socketio=None):
        self.app = app
        self.socketio = socketio
        if app is not None:
            self.init_app(app, socketio)

    def init_app(self, app, socketio=None):
        self.app = app
        self.socketio = socketio
        app.extensions['audit_logger'] = self

    @property
    def synchronous(self) -> bool:
        return bool(self.app and self.app.config.get('AUDIT_LOG_SYNC'))

    def log_action(self, action: str, user_name: Optional[str] = None, room_id: Optional[str] = None,
                   details: Optional[Dict[str, Any]] = None, ip: Optional[str] = None,
                   user_agent: Optional[str] = None) -> None:
        entry = {
            'action': action,
            'user_name': user_name or None,
            'room_id': room_id or None,
            'details': json.dumps(details) if details else None,
            'ip': ip or 'unknown',
            'user_agent': user_agent or 'unknown',
        }
        if self.app is None:
            logger.info("[audit-console] %s", entry)
            return
        if self.synchronous or self.socketio is None:
            self._write(entry)
            return
        try:
            self.socketio.start_background_task(self._write, entry)
        except Exception:
            logger.exception("[audit-failed] could not schedule write for %s", action)

    def _write(self, entry: Dict[str, Any]) -> None:
        try:
            with self.app.app_context():
                try:
                    db.session.add(Action(**entry))
                    db.session.commit()
                except SQLAlchemyError as exc:
                    db.session.rollback()
                    logger.error("[audit-failed] action=%s error=%s", entry.get('action'), exc)
        except Exception:
            logger.exception("[audit-failed] action=%s", entry.get('action'))

    # ---- queries used by the admin panel ----

    @_best_effort(list)
    def actions_by_date(self, start: date, end: Optional[date] = None) -> List[Dict[str, Any]]:
        """All actions from the start of ``start`` to the end of ``end`` (inclusive)."""
        end = end or start
        lower = datetime.combine(start, time.min)
        upper = datetime.combine(end + timedelta(days=1), time.min)
        rows = (Action.query
                .filter(Action.timestamp >= lower, Action.timestamp < upper)
                .order_by(Action.timestamp.desc(), Action.id.desc())
                .all())
        return [r.to_dict() for r in rows]

    @_best_effort(list)
    def actions_by_user(self, user_name: str, limit: int = 100) -> List[Dict[str, Any]]:
        rows = (Action.query
                .filter_by(user_name=user_name)
                .order_by(Action.timestamp.desc(), Action.id.desc())
                .limit(limit)
                .all())
        return [r.to_dict() for r in rows]

    @_best_effort(list)
    def recent_actions(self, limit: int = 50) -> List[Dict[str, Any]]:
        rows = (Action.query
                .order_by(Action.timestamp.desc(), Action.id.desc())
                .limit(limit)
                .all())
        return [r.to_dict() for r in rows]

    @_best_effort(dict)
    def summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or datetime.now(timezone.utc).date()
        lower = datetime.combine(today, time.min)
        upper = lower + timedelta(days=1)
        top = (db.session.query(Action.action, func.count(Action.id).label('count'))
               .group_by(Action.action)
               .order_by(func.count(Action.id).desc())
               .limit(5)
               .all())
        return {
            'todayActions': Action.query.filter(Action.timestamp >= lower, Action.timestamp < upper).count(),
            'totalActions': Action.query.count(),
            'uniqueUsersCount': db.session.query(func.count(func.distinct(Action.user_name)))
                                          .filter(Action.user_name.isnot(None)).scalar() or 0,
            'topActions': [{'action': name, 'count': count} for name, count in top],
        }
