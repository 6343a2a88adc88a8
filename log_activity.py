import json

from flask import current_app
from flask_login import current_user

from extensions import db
from models import ActivityLog, ahora

SENSITIVE_KEYS = {
    'password', 'currentpassword', 'newpassword', 'password_hash',
    'token', 'accesstoken', 'idtoken',
    'authorization', 'auth', 'secret', 'apikey',
}


def redact(value):
    if isinstance(value, dict):
        return {
            k: '[REDACTED]' if str(k).lower() in SENSITIVE_KEYS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def shallow_diff(before, after):
    before = before or {}
    after = after or {}
    diff = {}
    for key in set(before) | set(after):
        a, b = before.get(key), after.get(key)
        if json.dumps(a, sort_keys=True, default=str) != json.dumps(b, sort_keys=True, default=str):
            diff[key] = {'from': a, 'to': b}
    return diff


def log_activity(action, category=None, details=None, resource_id=None,
                 before=None, after=None, actor=None, tags=None):
    """
    Registra un movimiento en la bitácora.

    Es de mejor esfuerzo: cualquier error se registra en el log de la app y
    se descarta, nunca llega a quien llamó. Usa su propio commit, así que
    debe llamarse DESPUÉS de confirmar la operación que se audita.
    """
    try:
        # Limitar longitudes para evitar truncamiento
        if resource_id is not None:
            resource_id = str(resource_id)[:50]
        if details and len(str(details)) > 500:
            details = str(details)[:500]
        if category and len(str(category)) > 100:
            category = str(category)[:100]
        if action and len(str(action)) > 100:
            action = str(action)[:100]

        if actor is not None:
            user_id = actor.id
        else:
            user_id = current_user.id if current_user and current_user.is_authenticated else None

        changes = None
        if before is not None or after is not None:
            before, after = redact(before), redact(after)
            changes = {'before': before, 'after': after, 'diff': shallow_diff(before, after)}

        log_entry = ActivityLog(
            user_id=user_id,
            action=action,
            category=category,
            details=details,
            resource_id=resource_id,
            changes=changes,
            tags=[str(t) for t in (tags or []) if t],
            timestamp=ahora()
        )

        db.session.add(log_entry)
        db.session.commit()

    except Exception as e:
        current_app.logger.error(f"[AUDIT] Error al registrar actividad '{action}': {e}")
        db.session.rollback()
