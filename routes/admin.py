# routes/admin.py
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required
from sqlalchemy import or_

from decorators import super_required
from extensions import db
from models import ActivityLog

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route('/activity-log')
@login_required
@super_required
def view_activity_log():
    filters = request.args.copy()

    # 'page' no es un filtro
    try:
        page = int(filters.pop('page', 1))
    except ValueError:
        page = 1

    user_id = filters.get('user_id')
    category = filters.get('category')
    resource_id = filters.get('resource_id')
    start_date = filters.get('start_date')
    end_date = filters.get('end_date')
    search_term = filters.get('search_term')

    query = ActivityLog.query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())

    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if category:
        query = query.filter(ActivityLog.category == category)
    if resource_id:
        query = query.filter(ActivityLog.resource_id == str(resource_id))
    if start_date:
        try:
            query = query.filter(ActivityLog.timestamp >= datetime.strptime(start_date, '%Y-%m-%d'))
        except ValueError:
            pass  # fecha inválida: se ignora
    if end_date:
        try:
            # +1 día para incluir todo el día
            end_date_dt = datetime.strptime(end_date, '%Y-%m-%d') + timedelta(days=1)
            query = query.filter(ActivityLog.timestamp < end_date_dt)
        except ValueError:
            pass
    if search_term:
        like_term = f"%{search_term}%"
        query = query.filter(
            or_(
                ActivityLog.action.like(like_term),
                ActivityLog.details.like(like_term),
                ActivityLog.resource_id.like(like_term)
            )
        )

    categories_db = db.session.query(ActivityLog.category).distinct().order_by(ActivityLog.category).all()
    categories = [c[0] for c in categories_db if c[0]]

    logs = query.paginate(page=page, per_page=current_app.config['ACTIVITY_LOG_PER_PAGE'], error_out=False)

    return jsonify({
        'success': True,
        'items': [log.to_dict() for log in logs.items],
        'pagination': {
            'page': logs.page,
            'limit': logs.per_page,
            'total': logs.total,
            'pages': logs.pages,
        },
        'categories': categories,
        'filters': filters.to_dict(),
    })
