# =============================================================================
# CropGenesis Backend
# routes/history.py - History Routes
#
# Merged timeline of the user's crop plans and diagnoses, with single-item
# deletion, bulk clearing and combined statistics.
# =============================================================================

from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required, current_user

from extensions import db, limiter
from models import CropPlan, Diagnosis, pagination_meta, isoformat
from schemas import HistoryQuery, ClearHistoryRequest
from utils import success_response, error_response
from decorators import validate_request, handle_db_errors
from routes.diagnosis import delete_diagnosis
from uploads import delete_stored_upload

# Create blueprint
history_bp = Blueprint('history', __name__)


def newest_first(model, user_id):
    return model.query.filter_by(user_id=user_id).order_by(
        model.created_at.desc(), model.id.desc()
    )


def merged_history(user_id, page, limit):
    """
    One page of plans and diagnoses interleaved by creation time.

    Only the newest page * limit rows of each table can appear on the
    requested page, so nothing beyond that is loaded.

    Returns:
        tuple: (list of history items, total count)
    """
    window = page * limit
    plans = newest_first(CropPlan, user_id).limit(window).all()
    diagnoses = newest_first(Diagnosis, user_id).limit(window).all()

    records = sorted(
        plans + diagnoses,
        key=lambda record: record.created_at,
        reverse=True
    )
    offset = (page - 1) * limit
    items = [record.history_item() for record in records[offset:offset + limit]]

    total = CropPlan.query.filter_by(user_id=user_id).count() + \
        Diagnosis.query.filter_by(user_id=user_id).count()
    return items, total


# =============================================================================
# Get History
# =============================================================================

@history_bp.route('/get', methods=['GET'])
@jwt_required()
@limiter.limit("60 per minute")
@validate_request(HistoryQuery, location='args')
def get_history(payload):
    """
    Get the user's history, newest first.

    Query Parameters:
        page (int): Page number (default 1)
        limit (int): Items per page (default 20, max 50)
        type (str): 'crop-plans' or 'diagnoses' (optional, both by default)

    Returns:
        200: {history, pagination}
    """
    page, limit = payload.page, payload.limit

    if payload.type is None:
        items, total = merged_history(current_user.id, page, limit)
    else:
        model = CropPlan if payload.type == 'crop-plans' else Diagnosis
        pagination = newest_first(model, current_user.id).paginate(
            page=page, per_page=limit, error_out=False
        )
        items = [record.history_item() for record in pagination.items]
        total = pagination.total

    return success_response(data={
        'history': items,
        'pagination': pagination_meta(page, limit, total)
    })


# =============================================================================
# Delete History Item
# =============================================================================

@history_bp.route('/delete/<item_type>/<int:item_id>', methods=['DELETE'])
@jwt_required()
@handle_db_errors
def delete_item(item_type, item_id):
    """
    Delete a single crop plan or diagnosis.

    Args:
        item_type: 'crop-plan' or 'diagnosis'
        item_id: Record ID

    Returns:
        200: Item deleted
        400: Unknown item type
        404: Item not found
    """
    if item_type == 'crop-plan':
        record = CropPlan.get_owned(item_id, current_user.id)
    elif item_type == 'diagnosis':
        record = Diagnosis.get_owned(item_id, current_user.id)
    else:
        return error_response(
            'Invalid type. Must be "crop-plan" or "diagnosis"',
            status_code=400
        )

    if not record:
        return error_response('History item not found', status_code=404)

    stored_filename = None
    if item_type == 'diagnosis':
        stored_filename = delete_diagnosis(record)
    else:
        db.session.delete(record)
    db.session.commit()
    delete_stored_upload(stored_filename)

    current_app.logger.info(f"History item {item_type}/{item_id} deleted by user {current_user.id}")

    label = 'Crop plan' if item_type == 'crop-plan' else 'Diagnosis'
    return success_response(message=f'{label} deleted successfully')


# =============================================================================
# Clear History
# =============================================================================

@history_bp.route('/clear', methods=['DELETE'])
@jwt_required()
@validate_request(ClearHistoryRequest)
@handle_db_errors
def clear_history(payload):
    """
    Delete all of the user's history, or only one kind of it.

    Request Body:
        type (str): 'crop-plans' or 'diagnoses' (optional, both by default)

    Returns:
        200: {deletedPlans, deletedDiagnoses}
    """
    deleted_plans = 0
    stored_filenames = []

    if payload.type in (None, 'crop-plans'):
        for plan in CropPlan.query.filter_by(user_id=current_user.id).all():
            db.session.delete(plan)
            deleted_plans += 1

    if payload.type in (None, 'diagnoses'):
        for diagnosis in Diagnosis.query.filter_by(user_id=current_user.id).all():
            stored_filenames.append(delete_diagnosis(diagnosis))

    db.session.commit()

    for stored_filename in stored_filenames:
        delete_stored_upload(stored_filename)
    deleted_diagnoses = len(stored_filenames)

    current_app.logger.info(
        f"History cleared for user {current_user.id}: "
        f"{deleted_plans} plans, {deleted_diagnoses} diagnoses"
    )

    return success_response(
        data={'deletedPlans': deleted_plans, 'deletedDiagnoses': deleted_diagnoses},
        message='History cleared successfully'
    )


# =============================================================================
# Statistics
# =============================================================================

@history_bp.route('/stats', methods=['GET'])
@jwt_required()
def stats():
    """
    Get combined crop plan and diagnosis statistics.

    Returns:
        200: {cropPlans, diagnoses, total: {items, lastActivity}}
    """
    plan_stats = CropPlan.stats_for_user(current_user.id)
    diagnosis_stats = Diagnosis.stats_for_user(current_user.id)

    last_plan = db.session.query(db.func.max(CropPlan.created_at))\
        .filter(CropPlan.user_id == current_user.id).scalar()
    last_diagnosis = db.session.query(db.func.max(Diagnosis.created_at))\
        .filter(Diagnosis.user_id == current_user.id).scalar()
    activity = [value for value in (last_plan, last_diagnosis) if value is not None]

    return success_response(data={
        'cropPlans': plan_stats,
        'diagnoses': diagnosis_stats,
        'total': {
            'items': plan_stats['totalPlans'] + diagnosis_stats['totalDiagnoses'],
            'lastActivity': isoformat(max(activity)) if activity else None
        }
    })
