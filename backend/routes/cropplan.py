# =============================================================================
# CropGenesis Backend
# routes/cropplan.py - Crop Plan Routes
#
# AI crop plan generation, follow-up questions, listing, retrieval,
# deletion and per-user statistics.
# =============================================================================

from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required, current_user

from extensions import db, limiter
from models import CropPlan
from schemas import CropPlanRequest, PlanFollowUpRequest, PaginationQuery
from services import get_ai_service
from services.ai_service import SOURCE_GEMINI
from uploads import save_crop_plan_uploads, cleanup_files, UploadError
from utils import success_response, error_response, cap_text
from decorators import validate_request, handle_db_errors, log_request, rate_limit_key_user
from constants import PLAN_CONTINUATION_HINT, MAX_FOLLOW_UP_ANSWER_CHARS

# Create blueprint
cropplan_bp = Blueprint('cropplan', __name__)


# =============================================================================
# AI Service Status
# =============================================================================

@cropplan_bp.route('/status', methods=['GET'])
@jwt_required()
def status():
    """
    Check whether the AI service is configured and reachable.

    Returns:
        200: {hasApiKey, status: connected|error|not_configured, message}
    """
    return success_response(data=get_ai_service().check_status())


# =============================================================================
# Generate Crop Plan
# =============================================================================

@cropplan_bp.route('/generate', methods=['POST'])
@jwt_required()
@limiter.limit("10 per minute", key_func=rate_limit_key_user)
@log_request
@validate_request(CropPlanRequest, location='auto')
@handle_db_errors
def generate(payload):
    """
    Generate and store a crop plan.

    Accepts JSON, or multipart form data with an optional field photo
    ("image") and video ("video") that are shown to the model and then
    deleted.

    Request Body:
        soilType (str): Soil type
        landSize (float): Land size in acres (0.1-1000)
        irrigation (str): Irrigation method
        season (str): Growing season
        preferredLanguage (str): Response language (optional, defaults to profile)
        additionalNotes (str): Extra context (optional)
        tags (list): Free-form tags (optional)

    Returns:
        201: {plan, audioURL, source}
        400: Validation or upload error
        503: AI service unavailable
    """
    try:
        media = save_crop_plan_uploads(request.files)
    except UploadError as e:
        return error_response(e.message, status_code=e.status_code)

    language = payload.preferred_language or current_user.language

    try:
        plan_text = get_ai_service().generate_crop_plan(
            soil_type=payload.soil_type,
            land_size=payload.land_size,
            irrigation=payload.irrigation,
            season=payload.season,
            language=language,
            additional_notes=payload.additional_notes,
            image=media['image'],
            video=media['video']
        )
    finally:
        cleanup_files(media.values())

    plan_text = cap_text(
        plan_text.strip(),
        current_app.config['MAX_PLAN_CHARS'],
        suffix=PLAN_CONTINUATION_HINT
    )

    plan = CropPlan(
        user_id=current_user.id,
        plan_text=plan_text,
        plan_audio_url=None,
        soil_type=payload.soil_type,
        land_size=payload.land_size,
        irrigation=payload.irrigation,
        season=payload.season,
        preferred_language=language,
        additional_notes=payload.additional_notes,
        tags=payload.tags
    )
    db.session.add(plan)
    db.session.commit()

    current_app.logger.info(f"Crop plan {plan.id} saved for user {current_user.id}")

    return success_response(
        data={
            'plan': plan.to_dict(),
            'audioURL': plan.plan_audio_url,
            'source': SOURCE_GEMINI
        },
        message='Crop plan generated successfully',
        status_code=201
    )


# =============================================================================
# Follow-up Questions
# =============================================================================

@cropplan_bp.route('/followup', methods=['POST'])
@jwt_required()
@limiter.limit("20 per minute", key_func=rate_limit_key_user)
@validate_request(PlanFollowUpRequest)
@handle_db_errors
def followup(payload):
    """
    Ask a follow-up question about one of the user's plans.

    Request Body:
        planId (int): Plan to ask about
        question (str): Question (1-500 chars)

    Returns:
        200: {answer, audioURL, followUpCount}
        404: Plan not found
        503: AI service unavailable
    """
    plan = CropPlan.get_owned(payload.plan_id, current_user.id)
    if not plan:
        return error_response('Crop plan not found', status_code=404)

    answer = get_ai_service().answer_follow_up(
        payload.question,
        plan.plan_text,
        plan.preferred_language,
        subject='crop plan'
    )
    answer = cap_text(answer.strip(), MAX_FOLLOW_UP_ANSWER_CHARS)

    plan.add_follow_up(payload.question, answer)
    db.session.commit()

    return success_response(
        data={
            'answer': answer,
            'audioURL': None,
            'followUpCount': len(plan.follow_ups)
        },
        message='Follow-up response generated successfully'
    )


# =============================================================================
# List / Get / Delete
# =============================================================================

@cropplan_bp.route('', methods=['GET'])
@jwt_required()
@validate_request(PaginationQuery, location='args')
def list_plans(payload):
    """
    Get the user's crop plans, newest first.

    Query Parameters:
        page (int): Page number (default 1)
        limit (int): Items per page (default 10, max 50)

    Returns:
        200: {plans, pagination}
    """
    plans, pagination = CropPlan.get_user_plans(current_user.id, payload.page, payload.limit)
    return success_response(data={
        'plans': [plan.to_dict() for plan in plans],
        'pagination': pagination
    })


@cropplan_bp.route('/<int:plan_id>', methods=['GET'])
@jwt_required()
def get_plan(plan_id):
    """
    Get one of the user's crop plans.

    Returns:
        200: {plan}
        404: Plan not found
    """
    plan = CropPlan.get_owned(plan_id, current_user.id)
    if not plan:
        return error_response('Crop plan not found', status_code=404)

    return success_response(data={'plan': plan.to_dict()})


@cropplan_bp.route('/<int:plan_id>', methods=['DELETE'])
@jwt_required()
@handle_db_errors
def delete_plan(plan_id):
    """
    Delete one of the user's crop plans and its follow-up thread.

    Returns:
        200: Plan deleted
        404: Plan not found
    """
    plan = CropPlan.get_owned(plan_id, current_user.id)
    if not plan:
        return error_response('Crop plan not found', status_code=404)

    db.session.delete(plan)
    db.session.commit()

    current_app.logger.info(f"Crop plan {plan_id} deleted by user {current_user.id}")

    return success_response(message='Crop plan deleted successfully')


# =============================================================================
# Statistics
# =============================================================================

@cropplan_bp.route('/stats/summary', methods=['GET'])
@jwt_required()
def stats_summary():
    """
    Get the user's crop plan statistics.

    Returns:
        200: {stats: {totalPlans, totalFollowUps, seasons, soilTypes, irrigationTypes}}
    """
    return success_response(data={'stats': CropPlan.stats_for_user(current_user.id)})
