# =============================================================================
# CropGenesis Backend
# routes/diagnosis.py - Disease Diagnosis Routes
#
# Image/video upload for AI disease diagnosis, follow-up questions,
# listing, retrieval, deletion, statistics and the disease frequency list.
# =============================================================================

from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required, current_user

from extensions import db, limiter
from models import Diagnosis
from schemas import DiagnosisFollowUpRequest, PaginationQuery
from services import get_ai_service
from uploads import save_diagnosis_upload, cleanup_file, delete_stored_upload, UploadError
from utils import success_response, error_response, cap_text
from decorators import validate_request, handle_db_errors, log_request, rate_limit_key_user
from constants import (
    MAX_DIAGNOSIS_CHARS,
    MAX_DISEASE_NAME_CHARS,
    MAX_FOLLOW_UP_ANSWER_CHARS
)

# Create blueprint
diagnosis_bp = Blueprint('diagnosis', __name__)


def delete_diagnosis(diagnosis):
    """
    Mark a diagnosis for deletion.

    Returns:
        str: Stored filename of its upload, to remove once the delete
             is committed
    """
    db.session.delete(diagnosis)
    return diagnosis.stored_filename


# =============================================================================
# Upload & Analyze
# =============================================================================

@diagnosis_bp.route('/upload', methods=['POST'])
@jwt_required()
@limiter.limit("10 per minute", key_func=rate_limit_key_user)
@log_request
@handle_db_errors
def upload():
    """
    Upload a crop image or video for disease diagnosis.

    Form Data:
        file: JPEG/PNG image or MP4/AVI/MOV video

    Returns:
        201: {diagnosis, audioURL}
        400: Missing file, invalid type or file too large
        503: AI service unavailable
    """
    try:
        stored = save_diagnosis_upload(request.files)
    except UploadError as e:
        return error_response(e.message, status_code=e.status_code)

    try:
        result = get_ai_service().analyze_disease(stored, current_user.language)

        fields = result.fields
        diagnosis = Diagnosis(
            user_id=current_user.id,
            file_type=stored.kind,
            image_url=stored.url if stored.kind == 'image' else None,
            video_url=stored.url if stored.kind == 'video' else None,
            stored_filename=stored.filename,
            file_name=stored.original_name,
            file_size=stored.size,
            mime_type=stored.mime_type,
            diagnosis_text=cap_text(result.diagnosis_text.strip(), MAX_DIAGNOSIS_CHARS),
            remedy=cap_text(result.remedy.strip(), MAX_DIAGNOSIS_CHARS),
            audio_url=None,
            confidence=fields.confidence,
            disease_name=cap_text(fields.disease_name, MAX_DISEASE_NAME_CHARS),
            severity=fields.severity,
            affected_area=fields.affected_area,
            treatment_type=fields.treatment_type,
            estimated_cost=fields.estimated_cost,
            estimated_time=fields.estimated_time,
            tags=[]
        )
        db.session.add(diagnosis)
        db.session.commit()
    except Exception:
        # Nothing references the file unless the record was committed
        db.session.rollback()
        cleanup_file(stored.path)
        raise

    current_app.logger.info(
        f"Diagnosis {diagnosis.id} saved for user {current_user.id}: "
        f"{diagnosis.disease_name} ({diagnosis.severity})"
    )

    return success_response(
        data={
            'diagnosis': diagnosis.to_dict(),
            'audioURL': diagnosis.audio_url
        },
        message='Disease diagnosis completed successfully',
        status_code=201
    )


# =============================================================================
# Follow-up Questions
# =============================================================================

@diagnosis_bp.route('/followup', methods=['POST'])
@jwt_required()
@limiter.limit("20 per minute", key_func=rate_limit_key_user)
@validate_request(DiagnosisFollowUpRequest)
@handle_db_errors
def followup(payload):
    """
    Ask a follow-up question about one of the user's diagnoses.

    Request Body:
        diagnosisId (int): Diagnosis to ask about
        question (str): Question (1-1000 chars)

    Returns:
        200: {answer, language, followUpCount}
        404: Diagnosis not found
        503: AI service unavailable
    """
    diagnosis = Diagnosis.get_owned(payload.diagnosis_id, current_user.id)
    if not diagnosis:
        return error_response('Diagnosis not found', status_code=404)

    language = current_user.language
    answer = get_ai_service().answer_follow_up(
        payload.question,
        diagnosis.diagnosis_text,
        language,
        subject='disease diagnosis'
    )
    answer = cap_text(answer.strip(), MAX_FOLLOW_UP_ANSWER_CHARS)

    diagnosis.add_follow_up(payload.question, answer)
    db.session.commit()

    return success_response(data={
        'answer': answer,
        'language': language,
        'followUpCount': len(diagnosis.follow_ups)
    })


# =============================================================================
# List / Get / Delete
# =============================================================================

@diagnosis_bp.route('', methods=['GET'])
@jwt_required()
@validate_request(PaginationQuery, location='args')
def list_diagnoses(payload):
    """
    Get the user's diagnoses, newest first.

    Query Parameters:
        page (int): Page number (default 1)
        limit (int): Items per page (default 10, max 50)

    Returns:
        200: {diagnoses, pagination}
    """
    diagnoses, pagination = Diagnosis.get_user_diagnoses(
        current_user.id, payload.page, payload.limit
    )
    return success_response(data={
        'diagnoses': [diagnosis.to_dict() for diagnosis in diagnoses],
        'pagination': pagination
    })


@diagnosis_bp.route('/<int:diagnosis_id>', methods=['GET'])
@jwt_required()
def get_diagnosis(diagnosis_id):
    """
    Get one of the user's diagnoses.

    Returns:
        200: {diagnosis}
        404: Diagnosis not found
    """
    diagnosis = Diagnosis.get_owned(diagnosis_id, current_user.id)
    if not diagnosis:
        return error_response('Diagnosis not found', status_code=404)

    return success_response(data={'diagnosis': diagnosis.to_dict()})


@diagnosis_bp.route('/<int:diagnosis_id>', methods=['DELETE'])
@jwt_required()
@handle_db_errors
def remove_diagnosis(diagnosis_id):
    """
    Delete one of the user's diagnoses and its uploaded file.

    Returns:
        200: Diagnosis deleted
        404: Diagnosis not found
    """
    diagnosis = Diagnosis.get_owned(diagnosis_id, current_user.id)
    if not diagnosis:
        return error_response('Diagnosis not found', status_code=404)

    stored_filename = delete_diagnosis(diagnosis)
    db.session.commit()
    delete_stored_upload(stored_filename)

    current_app.logger.info(f"Diagnosis {diagnosis_id} deleted by user {current_user.id}")

    return success_response(message='Diagnosis deleted successfully')


# =============================================================================
# Statistics
# =============================================================================

@diagnosis_bp.route('/stats/summary', methods=['GET'])
@jwt_required()
def stats_summary():
    """
    Get the user's diagnosis statistics.

    Returns:
        200: {stats: {totalDiagnoses, highSeverity, criticalSeverity,
              avgConfidence, bySeverity}}
    """
    return success_response(data={'stats': Diagnosis.stats_for_user(current_user.id)})


@diagnosis_bp.route('/diseases/list', methods=['GET'])
@jwt_required()
def diseases_list():
    """
    Get the diseases found in the user's diagnoses, most frequent first.

    Returns:
        200: {diseases: [{diseaseName, count, severity, lastOccurrence}]}
    """
    return success_response(data={'diseases': Diagnosis.disease_list(current_user.id)})
