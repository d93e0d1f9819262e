# =============================================================================
# CropGenesis Backend
# models.py - Database Models
#
# SQLAlchemy ORM models for users, crop plans, disease diagnoses and the
# append-only follow-up threads attached to plans and diagnoses.
# Includes per-user pagination and aggregate statistics queries.
# =============================================================================

import math
from datetime import datetime, timezone

from extensions import db, bcrypt
from constants import (
    DEFAULT_LANGUAGE,
    DEFAULT_SEVERITY,
    DEFAULT_AFFECTED_AREA,
    DEFAULT_TREATMENT_TYPE,
    HISTORY_PREVIEW_CHARS
)
from utils import preview


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    return value.isoformat() if value else None


def pagination_meta(page, limit, total):
    """
    Build pagination metadata in the shape the SPA expects.

    Args:
        page: Current page number (1-based)
        limit: Items per page
        total: Total number of items

    Returns:
        dict: Pagination metadata
    """
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        'currentPage': page,
        'totalPages': total_pages,
        'totalCount': total,
        'hasNextPage': page < total_pages,
        'hasPrevPage': page > 1
    }


class User(db.Model):
    """
    Farmer account.

    Identified by a unique 10-digit phone number. Owns crop plans and
    diagnoses through one-to-many relationships.
    """
    __tablename__ = 'users'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Authentication Fields
    phone = db.Column(db.String(10), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    # Profile Fields
    name = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(200), nullable=False)
    language = db.Column(db.String(5), nullable=False, default=DEFAULT_LANGUAGE)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    # Relationships
    crop_plans = db.relationship(
        'CropPlan',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )
    diagnoses = db.relationship(
        'Diagnosis',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        """
        Serialize user object to dictionary for API responses.

        The password hash is never included.

        Returns:
            dict: User data dictionary
        """
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'location': self.location,
            'language': self.language,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
            'lastLogin': isoformat(self.last_login)
        }

    def __repr__(self):
        return f'<User {self.phone}>'


class FollowUpMixin:
    """Columns shared by both follow-up thread tables."""

    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    answer = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'question': self.question,
            'answer': self.answer,
            'timestamp': isoformat(self.timestamp)
        }


class CropPlanFollowUp(FollowUpMixin, db.Model):
    __tablename__ = 'crop_plan_follow_ups'

    plan_id = db.Column(
        db.Integer,
        db.ForeignKey('crop_plans.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )


class DiagnosisFollowUp(FollowUpMixin, db.Model):
    __tablename__ = 'diagnosis_follow_ups'

    diagnosis_id = db.Column(
        db.Integer,
        db.ForeignKey('diagnoses.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )


class CropPlan(db.Model):
    """
    AI-generated crop plan.

    Stores the generated plan text together with a snapshot of the farm
    inputs it was generated from. Follow-up questions are appended to an
    ordered thread and never edited.
    """
    __tablename__ = 'crop_plans'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Owner
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True
    )

    # Generated Content
    plan_text = db.Column(db.Text, nullable=False)
    plan_audio_url = db.Column(db.String(500), nullable=True)

    # Input Snapshot
    soil_type = db.Column(db.String(20), nullable=False, index=True)
    land_size = db.Column(db.Float, nullable=False)
    irrigation = db.Column(db.String(20), nullable=False)
    season = db.Column(db.String(20), nullable=False, index=True)
    preferred_language = db.Column(db.String(5), nullable=False, default=DEFAULT_LANGUAGE)
    additional_notes = db.Column(db.Text, default='')

    # Free-form tags
    tags = db.Column(db.JSON, default=list)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Follow-up thread (insertion order)
    follow_ups = db.relationship(
        'CropPlanFollowUp',
        order_by='CropPlanFollowUp.id',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.Index('idx_crop_plans_user_created', 'user_id', 'created_at'),
    )

    def add_follow_up(self, question, answer):
        """Append a question/answer pair to the plan's thread."""
        follow_up = CropPlanFollowUp(question=question, answer=answer)
        self.follow_ups.append(follow_up)
        return follow_up

    @property
    def inputs(self):
        return {
            'soilType': self.soil_type,
            'landSize': self.land_size,
            'irrigation': self.irrigation,
            'season': self.season,
            'preferredLanguage': self.preferred_language,
            'additionalNotes': self.additional_notes or ''
        }

    def to_dict(self):
        """
        Serialize crop plan to dictionary for API responses.

        Returns:
            dict: Crop plan data dictionary
        """
        return {
            'id': self.id,
            'userId': self.user_id,
            'planText': self.plan_text,
            'planAudioURL': self.plan_audio_url,
            'inputs': self.inputs,
            'followUpQuestions': [f.to_dict() for f in self.follow_ups],
            'tags': list(self.tags or []),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at)
        }

    def history_item(self):
        """Entry for the merged history timeline."""
        return {
            'id': self.id,
            'type': 'crop-plan',
            'title': f'Crop Plan - {self.season} Season',
            'description': preview(self.plan_text, HISTORY_PREVIEW_CHARS),
            'date': isoformat(self.created_at),
            'data': self.to_dict()
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @classmethod
    def get_owned(cls, plan_id, user_id):
        """Return the plan only if it belongs to the user, else None."""
        return cls.query.filter_by(id=plan_id, user_id=user_id).first()

    @classmethod
    def get_user_plans(cls, user_id, page=1, limit=10):
        """
        Get a page of the user's plans, newest first.

        Returns:
            tuple: (list of CropPlan, pagination metadata dict)
        """
        query = cls.query.filter_by(user_id=user_id).order_by(
            cls.created_at.desc(), cls.id.desc()
        )
        pagination = query.paginate(page=page, per_page=limit, error_out=False)
        return pagination.items, pagination_meta(page, limit, pagination.total)

    @classmethod
    def stats_for_user(cls, user_id):
        """
        Aggregate statistics over a user's plans, computed in the database.

        Returns:
            dict: totalPlans, totalFollowUps, seasons, soilTypes, irrigationTypes
        """
        total_plans = db.session.query(db.func.count(cls.id))\
            .filter(cls.user_id == user_id).scalar() or 0

        total_follow_ups = db.session.query(db.func.count(CropPlanFollowUp.id))\
            .join(cls, CropPlanFollowUp.plan_id == cls.id)\
            .filter(cls.user_id == user_id).scalar() or 0

        def distinct_values(column):
            rows = db.session.query(column).filter(cls.user_id == user_id)\
                .distinct().order_by(column).all()
            return [value for (value,) in rows]

        return {
            'totalPlans': total_plans,
            'totalFollowUps': total_follow_ups,
            'seasons': distinct_values(cls.season),
            'soilTypes': distinct_values(cls.soil_type),
            'irrigationTypes': distinct_values(cls.irrigation)
        }

    def __repr__(self):
        return f'<CropPlan {self.id}: {self.season} / {self.soil_type}>'


class Diagnosis(db.Model):
    """
    Plant disease diagnosis for an uploaded image or video.

    Stores the model's free-text diagnosis plus structured fields extracted
    from it on a best-effort basis. The uploaded file lives on disk and is
    removed together with the record.
    """
    __tablename__ = 'diagnoses'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Owner
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True
    )

    # Uploaded Media
    file_type = db.Column(db.String(10), nullable=False)  # image or video
    image_url = db.Column(db.String(500), nullable=True)
    video_url = db.Column(db.String(500), nullable=True)
    stored_filename = db.Column(db.String(255), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    mime_type = db.Column(db.String(50), nullable=True)

    # Generated Content
    diagnosis_text = db.Column(db.Text, nullable=False)
    remedy = db.Column(db.Text, nullable=False)
    audio_url = db.Column(db.String(500), nullable=True)

    # Extracted Fields
    confidence = db.Column(db.Float, nullable=True)
    disease_name = db.Column(db.String(500), nullable=True, index=True)
    severity = db.Column(db.String(20), nullable=False, default=DEFAULT_SEVERITY, index=True)
    affected_area = db.Column(db.String(20), nullable=False, default=DEFAULT_AFFECTED_AREA, index=True)
    treatment_type = db.Column(db.String(20), nullable=False, default=DEFAULT_TREATMENT_TYPE)
    estimated_cost = db.Column(db.Float, nullable=True)
    estimated_time = db.Column(db.String(200), nullable=True)

    # Free-form tags
    tags = db.Column(db.JSON, default=list)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Follow-up thread (insertion order)
    follow_ups = db.relationship(
        'DiagnosisFollowUp',
        order_by='DiagnosisFollowUp.id',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.Index('idx_diagnoses_user_created', 'user_id', 'created_at'),
    )

    def add_follow_up(self, question, answer):
        """Append a question/answer pair to the diagnosis thread."""
        follow_up = DiagnosisFollowUp(question=question, answer=answer)
        self.follow_ups.append(follow_up)
        return follow_up

    def to_dict(self):
        """
        Serialize diagnosis to dictionary for API responses.

        Returns:
            dict: Diagnosis data dictionary
        """
        return {
            'id': self.id,
            'userId': self.user_id,
            'fileType': self.file_type,
            'imageURL': self.image_url,
            'videoURL': self.video_url,
            'fileName': self.file_name,
            'fileSize': self.file_size,
            'mimeType': self.mime_type,
            'diagnosisText': self.diagnosis_text,
            'remedy': self.remedy,
            'audioURL': self.audio_url,
            'confidence': self.confidence,
            'diseaseName': self.disease_name,
            'severity': self.severity,
            'affectedArea': self.affected_area,
            'treatmentType': self.treatment_type,
            'estimatedCost': self.estimated_cost,
            'estimatedTime': self.estimated_time,
            'tags': list(self.tags or []),
            'followUpQuestions': [f.to_dict() for f in self.follow_ups],
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at)
        }

    def history_item(self):
        """Entry for the merged history timeline."""
        return {
            'id': self.id,
            'type': 'diagnosis',
            'title': self.disease_name or 'Disease Diagnosis',
            'description': preview(self.diagnosis_text, HISTORY_PREVIEW_CHARS),
            'date': isoformat(self.created_at),
            'data': self.to_dict()
        }

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @classmethod
    def get_owned(cls, diagnosis_id, user_id):
        """Return the diagnosis only if it belongs to the user, else None."""
        return cls.query.filter_by(id=diagnosis_id, user_id=user_id).first()

    @classmethod
    def get_user_diagnoses(cls, user_id, page=1, limit=10):
        """
        Get a page of the user's diagnoses, newest first.

        Returns:
            tuple: (list of Diagnosis, pagination metadata dict)
        """
        query = cls.query.filter_by(user_id=user_id).order_by(
            cls.created_at.desc(), cls.id.desc()
        )
        pagination = query.paginate(page=page, per_page=limit, error_out=False)
        return pagination.items, pagination_meta(page, limit, pagination.total)

    @classmethod
    def stats_for_user(cls, user_id):
        """
        Aggregate statistics over a user's diagnoses, computed in the database.

        Returns:
            dict: totalDiagnoses, highSeverity, criticalSeverity,
                  avgConfidence, bySeverity
        """
        total, high, critical, avg_confidence = db.session.query(
            db.func.count(cls.id),
            db.func.sum(db.case((cls.severity == 'high', 1), else_=0)),
            db.func.sum(db.case((cls.severity == 'critical', 1), else_=0)),
            db.func.avg(cls.confidence)
        ).filter(cls.user_id == user_id).one()

        severity_rows = db.session.query(
            cls.severity,
            db.func.count(cls.id)
        ).filter(cls.user_id == user_id).group_by(cls.severity).all()

        return {
            'totalDiagnoses': total or 0,
            'highSeverity': int(high or 0),
            'criticalSeverity': int(critical or 0),
            'avgConfidence': round(float(avg_confidence), 2) if avg_confidence is not None else 0,
            'bySeverity': {severity: count for severity, count in severity_rows}
        }

    @classmethod
    def disease_list(cls, user_id):
        """
        Diseases seen in the user's diagnoses, most frequent first.

        Severity is taken from the most recent diagnosis of each disease.

        Returns:
            list: dicts with diseaseName, count, severity, lastOccurrence
        """
        scope = (cls.user_id == user_id, cls.disease_name.isnot(None))

        latest = db.session.query(
            cls.disease_name.label('disease_name'),
            cls.severity.label('severity'),
            db.func.row_number().over(
                partition_by=cls.disease_name,
                order_by=(cls.created_at.desc(), cls.id.desc())
            ).label('recency')
        ).filter(*scope).subquery()

        rows = db.session.query(
            cls.disease_name,
            db.func.count(cls.id).label('count'),
            latest.c.severity,
            db.func.max(cls.created_at).label('last_occurrence')
        ).join(
            latest,
            db.and_(latest.c.disease_name == cls.disease_name, latest.c.recency == 1)
        ).filter(*scope)\
         .group_by(cls.disease_name, latest.c.severity)\
         .order_by(db.desc('count'), cls.disease_name).all()

        return [
            {
                'diseaseName': disease_name,
                'count': count,
                'severity': severity,
                'lastOccurrence': isoformat(last_occurrence)
            }
            for disease_name, count, severity, last_occurrence in rows
        ]

    def __repr__(self):
        return f'<Diagnosis {self.id}: {self.disease_name} ({self.severity})>'
