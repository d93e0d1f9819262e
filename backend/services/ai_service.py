# =============================================================================
# CropGenesis Backend
# services/ai_service.py - AI Orchestration Service
#
# Combines prompt construction, the Gemini client, retry with backoff and
# field extraction into the three operations the routes need: crop plan
# generation, follow-up answers and disease analysis.
# =============================================================================

import time
import logging
from dataclasses import dataclass, field

from flask import current_app

from services.errors import AIServiceError
from services.extraction import DiagnosisFields, extract_diagnosis_fields, extract_remedy
from services.gemini_client import text_part, inline_part
from services.prompts import (
    build_crop_plan_prompt, build_follow_up_prompt, build_diagnosis_prompt,
    CONNECTION_TEST_PROMPT
)
from services.retry import retry_call

logger = logging.getLogger(__name__)

SOURCE_GEMINI = 'gemini-ai'

# Generation parameters per operation
CROP_PLAN_GENERATION = {'temperature': 0.6, 'maxOutputTokens': 1200, 'topP': 0.9, 'topK': 40}
FOLLOW_UP_GENERATION = {'temperature': 0.7, 'maxOutputTokens': 500, 'topP': 0.9, 'topK': 40}
DIAGNOSIS_GENERATION = {'temperature': 0.3, 'maxOutputTokens': 1000, 'topP': 0.9, 'topK': 40}
STATUS_GENERATION = {'temperature': 0.3, 'maxOutputTokens': 100}


@dataclass
class DiagnosisResult:
    """Diagnosis text plus the fields extracted from it."""

    diagnosis_text: str
    remedy: str
    fields: DiagnosisFields = field(default_factory=DiagnosisFields)
    source: str = SOURCE_GEMINI


class AIService:
    """
    Orchestrates generative AI calls.

    The client is injected (GeminiClient or UnconfiguredGeminiClient), so
    tests can substitute any object with a generate_content method.
    """

    def __init__(self, client, max_attempts=3, base_delay_ms=1000, sleep=time.sleep):
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.sleep = sleep

    @classmethod
    def from_config(cls, client, config):
        """Build the service with retry settings from a Flask config mapping."""
        return cls(
            client,
            max_attempts=config.get('AI_MAX_ATTEMPTS', 3),
            base_delay_ms=config.get('AI_RETRY_BASE_DELAY_MS', 1000)
        )

    @property
    def is_configured(self):
        return getattr(self.client, 'is_configured', True)

    def _generate(self, parts, generation_config):
        return retry_call(
            lambda: self.client.generate_content(parts, generation_config),
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            sleep=self.sleep
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def generate_crop_plan(self, soil_type, land_size, irrigation, season, language,
                           additional_notes=None, image=None, video=None):
        """
        Generate a crop plan, optionally grounded on a field photo or video.

        Args:
            soil_type, land_size, irrigation, season: Farm inputs
            language: Response language code
            additional_notes: Optional free text
            image: Optional StoredFile sent inline
            video: Optional StoredFile sent inline

        Returns:
            str: Plan text (uncapped)

        Raises:
            AIServiceError: Unconfigured client or upstream failure
        """
        prompt = build_crop_plan_prompt(
            soil_type, land_size, irrigation, season, language,
            additional_notes=additional_notes,
            has_image=image is not None,
            has_video=video is not None
        )
        parts = [text_part(prompt)]
        for media in (image, video):
            if media is not None:
                parts.append(inline_part(media.read_base64(), media.mime_type))

        logger.info(f"Generating crop plan ({soil_type}, {land_size} acres, {season}, {language})")
        plan_text = self._generate(parts, CROP_PLAN_GENERATION)
        logger.info(f"Crop plan generated ({len(plan_text)} chars)")
        return plan_text

    def answer_follow_up(self, question, original_text, language, subject='crop plan'):
        """
        Answer a follow-up question about an earlier plan or diagnosis.

        Returns:
            str: Answer text (uncapped)
        """
        prompt = build_follow_up_prompt(question, original_text, language, subject=subject)
        logger.info(f"Answering {subject} follow-up in {language}")
        return self._generate([text_part(prompt)], FOLLOW_UP_GENERATION)

    def analyze_disease(self, stored_file, language):
        """
        Diagnose a plant disease from an uploaded image or video.

        Args:
            stored_file: StoredFile with the upload
            language: Response language code

        Returns:
            DiagnosisResult: Text, remedy and extracted fields
        """
        prompt = build_diagnosis_prompt(stored_file.kind, language)
        parts = [
            text_part(prompt),
            inline_part(stored_file.read_base64(), stored_file.mime_type)
        ]

        logger.info(f"Analyzing {stored_file.kind} {stored_file.filename} in {language}")
        diagnosis_text = self._generate(parts, DIAGNOSIS_GENERATION)
        fields = extract_diagnosis_fields(diagnosis_text)
        logger.info(
            f"Diagnosis extracted: disease={fields.disease_name!r} "
            f"severity={fields.severity} confidence={fields.confidence}"
        )

        return DiagnosisResult(
            diagnosis_text=diagnosis_text,
            remedy=extract_remedy(diagnosis_text),
            fields=fields
        )

    def check_status(self):
        """
        Report whether the AI backend is usable.

        Returns:
            dict: {'hasApiKey': bool, 'status': str, 'message': str}
        """
        if not self.is_configured:
            return {
                'hasApiKey': False,
                'status': 'not_configured',
                'message': 'Gemini API key is not configured'
            }

        try:
            self._generate([text_part(CONNECTION_TEST_PROMPT)], STATUS_GENERATION)
        except AIServiceError as e:
            logger.warning(f"Gemini connection test failed: {e.message}")
            return {
                'hasApiKey': True,
                'status': 'error',
                'message': f'Gemini AI connection failed: {e.user_message}'
            }

        return {
            'hasApiKey': True,
            'status': 'connected',
            'message': 'Gemini AI is connected and ready'
        }


def get_ai_service():
    """AIService instance registered on the current app by the factory."""
    return current_app.extensions['ai_service']
