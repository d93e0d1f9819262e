# =============================================================================
# CropGenesis Backend
# services/prompts.py - Prompt Templates
#
# Builds the instruction text sent to the generative model for crop plans,
# follow-up answers and disease diagnoses.
# =============================================================================

from constants import LANGUAGES, DEFAULT_LANGUAGE

# Crop plan output rules; the SPA renders plain text
PLAIN_TEXT_RULES = (
    'Write plain text only. Do not use the * or # characters anywhere in the '
    'response. Number the sections as 1., 2., 3. and so on and put each section '
    'title on its own line.'
)

# Diagnosis fields are read back from 'Label: value' lines
DIAGNOSIS_TEXT_RULES = (
    'Write plain text only. Do not use the * or # characters anywhere in the '
    'response. Start each section on a new line as the number, the label exactly '
    'as written above, a colon and then the answer on that same line, for '
    'example "5. Severity: high".'
)

CONNECTION_TEST_PROMPT = 'Hello, this is a test. Please respond with "API connection successful".'


def language_name(code):
    """Human-readable language name for a code; unknown codes fall back to English."""
    return LANGUAGES.get(code, LANGUAGES[DEFAULT_LANGUAGE])


def build_crop_plan_prompt(soil_type, land_size, irrigation, season, language,
                           additional_notes=None, has_image=False, has_video=False):
    """
    Build the crop plan instruction.

    Args:
        soil_type: Soil type code
        land_size: Land size in acres
        irrigation: Irrigation method code
        season: Season code
        language: Response language code
        additional_notes: Free-text notes from the farmer
        has_image: A field photo is attached
        has_video: A field video is attached

    Returns:
        str: Prompt text
    """
    media = []
    if has_image:
        media.append('a photo')
    if has_video:
        media.append('a video')
    media_note = ''
    if media:
        media_note = (
            f"\nThe farmer has attached {' and '.join(media)} of the field. "
            'Use what you can see (crop stage, soil condition, water, weeds) '
            'to adjust the recommendations.\n'
        )

    return f"""
You are an expert agricultural advisor helping farmers in India. Generate a comprehensive crop plan based on the following inputs:

Soil Type: {soil_type}
Land Size: {land_size:g} acres
Irrigation: {irrigation}
Season: {season}
Additional Notes: {additional_notes or 'None'}
{media_note}
Please provide a detailed crop plan in {language_name(language)} that includes these 10 sections:

1. Recommended Crops: Suggest 3-5 suitable crops for the given conditions
2. Planting Schedule: When to plant each crop
3. Soil Preparation: How to prepare the soil
4. Fertilizer Requirements: Organic and chemical fertilizer recommendations
5. Irrigation Schedule: Watering frequency and methods
6. Pest Management: Common pests and organic control methods
7. Harvest Timeline: Expected harvest periods
8. Expected Yield: Approximate yield per acre
9. Cost Estimation: Rough cost breakdown for inputs
10. Tips: Additional farming tips and best practices

Make the response practical, easy to understand, and suitable for Indian farming conditions. Use simple language that farmers can easily follow.

{PLAIN_TEXT_RULES} Keep the total response under 800 words.
""".strip()


def build_follow_up_prompt(question, original_text, language, subject='crop plan'):
    """
    Build the follow-up instruction for a question about an earlier answer.

    Args:
        question: The farmer's question
        original_text: The plan or diagnosis text the question refers to
        language: Response language code
        subject: 'crop plan' or 'disease diagnosis'

    Returns:
        str: Prompt text
    """
    return f"""
You are an expert agricultural advisor. A farmer has a follow-up question about their {subject}.

Original {subject.title()}:
{original_text}

Farmer's Question: {question}

Please provide a detailed, helpful answer in {language_name(language)}. Make sure to:
1. Address the specific question directly
2. Provide practical, actionable advice
3. Reference the original {subject} when relevant
4. Use simple language suitable for farmers
5. Include specific recommendations if applicable

Do not use the * or # characters. Keep the response concise but comprehensive (under 300 words).
""".strip()


def build_diagnosis_prompt(file_type, language):
    """
    Build the disease diagnosis instruction for an attached image or video.

    The section labels match what services.extraction looks for.

    Args:
        file_type: 'image' or 'video'
        language: Response language code

    Returns:
        str: Prompt text
    """
    return f"""
You are an expert plant pathologist. Analyze this {file_type} of a crop and provide a comprehensive disease diagnosis.

Please provide your analysis in {language_name(language)} with the following 10 sections:

1. Disease Identification: Name of the disease (if identifiable)
2. Confidence Level: Your confidence in the diagnosis as a percentage, for example 85%
3. Symptoms: Detailed description of visible symptoms
4. Affected Area: Which part of the plant is affected (leaves, stems, roots, fruits, flowers or whole plant)
5. Severity: Rate the severity as one of low, medium, high or critical
6. Cause: What causes this disease
7. Treatment Options: Organic remedies (preferred), chemical treatments (if necessary) and cultural practices
8. Prevention: How to prevent this disease in the future
9. Timeline: How long treatment might take
10. Cost Estimation: Rough cost of treatment per acre in rupees

Keep the section labels in English exactly as written above, even when the rest of the answer is in another language.

Make the response practical and suitable for Indian farming conditions. Use simple language that farmers can understand.

If the {file_type} is unclear or you cannot identify a specific disease, please mention this and provide general plant health advice.

{DIAGNOSIS_TEXT_RULES} Keep the total response under 700 words.
""".strip()
