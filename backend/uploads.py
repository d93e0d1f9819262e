# =============================================================================
# CropGenesis Backend
# uploads.py - File Upload Handling
#
# Saves multipart uploads to the upload folder with collision-resistant names,
# enforces the MIME allow-lists and the per-file size ceiling, and removes
# anything already written when a request's uploads fail validation.
# =============================================================================

import os
import base64
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from werkzeug.utils import secure_filename

from constants import IMAGE_MIME_TYPES, VIDEO_MIME_TYPES

logger = logging.getLogger(__name__)

MEDIA_MIME_TYPES = {**IMAGE_MIME_TYPES, **VIDEO_MIME_TYPES}


class UploadError(Exception):
    """Upload rejected; always reported to the client as a 400."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class StoredFile:
    """A validated upload written to the upload folder."""

    field: str
    original_name: str
    filename: str
    path: str
    size: int
    mime_type: str

    @property
    def kind(self):
        return file_kind(self.mime_type)

    @property
    def url(self):
        return f'/uploads/{self.filename}'

    def read_base64(self):
        with open(self.path, 'rb') as f:
            return base64.b64encode(f.read()).decode('utf-8')


# =============================================================================
# Helpers
# =============================================================================

def file_kind(mime_type):
    """
    Classify a MIME type as 'image' or 'video'.

    Returns:
        str: 'image', 'video' or None for anything else
    """
    if mime_type in IMAGE_MIME_TYPES:
        return 'image'
    if mime_type in VIDEO_MIME_TYPES:
        return 'video'
    return None


def generate_unique_filename(field, original_filename, mime_type):
    """
    Generate a unique filename with field prefix, timestamp and random suffix.

    The extension comes from the original filename when present, otherwise
    from the MIME type.

    Args:
        field: Form field the file was uploaded under
        original_filename: Client-side filename
        mime_type: Declared MIME type

    Returns:
        str: Unique filename, e.g. file-20240101120000-3f2a...c1.jpg
    """
    safe_name = secure_filename(original_filename or '')
    ext = os.path.splitext(safe_name)[1].lower() or MEDIA_MIME_TYPES.get(mime_type, '')
    timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
    return f"{field}-{timestamp}-{uuid.uuid4().hex}{ext}"


def upload_folder():
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    return folder


def stored_file_path(filename):
    """Absolute path of a stored upload; the name is reduced to its basename."""
    return os.path.join(current_app.config['UPLOAD_FOLDER'], os.path.basename(filename))


def cleanup_file(path):
    """
    Delete an uploaded file, best effort.

    A missing file is ignored; OS errors are logged and not raised.

    Args:
        path: Absolute file path (None is ignored)
    """
    if not path:
        return
    try:
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Cleaned up file: {path}")
    except OSError as e:
        logger.error(f"Error cleaning up file {path}: {e}")


def cleanup_files(stored_files):
    for stored in stored_files:
        if stored is not None:
            cleanup_file(stored.path)


# =============================================================================
# Saving
# =============================================================================

def save_upload(file, field, allowed_mime_types, type_error_message):
    """
    Validate and write one uploaded file.

    The MIME type is checked before anything is written. The size is
    checked after writing; an oversized file is deleted before raising.

    Args:
        file: werkzeug FileStorage
        field: Form field name (used as filename prefix)
        allowed_mime_types: Accepted MIME types
        type_error_message: Message for a disallowed type

    Returns:
        StoredFile: The written file

    Raises:
        UploadError: Disallowed type, empty file or file too large
        OSError: The file could not be written (nothing is left on disk)
    """
    mime_type = (file.mimetype or '').lower()
    if mime_type not in allowed_mime_types:
        raise UploadError(type_error_message)

    filename = generate_unique_filename(field, file.filename, mime_type)
    path = os.path.join(upload_folder(), filename)
    try:
        file.save(path)
    except Exception:
        # A failed write can leave a partial file behind
        cleanup_file(path)
        raise

    size = os.path.getsize(path)
    max_size = current_app.config['MAX_UPLOAD_SIZE']

    if size == 0:
        cleanup_file(path)
        raise UploadError('Uploaded file is empty.')

    if size > max_size:
        cleanup_file(path)
        raise UploadError(
            f"File too large. Maximum size is {current_app.config['MAX_UPLOAD_SIZE_MB']:g}MB."
        )

    logger.info(f"Saved upload {filename} ({size} bytes, {mime_type})")

    return StoredFile(
        field=field,
        original_name=file.filename,
        filename=filename,
        path=path,
        size=size,
        mime_type=mime_type
    )


def _single_file(files, field):
    """Return the one file under a field, None if absent, error if repeated."""
    uploaded = [f for f in files.getlist(field) if f and f.filename]
    if len(uploaded) > 1:
        raise UploadError(f'Only one file is allowed in the "{field}" field.')
    return uploaded[0] if uploaded else None


def save_diagnosis_upload(files):
    """
    Handle the single image-or-video upload of the diagnosis endpoint.

    Args:
        files: request.files

    Returns:
        StoredFile: The written file

    Raises:
        UploadError: No file, unexpected field, bad type or too large
    """
    unexpected = [name for name in files.keys() if name != 'file']
    if unexpected:
        raise UploadError('Unexpected file field. Upload the file in the "file" field.')

    file = _single_file(files, 'file')
    if file is None:
        raise UploadError('No file uploaded')

    return save_upload(
        file,
        'file',
        MEDIA_MIME_TYPES,
        'Invalid file type. Only images (JPEG, PNG) and videos (MP4, AVI, MOV) are allowed.'
    )


def save_crop_plan_uploads(files):
    """
    Handle the optional image and video of the crop-plan endpoint.

    At most one image and one video. If the second file fails validation
    or cannot be written, the first is deleted, so a failed request leaves
    nothing behind.

    Args:
        files: request.files

    Returns:
        dict: {'image': StoredFile or None, 'video': StoredFile or None}

    Raises:
        UploadError: Unexpected field, repeated field, bad type or too large
    """
    unexpected = [name for name in files.keys() if name not in ('image', 'video')]
    if unexpected:
        raise UploadError('Unexpected file field. Only "image" and "video" fields are allowed.')

    image_file = _single_file(files, 'image')
    video_file = _single_file(files, 'video')

    saved = {'image': None, 'video': None}
    try:
        if image_file is not None:
            saved['image'] = save_upload(
                image_file,
                'image',
                IMAGE_MIME_TYPES,
                'Invalid image type. Only JPEG and PNG images are allowed.'
            )
        if video_file is not None:
            saved['video'] = save_upload(
                video_file,
                'video',
                VIDEO_MIME_TYPES,
                'Invalid video type. Only MP4, AVI, and MOV videos are allowed.'
            )
    except Exception:
        cleanup_files(saved.values())
        raise

    return saved


def delete_stored_upload(filename):
    """Remove a previously stored upload by its stored filename."""
    if filename:
        cleanup_file(stored_file_path(filename))
