# =============================================================================
# CropGenesis Backend
# routes/__init__.py - Routes Package
#
# This package contains all API route blueprints organized by feature.
# =============================================================================

from .auth import auth_bp
from .cropplan import cropplan_bp
from .diagnosis import diagnosis_bp
from .history import history_bp

__all__ = [
    'auth_bp',
    'cropplan_bp',
    'diagnosis_bp',
    'history_bp'
]
