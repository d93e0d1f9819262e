# =============================================================================
# CropGenesis Backend
# extensions.py - Shared Extension Instances
#
# Extension objects are created unbound here and attached to the app in
# create_app(), so models and routes can import them without a cycle.
# =============================================================================

from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Named constraints keep Alembic batch migrations working on SQLite
NAMING_CONVENTION = {
    'ix': 'ix_%(column_0_label)s',
    'uq': 'uq_%(table_name)s_%(column_0_name)s',
    'ck': 'ck_%(table_name)s_%(constraint_name)s',
    'fk': 'fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s',
    'pk': 'pk_%(table_name)s'
}

# Users, crop plans, diagnoses and their follow-up threads
db = SQLAlchemy(metadata=MetaData(naming_convention=NAMING_CONVENTION))
migrate = Migrate(render_as_batch=True)

# Bearer tokens whose identity is the user id (see register_jwt_callbacks)
jwt = JWTManager()
bcrypt = Bcrypt()

# Origins come from CORS_ORIGINS at init time
cors = CORS()

# Global default from RATELIMIT_DEFAULT; AI routes add per-user limits
limiter = Limiter(key_func=get_remote_address, strategy='fixed-window')
