from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager

db = SQLAlchemy()
jwt = JWTManager()

# Revoked token ids (jti). Process-local; tokens are short lived.
BLOCKLIST = set()
