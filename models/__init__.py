from flask import current_app

from models.db_storage import DBStorage


def get_storage() -> DBStorage:
    """DBStorage built for the running app (see api.create_app)."""
    return current_app.extensions["storage"]
