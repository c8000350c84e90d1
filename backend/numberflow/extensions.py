# Overview: Flask extension instances for database, migrations and the document store.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

# Imported after `db` exists: the store's persistence layer depends on it.
from .services.document_store import DocumentStore  # noqa: E402

store = DocumentStore()
