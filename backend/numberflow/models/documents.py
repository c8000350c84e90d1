from __future__ import annotations

from ..extensions import db
from numberflow.time_utils import utcnow


class Document(db.Model):
    """
    One document of one collection.

    Every collection (numbers, sales, portouts, prebookings, dealerPurchases,
    reminders, activities, payments, users) lives in this table, keyed by
    the composite primary key (collection, id). The document body is stored as JSON; dates inside it
    are tagged by the document store so they round-trip as datetimes.

    version_id is an optimistic lock: two sessions updating the same
    document concurrently cannot both commit.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_collection_created", "collection", "created_at"),
    )

    collection = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)
    data = db.Column(db.JSON, nullable=False, default=dict)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Document {self.collection}/{self.id}>"

