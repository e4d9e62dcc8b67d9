from sqlalchemy import Column, String, Text, TIMESTAMP, text, BIGINT
from sqlalchemy.dialects.postgresql import UUID
from pgvector.sqlalchemy import Vector
from product_finder.core.config import settings
from product_finder.core.database import Base


class ProductChunk(Base):
    """One embedded attribute of a product.

    All modalities share this table; ``type`` tells name/description/
    specification/... rows apart. The vector column is declared without a
    dimension here and sized by ``VectorIndexClient.ensure_collection``.
    """

    __tablename__ = settings.VECTOR_COLLECTION

    id = Column(UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()"))
    product_id = Column(BIGINT, nullable=False, index=True)
    product_name = Column(String, nullable=False)
    type = Column(String(32), nullable=False, server_default="generic")
    content = Column(Text, nullable=False)
    embedding = Column(Vector(), nullable=False)
    created_at = Column(TIMESTAMP, server_default=text("CURRENT_TIMESTAMP"))
