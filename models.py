from sqlalchemy import Column, String, Integer, BigInteger, LargeBinary
from database import Base


# ─────────────────────────────────────────────────────────────
# One-time secure link
# ─────────────────────────────────────────────────────────────
class SecureLink(Base):
    __tablename__ = "secure_links"

    # sha256 of the link id; the id itself is never stored
    lookup_key = Column(String(64), primary_key=True)
    # Fernet token of {"payload", "fileName"}; NULL when kept in blob storage
    sealed = Column(LargeBinary, nullable=True)
    blob_key = Column(String, nullable=True)
    size = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String, nullable=False)
    created_at = Column(BigInteger, nullable=False, index=True)  # epoch ms

    def __repr__(self):
        where = "blob" if self.blob_key else "inline"
        return f"<SecureLink {self.lookup_key[:12]} {self.mime_type} {self.size}B {where}>"
