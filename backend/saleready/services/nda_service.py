"""
NDA acceptance for shared company views
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from saleready.core.database import supabase_service
from saleready.core.exceptions import DatabaseError, ResourceNotFoundError, ValidationError
from saleready.schemas.nda import SignerInfo

logger = logging.getLogger(__name__)

SHARE_TABLE = "company_sharing"
ACCEPTANCE_TABLE = "nda_acceptances"

ACCEPTANCE_COLUMNS = (
    "nda_accepted_at",
    "nda_accepted_by_name",
    "nda_accepted_by_email",
    "nda_accepted_by_company",
    "nda_accepted_by_title",
    "nda_accepted_by_ip",
)


def validate_signer(raw: Optional[Dict[str, Any]]) -> SignerInfo:
    """Validate and sanitize signer info; errors become a 400 listing the problems."""
    if not raw or not raw.get("name") or not raw.get("email"):
        raise ValidationError("Missing required fields")
    try:
        return SignerInfo(**raw).sanitized()
    except PydanticValidationError as e:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Invalid signer information", details={"errors": problems})


class NDAService:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def get_share(self, share_id: str) -> Dict[str, Any]:
        response = (
            self.client.table(SHARE_TABLE)
            .select("id, requires_nda, nda_document_id, nda_accepted_at")
            .eq("id", share_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ResourceNotFoundError("Share", share_id)
        return response.data[0]

    def accept_nda(
        self,
        share_id: Optional[str],
        signer_raw: Optional[Dict[str, Any]],
        ip: str = "unknown",
        user_agent: str = "unknown",
    ) -> Dict[str, Any]:
        if not share_id:
            raise ValidationError("Missing required fields", field="shareId")
        signer = validate_signer(signer_raw)

        share = self.get_share(share_id)
        if not share.get("requires_nda"):
            raise ValidationError("This share does not require NDA")
        if share.get("nda_accepted_at"):
            raise ValidationError("NDA already accepted")

        accepted_at = datetime.now(timezone.utc).isoformat()
        self.client.table(SHARE_TABLE).update({
            "nda_accepted_at": accepted_at,
            "nda_accepted_by_name": signer.name,
            "nda_accepted_by_email": signer.email,
            "nda_accepted_by_company": signer.company,
            "nda_accepted_by_title": signer.title,
            "nda_accepted_by_ip": ip,
        }).eq("id", share_id).execute()

        try:
            self.client.table(ACCEPTANCE_TABLE).insert({
                "share_id": share_id,
                "nda_document_id": share.get("nda_document_id"),
                "accepted_by_name": signer.name,
                "accepted_by_email": signer.email,
                "accepted_by_company": signer.company,
                "accepted_by_title": signer.title,
                "accepted_by_ip": ip,
                "user_agent": user_agent,
                "accepted_at": accepted_at,
            }).execute()
        except Exception as e:
            logger.error(f"Failed to log NDA acceptance for share {share_id}, rolling back: {e}")
            self.client.table(SHARE_TABLE).update(
                {column: None for column in ACCEPTANCE_COLUMNS}
            ).eq("id", share_id).execute()
            raise DatabaseError("Failed to record NDA acceptance", operation="insert")

        logger.info(f"NDA accepted for share {share_id}")
        return {"success": True, "acceptedAt": accepted_at, "message": "NDA accepted successfully"}


nda_service = NDAService()
