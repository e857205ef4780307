"""
Company records scoped to their owner
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from saleready.core.auth import AuthService, auth_service
from saleready.core.database import supabase_service
from saleready.core.exceptions import ConflictError, ResourceNotFoundError

logger = logging.getLogger(__name__)

TABLE = "companies"


class CompanyService:
    def __init__(self, client=None, auth: Optional[AuthService] = None):
        self._client = client
        self.auth = auth or auth_service

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def list_companies(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        response = (
            self.client.table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return response.data or []

    def get_company(self, company_id: str, user_id: str) -> Dict[str, Any]:
        self.auth.ensure_company_access(company_id, user_id)
        response = self.client.table(TABLE).select("*").eq("id", company_id).limit(1).execute()
        if not response.data:
            raise ResourceNotFoundError("Company", company_id)
        return response.data[0]

    def create_company(self, data: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        business_id = data.get("business_id")
        if business_id:
            existing = (
                self.client.table(TABLE)
                .select("id")
                .eq("user_id", user_id)
                .eq("business_id", business_id)
                .limit(1)
                .execute()
            )
            if existing.data:
                raise ConflictError(f"Company with business ID {business_id} already exists")

        row = dict(data)
        row["user_id"] = user_id
        response = self.client.table(TABLE).insert(row).execute()
        company = response.data[0]
        logger.info(f"Created company {company.get('id')} for user {user_id}")
        return company

    def update_company(self, company_id: str, changes: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        self.auth.ensure_company_access(company_id, user_id)
        if not changes:
            return self.get_company(company_id, user_id)
        values = dict(changes)
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = self.client.table(TABLE).update(values).eq("id", company_id).execute()
        if not response.data:
            raise ResourceNotFoundError("Company", company_id)
        return response.data[0]

    def delete_company(self, company_id: str, user_id: str) -> None:
        self.auth.ensure_company_access(company_id, user_id)
        self.client.table(TABLE).delete().eq("id", company_id).execute()
        logger.info(f"Deleted company {company_id}")


company_service = CompanyService()
