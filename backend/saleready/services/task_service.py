"""
Readiness tasks of a company
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from saleready.core.auth import AuthService, auth_service
from saleready.core.database import supabase_service
from saleready.core.exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)

TABLE = "company_tasks"


class TaskService:
    def __init__(self, client=None, auth: Optional[AuthService] = None):
        self._client = client
        self.auth = auth or auth_service

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def _get(self, task_id: str) -> Dict[str, Any]:
        response = self.client.table(TABLE).select("*").eq("id", task_id).limit(1).execute()
        if not response.data:
            raise ResourceNotFoundError("Task", task_id)
        return response.data[0]

    def list_tasks(
        self,
        company_id: str,
        user_id: str,
        category: Optional[str] = None,
        completion_status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        self.auth.ensure_company_access(company_id, user_id)
        query = self.client.table(TABLE).select("*").eq("company_id", company_id)
        if category:
            query = query.eq("category", category)
        if completion_status:
            query = query.eq("completion_status", completion_status)
        return query.order("created_at").execute().data or []

    def get_task(self, task_id: str, user_id: str) -> Dict[str, Any]:
        task = self._get(task_id)
        self.auth.ensure_company_access(task["company_id"], user_id)
        return task

    def create_task(self, data: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        self.auth.ensure_company_access(data["company_id"], user_id)
        response = self.client.table(TABLE).insert(data).execute()
        task = response.data[0]
        logger.info(f"Created task {task.get('id')} for company {data['company_id']}")
        return task

    def update_task(self, task_id: str, changes: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        task = self.get_task(task_id, user_id)
        if not changes:
            return task
        values = dict(changes)
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        response = self.client.table(TABLE).update(values).eq("id", task_id).execute()
        if not response.data:
            raise ResourceNotFoundError("Task", task_id)
        return response.data[0]

    def delete_task(self, task_id: str, user_id: str) -> None:
        self.get_task(task_id, user_id)
        self.client.table(TABLE).delete().eq("id", task_id).execute()
        logger.info(f"Deleted task {task_id}")


task_service = TaskService()
