"""
Due-diligence task generation

Turns a DD risk analysis into new readiness tasks. Model output is mapped
onto the task enums before the bulk insert, so a loosely formatted reply
still produces valid rows.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from saleready.core.auth import AuthService, auth_service
from saleready.core.database import supabase_service
from saleready.core.exceptions import DatabaseError, ExternalAPIError, ValidationError
from saleready.schemas.task import CompletionStatus, Level, TaskCategory, TaskType
from saleready.services.readiness_analysis import (
    SYSTEM_PROMPT,
    ReadinessAnalysisService,
    dd_tasks_prompt,
    readiness_analysis_service,
)

logger = logging.getLogger(__name__)

TABLE = "company_tasks"

# Names the model uses instead of the category values, English and Finnish
CATEGORY_ALIASES = {
    "finance": "financial",
    "finances": "financial",
    "talous": "financial",
    "juridical": "legal",
    "legal_compliance": "legal",
    "sopimukset": "legal",
    "juridiikka": "legal",
    "customer": "customers",
    "client": "customers",
    "clients": "customers",
    "asiakkaat": "customers",
    "hr": "personnel",
    "human_resources": "personnel",
    "staff": "personnel",
    "henkilöstö": "personnel",
    "ops": "operations",
    "toiminta": "operations",
    "docs": "documentation",
    "documents": "documentation",
    "dokumentaatio": "documentation",
    "strategia": "strategy",
}


def enum_value(value: Any, enum_cls: Type[Enum], default: Enum, aliases: Optional[Dict[str, str]] = None) -> str:
    text = str(value or "").strip().lower()
    text = (aliases or {}).get(text, text)
    if text in {member.value for member in enum_cls}:
        return text
    return default.value


def sanitize_task(raw: Any, company_id: str, index: int) -> Dict[str, Any]:
    """One company_tasks row from a model task; unknown enum values fall back to defaults."""
    if not isinstance(raw, dict):
        raw = {}
    task_type = enum_value(raw.get("type"), TaskType, TaskType.CHECKBOX)
    options = raw.get("options")
    if task_type == TaskType.MULTIPLE_CHOICE.value and isinstance(options, list):
        options = [str(o) for o in options]
    else:
        options = None
    return {
        "company_id": company_id,
        "title": str(raw.get("title") or "").strip() or f"Task {index + 1}",
        "description": str(raw.get("description") or "").strip(),
        "category": enum_value(raw.get("category"), TaskCategory, TaskCategory.OPERATIONS, CATEGORY_ALIASES),
        "type": task_type,
        "priority": enum_value(raw.get("priority"), Level, Level.MEDIUM),
        "impact": enum_value(raw.get("impact"), Level, Level.MEDIUM),
        "estimated_time": raw.get("estimated_time"),
        "expected_outcome": raw.get("expected_outcome"),
        "options": options,
        "dependencies": [],
        "completion_status": CompletionStatus.NOT_STARTED.value,
        "dd_related": True,
    }


class DDTaskService:
    def __init__(
        self,
        analysis: Optional[ReadinessAnalysisService] = None,
        client=None,
        auth: Optional[AuthService] = None,
    ):
        self.analysis = analysis or readiness_analysis_service
        self._client = client
        self.auth = auth or auth_service

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def latest_analysis(self, company_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = (
                self.client.table("valuation_impact_analysis")
                .select("*")
                .eq("company_id", company_id)
                .order("calculation_date", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning(f"Could not load the latest valuation impact analysis: {e}")
            return None
        return response.data[0] if response.data else None

    async def generate(
        self,
        company_id: Optional[str],
        dd_risk_analysis: Optional[Dict[str, Any]],
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not company_id or not dd_risk_analysis:
            raise ValidationError("Missing required parameters")
        if user_id:
            self.auth.ensure_company_access(company_id, user_id)

        company = self.analysis.fetch_company(company_id)
        existing = self.analysis.fetch_tasks(company_id)
        latest = self.latest_analysis(company_id)
        logger.info(f"Generating DD tasks for {company.get('name')} ({len(existing)} existing tasks)")

        prompt = dd_tasks_prompt(company, existing, dd_risk_analysis, latest)
        reply = await self.analysis.model.complete_json(prompt, SYSTEM_PROMPT)
        raw_tasks = reply.get("tasks")
        if not isinstance(raw_tasks, list):
            raise ExternalAPIError("anthropic", "Model response has no task list")

        tasks: List[Dict[str, Any]] = [sanitize_task(t, company_id, i) for i, t in enumerate(raw_tasks)]
        if tasks:
            try:
                self.client.table(TABLE).insert(tasks).execute()
            except Exception as e:
                logger.error(f"Failed to save DD tasks for company {company_id}: {e}")
                raise DatabaseError(f"Failed to save tasks: {e}", operation="insert")

        logger.info(f"Created {len(tasks)} DD tasks for company {company_id}")
        return {
            "success": True,
            "message": f"Created {len(tasks)} new tasks to address DD risks",
            "taskCount": len(tasks),
        }


dd_task_service = DDTaskService()
