"""
Readiness analysis: data gathering, prompts and model calls

Used by the queue processors. Each ``run_*`` coroutine returns plain dicts
ready to be written to the tracking row.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from saleready.core.config import settings
from saleready.core.database import supabase_service
from saleready.core.exceptions import CalculationError, ResourceNotFoundError, ValidationError
from saleready.schemas.task import TaskCategory
from saleready.services.ai_client import AnalysisModelClient, analysis_model_client
from saleready.services.dcf_calculator import DCFCalculator, DCFInputs, select_variant
from saleready.services.valuation_impact import (
    CATEGORIES,
    apply_valuation_adjustments,
    build_valuation_snapshot,
    calculate_adjustment_factors,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an M&A advisor and due diligence analyst for small and medium-sized "
    "private companies. Answer with one JSON object and nothing else."
)


@dataclass
class CompanyData:
    company: Dict[str, Any]
    tasks: List[Dict[str, Any]] = field(default_factory=list)
    valuation: Optional[Dict[str, Any]] = None

    @property
    def completion_rate(self) -> float:
        return completion_rate(self.tasks)


def completion_rate(tasks: List[Dict[str, Any]]) -> float:
    """Share of tasks with completion_status 'completed' (0 for no tasks)."""
    if not tasks:
        return 0.0
    completed = [t for t in tasks if t.get("completion_status") == "completed"]
    return len(completed) / len(tasks)


def _task_lines(tasks: List[Dict[str, Any]]) -> str:
    lines = []
    for task in tasks:
        value = task.get("value")
        answer = json.dumps(value, ensure_ascii=False) if value not in (None, "") else "no answer"
        lines.append(
            f"- [{task.get('category', 'other')}] {task.get('title', '')} "
            f"({task.get('completion_status', 'not_started')}): {answer}"
        )
    return "\n".join(lines) or "- no tasks"


def _company_profile(company: Dict[str, Any]) -> str:
    return (
        f"Name: {company.get('name')}\n"
        f"Industry: {company.get('industry') or 'not specified'}\n"
        f"Founded: {company.get('founded') or 'unknown'}\n"
        f"Employees: {company.get('employees') or 'unknown'}\n"
        f"Description: {company.get('description') or 'no description'}"
    )


def _valuation_summary(valuation: Optional[Dict[str, Any]]) -> str:
    if not valuation:
        return "No valuation available."
    numbers = ((valuation.get("results") or {}).get("valuationReport") or {}).get("valuation_numbers") or {}
    value_range = numbers.get("range") or {}
    return (
        f"Most likely value: {numbers.get('most_likely_value', 'n/a')}\n"
        f"Range: {value_range.get('low', 'n/a')} - {value_range.get('high', 'n/a')}"
    )


def _categories_schema() -> str:
    return ", ".join(CATEGORIES)


def sales_readiness_prompt(data: CompanyData) -> str:
    return f"""Assess how ready the company below is for a sale.

# Company
{_company_profile(data.company)}

# Current valuation
{_valuation_summary(data.valuation)}

# Readiness tasks and answers
{_task_lines(data.tasks)}

Return JSON with:
- "overall_score": 0-100
- "summary": short text
- "category_weights": weight per category ({_categories_schema()}), summing to 1
- "quantitative_assessments": per category an object with "score" (0-100),
  "findings" (list of strings) and "value_impact": {{"impact_percent": number between -30 and 10}}
- "recommendations": list of {{"title", "priority": "high|medium|low", "category"}}
"""


def dd_risk_prompt(data: CompanyData) -> str:
    return f"""Identify the risks a buyer's due diligence would raise for this company.

# Company
{_company_profile(data.company)}

# Current valuation
{_valuation_summary(data.valuation)}

# Readiness tasks and answers
{_task_lines(data.tasks)}

Return JSON with:
- "overall_risk_level": "high|medium|low"
- "risks": list of {{"category", "description", "severity": "high|medium|low", "mitigation"}}
- "summary": short text
"""


def post_dd_prompt(data: CompanyData, previous: Dict[str, Any]) -> str:
    original = json.dumps(previous.get("sales_readiness_analysis") or {}, ensure_ascii=False)
    risks = json.dumps(previous.get("dd_risk_analysis") or {}, ensure_ascii=False)
    return f"""The company has worked through its due diligence tasks. Re-assess sales readiness
against the original analysis and say which risks have been mitigated.

# Company
{_company_profile(data.company)}

# Original sales readiness analysis
{original}

# Original DD risk analysis
{risks}

# Due diligence tasks and answers
{_task_lines(data.tasks)}

Return the same JSON structure as the original sales readiness analysis
("overall_score", "summary", "category_weights", "quantitative_assessments",
"recommendations") plus "risk_mitigation": list of {{"risk", "status": "mitigated|partial|open", "comment"}}.
"""


def dd_tasks_prompt(
    company: Dict[str, Any],
    tasks: List[Dict[str, Any]],
    dd_risk_analysis: Dict[str, Any],
    latest_analysis: Optional[Dict[str, Any]] = None,
) -> str:
    risks = json.dumps(dd_risk_analysis, ensure_ascii=False)
    readiness = json.dumps((latest_analysis or {}).get("sales_readiness_analysis") or {}, ensure_ascii=False)
    categories = ", ".join(c.value for c in TaskCategory)
    return f"""Create tasks that prepare the company below for a buyer's due diligence.

# Company
{_company_profile(company)}

# Due diligence risk analysis
{risks}

# Latest sales readiness analysis
{readiness}

# Existing tasks (do not duplicate these)
{_task_lines(tasks)}

Create 8-15 concrete tasks that mitigate the risks above. Return JSON:
{{"tasks": [{{"title", "description", "category": one of {categories},
"type": "checkbox|multiple_choice|text_input|document_upload|explanation|contact_info",
"priority": "high|medium|low", "impact": "high|medium|low", "estimated_time", "expected_outcome",
"options": list of strings, only for multiple_choice}}]}}
"""


def dcf_parameters_prompt(company: Dict[str, Any], inputs: DCFInputs) -> str:
    return f"""Provide market benchmark parameters for a discounted cash flow model.

# Company
{_company_profile(company)}

# Known revenue history (oldest first)
{inputs.revenue_history or 'none'}

Return JSON with numeric fields (decimals, not percents):
"industry_growth_rate", "industry_ebitda_margin", "wacc", "industry_capex_percent", "tax_rate",
and "reasoning" as a short text.
"""


def _document_lines(files: List[Dict[str, Any]]) -> str:
    lines = []
    for f in files:
        body = f.get("textData") or "(attached as a PDF document)"
        lines.append(f"## {f.get('name') or f.get('id')}\n{body}")
    return "\n\n".join(lines)


def valuation_documents_prompt(
    company_name: str,
    company_type: Optional[str],
    files: List[Dict[str, Any]],
    multiplier_method: Optional[str],
    custom_multipliers: Optional[Dict[str, Any]],
) -> str:
    multipliers = json.dumps(custom_multipliers or {}, ensure_ascii=False)
    return f"""Read the financial statements of {company_name} ({company_type or 'company type not given'})
and prepare the first phase of a valuation.

# Multiplier settings
Method: {multiplier_method or 'default'}
Custom multipliers: {multipliers}

# Documents
{_document_lines(files)}

Return JSON with:
- "financial_analysis": {{"financial_periods": list of {{"period", "income_statement": {{"revenue", "ebitda",
  "operating_profit", "net_income"}}, "balance_sheet": {{"total_assets", "equity", "liabilities", "cash"}}}},
  newest first}}
- "initial_findings": {{"summary", "strengths": list of strings, "concerns": list of strings}}
- "questions": list of {{"id", "category", "question", "context"}} the owner must answer before the
  valuation can be finished
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ReadinessAnalysisService:
    """Loads company data and runs the model-backed analyses"""

    def __init__(self, model: Optional[AnalysisModelClient] = None, client=None):
        self.model = model or analysis_model_client
        self._client = client

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def fetch_company(self, company_id: str) -> Dict[str, Any]:
        response = self.client.table("companies").select("*").eq("id", company_id).limit(1).execute()
        if not response.data:
            raise ResourceNotFoundError("Company", company_id)
        return response.data[0]

    def fetch_tasks(self, company_id: str, dd_only: bool = False) -> List[Dict[str, Any]]:
        query = self.client.table("company_tasks").select("*").eq("company_id", company_id)
        if dd_only:
            query = query.eq("dd_related", True)
        return query.execute().data or []

    def fetch_valuation(self, company_id: str, valuation_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.client.table("valuations").select("id, created_at, results").eq("company_id", company_id)
        if valuation_id:
            query = query.eq("id", valuation_id)
        response = query.order("created_at", desc=True).limit(1).execute()
        return response.data[0] if response.data else None

    def fetch_analysis(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table("valuation_impact_analysis")
            .select("*")
            .eq("id", analysis_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def fetch_latest_analysis(self, company_id: str) -> Optional[Dict[str, Any]]:
        response = (
            self.client.table("valuation_impact_analysis")
            .select("*")
            .eq("company_id", company_id)
            .eq("status", "completed")
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def gather(self, company_id: str, valuation_id: Optional[str] = None, dd_only: bool = False) -> CompanyData:
        company = self.fetch_company(company_id)
        tasks = self.fetch_tasks(company_id, dd_only=dd_only)
        valuation = self.fetch_valuation(company_id, valuation_id)
        logger.info(
            f"Loaded company {company.get('name')}: {len(tasks)} tasks, "
            f"valuation {'present' if valuation else 'missing'}"
        )
        return CompanyData(company=company, tasks=tasks, valuation=valuation)

    @staticmethod
    def require_completion(data: CompanyData, label: str = "tasks") -> None:
        threshold = settings.READINESS_COMPLETION_THRESHOLD
        if not data.tasks:
            raise ValidationError(f"No {label} found for company")
        rate = data.completion_rate
        if rate < threshold:
            raise ValidationError(
                f"At least {threshold * 100:.0f}% of {label} must be completed before analysis "
                f"(now {rate * 100:.1f}%)."
            )

    @staticmethod
    def valuation_impact(valuation: Optional[Dict[str, Any]], analysis: Dict[str, Any]) -> Dict[str, Any]:
        """Adjustment factors, original snapshot and adjusted valuation; empty when not computable."""
        if not valuation:
            return {}
        try:
            factors = calculate_adjustment_factors(analysis)
            snapshot, period = build_valuation_snapshot(valuation)
        except Exception as e:
            logger.warning(f"Valuation impact failed, storing the analysis without it: {e}")
            return {}
        try:
            adjusted = apply_valuation_adjustments(snapshot, factors, period)
        except CalculationError as e:
            logger.warning(f"Valuation impact skipped: {e.message}")
            return {"adjustment_factors": factors.to_dict(), "original_valuation_snapshot": snapshot}
        except Exception as e:
            logger.warning(f"Valuation re-pricing failed, storing factors only: {e}")
            return {"adjustment_factors": factors.to_dict(), "original_valuation_snapshot": snapshot}
        return {
            "adjustment_factors": factors.to_dict(),
            "original_valuation_snapshot": snapshot,
            "adjusted_valuation_result": adjusted,
        }

    async def run_sales_readiness(self, company_id: str, valuation_id: Optional[str]) -> Dict[str, Any]:
        data = self.gather(company_id, valuation_id)
        self.require_completion(data)

        analysis = await self.model.complete_json(sales_readiness_prompt(data), SYSTEM_PROMPT)
        analysis.setdefault("analysis_date", _now())

        try:
            dd_risk = await self.model.complete_json(dd_risk_prompt(data), SYSTEM_PROMPT)
            dd_risk.setdefault("analysis_date", _now())
        except Exception as e:
            logger.warning(f"DD risk analysis failed, continuing without it: {e}")
            dd_risk = None

        result = {"sales_readiness_analysis": analysis, "dd_risk_analysis": dd_risk}
        result.update(self.valuation_impact(data.valuation, analysis))
        return result

    async def run_post_dd(
        self,
        company_id: str,
        valuation_id: Optional[str],
        previous_analysis_id: Optional[str],
    ) -> Dict[str, Any]:
        data = self.gather(company_id, valuation_id, dd_only=True)
        self.require_completion(data, label="DD tasks")

        previous = self.fetch_analysis(previous_analysis_id) if previous_analysis_id else None
        if not previous:
            previous = self.fetch_latest_analysis(company_id)
        if not previous or not previous.get("sales_readiness_analysis"):
            raise ValidationError("No original sales readiness analysis found to compare against")

        if data.valuation is None and previous.get("original_valuation_id"):
            data.valuation = self.fetch_valuation(company_id, previous["original_valuation_id"])

        analysis = await self.model.complete_json(post_dd_prompt(data, previous), SYSTEM_PROMPT)
        analysis.setdefault("analysis_date", _now())

        result = {
            "post_dd_sales_readiness_analysis": analysis,
            "post_dd_risk_analysis": analysis.get("risk_mitigation"),
            "sales_readiness_analysis": previous.get("sales_readiness_analysis"),
            "dd_risk_analysis": previous.get("dd_risk_analysis"),
            "completed_at": _now(),
        }
        result.update(self.valuation_impact(data.valuation, analysis))
        return result

    async def run_dcf(self, company_id: str, valuation_id: str) -> Dict[str, Any]:
        company = self.fetch_company(company_id)
        valuation = self.fetch_valuation(company_id, valuation_id)
        inputs = dcf_inputs_from_valuation(valuation, company)

        parameters = await self.model.complete_json(dcf_parameters_prompt(company, inputs), SYSTEM_PROMPT)
        apply_dcf_parameters(inputs, parameters)

        variant = select_variant(inputs)
        logger.info(f"Running {variant.value} for company {company_id}")
        result = DCFCalculator(inputs, variant).calculate()
        return {
            "variant_selected": variant.value,
            "variant_reasoning": parameters.get("reasoning"),
            "structured_data": result.to_dict(),
            "raw_analysis": parameters,
        }

    async def run_valuation_documents(
        self,
        company_name: str,
        company_type: Optional[str],
        files: List[Dict[str, Any]],
        multiplier_method: Optional[str] = None,
        custom_multipliers: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """First valuation phase: extracted figures, findings and questions for the owner."""
        pdfs = [
            f["base64Data"] for f in files
            if f.get("base64Data") and f.get("mimeType") in (None, "application/pdf")
        ]
        if not pdfs and not any(f.get("textData") for f in files):
            raise ValidationError("No valid processed files found for analysis")

        logger.info(f"Analysing {len(files)} documents for {company_name} ({len(pdfs)} PDFs)")
        prompt = valuation_documents_prompt(company_name, company_type, files, multiplier_method, custom_multipliers)
        analysis = await self.model.complete_json(prompt, SYSTEM_PROMPT, documents=pdfs)

        questions = analysis.get("questions")
        return {
            "questions": questions if isinstance(questions, list) else [],
            "initial_findings": analysis.get("initial_findings") or {},
            "financial_analysis": analysis.get("financial_analysis") or {},
        }


def dcf_inputs_from_valuation(valuation: Optional[Dict[str, Any]], company: Dict[str, Any]) -> DCFInputs:
    """Revenue / EBITDA history from the stored valuation periods, oldest first."""
    inputs = DCFInputs(industry=company.get("industry"))
    if not valuation:
        return inputs
    documents = ((valuation.get("results") or {}).get("financialAnalysis") or {}).get("documents") or []
    periods = (documents[0].get("financial_periods") or []) if documents else []

    # stored newest first
    for period in reversed(periods):
        income = period.get("income_statement") or {}
        revenue = income.get("revenue")
        if not isinstance(revenue, (int, float)):
            continue
        inputs.revenue_history.append(float(revenue))
        ebitda = income.get("ebitda")
        if ebitda is None:
            ebitda = (period.get("calculated_fields") or {}).get("ebitda_estimated")
        inputs.ebitda_history.append(float(ebitda or 0))
        capex = (period.get("dcf_items") or {}).get("capex")
        if isinstance(capex, (int, float)):
            inputs.capex_history.append(abs(float(capex)))
    return inputs


def apply_dcf_parameters(inputs: DCFInputs, parameters: Dict[str, Any]) -> DCFInputs:
    """Copy numeric benchmark parameters from the model reply onto the inputs."""
    for name in ("industry_growth_rate", "industry_ebitda_margin", "wacc", "industry_capex_percent", "tax_rate"):
        value = parameters.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            setattr(inputs, name, float(value))
    return inputs


readiness_analysis_service = ReadinessAnalysisService()
