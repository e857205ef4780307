from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AnalysisRequest(BaseModel):
    """Body of the analysis producers; unknown keys travel with the queue message"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    company_id: Optional[str] = Field(None, alias="companyId")
    valuation_id: Optional[str] = Field(None, alias="valuationId")

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PostDDAnalysisRequest(AnalysisRequest):
    previous_analysis_id: Optional[str] = Field(None, alias="previousAnalysisId")



class ValuationDocumentFile(BaseModel):
    """An uploaded financial statement: text extract, data URL or bare base64"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    data: Optional[str] = None
    base64: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")


class ValuationDocumentsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company_id: Optional[str] = Field(None, alias="companyId")
    company_name: Optional[str] = Field(None, alias="companyName")
    company_type: Optional[str] = Field(None, alias="companyType")
    user_id: Optional[str] = Field(None, alias="userId")
    files: Optional[List[ValuationDocumentFile]] = None
    multiplier_method: Optional[str] = Field(None, alias="multiplierMethod")
    custom_multipliers: Optional[Dict[str, Any]] = Field(None, alias="customMultipliers")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class GenerateDDTasksRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company_id: Optional[str] = Field(None, alias="companyId")
    dd_risk_analysis: Optional[Dict[str, Any]] = Field(None, alias="ddRiskAnalysis")
