"""Schemas for the report generation endpoints."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReportJobAccepted(_CamelModel):
    job_id: str = Field(alias="jobId")
    message: str = "Report generation started"


class ReportJobCancelled(_CamelModel):
    job_id: str = Field(alias="jobId")
    cancelled: bool
    message: str


class StageDescriptor(_CamelModel):
    stage: str
    label: str
    order: Optional[int] = None


class StageCatalog(_CamelModel):
    stages: List[StageDescriptor]
