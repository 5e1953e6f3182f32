from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List

class BulkJobCreate(BaseModel):
    selectedNiches: List[str]
    tones: List[str] = Field(..., min_length=1)
    templates: List[str] = Field(..., min_length=1)
    platforms: List[str] = []
    aiModel: str = "claude"
    webhookUrl: Optional[str] = None
    useExistingProducts: bool = True
    productOverrides: Optional[Dict[str, str]] = None  # niche -> previewed product name
    generateAffiliateLinks: bool = False
    affiliateId: Optional[str] = None
    manualAffiliateLinks: Optional[Dict[str, str]] = None
    useSmartStyle: bool = False

class BulkJobSubmitResponse(BaseModel):
    jobId: str
    status: str
    totalWorkItems: int
    workItems: Dict[str, Dict[str, Any]]
    message: str

class WorkItem(BaseModel):
    niche: str
    productName: str
    sourceReason: str

class BulkJob(BaseModel):
    jobId: str
    status: str
    selectedNiches: List[str]
    totalWorkItems: int
    completedWorkItems: int
    progressPercentage: int
    workItemsByNiche: Dict[str, Dict[str, Any]]
    progressLog: List[Dict[str, Any]] = []
    errorLog: List[Dict[str, Any]] = []
    platforms: List[str] = []
    tones: List[str] = []
    templates: List[str] = []
    aiModel: Optional[str] = None
    webhookUrl: Optional[str] = None
    source: Optional[str] = None
    generatedContentCount: Optional[int] = None
    startedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class GeneratedContent(BaseModel):
    contentId: int
    bulkJobId: str
    productName: str
    niche: str
    tone: Optional[str] = None
    template: Optional[str] = None
    platforms: List[str] = []
    mainContent: str
    platformCaptions: Dict[str, str] = {}
    viralInspiration: Optional[Dict[str, Any]] = None
    affiliateLink: Optional[str] = None
    evaluationScores: Optional[Dict[str, Any]] = None
    contentHistoryId: Optional[int] = None
    modelUsed: Optional[str] = None
    generationTimeMs: Optional[int] = None
    createdAt: Optional[datetime] = None

class BulkJobsResponse(BaseModel):
    jobs: List[BulkJob]
    total: int

class BulkJobDetailResponse(BaseModel):
    bulkJob: BulkJob
    generatedContent: List[GeneratedContent]
    progressPercentage: int
    isComplete: bool
    isFailed: bool
    totalGenerated: int

class BulkContentResponse(BaseModel):
    jobId: str
    content: List[GeneratedContent]

class ResumeResponse(BaseModel):
    resumedJobIds: List[str]
    message: str
