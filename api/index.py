"""
FastAPI wrapper for the ASO Combo Analyzer.

Exposes combo analysis, baseline/draft comparison and CSV export as a
REST API.
"""

import io
import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from aso_combo_analyzer import __version__
from aso_combo_analyzer.aggregator import calculate_tier_stats, get_tier_label, get_tier_number
from aso_combo_analyzer.analyzer import ComboAnalyzer
from aso_combo_analyzer.comparison import (
    analyze_keyword_impact,
    calculate_tier_distribution,
    diff_combos,
    extract_strengthen_opportunities,
)
from aso_combo_analyzer.config import ComboAnalysisConfig, ComboConfigError
from aso_combo_analyzer.export import combos_to_dataframe
from aso_combo_analyzer.models import (
    ComboAnalysisResult,
    ComboRanking,
    KeywordPopularity,
    StrengthTier,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ASO Combo Analyzer API",
    description="Keyword combination strength classification and priority scoring for App Store listings",
    version=__version__,
)

# Enable CORS for all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AnalysisModeEnum(str, Enum):
    """Configuration preset selection."""
    default = "default"
    quick = "quick"  # Lengths 2-3, budget 100
    exhaustive = "exhaustive"  # Budget 5000


class MetadataInput(BaseModel):
    """Metadata fields of one listing."""
    title: str = ""
    subtitle: str = ""
    keywords_field: str = Field("", alias="keywordsField", description="Comma-separated keywords field")
    promo_text: Optional[str] = Field(None, alias="promoText")

    model_config = {"populate_by_name": True}


class RankingInput(BaseModel):
    """Ranking signal for one combo."""
    combo: str
    position: Optional[int] = None
    total_results: Optional[int] = Field(None, alias="totalResults")
    trend: Optional[str] = None
    position_change: Optional[int] = Field(None, alias="positionChange")
    checked_at: Optional[datetime] = Field(None, alias="checkedAt")

    model_config = {"populate_by_name": True}


class PopularityInput(BaseModel):
    """Popularity signal for one keyword."""
    keyword: str
    popularity_score: float = Field(..., ge=0, le=100)
    intent_score: Optional[float] = Field(None, ge=0, le=1)
    autocomplete_score: float = 0.0
    length_prior: float = 0.0
    data_quality: str = "complete"


class ConfigInput(BaseModel):
    """Optional overrides applied on top of the selected preset."""
    mode: AnalysisModeEnum = AnalysisModeEnum.default
    min_length: Optional[int] = Field(None, alias="minLength")
    max_length: Optional[int] = Field(None, alias="maxLength")
    selection_budget: Optional[int] = Field(None, alias="selectionBudget")

    model_config = {"populate_by_name": True}


class AnalyzeRequest(MetadataInput):
    """Request model for combo analysis."""
    rankings: list[RankingInput] = Field(default_factory=list)
    popularity: list[PopularityInput] = Field(default_factory=list)
    options: ConfigInput = Field(default_factory=ConfigInput)


class CompareRequest(BaseModel):
    """Request model for baseline vs draft comparison."""
    baseline: MetadataInput
    draft: MetadataInput
    options: ConfigInput = Field(default_factory=ConfigInput)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


def _build_config(options: ConfigInput) -> ComboAnalysisConfig:
    overrides = {}
    if options.min_length is not None:
        overrides["min_length"] = options.min_length
    if options.max_length is not None:
        overrides["max_length"] = options.max_length
    if options.selection_budget is not None:
        overrides["selection_budget"] = options.selection_budget

    try:
        return getattr(ComboAnalysisConfig, options.mode.value)(**overrides)
    except ComboConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _run_analysis(request: AnalyzeRequest) -> ComboAnalysisResult:
    analyzer = ComboAnalyzer(_build_config(request.options))
    rankings = [
        ComboRanking(
            combo=r.combo,
            position=r.position,
            total_results=r.total_results,
            trend=r.trend,
            position_change=r.position_change,
            checked_at=r.checked_at,
        )
        for r in request.rankings
    ]
    popularity = [KeywordPopularity(**p.model_dump()) for p in request.popularity]
    return analyzer.analyze(
        title=request.title,
        subtitle=request.subtitle,
        keywords_field=request.keywords_field,
        promo_text=request.promo_text,
        rankings=rankings,
        popularity=popularity,
    )


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@app.post("/api/combos/analyze")
async def analyze_combos(request: AnalyzeRequest):
    """
    Analyze the keyword combinations of a listing.

    Returns the selected combos (highest priority first) together with
    tier counts and coverage over every generated combo.
    """
    result = _run_analysis(request)
    payload = result.to_dict()
    payload["recommendedToAdd"] = [c.text for c in result.recommended_to_add()]
    return payload


@app.post("/api/combos/export")
async def export_combos(request: AnalyzeRequest):
    """Analyze and download the selected combos as CSV."""
    result = _run_analysis(request)
    buffer = io.StringIO()
    combos_to_dataframe(result).to_csv(buffer, index=False)
    buffer.seek(0)
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="combos.csv"'},
    )


@app.post("/api/combos/compare")
async def compare_combos(request: CompareRequest):
    """Compare the combos of the current metadata with a proposed edit."""
    analyzer = ComboAnalyzer(_build_config(request.options))
    baseline_fields, baseline = analyzer.classify_metadata(
        request.baseline.title,
        request.baseline.subtitle,
        request.baseline.keywords_field,
        request.baseline.promo_text,
    )
    draft_fields, draft = analyzer.classify_metadata(
        request.draft.title,
        request.draft.subtitle,
        request.draft.keywords_field,
        request.draft.promo_text,
    )

    diff = diff_combos(baseline, draft)
    distribution = calculate_tier_distribution(
        calculate_tier_stats(baseline), calculate_tier_stats(draft)
    )
    impacts = analyze_keyword_impact(baseline_fields, draft_fields, draft, baseline)
    opportunities = extract_strengthen_opportunities(draft)

    def bucket(b):
        return {"baseline": b.baseline, "draft": b.draft, "delta": b.delta}

    return {
        "added": [c.text for c in diff.added if c.exists],
        "removed": [c.text for c in diff.removed if c.exists],
        "tierUpgrades": [
            {"text": c.text, "from": c.baseline_strength.value, "to": c.draft_strength.value,
             "improvement": c.improvement}
            for c in diff.tier_upgrades
        ],
        "tierDowngrades": [
            {"text": c.text, "from": c.baseline_strength.value, "to": c.draft_strength.value,
             "improvement": c.improvement}
            for c in diff.tier_downgrades
        ],
        "tierDistribution": {
            "excellent": bucket(distribution.excellent),
            "good": bucket(distribution.good),
            "other": bucket(distribution.other),
        },
        "keywordImpact": [
            {"keyword": i.keyword, "change": i.change, "comboCount": i.combo_count,
             "avgTier": i.avg_tier, "sampleCombos": i.sample_combos}
            for i in impacts
        ],
        "strengthenOpportunities": [
            {"text": o.combo.text, "tier": o.current_tier,
             "rating": get_tier_label(o.current_tier), "suggestion": o.suggestion}
            for o in opportunities[:20]
        ],
    }


@app.get("/api/tiers")
async def list_tiers():
    """List the strength tiers in classification order."""
    return [
        {
            "tier": tier.value,
            "score": tier.score,
            "group": get_tier_number(tier),
            "rating": get_tier_label(get_tier_number(tier)),
            "canStrengthen": tier.can_strengthen,
        }
        for tier in StrengthTier
    ]


@app.get("/api/info")
async def api_info():
    """Get API information and usage instructions."""
    return {
        "name": "ASO Combo Analyzer API",
        "version": __version__,
        "description": "Keyword combination analysis for App Store listings",
        "endpoints": {
            "GET /api/health": "Health check",
            "POST /api/combos/analyze": "Analyze combos with optional ranking/popularity signals",
            "POST /api/combos/export": "Analyze and download combos as CSV",
            "POST /api/combos/compare": "Compare baseline and draft metadata",
            "GET /api/tiers": "List strength tiers",
            "GET /api/info": "This endpoint",
        },
        "documentation": "/docs",
        "openapi": "/openapi.json",
    }
