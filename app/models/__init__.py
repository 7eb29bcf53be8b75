from app.models.brand_analysis import BrandAnalysis
from app.models.citation import CitationRecord, CitationSourceRecord

__all__ = [
    "BrandAnalysis",
    "CitationRecord",
    "CitationSourceRecord",
]
