from .ingest import ingest_node
from .classify import classify_node
from .quality import quality_node
from .statistics import statistics_node
from .patterns import patterns_node
from .trends import trends_node
from .report import compose_node
from .finalize import finalize_node

__all__ = [
    "ingest_node",
    "classify_node",
    "quality_node",
    "statistics_node",
    "patterns_node",
    "trends_node",
    "compose_node",
    "finalize_node",
]
