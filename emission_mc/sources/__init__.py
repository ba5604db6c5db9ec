"""Sources module: Source features, composite sources and source lists."""

from emission_mc.sources.source import Source, SourceList, generate_candidates
from emission_mc.sources.config import FEATURE_REGISTRY, load_source_list

__all__ = ["Source", "SourceList", "generate_candidates", "FEATURE_REGISTRY", "load_source_list"]
