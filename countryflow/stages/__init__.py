"""Pipeline stages and the runner that turns them into event handlers."""

from countryflow.stages.enrichment import make_enrichment_stage
from countryflow.stages.runner import Stage, StageOutcome, StageRunner
from countryflow.stages.sink import make_sink_stage
from countryflow.stages.validation import is_valid_country, validate_country

__all__ = [
    "Stage",
    "StageOutcome",
    "StageRunner",
    "is_valid_country",
    "make_enrichment_stage",
    "make_sink_stage",
    "validate_country",
]
