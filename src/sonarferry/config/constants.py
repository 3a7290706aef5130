"""Shared constants for API paging, state history and report building."""

# Max page size accepted by the search endpoints
PAGE_SIZE = 500

# syncHistory entries kept in the state file
MAX_SYNC_HISTORY = 10

# Prefix written in front of every replayed comment
PROVENANCE_PREFIX = "[Migrated from SonarQube]"

# Metrics copied per branch when the server defines them
COMMON_METRICS = (
    "ncloc",
    "complexity",
    "cognitive_complexity",
    "coverage",
    "line_coverage",
    "branch_coverage",
    "duplicated_lines_density",
    "violations",
    "bugs",
    "vulnerabilities",
    "code_smells",
    "security_hotspots",
    "sqale_index",
    "sqale_rating",
    "reliability_rating",
    "security_rating",
    "alert_status",
)

# Metrics always encoded as strings, whatever their value looks like
STRING_METRICS = frozenset(
    {
        "alert_status",
        "quality_gate_details",
        "executable_lines_data",
        "ncloc_data",
        "conditions_by_line",
        "covered_conditions_by_line",
        "it_conditions_by_line",
        "it_covered_conditions_by_line",
    }
)

DEFAULT_DESTINATION_BRANCH = "master"
DEFAULT_PROJECT_VERSION = "1.0.0"
