"""Constants used throughout the taskflow application."""


# Project layout
DATA_DIR_NAME = ".taskflow"
CONFIG_FILE_NAME = "config.json"
TASK_README_NAME = "README.md"
PR_DIR_NAME = "pr"
PR_ARCHIVE_DIR_NAME = "pr-archive"

# Document model
DOC_VERSION = 2
DOC_UPDATED_BY_FALLBACK = "taskflow"
DEFAULT_REQUIRED_SECTIONS = [
    "Summary",
    "Scope",
    "Plan",
    "Risks",
    "Verify Steps",
    "Verification",
    "Rollback Plan",
]
VERIFY_STEPS_PLACEHOLDER = "<!-- TODO: FILL VERIFY STEPS -->"
VERIFICATION_RESULTS_BEGIN = "<!-- BEGIN VERIFICATION RESULTS -->"
VERIFICATION_RESULTS_END = "<!-- END VERIFICATION RESULTS -->"

# Task store
MAX_UPDATE_RETRIES = 1

# Task ids
TASK_ID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
TASK_ID_MIN_SUFFIX_LENGTH = 4
TASK_ID_ATTEMPTS = 1000

# Export snapshot
EXPORT_SCHEMA_VERSION = 1
EXPORT_MANAGED_BY = "taskflow"

# Git
BASE_BRANCH_CONFIG_KEY = "taskflow.baseBranch"
DEFAULT_BASE_BRANCHES = ["main", "master"]
INTEGRATE_TMP_PREFIX = "_integrate_tmp_"
ENV_PREFIX = "TASKFLOW_"

# Emoji used in generated commit subjects
STATUS_EMOJI = {
    "DOING": "🚧",
    "DONE": "✅",
    "BLOCKED": "⛔",
}
DEFAULT_STATUS_EMOJI = "🧩"
MERGE_EMOJI = "🔀"
AGENT_EMOJI = {
    "ORCHESTRATOR": "🧭",
    "PLANNER": "🧠",
    "CREATOR": "🏗️",
    "INTEGRATOR": "🧩",
    "TESTER": "🧪",
    "CODER": "🛠️",
    "REVIEWER": "👀",
    "DOCS": "📝",
}
AGENT_EMOJI_FALLBACK = ["🤖", "🦾", "🛰️", "🔧", "🧰", "📐", "🔭", "🪄"]
