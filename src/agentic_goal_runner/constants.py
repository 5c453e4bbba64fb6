"""Constants for the goal runner."""

# Loop budgets (max iterations before a forced halt)
DEFAULT_MAX_LOOPS_FREE = 4
DEFAULT_MAX_LOOPS_PAID = 16
DEFAULT_MAX_LOOPS_CUSTOM_API_KEY = 10

# Pacing delays between emitted events, in seconds. Presentation only.
DEFAULT_TASK_DELAY_S = 0.8
DEFAULT_STEP_DELAY_S = 1.0

DEFAULT_REQUEST_TIMEOUT_S = 60.0

# Model defaults
GPT_35_TURBO = "gpt-3.5-turbo"
GPT_4 = "gpt-4"
GPT_MODEL_NAMES = [GPT_35_TURBO, GPT_4]

DEFAULT_MODEL_NAME = GPT_35_TURBO
DEFAULT_TEMPERATURE = 0.9
DEFAULT_MAX_TOKENS = 400

# Accepted ranges for caller settings (inclusive)
MAX_LOOPS_RANGE = (1, 100)
TEMPERATURE_RANGE = (0.0, 1.0)
MAX_TOKENS_RANGE = (200, 2000)

# Endpoints
DEFAULT_OPENAI_API_BASE = "https://api.openai.com/v1"

AGENT_START_PATH = "/api/agent/start"
AGENT_CREATE_PATH = "/api/agent/create"
AGENT_EXECUTE_PATH = "/api/agent/execute"

# Reports
DEFAULT_REPORTS_DIR = "runs/reports"
