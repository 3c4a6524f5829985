# Where: perf/runner/constants.py
# What: Shared names and defaults for the performance pipeline.
# Why: Keep image names, roles and budgets in one place for stages and tests.

# Images
IMAGE_APP_BUILDER = "app-builder"
IMAGE_APP_SERVER = "app-server"
IMAGE_MOCK_SERVER = "mock-server"
IMAGE_SITESPEED = "sitespeedio/sitespeed.io:3.11.5"

# Container roles in PipelineContext.containers
ROLE_BUILDER = "builder"
ROLE_MOCK_SERVER = "mock_server"
ROLE_APP_SERVER = "app_server"
ROLE_LOAD_TEST_PREFIX = "load_test_"

# Stage names
STAGE_INITIALIZE = "initialize"
STAGE_BUILD = "build"
STAGE_MOCK_SERVER = "start_mock_server"
STAGE_APP_SERVER = "start_app_server"
STAGE_WAIT = "wait_for_app_server"
STAGE_LOAD_TEST = "run_load_tests"
STAGE_REPORT = "report"

# Environment passed into service containers
ENV_APP_BUILD_CMD = "APP_BUILD_CMD"
ENV_APP_SERVER_CMD = "APP_SERVER_CMD"
ENV_MOCK_SERVER_CMD = "MOCK_SERVER_CMD"
ENV_GITHUB_BRANCH_OR_SHA = "GITHUB_BRANCH_OR_SHA"
ENV_GITHUB_KEY = "GITHUB_KEY"
ENV_GITHUB_ORG = "GITHUB_ORG"
ENV_GITHUB_REPO = "GITHUB_REPO"

MOCK_SERVER_LINK_ALIAS = "mock-server"
APP_SERVER_PORT = "3000/tcp"
UNRESOLVED_HOST_IP = "0.0.0.0"

# Load test container
SITESPEED_CPU_SHARES = 2 * 1024
SITESPEED_RETRY_INTERVAL = 30.0
SITESPEED_RETRIES = 3
SITESPEED_SAMPLE_SIZE = 10
SITESPEED_RESULT_DIR = "/tmp/sitespeed_result"
SITESPEED_BROWSER_CONFIG = "/tmp/chrome.json"
SITESPEED_PLUGINS_DIR = "/tmp/plugins"
SITESPEED_SELENIUM_SERVER = "http://0.0.0.0:4444/wd/hub"

# Readiness probe
READINESS_ATTEMPTS = 10
READINESS_REQUEST_TIMEOUT = 5.0
READINESS_BASE_DELAY = 0.1
READINESS_BACKOFF_FACTOR = 2.0
READINESS_MAX_DELAY = 10.0

# Teardown
TEARDOWN_MAX_WORKERS = 8

# Reporting
DEFAULT_PREFIX = "perf"
DEFAULT_PROFILE = "default"
DEFAULT_HOSTNAME = "dev.example.com"
DEFAULT_GITHUB_URL = "https://github.com"
METRIC_GIT_COMMIT = "gitcommit"
REPORT_TIMEOUT = 10.0

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
