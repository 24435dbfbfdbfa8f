import os


def _env_bool(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("SECRET_KEY", "insecure-dev-key")
DEBUG = _env_bool("FLASK_DEBUG")

SERVER_NAME = os.getenv(
    "SERVER_NAME", "localhost:{0}".format(os.getenv("PORT", "8000"))
)

# Logging.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
STRUCTURED_LOGGING = _env_bool("STRUCTURED_LOGGING", "true")

# AWS CloudWatch.
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
CLOUDWATCH_ENABLED = _env_bool("CLOUDWATCH_ENABLED")
CLOUDWATCH_LOG_GROUP = os.getenv("CLOUDWATCH_LOG_GROUP", "faultbox")
CLOUDWATCH_LOG_STREAM = os.getenv("CLOUDWATCH_LOG_STREAM", "error-logs")
CLOUDWATCH_LOG_LEVEL = os.getenv("CLOUDWATCH_LOG_LEVEL", "ERROR")
ENABLE_CLOUDWATCH_METRICS = _env_bool("ENABLE_CLOUDWATCH_METRICS")

# Scenarios.
SCENARIO_SECONDS_PER_MINUTE = float(
    os.getenv("SCENARIO_SECONDS_PER_MINUTE", "60")
)
SCENARIO_TARGET_URL = os.getenv("SCENARIO_TARGET_URL", "")
SCENARIO_TARGET_TIMEOUT = float(os.getenv("SCENARIO_TARGET_TIMEOUT", "30"))
SCENARIO_CONTROL_URL = os.getenv(
    "SCENARIO_CONTROL_URL", "http://localhost:{0}".format(os.getenv("PORT", "8000"))
)

# Diagnostics.
DEADLOCK_AUX_THREADS = int(os.getenv("DEADLOCK_AUX_THREADS", "300"))
DEADLOCK_SETTLE_SECONDS = float(os.getenv("DEADLOCK_SETTLE_SECONDS", "5"))
DEADLOCK_HOLD_SECONDS = float(os.getenv("DEADLOCK_HOLD_SECONDS", "2"))
MEMSPIKE_OBJECTS = int(os.getenv("MEMSPIKE_OBJECTS", "1000000"))
MEMSPIKE_PAUSE_SECONDS = float(os.getenv("MEMSPIKE_PAUSE_SECONDS", "5"))
PROBABILISTIC_LOAD_BACKEND_SECONDS = float(
    os.getenv("PROBABILISTIC_LOAD_BACKEND_SECONDS", "0.5")
)
SIMULATED_QUERY_SECONDS = float(os.getenv("SIMULATED_QUERY_SECONDS", "0.5"))
QUERY_EXECUTOR_WORKERS = int(os.getenv("QUERY_EXECUTOR_WORKERS", "32"))
