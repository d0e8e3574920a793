import os

# Keep tests deterministic and offline-safe.
os.environ["AGRIVISION_URL"] = "http://agrivision.test/mcp"
os.environ["AGRIVISION_TIMEOUT_MS"] = "2000"
os.environ["AGRIVISION_STREAMING"] = "true"
os.environ["LOG_JSON"] = "false"
os.environ["ENABLE_METRICS"] = "false"
