import os

RUNTIME_ENV = os.environ.get("RUNTIME_ENV", "production")
IS_DEV = RUNTIME_ENV == "development"

CONFIG_DIR = os.environ.get("NETADMIN_CONFIG_DIR", "/etc/gateway-netadmin")
DATA_DIR = "/var/lib/gateway-netadmin"
RUN_DIR = "/run/gateway-netadmin"

LOOPBACK_INTERFACE = "lo"
# Virtual radios created by some drivers; never driven directly.
IGNORED_WIFI_PREFIXES = ("mon.", "rpine")

# Seconds
COMMIT_TIMEOUT = 30
COMMIT_POLL_INTERVAL = 0.5
WIFI_CONNECT_TIMEOUT = 60
WIFI_CONNECT_POLL_INTERVAL = 2
WIFI_MODE_TIMEOUT = 10
WIFI_MODE_POLL_INTERVAL = 1

MAX_SNAPSHOTS = 10
