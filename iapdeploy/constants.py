"""
iapdeploy Constants

Centralized constants for defaults, timeouts and validation checks.
"""

# Default deployment parameters
DEFAULT_VM_ZONE = "us-central1-a"
DEFAULT_PLAYBOOK = "golden-image-rhel9.yml"
DEFAULT_GIT_BRANCH = "main"
DEFAULT_ANSIBLE_USER = "ansible"
DEFAULT_SSH_KEY_SECRET = "ansible-ssh-key"

# Environment variables consulted for the project id (in order)
PROJECT_ENV_VARS = ["IAPDEPLOY_PROJECT_ID", "CLOUDSDK_CORE_PROJECT"]

# Prefix for per-field environment overrides (IAPDEPLOY_TARGET_VM, ...)
ENV_PREFIX = "IAPDEPLOY_"

# Config file locations
DEFAULT_CONFIG_PATH = "~/.iapdeploy.yml"
DEFAULT_ENV_FILE = ".env"
DEFAULT_LOG_ROOT = "~/.iapdeploy/logs"
DEFAULT_LOCK_DIR = "~/.iapdeploy/locks"

# Tunnel Configuration
SSH_REMOTE_PORT = 22
TUNNEL_LOCAL_HOST = "localhost"
TUNNEL_POLL_INTERVAL = 0.5
DEFAULT_TUNNEL_TIMEOUT = 60

# Ansible Configuration
ANSIBLE_PLAYBOOK_BIN = "ansible-playbook"
ANSIBLE_INTERPRETER = "auto_silent"
ANSIBLE_INVENTORY_GROUP = "targets"
DEFAULT_PLAYBOOK_TIMEOUT = 3600
PLAYBOOK_TAIL_LINES = 40

# Host lock
DEFAULT_LOCK_TIMEOUT = 30

# Validation Configuration
VALIDATION_CHECK_TIMEOUT = 30

# (display name, command) checked on the target after the playbook runs
VALIDATION_COMPONENTS = [
    ("Python 3", "python3"),
    ("pip3", "pip3"),
    ("Java Runtime", "java"),
    ("Java Compiler", "javac"),
    ("Node.js", "node"),
    ("npm", "npm"),
    ("PostgreSQL Client", "psql"),
]

# Tool Names (for doctor check)
REQUIRED_TOOLS = [
    "gcloud",
    "ansible-playbook",
    "ssh",
    "git",
]

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
