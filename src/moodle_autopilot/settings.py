"""Default settings for moodle-autopilot.

Maps to keys in config.example.yaml. Override via config.local.yaml.
"""

from pathlib import Path

from platformdirs import user_data_dir

# Platform-appropriate directories (resolved by platformdirs)
data_dir = Path(user_data_dir("moodle-autopilot"))
downloads_dir = data_dir / "downloads"

# Moodle defaults
moodle_token_env = "MOODLE_TOKEN"
moodle_timeout = 30.0

# Server defaults
server_host = "127.0.0.1"
server_port = 9848
