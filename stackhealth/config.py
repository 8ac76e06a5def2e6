from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Container engine CLI (assumes `docker` is on PATH)
    docker_bin: str = "docker"

    # Compose project directory; data directories resolve against it too
    compose_project_dir: str = "."

    # Stack definition (absolute or relative to CWD); built-in default if missing
    stack_file: str = "stack.yaml"

    # docker CLI calls; HTTP probes carry their own timeout in the stack file
    command_timeout_seconds: float = 30.0

    # Logging (stderr only, the report goes to stdout)
    log_level: str = "WARNING"


settings = Settings()
