import os

from dotenv import load_dotenv

ENV_LOADED = False


def load_env(env_file: str | None = None):
    """
    Load broker settings from an env file once per process.

    The file is taken from the argument or from ENV_FILE. When neither is set the
    process environment is used as is (Docker/K8s style deployments).
    """
    global ENV_LOADED
    if ENV_LOADED:
        return

    env_file = env_file or os.environ.get("ENV_FILE")

    # If env vars already exist, we are likely in Docker/K8s
    # dotenv should NOT override them
    if env_file and os.path.exists(env_file):
        load_dotenv(env_file, encoding="utf-8", override=False)

    ENV_LOADED = True
