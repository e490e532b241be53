import os

from dataclasses import dataclass


@dataclass
class Config:
    """
    Connection and tuning settings shared by every transfer in the process.
    Transfer-specific choices live in esdump.core.options.TransferOptions.
    """

    elastic_username: str = ""
    elastic_password: str = ""
    elastic_ca_path: str = ""
    elastic_ca_verify: bool = True

    request_timeout: int = 60
    # Client-level retries for connection errors and timeouts
    max_retries: int = 3

    # Ceiling on concurrent requests to the store, shared by all sessions
    max_sockets: int = 10
    bulk_size: int = 500
    # Largest page a single search may return (index.max_result_window)
    max_page_size: int = 10000

    # Cursor-level retries once the client has given up
    fetch_attempts: int = 3
    retry_backoff: float = 1.0

    @classmethod
    def from_env(cls):
        env_vars = {
            "elastic_username": "ELASTIC_USERNAME",
            "elastic_password": "ELASTIC_PASSWORD",
            "elastic_ca_path": "ELASTIC_CA_PATH",
            "elastic_ca_verify": "ELASTIC_CA_VERIFY",
            "request_timeout": "ESDUMP_REQUEST_TIMEOUT",
            "max_retries": "ESDUMP_MAX_RETRIES",
            "max_sockets": "ESDUMP_MAX_SOCKETS",
            "bulk_size": "ESDUMP_BULK_SIZE",
            "max_page_size": "ESDUMP_MAX_PAGE_SIZE",
            "fetch_attempts": "ESDUMP_FETCH_ATTEMPTS",
            "retry_backoff": "ESDUMP_RETRY_BACKOFF",
        }
        int_vars = ['request_timeout', 'max_retries', 'max_sockets', 'bulk_size',
                    'max_page_size', 'fetch_attempts']
        kwargs = {}
        for kwarg, env_var in env_vars.items():
            env_value = os.environ.get(env_var)
            if env_value:
                kwargs[kwarg] = env_value
                if kwarg in int_vars:
                    kwargs[kwarg] = int(env_value)
                if kwarg == "retry_backoff":
                    kwargs[kwarg] = float(env_value)
                # default elastic verify cert to true
                if kwarg == "elastic_ca_verify":
                    kwargs[kwarg] = False if env_value.lower() == "false" else True
        return cls(**kwargs)
