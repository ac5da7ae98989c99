from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    google_client_id: str = ""
    google_client_secret: str = ""
    redirect_host: str = "localhost"
    redirect_port: int = 3000
    redirect_path: str = "/oauth2callback"
    # How long the callback listener stays up after delivering a code
    callback_grace_seconds: float = 60.0
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.redirect_host}:{self.redirect_port}{self.redirect_path}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
