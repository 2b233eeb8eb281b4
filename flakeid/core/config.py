from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"
    DATACENTER_ID: int = 0
    WORKER_ID: int = 0
    EPOCH: int = 1577808000000
    MAX_BACKWARD_MS: int = 3
    ROLLBACK_POLICY: str = "raise"
    MAX_BATCH_SIZE: int = 1000
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "FLAKEID_"


settings = Settings()
