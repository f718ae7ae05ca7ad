from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class SQLConfig(BaseModel):
    driver: str
    username: str | None = None
    password: str | None = None
    host: str | None = None
    port: int | None = None
    database: str
    additional_config: dict[str, str] | None = {}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    ALLOWED_ORIGINS: str = "http://localhost"

    ENVIRONMENT: str = "development"

    # Single credential shared by the token verifier and the backend
    ACCESS_TOKEN_SECRET: str

    # Database config
    DB_DRIVER: str = "postgresql+asyncpg"
    DB_CREATE_TABLES: bool = False
    PG_DB_HOST: str = ""
    PG_DB_NAME: str = ""
    PG_DB_PASSWORD: str = ""
    PG_DB_USER: str = ""
    PG_DB_PORT: int = 5432

    @property
    def PG_DB_CONFIG(self) -> SQLConfig:
        if self.DB_DRIVER.startswith("sqlite"):
            return SQLConfig(driver=self.DB_DRIVER, database=self.PG_DB_NAME)

        return SQLConfig(
            driver=self.DB_DRIVER,
            host=self.PG_DB_HOST,
            port=self.PG_DB_PORT,
            database=self.PG_DB_NAME,
            username=self.PG_DB_USER,
            password=self.PG_DB_PASSWORD,
            additional_config={},
        )

    @property
    def PARSED_ALLOWED_ORIGINS(self):
        return [x.strip() for x in self.ALLOWED_ORIGINS.split(",")]


settings = Settings()

__all__ = ["settings"]
