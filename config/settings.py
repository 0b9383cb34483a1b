"""
Configuration settings for the browser task engine
浏览器任务引擎配置
"""
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Scheduler Configuration
    worker_concurrency: int = 2  # 最大并发 worker 数
    max_queue_size: int = 0  # 0 表示不限制队列长度

    # Execution Policy Defaults
    navigation_timeout_ms: int = 30000
    action_timeout_ms: int = 8000
    max_retries: int = 1
    retry_backoff_ms: int = 1000
    attempt_timeout_ms: Optional[int] = None  # 单次尝试整体超时，None 表示不限制
    default_wait_ms: int = 1000  # wait 动作未指定时长时的默认值

    # Browser Configuration
    browser_headless: bool = True

    # Artifact Configuration
    output_dir: str = "output"
    artifact_public_base_url: Optional[str] = None

    # Database Configuration
    database_url: Optional[str] = None  # 未配置时仅保留内存结果
    sql_echo: bool = False

    # Application Configuration
    log_level: str = "INFO"
    server_host: str = "0.0.0.0"
    server_port: int = Field(default=8787, validation_alias="PORT")
    recent_tasks_limit: int = 50

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
