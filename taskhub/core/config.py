# taskhub/core/config.py
import os
from typing import List, Literal
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - PUB_SUB_SERVICE the backplane used to share broadcasts between
          instances: "memory" (single process), "redis" or "google_pub_sub"
        - TOPIC_ID / SUBSCRIPTION_ID the topic and subscription of pubsub
        - NOTIFICATION_ROOM_PREFIX prefix of the per-user notification rooms
        - PUSH_* defaults used by the push delivery worker
    """

    # Load environment variables from the .env file
    load_dotenv()

    PUB_SUB_SERVICE: Literal["memory", "redis", "google_pub_sub"] = (
        os.getenv("PUB_SUB_SERVICE", "memory")
    )

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    PROJECT_ID = os.getenv("PROJECT_ID", "")
    TOPIC_ID = os.getenv("TOPIC_ID", "")
    SUBSCRIPTION_ID = os.getenv("SUBSCRIPTION_ID", "")

    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]

    NOTIFICATION_ROOM_PREFIX: str = os.getenv("NOTIFICATION_ROOM_PREFIX", "notif:")
    OUTBOUND_QUEUE_SIZE: int = int(os.getenv("OUTBOUND_QUEUE_SIZE", "256"))

    PUSH_DEFAULT_TITLE: str = os.getenv("PUSH_DEFAULT_TITLE", "Notification")
    PUSH_ICON: str = os.getenv("PUSH_ICON", "/favicon.png")
    PUSH_BADGE: str = os.getenv("PUSH_BADGE", "/badge.png")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
