"""Example application entry point."""

import logging
import uuid

from inngest_bridge import InngestBridge, create_app, inngest_function
from inngest_bridge.core.config import get_cached_settings
from inngest_bridge.core.logging import configure_logging

settings = get_cached_settings()
configure_logging(settings)

logger = logging.getLogger(__name__)


class UserNotifications:
    """Background work triggered by user lifecycle events."""

    def __init__(self, sender: str = "welcome@example.com"):
        self.sender = sender

    @inngest_function(
        id="send-welcome-email",
        name="Send Welcome Email",
        triggers=[{"event": "user.created"}],
        retries=3,
    )
    async def send_welcome_email(self, event, context):
        user_id = event.data.get("userId")
        email = event.data.get("email")
        context.logger.info(f"Sending welcome email to {email}")

        message_id = await context.step.run("send-email", self._deliver, email)
        return {"success": True, "userId": user_id, "messageId": message_id}

    @inngest_function(
        id="user-onboarding",
        triggers=[{"event": "user.created"}],
        concurrency=10,
    )
    async def onboard_user(self, event, context):
        user_id = event.data.get("userId")
        await context.step.sleep("wait-a-day", "1d")
        ids = await context.step.send_event(
            "send-follow-up",
            {"name": "user.onboarding.follow-up", "data": {"userId": user_id}},
        )
        return {"userId": user_id, "followUpEventIds": ids}

    def _deliver(self, email: str) -> str:
        logger.info(f"Delivering mail from {self.sender} to {email}")
        return f"msg-{uuid.uuid4().hex[:12]}"


bridge = InngestBridge(settings)


@bridge.function(id="daily-digest", triggers=[{"cron": "0 9 * * *", "timezone": "UTC"}])
async def daily_digest(event, context):
    context.logger.info("Building daily digest")
    return {"sent": 0}


# Create the application instance
app = create_app(bridge, instances=[UserNotifications()])


def main():
    """CLI entry point for running the server."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
