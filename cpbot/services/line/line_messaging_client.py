from typing import List, Optional
from uuid import uuid4

from linebot.v3.messaging import (
    ApiException,
    AsyncApiClient,
    AsyncMessagingApi,
    Configuration,
    PushMessageRequest,
    ReplyMessageRequest,
    TextMessage,
)

from cpbot.config.settings import settings
from cpbot.utils.errors import LineApplicationError
from cpbot.utils.logging import get_logger

logger = get_logger()

# LINE accepts at most five message objects per request
MAX_MESSAGES_PER_REQUEST = 5


def _batches(texts: List[str]) -> List[List[str]]:
    return [
        texts[i : i + MAX_MESSAGES_PER_REQUEST]
        for i in range(0, len(texts), MAX_MESSAGES_PER_REQUEST)
    ]


def _text_messages(texts: List[str]) -> List[TextMessage]:
    return [TextMessage(text=text, quickReply=None, quoteToken=None) for text in texts]


class LineMessagingClient:
    """Thin wrapper over the LINE Messaging API for text replies and pushes"""

    def __init__(self, configuration: Optional[Configuration] = None):
        self.configuration = configuration or Configuration(
            access_token=settings.LINE_CHANNEL_ACCESS_TOKEN
        )

    async def reply_text(self, reply_token: str, texts: List[str]) -> None:
        """
        Reply to an event. A reply token can be used once, so anything beyond
        the first five messages is dropped.
        """
        if not texts:
            return
        if len(texts) > MAX_MESSAGES_PER_REQUEST:
            logger.warning(
                f"Reply truncated from {len(texts)} to {MAX_MESSAGES_PER_REQUEST} messages"
            )
        try:
            async with AsyncApiClient(configuration=self.configuration) as api_client:
                line_bot_api = AsyncMessagingApi(api_client)
                await line_bot_api.reply_message(
                    ReplyMessageRequest(
                        replyToken=reply_token,
                        messages=_text_messages(texts[:MAX_MESSAGES_PER_REQUEST]),
                        notificationDisabled=False,
                    )
                )
        except ApiException as e:
            logger.error(f"Failed to send reply message: {str(e)}")
            raise LineApplicationError(
                "Failed to send LINE reply", error_code="LINE_REPLY_FAILED"
            ) from e

    async def push_text(self, to: str, texts: List[str]) -> None:
        """Push messages to a user, group or room id"""
        try:
            async with AsyncApiClient(configuration=self.configuration) as api_client:
                line_bot_api = AsyncMessagingApi(api_client)
                for batch in _batches(texts):
                    await line_bot_api.push_message(
                        PushMessageRequest(
                            to=to,
                            messages=_text_messages(batch),
                            notificationDisabled=False,
                            customAggregationUnits=None,
                        ),
                        x_line_retry_key=str(uuid4()),
                    )
        except ApiException as e:
            logger.error(f"Failed to send push message to [{to}]: {str(e)}")
            raise LineApplicationError(
                "Failed to send LINE push message", error_code="LINE_PUSH_FAILED"
            ) from e
