from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from linebot.v3.exceptions import InvalidSignatureError

from cpbot.services.container import ServiceContainer, get_services
from cpbot.utils.logging import get_logger
from cpbot.utils.responses import ResponseBuilder

line_router = APIRouter()
logger = get_logger()


@line_router.post("")
async def process_line_webhook_events(
    request: Request,
    services: Annotated[ServiceContainer, Depends(get_services)],
):
    """Process LINE webhook events using LineWebhookService"""
    signature = request.headers.get("x-line-signature", "")
    body = (await request.body()).decode()

    if not signature:
        raise HTTPException(
            status_code=400,
            detail="Missing X-Line-Signature header",
        )

    try:
        processed = await services.webhook.handle_events(body, signature)
    except InvalidSignatureError:
        raise HTTPException(
            status_code=400,
            detail="Invalid signature. Payload has been tampered with or signature is incorrect.",
        )

    return ResponseBuilder.success(
        request=request,
        status_code=200,
        data={"events": processed},
        message="Events processed successfully.",
    )
