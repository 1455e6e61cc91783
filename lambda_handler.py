"""
AWS Lambda handler for the Contact Identity Resolution service
This module adapts the FastAPI application to work with AWS Lambda + API Gateway
"""

import json
import logging

from mangum import Mangum

from config import settings
from main import app

# Configure logging for Lambda
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Configure Mangum adapter for Lambda
handler = Mangum(
    app,
    lifespan="off",  # No startup work; the engine is created lazily
    api_gateway_base_path="/",
    text_mime_types=[
        "application/json",
        "text/plain",
        "text/html"
    ],
    exclude_headers=["x-amzn-trace-id"]
)


def describe_event(event: dict) -> str:
    """Short 'METHOD path' description of an API Gateway event"""
    if event.get('version') == '2.0':
        http = event.get('requestContext', {}).get('http', {})
        return f"{http.get('method', 'UNKNOWN')} {http.get('path', 'UNKNOWN')}"
    if 'httpMethod' in event:
        return f"{event.get('httpMethod', 'UNKNOWN')} {event.get('path', 'UNKNOWN')}"
    return "unknown event format"


def lambda_handler(event, context):
    """
    AWS Lambda entry point

    Args:
        event: API Gateway event data
        context: Lambda runtime context

    Returns:
        API Gateway response format
    """
    request_id = getattr(context, 'aws_request_id', None)
    logger.info(f"Lambda request {request_id}: {describe_event(event)}")

    try:
        response = handler(event, context)
        logger.info(f"Lambda request {request_id} completed with status {response.get('statusCode', 'UNKNOWN')}")
        return response

    except Exception as e:
        logger.error(f"Lambda handler error: {e}", exc_info=True)

        return {
            "statusCode": 500,
            "headers": {
                "Content-Type": "application/json",
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
                "Access-Control-Allow-Headers": "Content-Type, Authorization"
            },
            "body": json.dumps({
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "requestId": request_id
            })
        }
