"""
CORS headers
============
The browser client calls every endpoint cross-origin with the same fixed
header allow-list. Responses carry the headers explicitly and preflights
get an empty 200, so nothing rewrites the allow-list on the way out.
"""

from fastapi import Response

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": ALLOWED_HEADERS,
}


async def apply_cors_headers(response: Response):
    """Router dependency: copy the CORS headers onto the handler's response"""
    response.headers.update(CORS_HEADERS)


def preflight_response() -> Response:
    return Response(headers=CORS_HEADERS)
