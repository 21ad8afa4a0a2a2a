"""
Client for Supabase edge functions invoked by name.

The functions themselves (checkout, signed recording links, speech audio)
live in the backend; this module only knows their names and payloads.
"""

import os
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

CHECKOUT_FUNCTION = "course-notes-checkout"
RECORDING_URL_FUNCTION = "get-recording-url"
SPEECH_AUDIO_FUNCTION = "generate-dua-audio"


class EdgeFunctionError(Exception):
    """Raised when an edge function answers with a non-2xx status."""

    def __init__(self, function_name: str, status_code: int, message: str):
        self.function_name = function_name
        self.status_code = status_code
        self.message = message
        super().__init__(f"{function_name} failed ({status_code}): {message}")


def _function_url(function_name: str) -> str:
    base_url = os.getenv("SUPABASE_URL")
    if not base_url:
        raise ValueError("SUPABASE_URL must be set")
    return f"{base_url.rstrip('/')}/functions/v1/{function_name}"


def _headers(access_token: Optional[str]) -> Dict[str, str]:
    anon_key = os.getenv("SUPABASE_ANON_KEY", "")
    headers = {"Content-Type": "application/json"}
    if anon_key:
        headers["apikey"] = anon_key
    # Functions authenticate the viewer from the bearer token; fall back to
    # the anon key for functions that need no user.
    token = access_token or anon_key
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return data.get("error") or data.get("message") or str(data)
    return str(data)


async def invoke_json(
    function_name: str,
    payload: Dict[str, Any],
    access_token: Optional[str] = None,
    timeout: float = 30.0,
) -> Dict[str, Any]:
    """POST a JSON payload to an edge function and return its JSON body."""
    async with httpx.AsyncClient() as client:
        response = await client.post(
            _function_url(function_name),
            json=payload,
            headers=_headers(access_token),
            timeout=timeout,
        )
    if response.status_code >= 400:
        message = _error_message(response)
        logger.error(f"Edge function {function_name} returned {response.status_code}: {message}")
        raise EdgeFunctionError(function_name, response.status_code, message)
    return response.json()


async def invoke_binary(
    function_name: str,
    payload: Dict[str, Any],
    access_token: Optional[str] = None,
    timeout: float = 60.0,
) -> bytes:
    """POST a JSON payload to an edge function that answers with raw bytes."""
    async with httpx.AsyncClient() as client:
        response = await client.post(
            _function_url(function_name),
            json=payload,
            headers=_headers(access_token),
            timeout=timeout,
        )
    if response.status_code >= 400:
        message = _error_message(response)
        logger.error(f"Edge function {function_name} returned {response.status_code}: {message}")
        raise EdgeFunctionError(function_name, response.status_code, message)
    return response.content


async def create_notes_checkout(
    access_token: str,
    group_session_id: str,
    success_url: str,
    cancel_url: str,
) -> Dict[str, Any]:
    return await invoke_json(
        CHECKOUT_FUNCTION,
        {
            "group_session_id": group_session_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
        },
        access_token=access_token,
    )


async def refresh_recording_url(
    access_token: str,
    recording_asset_id: str,
    course_session_id: str,
) -> Dict[str, Any]:
    return await invoke_json(
        RECORDING_URL_FUNCTION,
        {
            "recording_asset_id": recording_asset_id,
            "course_session_id": course_session_id,
        },
        access_token=access_token,
    )


async def generate_speech_audio(text: str, language: str) -> bytes:
    return await invoke_binary(SPEECH_AUDIO_FUNCTION, {"text": text, "language": language})
