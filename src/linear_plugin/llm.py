"""
Text completion over Bedrock Claude (Messages API, bedrock-2023-05-31).
"""

from __future__ import annotations

import importlib
import json

EXTRACTION_SYSTEM = (
    "You turn requests about Linear issues into structured data. "
    "Reply with a single JSON object and nothing else."
)


def _boto3():
    # tests swap in a fake module as `llm.boto3`
    return globals().get("boto3") or importlib.import_module("boto3")


def complete(model_id: str, prompt: str, max_tokens: int = 700) -> str:
    """Return the model's text for one extraction prompt ("" when it sends none)."""
    request = {
        "anthropic_version": "bedrock-2023-05-31",
        "max_tokens": max_tokens,
        "system": EXTRACTION_SYSTEM,
        "messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
    }
    resp = _boto3().client("bedrock-runtime").invoke_model(
        modelId=model_id,
        body=json.dumps(request),
        accept="application/json",
        contentType="application/json",
    )
    payload = json.loads(resp["body"].read())
    blocks = payload.get("content") or []
    return "".join(b.get("text", "") for b in blocks if isinstance(b, dict))
