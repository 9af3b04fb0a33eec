"""
Linear plugin for a conversational agent runtime (Lambda + Bedrock Claude)

Where: agent runtime, or AWS Lambda via Function URL.
What:  Turn free-text requests into Linear issue/comment/team/project operations.
Why:   Interpret with one model call, fall back to identifier regexes, keep a
       bounded in-memory activity log of every remote call.
"""

__all__ = [
    "actions",
    "activity",
    "config",
    "errors",
    "handler",
    "interpreter",
    "linear",
    "llm",
    "logs",
    "models",
    "plugin",
    "prompts",
    "providers",
    "runtime",
    "service",
]
