EVENT_PREFIX = "event:"
DATA_PREFIX = "data: "
DATA_MARKER = "\ndata: "

# A JSON object closed right before the blank line that ends an SSE frame.
COMPLETION_MARKERS = ("}}\n\n", "}\n\n")


def extract_frame_payload(text: str) -> str:
    """Strip SSE framing from a raw response buffer.

    ``event: message\\ndata: {...}\\n\\n`` and ``data: {...}\\n\\n`` both yield
    ``{...}``; text without framing is returned as is. Trailing newlines are
    always removed, so the function is idempotent on its own output.
    """
    payload = text
    if text.startswith(EVENT_PREFIX):
        marker = text.find(DATA_MARKER)
        if marker != -1:
            payload = text[marker + len(DATA_MARKER) :]
    elif text.startswith(DATA_PREFIX):
        payload = text[len(DATA_PREFIX) :]
    return payload.rstrip("\r\n")


def is_message_complete(text: str) -> bool:
    """Guess whether a partially received SSE buffer holds a full message.

    Approximate by nature: any earlier frame that closes an object (a progress
    notification, say) also matches.
    """
    return any(marker in text for marker in COMPLETION_MARKERS)
