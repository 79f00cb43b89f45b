"""
Response Encoder — the USSD gateway wire format.

"CON <text>" keeps the session open and waits for input, "END <text>" closes
it on the handset. Multi-line bodies are newline-separated.
"""
from ussd_engine.menu.context import Reply

CONTINUE = "CON"
TERMINATE = "END"


def con(text: str) -> str:
    return f"{CONTINUE} {text}"


def end(text: str) -> str:
    return f"{TERMINATE} {text}"


def encode(reply: Reply) -> str:
    return end(reply.text) if reply.end else con(reply.text)
