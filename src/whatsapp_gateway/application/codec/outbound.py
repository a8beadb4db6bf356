"""Outbound request envelopes for the provider's messages endpoint."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class TextBody(BaseModel):
    body: str
    preview_url: bool = True


class TextMessagePayload(BaseModel):
    messaging_product: Literal["whatsapp"] = "whatsapp"
    recipient_type: Literal["individual"] = "individual"
    to: str
    type: Literal["text"] = "text"
    text: TextBody


class TemplateParameter(BaseModel):
    type: Literal["text"] = "text"
    text: str


class TemplateComponent(BaseModel):
    type: Literal["header", "body", "button"]
    parameters: list[TemplateParameter] | None = None
    sub_type: Literal["quick_reply", "url"] | None = None
    index: int | None = None


class TemplateLanguage(BaseModel):
    code: str


class TemplateBody(BaseModel):
    name: str
    language: TemplateLanguage
    components: list[TemplateComponent] | None = None


class TemplateMessagePayload(BaseModel):
    messaging_product: Literal["whatsapp"] = "whatsapp"
    recipient_type: Literal["individual"] = "individual"
    to: str
    type: Literal["template"] = "template"
    template: TemplateBody


class MarkReadPayload(BaseModel):
    messaging_product: Literal["whatsapp"] = "whatsapp"
    status: Literal["read"] = "read"
    message_id: str


def encode_text(to: str, body: str) -> dict[str, Any]:
    return TextMessagePayload(to=to, text=TextBody(body=body)).model_dump(exclude_none=True)


def build_body_components(variables: list[str] | None) -> list[dict[str, Any]] | None:
    """Positional ``{{1}}..{{n}}`` body parameters, or None when there are none."""
    if not variables:
        return None
    component = TemplateComponent(
        type="body",
        parameters=[TemplateParameter(text=value) for value in variables],
    )
    return [component.model_dump(exclude_none=True)]


def encode_template(
    to: str,
    template_name: str,
    language: str,
    components: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    payload = TemplateMessagePayload(
        to=to,
        template=TemplateBody(
            name=template_name,
            language=TemplateLanguage(code=language),
            components=[TemplateComponent.model_validate(c) for c in components] if components else None,
        ),
    )
    return payload.model_dump(exclude_none=True)


def encode_mark_read(message_id: str) -> dict[str, Any]:
    return MarkReadPayload(message_id=message_id).model_dump()


def extract_message_id(response: Any) -> str | None:
    """First ``messages[].id`` of a send response, if any."""
    if not isinstance(response, dict):
        return None
    messages = response.get("messages")
    if not isinstance(messages, list) or not messages:
        return None
    first = messages[0]
    if not isinstance(first, dict):
        return None
    message_id = first.get("id")
    return str(message_id) if message_id else None


def extract_error(response: Any) -> tuple[str | None, str | None]:
    """``(code, message)`` from a provider error body."""
    if not isinstance(response, dict):
        return None, None
    error = response.get("error")
    if not isinstance(error, dict):
        return None, None
    code = error.get("code")
    message = error.get("message") or error.get("error_user_msg")
    return (str(code) if code is not None else None), message
