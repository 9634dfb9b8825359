"""Slack incoming-webhook destination.

One action, ``postToChannel``, posting a message to a webhook URL taken from
the mapped payload.
"""

from __future__ import annotations

from typing import Any

from relay.execution.action import ActionDefinition
from relay.execution.destination import DestinationDefinition
from relay.execution.request_client import RequestClient
from relay.execution.step import ExecuteInput


async def _post_to_channel(request: RequestClient, ctx: ExecuteInput) -> Any:
    payload = ctx.payload
    return await request(
        payload["url"],
        method="POST",
        json={
            "channel": payload.get("channel"),
            "text": payload["text"],
            "username": payload.get("username"),
            "icon_url": payload.get("icon_url"),
        },
    )


post_to_channel = ActionDefinition(
    title="Post Message",
    description="Post a message to a Slack channel.",
    fields={
        "url": {
            "title": "Webhook URL",
            "description": "Slack webhook URL.",
            "type": "string",
            "format": "uri",
            "required": True,
        },
        "text": {
            "title": "Message",
            "description": "The text message to post to Slack.",
            "type": "string",
            "required": True,
        },
        "channel": {
            "title": "Channel",
            "description": "Slack channel to post message to.",
            "type": "string",
        },
        "username": {
            "title": "User",
            "description": "User name to post messages as.",
            "type": "string",
            "default": "Relay",
        },
        "icon_url": {
            "title": "Icon URL",
            "description": "URL for user icon image.",
            "type": "string",
            "default": "https://example.com/relay.png",
        },
    },
    perform=_post_to_channel,
    default_subscription='type = "track"',
)


destination = DestinationDefinition(
    name="Slack",
    actions={"postToChannel": post_to_channel},
    presets=[
        {
            "name": "Post tracked events",
            "partnerAction": "postToChannel",
            "subscribe": 'type = "track"',
            "mapping": {
                "url": "https://hooks.slack.com/services/T000/B000/XXXX",
                "text": {"@template": "{{ userId }} triggered {{ event }}"},
            },
        }
    ],
)
