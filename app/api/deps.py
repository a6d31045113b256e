from typing import Optional

from fastapi import BackgroundTasks, Header

from app.services.activity_log import Actor, SYSTEM_ACTOR
from app.services.notifications import EventDispatcher


def get_actor(
    actor_id: Optional[str] = Header(None, description="Acting user id (audit)"),
    actor_name: Optional[str] = Header(None, description="Acting user name (audit)"),
) -> Actor:
    if not actor_id and not actor_name:
        return SYSTEM_ACTOR
    return Actor(id=actor_id or None, name=actor_name or SYSTEM_ACTOR.name)


def get_dispatcher(background_tasks: BackgroundTasks) -> EventDispatcher:
    return EventDispatcher(background_tasks)
