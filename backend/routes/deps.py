"""Shared route dependencies: the per-request session context.

Every /api/episodes/{episode_id}/... endpoint acts as the user named by the
X-User-Id / X-User-Name headers (issued by the external identity provider)
against that episode. The context is opened per request and closed when the
response is done, so its mirrors never outlive the request.
"""

from typing import Annotated, AsyncIterator

from fastapi import Depends, Header, HTTPException, Request

from ihunt_vtt.models import Identity, Validation
from ihunt_vtt.session import SessionContext


def identity(
    x_user_id: Annotated[str, Header()],
    x_user_name: Annotated[str, Header()] = "",
) -> Identity:
    return Identity(uid=x_user_id, display_name=x_user_name)


async def session_context(
    episode_id: str,
    request: Request,
    user: Annotated[Identity, Depends(identity)],
) -> AsyncIterator[SessionContext]:
    ctx = await SessionContext.open(
        request.app.state.store, user, episode_id, config=request.app.state.config
    )
    try:
        yield ctx
    finally:
        await ctx.close()


Context = Annotated[SessionContext, Depends(session_context)]


def refused(ctx: SessionContext, status: int = 400) -> HTTPException:
    """HTTPException carrying the latest notice a mutator posted."""
    notices = ctx.notices.drain()
    detail = notices[-1].description or notices[-1].title if notices else "Request refused"
    return HTTPException(status, detail)


def require(ctx: SessionContext, ok: object) -> None:
    if not ok:
        raise refused(ctx)


def require_valid(result: Validation) -> None:
    if not result.valid:
        raise HTTPException(422, result.error)
