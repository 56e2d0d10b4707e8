from fastapi import Request


async def get_user_id(request: Request) -> str | None:
    """Return the signed-in user placed on the request by the auth middleware."""
    return getattr(request.state, 'user_id', None)
