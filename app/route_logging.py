from __future__ import annotations

from fastapi.routing import APIRoute
from starlette.requests import Request

from app.app_state import get_context
from app.request_context import current_account, current_endpoint


class EndpointNameRoute(APIRoute):
    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def custom_handler(request: Request):
            endpoint_label = f"{request.method} {self.path}"
            session = get_context().session
            token = current_endpoint.set(endpoint_label)
            account_token = current_account.set(session.uid if session else '')
            try:
                return await original_handler(request)
            finally:
                current_account.reset(account_token)
                current_endpoint.reset(token)

        return custom_handler
