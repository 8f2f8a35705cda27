"""
Routes for the packager HTTP service.
"""

from typing import Any

from fastapi import FastAPI, HTTPException

from secure_packager.common.exceptions import PackagerError
from secure_packager.common.models import (
    IssueTokenRequest,
    IssueTokenResponse,
    PackRequest,
    PackResponse,
    UnpackRequest,
    UnpackResult,
)

from .services import PackagerService


class PackagerRoutes:
    """Handles FastAPI routes for the packager service."""

    def __init__(self, service: PackagerService):
        self.service = service

    def setup_routes(self, app: FastAPI) -> None:
        """Setup API routes on the FastAPI app."""

        app.get("/health")(self.health)
        app.post("/pack", response_model=PackResponse)(self.pack)
        app.post("/unpack", response_model=UnpackResult)(self.unpack)
        if self.service.token_issuance_enabled:
            app.post("/issue-token", response_model=IssueTokenResponse)(
                self.issue_token
            )

    # Handlers are sync so FastAPI runs the blocking file work in its threadpool.
    def health(self) -> dict[str, Any]:
        """Handle /health endpoint."""
        return self.service.health()

    def pack(self, req: PackRequest) -> PackResponse:
        """Handle /pack endpoint."""
        try:
            return self.service.pack(req)
        except PackagerError as e:
            raise HTTPException(e.status_code, str(e)) from e

    def unpack(self, req: UnpackRequest) -> UnpackResult:
        """Handle /unpack endpoint."""
        try:
            return self.service.unpack(req)
        except PackagerError as e:
            raise HTTPException(e.status_code, str(e)) from e

    def issue_token(self, req: IssueTokenRequest) -> IssueTokenResponse:
        """Handle /issue-token endpoint."""
        try:
            return self.service.issue_token(req)
        except PackagerError as e:
            raise HTTPException(e.status_code, str(e)) from e
