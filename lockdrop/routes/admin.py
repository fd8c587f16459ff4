import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..controller import AccessController
from ..errors import Unauthorized
from ..models import (
    DropDeleted,
    DropList,
    DropRecord,
    DropUpdate,
    DropUpdated,
    FileAction,
    LoginRequest,
    LoginResponse,
)
from ..ratelimit import limit_general, limit_sensitive
from ..utils import parse_bool

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


class AdminRouter:
    def __init__(self, controller: AccessController):
        self.controller = controller

        self.router = APIRouter(prefix="/api/admin", tags=["Admin"])
        self.router.add_api_route("/login", limit_sensitive(self.login), methods=["POST"],
                                  response_model=LoginResponse)
        # Rejected tokens count against the general budget too
        admin_only = [Depends(limit_general(self.check_auth))]
        self.router.add_api_route("/urls", limit_general(self.list_urls), methods=["GET"],
                                  response_model=DropList, dependencies=admin_only)
        self.router.add_api_route("/urls/{drop_id}", limit_general(self.update_url), methods=["PUT"],
                                  response_model=DropUpdated, dependencies=admin_only)
        self.router.add_api_route("/urls/{drop_id}", limit_general(self.delete_url), methods=["DELETE"],
                                  response_model=DropDeleted, dependencies=admin_only)

    def check_auth(
        self,
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> dict:
        """Dependency: the admin principal for a valid ``Authorization: Bearer`` token."""
        token = credentials.credentials if credentials else None
        try:
            return self.controller.authorize(token)
        except Unauthorized:
            logger.warning("Unauthorized admin request: %s %s", request.method, request.url.path)
            raise

    async def login(self, request: Request, login_data: LoginRequest):
        """Login endpoint: verifies the admin credentials and issues a bearer token."""
        token = await self.controller.login(login_data.username, login_data.password)
        return LoginResponse(token=token)

    async def list_urls(self, request: Request):
        rows = await self.controller.admin_list()
        return DropList(urls=[DropRecord.from_row(r) for r in rows])

    async def update_url(
        self,
        request: Request,
        drop_id: int,
        label: str | None = Form(None),
        text_content: str | None = Form(None, alias="textContent"),
        delete_file: str | None = Form(None, alias="deleteFile"),
        file: UploadFile | None = File(None),
    ):
        """Edit label, text content, and replace or remove the attachment."""
        if file is not None and file.filename:
            file_action = FileAction.REPLACE
        elif parse_bool(delete_file):
            file_action = FileAction.REMOVE
        else:
            file_action = FileAction.KEEP

        update = DropUpdate(label=label, text_content=text_content, file_action=file_action)
        row = await self.controller.admin_update(drop_id, update, file)
        return DropUpdated(url=DropRecord.from_row(row))

    async def delete_url(self, request: Request, drop_id: int):
        await self.controller.admin_delete(drop_id)
        return DropDeleted()
