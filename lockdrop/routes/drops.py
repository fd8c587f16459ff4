from pathlib import Path
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse

from ..controller import AccessController
from ..models import SearchResponse, ShortenResponse, VerifyRequest, VerifyResponse
from ..ratelimit import limit_general, limit_sensitive

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

NOT_FOUND_PAGE = """<!DOCTYPE html>
<html><head><title>Not Found</title></head>
<body style="display:flex;justify-content:center;align-items:center;height:100vh;background:#0f0f1a;color:#fff;font-family:sans-serif;">
  <h1>404 - Short URL not found</h1>
</body></html>
"""


class DropRouter:
    def __init__(self, controller: AccessController):
        self.controller = controller

        self.router = APIRouter(tags=["Drops"])
        self.router.add_api_route("/api/shorten", limit_sensitive(self.create), methods=["POST"],
                                  response_model=ShortenResponse, status_code=201)
        self.router.add_api_route("/api/search", limit_general(self.search), methods=["GET"], response_model=SearchResponse)
        self.router.add_api_route("/api/{short_id}/verify", limit_sensitive(self.verify), methods=["POST"],
                                  response_model=VerifyResponse)
        self.router.add_api_route("/api/{short_id}/download", limit_general(self.download), methods=["GET"], response_model=None)

        # Catch-all page route: include this router after every other one
        self.pages = APIRouter(tags=["Pages"])
        self.pages.add_api_route("/{short_id}", limit_general(self.view_page), methods=["GET"], response_model=None,
                                 include_in_schema=False)

    async def create(
        self,
        request: Request,
        password: str | None = Form(None),
        text_content: str | None = Form(None, alias="textContent"),
        label: str | None = Form(None),
        file: UploadFile | None = File(None),
    ):
        created = await self.controller.create(password, text_content, label, file)
        base_url = str(request.base_url).rstrip("/")
        return ShortenResponse(
            short_id=created.short_id,
            serial_number=created.serial_number,
            short_url=f"{base_url}/{created.short_id}",
        )

    async def search(self, request: Request, serial: str | None = None):
        found = await self.controller.lookup_by_serial(serial)
        return SearchResponse(short_id=found["short_id"], serial_number=found["serial_number"], label=found["label"])

    async def verify(self, request: Request, short_id: str, body: VerifyRequest):
        retrieved = await self.controller.verify_and_retrieve(short_id, body.password)
        download_url = None
        if retrieved.download_token:
            download_url = f"/api/{short_id}/download?token={quote(retrieved.download_token, safe='')}"
        return VerifyResponse(
            text_content=retrieved.text_content,
            has_file=retrieved.has_file,
            file_name=retrieved.file_name,
            download_url=download_url,
        )

    async def download(self, request: Request, short_id: str, token: str | None = None):
        download = await self.controller.download(short_id, token)
        return FileResponse(
            path=download.path,
            media_type="application/octet-stream",
            filename=download.file_name,
        )

    async def view_page(self, request: Request, short_id: str):
        """Serve the password prompt for an existing drop, or a 404 page."""
        if await self.controller.exists(short_id):
            return FileResponse(STATIC_DIR / "view.html", media_type="text/html")
        return HTMLResponse(NOT_FOUND_PAGE, status_code=404)
