from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from koala_wiki.api.errors import ValidationError
from koala_wiki.cache.mutations import MutationResult
from koala_wiki.cache.query_cache import QueryResult, make_key
from koala_wiki.models import UploadHistory, UploadResponse
from koala_wiki.validation import validate_image
from . import keys
from .base import Service


class UploadService(Service):
    async def upload_image(self, path: Path | str, *, content_type: Optional[str] = None) -> MutationResult[UploadResponse]:
        return await self.mutations.run(
            lambda: self.api.uploads.upload_image(path, content_type=content_type),
            name="upload image",
            validate=lambda: validate_image(path, content_type=content_type),
            invalidates=[keys.UPLOAD_HISTORY],
            success="Image uploaded",
            error_title="Upload failed",
            loading_key="upload",
        )

    async def history(self, limit: int = 20, offset: int = 0) -> QueryResult[List[UploadHistory]]:
        return await self.cache.query(
            make_key(*keys.UPLOAD_HISTORY, limit, offset),
            lambda: self.api.uploads.get_upload_history(limit, offset),
            enabled=self.ctx.session.state.is_authenticated,
        )

    async def delete(self, file_name: str) -> MutationResult[None]:
        def _validate() -> None:
            if not file_name or "/" in file_name:
                raise ValidationError(f"Invalid file name: {file_name!r}")

        return await self.mutations.run(
            lambda: self.api.uploads.delete_file(file_name),
            name="delete file",
            validate=_validate,
            invalidates=[keys.UPLOAD_HISTORY],
            success="File deleted",
            error_title="Could not delete the file",
        )
