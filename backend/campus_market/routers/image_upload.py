from fastapi import APIRouter, Depends, UploadFile, File
from typing import List

from campus_market.auth.dependencies import get_current_user
from campus_market.utils.uploads import save_upload, delete_upload, read_uploads, save_uploads

router = APIRouter(prefix="/api/upload", tags=["Image Upload"])


@router.post("/")
async def upload_image(file: UploadFile = File(...), user=Depends(get_current_user)):
    file_content = await file.read()
    path = save_upload(file_content, file.filename, file.content_type)

    return {
        "url": path,
        "message": "File uploaded successfully"
    }


@router.post("/multiple")
async def upload_multiple_images(files: List[UploadFile] = File(...), user=Depends(get_current_user)):
    paths = save_uploads(await read_uploads(files))
    return {"files": [{"url": path} for path in paths]}


@router.delete("/{filename}")
async def delete_image(filename: str, user=Depends(get_current_user)):
    delete_upload(filename)
    return {"message": "File deleted successfully"}
