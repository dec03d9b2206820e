from fastapi import APIRouter, Depends, HTTPException

from tradejournal.db import db
from tradejournal.exceptions import DuplicateError
from tradejournal.schemas.tag import Tag, TagCreate, TagUpdate
from tradejournal.services.auth.dependencies import get_current_user

router = APIRouter(prefix="/tags", tags=["Tags"])


@router.get("/", response_model=list[Tag])
async def list_tags(current_user=Depends(get_current_user)):
    return await db.list_tags(current_user["id"])

@router.post("/", response_model=Tag, status_code=201)
async def create_tag(tag: TagCreate, current_user=Depends(get_current_user)):
    try:
        return await db.create_tag(current_user["id"], tag.name.strip(), tag.color)
    except DuplicateError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.put("/{tag_id}", response_model=Tag)
async def update_tag(tag_id: int, tag: TagUpdate, current_user=Depends(get_current_user)):
    name = tag.name.strip() if tag.name else None
    try:
        updated = await db.update_tag(current_user["id"], tag_id, name, tag.color)
    except DuplicateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not updated:
        raise HTTPException(status_code=404, detail="Tag not found!")
    return updated

@router.delete("/{tag_id}", status_code=204)
async def delete_tag(tag_id: int, current_user=Depends(get_current_user)):
    deleted = await db.delete_tag(current_user["id"], tag_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Tag not found!")
