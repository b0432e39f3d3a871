"""
Categories and tags:
  GET  /categories, /tags — full lists, alphabetical
  POST /categories, /tags — create (signed in); duplicate names → 409
"""
import logging

from fastapi import APIRouter, Depends, status

from inkwell.dependencies import get_storage, require_auth
from inkwell.schemas import CategoryCreate, CategoryResponse, TagCreate, TagResponse
from inkwell.storage import Storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(storage: Storage = Depends(get_storage)):
    return await storage.list_categories()


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    category = await storage.create_category(body.name.strip(), body.description)
    logger.info("Category '%s' created by user %s", category.name, user_id)
    return category


@router.get("/tags", response_model=list[TagResponse])
async def list_tags(storage: Storage = Depends(get_storage)):
    return await storage.list_tags()


@router.post("/tags", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    body: TagCreate,
    user_id: int = Depends(require_auth),
    storage: Storage = Depends(get_storage),
):
    tag = await storage.create_tag(body.name.strip())
    logger.info("Tag '%s' created by user %s", tag.name, user_id)
    return tag
