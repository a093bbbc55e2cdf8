"""
Theme API Routes

Themes are referenced by name from agreements. Renaming a theme renames
it on every agreement; deleting a theme in use is refused.
"""

from fastapi import APIRouter, Depends, Request

from tradebarriers.api.common import dump, dump_all
from tradebarriers.schemas import ThemeInput
from tradebarriers.web.auth import AuthUser
from tradebarriers.web.deps import get_service, require_user


router = APIRouter(prefix="/api/themes", tags=["Themes"])


@router.get("")
def list_themes(request: Request):
    return dump_all(get_service(request).list_themes())


@router.post("", status_code=201)
def create_theme(
    request: Request,
    body: ThemeInput,
    user: AuthUser = Depends(require_user),
):
    theme = get_service(request).create_theme(body)
    return {"message": "Theme created successfully", "data": dump(theme)}


@router.put("/{theme_id}")
def rename_theme(
    request: Request,
    theme_id: str,
    body: ThemeInput,
    user: AuthUser = Depends(require_user),
):
    theme = get_service(request).rename_theme(theme_id, body)
    return {"message": "Theme updated successfully", "data": dump(theme)}


@router.delete("/{theme_id}")
def delete_theme(
    request: Request,
    theme_id: str,
    user: AuthUser = Depends(require_user),
):
    get_service(request).delete_theme(theme_id)
    return {"message": "Theme deleted successfully"}
