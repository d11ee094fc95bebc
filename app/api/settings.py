"""
@description 站点配置接口
@responsibility 处理站点配置的查询和修改操作
"""

from fastapi import APIRouter, HTTPException
from loguru import logger

from app.schemas.api import (
    ApiResponse,
    SiteConfigItem,
    SiteConfigResponse,
    UpdateSiteConfigRequest,
    UpdateSiteConfigResponse,
    success_response,
)
from app.services.site_config import (
    get_all_site_config,
    get_site_config,
    set_site_config,
)

router = APIRouter()

_MISSING = object()


@router.get("/settings", response_model=ApiResponse[SiteConfigResponse])
async def get_settings():
    settings = await get_all_site_config()
    return success_response(
        data=SiteConfigResponse(settings=settings), message="获取配置成功"
    )


@router.get("/settings/{name}", response_model=ApiResponse[SiteConfigItem])
async def get_setting(name: str):
    value = await get_site_config(name, _MISSING)
    if value is _MISSING:
        raise HTTPException(status_code=404, detail=f"配置项 '{name}' 不存在")

    return success_response(
        data=SiteConfigItem(name=name, value=value),
        message="获取配置成功",
    )


@router.put("/settings", response_model=ApiResponse[UpdateSiteConfigResponse])
async def update_settings(request: UpdateSiteConfigRequest):
    updated = []
    for item in request.items:
        if await set_site_config(item.name, item.value):
            updated.append(item.name)

    if not updated:
        raise HTTPException(status_code=500, detail="配置保存失败")

    if len(updated) < len(request.items):
        logger.warning(f"部分配置保存失败: 成功 {len(updated)}/{len(request.items)}")

    return success_response(
        data=UpdateSiteConfigResponse(updated=updated), message="配置更新成功"
    )
